"""
Handler registry mapping stable identifiers to handler classes.

Configured handler lists are resolved once at startup; nothing is imported
by name at runtime.
"""

from typing import Callable, Dict, List, NamedTuple, Optional, Type

from ..config import HandlerSettings, Settings
from ..errors import ConfigurationError
from .base import BaseHandler

HandlerFactory = Callable[[HandlerSettings, Optional[Settings]], BaseHandler]


class HandlerRegistration(NamedTuple):
    handler_cls: Type[BaseHandler]
    factory: HandlerFactory
    description: str


def _default_factory(handler_cls: Type[BaseHandler]) -> HandlerFactory:
    def factory(
        handler_settings: HandlerSettings, settings: Optional[Settings]
    ) -> BaseHandler:
        return handler_cls(send_to=handler_settings.send_to)

    return factory


class HandlerRegistry:
    """
    Registry for handler classes with their identifiers and descriptions.

    Example:
        ```python
        @handler_registry.register("shout", description="Relay uppercased lines")
        class ShoutHandler(BaseHandler):
            async def handle(self, line, source):
                return [line.upper()]
        ```
    """

    def __init__(self):
        # identifier -> HandlerRegistration
        self._handlers: Dict[str, HandlerRegistration] = {}

    def register(
        self,
        identifier: str,
        description: str = "",
        factory: Optional[HandlerFactory] = None,
    ):
        """
        Class decorator registering a handler under ``identifier``.

        Args:
            identifier: Name used in the ``handlers`` configuration list
            description: Human-readable description of the handler
            factory: Builds the handler from its settings; defaults to calling
                the class with the configured ``send_to`` override
        """

        def decorator(handler_cls: Type[BaseHandler]) -> Type[BaseHandler]:
            if identifier in self._handlers:
                raise ValueError(f"handler '{identifier}' is already registered")
            handler_cls.name = identifier
            handler_cls.description = description
            self._handlers[identifier] = HandlerRegistration(
                handler_cls=handler_cls,
                factory=factory or _default_factory(handler_cls),
                description=description,
            )
            return handler_cls

        return decorator

    def get(self, identifier: str) -> Optional[HandlerRegistration]:
        return self._handlers.get(identifier)

    def is_registered(self, identifier: str) -> bool:
        return identifier in self._handlers

    def get_all(self) -> Dict[str, HandlerRegistration]:
        return self._handlers.copy()

    def create(
        self, handler_settings: HandlerSettings, settings: Optional[Settings] = None
    ) -> BaseHandler:
        """
        Instantiate one configured handler.

        Raises:
            ConfigurationError: No handler is registered under that name
        """
        registration = self._handlers.get(handler_settings.name)
        if registration is None:
            known = ", ".join(sorted(self._handlers)) or "none"
            raise ConfigurationError(
                f"unknown handler '{handler_settings.name}' (registered: {known})"
            )
        return registration.factory(handler_settings, settings)

    def build(
        self,
        handler_settings: List[HandlerSettings],
        settings: Optional[Settings] = None,
    ) -> List[BaseHandler]:
        """Instantiate every configured handler, keeping configuration order."""
        return [self.create(entry, settings) for entry in handler_settings]


# Global handler registry instance
handler_registry = HandlerRegistry()
