import functools
import gzip
import inspect
import logging
import logging.handlers
import os
import shutil
import sys
from pathlib import Path
from typing import Callable, Optional, ParamSpec, TypeVar

logger = logging.getLogger("xchat")
logger.setLevel(logging.DEBUG)
formatter = logging.Formatter(
    "%(asctime)s %(levelname)s [%(module)s:%(funcName)s:%(lineno)d] %(message)s"
)

log_stream_handler = logging.StreamHandler(sys.stdout)
log_stream_handler.setFormatter(formatter)
logger.addHandler(log_stream_handler)


def rotator(source, dest):
    with open(source, "rb") as f_in:
        with gzip.open(dest + ".gz", "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)
    os.remove(source)


def setup_file_logging(logs_dir: Optional[Path]) -> Optional[logging.Handler]:
    """Attach a midnight-rotating file handler writing to ``logs_dir/xchat.log``.

    Old files are gzipped on rotation. Does nothing when ``logs_dir`` is None.
    """
    if logs_dir is None:
        return None

    logs_dir = Path(logs_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.TimedRotatingFileHandler(
        logs_dir / "xchat.log", when="midnight"
    )
    handler.setFormatter(formatter)
    handler.rotator = rotator
    logger.addHandler(handler)
    return handler


P = ParamSpec("P")
R = TypeVar("R")


def log_exception(
    prefix: str = "",
    default_return: R | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator that logs and swallows any exception raised by the wrapped function.

    Works for both sync and async functions. The log line carries the bound call
    arguments, and ``prefix`` may reference them by name with ``{braces}``.

    Args:
        prefix: Optional prefix to prepend to the error message
        default_return: Value returned when the wrapped call raised

    Usage:
        @log_exception("Sending to {endpoint}")
        async def send(endpoint, packet):
            ...
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        sig = inspect.signature(func)
        func_name = func.__qualname__

        def describe_call(args: tuple, kwargs: dict) -> tuple[dict, str]:
            try:
                bound = sig.bind(*args, **kwargs)
                bound.apply_defaults()
            except TypeError as e:
                logger.warning(
                    f"Failed to bind arguments for function {func_name}: {e}",
                    stacklevel=3,
                )
                return {}, ""
            params = ", ".join(
                f"{k}={v!r}" for k, v in bound.arguments.items() if k != "self"
            )
            return bound.arguments, f"[{params}] " if params else ""

        def format_prefix(bound_args: dict) -> str:
            if not prefix:
                return ""
            if "{" in prefix and "}" in prefix:
                try:
                    return f"{prefix.format_map(bound_args)}: "
                except (KeyError, ValueError, AttributeError) as e:
                    logger.warning(
                        f"Failed to format prefix '{prefix}' with arguments: {e}",
                        stacklevel=3,
                    )
            return f"{prefix}: "

        def report(e: Exception, args: tuple, kwargs: dict) -> None:
            bound_args, args_str = describe_call(args, kwargs)
            logger.error(
                f"{args_str}{format_prefix(bound_args)}{type(e).__name__}: {e}",
                exc_info=True,
                stacklevel=3,
            )

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    report(e, args, kwargs)
                    return default_return  # type: ignore[return-value]

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                report(e, args, kwargs)
                return default_return  # type: ignore[return-value]

        return sync_wrapper

    return decorator
