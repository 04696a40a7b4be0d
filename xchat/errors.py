"""Exception types raised by the relay."""


class XChatError(Exception):
    """Base class for all relay errors."""


class ConfigurationError(XChatError):
    """Raised when the configuration is missing, malformed or inconsistent."""


class TailerError(XChatError):
    """Raised when a server log file cannot be opened, inspected or read."""


class StatusResponseError(XChatError):
    """Raised when a getstatus reply cannot be decoded."""
