from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    INVALID_JSON = "INVALID_JSON"
    INVALID_COMMAND = "INVALID_COMMAND"
    UNKNOWN_COMMAND = "UNKNOWN_COMMAND"
    ALREADY_INITIALIZED = "ALREADY_INITIALIZED"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    ACCESS_DENIED = "ACCESS_DENIED"
    HARDWARE_ERROR = "HARDWARE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class LibremonError(Exception):
    """Base class for errors reported to daemon callers with an error code."""

    code = ErrorCode.INTERNAL_ERROR


class ProtocolError(LibremonError):
    code = ErrorCode.INVALID_COMMAND


class InvalidJsonError(ProtocolError):
    code = ErrorCode.INVALID_JSON


class UnknownCommandError(ProtocolError):
    code = ErrorCode.UNKNOWN_COMMAND


class SessionStateError(LibremonError):
    pass


class AlreadyInitializedError(SessionStateError):
    code = ErrorCode.ALREADY_INITIALIZED

    def __init__(self, message: str = "Already initialized") -> None:
        super().__init__(message)


class NotInitializedError(SessionStateError):
    code = ErrorCode.NOT_INITIALIZED

    def __init__(self, message: str = "Not initialized. Send 'init' command first.") -> None:
        super().__init__(message)


class HardwareError(LibremonError):
    code = ErrorCode.HARDWARE_ERROR


class AccessDeniedError(HardwareError):
    code = ErrorCode.ACCESS_DENIED


class FlattenError(ValueError):
    """Raised when a tree does not carry the raw node structure."""


class ClientError(Exception):
    """Base class for failures seen by the daemon client."""


class TransportError(ClientError):
    pass


class DaemonExitedError(TransportError):
    pass


class CommandTimeoutError(TransportError):
    pass


class ResponseFormatError(TransportError):
    pass


class DaemonError(ClientError):
    """The daemon answered with ``success: false``."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code
