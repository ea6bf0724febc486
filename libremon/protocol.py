"""Wire format of the daemon: one JSON command in, one JSON response out."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, ClassVar

from libremon.errors import ErrorCode, InvalidJsonError, ProtocolError
from libremon.schema import validate_command


@dataclass(frozen=True)
class Command:
    cmd: str
    flags: tuple[str, ...] = ()
    flat: bool = False


@dataclass
class Response:
    """Common fields; ``None`` values are left out of the encoded line."""

    success: ClassVar[bool] = True

    def fields(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        for key, value in self.fields().items():
            if value is not None:
                payload[key] = value
        return payload


@dataclass
class InitResponse(Response):
    initialized: list[str] = field(default_factory=list)
    mode: str = "raw"

    def fields(self) -> dict[str, Any]:
        return {"initialized": list(self.initialized), "mode": self.mode}


@dataclass
class PollResponse(Response):
    timestamp: int = 0
    mode: str = "raw"
    data: dict[str, Any] | None = None

    def fields(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "mode": self.mode, "data": self.data}


@dataclass
class ShutdownResponse(Response):
    message: str = ""

    def fields(self) -> dict[str, Any]:
        return {"message": self.message}


@dataclass
class VersionResponse(Response):
    version: str = ""
    collaborator: str = "librehardwaremonitor"
    collaborator_version: str = ""
    platform: str = ""

    def fields(self) -> dict[str, Any]:
        return {
            "version": self.version,
            self.collaborator: self.collaborator_version,
            "platform": self.platform,
        }


@dataclass
class ErrorResponse(Response):
    error: str = ""
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    success: ClassVar[bool] = False

    def fields(self) -> dict[str, Any]:
        return {"error": self.error, "errorCode": ErrorCode(self.error_code).value}


def encode_response(response: Response) -> str:
    """Compact one-line JSON with the trailing newline."""
    return json.dumps(response.to_dict(), separators=(",", ":"), ensure_ascii=False) + "\n"


def parse_command(line: str) -> Command:
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise InvalidJsonError(f"Invalid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise ProtocolError("Missing 'cmd' field")
    cmd = payload.get("cmd")
    if not isinstance(cmd, str) or not cmd:
        raise ProtocolError("Missing 'cmd' field")

    errors = validate_command(payload)
    if errors:
        raise ProtocolError(f"Invalid command: {'; '.join(errors)}")

    return Command(
        cmd=cmd,
        flags=tuple(payload.get("flags") or ()),
        flat=bool(payload.get("flat", False)),
    )
