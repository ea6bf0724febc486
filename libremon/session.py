from __future__ import annotations

from dataclasses import dataclass
import logging
import platform
import socket
import sys
import time
from typing import Callable, Iterable, Sequence

from libremon import __version__
from libremon.config import DaemonConfig
from libremon.errors import (
    AccessDeniedError,
    AlreadyInitializedError,
    ErrorCode,
    HardwareError,
    LibremonError,
    NotInitializedError,
    UnknownCommandError,
)
from libremon.flatten import DAEMON, flatten
from libremon.hardware import Computer, collaborator_info, create_computer
from libremon.protocol import (
    Command,
    ErrorResponse,
    InitResponse,
    PollResponse,
    Response,
    ShutdownResponse,
    VersionResponse,
)
from libremon.sensors import CATEGORIES
from libremon.tree import build_tree, update_hardware

ACCESS_DENIED_MESSAGE = "Access denied. Administrator privileges required."

ComputerFactory = Callable[[Sequence[str]], Computer]

_RID_OS = {"win32": "win", "cygwin": "win", "darwin": "osx"}
_RID_ARCH = {
    "amd64": "x64",
    "x86_64": "x64",
    "x64": "x64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv7l": "arm",
}


def runtime_identifier() -> str:
    """Platform label in the ``<os>-<arch>`` form, e.g. ``win-x64``."""
    if sys.platform.startswith("linux"):
        system = "linux"
    else:
        system = _RID_OS.get(sys.platform, sys.platform)
    machine = platform.machine().lower()
    return f"{system}-{_RID_ARCH.get(machine, machine or 'unknown')}"


def recognized_categories(flags: Iterable[str]) -> list[str]:
    categories: list[str] = []
    for flag in flags:
        name = str(flag).lower()
        if name in CATEGORIES and name not in categories:
            categories.append(name)
    return categories


@dataclass
class Session:
    computer: Computer
    categories: list[str]
    flat: bool = False

    @property
    def mode(self) -> str:
        return "flat" if self.flat else "raw"


class CommandHandler:
    """Owns the hardware session between ``init`` and ``shutdown``."""

    def __init__(
        self,
        config: DaemonConfig | None = None,
        computer_factory: ComputerFactory | None = None,
        machine_name: str | None = None,
    ) -> None:
        self.config = config or DaemonConfig()
        self._computer_factory = computer_factory or self._create_computer
        self.machine_name = machine_name or self.config.machine_name or socket.gethostname()
        self.session: Session | None = None
        self.exit_requested = False
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def initialized(self) -> bool:
        return self.session is not None

    def _create_computer(self, categories: Sequence[str]) -> Computer:
        return create_computer(categories, self.config)

    def _close_after_failure(self, computer: Computer) -> None:
        try:
            computer.close()
        except Exception:
            self.logger.warning("Failed to release hardware after init error", exc_info=True)

    def init(self, flags: Iterable[str], flat: bool = False) -> InitResponse:
        if self.session is not None:
            raise AlreadyInitializedError()

        categories = recognized_categories(flags)
        self.logger.debug("Initializing categories: %s (flat=%s)", categories, flat)
        computer: Computer | None = None
        try:
            computer = self._computer_factory(categories)
            computer.open()
        except (AccessDeniedError, PermissionError) as exc:
            if computer is not None:
                self._close_after_failure(computer)
            raise AccessDeniedError(ACCESS_DENIED_MESSAGE) from exc
        except Exception as exc:
            if computer is not None:
                self._close_after_failure(computer)
            raise HardwareError(f"Initialization failed: {exc}") from exc

        self.session = Session(computer=computer, categories=categories, flat=flat)
        return InitResponse(initialized=categories, mode=self.session.mode)

    def poll(self) -> PollResponse:
        session = self.session
        if session is None:
            raise NotInitializedError()

        try:
            hardware = session.computer.hardware
            for item in hardware:
                update_hardware(item)
            root = build_tree(hardware, self.machine_name).to_dict()
            data = flatten(root, DAEMON) if session.flat else {"Children": [root]}
        except (AccessDeniedError, PermissionError) as exc:
            raise AccessDeniedError(ACCESS_DENIED_MESSAGE) from exc
        except Exception as exc:
            raise HardwareError(f"Poll failed: {exc}") from exc

        timestamp = int(time.time() * 1000)
        return PollResponse(timestamp=timestamp, mode=session.mode, data=data)

    def shutdown(self) -> ShutdownResponse:
        self.exit_requested = True
        session, self.session = self.session, None
        if session is None:
            return ShutdownResponse(message="Not initialized, daemon exiting")
        try:
            session.computer.close()
        except Exception as exc:
            self.logger.warning("Error while closing hardware session", exc_info=True)
            return ShutdownResponse(message=f"Shutdown with errors: {exc}")
        return ShutdownResponse(message="Hardware monitoring closed, daemon exiting")

    def version(self) -> VersionResponse:
        if self.session is not None:
            name, version = self.session.computer.name, self.session.computer.version
        else:
            name, version = collaborator_info(self.config)
        return VersionResponse(
            version=__version__,
            collaborator=name,
            collaborator_version=version,
            platform=runtime_identifier(),
        )

    def dispatch(self, command: Command) -> Response:
        name = command.cmd.lower()
        try:
            if name == "init":
                return self.init(command.flags, command.flat)
            if name == "poll":
                return self.poll()
            if name == "shutdown":
                return self.shutdown()
            if name == "version":
                return self.version()
            raise UnknownCommandError(f"Unknown command: {command.cmd}")
        except LibremonError as exc:
            return error_response(exc)


def error_response(exc: LibremonError) -> ErrorResponse:
    return ErrorResponse(error=str(exc), error_code=ErrorCode(exc.code))
