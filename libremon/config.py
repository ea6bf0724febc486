from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import configparser

BACKENDS = ("auto", "psutil", "lhm")


@dataclass(frozen=True)
class DaemonConfig:
    backend: str = "auto"
    machine_name: str | None = None
    lhm_dll_path: str | None = None
    lhm_version: str = "0.9.3"
    dimm_detection: bool = False
    physical_network_only: bool = False


@dataclass(frozen=True)
class ClientConfig:
    executable: str | None = None
    timeout_ms: int = 5000
    start_delay_ms: int = 100
    shutdown_grace_ms: int = 100


@dataclass(frozen=True)
class AppConfig:
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    client: ClientConfig = field(default_factory=ClientConfig)


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def load_config(path: str | Path | None = None) -> AppConfig:
    if path is None:
        return AppConfig()

    parser = configparser.ConfigParser()
    read_files = parser.read(path)
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    backend = parser.get("daemon", "backend", fallback="auto").strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend '{backend}', expected one of {', '.join(BACKENDS)}")

    # Use parser.get with fallback to handle missing sections
    daemon = DaemonConfig(
        backend=backend,
        machine_name=_get_optional(parser.get("daemon", "machine_name", fallback=None)),
        lhm_dll_path=_get_optional(parser.get("daemon", "lhm_dll_path", fallback=None)),
        lhm_version=parser.get("daemon", "lhm_version", fallback="0.9.3"),
        dimm_detection=parser.getboolean("daemon", "dimm_detection", fallback=False),
        physical_network_only=parser.getboolean(
            "daemon", "physical_network_only", fallback=False
        ),
    )

    client = ClientConfig(
        executable=_get_optional(parser.get("client", "executable", fallback=None)),
        timeout_ms=parser.getint("client", "timeout_ms", fallback=5000),
        start_delay_ms=parser.getint("client", "start_delay_ms", fallback=100),
        shutdown_grace_ms=parser.getint("client", "shutdown_grace_ms", fallback=100),
    )

    return AppConfig(daemon=daemon, client=client)
