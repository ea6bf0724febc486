"""Hardware collaborators producing the sensor tree."""

from __future__ import annotations

import logging
import sys
from typing import Iterable

from libremon.config import DaemonConfig
from libremon.hardware.base import (
    Computer,
    ComputerOptions,
    Hardware,
    HardwareHandle,
    Sensor,
    SensorHandle,
)
from libremon.hardware.lhm_backend import LhmComputer, find_library
from libremon.hardware.psutil_backend import PsutilComputer

logger = logging.getLogger(__name__)

__all__ = [
    "Computer",
    "ComputerOptions",
    "Hardware",
    "HardwareHandle",
    "LhmComputer",
    "PsutilComputer",
    "Sensor",
    "SensorHandle",
    "collaborator_info",
    "create_computer",
    "resolve_backend",
]


def resolve_backend(config: DaemonConfig) -> str:
    if config.backend != "auto":
        return config.backend
    if sys.platform == "win32" and find_library(config.lhm_dll_path) is not None:
        return "lhm"
    return "psutil"


def create_computer(
    categories: Iterable[str],
    config: DaemonConfig,
    options: ComputerOptions | None = None,
) -> Computer:
    if options is None:
        options = ComputerOptions(
            dimm_detection=config.dimm_detection,
            physical_network_only=config.physical_network_only,
        )
    backend = resolve_backend(config)
    logger.debug("Using %s hardware backend.", backend)
    if backend == "lhm":
        return LhmComputer(
            categories,
            options,
            dll_path=config.lhm_dll_path,
            version=config.lhm_version,
        )
    return PsutilComputer(categories, options)


def collaborator_info(config: DaemonConfig) -> tuple[str, str]:
    """Name and version of the collaborator reported by the version command."""
    if resolve_backend(config) == "lhm":
        return LhmComputer.name, config.lhm_version
    computer = PsutilComputer(())
    return computer.name, computer.version
