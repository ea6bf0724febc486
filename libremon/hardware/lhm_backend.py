"""LibreHardwareMonitorLib loaded through pythonnet."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from libremon.errors import AccessDeniedError, HardwareError
from libremon.filters import is_virtual_nic
from libremon.hardware.base import ComputerOptions
from libremon.sensors import HardwareType, SensorType

DLL_NAME = "LibreHardwareMonitorLib.dll"

# Computer property toggled by each init category.
CATEGORY_FLAGS = {
    "cpu": "IsCpuEnabled",
    "gpu": "IsGpuEnabled",
    "memory": "IsMemoryEnabled",
    "motherboard": "IsMotherboardEnabled",
    "storage": "IsStorageEnabled",
    "network": "IsNetworkEnabled",
    "psu": "IsPsuEnabled",
    "controller": "IsControllerEnabled",
    "battery": "IsBatteryEnabled",
}


def find_library(configured: str | None) -> Path | None:
    candidates = []
    if configured:
        candidates.append(Path(configured))
    candidates.extend(
        [
            Path.cwd() / DLL_NAME,
            Path.cwd() / "libs" / DLL_NAME,
            Path(r"C:\Program Files\LibreHardwareMonitor") / DLL_NAME,
        ]
    )
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _load_computer_class(dll_path: Path) -> Any:
    import clr  # provided by pythonnet

    clr.AddReference(str(dll_path))
    from LibreHardwareMonitor.Hardware import Computer  # type: ignore[import-not-found]

    return Computer


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def _is_access_denied(exc: BaseException) -> bool:
    return type(exc).__name__ == "UnauthorizedAccessException"


def _is_virtual_adapter(hardware: LhmHardware) -> bool:
    if hardware.hardware_type is not HardwareType.NETWORK:
        return False
    return is_virtual_nic({"id": hardware.identifier, "Text": hardware.name})


class LhmSensor:
    def __init__(self, sensor: Any) -> None:
        self._sensor = sensor
        self.identifier = str(sensor.Identifier)
        self.name = str(sensor.Name)
        self.sensor_type = SensorType.from_name(str(sensor.SensorType))

    @property
    def value(self) -> float | None:
        return _optional_float(self._sensor.Value)

    @property
    def min(self) -> float | None:
        return _optional_float(self._sensor.Min)

    @property
    def max(self) -> float | None:
        return _optional_float(self._sensor.Max)


class LhmHardware:
    def __init__(self, hardware: Any) -> None:
        self._hardware = hardware
        self.identifier = str(hardware.Identifier)
        self.name = str(hardware.Name)
        self.hardware_type = HardwareType.from_name(str(hardware.HardwareType))

    @property
    def sensors(self) -> list[LhmSensor]:
        return [LhmSensor(sensor) for sensor in self._hardware.Sensors]

    @property
    def sub_hardware(self) -> list[LhmHardware]:
        return [LhmHardware(item) for item in self._hardware.SubHardware]

    def update(self) -> None:
        try:
            self._hardware.Update()
        except Exception as exc:
            if _is_access_denied(exc):
                raise AccessDeniedError(f"Access denied while reading {self.name}") from exc
            raise


class LhmComputer:
    name = "librehardwaremonitor"

    def __init__(
        self,
        categories: Iterable[str],
        options: ComputerOptions | None = None,
        dll_path: str | None = None,
        version: str = "0.9.3",
    ) -> None:
        self.categories = frozenset(categories)
        self.options = options or ComputerOptions()
        self.dll_path = dll_path
        self.version = version
        self._computer: Any = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def hardware(self) -> list[LhmHardware]:
        if self._computer is None:
            return []
        hardware = [LhmHardware(item) for item in self._computer.Hardware]
        if self.options.physical_network_only:
            hardware = [item for item in hardware if not _is_virtual_adapter(item)]
        return hardware

    def open(self) -> None:
        dll_path = find_library(self.dll_path)
        if dll_path is None:
            raise HardwareError(f"{DLL_NAME} not found")
        computer_class = _load_computer_class(dll_path)
        computer = computer_class()
        for category, flag in CATEGORY_FLAGS.items():
            setattr(computer, flag, category in self.categories)
        if self.options.dimm_detection and hasattr(computer, "IsDimmDetectionEnabled"):
            computer.IsDimmDetectionEnabled = True
        self.logger.debug("Opening computer with categories: %s", sorted(self.categories))
        try:
            computer.Open()
        except Exception as exc:
            if _is_access_denied(exc):
                raise AccessDeniedError(
                    "Access denied. Administrator privileges required."
                ) from exc
            raise
        self._computer = computer
        hardware = self.hardware
        self.logger.debug("Hardware count after open: %s", len(hardware))
        for item in hardware:
            self.logger.debug(
                "Hardware: %s (%s) - Sensors: %s",
                item.name,
                item.hardware_type.value,
                len(item.sensors),
            )

    def close(self) -> None:
        if self._computer is not None:
            self._computer.Close()
            self._computer = None
