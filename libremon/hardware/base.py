from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import Protocol, Sequence

from libremon.sensors import HardwareType, SensorType


class SensorHandle(Protocol):
    identifier: str
    name: str
    sensor_type: SensorType | str
    value: float | None
    min: float | None
    max: float | None


class HardwareHandle(Protocol):
    """Read and refresh view of one collaborator hardware node."""

    identifier: str
    name: str
    hardware_type: HardwareType

    @property
    def sensors(self) -> Sequence[SensorHandle]: ...

    @property
    def sub_hardware(self) -> Sequence[HardwareHandle]: ...

    def update(self) -> None: ...


@dataclass(frozen=True)
class ComputerOptions:
    dimm_detection: bool = False
    physical_network_only: bool = False


class Computer(Protocol):
    name: str
    version: str

    @property
    def hardware(self) -> Sequence[HardwareHandle]: ...

    def open(self) -> None: ...

    def close(self) -> None: ...


class Sensor:
    """A sensor that remembers the lowest and highest reading it has seen."""

    def __init__(self, identifier: str, name: str, sensor_type: SensorType) -> None:
        self.identifier = identifier
        self.name = name
        self.sensor_type = sensor_type
        self.value: float | None = None
        self.min: float | None = None
        self.max: float | None = None

    def set_value(self, value: float | None) -> None:
        self.value = value
        if value is None:
            return
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)

    def __repr__(self) -> str:
        return f"Sensor({self.identifier!r}, {self.name!r}, value={self.value!r})"


class Hardware(ABC):
    hardware_type = HardwareType.UNKNOWN

    def __init__(self, identifier: str, name: str) -> None:
        self.identifier = identifier
        self.name = name
        self._sensors: dict[tuple[SensorType, str], Sensor] = {}
        self._type_counts: dict[SensorType, int] = {}
        self._sub_hardware: list[Hardware] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def sensors(self) -> list[Sensor]:
        return list(self._sensors.values())

    @property
    def sub_hardware(self) -> list[Hardware]:
        return list(self._sub_hardware)

    def add_sub_hardware(self, hardware: Hardware) -> None:
        self._sub_hardware.append(hardware)

    def reading(self, sensor_type: SensorType, name: str, value: float | None) -> Sensor:
        """Record a reading, creating the sensor the first time it is reported."""
        key = (sensor_type, name)
        sensor = self._sensors.get(key)
        if sensor is None:
            index = self._type_counts.get(sensor_type, 0)
            self._type_counts[sensor_type] = index + 1
            identifier = f"{self.identifier}/{sensor_type.value.lower()}/{index}"
            sensor = Sensor(identifier, name, sensor_type)
            self._sensors[key] = sensor
        sensor.set_value(value)
        return sensor

    @abstractmethod
    def update(self) -> None:
        """Refresh every sensor reading of this node."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.identifier!r}, {self.name!r})"
