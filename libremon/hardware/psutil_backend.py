from __future__ import annotations

from abc import abstractmethod
import logging
from pathlib import Path
import platform
import time
from typing import Any, Iterable

import psutil

from libremon.errors import AccessDeniedError
from libremon.hardware.base import ComputerOptions, Hardware
from libremon.logging_utils import TRACE_LEVEL
from libremon.sensors import HardwareType, SensorType

GIGABYTE = 1024 ** 3

CPU_CHIPS = {"coretemp", "k10temp", "zenpower", "cpu_thermal", "cpu-thermal"}
GPU_CHIPS = {
    "amdgpu": HardwareType.GPU_AMD,
    "radeon": HardwareType.GPU_AMD,
    "nouveau": HardwareType.GPU_NVIDIA,
    "i915": HardwareType.GPU_INTEL,
}
# Chips reported elsewhere or without a hardware node of their own.
SKIPPED_CHIPS = {"nvme", "drivetemp", "BAT0", "BAT1"}

VIRTUAL_NIC_PREFIXES = (
    "lo",
    "docker",
    "veth",
    "br-",
    "virbr",
    "vmnet",
    "vboxnet",
    "tun",
    "tap",
    "wg",
    "vEthernet",
)


def _read_file(path: Path) -> str | None:
    try:
        return path.read_text().strip() or None
    except OSError:
        return None


def _cpu_name() -> str:
    cpuinfo = _read_file(Path("/proc/cpuinfo"))
    if cpuinfo:
        for line in cpuinfo.splitlines():
            if line.lower().startswith("model name") and ":" in line:
                return line.split(":", 1)[1].strip()
    return platform.processor() or "CPU"


def _board_name() -> str:
    return _read_file(Path("/sys/class/dmi/id/board_name")) or "Motherboard"


def _temperatures() -> dict[str, list[Any]]:
    if not hasattr(psutil, "sensors_temperatures"):
        return {}
    try:
        return psutil.sensors_temperatures(fahrenheit=False) or {}
    except OSError:
        return {}


def _fans() -> dict[str, list[Any]]:
    if not hasattr(psutil, "sensors_fans"):
        return {}
    try:
        return psutil.sensors_fans() or {}
    except OSError:
        return {}


def _label(entry: Any, prefix: str, index: int) -> str:
    return entry.label or f"{prefix} #{index + 1}"


class PsutilHardware(Hardware):
    def update(self) -> None:
        try:
            self.refresh()
        except (psutil.AccessDenied, PermissionError) as exc:
            raise AccessDeniedError(
                f"Access denied while reading {self.name}: {exc}"
            ) from exc

    @abstractmethod
    def refresh(self) -> None:
        """Read the current values from psutil."""


class CpuHardware(PsutilHardware):
    hardware_type = HardwareType.CPU

    def __init__(self, index: int = 0) -> None:
        super().__init__(f"/cpu/{index}", _cpu_name())

    def refresh(self) -> None:
        per_core = psutil.cpu_percent(interval=None, percpu=True)
        for index, load in enumerate(per_core):
            self.reading(SensorType.LOAD, f"CPU Core #{index + 1}", float(load))
        if per_core:
            self.reading(SensorType.LOAD, "CPU Total", sum(per_core) / len(per_core))

        try:
            freq = psutil.cpu_freq()
        except (OSError, NotImplementedError):
            self.logger.debug("Failed to read CPU frequency.")
            freq = None
        if freq is not None and freq.current:
            self.reading(SensorType.CLOCK, "CPU Cores", float(freq.current))

        for chip, entries in _temperatures().items():
            if chip not in CPU_CHIPS:
                continue
            for index, entry in enumerate(entries):
                self.reading(
                    SensorType.TEMPERATURE, _label(entry, "CPU", index), float(entry.current)
                )


class MemoryHardware(PsutilHardware):
    hardware_type = HardwareType.MEMORY

    def __init__(self) -> None:
        super().__init__("/ram", "Generic Memory")

    def refresh(self) -> None:
        vm = psutil.virtual_memory()
        swap = psutil.swap_memory()
        self.reading(SensorType.LOAD, "Memory", float(vm.percent))
        self.reading(SensorType.LOAD, "Virtual Memory", float(swap.percent))
        self.reading(SensorType.DATA, "Memory Used", (vm.total - vm.available) / GIGABYTE)
        self.reading(SensorType.DATA, "Memory Available", vm.available / GIGABYTE)
        self.reading(SensorType.DATA, "Virtual Memory Used", swap.used / GIGABYTE)
        self.reading(SensorType.DATA, "Virtual Memory Available", swap.free / GIGABYTE)


class _CounterRates:
    """Turns monotonically increasing byte counters into per-second rates."""

    def __init__(self) -> None:
        self._last: dict[str, float] = {}
        self._last_time: float | None = None

    def rates(self, counters: dict[str, float]) -> dict[str, float | None]:
        now = time.monotonic()
        elapsed = None if self._last_time is None else now - self._last_time
        result: dict[str, float | None] = {}
        for key, value in counters.items():
            previous = self._last.get(key)
            if previous is None or not elapsed or elapsed <= 0:
                result[key] = None
            else:
                result[key] = max(value - previous, 0.0) / elapsed
        self._last = dict(counters)
        self._last_time = now
        return result


class StorageHardware(PsutilHardware):
    hardware_type = HardwareType.STORAGE

    def __init__(self, index: int, disk: str) -> None:
        super().__init__(f"/hdd/{index}", disk)
        self.disk = disk
        self._rates = _CounterRates()

    def refresh(self) -> None:
        counters = (psutil.disk_io_counters(perdisk=True) or {}).get(self.disk)
        if counters is None:
            self.logger.debug("No I/O counters for disk %s.", self.disk)
            return
        rates = self._rates.rates(
            {"read": float(counters.read_bytes), "write": float(counters.write_bytes)}
        )
        self.reading(SensorType.DATA, "Data Read", counters.read_bytes / GIGABYTE)
        self.reading(SensorType.DATA, "Data Written", counters.write_bytes / GIGABYTE)
        self.reading(SensorType.THROUGHPUT, "Read Rate", rates["read"])
        self.reading(SensorType.THROUGHPUT, "Write Rate", rates["write"])


class NetworkHardware(PsutilHardware):
    hardware_type = HardwareType.NETWORK

    def __init__(self, nic: str) -> None:
        super().__init__(f"/nic/{nic}", nic)
        self.nic = nic
        self._rates = _CounterRates()

    def refresh(self) -> None:
        counters = (psutil.net_io_counters(pernic=True) or {}).get(self.nic)
        if counters is None:
            self.logger.debug("No I/O counters for interface %s.", self.nic)
            return
        rates = self._rates.rates(
            {"up": float(counters.bytes_sent), "down": float(counters.bytes_recv)}
        )
        self.reading(SensorType.DATA, "Data Uploaded", counters.bytes_sent / GIGABYTE)
        self.reading(SensorType.DATA, "Data Downloaded", counters.bytes_recv / GIGABYTE)
        self.reading(SensorType.THROUGHPUT, "Upload Speed", rates["up"])
        self.reading(SensorType.THROUGHPUT, "Download Speed", rates["down"])

        # net_if_stats() can fail with OSError in containers without proper network support
        try:
            stats = psutil.net_if_stats().get(self.nic)
        except OSError:
            stats = None
        up, down = rates["up"], rates["down"]
        if stats is not None and stats.speed and up is not None and down is not None:
            link_bps = (stats.speed * 1_000_000) / 8
            utilization = max(up, down) / link_bps * 100
            self.reading(
                SensorType.LOAD, "Network Utilization", min(max(utilization, 0.0), 100.0)
            )


class BatteryHardware(PsutilHardware):
    hardware_type = HardwareType.BATTERY

    def __init__(self) -> None:
        super().__init__("/battery/0", "Battery")

    def refresh(self) -> None:
        battery = psutil.sensors_battery()
        if battery is None:
            self.logger.debug("No battery data available from psutil.")
            return
        self.reading(SensorType.LEVEL, "Charge Level", float(battery.percent))
        # Negative secsleft means unknown or unlimited.
        remaining = battery.secsleft if isinstance(battery.secsleft, int) else -1
        self.reading(
            SensorType.TIME_SPAN, "Remaining Time", float(remaining) if remaining >= 0 else None
        )


class SuperIoHardware(PsutilHardware):
    hardware_type = HardwareType.SUPER_IO

    def __init__(self, chip: str) -> None:
        super().__init__(f"/lpc/{chip}", chip)
        self.chip = chip

    def refresh(self) -> None:
        for index, entry in enumerate(_fans().get(self.chip, [])):
            self.reading(SensorType.FAN, _label(entry, "Fan", index), float(entry.current))
        for index, entry in enumerate(_temperatures().get(self.chip, [])):
            self.reading(
                SensorType.TEMPERATURE,
                _label(entry, "Temperature", index),
                float(entry.current),
            )


class MotherboardHardware(PsutilHardware):
    hardware_type = HardwareType.MOTHERBOARD

    def __init__(self, chips: Iterable[str]) -> None:
        super().__init__("/motherboard", _board_name())
        for chip in chips:
            self.add_sub_hardware(SuperIoHardware(chip))

    def refresh(self) -> None:
        # Readings live on the SuperIO sub-hardware.
        return


class GpuHardware(PsutilHardware):
    def __init__(self, index: int, chip: str, hardware_type: HardwareType) -> None:
        super().__init__(f"/gpu/{index}", chip)
        self.chip = chip
        self.hardware_type = hardware_type

    def refresh(self) -> None:
        for index, entry in enumerate(_temperatures().get(self.chip, [])):
            self.reading(
                SensorType.TEMPERATURE, _label(entry, "GPU", index), float(entry.current)
            )


class PsutilComputer:
    """Hardware collaborator backed by psutil counters and sensors."""

    name = "psutil"

    def __init__(
        self, categories: Iterable[str], options: ComputerOptions | None = None
    ) -> None:
        self.categories = frozenset(categories)
        self.options = options or ComputerOptions()
        self.version = psutil.__version__
        self._hardware: list[Hardware] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def hardware(self) -> list[Hardware]:
        return list(self._hardware)

    def open(self) -> None:
        try:
            hardware = self._discover()
            for item in hardware:
                # Prime rate counters so the first poll has a baseline.
                item.update()
        except (psutil.AccessDenied, PermissionError) as exc:
            raise AccessDeniedError(
                "Access denied. Administrator privileges required."
            ) from exc
        self._hardware = hardware
        self.logger.debug("Hardware count after open: %s", len(hardware))
        for item in hardware:
            self.logger.debug(
                "Hardware: %s (%s) - Sensors: %s",
                item.name,
                item.hardware_type.value,
                len(item.sensors),
            )

    def close(self) -> None:
        self._hardware = []

    def _discover(self) -> list[Hardware]:
        hardware: list[Hardware] = []
        temperatures = _temperatures()
        if "motherboard" in self.categories:
            chips = [
                chip
                for chip in list(_fans()) + list(temperatures)
                if chip not in CPU_CHIPS and chip not in GPU_CHIPS and chip not in SKIPPED_CHIPS
            ]
            hardware.append(MotherboardHardware(dict.fromkeys(chips)))
        if "cpu" in self.categories:
            hardware.append(CpuHardware())
        if "memory" in self.categories:
            if self.options.dimm_detection:
                self.logger.debug("DIMM detection is not available with psutil.")
            hardware.append(MemoryHardware())
        if "gpu" in self.categories:
            gpu_chips = [chip for chip in temperatures if chip in GPU_CHIPS]
            for index, chip in enumerate(gpu_chips):
                hardware.append(GpuHardware(index, chip, GPU_CHIPS[chip]))
        if "storage" in self.categories:
            disks = sorted(psutil.disk_io_counters(perdisk=True) or {})
            for index, disk in enumerate(disks):
                hardware.append(StorageHardware(index, disk))
        if "network" in self.categories:
            for nic in sorted(psutil.net_io_counters(pernic=True) or {}):
                if self.options.physical_network_only and nic.startswith(VIRTUAL_NIC_PREFIXES):
                    self.logger.log(TRACE_LEVEL, "Skipping virtual interface %s", nic)
                    continue
                hardware.append(NetworkHardware(nic))
        if "battery" in self.categories and hasattr(psutil, "sensors_battery"):
            if psutil.sensors_battery() is not None:
                hardware.append(BatteryHardware())
        for category in ("psu", "controller"):
            if category in self.categories:
                self.logger.debug("No psutil source for category %s.", category)
        return hardware
