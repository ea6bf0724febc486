"""Hardware and sensor kinds with the lookup tables of the web endpoint."""

from __future__ import annotations

from enum import Enum

ICON_PREFIX = "images_icon/"
ICON_SUFFIX = ".png"

CATEGORIES = (
    "cpu",
    "gpu",
    "memory",
    "motherboard",
    "storage",
    "network",
    "psu",
    "controller",
    "battery",
)


class HardwareType(Enum):
    MOTHERBOARD = "Motherboard"
    SUPER_IO = "SuperIO"
    CPU = "Cpu"
    GPU_NVIDIA = "GpuNvidia"
    GPU_AMD = "GpuAmd"
    GPU_INTEL = "GpuIntel"
    STORAGE = "Storage"
    MEMORY = "Memory"
    NETWORK = "Network"
    COOLER = "Cooler"
    EMBEDDED_CONTROLLER = "EmbeddedController"
    PSU = "Psu"
    BATTERY = "Battery"
    UNKNOWN = "Unknown"

    @classmethod
    def from_name(cls, name: str) -> HardwareType:
        for member in cls:
            if member.value.lower() == name.lower():
                return member
        return cls.UNKNOWN


class SensorType(Enum):
    # Declaration order is the group rank used by the tree builder.
    VOLTAGE = "Voltage"
    CLOCK = "Clock"
    TEMPERATURE = "Temperature"
    LOAD = "Load"
    FAN = "Fan"
    FLOW = "Flow"
    CONTROL = "Control"
    LEVEL = "Level"
    POWER = "Power"
    DATA = "Data"
    SMALL_DATA = "SmallData"
    FACTOR = "Factor"
    FREQUENCY = "Frequency"
    THROUGHPUT = "Throughput"
    TIME_SPAN = "TimeSpan"
    TIMING = "Timing"
    ENERGY = "Energy"
    NOISE = "Noise"
    CONDUCTIVITY = "Conductivity"
    HUMIDITY = "Humidity"
    CURRENT = "Current"

    @classmethod
    def from_name(cls, name: str) -> SensorType | str:
        """Map a collaborator kind name onto the enum, keeping unknown names as-is."""
        for member in cls:
            if member.value.lower() == name.lower():
                return member
        return name


_SENSOR_RANK = {member: index for index, member in enumerate(SensorType)}

HARDWARE_ICONS: dict[HardwareType, str] = {
    HardwareType.MOTHERBOARD: "mainboard",
    HardwareType.SUPER_IO: "chip",
    HardwareType.CPU: "cpu",
    HardwareType.GPU_NVIDIA: "nvidia",
    HardwareType.GPU_AMD: "ati",
    HardwareType.GPU_INTEL: "intel",
    HardwareType.STORAGE: "hdd",
    HardwareType.MEMORY: "ram",
    HardwareType.NETWORK: "nic",
    HardwareType.COOLER: "fan",
    HardwareType.EMBEDDED_CONTROLLER: "chip",
    HardwareType.PSU: "power",
    HardwareType.BATTERY: "battery",
}

# SmallData shares the "Data" label with Data.
SENSOR_GROUP_LABELS: dict[SensorType, str] = {
    SensorType.VOLTAGE: "Voltages",
    SensorType.CLOCK: "Clocks",
    SensorType.TEMPERATURE: "Temperatures",
    SensorType.LOAD: "Load",
    SensorType.FAN: "Fans",
    SensorType.FLOW: "Flow",
    SensorType.CONTROL: "Controls",
    SensorType.LEVEL: "Levels",
    SensorType.POWER: "Powers",
    SensorType.DATA: "Data",
    SensorType.SMALL_DATA: "Data",
    SensorType.FACTOR: "Factors",
    SensorType.FREQUENCY: "Frequencies",
    SensorType.THROUGHPUT: "Throughput",
}


def sensor_type_name(sensor_type: SensorType | str) -> str:
    if isinstance(sensor_type, SensorType):
        return sensor_type.value
    return str(sensor_type)


def sensor_rank(sensor_type: SensorType | str) -> int:
    return _SENSOR_RANK.get(sensor_type, len(_SENSOR_RANK))  # type: ignore[arg-type]


def group_label(sensor_type: SensorType | str) -> str:
    if isinstance(sensor_type, SensorType):
        return SENSOR_GROUP_LABELS.get(sensor_type, sensor_type.value)
    return str(sensor_type)


def image_url(hardware_type: HardwareType) -> str:
    icon = HARDWARE_ICONS.get(hardware_type, "computer")
    return f"{ICON_PREFIX}{icon}{ICON_SUFFIX}"


def computer_image_url() -> str:
    return f"{ICON_PREFIX}computer{ICON_SUFFIX}"
