"""Raw sensor tree in the layout of the LibreHardwareMonitor web endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Iterable

from libremon.formatting import format_value
from libremon.hardware.base import HardwareHandle, SensorHandle
from libremon.logging_utils import TRACE_LEVEL
from libremon.sensors import (
    computer_image_url,
    group_label,
    image_url,
    sensor_rank,
    sensor_type_name,
)

logger = logging.getLogger(__name__)


@dataclass
class RawNode:
    id: str
    text: str
    image_url: str | None = None
    value: str | None = None
    min: str | None = None
    max: str | None = None
    sensor_id: str | None = None
    type: str | None = None
    children: list[RawNode] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        """Wire form; absent fields are omitted and key order is fixed."""
        data: dict[str, Any] = {"id": self.id, "Text": self.text}
        optional = (
            ("ImageURL", self.image_url),
            ("Value", self.value),
            ("Min", self.min),
            ("Max", self.max),
            ("SensorId", self.sensor_id),
            ("Type", self.type),
        )
        for key, value in optional:
            if value is not None:
                data[key] = value
        if self.children is not None:
            data["Children"] = [child.to_dict() for child in self.children]
        return data


def update_hardware(hardware: HardwareHandle) -> None:
    """Refresh a hardware node, then its sub-hardware (pre-order)."""
    logger.log(
        TRACE_LEVEL, "Updating hardware: %s (%s)", hardware.name, hardware.hardware_type.value
    )
    hardware.update()
    for sub_hardware in hardware.sub_hardware:
        update_hardware(sub_hardware)


def _sensor_node(sensor: SensorHandle) -> RawNode:
    return RawNode(
        id=sensor.identifier,
        text=sensor.name,
        value=format_value(sensor.value, sensor.sensor_type),
        min=format_value(sensor.min, sensor.sensor_type),
        max=format_value(sensor.max, sensor.sensor_type),
        sensor_id=sensor.identifier,
        type=sensor_type_name(sensor.sensor_type),
    )


def build_sensor_groups(hardware: HardwareHandle) -> list[RawNode]:
    present = [sensor for sensor in hardware.sensors if sensor.value is not None]
    # Stable sort keeps collaborator order inside one kind.
    present.sort(key=lambda sensor: sensor_rank(sensor.sensor_type))

    groups: dict[str, RawNode] = {}
    for sensor in present:
        label = group_label(sensor.sensor_type)
        group = groups.get(label)
        if group is None:
            kind = sensor_type_name(sensor.sensor_type).lower()
            group = RawNode(id=f"{hardware.identifier}/{kind}", text=label, children=[])
            groups[label] = group
        group.children.append(_sensor_node(sensor))  # type: ignore[union-attr]
    return list(groups.values())


def build_hardware_nodes(hardware_list: Iterable[HardwareHandle]) -> list[RawNode]:
    nodes: list[RawNode] = []
    for hardware in hardware_list:
        children = build_sensor_groups(hardware)
        children.extend(build_hardware_nodes(hardware.sub_hardware))
        nodes.append(
            RawNode(
                id=hardware.identifier,
                text=hardware.name,
                image_url=image_url(hardware.hardware_type),
                children=children,
            )
        )
    return nodes


def build_tree(hardware_list: Iterable[HardwareHandle], machine_name: str) -> RawNode:
    """Build the root ``Sensor`` node wrapping the machine node and its hardware."""
    machine = RawNode(
        id="1",
        text=machine_name,
        image_url=computer_image_url(),
        children=build_hardware_nodes(hardware_list),
    )
    return RawNode(id="0", text="Sensor", image_url="", children=[machine])
