"""Flat views of the raw sensor tree.

Three consumers read the raw tree in flattened form and each expects its own
shape, so a single :class:`Flattener` is driven by a :class:`FlattenPolicy`:

``REFERENCE``
    In-process binding. ``{type: [{group: {sensor: {...}, name, id}, name, id}]}``
    with ``-`` slugs and ``data = {value, unit, min?, max?}``.
``CLIENT``
    Client-side helper. Same layout with ``_`` slugs, the sensor ``type`` kept,
    ``hdd``/``nic`` renamed to ``storage``/``network`` and ``hardwareId`` carried.
``DAEMON``
    Daemon flat mode. ``{"hardware": {type: [{name, id, sensorGroups: {...}}]}}``
    where sensors carry ``SensorId`` and ``data = {value, type, min?, max?}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
import math
import re
from typing import Any, Callable, Mapping

from libremon.errors import FlattenError

_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
GPU_ICONS = {"nvidia", "ati", "intel"}


def slugify(text: str, separator: str = "-") -> str:
    text = str(text).lower()
    text = re.sub(r"\s+", separator, text)
    text = re.sub(r"[^\w\-]+", "", text, flags=re.ASCII)
    text = re.sub(r"--+", separator, text)
    return text.strip("-")


def cli_slugify(text: str) -> str:
    """Hyphen slug that also drops ``#()`` and maps path separators to ``-``."""
    text = str(text).lower()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"[#()]", "", text)
    text = re.sub(r"[/\\_]", "-", text)
    text = re.sub(r"-{2,}", "-", text)
    return text.strip("-")


def parse_value(text: str | None) -> tuple[float | None, str]:
    """Split ``"45,5 °C"`` into ``(45.5, "°C")``; the unit may contain spaces."""
    if not isinstance(text, str) or not text.strip():
        return None, ""
    number, _, unit = text.strip().partition(" ")
    match = _NUMBER_PREFIX.match(number.replace(",", "."))
    if match is None:
        return None, unit
    value = float(match.group(0))
    return (value if math.isfinite(value) else None), unit


def parse_value_strict(text: str | None) -> tuple[float, str]:
    """Whole-token parse used by the daemon; failures read as ``(0.0, "")``."""
    if not isinstance(text, str) or not text.strip():
        return 0.0, ""
    number, _, unit = text.strip().partition(" ")
    try:
        value = float(number.replace(",", "."))
    except ValueError:
        return 0.0, ""
    if not math.isfinite(value):
        return 0.0, ""
    return value, unit


@dataclass(frozen=True)
class FlattenPolicy:
    name: str
    slug: Callable[[str], str]
    nested: bool = False
    first_wins: bool = True
    keep_type: bool = False
    carry_hardware_id: bool = False
    type_aliases: Mapping[str, str] = field(default_factory=dict)


REFERENCE = FlattenPolicy(name="reference", slug=slugify)
CLIENT = FlattenPolicy(
    name="client",
    slug=partial(slugify, separator="_"),
    keep_type=True,
    carry_hardware_id=True,
    type_aliases={"hdd": "storage", "nic": "network"},
)
DAEMON = FlattenPolicy(name="daemon", slug=cli_slugify, nested=True, first_wins=False)

POLICIES = {policy.name: policy for policy in (REFERENCE, CLIENT, DAEMON)}


def _hardware_nodes(root: Any) -> list[dict[str, Any]]:
    children = root.get("Children") if isinstance(root, dict) else None
    if not isinstance(children, list) or not children:
        raise FlattenError("Expected a raw sensor tree with a 'Children' list")
    machine = children[0]
    hardware = machine.get("Children") if isinstance(machine, dict) else None
    if not isinstance(hardware, list):
        raise FlattenError("Expected a machine node with a 'Children' list")
    return hardware


class Flattener:
    def __init__(self, policy: FlattenPolicy = REFERENCE) -> None:
        self.policy = policy

    def hardware_type(self, image_url: str | None) -> str:
        """Type slug from an icon path such as ``images_icon/nvidia.png``."""
        if not image_url or "/" not in image_url:
            return "unknown"
        stem = image_url.split("/")[1].split(".")[0]
        if stem in GPU_ICONS:
            stem = "gpu"
        stem = self.policy.type_aliases.get(stem, stem)
        return self.policy.slug(stem)

    def flatten(self, root: dict[str, Any]) -> dict[str, Any]:
        out: dict[str, list[dict[str, Any]]] = {}
        for node in _hardware_nodes(root):
            children = node.get("Children")
            if children is None:
                if self.policy.nested:
                    continue
                children = []
            hw_type = self.hardware_type(node.get("ImageURL"))
            # Mainboard sensors sit one level deeper, under the SuperIO chip.
            if hw_type == "mainboard" and children:
                first = children[0]
                if isinstance(first, dict) and isinstance(first.get("Children"), list):
                    children = first["Children"]
            if self.policy.nested:
                entry = self._nested_hardware(node, children)
            else:
                entry = self._hardware(node, children)
            out.setdefault(hw_type, []).append(entry)
        if self.policy.nested:
            return {"hardware": out}
        return out

    def _store(self, target: dict[str, Any], key: str, value: Any) -> None:
        if self.policy.first_wins and key in target:
            return
        target[key] = value

    def _hardware(self, node: dict[str, Any], groups: list[dict[str, Any]]) -> dict[str, Any]:
        entry: dict[str, Any] = {}
        for group in groups:
            sensors: dict[str, Any] = {}
            for sensor in group.get("Children") or []:
                self._store(sensors, self.policy.slug(sensor.get("Text", "")), self._sensor(sensor))
            sensors["name"] = group.get("Text")
            sensors["id"] = group.get("id")
            self._store(entry, self.policy.slug(group.get("Text", "")), sensors)
        entry["name"] = node.get("Text")
        entry["id"] = node.get("id")
        if self.policy.carry_hardware_id and node.get("HardwareId"):
            entry["hardwareId"] = node["HardwareId"]
        return entry

    def _sensor(self, sensor: dict[str, Any]) -> dict[str, Any]:
        known = {"Children", "ImageURL", "Text", "SensorId", "Type", "id", "Value", "Min", "Max"}
        obj = {key: value for key, value in sensor.items() if key not in known}
        if sensor.get("Children"):
            obj["Children"] = sensor["Children"]
        if sensor.get("Text"):
            obj["name"] = sensor["Text"]

        value, unit = parse_value(sensor.get("Value"))
        data: dict[str, Any] = {"value": value, "unit": unit}
        if sensor.get("Max"):
            data["max"] = parse_value(sensor["Max"])[0]
        if sensor.get("Min"):
            data["min"] = parse_value(sensor["Min"])[0]
        obj["data"] = data

        if sensor.get("SensorId"):
            obj["sensorId"] = sensor["SensorId"]
        if self.policy.keep_type and sensor.get("Type"):
            obj["type"] = sensor["Type"]
        return obj

    def _nested_hardware(
        self, node: dict[str, Any], groups: list[dict[str, Any]]
    ) -> dict[str, Any]:
        sensor_groups: dict[str, Any] = {}
        for group in groups:
            if not isinstance(group, dict) or group.get("Children") is None or not group.get("Text"):
                continue
            sensors: dict[str, Any] = {}
            for sensor in group["Children"]:
                value, unit = parse_value_strict(sensor.get("Value"))
                data: dict[str, Any] = {"value": value, "type": unit}
                if sensor.get("Min"):
                    data["min"] = parse_value_strict(sensor["Min"])[0]
                if sensor.get("Max"):
                    data["max"] = parse_value_strict(sensor["Max"])[0]
                self._store(
                    sensors,
                    self.policy.slug(sensor.get("Text", "")),
                    {
                        "name": sensor.get("Text", ""),
                        "SensorId": sensor.get("SensorId") or "",
                        "data": data,
                    },
                )
            self._store(
                sensor_groups,
                self.policy.slug(group["Text"]),
                {"name": group["Text"], "id": group.get("id") or "", "sensors": sensors},
            )
        return {"name": node.get("Text", ""), "id": node.get("id", ""), "sensorGroups": sensor_groups}


def flatten(root: dict[str, Any], policy: FlattenPolicy = REFERENCE) -> dict[str, Any]:
    return Flattener(policy).flatten(root)
