"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import pytest

from libremon.hardware.base import Hardware
from libremon.sensors import HardwareType, SensorType


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "windows: mark test as Windows-specific"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (spawns the daemon)"
    )


class StubHardware(Hardware):
    """Hardware whose readings are set by the test."""

    def __init__(self, identifier, name, hardware_type=HardwareType.CPU, readings=()):
        super().__init__(identifier, name)
        self.hardware_type = hardware_type
        self.readings = list(readings)
        self.update_calls = 0
        self.events = None

    def update(self):
        self.update_calls += 1
        if self.events is not None:
            self.events.append(self.identifier)
        for sensor_type, name, value in self.readings:
            self.reading(sensor_type, name, value)


class StubComputer:
    name = "stub"
    version = "0.0.1"

    def __init__(self, hardware=(), open_error=None, close_error=None):
        self._hardware = list(hardware)
        self.open_error = open_error
        self.close_error = close_error
        self.opened = False
        self.closed = False

    @property
    def hardware(self):
        return list(self._hardware)

    def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    def close(self):
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def cpu_hardware():
    """One CPU with a single Load sensor at 42.0."""
    return StubHardware(
        "/intelcpu/0",
        "Intel Core i7",
        HardwareType.CPU,
        readings=[(SensorType.LOAD, "CPU Total", 42.0)],
    )


@pytest.fixture
def stub_computer(cpu_hardware):
    return StubComputer([cpu_hardware])


@pytest.fixture
def computer_factory(stub_computer):
    """Factory recording the categories it was asked for."""
    calls = []

    def factory(categories):
        calls.append(list(categories))
        return stub_computer

    factory.calls = calls
    return factory


@pytest.fixture
def raw_root():
    """A raw tree root as produced by the tree builder."""
    return {
        "id": "0",
        "Text": "Sensor",
        "ImageURL": "",
        "Children": [
            {
                "id": "1",
                "Text": "WORKSTATION",
                "ImageURL": "images_icon/computer.png",
                "Children": [
                    {
                        "id": "/amdcpu/0",
                        "Text": "AMD Ryzen 7 5800X",
                        "ImageURL": "images_icon/cpu.png",
                        "Children": [
                            {
                                "id": "/amdcpu/0/clock",
                                "Text": "Clocks",
                                "Children": [
                                    {
                                        "id": "/amdcpu/0/clock/1",
                                        "Text": "Core #1",
                                        "Value": "4550.0 MHz",
                                        "Min": "3600.0 MHz",
                                        "Max": "4850.0 MHz",
                                        "SensorId": "/amdcpu/0/clock/1",
                                        "Type": "Clock",
                                    }
                                ],
                            },
                            {
                                "id": "/amdcpu/0/temperature",
                                "Text": "Temperatures",
                                "Children": [
                                    {
                                        "id": "/amdcpu/0/temperature/2",
                                        "Text": "Core (Tctl/Tdie)",
                                        "Value": "45.5 °C",
                                        "Min": "38.0 °C",
                                        "Max": "71.3 °C",
                                        "SensorId": "/amdcpu/0/temperature/2",
                                        "Type": "Temperature",
                                    }
                                ],
                            },
                        ],
                    },
                    {
                        "id": "/nvidiagpu/0",
                        "Text": "NVIDIA GeForce RTX 3080",
                        "ImageURL": "images_icon/nvidia.png",
                        "Children": [
                            {
                                "id": "/nvidiagpu/0/load",
                                "Text": "Load",
                                "Children": [
                                    {
                                        "id": "/nvidiagpu/0/load/0",
                                        "Text": "GPU Core",
                                        "Value": "12.0 %",
                                        "Min": "0.0 %",
                                        "Max": "99.0 %",
                                        "SensorId": "/nvidiagpu/0/load/0",
                                        "Type": "Load",
                                    }
                                ],
                            }
                        ],
                    },
                    {
                        "id": "/motherboard",
                        "Text": "ASUS ROG STRIX B550-F",
                        "ImageURL": "images_icon/mainboard.png",
                        "Children": [
                            {
                                "id": "/lpc/nct6798d",
                                "Text": "Nuvoton NCT6798D",
                                "ImageURL": "images_icon/chip.png",
                                "Children": [
                                    {
                                        "id": "/lpc/nct6798d/fan",
                                        "Text": "Fans",
                                        "Children": [
                                            {
                                                "id": "/lpc/nct6798d/fan/1",
                                                "Text": "Fan #2",
                                                "Value": "1200 RPM",
                                                "Min": "1100 RPM",
                                                "Max": "1450 RPM",
                                                "SensorId": "/lpc/nct6798d/fan/1",
                                                "Type": "Fan",
                                            }
                                        ],
                                    }
                                ],
                            }
                        ],
                    },
                    {
                        "id": "/nic/{A1B2}",
                        "Text": "Ethernet",
                        "ImageURL": "images_icon/nic.png",
                        "Children": [],
                    },
                ],
            }
        ],
    }
