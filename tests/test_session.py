"""Tests for the command handler and its hardware session."""
from __future__ import annotations

from unittest.mock import patch

import pytest

from libremon import __version__
from libremon.errors import (
    AccessDeniedError,
    AlreadyInitializedError,
    ErrorCode,
    HardwareError,
    NotInitializedError,
)
from libremon.protocol import Command, ErrorResponse
from libremon.session import CommandHandler, recognized_categories, runtime_identifier

from conftest import StubComputer


@pytest.fixture
def handler(computer_factory):
    return CommandHandler(computer_factory=computer_factory, machine_name="WORKSTATION")


class TestInit:
    def test_recognized_categories(self, handler, computer_factory):
        response = handler.init(["CPU", "bogus", "gpu", "cpu"], flat=False)
        assert response.to_dict() == {"success": True, "initialized": ["cpu", "gpu"], "mode": "raw"}
        assert computer_factory.calls == [["cpu", "gpu"]]
        assert handler.initialized

    def test_flat_mode(self, handler):
        assert handler.init(["cpu"], flat=True).mode == "flat"

    def test_second_init_is_rejected(self, handler, stub_computer):
        handler.init(["cpu"])
        with pytest.raises(AlreadyInitializedError):
            handler.init(["gpu"])
        assert handler.session.categories == ["cpu"]
        assert handler.session.computer is stub_computer

    def test_access_denied(self):
        computer = StubComputer(open_error=PermissionError("denied"))
        handler = CommandHandler(computer_factory=lambda categories: computer, machine_name="H")
        with pytest.raises(AccessDeniedError, match="Administrator privileges required"):
            handler.init(["cpu"])
        assert not handler.initialized
        assert computer.closed

    def test_other_failure_is_hardware_error(self):
        computer = StubComputer(open_error=RuntimeError("driver missing"))
        handler = CommandHandler(computer_factory=lambda categories: computer, machine_name="H")
        with pytest.raises(HardwareError, match="Initialization failed: driver missing"):
            handler.init(["cpu"])
        assert not handler.initialized
        assert computer.closed

    def test_recognized_categories_helper(self):
        assert recognized_categories(["Battery", "PSU", "controller", "fan"]) == [
            "battery",
            "psu",
            "controller",
        ]


class TestPoll:
    def test_poll_before_init(self, handler):
        with pytest.raises(NotInitializedError):
            handler.poll()

    def test_raw_poll(self, handler, cpu_hardware):
        handler.init(["cpu"])
        with patch("libremon.session.time.time", return_value=1700000000.5):
            response = handler.poll()

        assert response.timestamp == 1700000000500
        assert response.mode == "raw"
        root = response.data["Children"][0]
        assert root["Text"] == "Sensor"
        assert root["Children"][0]["Text"] == "WORKSTATION"
        assert cpu_hardware.update_calls == 1

    def test_flat_poll(self, handler):
        handler.init(["cpu"], flat=True)
        data = handler.poll().data
        sensor = data["hardware"]["cpu"][0]["sensorGroups"]["load"]["sensors"]["cpu-total"]
        assert sensor["data"] == {"value": 42.0, "type": "%", "min": 42.0, "max": 42.0}

    def test_failed_poll_keeps_session(self, handler, cpu_hardware):
        handler.init(["cpu"])
        with patch.object(cpu_hardware, "update", side_effect=OSError("device gone")):
            with pytest.raises(HardwareError, match="Poll failed: device gone"):
                handler.poll()
        assert handler.initialized

    def test_access_denied_during_poll(self, handler, cpu_hardware):
        handler.init(["cpu"])
        with patch.object(cpu_hardware, "update", side_effect=AccessDeniedError("nope")):
            with pytest.raises(AccessDeniedError):
                handler.poll()


class TestShutdown:
    def test_shutdown_closes_session(self, handler, stub_computer):
        handler.init(["cpu"])
        response = handler.shutdown()
        assert response.message == "Hardware monitoring closed, daemon exiting"
        assert stub_computer.closed
        assert not handler.initialized
        assert handler.exit_requested

    def test_shutdown_twice_is_tolerated(self, handler):
        handler.init(["cpu"])
        handler.shutdown()
        response = handler.shutdown()
        assert response.to_dict() == {"success": True, "message": "Not initialized, daemon exiting"}

    def test_close_error_still_succeeds(self):
        computer = StubComputer(close_error=RuntimeError("stuck"))
        handler = CommandHandler(computer_factory=lambda categories: computer, machine_name="H")
        handler.init(["cpu"])
        response = handler.shutdown()
        assert response.to_dict()["success"] is True
        assert response.message == "Shutdown with errors: stuck"
        assert not handler.initialized


class TestVersion:
    def test_version_with_live_session(self, handler):
        handler.init(["cpu"])
        with patch("libremon.session.runtime_identifier", return_value="linux-x64"):
            payload = handler.version().to_dict()
        assert payload == {
            "success": True,
            "version": __version__,
            "stub": "0.0.1",
            "platform": "linux-x64",
        }

    def test_version_without_session_reports_backend(self, handler):
        with patch("libremon.session.collaborator_info", return_value=("psutil", "5.9.8")):
            payload = handler.version().to_dict()
        assert payload["psutil"] == "5.9.8"

    @pytest.mark.parametrize(
        "platform_name,machine,expected",
        [
            ("win32", "AMD64", "win-x64"),
            ("linux", "x86_64", "linux-x64"),
            ("darwin", "arm64", "osx-arm64"),
            ("linux", "aarch64", "linux-arm64"),
        ],
    )
    def test_runtime_identifier(self, platform_name, machine, expected):
        with patch("libremon.session.sys.platform", platform_name), patch(
            "libremon.session.platform.machine", return_value=machine
        ):
            assert runtime_identifier() == expected


class TestDispatch:
    def test_command_names_are_case_insensitive(self, handler):
        response = handler.dispatch(Command(cmd="INIT", flags=("cpu",)))
        assert response.to_dict()["initialized"] == ["cpu"]

    def test_unknown_command(self, handler):
        response = handler.dispatch(Command(cmd="reboot"))
        assert isinstance(response, ErrorResponse)
        assert response.to_dict() == {
            "success": False,
            "error": "Unknown command: reboot",
            "errorCode": "UNKNOWN_COMMAND",
        }

    def test_state_errors_become_responses(self, handler):
        poll = handler.dispatch(Command(cmd="poll")).to_dict()
        assert poll["errorCode"] == ErrorCode.NOT_INITIALIZED.value
        assert poll["error"] == "Not initialized. Send 'init' command first."

        handler.dispatch(Command(cmd="init", flags=("cpu",)))
        again = handler.dispatch(Command(cmd="init", flags=("cpu",))).to_dict()
        assert again["errorCode"] == "ALREADY_INITIALIZED"
