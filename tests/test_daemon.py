"""Tests for the daemon command loop and its wire format."""
from __future__ import annotations

import io
import json
from unittest.mock import patch

import pytest

from libremon.daemon import Daemon
from libremon.errors import InvalidJsonError, ProtocolError
from libremon.protocol import (
    ErrorResponse,
    PollResponse,
    ShutdownResponse,
    encode_response,
    parse_command,
)
from libremon.schema import validate_response
from libremon.session import CommandHandler

from conftest import StubComputer


def run_daemon(lines, handler):
    stdin = io.StringIO("".join(line + "\n" for line in lines))
    stdout = io.StringIO()
    exit_code = Daemon(handler, stdin=stdin, stdout=stdout).run()
    responses = [json.loads(line) for line in stdout.getvalue().splitlines()]
    return exit_code, responses, stdout.getvalue()


@pytest.fixture
def handler(computer_factory):
    return CommandHandler(computer_factory=computer_factory, machine_name="WORKSTATION")


class TestParseCommand:
    def test_init_command(self):
        command = parse_command('{"cmd":"init","flags":["cpu","gpu"],"flat":true}')
        assert command.cmd == "init"
        assert command.flags == ("cpu", "gpu")
        assert command.flat is True

    def test_invalid_json(self):
        with pytest.raises(InvalidJsonError, match="Invalid JSON"):
            parse_command("{not json")

    @pytest.mark.parametrize("line", ['{"flags":[]}', '{"cmd":""}', '{"cmd":5}', "[1,2]", '"poll"'])
    def test_missing_cmd(self, line):
        with pytest.raises(ProtocolError, match="Missing 'cmd' field"):
            parse_command(line)

    def test_wrong_flag_types(self):
        with pytest.raises(ProtocolError) as excinfo:
            parse_command('{"cmd":"init","flags":"cpu"}')
        assert excinfo.type is ProtocolError


class TestEncodeResponse:
    def test_compact_single_line(self):
        line = encode_response(ShutdownResponse(message="Not initialized, daemon exiting"))
        assert line == '{"success":true,"message":"Not initialized, daemon exiting"}\n'

    def test_error_key_order(self):
        line = encode_response(ErrorResponse(error="Missing 'cmd' field", error_code="INVALID_COMMAND"))
        assert line == '{"success":false,"error":"Missing \'cmd\' field","errorCode":"INVALID_COMMAND"}\n'

    def test_poll_without_data(self):
        payload = PollResponse(timestamp=1, mode="raw").to_dict()
        assert payload == {"success": True, "timestamp": 1, "mode": "raw"}

    def test_non_ascii_is_kept(self):
        line = encode_response(PollResponse(timestamp=1, data={"Value": "45.0 °C"}))
        assert "°C" in line


class TestDaemonLoop:
    def test_init_poll_end_to_end(self, handler):
        exit_code, responses, _ = run_daemon(
            ['{"cmd":"init","flags":["cpu"],"flat":false}', '{"cmd":"poll"}'], handler
        )

        assert exit_code == 0
        init, poll = responses
        assert init == {"success": True, "initialized": ["cpu"], "mode": "raw"}
        assert poll["success"] is True
        assert poll["mode"] == "raw"
        assert isinstance(poll["timestamp"], int)
        assert poll["data"]["Children"][0]["Children"][0]["Text"] == "WORKSTATION"
        sensor = poll["data"]["Children"][0]["Children"][0]["Children"][0]["Children"][0]["Children"][0]
        assert sensor["Value"] == "42.0 %"
        assert sensor["Type"] == "Load"

    def test_responses_match_schema(self, handler):
        _, responses, _ = run_daemon(
            [
                '{"cmd":"version"}',
                '{"cmd":"init","flags":["cpu"],"flat":true}',
                '{"cmd":"poll"}',
                '{"cmd":"nope"}',
                '{"cmd":"shutdown"}',
            ],
            handler,
        )
        assert len(responses) == 5
        for response in responses:
            assert validate_response(response) == []

    def test_one_line_per_response(self, handler):
        _, responses, raw = run_daemon(['{"cmd":"version"}', "", "   ", '{"cmd":"version"}'], handler)
        assert len(responses) == 2
        assert raw.count("\n") == 2

    def test_errors_do_not_stop_the_loop(self, handler):
        _, responses, _ = run_daemon(
            ["{broken", '{"flags":[]}', '{"cmd":"dance"}', '{"cmd":"poll"}', '{"cmd":"version"}'],
            handler,
        )
        assert [response.get("errorCode") for response in responses] == [
            "INVALID_JSON",
            "INVALID_COMMAND",
            "UNKNOWN_COMMAND",
            "NOT_INITIALIZED",
            None,
        ]
        assert responses[2]["error"] == "Unknown command: dance"

    def test_double_init(self, handler):
        _, responses, _ = run_daemon(
            ['{"cmd":"init","flags":["cpu"]}', '{"cmd":"init","flags":["gpu"]}'], handler
        )
        assert responses[1] == {
            "success": False,
            "error": "Already initialized",
            "errorCode": "ALREADY_INITIALIZED",
        }

    def test_shutdown_ends_loop(self, handler, stub_computer):
        _, responses, _ = run_daemon(
            ['{"cmd":"init","flags":["cpu"]}', '{"cmd":"shutdown"}', '{"cmd":"version"}'], handler
        )
        assert len(responses) == 2
        assert responses[1]["message"] == "Hardware monitoring closed, daemon exiting"
        assert stub_computer.closed

    def test_shutdown_without_init(self, handler):
        _, responses, _ = run_daemon(['{"cmd":"SHUTDOWN"}'], handler)
        assert responses == [{"success": True, "message": "Not initialized, daemon exiting"}]

    def test_eof_releases_session(self, handler, stub_computer):
        exit_code, responses, _ = run_daemon(['{"cmd":"init","flags":["cpu"]}'], handler)
        assert exit_code == 0
        assert len(responses) == 1
        assert stub_computer.closed

    def test_unexpected_error_is_internal_error(self, handler):
        with patch.object(handler, "dispatch", side_effect=RuntimeError("boom")):
            _, responses, _ = run_daemon(['{"cmd":"version"}', '{"cmd":"version"}'], handler)
        assert responses == [
            {"success": False, "error": "Internal error: boom", "errorCode": "INTERNAL_ERROR"},
            {"success": False, "error": "Internal error: boom", "errorCode": "INTERNAL_ERROR"},
        ]

    def test_access_denied_on_init(self):
        computer = StubComputer(open_error=PermissionError("no admin"))
        handler = CommandHandler(computer_factory=lambda categories: computer, machine_name="H")
        _, responses, _ = run_daemon(['{"cmd":"init","flags":["cpu"]}'], handler)
        assert responses == [
            {
                "success": False,
                "error": "Access denied. Administrator privileges required.",
                "errorCode": "ACCESS_DENIED",
            }
        ]
