"""Client for a daemon running as a child process."""

from __future__ import annotations

import json
import logging
import queue
import subprocess
import sys
import threading
import time
from typing import IO, Any, Sequence

from libremon.config import ClientConfig
from libremon.errors import (
    ClientError,
    CommandTimeoutError,
    DaemonError,
    DaemonExitedError,
    ResponseFormatError,
    TransportError,
)
from libremon.flatten import CLIENT, Flattener
from libremon.schema import validate_response

_EOF = object()


class HardwareMonitorClient:
    """Spawn the daemon once and exchange one command at a time with it.

    Responses arrive through a reader thread so a hung daemon surfaces as
    :class:`CommandTimeoutError` instead of blocking the caller. A response
    that arrives after its command timed out is counted as owed and skipped
    when the next command reads its own reply.
    """

    def __init__(
        self, config: ClientConfig | None = None, command: Sequence[str] | None = None
    ) -> None:
        self.config = config or ClientConfig()
        self.command = list(command) if command else self._default_command()
        self._process: subprocess.Popen[str] | None = None
        self._lines: queue.Queue[Any] = queue.Queue()
        self._pending = 0
        self._lock = threading.Lock()
        self._flattener = Flattener(CLIENT)
        self.logger = logging.getLogger(self.__class__.__name__)

    def _default_command(self) -> list[str]:
        if self.config.executable:
            return [self.config.executable, "--daemon"]
        return [sys.executable, "-m", "libremon", "--daemon"]

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> None:
        if self.running:
            return
        self.logger.debug("Starting daemon: %s", " ".join(self.command))
        try:
            self._process = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                bufsize=1,
            )
        except OSError as exc:
            raise TransportError(f"Failed to start daemon: {exc}") from exc

        self._lines = queue.Queue()
        self._pending = 0
        threading.Thread(
            target=self._read_stdout,
            args=(self._process.stdout, self._lines),
            name="libremon-stdout",
            daemon=True,
        ).start()
        threading.Thread(
            target=self._read_stderr,
            args=(self._process.stderr,),
            name="libremon-stderr",
            daemon=True,
        ).start()

        time.sleep(self.config.start_delay_ms / 1000)
        returncode = self._process.poll()
        if returncode is not None:
            self._process = None
            raise DaemonExitedError(f"Daemon exited during startup with code {returncode}")

    @staticmethod
    def _read_stdout(stream: IO[str], lines: queue.Queue[Any]) -> None:
        try:
            for line in stream:
                lines.put(line)
        finally:
            lines.put(_EOF)

    def _read_stderr(self, stream: IO[str]) -> None:
        for line in stream:
            self.logger.debug("daemon: %s", line.rstrip())

    def _read_response(self, cmd: Any, timeout_ms: int) -> str:
        """Next line answering ``cmd``, after skipping replies owed to timed-out commands."""
        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            try:
                line = self._lines.get(timeout=max(deadline - time.monotonic(), 0))
            except queue.Empty:
                self._pending += 1
                raise CommandTimeoutError(
                    f"Command '{cmd}' timed out after {timeout_ms} ms"
                ) from None
            if line is _EOF:
                self._lines.put(_EOF)
                self._pending = 0
                raise DaemonExitedError("Daemon exited before responding")
            if self._pending == 0:
                return line
            self._pending -= 1
            self.logger.debug("Discarding stale response: %s", line.rstrip())

    def send_command(self, command: dict[str, Any], timeout_ms: int | None = None) -> dict[str, Any]:
        timeout_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        with self._lock:
            process = self._process
            if process is None or process.stdin is None:
                raise TransportError("Daemon is not running")
            try:
                process.stdin.write(json.dumps(command, separators=(",", ":")) + "\n")
                process.stdin.flush()
            except (OSError, ValueError) as exc:
                raise TransportError(f"Failed to send command: {exc}") from exc
            line = self._read_response(command.get("cmd"), timeout_ms)

        try:
            response = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ResponseFormatError(f"Invalid response from daemon: {line.strip()!r}") from exc
        if not isinstance(response, dict):
            raise ResponseFormatError(f"Invalid response from daemon: {line.strip()!r}")

        schema_errors = validate_response(response)
        if schema_errors:
            self.logger.warning("Response schema validation failed with %s errors.", len(schema_errors))
            self.logger.debug("Schema errors: %s", schema_errors)

        if not response.get("success"):
            raise DaemonError(
                response.get("error") or "Unknown daemon error", response.get("errorCode")
            )
        return response

    def init(self, flat: bool = False, **categories: bool) -> dict[str, Any]:
        flags = [name for name, enabled in categories.items() if enabled]
        return self.send_command({"cmd": "init", "flags": flags, "flat": flat})

    def poll(self, flatten: bool = False) -> dict[str, Any]:
        response = self.send_command({"cmd": "poll"})
        if flatten and response.get("mode") == "raw":
            root = response["data"]["Children"][0]
            response["data"] = self._flattener.flatten(root)
        return response

    def version(self) -> dict[str, Any]:
        return self.send_command({"cmd": "version"})

    def shutdown(self) -> dict[str, Any] | None:
        """Ask the daemon to exit, then make sure the process is gone."""
        if self._process is None:
            return None
        response = None
        try:
            response = self.send_command({"cmd": "shutdown"})
        except ClientError as exc:
            self.logger.warning("Shutdown command failed: %s", exc)
        time.sleep(self.config.shutdown_grace_ms / 1000)
        self._close_process()
        return response

    def _close_process(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        if process.stdin is not None:
            try:
                process.stdin.close()
            except OSError:
                self.logger.debug("Daemon stdin already closed.")
        try:
            process.wait(timeout=max(self.config.timeout_ms, 1000) / 1000)
        except subprocess.TimeoutExpired:
            self.logger.warning("Daemon did not exit, killing it.")
            process.kill()
            process.wait()

    def kill(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        process.kill()
        process.wait()

    def __enter__(self) -> HardwareMonitorClient:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
