from __future__ import annotations

import logging
import sys
from typing import TextIO

from libremon.errors import ErrorCode, LibremonError
from libremon.protocol import ErrorResponse, Response, encode_response, parse_command
from libremon.session import CommandHandler, error_response


class Daemon:
    """Read-evaluate-respond loop over newline-delimited JSON."""

    def __init__(
        self,
        handler: CommandHandler,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.handler = handler
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.logger = logging.getLogger(self.__class__.__name__)

    def handle_line(self, line: str) -> Response | None:
        """Answer one input line; blank lines get no response."""
        if not line.strip():
            return None
        try:
            return self.handler.dispatch(parse_command(line))
        except LibremonError as exc:
            return error_response(exc)
        except Exception as exc:
            self.logger.exception("Unexpected error while handling command")
            return ErrorResponse(
                error=f"Internal error: {exc}", error_code=ErrorCode.INTERNAL_ERROR
            )

    def write(self, response: Response) -> None:
        self.stdout.write(encode_response(response))
        self.stdout.flush()

    def run(self) -> int:
        self.logger.debug("Daemon started, waiting for commands.")
        for line in iter(self.stdin.readline, ""):
            response = self.handle_line(line)
            if response is None:
                continue
            self.write(response)
            if self.handler.exit_requested:
                self.logger.debug("Shutdown requested, leaving command loop.")
                return 0

        self.logger.debug("Input closed.")
        if self.handler.initialized:
            self.handler.shutdown()
        return 0


def configure_stdio() -> None:
    """Protocol streams are UTF-8 regardless of the console code page."""
    for stream in (sys.stdin, sys.stdout):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(encoding="utf-8")
