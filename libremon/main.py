from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from libremon.config import AppConfig, load_config
from libremon.daemon import Daemon, configure_stdio
from libremon.logging_utils import configure_logging, resolve_log_level
from libremon.protocol import Command, ErrorResponse, encode_response
from libremon.session import CommandHandler

DEMO_CATEGORIES = ("cpu", "gpu", "motherboard", "memory", "storage", "network")

logger = logging.getLogger("libremon")


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="libremon",
        description="Hardware sensor monitor (demo poll, JSON line daemon, version)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--daemon",
        action="store_true",
        help="Read JSON commands from stdin and answer on stdout",
    )
    mode.add_argument(
        "-v",
        "--version",
        action="store_true",
        help="Print version information as JSON and exit",
    )
    parser.add_argument(
        "--config",
        help="Path to CFG configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (--verbose) or trace logging (--verbose --verbose)",
    )
    return parser


def run_daemon(config: AppConfig) -> int:
    configure_stdio()
    handler = CommandHandler(config.daemon)
    return Daemon(handler).run()


def print_version(config: AppConfig) -> int:
    response = CommandHandler(config.daemon).version()
    sys.stdout.write(encode_response(response))
    return 0


def run_demo(config: AppConfig, pretty_print: bool) -> int:
    handler = CommandHandler(config.daemon)
    print("libremon demo mode")
    print("==================")
    print()

    print("Initializing hardware monitoring... ", end="", flush=True)
    response = handler.dispatch(Command(cmd="init", flags=DEMO_CATEGORIES, flat=False))
    if isinstance(response, ErrorResponse):
        print("FAILED")
        print(f"Error: {response.error}", file=sys.stderr)
        return 1
    print("OK")

    print("Collecting sensor data... ", end="", flush=True)
    response = handler.dispatch(Command(cmd="poll"))
    if isinstance(response, ErrorResponse):
        print("FAILED")
        print(f"Error: {response.error}", file=sys.stderr)
        handler.shutdown()
        return 1
    print("OK")
    print()

    print("Sensor Data:")
    print("============")
    if pretty_print:
        print(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
    else:
        sys.stdout.write(encode_response(response))
    print()
    handler.shutdown()

    print()
    print("Press Enter to exit...")
    try:
        input()
    except EOFError:
        pass
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)

    try:
        config = load_config(args.config)
        if args.daemon:
            return run_daemon(config)
        if args.version:
            return print_version(config)
        return run_demo(config, level <= logging.DEBUG)
    except KeyboardInterrupt:
        logger.info("libremon stopped.")
        return 0
    except Exception as exc:
        logger.debug("Fatal error", exc_info=True)
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
