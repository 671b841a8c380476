"""Command-line arguments: an optional URI to open, or the daemon command and its flags."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from dataclasses import dataclass

PROG = "choosme"
VERSION = "0.1.0"
DESCRIPTION = "Choose to open a link between a given list of web browsers"
DAEMON_COMMAND = "daemon"

_MAX_INDEX = 2**64 - 1


@dataclass(frozen=True)
class DaemonCommand:
    """The daemon command: run the daemon, or send it one request when a flag is given."""

    set_default: int | None = None
    unset_default: bool = False
    status: bool = False
    kill: bool = False
    set_default_next: bool = False
    waybar: bool = False

    @property
    def runs_daemon(self) -> bool:
        """True when no flag asks for a request, so the daemon itself is to run."""
        return not (
            self.status
            or self.unset_default
            or self.set_default is not None
            or self.kill
            or self.set_default_next
            or self.waybar
        )


@dataclass(frozen=True)
class Cli:
    """Parsed command line."""

    command: DaemonCommand | None = None
    uri: str | None = None


def _index(text: str) -> int:
    try:
        value = int(text, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid index: {text!r}") from None
    if not 0 <= value <= _MAX_INDEX:
        raise argparse.ArgumentTypeError(f"index out of range: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Parser for the top-level command line (the daemon command has its own)."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description=DESCRIPTION,
        epilog=f"commands:\n  {DAEMON_COMMAND}    run the daemon or send it a request",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-V", "--version", action="version", version=f"{PROG} {VERSION}")
    parser.add_argument("uri", nargs="?", default=None, help="URI to open")
    return parser


def _build_daemon_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=f"{PROG} {DAEMON_COMMAND}",
        description="Run the daemon, or send a request to the running daemon.",
    )
    parser.add_argument(
        "--set-default",
        type=_index,
        default=None,
        metavar="INDEX",
        help="Set the default application index on fallback",
    )
    parser.add_argument(
        "--unset-default",
        action="store_true",
        help="Unset the default application on fallback, will open the UI instead",
    )
    parser.add_argument("--status", action="store_true", help="Print status of the daemon")
    parser.add_argument("--kill", action="store_true", help="Kill the daemon")
    parser.add_argument(
        "--set-default-next",
        action="store_true",
        help=(
            "Set the next default application index. If no default application is set yet, "
            "the first application becomes the default; after the last one, the default is unset"
        ),
    )
    parser.add_argument("--waybar", action="store_true", help="Waybar helper")
    return parser


def parse(argv: Sequence[str] | None = None) -> Cli:
    """Parse the arguments (without the program name); exits on invalid input."""
    args = list(sys.argv[1:] if argv is None else argv)
    if args and args[0] == DAEMON_COMMAND:
        namespace = _build_daemon_parser().parse_args(args[1:])
        return Cli(command=DaemonCommand(**vars(namespace)))
    namespace = build_parser().parse_args(args)
    return Cli(uri=namespace.uri)