"""Messages of the daemon's D-Bus interface and a session-bus client for it."""

from __future__ import annotations

import logging
import math
import re
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

log = logging.getLogger(__name__)

DEST = "juif.fabien.choosme"
OBJECT_PATH = "/"
DEFAULT_TIMEOUT = 2.0

OPEN_METHOD = "Open"
OPEN_METHOD_INPUTS = ("uri",)
OPEN_METHOD_OUTPUTS = ("status",)

STATUS_METHOD = "Status"
STATUS_METHOD_INPUTS: tuple[str, ...] = ()
STATUS_METHOD_OUTPUTS = ("applications",)

KILL_METHOD = "Kill"
KILL_METHOD_INPUTS: tuple[str, ...] = ()
KILL_METHOD_OUTPUTS: tuple[str, ...] = ()

SET_DEFAULT_METHOD = "SetDefault"
SET_DEFAULT_METHOD_INPUTS = ("index",)
SET_DEFAULT_METHOD_OUTPUTS: tuple[str, ...] = ()


class BusError(Exception):
    """A call on the bus failed or returned something unreadable."""


class StatusParseError(ValueError):
    """The status string of an Open reply is not known."""

    def __init__(self, value: str) -> None:
        self.value = value
        message = "Empty string provided" if not value else f"Unknown status: {value}"
        super().__init__(message)


class OpenStatus(Enum):
    """Outcome of an Open call."""

    FALLBACKED = "fallbacked"  # no application launched, the chooser was shown
    LAUNCHED = "launched"

    @classmethod
    def parse(cls, value: str) -> OpenStatus:
        """Parse a wire status string, raising StatusParseError when unknown."""
        for member in cls:
            if member.value == value:
                return member
        raise StatusParseError(value)


def _single(payload: Sequence[Any], what: str) -> Any:
    if not isinstance(payload, (tuple, list)) or len(payload) != 1:
        raise ValueError(f"{what}: expected a single-element tuple, got {payload!r}")
    return payload[0]


@dataclass(frozen=True)
class OpenRequest:
    uri: str

    def to_dbus(self) -> tuple[str]:
        return (self.uri,)

    @classmethod
    def from_dbus(cls, payload: Sequence[Any]) -> OpenRequest:
        uri = _single(payload, "Open input")
        if not isinstance(uri, str):
            raise ValueError(f"Open input: expected a string, got {uri!r}")
        return cls(uri)


@dataclass(frozen=True)
class OpenResult:
    status: OpenStatus

    def to_dbus(self) -> tuple[str]:
        return (self.status.value,)

    @classmethod
    def from_dbus(cls, payload: Sequence[Any]) -> OpenResult:
        return cls(OpenStatus.parse(_single(payload, "Open output")))


@dataclass(frozen=True)
class StatusApplication:
    id: str
    name: str
    icon: str
    is_default: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StatusResult:
    applications: list[StatusApplication] = field(default_factory=list)

    def to_dbus(self) -> tuple[list[tuple[str, str, str, bool]]]:
        return ([(app.id, app.name, app.icon, app.is_default) for app in self.applications],)

    @classmethod
    def from_dbus(cls, payload: Sequence[Any]) -> StatusResult:
        rows = _single(payload, "Status output")
        applications = []
        for row in rows:
            app_id, name, icon, is_default = row
            applications.append(StatusApplication(app_id, name, icon, bool(is_default)))
        return cls(applications)

    def to_dict(self) -> dict[str, Any]:
        return {"applications": [app.to_dict() for app in self.applications]}


@dataclass(frozen=True)
class SetDefaultRequest:
    index: int

    def to_dbus(self) -> tuple[int]:
        return (self.index,)

    @classmethod
    def from_dbus(cls, payload: Sequence[Any]) -> SetDefaultRequest:
        index = _single(payload, "SetDefault input")
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValueError(f"SetDefault input: expected an integer, got {index!r}")
        return cls(index)


_NUMBER_KEYWORDS = {
    "byte", "int16", "uint16", "int32", "uint32", "int64", "uint64", "double", "handle",
    "objectpath", "signature",
}
_NUMBER = re.compile(r"[-+]?(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")
_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SIMPLE_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v",
    "\\": "\\", "'": "'", '"': '"',
}


class _GVariantReader:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def fail(self, message: str) -> ValueError:
        return ValueError(f"{message} at offset {self.pos} in {self.text!r}")

    def skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        self.skip_space()
        if self.peek() != char:
            raise self.fail(f"expected {char!r}")
        self.pos += 1

    def document(self) -> Any:
        value = self.value()
        self.skip_space()
        if self.pos != len(self.text):
            raise self.fail("trailing text")
        return value

    def value(self) -> Any:
        self.skip_space()
        char = self.peek()
        if not char:
            raise self.fail("unexpected end")
        if char == "(":
            return tuple(self.sequence("(", ")"))
        if char == "[":
            return self.sequence("[", "]")
        if char == "{":
            return self.dictionary()
        if char == "<":
            self.pos += 1
            inner = self.value()
            self.expect(">")
            return inner
        if char in "'\"":
            return self.string()
        if char == "@":
            while self.pos < len(self.text) and not self.text[self.pos].isspace():
                self.pos += 1
            return self.value()
        if char.isalpha() or char == "_":
            return self.word()
        return self.number()

    def sequence(self, opening: str, closing: str) -> list[Any]:
        self.expect(opening)
        items: list[Any] = []
        self.skip_space()
        if self.peek() == closing:
            self.pos += 1
            return items
        while True:
            items.append(self.value())
            self.skip_space()
            char = self.peek()
            if char == ",":
                self.pos += 1
                self.skip_space()
                if self.peek() == closing:
                    self.pos += 1
                    return items
            elif char == closing:
                self.pos += 1
                return items
            else:
                raise self.fail(f"expected ',' or {closing!r}")

    def dictionary(self) -> dict[Any, Any]:
        self.expect("{")
        result: dict[Any, Any] = {}
        self.skip_space()
        if self.peek() == "}":
            self.pos += 1
            return result
        while True:
            key = self.value()
            self.expect(":")
            result[key] = self.value()
            self.skip_space()
            char = self.peek()
            self.pos += 1
            if char == "}":
                return result
            if char != ",":
                raise self.fail("expected ',' or '}'")

    def string(self) -> str:
        quote = self.text[self.pos]
        self.pos += 1
        out: list[str] = []
        while True:
            if self.pos >= len(self.text):
                raise self.fail("unterminated string")
            char = self.text[self.pos]
            self.pos += 1
            if char == quote:
                return "".join(out)
            if char != "\\":
                out.append(char)
                continue
            code = self.peek()
            self.pos += 1
            if code in _SIMPLE_ESCAPES:
                out.append(_SIMPLE_ESCAPES[code])
            elif code in ("u", "U"):
                width = 4 if code == "u" else 8
                digits = self.text[self.pos:self.pos + width]
                if len(digits) != width or not all(d in "0123456789abcdefABCDEF" for d in digits):
                    raise self.fail("bad unicode escape")
                out.append(chr(int(digits, 16)))
                self.pos += width
            else:
                raise self.fail(f"unknown escape \\{code}")

    def word(self) -> Any:
        match = _WORD.match(self.text, self.pos)
        assert match is not None
        word = match.group()
        self.pos = match.end()
        if word == "true":
            return True
        if word == "false":
            return False
        if word == "nothing":
            return None
        if word == "just":
            return self.value()
        if word in ("inf", "nan"):
            return float(word)
        if word == "b" and self.peek() in "'\"" and self.peek():
            return self.string().encode()
        if word in _NUMBER_KEYWORDS:
            return self.value()
        raise self.fail(f"unknown word {word!r}")

    def number(self) -> int | float:
        match = _NUMBER.match(self.text, self.pos)
        if match is None:
            raise self.fail("unexpected character")
        self.pos = match.end()
        literal = match.group()
        if "x" in literal or "X" in literal:
            return int(literal, 16)
        if any(mark in literal for mark in ".eE"):
            return float(literal)
        return int(literal)


def parse_gvariant(text: str) -> Any:
    """Parse GVariant text (as printed by gdbus) into Python values.

    Tuples become tuples, arrays lists, dictionaries dicts; type annotations are dropped.
    Raises ValueError on malformed text.
    """
    return _GVariantReader(text).document()


def _quote_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


Runner = Callable[[list[str]], str]


class DBusClient:
    """Calls the daemon's methods on the session bus through the gdbus tool."""

    def __init__(
        self,
        runner: Runner | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        command: str = "gdbus",
    ) -> None:
        self._timeout = timeout
        self._command = command
        self._runner = runner or self._run_subprocess

    def _run_subprocess(self, argv: list[str]) -> str:
        try:
            completed = subprocess.run(
                argv, capture_output=True, text=True, timeout=self._timeout + 5, check=False
            )
        except OSError as exc:
            raise BusError(f"cannot run {argv[0]}: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise BusError(f"call timed out: {' '.join(argv)}") from exc
        if completed.returncode != 0:
            raise BusError(completed.stderr.strip() or f"{argv[0]} exited with {completed.returncode}")
        return completed.stdout

    def _call(self, method: str, *args: str) -> tuple[Any, ...]:
        argv = [
            self._command, "call", "--session",
            "--dest", DEST,
            "--object-path", OBJECT_PATH,
            "--method", f"{DEST}.{method}",
            "--timeout", str(max(1, math.ceil(self._timeout))),
            *args,
        ]
        reply = self._runner(argv).strip() or "()"
        try:
            value = parse_gvariant(reply)
        except ValueError as exc:
            raise BusError(f"unreadable reply to {method}: {exc}") from exc
        if not isinstance(value, tuple):
            raise BusError(f"reply to {method} is not a tuple: {reply!r}")
        return value

    def open(self, uri: str) -> OpenResult:
        log.debug("sending open command with uri: %s", uri)
        (arg,) = OpenRequest(uri).to_dbus()
        reply = self._call(OPEN_METHOD, _quote_string(arg))
        try:
            return OpenResult.from_dbus(reply)
        except ValueError as exc:
            raise BusError(str(exc)) from exc

    def status(self) -> StatusResult:
        log.debug("sending status command")
        reply = self._call(STATUS_METHOD)
        try:
            return StatusResult.from_dbus(reply)
        except (ValueError, TypeError) as exc:
            raise BusError(f"unreadable status reply: {exc}") from exc

    def kill(self) -> None:
        log.debug("sending kill command")
        self._call(KILL_METHOD)

    def set_default(self, index: int) -> None:
        log.debug("sending set_default command with index: %s", index)
        (arg,) = SetDefaultRequest(index).to_dbus()
        self._call(SET_DEFAULT_METHOD, f"int64 {arg}")