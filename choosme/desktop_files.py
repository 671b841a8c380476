"""Reading desktop entries and launching them from a background worker."""

from __future__ import annotations

import logging
import os
import queue
import shlex
import subprocess
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote, urlparse

from .config import Config

log = logging.getLogger(__name__)

_VALUE_ESCAPES = {"s": " ", "n": "\n", "t": "\t", "r": "\r", "\\": "\\"}
_URI_CODES = ("%u", "%U", "%f", "%F")


class LaunchError(Exception):
    """A desktop entry could not be started."""


class OpenerClosedError(RuntimeError):
    """The desktop file opener is not running."""


def _unescape(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for char in chars:
        if char == "\\":
            following = next(chars, "")
            out.append(_VALUE_ESCAPES.get(following, "\\" + following))
        else:
            out.append(char)
    return "".join(out)


def _uri_to_path(uri: str) -> str:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return unquote(parsed.path)
    return uri


@dataclass(frozen=True)
class DesktopEntry:
    """The launch-relevant part of an application's .desktop file."""

    path: Path
    name: str
    exec_line: str
    icon: str | None = None
    working_dir: str | None = None

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> DesktopEntry | None:
        """Load an application entry; None when unreadable, corrupted or not an application."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        group: str | None = None
        values: dict[str, str] = {}
        for raw in text.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("[") and line.endswith("]"):
                group = line[1:-1]
                continue
            key, sep, value = line.partition("=")
            if not sep or group is None:
                return None
            if group == "Desktop Entry":
                values.setdefault(key.strip(), _unescape(value.strip()))
        if values.get("Type") != "Application" or not values.get("Name") or not values.get("Exec"):
            return None
        return cls(
            path=path,
            name=values["Name"],
            exec_line=values["Exec"],
            icon=values.get("Icon") or None,
            working_dir=values.get("Path") or None,
        )

    @property
    def takes_multiple(self) -> bool:
        return "%U" in self.exec_line or "%F" in self.exec_line

    def _expand(self, token: str, uris: list[str]) -> str:
        out: list[str] = []
        chars = iter(token)
        for char in chars:
            if char != "%":
                out.append(char)
                continue
            code = next(chars, "")
            if code == "%":
                out.append("%")
            elif code == "u" and uris:
                out.append(uris[0])
            elif code == "f" and uris:
                out.append(_uri_to_path(uris[0]))
            elif code == "U":
                out.append(" ".join(uris))
            elif code == "F":
                out.append(" ".join(_uri_to_path(uri) for uri in uris))
            elif code == "c":
                out.append(self.name)
            elif code == "k":
                out.append(str(self.path))
            elif code == "i" and self.icon:
                out.extend(("--icon ", self.icon))
        return "".join(out)

    def command_for(self, uris: Iterable[str]) -> list[str]:
        """Command line that opens the URIs, with the Exec field codes expanded."""
        uris = list(uris)
        try:
            tokens = shlex.split(self.exec_line)
        except ValueError as exc:
            raise LaunchError(f"malformed Exec line in {self.path}: {exc}") from exc
        argv: list[str] = []
        for token in tokens:
            if token == "%U":
                argv.extend(uris)
            elif token == "%F":
                argv.extend(_uri_to_path(uri) for uri in uris)
            elif token == "%i":
                if self.icon:
                    argv.extend(("--icon", self.icon))
            else:
                expanded = self._expand(token, uris)
                if expanded or not token:
                    argv.append(expanded)
        if uris and not any(code in self.exec_line for code in _URI_CODES):
            argv.extend(uris)
        if not argv:
            raise LaunchError(f"empty command in {self.path}")
        return argv

    def launch_uris(self, uris: Iterable[str]) -> list[subprocess.Popen]:
        """Start the application for the URIs; one process per URI unless it takes several."""
        uris = list(uris)
        batches = [uris] if self.takes_multiple or len(uris) <= 1 else [[uri] for uri in uris]
        processes = []
        for batch in batches:
            argv = self.command_for(batch)
            try:
                processes.append(subprocess.Popen(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    cwd=self.working_dir,
                    start_new_session=True,
                ))
            except OSError as exc:
                raise LaunchError(f"cannot start {argv[0]}: {exc}") from exc
        return processes


@dataclass(frozen=True)
class OpenParams:
    """URIs to open and the configured id of the application to open them with."""

    uris: list[str] = field(default_factory=list)
    desktop_file_id: str = ""


def expand_home(path: str, home: str | None = None) -> Path | None:
    """Replace a leading '~/' with the home directory; None when there is no home."""
    rest = path.removeprefix("~/")
    if rest == path:
        return Path(path)
    if home is None:
        home = os.environ.get("HOME", os.environ.get("USERPROFILE"))
    if home is None:
        return None
    return Path(home) / rest


def resolve_desktop_files(config: Config, home: str | None = None) -> dict[str, DesktopEntry]:
    """Load every configured desktop file that exists and is valid, keyed by its id."""
    resolved: dict[str, DesktopEntry] = {}
    for item in config.desktop_files:
        path = expand_home(item.path, home)
        if path is None:
            log.warning("unable to resolve '~' in path: %s", item.path)
            continue
        if not path.exists():
            log.warning("desktop file not found, skipping: %s", item.path)
            continue
        entry = DesktopEntry.from_file(path)
        if entry is None:
            log.warning("unknown or corrupted desktop file '%s'", path)
            continue
        resolved[item.id] = entry
    return resolved


Launcher = Callable[[DesktopEntry, list[str]], object]

_QUIT = object()


def _default_launcher(entry: DesktopEntry, uris: list[str]) -> object:
    return entry.launch_uris(uris)


class DesktopFileOpener:
    """Background worker that resolves the configured entries and launches them on request."""

    def __init__(self, config: Config, home: str | None = None, launcher: Launcher | None = None) -> None:
        self._config = config
        self._home = home
        self._launcher = launcher or _default_launcher
        self._commands: queue.Queue[object] = queue.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> DesktopFileOpener:
        if self._thread is not None:
            raise RuntimeError("desktop file opener already started")
        self._thread = threading.Thread(target=self._serve, name="desktop-file-opener", daemon=True)
        self._thread.start()
        return self

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _serve(self) -> None:
        entries = resolve_desktop_files(self._config, self._home)
        log.debug("config is parsed and desktop files are resolved")
        while True:
            command = self._commands.get()
            if command is _QUIT:
                log.info("received command to quit desktop file opener")
                return
            assert isinstance(command, OpenParams)
            log.info("received command to open desktop file with params: %r", command)
            entry = entries.get(command.desktop_file_id)
            if entry is None:
                log.error("no desktop file found for id: %s", command.desktop_file_id)
                return
            try:
                self._launcher(entry, list(command.uris))
            except (LaunchError, OSError) as exc:
                log.error("failed to open desktop file '%s': %s", command.desktop_file_id, exc)

    def _send(self, command: object) -> None:
        if not self.running:
            raise OpenerClosedError("desktop file opener is not running")
        self._commands.put(command)

    def open(self, params: OpenParams) -> None:
        """Ask the worker to launch an entry; raises OpenerClosedError once it has stopped."""
        self._send(params)

    def quit(self) -> None:
        """Ask the worker to stop."""
        self._send(_QUIT)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker; True when it has finished."""
        if self._thread is not None:
            self._thread.join(timeout)
        return not self.running


def run_desktop_file_opener(config: Config) -> DesktopFileOpener:
    """Start a desktop file opener for the configuration."""
    return DesktopFileOpener(config).start()