"""Entry point: send a request to the daemon, open a URI, or show the chooser."""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

from .bus import BusError, DBusClient, StatusApplication, StatusResult
from .cli import Cli, DaemonCommand, parse
from .config import APPLICATION_NAME, Config, ConfigError
from .desktop_files import OpenerClosedError, OpenParams, run_desktop_file_opener
from .ui import UIError, start_ui

log = logging.getLogger(__name__)

LOG_LEVEL_ENV = "CHOOSME_LOG"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class AppError(RuntimeError):
    """The program cannot carry out what it was asked to do."""


class _DaemonClient(Protocol):
    def status(self) -> StatusResult: ...

    def kill(self) -> None: ...

    def set_default(self, index: int) -> None: ...


def remove_whitespace(text: str) -> str:
    """The text with every whitespace character dropped."""
    return "".join(char for char in text if not char.isspace())


def _default_position(applications: Sequence[StatusApplication]) -> int | None:
    return next((index for index, app in enumerate(applications) if app.is_default), None)


def next_default_index(applications: Sequence[StatusApplication]) -> int:
    """Index of the application after the default one; -1 (unset) past the last."""
    current = _default_position(applications)
    following = (-1 if current is None else current) + 1
    return -1 if following >= len(applications) else following


def waybar_output(applications: Sequence[StatusApplication]) -> dict[str, str]:
    """Waybar module content describing the default application."""
    current = _default_position(applications)
    default = None if current is None else applications[current]
    text = "Select" if default is None else default.name
    css_class = ("no-default" if default is None else default.name).lower()
    return {
        "text": text,
        "class": f"choosme-{remove_whitespace(css_class)}",
        "alt": css_class,
    }


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _state_dir() -> Path:
    base = os.environ.get("XDG_STATE_HOME", "")
    if base and Path(base).is_absolute():
        root = Path(base)
    else:
        root = Path.home() / ".local" / "state"
    return root / APPLICATION_NAME


class _LoggingGuard:
    """Keeps the installed log handlers; closing flushes and removes them."""

    def __init__(self, handlers: list[logging.Handler], previous_level: int) -> None:
        self._handlers = handlers
        self._previous_level = previous_level

    def close(self) -> None:
        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []
        root.setLevel(self._previous_level)

    def __enter__(self) -> _LoggingGuard:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _level_from_env() -> int:
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def init_logging(
    application_name: str, log_dir: str | os.PathLike[str] | None = None
) -> _LoggingGuard:
    """Log to a daily rotated file and to stdout; close the returned guard to flush."""
    directory = Path(log_dir) if log_dir is not None else _state_dir() / "logs"
    directory.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(_LOG_FORMAT)
    file_handler = logging.handlers.TimedRotatingFileHandler(
        directory / application_name, when="midnight", encoding="utf-8"
    )
    console_handler = logging.StreamHandler(sys.stdout)
    handlers: list[logging.Handler] = [file_handler, console_handler]
    root = logging.getLogger()
    previous_level = root.level
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(_level_from_env())
    return _LoggingGuard(handlers, previous_level)


def _status(client: _DaemonClient) -> StatusResult:
    try:
        return client.status()
    except BusError as exc:
        raise AppError(f"on dbus_client.status(): {exc}") from exc


def _set_default(client: _DaemonClient, index: int, what: str) -> None:
    try:
        client.set_default(index)
    except BusError as exc:
        raise AppError(f"on dbus_client.{what}: {exc}") from exc


def run_daemon_command(client: _DaemonClient, command: DaemonCommand) -> str | None:
    """Send the request the command's flags ask for; returns the text to print, if any."""
    if command.runs_daemon:
        raise ValueError("the daemon command carries no request to send")
    if command.status:
        return _to_json(_status(client).to_dict())
    if command.kill:
        try:
            client.kill()
        except BusError as exc:
            raise AppError(f"on dbus_client.kill(): {exc}") from exc
        return None
    if command.set_default is not None:
        _set_default(client, command.set_default, "set_default()")
        return None
    if command.unset_default:
        _set_default(client, -1, "set_default(-1)")
        return None
    if command.set_default_next:
        applications = _status(client).applications
        _set_default(client, next_default_index(applications), "set_default_next()")
        return None
    return _to_json(waybar_output(_status(client).applications))


def _try_daemon_open(uri: str) -> bool:
    try:
        outputs = DBusClient().open(uri)
    except BusError as exc:
        log.error("failed to execute open command: %s, fallbacking to standalone mode", exc)
        return False
    log.info("open command executed successfully: %r", outputs)
    return True


def _run(cli: Cli) -> int:
    daemon_mode = False
    if cli.command is not None:
        if not cli.command.runs_daemon:
            output = run_daemon_command(DBusClient(), cli.command)
            if output is not None:
                sys.stdout.write(output)
                sys.stdout.flush()
            return 0
        daemon_mode = True
    else:
        log.warning("no command provided, running in client mode: uri=%r", cli.uri)

    if not daemon_mode and cli.uri is not None and _try_daemon_open(cli.uri):
        return 0

    try:
        config = Config.read()
    except (OSError, ConfigError) as exc:
        raise AppError(f"on Config.read(): {exc}") from exc

    opener = run_desktop_file_opener(config)
    try:
        resolved = False
        if cli.uri is not None:
            entry = config.find_matching_desktop_file(cli.uri)
            if entry is not None:
                log.debug("found matching desktop file: %s", entry.id)
                try:
                    opener.open(OpenParams(uris=[cli.uri], desktop_file_id=entry.id))
                except OpenerClosedError as exc:
                    raise AppError(f"failed to send open command: {exc}") from exc
                resolved = True

        if not resolved:
            if daemon_mode:
                log.warning("no D-Bus service is registered; only the chooser will run")
            window = start_ui(APPLICATION_NAME, config, opener, daemon_mode, cli.uri)
            log.info("running application: %s", APPLICATION_NAME)
            try:
                exit_code = window.run()
            except UIError as exc:
                raise AppError(str(exc)) from exc
            if exit_code != 0:
                log.error("UI exited with code %s", exit_code)
            else:
                log.debug("UI exited with code: %s", exit_code)
    finally:
        try:
            opener.quit()
        except OpenerClosedError as exc:
            log.error("failed to send quit command to desktop file opener: %s", exc)
        opener.join()
        log.info("desktop file opener thread closed!")
    return 0


def run(argv: Sequence[str] | None = None) -> int:
    """Run the program for the arguments; raises AppError on failure."""
    cli = parse(argv)
    try:
        guard = init_logging(APPLICATION_NAME)
    except OSError as exc:
        raise AppError(f"on init_logging(): {exc}") from exc
    with guard:
        return _run(cli)


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point; returns the exit status."""
    try:
        return run(argv)
    except (AppError, ValueError) as exc:
        log.error("%s", exc)
        print(f"{APPLICATION_NAME}: {exc}", file=sys.stderr)
        return 1