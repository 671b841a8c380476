"""The chooser window: a list of applications, one of which opens the URI."""

from __future__ import annotations

import logging
import string
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .config import Config
from .desktop_files import (
    DesktopEntry,
    DesktopFileOpener,
    OpenerClosedError,
    OpenParams,
    resolve_desktop_files,
)

log = logging.getLogger(__name__)

EMPTY_MESSAGE = (
    "No desktop entries found or processed from the list.\n"
    "Please check the paths in the configuration file."
)
DEFAULT_WIDTH = 300
DEFAULT_HEIGHT = 100
MARGIN = 12


class UIError(RuntimeError):
    """The chooser window cannot be shown."""


@dataclass(frozen=True)
class ChooserEntry:
    """One row of the chooser: the configured id and what is shown for it."""

    id: str
    title: str
    icon: str | None = None


def build_entries(
    config: Config, desktop_files: Mapping[str, DesktopEntry]
) -> list[ChooserEntry]:
    """Rows in configuration order, for the applications whose desktop file was resolved."""
    entries: list[ChooserEntry] = []
    for item in config.desktop_files:
        desktop_file = desktop_files.get(item.id)
        if desktop_file is None:
            log.warning("no desktop file found for id: %s", item.id)
            continue
        title = item.alias if item.alias is not None else desktop_file.name
        entries.append(ChooserEntry(item.id, title, desktop_file.icon))
    return entries


def key_to_index(char: str) -> int | None:
    """Row index for a digit key: '1' is the first row ('0' too); None for other keys."""
    if len(char) != 1 or char not in string.digits:
        return None
    return max(int(char) - 1, 0)


class ChooserWindow:
    """Chooser state and its window; the window itself exists only while run() is active."""

    def __init__(
        self,
        application_name: str,
        entries: Iterable[ChooserEntry],
        opener: DesktopFileOpener,
        daemon_mode: bool = False,
        uri: str | None = None,
    ) -> None:
        self.application_name = application_name
        self.entries = list(entries)
        self.opener = opener
        self.daemon_mode = daemon_mode
        self.uri = uri
        self.visible = not daemon_mode
        self.closed = False
        self._root: Any = None

    def show(self) -> None:
        self.visible = True
        if self._root is not None:
            self._root.deiconify()
            self._root.lift()
            self._root.focus_force()

    def hide(self) -> None:
        self.visible = False
        if self._root is not None:
            self._root.withdraw()

    def _quit(self) -> None:
        self.closed = True
        self.visible = False
        if self._root is not None:
            self._root.quit()

    def set_uri(self, uri: str) -> None:
        """Remember the URI to open and bring the window up."""
        log.debug("received URI: %s", uri)
        self.uri = uri
        self.show()

    def select(self, index: int) -> bool:
        """Open the URI with the row at index; False when there is no such row."""
        if not 0 <= index < len(self.entries):
            return False
        entry = self.entries[index]
        params = OpenParams(
            uris=[self.uri if self.uri is not None else ""],
            desktop_file_id=entry.id,
        )
        try:
            self.opener.open(params)
        except OpenerClosedError as exc:
            log.error("failed to send command to desktop file opener: %s", exc)
        log.info("after sending command, quitting the app")
        if self.daemon_mode:
            self.hide()
        else:
            self._quit()
        return True

    def _on_key(self, event: Any) -> str | None:
        if event.keysym == "Escape":
            self.hide()
            return "break"
        index = key_to_index(event.char or "")
        if index is not None and self.select(index):
            return "break"
        return None

    def _on_close_request(self) -> None:
        if self.daemon_mode:
            log.debug("close request received, hiding window instead of closing")
            self.hide()
        else:
            log.debug("close request received, closing window")
            self._quit()

    def _build(self, root: Any, tk: Any) -> None:
        content = tk.Frame(root, padx=MARGIN, pady=MARGIN)
        content.pack(fill="both", expand=True)
        if not self.entries:
            tk.Label(
                content,
                text=EMPTY_MESSAGE,
                wraplength=DEFAULT_WIDTH - 2 * MARGIN,
                justify="center",
                pady=20,
            ).pack(expand=True)
            return
        for index, entry in enumerate(self.entries):
            tk.Button(
                content,
                text=entry.title,
                anchor="w",
                relief="flat",
                command=lambda i=index: self.select(i),
            ).pack(fill="x")

    def run(self) -> int:
        """Show the window and process events until the chooser is closed."""
        try:
            import tkinter as tk
        except ImportError as exc:
            raise UIError(f"no windowing toolkit available: {exc}") from exc
        try:
            root = tk.Tk()
        except tk.TclError as exc:
            raise UIError(f"could not connect to a display: {exc}") from exc
        self._root = root
        root.title(self.application_name)
        root.overrideredirect(True)
        root.resizable(False, False)
        root.minsize(DEFAULT_WIDTH, DEFAULT_HEIGHT)
        self._build(root, tk)
        root.bind("<Key>", self._on_key)
        root.protocol("WM_DELETE_WINDOW", self._on_close_request)
        log.debug("window is built")
        if self.visible:
            self.show()
        else:
            root.withdraw()
        try:
            root.mainloop()
        finally:
            self._root = None
            try:
                root.destroy()
            except tk.TclError:
                pass
        return 0


def start_ui(
    application_name: str,
    config: Config,
    opener: DesktopFileOpener,
    daemon_mode: bool = False,
    uri: str | None = None,
) -> ChooserWindow:
    """Prepare the chooser for the configured applications that could be resolved."""
    entries = build_entries(config, resolve_desktop_files(config))
    if not entries:
        log.warning("no desktop entries found or processed from the configuration")
    log.debug("application is initialized")
    return ChooserWindow(application_name, entries, opener, daemon_mode=daemon_mode, uri=uri)