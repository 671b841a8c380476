from pathlib import Path

import pytest

from choosme.config import Config, DesktopFileConfig
from choosme.desktop_files import DesktopEntry, DesktopFileOpener, resolve_desktop_files
from choosme.ui import ChooserEntry, ChooserWindow, build_entries, key_to_index, start_ui


def _write_desktop(directory: Path, name: str) -> Path:
    path = directory / f"{name.lower()}.desktop"
    path.write_text(
        "[Desktop Entry]\n"
        "Type=Application\n"
        f"Name={name}\n"
        f"Exec={name.lower()} %u\n"
        f"Icon={name.lower()}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def setup(tmp_path):
    first = _write_desktop(tmp_path, "Alpha")
    second = _write_desktop(tmp_path, "Beta")
    config = Config([DesktopFileConfig(path=str(first)), DesktopFileConfig(path=str(second))])
    launched = []

    def launcher(entry, uris):
        launched.append((entry.name, uris))

    opener = DesktopFileOpener(config, launcher=launcher).start()
    yield config, opener, launched
    if opener.running:
        opener.quit()
    opener.join(2)


def _finish(opener):
    opener.quit()
    assert opener.join(2)


def test_key_to_index_digits():
    assert key_to_index("1") == 0
    assert key_to_index("0") == 0
    assert key_to_index("9") == 8


@pytest.mark.parametrize("char", ["a", "", "12", " ", "\x1b"])
def test_key_to_index_non_digits(char):
    assert key_to_index(char) is None


def test_build_entries_uses_alias_and_order():
    config = Config([
        DesktopFileConfig(path="/apps/a.desktop", alias="Work"),
        DesktopFileConfig(path="/apps/b.desktop"),
    ])
    resolved = {
        "/apps/a.desktop": DesktopEntry(Path("/apps/a.desktop"), "Alpha", "alpha %u", "alpha"),
        "/apps/b.desktop": DesktopEntry(Path("/apps/b.desktop"), "Beta", "beta %u"),
    }
    entries = build_entries(config, resolved)
    assert entries == [
        ChooserEntry("/apps/a.desktop", "Work", "alpha"),
        ChooserEntry("/apps/b.desktop", "Beta", None),
    ]


def test_build_entries_skips_unresolved():
    config = Config([
        DesktopFileConfig(path="/apps/missing.desktop"),
        DesktopFileConfig(path="/apps/b.desktop"),
    ])
    resolved = {"/apps/b.desktop": DesktopEntry(Path("/apps/b.desktop"), "Beta", "beta")}
    entries = build_entries(config, resolved)
    assert [entry.id for entry in entries] == ["/apps/b.desktop"]


def test_select_launches_and_closes(setup):
    config, opener, launched = setup
    entries = build_entries(config, resolve_desktop_files(config))
    window = ChooserWindow("choosme", entries, opener, uri="https://example.com")
    assert window.visible is True
    assert window.select(1) is True
    _finish(opener)
    assert launched == [("Beta", ["https://example.com"])]
    assert window.closed is True
    assert window.visible is False


def test_select_in_daemon_mode_hides(setup):
    config, opener, launched = setup
    entries = build_entries(config, resolve_desktop_files(config))
    window = ChooserWindow("choosme", entries, opener, daemon_mode=True)
    assert window.visible is False
    window.set_uri("https://example.com/x")
    assert window.visible is True
    assert window.uri == "https://example.com/x"
    assert window.select(0) is True
    _finish(opener)
    assert launched == [("Alpha", ["https://example.com/x"])]
    assert window.visible is False
    assert window.closed is False


def test_select_without_uri_sends_empty_uri(setup):
    config, opener, launched = setup
    entries = build_entries(config, resolve_desktop_files(config))
    window = ChooserWindow("choosme", entries, opener)
    window.select(0)
    _finish(opener)
    assert launched == [("Alpha", [""])]


def test_select_out_of_range(setup):
    config, opener, launched = setup
    entries = build_entries(config, resolve_desktop_files(config))
    window = ChooserWindow("choosme", entries, opener)
    assert window.select(5) is False
    assert window.select(-1) is False
    _finish(opener)
    assert launched == []
    assert window.closed is False


def test_select_after_opener_stopped(setup):
    config, opener, launched = setup
    entries = build_entries(config, resolve_desktop_files(config))
    _finish(opener)
    window = ChooserWindow("choosme", entries, opener, uri="https://example.com")
    assert window.select(0) is True
    assert window.closed is True
    assert launched == []


def test_show_and_hide_without_window(setup):
    _, opener, _ = setup
    window = ChooserWindow("choosme", [], opener)
    window.hide()
    assert window.visible is False
    window.show()
    assert window.visible is True


def test_start_ui_builds_entries(setup):
    config, opener, _ = setup
    window = start_ui("choosme", config, opener, daemon_mode=True, uri="https://example.com")
    assert [entry.title for entry in window.entries] == ["Alpha", "Beta"]
    assert window.daemon_mode is True
    assert window.visible is False
    assert window.uri == "https://example.com"
    assert window.application_name == "choosme"