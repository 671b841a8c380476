import json
import subprocess
from unittest import mock

import pytest

from choosme.app import (
    AppError,
    init_logging,
    main,
    next_default_index,
    remove_whitespace,
    run,
    run_daemon_command,
    waybar_output,
)
from choosme.bus import BusError, StatusApplication, StatusResult
from choosme.cli import DaemonCommand


def _apps(names, default=None):
    return [
        StatusApplication(f"/apps/{i}.desktop", name, f"icon{i}", i == default)
        for i, name in enumerate(names)
    ]


class FakeClient:
    def __init__(self, applications, fail=False):
        self.result = StatusResult(applications)
        self.fail = fail
        self.calls = []

    def status(self):
        self.calls.append(("status",))
        if self.fail:
            raise BusError("no daemon")
        return self.result

    def kill(self):
        self.calls.append(("kill",))
        if self.fail:
            raise BusError("no daemon")

    def set_default(self, index):
        self.calls.append(("set_default", index))
        if self.fail:
            raise BusError("no daemon")


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("CHOOSME_LOG", raising=False)
    return tmp_path


def test_remove_whitespace_drops_all_kinds():
    assert remove_whitespace(" Fire fox\tNightly\n") == "FirefoxNightly"


def test_remove_whitespace_keeps_other_characters():
    text = "a-b_c.d"
    assert remove_whitespace(text) == text


def test_next_default_without_default_is_first():
    assert next_default_index(_apps(["a", "b", "c"])) == 0


def test_next_default_moves_forward():
    assert next_default_index(_apps(["a", "b", "c"], default=1)) == 2


def test_next_default_after_last_unsets():
    assert next_default_index(_apps(["a", "b"], default=1)) == -1


def test_next_default_empty_list_unsets():
    assert next_default_index([]) == -1


def test_waybar_without_default():
    assert waybar_output(_apps(["a"])) == {
        "text": "Select",
        "class": "choosme-no-default",
        "alt": "no-default",
    }


def test_waybar_with_default():
    output = waybar_output(_apps(["Other", "Firefox Nightly"], default=1))
    assert output["text"] == "Firefox Nightly"
    assert output["alt"] == "Firefox Nightly".lower()
    assert output["class"] == "choosme-firefoxnightly"
    assert list(output) == ["text", "class", "alt"]


def test_daemon_status_prints_json():
    apps = _apps(["a", "b"], default=0)
    client = FakeClient(apps)
    output = run_daemon_command(client, DaemonCommand(status=True))
    assert json.loads(output) == StatusResult(apps).to_dict()
    assert client.calls == [("status",)]


def test_daemon_kill():
    client = FakeClient([])
    assert run_daemon_command(client, DaemonCommand(kill=True)) is None
    assert client.calls == [("kill",)]


def test_daemon_set_default():
    client = FakeClient([])
    run_daemon_command(client, DaemonCommand(set_default=2))
    assert client.calls == [("set_default", 2)]


def test_daemon_unset_default():
    client = FakeClient([])
    run_daemon_command(client, DaemonCommand(unset_default=True))
    assert client.calls == [("set_default", -1)]


def test_daemon_set_default_next():
    client = FakeClient(_apps(["a", "b", "c"], default=1))
    run_daemon_command(client, DaemonCommand(set_default_next=True))
    assert client.calls == [("status",), ("set_default", 2)]


def test_daemon_waybar():
    apps = _apps(["a", "b"])
    client = FakeClient(apps)
    output = run_daemon_command(client, DaemonCommand(waybar=True))
    assert json.loads(output) == waybar_output(apps)


def test_daemon_without_request_is_rejected():
    with pytest.raises(ValueError):
        run_daemon_command(FakeClient([]), DaemonCommand())


def test_daemon_bus_failure_becomes_app_error():
    with pytest.raises(AppError, match="kill"):
        run_daemon_command(FakeClient([], fail=True), DaemonCommand(kill=True))


def test_init_logging_writes_file(tmp_path, monkeypatch):
    monkeypatch.delenv("CHOOSME_LOG", raising=False)
    with init_logging("choosme", tmp_path):
        import logging

        logging.getLogger("choosme.test").info("hello log file")
        logging.getLogger("choosme.test").debug("hidden debug line")
    content = (tmp_path / "choosme").read_text(encoding="utf-8")
    assert "hello log file" in content
    assert "hidden debug line" not in content


def _completed(argv, stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr=stderr)


def test_run_status_through_bus(isolated_env, capsys):
    reply = "([('/a.desktop', 'Firefox', 'firefox', true)],)\n"
    with mock.patch("subprocess.run", side_effect=lambda argv, **kw: _completed(argv, reply)):
        assert run(["daemon", "--status"]) == 0
    out = json.loads(capsys.readouterr().out.strip())
    assert out == {
        "applications": [
            {"id": "/a.desktop", "name": "Firefox", "icon": "firefox", "is_default": True}
        ]
    }


def test_main_reports_bus_failure(isolated_env):
    failing = lambda argv, **kw: _completed(argv, returncode=1, stderr="no daemon")  # noqa: E731
    with mock.patch("subprocess.run", side_effect=failing):
        assert main(["daemon", "--kill"]) == 1


def test_main_fails_without_config(isolated_env):
    failing = lambda argv, **kw: _completed(argv, returncode=1, stderr="no daemon")  # noqa: E731
    with mock.patch("subprocess.run", side_effect=failing):
        assert main(["https://example.com"]) == 1


def test_run_launches_matching_application(isolated_env):
    desktop = isolated_env / "browser.desktop"
    desktop.write_text(
        "[Desktop Entry]\nType=Application\nName=Browser\nExec=browser %u\n",
        encoding="utf-8",
    )
    config_dir = isolated_env / "config" / "choosme"
    config_dir.mkdir(parents=True)
    (config_dir / "config.toml").write_text(
        f'[[application]]\npath = "{desktop}"\nprefixes = ["https://"]\n',
        encoding="utf-8",
    )
    failing = lambda argv, **kw: _completed(argv, returncode=1, stderr="no daemon")  # noqa: E731
    with mock.patch("subprocess.run", side_effect=failing), mock.patch(
        "subprocess.Popen"
    ) as popen:
        assert run(["https://example.com"]) == 0
    assert popen.call_count == 1
    assert popen.call_args.args[0] == ["browser", "https://example.com"]