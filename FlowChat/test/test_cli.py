"""
Tests for the command-line front-end in local-only mode.
"""

import json
import logging
import os

import pytest

import FlowChat.__main__ as cli
from FlowChat.core.logging import configure_logging, create_testing_config, get_logging_manager


@pytest.fixture
def run(monkeypatch, state_dir, capsys):
    # keep log records out of the captured command output
    monkeypatch.setattr(cli, "auto_configure", lambda env=None: env)

    def _run(*argv):
        code = cli.main([*argv, "--api", "", "--state", state_dir])
        return code, capsys.readouterr().out

    return _run


def _state(state_dir):
    with open(os.path.join(state_dir, "flow_state.json"), encoding="utf-8") as f:
        return json.load(f)


def test_create_send_export(run, state_dir):
    code, out = run("create", "room_1")
    assert code == 0
    conv_id = _state(state_dir)["flow.convs.v1"][0]["id"]
    assert conv_id in out

    assert run("send", conv_id, "hello")[0] == 0

    code, out = run("export", conv_id)
    assert code == 0
    assert out.startswith("Conversation: room_1\n---\n")
    assert out.rstrip("\n").endswith("\thello")


def test_invalid_title_exit_code(run):
    code, out = run("create", "bad title!")
    assert code == 1
    assert "Invalid title" in out


def test_list_and_delete(run, state_dir):
    run("create", "first")
    conv_id = _state(state_dir)["flow.convs.v1"][0]["id"]

    code, out = run("list")
    assert f"* {conv_id}  first  (0 messages)" in out

    assert run("delete", conv_id)[0] == 0
    assert _state(state_dir)["flow.convs.v1"] == []


def test_send_file_and_delete_message(run, state_dir, tmp_path):
    run("create", "files")
    conv_id = _state(state_dir)["flow.convs.v1"][0]["id"]
    path = tmp_path / "notes.txt"
    path.write_bytes(b"abc")

    code, out = run("send-file", conv_id, str(path))
    assert code == 0
    msg = _state(state_dir)["flow.convs.v1"][0]["messages"][0]
    assert msg["type"] == "file"
    assert msg["size"] == 3

    assert run("delete-message", conv_id, msg["id"])[1].strip() == "Deleted."
    assert _state(state_dir)["flow.convs.v1"][0]["messages"] == []


def test_theme(run, state_dir):
    assert run("theme")[1].strip() == "light"
    assert run("theme", "toggle")[1].strip() == "dark"
    assert _state(state_dir)["flow.theme"] == "dark"


def test_sync_without_backend(run):
    assert run("sync")[0] == 1


def test_logging_handlers_released_on_exit(run):
    manager = get_logging_manager()
    configure_logging(create_testing_config())
    installed = manager.handlers
    assert installed

    run("list")

    assert manager.handlers == []
    assert not any(h in logging.getLogger().handlers for h in installed)
