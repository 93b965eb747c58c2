from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from notabene.approval import NonInteractiveApproval
from notabene.cli import TerminalUI
from notabene.config import Config
from notabene.exceptions import ConfigurationError
from notabene.main import _handle_input, _load_config, build_agent, run_session
from notabene.session import HistoryStore
from notabene.shell.environment import ShellEnvironment


def _config(tmp_path: Path) -> Config:
    cfg = Config()
    cfg.model.provider = "mock"
    cfg.history.path = str(tmp_path / "state" / "history.db")
    cfg.tools.fake_tools_path = str(tmp_path / "fake-tools.yaml")
    cfg.tools.shell.detect_tools = []
    return cfg


def _ui() -> tuple[TerminalUI, StringIO]:
    output = StringIO()
    return TerminalUI(console=Console(file=output, force_terminal=False, width=120)), output


def _make_environment(launch: Path) -> ShellEnvironment:
    return ShellEnvironment(
        launch_directory=launch,
        os="Linux",
        os_version="test",
        shell_path="/bin/sh",
        shell_name="sh",
        architecture="x86_64",
        username="tester",
        home_dir=launch,
        case_sensitive_fs=True,
    )


@pytest.mark.asyncio
async def test_single_prompt_prints_reply_and_saves_history(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    cfg = _config(tmp_path)
    ui, output = _ui()

    await run_session(cfg, ui, prompt="MOCK:response=Hello from mock", non_interactive=True)

    assert "Hello from mock" in output.getvalue()
    store = HistoryStore(cfg.history.path)
    try:
        records = await store.load(tmp_path)
    finally:
        await store.close()
    assert records == [
        {"role": "user", "content": "MOCK:response=Hello from mock"},
        {"role": "assistant", "content": "Hello from mock"},
    ]


@pytest.mark.asyncio
async def test_saved_history_is_reloaded_for_the_same_directory(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    cfg = _config(tmp_path)

    await run_session(cfg, _ui()[0], prompt="MOCK:response=first", non_interactive=True)
    await run_session(cfg, _ui()[0], prompt="MOCK:response=second", non_interactive=True)

    store = HistoryStore(cfg.history.path)
    try:
        records = await store.load(tmp_path)
    finally:
        await store.close()
    assert [r["content"] for r in records] == [
        "MOCK:response=first",
        "first",
        "MOCK:response=second",
        "second",
    ]


@pytest.mark.asyncio
async def test_fake_tools_are_loaded_from_configured_path(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    cfg = _config(tmp_path)
    Path(cfg.tools.fake_tools_path).write_text(
        "fake_tools:\n  - name: ping\n    response: pong\n",
        encoding="utf-8",
    )
    ui, _ = _ui()

    agent = build_agent(cfg, ui, _make_environment(tmp_path), NonInteractiveApproval())
    result = agent.canned_tools.load(cfg.tools.fake_tools_path)
    await agent.provider.close()

    assert result.tools_loaded == 1
    assert agent.tool_definitions()[0].name == "ping"


@pytest.mark.asyncio
async def test_disabled_tools_are_not_offered(tmp_path: Path):
    cfg = _config(tmp_path)
    cfg.tools.shell.enabled = False
    ui, _ = _ui()

    agent = build_agent(cfg, ui, _make_environment(tmp_path), NonInteractiveApproval())
    await agent.provider.close()

    assert [d.name for d in agent.tool_definitions()] == ["write_file"]
    assert agent.conversation.system_message is not None


@pytest.mark.asyncio
async def test_clear_and_insert_update_history(tmp_path: Path):
    (tmp_path / "notes.txt").write_text("remember the milk", encoding="utf-8")
    cfg = _config(tmp_path)
    ui, output = _ui()
    agent = build_agent(cfg, ui, _make_environment(tmp_path), NonInteractiveApproval())

    assert await _handle_input(agent, ui, "/insert notes.txt") is True
    inserted = [(m.role, m.content) for m in agent.conversation][1:]
    assert await _handle_input(agent, ui, "/clear") is True
    assert await _handle_input(agent, ui, "/insert missing.txt") is True
    assert await _handle_input(agent, ui, "exit") is False
    await agent.provider.close()

    assert inserted[0] == ("user", "Here is the content from file 'notes.txt':\n\nremember the milk")
    assert inserted[1][0] == "assistant"
    assert [m.role for m in agent.conversation] == ["system"]
    assert "File content from notes.txt added to conversation context" in output.getvalue()
    assert "Failed to insert file" in output.getvalue()


def test_explicit_missing_config_file_is_an_error(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        _load_config(str(tmp_path / "nope.yaml"), "", "")


def test_cli_overrides_apply_on_top_of_file(tmp_path: Path):
    path = tmp_path / "nb.yaml"
    path.write_text("model:\n  provider: mock\n  model: one\n", encoding="utf-8")

    cfg = _load_config(str(path), "", "two")

    assert cfg.model.provider == "mock"
    assert cfg.model.model == "two"


@pytest.mark.asyncio
async def test_command_words_typed_as_messages_reach_the_model(tmp_path: Path):
    cfg = _config(tmp_path)
    ui, _ = _ui()
    agent = build_agent(cfg, ui, _make_environment(tmp_path), NonInteractiveApproval())
    agent.add_context("earlier material", "Got it.")

    assert await _handle_input(agent, ui, "CLEAR") is True
    assert await _handle_input(agent, ui, "INSERT") is True
    assert await _handle_input(agent, ui, "EXIT") is False
    await agent.provider.close()

    contents = [(m.role, m.content) for m in agent.conversation][1:]
    assert contents[:2] == [("user", "earlier material"), ("assistant", "Got it.")]
    assert ("user", "CLEAR") in contents
    assert ("user", "INSERT") in contents
    assert ("user", "EXIT") not in contents
