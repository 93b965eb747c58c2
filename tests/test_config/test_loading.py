from pathlib import Path

import pytest

import notabene.config as config_module
from notabene.config import Config
from notabene.exceptions import ConfigurationError


def test_load_prefers_local_config_yaml(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)

    home_cfg = tmp_path / "home_config.yaml"
    home_cfg.write_text("model:\n  provider: ollama\n  model: llama3.2\n", encoding="utf-8")
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", home_cfg)

    local_cfg = tmp_path / "config.yaml"
    local_cfg.write_text(
        (
            "model:\n"
            "  provider: mock\n"
            "  mock_response: hello\n"
            "approval:\n"
            "  patterns:\n"
            "    - git *\n"
        ),
        encoding="utf-8",
    )

    cfg = Config.load()

    assert cfg.model.provider == "mock"
    assert cfg.model.mock_response == "hello"
    assert cfg.approval.patterns == ["git *"]


def test_load_falls_back_to_default_path_when_no_local(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)

    home_cfg = tmp_path / "home_config.yaml"
    home_cfg.write_text(
        (
            "model:\n"
            "  model: qwen2.5-coder\n"
            "agent:\n"
            "  max_actions_per_turn: 5\n"
        ),
        encoding="utf-8",
    )
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", home_cfg)

    cfg = Config.load()

    assert cfg.model.model == "qwen2.5-coder"
    assert cfg.agent.max_actions_per_turn == 5


def test_defaults_without_any_file(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")

    cfg = Config.load()

    assert cfg.model.provider == "ollama"
    assert cfg.agent.max_actions_per_turn == 3
    assert cfg.tools.shell.timeout == 30
    assert cfg.tools.shell.max_output_lines == 200
    assert cfg.tools.shell.max_output_bytes == 10240
    assert (cfg.tools.shell.head_lines, cfg.tools.shell.tail_lines) == (50, 20)
    assert cfg.tools.fake_tools_path == "fake-tools.yaml"
    assert cfg.history.enabled is True


def test_environment_fills_unset_values(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")
    monkeypatch.setenv("NB_AGENT__MAX_ACTIONS_PER_TURN", "7")

    cfg = Config.load()

    assert cfg.agent.max_actions_per_turn == 7


def test_default_danger_patterns_are_independent_copies():
    first = Config()
    second = Config()

    first.tools.shell.danger_patterns[0].reason = "changed"

    assert second.tools.shell.danger_patterns[0].reason == "recursive delete"


def test_custom_danger_patterns_from_yaml(tmp_path: Path):
    path = tmp_path / "nb.yaml"
    path.write_text(
        (
            "tools:\n"
            "  shell:\n"
            "    danger_patterns:\n"
            "      - pattern: '\\bterraform\\s+destroy'\n"
            "        reason: infrastructure teardown\n"
        ),
        encoding="utf-8",
    )

    cfg = Config.from_yaml(path)

    assert len(cfg.tools.shell.danger_patterns) == 1
    assert cfg.tools.shell.danger_patterns[0].reason == "infrastructure teardown"


def test_invalid_yaml_raises_configuration_error(tmp_path: Path):
    path = tmp_path / "broken.yaml"
    path.write_text("model: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.from_yaml(path)


def test_non_mapping_yaml_raises_configuration_error(tmp_path: Path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.from_yaml(path)


def test_save_round_trips_through_yaml(tmp_path: Path):
    cfg = Config()
    cfg.approval.patterns = ["ls", "npm test*"]
    cfg.tools.always_allow = ["list_issues"]
    path = tmp_path / "out" / "config.yaml"

    cfg.save(path)
    loaded = Config.from_yaml(path)

    assert loaded.approval.patterns == ["ls", "npm test*"]
    assert loaded.tools.always_allow == ["list_issues"]
