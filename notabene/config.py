"""Configuration management for NotaBene."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from notabene.exceptions import ConfigurationError


# Paths
DEFAULT_CONFIG_PATH = Path("~/.notabene/config.yaml").expanduser()
DEFAULT_HISTORY_PATH = Path("~/.notabene/history.db").expanduser()
LOCAL_CONFIG_FILENAME = "config.yaml"

DEFAULT_DETECT_TOOLS = [
    "python3",
    "python",
    "node",
    "dotnet",
    "git",
    "docker",
    "curl",
    "jq",
    "ffmpeg",
    "magick",
    "kubectl",
    "aws",
    "az",
]


class DangerPattern(BaseModel):
    """Regex that flags a shell command as dangerous, with a short reason."""

    pattern: str
    reason: str


DEFAULT_DANGER_PATTERNS = [
    DangerPattern(pattern=r"\brm\s+-r", reason="recursive delete"),
    DangerPattern(pattern=r"\brm\s+-rf", reason="recursive delete"),
    DangerPattern(pattern=r"\brm\s+-fr", reason="recursive delete"),
    DangerPattern(pattern=r"\bsudo\b", reason="privilege escalation"),
    DangerPattern(pattern=r"\bdd\b", reason="disk operations"),
    DangerPattern(pattern=r"\bchmod\s+777", reason="permission changes"),
    DangerPattern(pattern=r"\bchmod\s+-R", reason="permission changes"),
    DangerPattern(pattern=r"\bcurl\b.*\|\s*sh", reason="pipe to shell"),
    DangerPattern(pattern=r"\bcurl\b.*\|\s*bash", reason="pipe to shell"),
    DangerPattern(pattern=r"\bwget\b.*\|\s*sh", reason="pipe to shell"),
    DangerPattern(pattern=r"\bwget\b.*\|\s*bash", reason="pipe to shell"),
    DangerPattern(pattern=r"\bmkfs\b", reason="disk formatting"),
    DangerPattern(pattern=r"\bfdisk\b", reason="disk formatting"),
    DangerPattern(pattern=r">\s*/dev/(?!null)", reason="write to system path"),
    DangerPattern(pattern=r">\s*/etc/", reason="write to system path"),
    DangerPattern(pattern=r">\s*/usr/", reason="write to system path"),
    DangerPattern(pattern=r">\s*/bin/", reason="write to system path"),
    DangerPattern(pattern=r">\s*/sbin/", reason="write to system path"),
]


class ModelConfig(BaseModel):
    """Model configuration."""

    provider: Literal["ollama", "mock"] = "ollama"
    model: str = "llama3.2"
    temperature: float = 0.7
    max_tokens: int = 4096
    api_key: str = ""
    base_url: str = ""
    mock_response: str = "OK"


class AgentConfig(BaseModel):
    """Tool-loop limits."""

    max_actions_per_turn: int = 3
    remote_timeout: float = 60.0


class ShellToolConfig(BaseModel):
    """Shell tool configuration."""

    enabled: bool = True
    timeout: int = 30
    max_output_lines: int = 200
    max_output_bytes: int = 10240
    head_lines: int = 50
    tail_lines: int = 20
    detect_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_DETECT_TOOLS))
    danger_patterns: list[DangerPattern] = Field(
        default_factory=lambda: [p.model_copy() for p in DEFAULT_DANGER_PATTERNS]
    )


class WriteFileToolConfig(BaseModel):
    """File write tool configuration."""

    enabled: bool = True


class ToolsConfig(BaseModel):
    """Tools configuration."""

    shell: ShellToolConfig = Field(default_factory=ShellToolConfig)
    write_file: WriteFileToolConfig = Field(default_factory=WriteFileToolConfig)
    fake_tools_path: str = "fake-tools.yaml"
    always_allow: list[str] = Field(default_factory=list)


class ApprovalConfig(BaseModel):
    """Pre-approved command patterns (exact text or `*` globs)."""

    patterns: list[str] = Field(default_factory=list)


class HistoryConfig(BaseModel):
    """Conversation history persistence."""

    enabled: bool = True
    path: str = str(DEFAULT_HISTORY_PATH)
    auto_save: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for NotaBene."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="NB_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

        return cls(**data)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from the default YAML location."""
        # NB_* environment variables fill in whatever the YAML file leaves unset
        return cls.from_yaml()

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
