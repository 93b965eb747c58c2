"""System prompt template, with a personal override.

``~/.notabene/instructions/system_prompt.md`` wins over the copy shipped in
``notabene/prompts/`` (or ``$NB_INSTRUCTIONS_DIR`` when set).
"""

from __future__ import annotations

import os
from pathlib import Path

SYSTEM_PROMPT_TEMPLATE = "system_prompt.md"
FALLBACK_SYSTEM_PROMPT = "You are a helpful AI assistant.\n\n{environment}"

_PERSONAL_DIR = Path("~/.notabene/instructions").expanduser()


class _SafeFormatDict(dict[str, str]):
    """Leave unknown placeholders untouched instead of raising KeyError."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class InstructionLoader:
    """Find the system prompt template and fill in the environment block."""

    def __init__(
        self,
        base_dir: Path | str | None = None,
        personal_dir: Path | str | None = None,
    ):
        if base_dir is None:
            base_dir = os.getenv("NB_INSTRUCTIONS_DIR") or Path(__file__).resolve().parent / "prompts"
        self.base_dir = Path(base_dir).expanduser().resolve()
        self.personal_dir = Path(personal_dir or _PERSONAL_DIR).expanduser().resolve()

    def template_path(self, name: str = SYSTEM_PROMPT_TEMPLATE) -> Path | None:
        for directory in (self.personal_dir, self.base_dir):
            candidate = directory / name
            if candidate.is_file():
                return candidate
        return None

    def render_system_prompt(self, environment: str) -> str:
        """System prompt with ``{environment}`` filled in.

        Falls back to a minimal built-in prompt when no template exists.
        """
        path = self.template_path()
        template = path.read_text(encoding="utf-8").strip() if path else FALLBACK_SYSTEM_PROMPT
        return template.format_map(_SafeFormatDict(environment=environment))
