"""Canned tools: stub actions declared in YAML that answer with a template.

A ``fake-tools.yaml`` file looks like::

    fake_tools:
      - name: get_weather
        description: Current weather for a city
        parameters:
          - name: city
            type: string
            required: true
        response: '{"id": "{{$guid}}", "city": "{{$param.city}}", "temp": {{$int(-5,35)}}}'

Responses are expanded with macros on every call so repeated calls look
like fresh data. Canned tools replace remote tools of the same name, which
makes them handy for testing prompts without touching real systems.
"""

from __future__ import annotations

import json
import random
import re
import string
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import BaseModel, Field, ValidationError

from notabene.logging import get_logger

log = get_logger(__name__)

MACRO_RE = re.compile(r"\{\{\$([A-Za-z_][A-Za-z0-9_.]*)(?:\(([^()]*)\))?\}\}")

DEFAULT_INT_RANGE = (0, 999999)
DEFAULT_RANDOM_STRING_LENGTH = 8
_ALPHANUMERIC = string.ascii_letters + string.digits


class CannedParameter(BaseModel):
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False


class CannedTool(BaseModel):
    """One stub tool as declared in YAML."""

    name: str
    description: str = ""
    parameters: list[CannedParameter] = Field(default_factory=list)
    response: str = ""

    def get_definition(self) -> dict[str, Any]:
        description = self.description
        if self.parameters:
            lines = [description, "", "Parameters:"]
            for param in self.parameters:
                required = " (required)" if param.required else ""
                lines.append(f"- {param.name}: {param.type}{required} - {param.description}")
            description = "\n".join(lines)
        return {
            "name": self.name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": {
                    param.name: {"type": param.type, "description": param.description}
                    for param in self.parameters
                },
                "required": [param.name for param in self.parameters if param.required],
            },
        }


class _CannedToolFile(BaseModel):
    fake_tools: list[CannedTool] = Field(default_factory=list)


@dataclass
class CannedLoadResult:
    success: bool
    tools_loaded: int = 0
    error: str | None = None


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, bool)):
        return json.dumps(value)
    return str(value)


class CannedToolRegistry:
    """Holds canned tools and the macro counters they share.

    Counters live on the instance, so each registry starts counting at 1.
    """

    def __init__(self, tools: Iterable[CannedTool] | None = None, rng: random.Random | None = None):
        self._tools: dict[str, CannedTool] = {}
        self._counters: dict[str, int] = {}
        self._overridden: list[str] = []
        self._rng = rng or random.Random()
        for tool in tools or []:
            self._tools[tool.name] = tool

    def load(self, path: Path | str) -> CannedLoadResult:
        """Load tools from a YAML file, replacing any loaded before.

        A missing file is not an error. A malformed one is logged and
        reported in the result; the registry is then left unchanged.
        """
        file_path = Path(path).expanduser()
        if not file_path.exists():
            return CannedLoadResult(success=True)

        try:
            with open(file_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            parsed = _CannedToolFile.model_validate(data)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            log.warning("Failed to load fake tools", path=str(file_path), error=str(e))
            return CannedLoadResult(success=False, error=str(e))

        self._tools = {tool.name: tool for tool in parsed.fake_tools}
        log.info("Loaded fake tools", path=str(file_path), count=len(self._tools))
        return CannedLoadResult(success=True, tools_loaded=len(self._tools))

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> CannedTool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        return list(self._tools)

    def get_definitions(self) -> list[dict[str, Any]]:
        return [tool.get_definition() for tool in self._tools.values()]

    def integrate(self, other_names: Iterable[str]) -> list[str]:
        """Merge canned tool names into a list of remote tool names.

        A canned tool named like a remote tool takes its place; the rest are
        appended. The replaced names are kept for :meth:`overridden_tools`.
        """
        merged = list(other_names)
        self._overridden = []
        for name in self._tools:
            if name in merged:
                self._overridden.append(name)
            else:
                merged.append(name)
        return merged

    def overridden_tools(self) -> list[str]:
        return list(self._overridden)

    def invoke(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        tool = self._tools[name]
        return self.expand(tool.response, arguments or {})

    def expand(self, template: str, arguments: dict[str, Any] | None = None) -> str:
        """Replace every macro token in ``template``.

        Unknown macros and macros with unusable arguments are left as they
        are; expansion never raises.
        """
        args = arguments or {}

        def _replace(match: re.Match[str]) -> str:
            value = self._expand_one(match.group(1), match.group(2), args)
            return match.group(0) if value is None else value

        return MACRO_RE.sub(_replace, template)

    def _expand_one(self, name: str, raw_args: str | None, arguments: dict[str, Any]) -> str | None:
        if name.startswith("param."):
            key = name[len("param."):]
            if not key or raw_args is not None:
                return None
            return _stringify(arguments.get(key))

        if name == "guid":
            return str(uuid.uuid4())

        if name == "timestamp":
            return datetime.now(UTC).isoformat()

        if name == "int":
            low, high = DEFAULT_INT_RANGE
            if raw_args and raw_args.strip():
                bounds = [part.strip() for part in raw_args.split(",")]
                if len(bounds) != 2:
                    return None
                try:
                    low, high = int(bounds[0]), int(bounds[1])
                except ValueError:
                    return None
                if low > high:
                    return None
            return str(self._rng.randint(low, high))

        if name == "counter":
            counter_name = (raw_args or "").strip() or "default"
            value = self._counters.get(counter_name, 0) + 1
            self._counters[counter_name] = value
            return str(value)

        if name == "choice":
            options = [part.strip() for part in (raw_args or "").split(",") if part.strip()]
            if not options:
                return None
            return self._rng.choice(options)

        if name == "random_string":
            length = DEFAULT_RANDOM_STRING_LENGTH
            if raw_args and raw_args.strip():
                try:
                    length = int(raw_args.strip())
                except ValueError:
                    return None
                if length < 0:
                    return None
            return "".join(self._rng.choice(_ALPHANUMERIC) for _ in range(length))

        return None


def expand_macros(template: str, arguments: dict[str, Any] | None = None) -> str:
    """Expand a template with a throwaway registry (fresh counters)."""
    return CannedToolRegistry().expand(template, arguments)
