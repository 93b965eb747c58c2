"""Remote tool sources (MCP-style servers) as seen by the agent."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

QUALIFIED_SEPARATOR = "__"


@dataclass
class RemoteAction:
    """One tool offered by a remote source."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})


class RemoteToolSource(ABC):
    """A server that lists and runs tools.

    Connection setup and protocol details belong to the concrete source; the
    agent only lists actions, invokes them and consults the always-allow set.
    """

    def __init__(self, name: str, always_allow: Iterable[str] | None = None):
        self.name = name
        self.always_allow: set[str] = set(always_allow or [])

    @abstractmethod
    async def list_actions(self) -> list[RemoteAction]:
        pass

    @abstractmethod
    async def invoke(self, name: str, arguments: dict[str, Any]) -> str:
        pass

    def is_always_allowed(self, name: str) -> bool:
        return name in self.always_allow

    def allow_always(self, name: str) -> None:
        self.always_allow.add(name)


@dataclass
class RemoteBinding:
    source: RemoteToolSource
    action: RemoteAction
    exposed_name: str

    def get_definition(self) -> dict[str, Any]:
        return {
            "name": self.exposed_name,
            "description": self.action.description,
            "parameters": self.action.parameters,
        }


async def build_remote_catalog(
    sources: Iterable[RemoteToolSource],
    reserved_names: Iterable[str] = (),
) -> dict[str, RemoteBinding]:
    """Map the names shown to the model onto source actions.

    Names stay bare unless they clash with a reserved (native) name or with
    a tool from another source; those become ``<source>__<tool>``.
    """
    listed: list[tuple[RemoteToolSource, RemoteAction]] = []
    for source in sources:
        for action in await source.list_actions():
            listed.append((source, action))

    reserved = set(reserved_names)
    counts = Counter(action.name for _, action in listed)

    catalog: dict[str, RemoteBinding] = {}
    for source, action in listed:
        exposed = action.name
        if exposed in reserved or counts[exposed] > 1:
            exposed = f"{source.name}{QUALIFIED_SEPARATOR}{action.name}"
        catalog[exposed] = RemoteBinding(source=source, action=action, exposed_name=exposed)
    return catalog
