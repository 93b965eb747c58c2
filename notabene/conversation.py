"""Conversation history owned by the agent."""

from __future__ import annotations

from typing import Any, Iterable, Iterator

from notabene.llm import Message

PERSISTED_ROLES = ("user", "assistant")


class Conversation:
    """Ordered messages with an optional system prompt pinned at index 0.

    Messages are only ever appended; :meth:`clear` drops everything except
    the system prompt.
    """

    def __init__(self, system_prompt: str | None = None):
        self._messages: list[Message] = []
        if system_prompt:
            self._messages.append(Message(role="system", content=system_prompt))

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def system_message(self) -> Message | None:
        if self._messages and self._messages[0].role == "system":
            return self._messages[0]
        return None

    def append(self, message: Message) -> None:
        if message.role == "system":
            raise ValueError("System prompt can only be set with set_system_prompt()")
        self._messages.append(message)

    def set_system_prompt(self, content: str) -> None:
        system = Message(role="system", content=content)
        if self.system_message is not None:
            self._messages[0] = system
        else:
            self._messages.insert(0, system)

    def clear(self) -> None:
        system = self.system_message
        self._messages = [system] if system is not None else []

    def to_records(self) -> list[dict[str, Any]]:
        """``{role, content}`` pairs suitable for persistence.

        Only user and assistant text is kept; tool traffic and the system
        prompt are rebuilt on every launch.
        """
        return [
            {"role": message.role, "content": message.content}
            for message in self._messages
            if message.role in PERSISTED_ROLES and message.content
        ]

    def load_records(self, records: Iterable[dict[str, Any]]) -> int:
        """Replace history with persisted records, keeping the system prompt.

        Returns:
            Number of messages loaded.
        """
        self.clear()
        loaded = 0
        for record in records:
            role = str(record.get("role", ""))
            content = record.get("content")
            if role not in PERSISTED_ROLES or not isinstance(content, str) or not content:
                continue
            self._messages.append(Message(role=role, content=content))
            loaded += 1
        return loaded
