"""LLM providers: Ollama over HTTP and a scripted mock."""

import base64
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from notabene.exceptions import ConfigurationError, LLMAPIError, LLMError
from notabene.logging import get_logger

log = get_logger(__name__)


OLLAMA_NATIVE_BASE_URL = "http://127.0.0.1:11434"
MOCK_RESPONSE_PREFIX = "MOCK:response="


@dataclass(frozen=True)
class Attachment:
    """Binary content sent alongside a user message (images)."""

    name: str
    media_type: str
    data: bytes

    @classmethod
    def from_path(cls, path: Path | str, media_type: str) -> "Attachment":
        file_path = Path(path)
        return cls(name=file_path.name, media_type=media_type, data=file_path.read_bytes())

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class ToolCall:
    """A tool call from the LLM."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    tool_name: str | None = None
    attachments: list[Attachment] = field(default_factory=list)


@dataclass
class LLMResponse:
    """Response from the LLM."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)


@dataclass
class ToolDefinition:
    """Definition of a tool for the LLM."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolDefinition":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            parameters=data.get("parameters") or {"type": "object", "properties": {}},
        )


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        pass

    async def close(self) -> None:
        return None


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            log.warning("Tool call arguments are not valid JSON", arguments=raw[:200])
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


class OllamaProvider(LLMProvider):
    """Direct Ollama API provider."""

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = OLLAMA_NATIVE_BASE_URL,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Ollama provider.

        Args:
            model: Ollama model name (e.g., 'llama3.2', 'qwen3:32b')
            base_url: Ollama API base URL
            temperature: Sampling temperature
            max_tokens: Max tokens to generate
            api_key: Optional API key (Ollama usually doesn't need one locally)
            client: Optional preconfigured HTTP client
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key

        self.client = client or httpx.AsyncClient(
            timeout=120.0,
            follow_redirects=True,
        )

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert messages to Ollama format."""
        result = []
        for msg in messages:
            entry: dict[str, Any] = {"role": msg.role, "content": msg.content or ""}
            if msg.role == "assistant" and msg.tool_calls:
                entry["tool_calls"] = [
                    {"function": {"name": call.name, "arguments": call.arguments}}
                    for call in msg.tool_calls
                ]
            elif msg.role == "tool" and msg.tool_name:
                entry["tool_name"] = msg.tool_name
            if msg.attachments:
                entry["images"] = [attachment.to_base64() for attachment in msg.attachments]
            result.append(entry)
        return result

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert tools to Ollama format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": tool.parameters or {},
                },
            }
            for tool in tools
            if tool.name
        ]

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion."""
        url = f"{self.base_url}/api/chat"

        options: dict[str, Any] = {
            "temperature": self.temperature if temperature is None else temperature,
        }
        if max_tokens or self.max_tokens:
            options["num_predict"] = max_tokens or self.max_tokens

        body: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "stream": False,
            "options": options,
        }
        if tools:
            body["tools"] = self._convert_tools(tools)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            log.debug("Calling Ollama", model=self.model, url=url, msg_count=len(messages))
            response = await self.client.post(url, json=body, headers=headers)
            log.debug("Ollama response status", status=response.status_code)

            if not response.is_success:
                raise LLMAPIError(
                    f"Ollama API error {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )

            data = response.json()
            return self._parse_response(data)
        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"Ollama HTTP error: {e}") from e
        except json.JSONDecodeError as e:
            raise LLMError(f"Ollama response decode error: {e}") from e
        except (AttributeError, TypeError, ValueError) as e:
            raise LLMError(f"Ollama returned an unexpected payload: {e}") from e

    def _parse_response(self, data: dict[str, Any]) -> LLMResponse:
        message = data.get("message") or {}
        tool_calls = []
        for tc in message.get("tool_calls") or []:
            function = tc.get("function") or {}
            tool_calls.append(ToolCall(
                id=str(tc.get("id") or f"call_{uuid.uuid4().hex[:12]}"),
                name=function.get("name", ""),
                arguments=_parse_arguments(function.get("arguments")),
            ))

        prompt_tokens = data.get("prompt_eval_count", 0) or 0
        completion_tokens = data.get("eval_count", 0) or 0
        return LLMResponse(
            content=message.get("content", "") or "",
            tool_calls=tool_calls,
            model=data.get("model", self.model),
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


class MockProvider(LLMProvider):
    """Offline provider for demos and scripted tests.

    Replies with the text after ``MOCK:response=`` in the latest user
    message, otherwise with a fixed default.
    """

    def __init__(self, response: str = "OK", model: str = "mock-model"):
        self.response = response
        self.model = model

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
        text = self.response
        if last_user[: len(MOCK_RESPONSE_PREFIX)].lower() == MOCK_RESPONSE_PREFIX.lower():
            text = last_user[len(MOCK_RESPONSE_PREFIX):]
        return LLMResponse(content=text, model=self.model)


def create_provider(
    provider: str = "ollama",
    model: str = "llama3.2",
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = 4096,
    mock_response: str = "OK",
) -> LLMProvider:
    """Create an LLM provider.

    Args:
        provider: Provider name (ollama, mock)
        model: Model name
        api_key: Optional API key
        base_url: Optional base URL
        temperature: Default temperature
        max_tokens: Default max tokens
        mock_response: Default reply of the mock provider

    Returns:
        Configured LLMProvider instance
    """
    name = (provider or "").strip().lower()
    if name == "ollama":
        return OllamaProvider(
            model=model,
            base_url=base_url or OLLAMA_NATIVE_BASE_URL,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=api_key,
        )
    if name == "mock":
        return MockProvider(response=mock_response)
    raise ConfigurationError(f"Provider '{provider}' not supported. Use 'ollama' or 'mock'.")
