import json

import httpx
import pytest

from notabene.exceptions import ConfigurationError, LLMAPIError
from notabene.llm import (
    Attachment,
    Message,
    MockProvider,
    OllamaProvider,
    ToolCall,
    ToolDefinition,
    create_provider,
)


def test_create_provider_supports_ollama():
    provider = create_provider(
        provider="ollama",
        model="llama3.2",
        base_url="http://localhost:11434/",
    )
    assert isinstance(provider, OllamaProvider)
    assert provider.model == "llama3.2"
    assert provider.base_url == "http://localhost:11434"


def test_create_provider_defaults_to_local_ollama():
    provider = create_provider(provider="Ollama", model="qwen3")
    assert isinstance(provider, OllamaProvider)
    assert provider.base_url == "http://127.0.0.1:11434"


def test_create_provider_supports_mock():
    provider = create_provider(provider="mock", mock_response="hi")
    assert isinstance(provider, MockProvider)
    assert provider.response == "hi"


def test_create_provider_rejects_unknown_provider():
    with pytest.raises(ConfigurationError):
        create_provider(provider="openai", model="gpt-4o-mini")


@pytest.mark.asyncio
async def test_mock_provider_echoes_scripted_reply():
    provider = MockProvider(response="default")

    scripted = await provider.complete([Message(role="user", content="MOCK:response=Hello there")])
    plain = await provider.complete([Message(role="user", content="anything")])

    assert scripted.content == "Hello there"
    assert scripted.tool_calls == []
    assert plain.content == "default"


@pytest.mark.asyncio
async def test_ollama_provider_sends_history_and_tools():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "model": "llama3.2",
                "message": {"role": "assistant", "content": "Hi!"},
                "prompt_eval_count": 10,
                "eval_count": 4,
            },
        )

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = OllamaProvider(model="llama3.2", base_url="http://ollama.test", client=client)
    messages = [
        Message(role="system", content="sys"),
        Message(role="user", content="look", attachments=[Attachment("a.png", "image/png", b"\x89PNG")]),
        Message(
            role="assistant",
            content="",
            tool_calls=[ToolCall(id="1", name="bash", arguments={"command": "ls"})],
        ),
        Message(role="tool", content="a.png", tool_call_id="1", tool_name="bash"),
    ]
    tools = [ToolDefinition(name="bash", description="Run", parameters={"type": "object", "properties": {}})]

    response = await provider.complete(messages, tools=tools)
    await provider.close()

    body = captured["body"]
    assert captured["url"] == "http://ollama.test/api/chat"
    assert body["model"] == "llama3.2"
    assert body["stream"] is False
    assert body["messages"][1]["images"] == ["iVBORw=="]
    assert body["messages"][2]["tool_calls"] == [
        {"function": {"name": "bash", "arguments": {"command": "ls"}}}
    ]
    assert body["messages"][3]["tool_name"] == "bash"
    assert body["tools"][0]["function"]["name"] == "bash"
    assert response.content == "Hi!"
    assert response.usage["total_tokens"] == 14


@pytest.mark.asyncio
async def test_ollama_provider_parses_tool_calls():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "message": {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [
                        {"function": {"name": "bash", "arguments": {"command": "pwd"}}},
                        {"id": "call-2", "function": {"name": "set_cwd", "arguments": '{"path": "src"}'}},
                        {"function": {"name": "bash", "arguments": "not json"}},
                    ],
                },
            },
        )

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = OllamaProvider(base_url="http://ollama.test", client=client)

    response = await provider.complete([Message(role="user", content="where am I")])
    await provider.close()

    calls = response.tool_calls
    assert [c.name for c in calls] == ["bash", "set_cwd", "bash"]
    assert calls[0].arguments == {"command": "pwd"}
    assert calls[0].id.startswith("call_")
    assert calls[1].id == "call-2"
    assert calls[1].arguments == {"path": "src"}
    assert calls[2].arguments == {}
    assert len({c.id for c in calls}) == 3


@pytest.mark.asyncio
async def test_ollama_provider_raises_on_http_error_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="model not loaded")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = OllamaProvider(base_url="http://ollama.test", client=client)

    with pytest.raises(LLMAPIError) as exc_info:
        await provider.complete([Message(role="user", content="hi")])
    await provider.close()

    assert exc_info.value.status_code == 500
    assert "model not loaded" in str(exc_info.value)


@pytest.mark.asyncio
async def test_ollama_provider_wraps_connection_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = OllamaProvider(base_url="http://ollama.test", client=client)

    with pytest.raises(LLMAPIError):
        await provider.complete([Message(role="user", content="hi")])
    await provider.close()
