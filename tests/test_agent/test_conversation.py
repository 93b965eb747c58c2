import pytest

from notabene.conversation import Conversation
from notabene.llm import Message, ToolCall


def test_system_prompt_is_pinned_first():
    conversation = Conversation("be brief")
    conversation.append(Message(role="user", content="hi"))

    conversation.set_system_prompt("be verbose")

    assert conversation.messages[0] == Message(role="system", content="be verbose")
    assert len(conversation) == 2


def test_system_messages_cannot_be_appended():
    conversation = Conversation()

    with pytest.raises(ValueError):
        conversation.append(Message(role="system", content="sneaky"))


def test_clear_keeps_only_the_system_prompt():
    conversation = Conversation("sys")
    conversation.append(Message(role="user", content="hi"))
    conversation.append(Message(role="assistant", content="hello"))

    conversation.clear()

    assert [m.role for m in conversation] == ["system"]


def test_clear_without_system_prompt_empties_history():
    conversation = Conversation()
    conversation.append(Message(role="user", content="hi"))

    conversation.clear()

    assert len(conversation) == 0
    assert conversation.system_message is None


def test_records_keep_user_and_assistant_text_only():
    conversation = Conversation("sys")
    conversation.append(Message(role="user", content="list files"))
    conversation.append(
        Message(
            role="assistant",
            content="",
            tool_calls=[ToolCall(id="1", name="bash", arguments={"command": "ls"})],
        )
    )
    conversation.append(Message(role="tool", content="a.txt", tool_call_id="1", tool_name="bash"))
    conversation.append(Message(role="assistant", content="There is a.txt"))

    assert conversation.to_records() == [
        {"role": "user", "content": "list files"},
        {"role": "assistant", "content": "There is a.txt"},
    ]


def test_load_records_replaces_history_and_skips_invalid_entries():
    conversation = Conversation("sys")
    conversation.append(Message(role="user", content="old"))

    loaded = conversation.load_records([
        {"role": "user", "content": "hello"},
        {"role": "tool", "content": "ignored"},
        {"role": "assistant", "content": ""},
        {"role": "assistant", "content": 42},
        {"content": "no role"},
        {"role": "assistant", "content": "hi there"},
    ])

    assert loaded == 2
    assert [(m.role, m.content) for m in conversation] == [
        ("system", "sys"),
        ("user", "hello"),
        ("assistant", "hi there"),
    ]
