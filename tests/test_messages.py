import json
from unittest.mock import MagicMock

from relayagent.agent.messages import (
    NO_RESPONSE_TEXT,
    build_conversation_turns,
    build_system_message,
    clean_final_response,
)
from relayagent.models import AgentMessage, MemoryItem, MessageSender, TriggerInfo


def test_system_message_includes_prompt_and_iteration(agent_request) -> None:
    """System turn carries the agent prompt and the iteration counters."""
    content = build_system_message(agent_request, 3, 10, 4096, has_tools=False)
    assert content.startswith("You are a test agent.")
    assert "IMPORTANT: Messages from users will be in JSON format" in content
    assert "This is iteration 3 of 10" in content
    assert "You have a maximum of 4096 tokens" in content
    assert "remaining iterations" not in content


def test_system_message_remaining_iterations_with_tools(agent_request) -> None:
    content = build_system_message(agent_request, 2, 10, 4096, has_tools=True)
    assert "You have 8 remaining iterations to make tool calls" in content

    last = build_system_message(agent_request, 10, 10, 4096, has_tools=True)
    assert "This is iteration 10 of 10" in last
    assert "You have 0 remaining iterations" in last


def test_system_message_without_prompt(agent_request) -> None:
    agent_request.agent.prompt = None
    content = build_system_message(agent_request, 1, 5, 100, has_tools=False)
    assert content.startswith("IMPORTANT:")


def test_system_message_is_pure(agent_request) -> None:
    """Same inputs produce the same system turn."""
    first = build_system_message(agent_request, 4, 10, 512, has_tools=True)
    second = build_system_message(agent_request, 4, 10, 512, has_tools=True)
    assert first == second


def test_system_message_appends_short_term_memory(agent_request) -> None:
    memory = MagicMock()
    memory.get_short_term_memories.return_value = [
        MemoryItem(id="m1", sentence="Alice prefers metric units", importance=0.8, tags=["prefs"]),
    ]
    content = build_system_message(agent_request, 1, 5, 100, has_tools=True, memory=memory)
    assert "SHORT-TERM MEMORY" in content
    assert "- [m1] Alice prefers metric units (importance: 0.8, tags: prefs)" in content


def test_system_message_memory_failure_degrades(agent_request) -> None:
    """A failing memory read leaves the turn without memory snippets."""
    memory = MagicMock()
    memory.get_short_term_memories.side_effect = RuntimeError("store offline")
    content = build_system_message(agent_request, 1, 5, 100, has_tools=False, memory=memory)
    assert "SHORT-TERM MEMORY" not in content
    assert "This is iteration 1 of 5" in content


def test_system_message_trigger_guidance(agent_request) -> None:
    agent_request.trigger = TriggerInfo(
        identifier="order-created", name="Order Created", payload={"orderId": 7}
    )
    content = build_system_message(agent_request, 1, 5, 100, has_tools=False)
    assert "webhook trigger (identifier: order-created, name: Order Created)" in content
    assert '{"orderId": 7}' in content


def test_conversation_turns_roles_and_sender_json(agent_request) -> None:
    agent_request.messages = [
        AgentMessage(sender=MessageSender(id="user-1", name="Alice"), content="Hello"),
        AgentMessage(sender=MessageSender(id="test-agent", name="Test Agent"), content="Hi there"),
        AgentMessage(sender=MessageSender(id="user-2"), content="Help?"),
        AgentMessage(sender=MessageSender(id="user-3"), content=None),
    ]
    turns = build_conversation_turns(agent_request)

    assert [t["role"] for t in turns] == ["user", "assistant", "user"]
    assert json.loads(turns[0]["content"]) == {
        "senderId": "user-1",
        "name": "Alice",
        "content": "Hello",
    }
    assert turns[1]["content"] == "Hi there"
    assert json.loads(turns[2]["content"])["name"] == "Unknown"


def test_clean_final_response_unwraps_content_field() -> None:
    raw = json.dumps({"content": "extracted", "other": "field"})
    assert clean_final_response(raw) == "extracted"


def test_clean_final_response_keeps_json_without_content() -> None:
    raw = json.dumps({"answer": "42"})
    assert clean_final_response(raw) == raw


def test_clean_final_response_keeps_non_string_content() -> None:
    raw = json.dumps({"content": {"nested": True}})
    assert clean_final_response(raw) == raw


def test_clean_final_response_plain_text_and_empty() -> None:
    assert clean_final_response("Just text") == "Just text"
    assert clean_final_response("[1, 2]") == "[1, 2]"
    assert clean_final_response(None) == NO_RESPONSE_TEXT
    assert clean_final_response("") == NO_RESPONSE_TEXT
