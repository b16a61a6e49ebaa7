import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Iterable, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from relayagent.models import AgentInfo, AgentMessage, AgentRequest, MessageSender, ToolDefinition


def _make_completion(
    content: str | None = None,
    tool_calls: Iterable[Tuple[str, str, str]] = (),
    total_tokens: int | None = 0,
) -> Any:
    calls = [
        SimpleNamespace(
            id=call_id,
            type="function",
            function=SimpleNamespace(name=name, arguments=arguments),
        )
        for call_id, name, arguments in tool_calls
    ]
    message = SimpleNamespace(content=content, tool_calls=calls or None)
    usage = SimpleNamespace(total_tokens=total_tokens) if total_tokens is not None else None
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


@pytest.fixture
def make_completion() -> Callable[..., Any]:
    """Factory for chat-completions responses shaped like the openai SDK objects."""
    return _make_completion


@pytest.fixture
def openai_client() -> MagicMock:
    """AsyncOpenAI stand-in; set ``chat.completions.create`` return/side effects per test."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def agent_request() -> AgentRequest:
    return AgentRequest(
        agent=AgentInfo(
            identifier="test-agent",
            name="Test Agent",
            description="Agent used in tests",
            prompt="You are a test agent.",
        ),
        messages=[
            AgentMessage(sender=MessageSender(id="user-1", name="Alice"), content="hi"),
        ],
        tools=[],
    )


@pytest.fixture
def weather_tool() -> ToolDefinition:
    return ToolDefinition(
        name="getWeather",
        description="Get the weather for a city",
        parameters={
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
        },
    )
