import asyncio
import json
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

from relayagent.agent.catalog import ToolCatalogMutator
from relayagent.agent.dispatcher import ToolCallDispatcher, parse_tool_arguments
from relayagent.errors import ToolArgumentsError
from relayagent.models import ModelResponse, ToolCallRequest
from relayagent.tools.aggregator import InternalToolAggregator


class EchoTool:
    """Internal capability that echoes its parameters back."""

    name = "local_echo"

    def definition(self) -> Dict[str, Any]:
        return {"type": "function", "function": {"name": self.name, "parameters": {}}}

    def can_handle(self, function_name: str) -> bool:
        return function_name == self.name

    async def execute(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        return {"success": True, "echo": parameters}


@pytest.fixture
def executor() -> MagicMock:
    executor = MagicMock()
    executor.execute = AsyncMock()
    return executor


@pytest.fixture
def dispatcher(executor) -> ToolCallDispatcher:
    return ToolCallDispatcher(executor, ToolCatalogMutator("cubicler_fetch_server_tools"))


def _response(*calls) -> ModelResponse:
    return ModelResponse(
        content=None,
        tool_calls=[ToolCallRequest(id=i, function_name=n, raw_arguments=a) for i, n, a in calls],
    )


def test_parse_arguments() -> None:
    assert parse_tool_arguments('{"city": "Paris"}', "getWeather") == {"city": "Paris"}
    assert parse_tool_arguments("", "ping") == {}
    assert parse_tool_arguments("   ", "ping") == {}


def test_parse_arguments_invalid_json() -> None:
    with pytest.raises(ToolArgumentsError, match="Invalid JSON arguments for tool getWeather"):
        parse_tool_arguments("{city: Paris", "getWeather")


def test_parse_arguments_non_object() -> None:
    with pytest.raises(ToolArgumentsError, match="expected a JSON object"):
        parse_tool_arguments("[1, 2]", "getWeather")


@pytest.mark.asyncio
async def test_dispatch_appends_assistant_and_results_in_order(dispatcher, executor) -> None:
    executor.execute.side_effect = [{"temp": 20}, {"temp": 25}]
    messages = [{"role": "system", "content": "sys"}]

    messages, tools = await dispatcher.dispatch(
        _response(
            ("call_a", "getWeather", '{"city": "Paris"}'),
            ("call_b", "getWeather", '{"city": "Rome"}'),
        ),
        messages,
        [],
    )

    assistant = messages[1]
    assert assistant["role"] == "assistant"
    assert [c["id"] for c in assistant["tool_calls"]] == ["call_a", "call_b"]
    assert [m["tool_call_id"] for m in messages[2:]] == ["call_a", "call_b"]
    assert json.loads(messages[2]["content"]) == {"temp": 20}
    assert json.loads(messages[3]["content"]) == {"temp": 25}
    assert tools == []
    executor.execute.assert_any_await("getWeather", {"city": "Paris"})


@pytest.mark.asyncio
async def test_failing_call_does_not_affect_siblings(dispatcher, executor) -> None:
    executor.execute.side_effect = [TimeoutError("timeout"), {"ok": True}]

    messages, _ = await dispatcher.dispatch(
        _response(("c1", "getWeather", "{}"), ("c2", "getTime", "{}")),
        [{"role": "system", "content": "sys"}],
        [],
    )

    assert json.loads(messages[2]["content"]) == {
        "error": "Failed to execute getWeather: timeout",
        "toolCallId": "c1",
    }
    assert json.loads(messages[3]["content"]) == {"ok": True}


@pytest.mark.asyncio
async def test_bad_arguments_become_error_result(dispatcher, executor) -> None:
    messages, _ = await dispatcher.dispatch(
        _response(("c1", "getWeather", "not json")),
        [{"role": "system", "content": "sys"}],
        [],
    )

    payload = json.loads(messages[-1]["content"])
    assert payload["toolCallId"] == "c1"
    assert payload["error"].startswith("Failed to execute getWeather: Invalid JSON arguments")
    executor.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_exception_without_message_reports_unknown(dispatcher, executor) -> None:
    executor.execute.side_effect = RuntimeError()

    result = await dispatcher.execute_call(ToolCallRequest("c1", "getWeather", "{}"))

    assert result.payload["error"] == "Failed to execute getWeather: Unknown error"


@pytest.mark.asyncio
async def test_internal_handler_takes_precedence(dispatcher, executor) -> None:
    handler = InternalToolAggregator([EchoTool()])

    messages, _ = await dispatcher.dispatch(
        _response(("c1", "local_echo", '{"x": 1}'), ("c2", "getWeather", "{}")),
        [{"role": "system", "content": "sys"}],
        [],
        handler,
    )

    assert json.loads(messages[2]["content"]) == {"success": True, "echo": {"x": 1}}
    executor.execute.assert_awaited_once_with("getWeather", {})


@pytest.mark.asyncio
async def test_parallel_dispatch_keeps_emission_order(executor) -> None:
    async def slow_first(name: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(0.05 if parameters["n"] == 1 else 0)
        return {"n": parameters["n"]}

    executor.execute.side_effect = slow_first
    dispatcher = ToolCallDispatcher(
        executor, ToolCatalogMutator("cubicler_fetch_server_tools"), parallel=True
    )

    messages, _ = await dispatcher.dispatch(
        _response(("c1", "work", '{"n": 1}'), ("c2", "work", '{"n": 2}'), ("c3", "work", '{"n": 3}')),
        [{"role": "system", "content": "sys"}],
        [],
    )

    assert [m["tool_call_id"] for m in messages[2:]] == ["c1", "c2", "c3"]
    assert [json.loads(m["content"])["n"] for m in messages[2:]] == [1, 2, 3]


@pytest.mark.asyncio
async def test_fetch_result_grows_catalog(dispatcher, executor, weather_tool) -> None:
    executor.execute.return_value = {
        "tools": [
            {"name": "getWeather", "description": "weather", "parameters": weather_tool.parameters}
        ]
    }
    initial = [{"type": "function", "function": {"name": "cubicler_fetch_server_tools"}}]

    _, tools = await dispatcher.dispatch(
        _response(("c1", "cubicler_fetch_server_tools", '{"serverIdentifier": "weather"}')),
        [{"role": "system", "content": "sys"}],
        initial,
    )

    assert [t["function"]["name"] for t in tools] == [
        "cubicler_fetch_server_tools",
        "getWeather",
    ]
    assert len(initial) == 1


@pytest.mark.asyncio
async def test_dispatch_without_tool_calls_is_rejected(dispatcher) -> None:
    with pytest.raises(ValueError):
        await dispatcher.dispatch(ModelResponse(content="done"), [], [])
