from unittest.mock import MagicMock, patch

import pytest

from relayagent.agent.catalog import ToolCatalogMutator
from relayagent.tools.aggregator import InternalToolAggregator

FETCH = "cubicler_fetch_server_tools"
EXISTING = [{"type": "function", "function": {"name": FETCH, "parameters": {}}}]
FETCH_RESULT = {
    "tools": [
        {"name": "weather_get", "description": "Weather", "parameters": {"type": "object", "properties": {}}},
        "not-a-tool",
        {"name": "weather_forecast", "description": "Forecast"},
    ]
}


def _names(tools):
    return [t["function"]["name"] for t in tools]


def test_other_functions_leave_catalog_untouched() -> None:
    mutator = ToolCatalogMutator(FETCH)
    assert mutator.apply("getWeather", FETCH_RESULT, EXISTING, MagicMock()) is EXISTING


@pytest.mark.parametrize("result", [{"error": "boom"}, {"tools": "nope"}, "text", None])
def test_fetch_without_tool_list_is_ignored(result) -> None:
    mutator = ToolCatalogMutator(FETCH)
    assert mutator.apply(FETCH, result, EXISTING, MagicMock()) == EXISTING


def test_fetch_appends_new_tools_and_skips_non_objects() -> None:
    mutator = ToolCatalogMutator(FETCH)

    updated = mutator.apply(FETCH, FETCH_RESULT, EXISTING, MagicMock())

    assert _names(updated) == [FETCH, "weather_get", "weather_forecast"]
    assert updated[2]["function"]["parameters"] == {"type": "object", "properties": {}}
    assert _names(EXISTING) == [FETCH]


def test_repeated_fetch_does_not_deduplicate() -> None:
    mutator = ToolCatalogMutator(FETCH)
    once = mutator.apply(FETCH, FETCH_RESULT, EXISTING, MagicMock())
    twice = mutator.apply(FETCH, FETCH_RESULT, once, MagicMock())
    assert _names(twice).count("weather_get") == 2


def test_summarizer_variants_registered_and_advertised() -> None:
    mutator = ToolCatalogMutator(FETCH, summarizer_model="gpt-4o-mini", summarizer_client=MagicMock())
    handler = InternalToolAggregator()

    updated = mutator.apply(FETCH, FETCH_RESULT, EXISTING, MagicMock(), handler)

    assert _names(updated) == [
        FETCH,
        "weather_get",
        "weather_forecast",
        "summarize_weather_get",
        "summarize_weather_forecast",
    ]
    assert handler.can_handle("summarize_weather_get")
    assert handler.tool_count() == 2


def test_summarizer_disabled_without_model() -> None:
    mutator = ToolCatalogMutator(FETCH, summarizer_model=None, summarizer_client=MagicMock())
    handler = InternalToolAggregator()

    updated = mutator.apply(FETCH, FETCH_RESULT, EXISTING, MagicMock(), handler)

    assert not mutator.summarizer_enabled
    assert handler.tool_count() == 0
    assert "summarize_weather_get" not in _names(updated)


def test_summarizer_failure_keeps_fetched_tools() -> None:
    mutator = ToolCatalogMutator(FETCH, summarizer_model="gpt-4o-mini", summarizer_client=MagicMock())
    handler = InternalToolAggregator()

    with patch(
        "relayagent.agent.catalog.create_summarizer_tools", side_effect=RuntimeError("boom")
    ):
        updated = mutator.apply(FETCH, FETCH_RESULT, EXISTING, MagicMock(), handler)

    assert _names(updated) == [FETCH, "weather_get", "weather_forecast"]
    assert handler.tool_count() == 0


def test_nameless_fetched_entries_are_skipped() -> None:
    mutator = ToolCatalogMutator(FETCH)
    result = {"tools": [{"description": "x"}, {"name": ""}, {"name": 7}, {"name": "ok_tool"}]}

    updated = mutator.apply(FETCH, result, EXISTING, MagicMock())

    assert _names(updated) == [FETCH, "ok_tool"]
