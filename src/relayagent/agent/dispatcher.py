import asyncio
import json
import logging
from typing import Any, Dict, List, Tuple

from ..errors import ToolArgumentsError
from ..models import ModelResponse, ToolCallRequest, ToolCallResult
from ..tools.aggregator import InternalToolAggregator
from ..tools.base import ToolExecutor
from .catalog import ToolCatalogMutator

logger = logging.getLogger(__name__)

__all__ = ["ToolCallDispatcher", "ToolExecutor", "parse_tool_arguments"]


def parse_tool_arguments(raw_arguments: str, function_name: str) -> Dict[str, Any]:
    """Decode a tool call's argument string; an empty string means no arguments.

    Args:
        raw_arguments: JSON text emitted by the model for the call.
        function_name: Called function, used in error messages.

    Returns:
        Dict[str, Any]: Parsed parameters.

    Raises:
        ToolArgumentsError: The text is not JSON or not a JSON object.
    """
    if not raw_arguments or not raw_arguments.strip():
        return {}
    try:
        arguments = json.loads(raw_arguments)
    except json.JSONDecodeError as e:
        raise ToolArgumentsError(f"Invalid JSON arguments for tool {function_name}: {e}") from e
    if not isinstance(arguments, dict):
        raise ToolArgumentsError(
            f"Invalid arguments for tool {function_name}: expected a JSON object"
        )
    return arguments


class ToolCallDispatcher:
    """Executes every tool call of one model turn and records the results.

    Each call is isolated: whatever it raises becomes an error payload for that
    call only. Result messages always follow the order the model emitted the
    calls, also when ``parallel`` runs the executions concurrently.
    """

    def __init__(
        self,
        executor: ToolExecutor,
        catalog_mutator: ToolCatalogMutator,
        parallel: bool = False,
    ) -> None:
        self._executor = executor
        self._catalog_mutator = catalog_mutator
        self.parallel = parallel

    async def execute_call(
        self,
        call: ToolCallRequest,
        internal_handler: InternalToolAggregator | None = None,
    ) -> ToolCallResult:
        name = call.function_name
        try:
            parameters = parse_tool_arguments(call.raw_arguments, name)

            if internal_handler is not None and internal_handler.can_handle(name):
                logger.info("Executing internal tool: %s", name)
                payload = await internal_handler.execute(name, parameters)
            else:
                logger.info("Executing remote tool: %s", name)
                payload = await self._executor.execute(name, parameters)
        except Exception as e:
            logger.warning("Tool call %s (%s) failed: %s", call.id, name, e)
            payload = {
                "error": f"Failed to execute {name}: {str(e) or 'Unknown error'}",
                "toolCallId": call.id,
            }
        return ToolCallResult(id=call.id, payload=payload)

    async def _execute_all(
        self,
        calls: List[ToolCallRequest],
        internal_handler: InternalToolAggregator | None,
    ) -> List[ToolCallResult]:
        if self.parallel and len(calls) > 1:
            return list(
                await asyncio.gather(*(self.execute_call(c, internal_handler) for c in calls))
            )
        return [await self.execute_call(c, internal_handler) for c in calls]

    async def dispatch(
        self,
        response: ModelResponse,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        internal_handler: InternalToolAggregator | None = None,
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Run the turn's tool calls; return the extended conversation and catalog.

        Args:
            response: Model turn with at least one tool call.
            messages: Session conversation, extended in place.
            tools: Current catalog; not modified.
            internal_handler: Session-scoped internal tools, tried before the
                remote executor.

        Returns:
            Tuple of the conversation (with one assistant turn and one tool turn
            per call) and the possibly grown catalog.
        """
        if not response.tool_calls:
            raise ValueError("dispatch called without tool calls")

        messages.append(
            {
                "role": "assistant",
                "content": response.content,
                "tool_calls": [call.to_openai() for call in response.tool_calls],
            }
        )

        results = await self._execute_all(response.tool_calls, internal_handler)

        updated_tools = list(tools)
        for call, result in zip(response.tool_calls, results):
            updated_tools = self._catalog_mutator.apply(
                call.function_name,
                result.payload,
                updated_tools,
                self._executor,
                internal_handler,
            )
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": result.id,
                    "content": json.dumps(result.payload, default=str),
                }
            )

        logger.info(
            "Dispatched %d tool calls: %s",
            len(results),
            ", ".join(call.function_name for call in response.tool_calls),
        )
        return messages, updated_tools
