import logging
from typing import Any, Dict, List

from ..errors import MaxIterationsError
from ..models import AgentRequest, AgentResponse, SessionState
from ..services.memory import MemoryRepository
from ..tools.aggregator import InternalToolAggregator
from .dispatcher import ToolCallDispatcher
from .messages import build_conversation_turns, build_system_message, clean_final_response
from .model import ModelInvoker

logger = logging.getLogger(__name__)


class IterationEngine:
    """Drives one request through the model / tool-call loop until a final answer.

    Each iteration rebuilds the system turn, makes exactly one model call and,
    if the model asked for tools, dispatches the whole batch before the next
    call. A response without tool calls ends the session; running out of
    iterations raises MaxIterationsError.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        dispatcher: ToolCallDispatcher,
        max_iterations: int,
        internal_tools: InternalToolAggregator | None = None,
        memory: MemoryRepository | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._invoker = invoker
        self._dispatcher = dispatcher
        self.max_iterations = max_iterations
        self._internal_tools = internal_tools
        self._memory = memory

    @property
    def memory(self) -> MemoryRepository | None:
        return self._memory

    def build_tools(
        self, request: AgentRequest, internal_handler: InternalToolAggregator | None
    ) -> List[Dict[str, Any]]:
        tools = [tool.to_openai() for tool in request.tools]
        if internal_handler is not None:
            tools.extend(internal_handler.list_definitions())
        return tools

    def build_system_content(
        self,
        request: AgentRequest,
        state: SessionState,
        memory: MemoryRepository | None,
    ) -> str:
        return build_system_message(
            request,
            iteration=state.iteration,
            max_iterations=state.max_iterations,
            max_tokens=self._invoker.max_tokens,
            has_tools=bool(state.current_tools),
            memory=memory,
        )

    def initialize_session(
        self,
        request: AgentRequest,
        internal_handler: InternalToolAggregator | None,
        memory: MemoryRepository | None,
    ) -> SessionState:
        state = SessionState(
            max_iterations=self.max_iterations,
            current_messages=[{"role": "system", "content": ""}],
            current_tools=self.build_tools(request, internal_handler),
        )
        state.current_messages[0]["content"] = self.build_system_content(request, state, memory)
        state.current_messages.extend(build_conversation_turns(request))
        return state

    async def run(
        self, request: AgentRequest, memory: MemoryRepository | None = None
    ) -> AgentResponse:
        """Run one session and return the final answer with accumulated token usage.

        Args:
            request: Agent identity, prior turns, tools and optional trigger.
            memory: Repository for this session; defaults to the engine's own.

        Returns:
            AgentResponse: Cleaned final text and the tokens used across all
            model calls.

        Raises:
            ModelInvocationError: the model call failed (or one of its subclasses).
            MaxIterationsError: every allowed iteration ended in tool calls.
        """
        memory = memory if memory is not None else self._memory
        handler = self._internal_tools.fork() if self._internal_tools is not None else None
        state = self.initialize_session(request, handler, memory)
        logger.info(
            "Session start agent=%s messages=%d tools=%d",
            request.agent.identifier,
            len(state.current_messages) - 1,
            len(state.current_tools),
        )

        while state.iteration <= state.max_iterations:
            state.current_messages[0] = {
                "role": "system",
                "content": self.build_system_content(request, state, memory),
            }

            result = await self._invoker.invoke(state.current_messages, state.current_tools)
            state.total_used_tokens += result.used_tokens
            logger.info(
                "Iteration %d/%d: %d tool calls, %d tokens (total %d)",
                state.iteration,
                state.max_iterations,
                len(result.tool_calls),
                result.used_tokens,
                state.total_used_tokens,
            )

            if not result.tool_calls:
                return AgentResponse(
                    content=clean_final_response(result.content),
                    used_tokens=state.total_used_tokens,
                )

            state.current_messages, state.current_tools = await self._dispatcher.dispatch(
                result, state.current_messages, state.current_tools, handler
            )
            state.iteration += 1

        logger.warning("Session exhausted %d iterations", state.max_iterations)
        raise MaxIterationsError(state.max_iterations)

    async def handle_message(
        self, request: AgentRequest, memory: MemoryRepository | None = None
    ) -> AgentResponse:
        return await self.run(request, memory)

    async def handle_trigger(
        self, request: AgentRequest, memory: MemoryRepository | None = None
    ) -> AgentResponse:
        if request.trigger is None:
            raise ValueError("Trigger request requires trigger information")
        return await self.run(request, memory)
