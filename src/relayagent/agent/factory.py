import logging
from typing import List

from openai import AsyncOpenAI

from ..services.mcp import McpToolExecutor
from ..services.memory import InMemoryRepository, MemoryRepository
from ..settings import Settings, get_settings
from ..tools.aggregator import InternalToolAggregator
from ..tools.base import ToolCapability, ToolExecutor
from ..tools.memory import build_memory_tools
from ..tools.summarizer import SummarizerTool
from .catalog import ToolCatalogMutator
from .dispatcher import ToolCallDispatcher
from .engine import IterationEngine
from .model import ModelInvoker

logger = logging.getLogger(__name__)


def make_openai_client(settings: Settings) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.openai_timeout_seconds,
        max_retries=settings.openai_max_retries,
    )


def build_internal_tools(
    memory: MemoryRepository | None,
    client: AsyncOpenAI,
    summarizer_model: str | None,
) -> InternalToolAggregator | None:
    """Collect the locally handled tools; None when there are none to offer."""
    tools: List[ToolCapability] = []
    if memory is not None:
        tools.extend(build_memory_tools(memory))
        if summarizer_model:
            tools.extend(SummarizerTool(tool, summarizer_model, client) for tool in list(tools))
    if not tools:
        return None
    return InternalToolAggregator(tools)


def build_engine(
    settings: Settings | None = None,
    client: AsyncOpenAI | None = None,
    executor: ToolExecutor | None = None,
    memory: MemoryRepository | None = None,
) -> IterationEngine:
    """Wire an IterationEngine from settings; explicit collaborators take precedence.

    Args:
        settings: Configuration; defaults to ``get_settings()``.
        client: Chat-completions client; built from settings when omitted.
        executor: Remote tool executor; an McpToolExecutor when omitted.
        memory: Memory repository; an InMemoryRepository when omitted and
            ``memory_enabled`` is set.

    Returns:
        IterationEngine: Ready to serve requests.
    """
    settings = settings or get_settings()
    client = client or make_openai_client(settings)
    executor = executor or McpToolExecutor(settings.mcp_servers, settings.fetch_tools_function)

    if memory is None and settings.memory_enabled:
        memory = InMemoryRepository(
            max_tokens=settings.memory_max_tokens,
            default_importance=settings.memory_default_importance,
        )

    internal_tools = build_internal_tools(memory, client, settings.summarizer_model)

    mutator = ToolCatalogMutator(
        settings.fetch_tools_function,
        summarizer_model=settings.summarizer_model,
        summarizer_client=client,
    )
    dispatcher = ToolCallDispatcher(executor, mutator, parallel=settings.parallel_tool_calls)
    invoker = ModelInvoker(
        client,
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.session_max_tokens,
    )

    logger.info(
        "Engine ready model=%s max_iterations=%d internal_tools=%d summarizer=%s",
        settings.model,
        settings.session_max_iteration,
        internal_tools.tool_count() if internal_tools else 0,
        settings.summarizer_model or "disabled",
    )
    return IterationEngine(
        invoker,
        dispatcher,
        max_iterations=settings.session_max_iteration,
        internal_tools=internal_tools,
        memory=memory,
    )


_ENGINE: IterationEngine | None = None


def get_engine() -> IterationEngine:
    """Return the process-wide engine, building it on first use."""
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = build_engine()
    return _ENGINE
