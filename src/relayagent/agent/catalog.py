import logging
from typing import Any, Dict, List

from openai import AsyncOpenAI

from ..models import tools_from_list
from ..tools.aggregator import InternalToolAggregator
from ..tools.base import ToolExecutor
from ..tools.summarizer import create_summarizer_tools

logger = logging.getLogger(__name__)


class ToolCatalogMutator:
    """Grows the session's tool catalog when the model lists more tools.

    The catalog is append-only: tools are never removed or deduplicated once
    granted.
    """

    def __init__(
        self,
        fetch_function: str,
        summarizer_model: str | None = None,
        summarizer_client: AsyncOpenAI | None = None,
    ) -> None:
        self.fetch_function = fetch_function
        self._summarizer_model = summarizer_model
        self._summarizer_client = summarizer_client

    @property
    def summarizer_enabled(self) -> bool:
        return bool(self._summarizer_model) and self._summarizer_client is not None

    def apply(
        self,
        function_name: str,
        result: Any,
        current_tools: List[Dict[str, Any]],
        executor: ToolExecutor,
        internal_handler: InternalToolAggregator | None = None,
    ) -> List[Dict[str, Any]]:
        """Return the catalog after folding in one tool result.

        Args:
            function_name: Function whose result is being folded in.
            result: That function's result payload.
            current_tools: Catalog before this result; never mutated.
            executor: Remote executor the summarizer variants delegate to.
            internal_handler: Session handler that receives summarizer variants.

        Returns:
            List[Dict[str, Any]]: ``current_tools`` itself when nothing changed,
            otherwise a new list with the fetched tools appended.
        """
        if function_name != self.fetch_function:
            return current_tools
        if not isinstance(result, dict) or not isinstance(result.get("tools"), list):
            return current_tools

        new_tools = tools_from_list(result["tools"])
        skipped = len(result["tools"]) - len(new_tools)
        if skipped:
            logger.warning("Skipped %d malformed tool entries from %s", skipped, function_name)
        updated = [*current_tools, *(tool.to_openai() for tool in new_tools)]
        logger.info("Added %d tools from %s", len(new_tools), function_name)

        if self.summarizer_enabled and internal_handler is not None:
            try:
                summarizers = create_summarizer_tools(
                    new_tools, self._summarizer_model, self._summarizer_client, executor
                )
                definitions = [tool.definition() for tool in summarizers]
            except Exception as e:
                logger.warning("Skipping summarizer tools for %s: %s", function_name, e)
            else:
                for tool in summarizers:
                    internal_handler.add_tool(tool)
                updated.extend(definitions)
                logger.info("Registered %d summarizer tools", len(summarizers))

        return updated
