import logging
from typing import Any, Dict, Iterable, List

from .base import ToolCapability

logger = logging.getLogger(__name__)


class InternalToolAggregator:
    """Routes locally handled function calls to the first capability claiming them.

    Tools are kept in registration order. ``fork`` gives each session its own
    copy so tools registered mid-session (summarizer variants) stay local to it.
    """

    def __init__(self, tools: Iterable[ToolCapability] | None = None) -> None:
        self._tools: List[ToolCapability] = list(tools or [])

    def can_handle(self, function_name: str) -> bool:
        return any(tool.can_handle(function_name) for tool in self._tools)

    async def execute(self, function_name: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Execute ``function_name`` locally; failures come back as ``success: False``.

        Args:
            function_name: Function requested by the model.
            parameters: Parsed call arguments.

        Returns:
            Dict[str, Any]: The tool's result, or ``{success, error, functionName}``
            when no tool claims the name or the tool raised.
        """
        tool = self.get_tool_for(function_name)
        if tool is None:
            return {
                "success": False,
                "error": f"No tool found for function: {function_name}",
                "functionName": function_name,
            }

        try:
            return await tool.execute(parameters)
        except Exception as e:
            logger.error("Internal tool %s failed: %s", function_name, e)
            return {
                "success": False,
                "error": str(e) or type(e).__name__,
                "functionName": function_name,
            }

    def list_definitions(self) -> List[Dict[str, Any]]:
        return [tool.definition() for tool in self._tools]

    def supported_functions(self) -> List[str]:
        return [tool.name for tool in self._tools]

    def tool_count(self) -> int:
        return len(self._tools)

    def add_tool(self, tool: ToolCapability) -> None:
        self._tools.append(tool)

    def remove_tool(self, name: str) -> bool:
        """Remove the first tool registered under ``name``.

        Returns:
            bool: True if a tool was removed.
        """
        for index, tool in enumerate(self._tools):
            if tool.name == name:
                del self._tools[index]
                return True
        return False

    def get_tool(self, name: str) -> ToolCapability | None:
        for tool in self._tools:
            if tool.name == name:
                return tool
        return None

    def get_tool_for(self, function_name: str) -> ToolCapability | None:
        """Return the first tool whose ``can_handle`` claims ``function_name``, if any."""
        for tool in self._tools:
            if tool.can_handle(function_name):
                return tool
        return None

    def fork(self) -> "InternalToolAggregator":
        """Return a copy sharing the current tools; later additions stay local to it.

        Returns:
            InternalToolAggregator: Session-scoped handler.
        """
        return InternalToolAggregator(self._tools)
