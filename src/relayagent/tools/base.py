from typing import Any, Dict, Protocol, runtime_checkable

from ..models import ToolDefinition


@runtime_checkable
class ToolExecutor(Protocol):
    """Remote tool provider: runs a named function with JSON parameters."""

    async def execute(self, function_name: str, parameters: Dict[str, Any]) -> Any:
        ...


@runtime_checkable
class ToolCapability(Protocol):
    """Uniform interface over remote, internal and summarizer-wrapped tools."""

    name: str

    def definition(self) -> Dict[str, Any]:
        ...

    def can_handle(self, function_name: str) -> bool:
        ...

    async def execute(self, parameters: Dict[str, Any]) -> Any:
        ...


class RemoteTool:
    """Capability view of one remote tool, delegating to the shared executor."""

    def __init__(self, tool: ToolDefinition, executor: ToolExecutor) -> None:
        self.name = tool.name
        self.tool = tool
        self._executor = executor

    def definition(self) -> Dict[str, Any]:
        return self.tool.to_openai()

    def can_handle(self, function_name: str) -> bool:
        return function_name == self.name

    async def execute(self, parameters: Dict[str, Any]) -> Any:
        return await self._executor.execute(self.name, parameters)
