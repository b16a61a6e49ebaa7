import json
import logging
import os
import shlex
from typing import Any, Dict, List

from mcp import StdioServerParameters
from mcp.client.session import ClientSession
from mcp.client.stdio import stdio_client

from ..errors import ToolExecutionError
from ..models import ServerInfo, ToolDefinition

logger = logging.getLogger(__name__)


class McpToolExecutor:
    """Remote tool executor backed by MCP servers spoken to over stdio.

    ``servers`` maps a server identifier to its startup command line. The
    designated fetch function is answered here: it lists one server's tools so
    the model can grow its catalog on demand.
    """

    def __init__(self, servers: Dict[str, str], fetch_function: str) -> None:
        self._servers = dict(servers)
        self.fetch_function = fetch_function
        self._tool_cache: Dict[str, List[ToolDefinition]] = {}

    def _server_params(self, server: str) -> StdioServerParameters | None:
        cmd = self._servers.get(server)
        if not cmd:
            logger.info("MCP server '%s' has no startup command configured; skipping", server)
            return None
        cmd_parts = shlex.split(cmd)
        if not cmd_parts:
            logger.warning("Invalid MCP command for '%s': %s", server, cmd)
            return None
        return StdioServerParameters(command=cmd_parts[0], args=cmd_parts[1:], env=dict(os.environ))

    def list_servers(self) -> List[ServerInfo]:
        return [ServerInfo(identifier=name, name=name) for name in self._servers]

    def fetch_tool_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.fetch_function,
            description=(
                "List the tools offered by a server so they can be called. Available servers: "
                + (", ".join(self._servers) or "none")
            ),
            parameters={
                "type": "object",
                "properties": {
                    "serverIdentifier": {
                        "type": "string",
                        "description": "Identifier of the server whose tools to list",
                        "enum": list(self._servers),
                    }
                },
                "required": ["serverIdentifier"],
            },
        )

    async def list_tools(self, server: str) -> List[ToolDefinition]:
        """Return the tool definitions of one server (cached after first load).

        Args:
            server: Configured server identifier.

        Returns:
            List[ToolDefinition]: Tools the server advertises.

        Raises:
            ToolExecutionError: The server is not configured.
        """
        if server in self._tool_cache:
            return self._tool_cache[server]

        params = self._server_params(server)
        if params is None:
            raise ToolExecutionError(f"Unknown server: {server}")

        async with stdio_client(params) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()
                tools_result = await session.list_tools()
                tools = [
                    ToolDefinition(
                        name=tool_info.name,
                        description=tool_info.description or "",
                        parameters=tool_info.inputSchema or {"type": "object", "properties": {}},
                    )
                    for tool_info in tools_result.tools
                ]

        self._tool_cache[server] = tools
        logger.info("Loaded %d tools from MCP server %s", len(tools), server)
        return tools

    async def _server_for_tool(self, name: str) -> str | None:
        for server in self._servers:
            try:
                tools = await self.list_tools(server)
            except (OSError, ConnectionError, TimeoutError, ToolExecutionError) as e:
                logger.warning("Failed to list tools on MCP server '%s': %s", server, e)
                continue
            if any(tool.name == name for tool in tools):
                return server
        return None

    async def execute(self, function_name: str, parameters: Dict[str, Any]) -> Any:
        """Run a remote function, or answer the fetch function locally.

        Args:
            function_name: Tool to call, or the configured fetch function.
            parameters: Parsed call arguments.

        Returns:
            Any: ``{"tools": [...]}`` for the fetch function, otherwise the
            tool's first text content, decoded from JSON when possible.

        Raises:
            ToolExecutionError: No server offers the tool, or the tool
                reported an error.
        """
        if function_name == self.fetch_function:
            server = parameters.get("serverIdentifier")
            if not isinstance(server, str) or not server:
                raise ToolExecutionError("Missing required parameter: serverIdentifier")
            tools = await self.list_tools(server)
            return {
                "tools": [
                    {"name": t.name, "description": t.description, "parameters": t.parameters}
                    for t in tools
                ]
            }

        server = await self._server_for_tool(function_name)
        if server is None:
            raise ToolExecutionError(f"Tool {function_name} not found on any MCP server")

        params = self._server_params(server)
        logger.info("Calling MCP tool %s on server %s", function_name, server)
        async with stdio_client(params) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()
                result = await session.call_tool(function_name, parameters)

        text = ""
        if result.content:
            text = getattr(result.content[0], "text", None) or ""
        if getattr(result, "isError", False):
            raise ToolExecutionError(text or f"MCP tool {function_name} reported an error")
        return decode_tool_text(text)


def decode_tool_text(text: str) -> Any:
    """Return parsed JSON when the tool answered with JSON text, else the text itself."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text
