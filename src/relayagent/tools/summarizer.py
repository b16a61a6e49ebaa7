import json
import logging
from typing import Any, Dict, Iterable, List

from openai import AsyncOpenAI

from .base import RemoteTool, ToolCapability, ToolExecutor
from ..errors import ToolExecutionError
from ..models import ToolDefinition

logger = logging.getLogger(__name__)

PROMPT_PARAMETER = "_prompt"
SUMMARIZER_TEMPERATURE = 0.3
SUMMARIZER_SYSTEM_PROMPT = (
    "You are a helpful assistant that summarizes tool execution results based on "
    "user instructions. Provide clear, concise summaries that highlight the most "
    "relevant information."
)


class SummarizerTool:
    """Wraps a tool capability so its result is condensed by a secondary model.

    The wrapped tool's parameters are exposed unchanged, plus a required
    ``_prompt`` string telling the summarizer what to extract.
    """

    def __init__(self, wrapped: ToolCapability, model: str, client: AsyncOpenAI) -> None:
        self.wrapped = wrapped
        self.name = f"summarize_{wrapped.name}"
        self._model = model
        self._client = client

    def definition(self) -> Dict[str, Any]:
        function = self.wrapped.definition().get("function", {})
        wrapped_params = function.get("parameters") or {}
        properties = {
            PROMPT_PARAMETER: {
                "type": "string",
                "description": "Instructions for how to summarize the tool results",
            },
            **(wrapped_params.get("properties") or {}),
        }
        required = [PROMPT_PARAMETER, *(wrapped_params.get("required") or [])]
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": (
                    f"Execute {self.wrapped.name} and summarize the results. "
                    f"{function.get('description', '')}"
                ),
                "parameters": {"type": "object", "properties": properties, "required": required},
            },
        }

    def can_handle(self, function_name: str) -> bool:
        return function_name == self.name

    async def execute(self, parameters: Any) -> Dict[str, Any]:
        if not isinstance(parameters, dict):
            return {"success": False, "error": "Invalid parameters for summarizer tool"}

        prompt = parameters.get(PROMPT_PARAMETER)
        if not prompt or not isinstance(prompt, str):
            return {"success": False, "error": f"Missing required {PROMPT_PARAMETER} parameter"}

        wrapped_params = {k: v for k, v in parameters.items() if k != PROMPT_PARAMETER}

        try:
            logger.info("Executing %s for summarization", self.wrapped.name)
            tool_result = await self.wrapped.execute(wrapped_params)

            logger.info("Summarizing %s results with %s", self.wrapped.name, self._model)
            summary, tokens_used = await self._summarize(tool_result, prompt)
        except Exception as e:
            logger.error("Summarizer failed for %s: %s", self.wrapped.name, e)
            return {
                "success": False,
                "error": str(e) or type(e).__name__,
                "originalTool": self.wrapped.name,
            }

        return {
            "success": True,
            "message": "Tool executed and summarized successfully",
            "originalTool": self.wrapped.name,
            "originalResult": tool_result,
            "summary": summary,
            "tokensUsed": tokens_used,
        }

    async def _summarize(self, tool_result: Any, prompt: str) -> tuple[str, int]:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SUMMARIZER_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": (
                            f"{prompt}\n\nTool Result:\n"
                            f"{json.dumps(tool_result, indent=2, default=str)}"
                        ),
                    },
                ],
                temperature=SUMMARIZER_TEMPERATURE,
            )
        except Exception as e:
            raise ToolExecutionError(f"Summarization failed: {str(e) or type(e).__name__}") from e

        summary = "No summary generated"
        if response.choices and response.choices[0].message.content:
            summary = response.choices[0].message.content
        usage = getattr(response, "usage", None)
        tokens_used = (usage.total_tokens if usage else 0) or 0
        return summary, tokens_used


def create_summarizer_tools(
    tools: Iterable[ToolDefinition],
    model: str,
    client: AsyncOpenAI,
    executor: ToolExecutor,
) -> List[SummarizerTool]:
    """Build one summarize_<name> variant per remote tool."""
    return [SummarizerTool(RemoteTool(tool, executor), model, client) for tool in tools]
