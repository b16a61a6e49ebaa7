import logging
from typing import Any, Dict, List

import openai
from openai import AsyncOpenAI

from ..errors import (
    ContextLengthExceededError,
    MalformedModelRequestError,
    ModelInvocationError,
    ModelRateLimitError,
)
from ..models import ModelResponse, ToolCallRequest

logger = logging.getLogger(__name__)


def validate_model_request(messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> None:
    """Reject requests that can only come from a programming error."""
    if not messages:
        raise ValueError("OpenAI request requires at least one message")
    if messages[0].get("role") != "system":
        raise ValueError("First message must be a system message")
    for tool in tools or []:
        if not (tool.get("function") or {}).get("name"):
            raise ValueError("Invalid tool definition: missing function name")


def classify_model_error(error: Exception) -> ModelInvocationError:
    """Map a client failure onto the engine's model-invocation error kinds."""
    message = str(error)
    lowered = message.lower()
    code = getattr(error, "code", None)

    if isinstance(error, openai.RateLimitError) or "rate limit" in lowered:
        return ModelRateLimitError(f"OpenAI rate limit exceeded: {message}")
    if code == "context_length_exceeded" or "context length" in lowered:
        return ContextLengthExceededError(f"OpenAI context length exceeded: {message}")
    if isinstance(error, openai.BadRequestError) or "invalid request" in lowered:
        return MalformedModelRequestError(f"Invalid OpenAI request: {message}")
    return ModelInvocationError(f"OpenAI API call failed: {message or type(error).__name__}")


def parse_model_response(response: Any) -> ModelResponse:
    """Normalize a chat-completions response into a ModelResponse."""
    choices = getattr(response, "choices", None)
    if not choices:
        raise ValueError("Invalid OpenAI response: missing choices array")
    message = getattr(choices[0], "message", None)
    if message is None:
        raise ValueError("Invalid OpenAI response: missing message in choices")

    tool_calls = [
        ToolCallRequest(
            id=call.id,
            function_name=call.function.name,
            raw_arguments=call.function.arguments or "",
        )
        for call in (getattr(message, "tool_calls", None) or [])
    ]

    usage = getattr(response, "usage", None)
    used_tokens = (getattr(usage, "total_tokens", 0) if usage is not None else 0) or 0

    return ModelResponse(
        content=getattr(message, "content", None) or None,
        tool_calls=tool_calls,
        used_tokens=used_tokens,
    )


class ModelInvoker:
    """One chat-completions exchange: validate, call, normalize, classify failures.

    Nothing is retried here; ``max_retries`` on the AsyncOpenAI client is the
    only retry policy.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_request_params(
        self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            params["tools"] = tools
        return params

    async def invoke(
        self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]
    ) -> ModelResponse:
        """Make one chat-completions call.

        Args:
            messages: Conversation with the system turn first.
            tools: Catalog in OpenAI tool schema; omitted from the request when empty.

        Returns:
            ModelResponse: Text, tool calls and token usage of the reply.

        Raises:
            ValueError: The request itself is malformed.
            ModelInvocationError: The call failed (see its subclasses).
        """
        validate_model_request(messages, tools)

        logger.debug(
            "Calling %s with %d messages and %d tools",
            self.model,
            len(messages),
            len(tools),
        )
        try:
            response = await self._client.chat.completions.create(
                **self.build_request_params(messages, tools)
            )
            return parse_model_response(response)
        except Exception as e:
            error = classify_model_error(e)
            logger.error("%s", error)
            raise error from e
