"""
Exception hierarchy for the orchestration engine.

Everything the engine raises out of ``run`` derives from AgentError. Tool-level
failures (ToolArgumentsError, ToolExecutionError) are caught by the dispatcher
and turned into tool-result payloads; they never terminate a session.
"""


class AgentError(Exception):
    """Base exception for all engine errors."""


class ModelInvocationError(AgentError):
    """Raised when the chat-completions call fails."""


class ModelRateLimitError(ModelInvocationError):
    """Raised when the model endpoint rejects the call for rate limiting."""


class ContextLengthExceededError(ModelInvocationError):
    """Raised when the conversation no longer fits the model's context window."""


class MalformedModelRequestError(ModelInvocationError):
    """Raised when the model endpoint rejects the request as invalid."""


class MaxIterationsError(AgentError):
    """Raised when every allowed iteration produced tool calls."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations
        super().__init__(
            f"Maximum iterations ({max_iterations}) reached without final response"
        )


class ToolArgumentsError(AgentError):
    """Raised when a tool call's arguments are not a JSON object."""


class ToolExecutionError(AgentError):
    """Raised by executors when a tool cannot be run."""
