"""relayagent: a multi-turn tool-calling orchestration engine for OpenAI chat models."""

from .errors import (
    AgentError,
    ContextLengthExceededError,
    MalformedModelRequestError,
    MaxIterationsError,
    ModelInvocationError,
    ModelRateLimitError,
)
from .models import AgentRequest, AgentResponse, request_from_dict

__all__ = [
    "AgentError",
    "AgentRequest",
    "AgentResponse",
    "ContextLengthExceededError",
    "MalformedModelRequestError",
    "MaxIterationsError",
    "ModelInvocationError",
    "ModelRateLimitError",
    "request_from_dict",
]
