"""Conversation building: the per-iteration system turn, prior turns, final-text cleanup."""

import json
import logging
from typing import Any, Dict, List

from ..models import AgentRequest, MemoryItem
from ..services.memory import MemoryRepository

logger = logging.getLogger(__name__)

NO_RESPONSE_TEXT = "No response from OpenAI"

SENDER_FORMAT_INSTRUCTIONS = """IMPORTANT: Messages from users will be in JSON format containing sender information:
{
  "senderId": "string", // the ID of the sender
  "name": "string",     // the name of the sender
  "content": "string"   // the actual message content
}

When responding, always provide your final response as plain text (not JSON). Only use this JSON format to understand who sent each message."""

MEMORY_GUIDANCE = (
    "You have access to a persistent memory through the agentmemory_* tools. "
    "Store facts worth keeping with agentmemory_remember and look up earlier "
    "knowledge with agentmemory_search before asking the user again."
)


def format_memory_item(item: MemoryItem) -> str:
    tags = ", ".join(item.tags)
    return f"- [{item.id}] {item.sentence} (importance: {item.importance}, tags: {tags})"


def _short_term_snippets(memory: MemoryRepository) -> List[MemoryItem]:
    try:
        return list(memory.get_short_term_memories())
    except Exception as e:
        logger.warning("Short-term memory unavailable, continuing without it: %s", e)
        return []


def build_system_message(
    request: AgentRequest,
    iteration: int,
    max_iterations: int,
    max_tokens: int,
    has_tools: bool,
    memory: MemoryRepository | None = None,
) -> str:
    """Build the system turn from scratch for the given iteration.

    Rebuilt every iteration rather than patched so the iteration count and
    remaining-iteration guidance always match the current state.
    """
    parts: List[str] = []

    if request.agent.prompt:
        parts.append(request.agent.prompt + "\n\n")

    parts.append(SENDER_FORMAT_INSTRUCTIONS)
    parts.append(f"\n\nThis is iteration {iteration} of {max_iterations} for this conversation session.")
    parts.append(f"\nYou have a maximum of {max_tokens} tokens for your response.")

    if has_tools:
        remaining = max_iterations - iteration
        parts.append(f"\nYou have {remaining} remaining iterations to make tool calls if needed.")

    if memory is not None:
        parts.append(f"\n\n{MEMORY_GUIDANCE}")
        snippets = _short_term_snippets(memory)
        if snippets:
            parts.append("\n\nSHORT-TERM MEMORY:\n")
            parts.append("\n".join(format_memory_item(item) for item in snippets))

    if request.trigger is not None:
        trigger = request.trigger
        parts.append(
            f"\nYou are handling a webhook trigger (identifier: {trigger.identifier}, "
            f"name: {trigger.name}). Analyze the payload and decide which tools to call. "
            "If no action is needed, respond concisely."
        )
        if trigger.payload is not None:
            parts.append(f"\nTrigger payload:\n{json.dumps(trigger.payload, default=str)}")

    return "".join(parts)


def build_conversation_turns(request: AgentRequest) -> List[Dict[str, Any]]:
    """Convert prior request messages to chat turns (system turn excluded).

    Args:
        request: Inbound request whose ``messages`` are converted in order.

    Returns:
        List[Dict[str, Any]]: ``assistant`` turns for the agent's own messages and
        ``user`` turns carrying the sender JSON for everyone else. Messages
        without content are skipped.
    """
    turns: List[Dict[str, Any]] = []
    for message in request.messages:
        if not message.content:
            continue

        if message.sender.id == request.agent.identifier:
            turns.append({"role": "assistant", "content": message.content})
        else:
            turns.append(
                {
                    "role": "user",
                    "content": json.dumps(
                        {
                            "senderId": message.sender.id,
                            "name": message.sender.name or "Unknown",
                            "content": message.content,
                        }
                    ),
                }
            )
    return turns


def clean_final_response(content: str | None) -> str:
    """Unwrap a final answer the model returned as ``{"content": "..."}``.

    Text that is not a JSON object with a string ``content`` field is
    returned unchanged.
    """
    if not content:
        return NO_RESPONSE_TEXT

    try:
        parsed = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Final response is plain text")
        return content

    if isinstance(parsed, dict) and isinstance(parsed.get("content"), str):
        logger.debug(
            "Extracted content from JSON response (%d -> %d chars)",
            len(content),
            len(parsed["content"]),
        )
        return parsed["content"]

    return content
