from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class AgentInfo:
    """Identity of the agent a request is addressed to."""

    identifier: str
    name: str = ""
    description: str = ""
    prompt: str | None = None


@dataclass
class MessageSender:
    id: str
    name: str | None = None


@dataclass
class AgentMessage:
    """One prior conversation turn as delivered by the transport."""

    sender: MessageSender
    content: str | None
    type: str = "text"


@dataclass
class ToolDefinition:
    """A callable function advertised to the model."""

    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_openai(self) -> Dict[str, Any]:
        """Return the OpenAI chat-completions tool schema for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ServerInfo:
    identifier: str
    name: str = ""
    description: str = ""


@dataclass
class TriggerInfo:
    """Webhook trigger metadata for trigger-initiated sessions."""

    identifier: str
    name: str = ""
    description: str = ""
    payload: Any = None


@dataclass
class AgentRequest:
    """Inbound conversational request driving one session."""

    agent: AgentInfo
    messages: List[AgentMessage] = field(default_factory=list)
    tools: List[ToolDefinition] = field(default_factory=list)
    servers: List[ServerInfo] = field(default_factory=list)
    trigger: TriggerInfo | None = None


@dataclass
class AgentResponse:
    content: str
    used_tokens: int
    type: str = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "content": self.content, "usedToken": self.used_tokens}


@dataclass(frozen=True)
class ToolCallRequest:
    """A model-issued tool call, arguments still unparsed."""

    id: str
    function_name: str
    raw_arguments: str

    def to_openai(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.function_name, "arguments": self.raw_arguments},
        }


@dataclass(frozen=True)
class ToolCallResult:
    """Outcome of one tool call; payload is a success value or an error dict."""

    id: str
    payload: Any


@dataclass
class ModelResponse:
    content: str | None
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    used_tokens: int = 0


@dataclass
class SessionState:
    """Per-request loop state, mutated in place until a terminal state."""

    max_iterations: int
    current_messages: List[Dict[str, Any]]
    current_tools: List[Dict[str, Any]]
    iteration: int = 1
    total_used_tokens: int = 0


@dataclass
class MemoryItem:
    id: str
    sentence: str
    importance: float
    tags: List[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sentence": self.sentence,
            "importance": self.importance,
            "tags": list(self.tags),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class MemorySearchOptions:
    content: str | None = None
    content_regex: str | None = None
    tags: List[str] | None = None
    tags_regex: str | None = None
    sort_by: str | None = None  # importance | timestamp | both
    sort_order: str | None = None  # asc | desc
    limit: int = 10

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"limit": self.limit}
        for key, value in (
            ("content", self.content),
            ("contentRegex", self.content_regex),
            ("tags", self.tags),
            ("tagsRegex", self.tags_regex),
            ("sortBy", self.sort_by),
            ("sortOrder", self.sort_order),
        ):
            if value is not None:
                data[key] = value
        return data


def _tool_from_dict(data: Dict[str, Any]) -> ToolDefinition:
    return ToolDefinition(
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        parameters=data.get("parameters") or {"type": "object", "properties": {}},
    )


def tools_from_list(raw: List[Any]) -> List[ToolDefinition]:
    """Build ToolDefinitions from wire dicts.

    Entries that are not mappings, or carry no non-empty string ``name``, are
    skipped: the model endpoint rejects nameless tools.
    """
    return [
        _tool_from_dict(item)
        for item in raw
        if isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"]
    ]


def request_from_dict(data: Dict[str, Any]) -> AgentRequest:
    """Build an AgentRequest from the camelCase wire payload."""
    agent_data = data.get("agent") or {}
    agent = AgentInfo(
        identifier=str(agent_data.get("identifier") or ""),
        name=str(agent_data.get("name") or ""),
        description=str(agent_data.get("description") or ""),
        prompt=agent_data.get("prompt"),
    )

    messages: List[AgentMessage] = []
    for msg in data.get("messages") or []:
        sender = msg.get("sender") or {}
        messages.append(
            AgentMessage(
                sender=MessageSender(id=str(sender.get("id") or ""), name=sender.get("name")),
                content=msg.get("content"),
                type=str(msg.get("type") or "text"),
            )
        )

    servers = [
        ServerInfo(
            identifier=str(s.get("identifier") or ""),
            name=str(s.get("name") or ""),
            description=str(s.get("description") or ""),
        )
        for s in data.get("servers") or []
    ]

    trigger = None
    trigger_data = data.get("trigger")
    if trigger_data:
        trigger = TriggerInfo(
            identifier=str(trigger_data.get("identifier") or ""),
            name=str(trigger_data.get("name") or ""),
            description=str(trigger_data.get("description") or ""),
            payload=trigger_data.get("payload"),
        )

    return AgentRequest(
        agent=agent,
        messages=messages,
        tools=tools_from_list(data.get("tools") or []),
        servers=servers,
        trigger=trigger,
    )
