import logging
from typing import Any, Dict, List

from ..models import MemorySearchOptions
from ..services.memory import MemoryRepository
from . import params

logger = logging.getLogger(__name__)


def _schema(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


_ID = {"type": "string", "description": "The memory ID"}


class MemoryTool:
    """Base for internal tools backed by the memory repository.

    Subclasses implement ``definition`` and ``run``. Parameter validation
    errors (ValueError) are reported as ``success: False``; anything else
    propagates to the aggregator.
    """

    name = ""

    def __init__(self, memory: MemoryRepository) -> None:
        self.memory = memory

    def can_handle(self, function_name: str) -> bool:
        return function_name == self.name

    def definition(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def run(self, parameters: Any) -> Dict[str, Any]:
        raise NotImplementedError

    async def execute(self, parameters: Any) -> Dict[str, Any]:
        try:
            return await self.run(parameters)
        except ValueError as e:
            return {"success": False, "error": str(e)}


class MemoryRememberTool(MemoryTool):
    name = "agentmemory_remember"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Store a new memory with optional importance and tags",
            {
                "sentence": {"type": "string", "description": "The memory content to store"},
                "importance": {
                    "type": "number",
                    "description": "Importance score between 0 and 1 (optional)",
                    "minimum": 0,
                    "maximum": 1,
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tags for categorizing the memory (mandatory, cannot be empty)",
                    "minItems": 1,
                },
            },
            ["sentence", "tags"],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        sentence = params.required_string(parameters, "sentence")
        importance = params.optional_number(parameters, "importance")
        tags = params.required_string_list(parameters, "tags")

        memory_id = await self.memory.remember(sentence, importance, tags)
        logger.info("Stored memory %s: %s", memory_id, sentence[:50])
        return {
            "success": True,
            "message": "Memory stored successfully",
            "memoryId": memory_id,
            "sentence": sentence,
        }


class MemoryRecallTool(MemoryTool):
    name = "agentmemory_recall"

    def definition(self) -> Dict[str, Any]:
        return _schema(self.name, "Recall a specific memory by its ID", {"id": _ID}, ["id"])

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memory_id = params.required_string(parameters, "id")
        item = await self.memory.recall(memory_id)
        logger.info("Recalled memory %s (found=%s)", memory_id, item is not None)
        return {
            "success": True,
            "memory": item.to_dict() if item is not None else None,
            "found": item is not None,
        }


class MemorySearchTool(MemoryTool):
    name = "agentmemory_search"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Search memories with flexible filtering and sorting. All parameters are optional; "
            "provide at least one search criteria (content, contentRegex, tags, or tagsRegex) "
            "for meaningful results.",
            {
                "content": {"type": "string", "description": "Text to match against memory content"},
                "contentRegex": {"type": "string", "description": "Regular expression for memory content"},
                "tags": {"type": "array", "items": {"type": "string"}, "description": "Filter by tags"},
                "tagsRegex": {"type": "string", "description": "Regular expression for memory tags"},
                "sortBy": {"type": "string", "enum": ["importance", "timestamp", "both"]},
                "sortOrder": {"type": "string", "enum": ["asc", "desc"]},
                "limit": {
                    "type": "number",
                    "description": "Maximum number of results (default: 10)",
                    "minimum": 1,
                    "maximum": 100,
                },
            },
            [],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        limit = params.optional_number(parameters, "limit")
        options = MemorySearchOptions(
            content=params.optional_string(parameters, "content"),
            content_regex=params.optional_string(parameters, "contentRegex"),
            tags=params.optional_string_list(parameters, "tags"),
            tags_regex=params.optional_string(parameters, "tagsRegex"),
            sort_by=params.optional_string(parameters, "sortBy"),
            sort_order=params.optional_string(parameters, "sortOrder"),
            limit=int(limit) if limit else 10,
        )

        results = await self.memory.search(options)
        logger.info("Memory search %s returned %d results", options.to_dict(), len(results))
        return {
            "success": True,
            "memories": [item.to_dict() for item in results],
            "count": len(results),
            "searchOptions": options.to_dict(),
        }


class MemoryForgetTool(MemoryTool):
    name = "agentmemory_forget"

    def definition(self) -> Dict[str, Any]:
        return _schema(self.name, "Remove a memory completely by ID", {"id": _ID}, ["id"])

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memory_id = params.required_string(parameters, "id")
        deleted = await self.memory.forget(memory_id)
        return {
            "success": deleted,
            "message": "Memory deleted successfully" if deleted else "Memory not found",
            "deletedId": memory_id,
        }


class MemoryGetShortTermTool(MemoryTool):
    name = "agentmemory_get_short_term"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Get short-term memories for prompt inclusion (within token capacity)",
            {},
            [],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memories = self.memory.get_short_term_memories()
        return {
            "success": True,
            "memories": [item.to_dict() for item in memories],
            "count": len(memories),
        }


class MemoryAddToShortTermTool(MemoryTool):
    name = "agentmemory_add_to_short_term"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Add a memory to short-term storage (LRU management)",
            {"id": _ID},
            ["id"],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memory_id = params.required_string(parameters, "id")
        added = await self.memory.add_to_short_term_memory(memory_id)
        return {
            "success": added,
            "message": (
                "Memory added to short-term storage"
                if added
                else "Memory not found or already in short-term"
            ),
            "memoryId": memory_id,
        }


class MemoryEditImportanceTool(MemoryTool):
    name = "agentmemory_edit_importance"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Edit the importance score of an existing memory",
            {
                "id": _ID,
                "importance": {
                    "type": "number",
                    "description": "New importance score (0-1)",
                    "minimum": 0,
                    "maximum": 1,
                },
            },
            ["id", "importance"],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memory_id = params.required_string(parameters, "id")
        importance = params.required_number(parameters, "importance")
        updated = await self.memory.edit_importance(memory_id, importance)
        return {
            "success": updated,
            "message": "Importance updated successfully" if updated else "Memory not found",
            "memoryId": memory_id,
            "newImportance": importance,
        }


class MemoryEditContentTool(MemoryTool):
    name = "agentmemory_edit_content"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Edit the content/sentence of an existing memory",
            {"id": _ID, "sentence": {"type": "string", "description": "New memory sentence"}},
            ["id", "sentence"],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memory_id = params.required_string(parameters, "id")
        sentence = params.required_string(parameters, "sentence")
        updated = await self.memory.edit_content(memory_id, sentence)
        return {
            "success": updated,
            "message": "Content updated successfully" if updated else "Memory not found",
            "memoryId": memory_id,
            "newSentence": sentence,
        }


class MemoryAddTagTool(MemoryTool):
    name = "agentmemory_add_tag"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Add a tag to an existing memory",
            {"id": _ID, "tag": {"type": "string", "description": "Tag to add"}},
            ["id", "tag"],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memory_id = params.required_string(parameters, "id")
        tag = params.required_string(parameters, "tag")
        added = await self.memory.add_tag(memory_id, tag)
        return {
            "success": added,
            "message": "Tag added successfully" if added else "Memory not found or tag already exists",
            "memoryId": memory_id,
            "tag": tag,
        }


class MemoryRemoveTagTool(MemoryTool):
    name = "agentmemory_remove_tag"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Remove a tag from an existing memory (fails if it would leave the memory without tags)",
            {"id": _ID, "tag": {"type": "string", "description": "Tag to remove"}},
            ["id", "tag"],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memory_id = params.required_string(parameters, "id")
        tag = params.required_string(parameters, "tag")
        removed = await self.memory.remove_tag(memory_id, tag)
        return {
            "success": removed,
            "message": "Tag removed successfully" if removed else "Memory not found or tag does not exist",
            "memoryId": memory_id,
            "tag": tag,
        }


class MemoryReplaceTagsTool(MemoryTool):
    name = "agentmemory_replace_tags"

    def definition(self) -> Dict[str, Any]:
        return _schema(
            self.name,
            "Replace all tags for an existing memory with new tags",
            {
                "id": _ID,
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "New tags array (cannot be empty)",
                    "minItems": 1,
                },
            },
            ["id", "tags"],
        )

    async def run(self, parameters: Any) -> Dict[str, Any]:
        memory_id = params.required_string(parameters, "id")
        tags = params.required_string_list(parameters, "tags")
        replaced = await self.memory.replace_tags(memory_id, tags)
        return {
            "success": replaced,
            "message": "Tags replaced successfully" if replaced else "Memory not found",
            "memoryId": memory_id,
            "newTags": tags,
        }


MEMORY_TOOL_CLASSES = (
    MemoryRememberTool,
    MemoryRecallTool,
    MemorySearchTool,
    MemoryForgetTool,
    MemoryGetShortTermTool,
    MemoryAddToShortTermTool,
    MemoryEditImportanceTool,
    MemoryEditContentTool,
    MemoryAddTagTool,
    MemoryRemoveTagTool,
    MemoryReplaceTagsTool,
)


def build_memory_tools(memory: MemoryRepository) -> List[MemoryTool]:
    """Instantiate every memory tool against ``memory``."""
    return [cls(memory) for cls in MEMORY_TOOL_CLASSES]
