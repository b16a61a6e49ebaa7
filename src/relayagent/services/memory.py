import logging
import math
import re
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, List, Protocol, runtime_checkable

from ..models import MemoryItem, MemorySearchOptions

logger = logging.getLogger(__name__)

AVERAGE_TOKENS_PER_MEMORY = 80
METADATA_TOKEN_OVERHEAD = 10


@runtime_checkable
class MemoryRepository(Protocol):
    """Memory collaborator consumed by the system turn builder and memory tools."""

    def get_short_term_memories(self) -> List[MemoryItem]:
        ...

    async def search(self, options: MemorySearchOptions) -> List[MemoryItem]:
        ...

    async def remember(self, sentence: str, importance: float | None, tags: List[str]) -> str:
        ...

    async def recall(self, memory_id: str) -> MemoryItem | None:
        ...

    async def forget(self, memory_id: str) -> bool:
        ...

    async def add_to_short_term_memory(self, memory_id: str) -> bool:
        ...

    async def edit_importance(self, memory_id: str, importance: float) -> bool:
        ...

    async def edit_content(self, memory_id: str, sentence: str) -> bool:
        ...

    async def add_tag(self, memory_id: str, tag: str) -> bool:
        ...

    async def remove_tag(self, memory_id: str, tag: str) -> bool:
        ...

    async def replace_tags(self, memory_id: str, tags: List[str]) -> bool:
        ...


def estimate_memory_tokens(item: MemoryItem) -> int:
    """Rough token estimate: ~4 characters per token plus metadata overhead."""
    content_tokens = math.ceil(len(item.sentence) / 4)
    tag_tokens = math.ceil(len(", ".join(item.tags)) / 4)
    return content_tokens + tag_tokens + METADATA_TOKEN_OVERHEAD


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryRepository:
    """Process-local memory store with a token-bounded LRU short-term list.

    Nothing is persisted; the store lives as long as the process.
    """

    def __init__(self, max_tokens: int = 2000, default_importance: float = 0.5) -> None:
        self._max_tokens = max_tokens
        self._default_importance = default_importance
        self._items: Dict[str, MemoryItem] = {}
        self._short_term: "OrderedDict[str, None]" = OrderedDict()

    def get_short_term_memories(self) -> List[MemoryItem]:
        return [self._items[mid] for mid in self._short_term if mid in self._items]

    async def remember(self, sentence: str, importance: float | None, tags: List[str]) -> str:
        if not tags:
            raise ValueError("Memory tags cannot be empty")
        memory_id = uuid.uuid4().hex
        timestamp = _now()
        self._items[memory_id] = MemoryItem(
            id=memory_id,
            sentence=sentence,
            importance=self._default_importance if importance is None else importance,
            tags=list(tags),
            created_at=timestamp,
            updated_at=timestamp,
        )
        self._touch_short_term(memory_id)
        return memory_id

    async def recall(self, memory_id: str) -> MemoryItem | None:
        item = self._items.get(memory_id)
        if item is not None and memory_id in self._short_term:
            self._short_term.move_to_end(memory_id)
        return item

    async def search(self, options: MemorySearchOptions) -> List[MemoryItem]:
        items = list(self._items.values())

        if options.content:
            needle = options.content.lower()
            items = [m for m in items if needle in m.sentence.lower()]
        if options.content_regex:
            pattern = re.compile(options.content_regex)
            items = [m for m in items if pattern.search(m.sentence)]
        if options.tags:
            wanted = set(options.tags)
            items = [m for m in items if wanted.intersection(m.tags)]
        if options.tags_regex:
            pattern = re.compile(options.tags_regex)
            items = [m for m in items if any(pattern.search(t) for t in m.tags)]

        reverse = (options.sort_order or "desc") == "desc"
        if options.sort_by == "importance":
            items.sort(key=lambda m: m.importance, reverse=reverse)
        elif options.sort_by == "timestamp":
            items.sort(key=lambda m: m.updated_at or m.created_at, reverse=reverse)
        elif options.sort_by == "both":
            items.sort(key=lambda m: (m.importance, m.updated_at or m.created_at), reverse=reverse)

        return items[: max(options.limit, 0)]

    async def forget(self, memory_id: str) -> bool:
        self._short_term.pop(memory_id, None)
        return self._items.pop(memory_id, None) is not None

    async def add_to_short_term_memory(self, memory_id: str) -> bool:
        if memory_id not in self._items or memory_id in self._short_term:
            return False
        self._touch_short_term(memory_id)
        return True

    async def edit_importance(self, memory_id: str, importance: float) -> bool:
        item = self._items.get(memory_id)
        if item is None:
            return False
        item.importance = importance
        item.updated_at = _now()
        return True

    async def edit_content(self, memory_id: str, sentence: str) -> bool:
        item = self._items.get(memory_id)
        if item is None:
            return False
        item.sentence = sentence
        item.updated_at = _now()
        return True

    async def add_tag(self, memory_id: str, tag: str) -> bool:
        item = self._items.get(memory_id)
        if item is None or tag in item.tags:
            return False
        item.tags.append(tag)
        item.updated_at = _now()
        return True

    async def remove_tag(self, memory_id: str, tag: str) -> bool:
        item = self._items.get(memory_id)
        if item is None or tag not in item.tags:
            return False
        if len(item.tags) == 1:
            raise ValueError("Cannot remove the last tag of a memory")
        item.tags.remove(tag)
        item.updated_at = _now()
        return True

    async def replace_tags(self, memory_id: str, tags: List[str]) -> bool:
        if not tags:
            raise ValueError("Memory tags cannot be empty")
        item = self._items.get(memory_id)
        if item is None:
            return False
        item.tags = list(tags)
        item.updated_at = _now()
        return True

    def _touch_short_term(self, memory_id: str) -> None:
        self._short_term[memory_id] = None
        self._short_term.move_to_end(memory_id)
        # Evict least recently used entries until the list fits, keeping the newest.
        while len(self._short_term) > 1 and self._short_term_tokens() > self._max_tokens:
            evicted, _ = self._short_term.popitem(last=False)
            logger.debug("Evicted memory %s from short-term", evicted)

    def _short_term_tokens(self) -> int:
        return sum(estimate_memory_tokens(item) for item in self.get_short_term_memories())


async def initialize_short_term_memory(memory: MemoryRepository, max_tokens: int = 2000) -> int:
    """Seed an empty short-term list with recent, important memories.

    Returns the number of memories added. Never raises: a failure here only
    means the agent starts without memory context.
    """
    try:
        existing = memory.get_short_term_memories()
        if existing:
            logger.info(
                "Short-term memory already contains %d items; skipping initialization",
                len(existing),
            )
            return 0

        estimated_count = math.ceil(max_tokens / AVERAGE_TOKENS_PER_MEMORY)
        search_limit = min(max(estimated_count * 2, 10), 100)
        recent = await memory.search(
            MemorySearchOptions(sort_by="timestamp", sort_order="desc", limit=search_limit)
        )
        if not recent:
            logger.info("No memories found to populate short-term memory")
            return 0

        # Stable sort keeps recency order among equal importance.
        ordered = sorted(recent, key=lambda m: m.importance, reverse=True)

        added = 0
        used_tokens = 0
        for item in ordered:
            cost = estimate_memory_tokens(item)
            if used_tokens + cost > max_tokens:
                break
            try:
                if await memory.add_to_short_term_memory(item.id):
                    added += 1
                    used_tokens += cost
            except (ValueError, KeyError) as e:
                logger.warning("Failed to add memory %s to short-term: %s", item.id, e)

        logger.info(
            "Initialized short-term memory with %d memories (~%d/%d tokens, searched %d/%d)",
            added,
            used_tokens,
            max_tokens,
            len(recent),
            search_limit,
        )
        return added
    except Exception as e:
        logger.error("Failed to initialize short-term memory: %s", e)
        return 0
