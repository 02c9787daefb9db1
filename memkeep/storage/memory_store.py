"""In-process vector store with brute-force cosine-similarity search.

Adequate for tests and for the memory sizes a single agent accumulates
(thousands of entries, not millions). Nothing is persisted.
"""

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from memkeep.context import OperationContext, check_context
from memkeep.exceptions import InvalidInputError, NotFoundError
from memkeep.intelligence.similarity import cosine_similarity
from memkeep.options import DeleteAllOptions, GetAllOptions, SearchOptions
from memkeep.schema import Memory
from memkeep.storage.base import VectorStore

logger = logging.getLogger(__name__)


def _in_scope(memory: Memory, user_id: Optional[str], agent_id: Optional[str]) -> bool:
    if user_id and memory.user_id != user_id:
        return False
    if agent_id and memory.agent_id != agent_id:
        return False
    return True


def _matches_filters(memory: Memory, filters: Dict[str, Any]) -> bool:
    # Absent keys and null values never match, as in SQL
    metadata = memory.metadata
    return all(metadata.get(key) is not None and metadata[key] == value for key, value in filters.items())


class InMemoryVectorStore(VectorStore):
    """Dict-backed store. Returned records are copies, so callers cannot mutate stored state."""

    def __init__(self, dimensions: Optional[int] = None):
        self.dimensions = dimensions
        self._entries: Dict[int, Memory] = {}
        self._lock = threading.Lock()

    def _check_dimensions(self, embedding: List[float]) -> None:
        if self.dimensions is not None and len(embedding) != self.dimensions:
            raise InvalidInputError(f"embedding has {len(embedding)} dimensions, collection expects {self.dimensions}")

    def _require(self, memory_id: int) -> Memory:
        entry = self._entries.get(memory_id)
        if entry is None:
            raise NotFoundError(f"memory {memory_id} not found")
        return entry

    def insert(self, memory: Memory, ctx: Optional[OperationContext] = None) -> None:
        check_context(ctx)
        self._check_dimensions(memory.embedding)
        now = datetime.now(timezone.utc)
        stored = copy.deepcopy(memory)
        stored.score = None
        stored.created_at = stored.created_at or now
        stored.updated_at = stored.updated_at or stored.created_at
        with self._lock:
            if memory.id in self._entries:
                raise InvalidInputError(f"memory {memory.id} already exists")
            self._entries[memory.id] = stored
        # Report the timestamps actually stored back to the caller
        memory.created_at = stored.created_at
        memory.updated_at = stored.updated_at
        logger.debug(f"Stored memory {memory.id}: {memory.content[:50]}...")

    def get(self, memory_id: int, ctx: Optional[OperationContext] = None) -> Memory:
        check_context(ctx)
        with self._lock:
            return copy.deepcopy(self._require(memory_id))

    def update(
        self,
        memory_id: int,
        content: str,
        embedding: List[float],
        ctx: Optional[OperationContext] = None,
    ) -> Memory:
        check_context(ctx)
        self._check_dimensions(embedding)
        with self._lock:
            entry = self._require(memory_id)
            entry.content = content
            entry.embedding = list(embedding)
            entry.updated_at = datetime.now(timezone.utc)
            return copy.deepcopy(entry)

    def update_retention(
        self,
        memory_id: int,
        retention_strength: float,
        last_accessed_at: Optional[datetime],
        ctx: Optional[OperationContext] = None,
    ) -> Memory:
        check_context(ctx)
        if not 0.0 <= retention_strength <= 1.0:
            raise InvalidInputError(f"retention_strength must be within [0, 1], got {retention_strength}")
        with self._lock:
            entry = self._require(memory_id)
            entry.retention_strength = retention_strength
            entry.last_accessed_at = last_accessed_at
            return copy.deepcopy(entry)

    def delete(self, memory_id: int, ctx: Optional[OperationContext] = None) -> None:
        check_context(ctx)
        with self._lock:
            self._require(memory_id)
            del self._entries[memory_id]
        logger.debug(f"Deleted memory {memory_id}")

    def search(
        self,
        embedding: List[float],
        options: SearchOptions,
        ctx: Optional[OperationContext] = None,
    ) -> List[Memory]:
        check_context(ctx)
        self._check_dimensions(embedding)
        with self._lock:
            candidates = [
                m
                for m in self._entries.values()
                if _in_scope(m, options.user_id, options.agent_id) and _matches_filters(m, options.filters)
            ]
            scored: List[Memory] = []
            for entry in candidates:
                score = cosine_similarity(embedding, entry.embedding)
                if score >= options.min_score:
                    hit = copy.deepcopy(entry)
                    hit.score = score
                    scored.append(hit)

        # Ties keep insertion (ID) order
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[: options.limit]

    def get_all(self, options: GetAllOptions, ctx: Optional[OperationContext] = None) -> List[Memory]:
        check_context(ctx)
        with self._lock:
            matches = [copy.deepcopy(m) for m in self._entries.values() if _in_scope(m, options.user_id, options.agent_id)]
        matches.sort(key=lambda m: (m.created_at, m.id), reverse=True)
        return matches[options.offset : options.offset + options.limit]

    def delete_all(self, options: DeleteAllOptions, ctx: Optional[OperationContext] = None) -> int:
        check_context(ctx)
        with self._lock:
            doomed = [mid for mid, m in self._entries.items() if _in_scope(m, options.user_id, options.agent_id)]
            for mid in doomed:
                del self._entries[mid]
        logger.debug(f"Deleted {len(doomed)} memories")
        return len(doomed)

    def close(self) -> None:
        with self._lock:
            self._entries.clear()
