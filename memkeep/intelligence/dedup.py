"""Similarity-based deduplication of memories on write."""

import logging
from typing import List, Optional, Tuple

from memkeep.context import OperationContext
from memkeep.exceptions import InvalidConfigError
from memkeep.intelligence.similarity import average_and_normalize
from memkeep.options import SearchOptions
from memkeep.schema import Memory
from memkeep.storage.base import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_DUPLICATE_THRESHOLD = 0.95

# Only the closest few candidates are worth checking
DUPLICATE_SEARCH_LIMIT = 5


class DedupManager:
    """Finds near-duplicate memories in a scope and merges new content into them."""

    def __init__(self, store: VectorStore, threshold: Optional[float] = None):
        """Initialize dedup manager.

        Args:
            store: Vector store searched for candidates
            threshold: Minimum cosine similarity for a duplicate, in (0, 1].
                None or 0 selects the default of 0.95.
        """
        if not threshold:
            threshold = DEFAULT_DUPLICATE_THRESHOLD
        if not 0 < threshold <= 1:
            raise InvalidConfigError(f"duplicate threshold must be in (0, 1], got {threshold}")
        self.store = store
        self.threshold = threshold

    def check_duplicate(
        self,
        embedding: List[float],
        user_id: str,
        agent_id: Optional[str] = None,
        ctx: Optional[OperationContext] = None,
    ) -> Tuple[bool, Optional[int]]:
        """Check whether a memory similar to ``embedding`` already exists.

        Relies on the store returning candidates in descending score order; the
        first candidate at or above the threshold wins.

        Returns:
            Tuple of (is_duplicate, matched memory ID or None)
        """
        candidates = self.store.search(
            embedding,
            SearchOptions(user_id=user_id, agent_id=agent_id, limit=DUPLICATE_SEARCH_LIMIT),
            ctx=ctx,
        )

        for candidate in candidates:
            if candidate.score is not None and candidate.score >= self.threshold:
                logger.debug(f"Memory {candidate.id} is a duplicate (score {candidate.score:.4f})")
                return True, candidate.id

        return False, None

    def merge_memories(
        self,
        existing_id: int,
        new_content: str,
        new_embedding: List[float],
        ctx: Optional[OperationContext] = None,
    ) -> Memory:
        """Fold new content into an existing memory.

        Content is appended with a single space and the embedding becomes the
        normalised mean of both vectors. ID, creation time and scope are kept.

        Raises:
            NotFoundError: If the existing memory was deleted in the meantime
            InvalidInputError: If the embeddings differ in dimension
        """
        existing = self.store.get(existing_id, ctx=ctx)

        merged_content = f"{existing.content} {new_content}"
        merged_embedding = average_and_normalize(existing.embedding, new_embedding)

        updated = self.store.update(existing_id, merged_content, merged_embedding, ctx=ctx)
        logger.debug(f"Merged new content into memory {existing_id}")
        return updated
