"""Vector store capability interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from memkeep.context import OperationContext
from memkeep.options import DeleteAllOptions, GetAllOptions, SearchOptions
from memkeep.schema import Memory


class VectorStore(ABC):
    """Durable keyed storage of memories with a similarity search primitive.

    Scope filters: a ``None`` or empty ``user_id``/``agent_id`` applies no
    filter on that column. ``search`` returns results in descending score
    order, each with ``score >= min_score``, at most ``limit`` of them.
    Missing IDs raise ``NotFoundError``; backend failures raise
    ``StorageOperationError``.
    """

    @abstractmethod
    def insert(self, memory: Memory, ctx: Optional[OperationContext] = None) -> None:
        """Insert a new memory. Its embedding must match the collection dimension."""

    @abstractmethod
    def get(self, memory_id: int, ctx: Optional[OperationContext] = None) -> Memory:
        """Get a memory by ID."""

    @abstractmethod
    def update(
        self,
        memory_id: int,
        content: str,
        embedding: List[float],
        ctx: Optional[OperationContext] = None,
    ) -> Memory:
        """Replace content and embedding, refresh ``updated_at``, return the updated record."""

    @abstractmethod
    def update_retention(
        self,
        memory_id: int,
        retention_strength: float,
        last_accessed_at: Optional[datetime],
        ctx: Optional[OperationContext] = None,
    ) -> Memory:
        """Persist retention state without touching content or ``updated_at``."""

    @abstractmethod
    def delete(self, memory_id: int, ctx: Optional[OperationContext] = None) -> None:
        """Delete a memory by ID."""

    @abstractmethod
    def search(
        self,
        embedding: List[float],
        options: SearchOptions,
        ctx: Optional[OperationContext] = None,
    ) -> List[Memory]:
        """Rank memories in scope by cosine similarity to ``embedding``."""

    @abstractmethod
    def get_all(self, options: GetAllOptions, ctx: Optional[OperationContext] = None) -> List[Memory]:
        """List memories in scope, newest first."""

    @abstractmethod
    def delete_all(self, options: DeleteAllOptions, ctx: Optional[OperationContext] = None) -> int:
        """Delete every memory in scope. Returns the number removed."""

    @abstractmethod
    def close(self) -> None:
        """Release the backend connection."""
