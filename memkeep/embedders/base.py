"""Embedding provider capability interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from memkeep.context import OperationContext


class EmbeddingProvider(ABC):
    """Converts text into fixed-length vectors."""

    @abstractmethod
    def embed(self, text: str, ctx: Optional[OperationContext] = None) -> List[float]:
        """Embed a single text."""

    @abstractmethod
    def embed_batch(self, texts: List[str], ctx: Optional[OperationContext] = None) -> List[List[float]]:
        """Embed many texts; output order matches input order and lengths must agree."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of every vector this provider returns."""

    def close(self) -> None:
        """Release provider resources. No-op by default."""
