"""Memory data structures."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from memkeep.exceptions import InvalidInputError


@dataclass
class Memory:
    """A stored fact with its embedding and retention state."""

    id: int
    user_id: str
    content: str
    agent_id: Optional[str] = None
    embedding: List[float] = field(default_factory=list)
    sparse_embedding: Optional[Dict[int, float]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    retention_strength: float = 1.0
    last_accessed_at: Optional[datetime] = None
    score: Optional[float] = None  # Populated during search

    def __post_init__(self):
        if not 0.0 <= self.retention_strength <= 1.0:
            raise InvalidInputError(f"retention_strength must be within [0, 1], got {self.retention_strength}")

    def to_dict(self, include_embedding: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "agent_id": self.agent_id,
            "content": self.content,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "retention_strength": round(self.retention_strength, 4),
            "last_accessed_at": self.last_accessed_at.isoformat() if self.last_accessed_at else None,
        }
        if self.score is not None:
            data["score"] = round(self.score, 4)
        if include_embedding:
            data["embedding"] = self.embedding
            if self.sparse_embedding:
                data["sparse_embedding"] = self.sparse_embedding
        return data
