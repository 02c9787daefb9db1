"""Option dataclasses for bundling per-operation parameters."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class AddOptions:
    """Controls how a memory is added."""

    user_id: str = ""
    agent_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    infer: bool = False  # Check for near-duplicates and merge instead of inserting


@dataclass
class SearchOptions:
    """Controls similarity search."""

    user_id: Optional[str] = None
    agent_id: Optional[str] = None
    limit: int = 10
    min_score: float = 0.0
    filters: Dict[str, Any] = field(default_factory=dict)  # Metadata key -> required value


@dataclass
class GetAllOptions:
    """Controls listing of memories."""

    user_id: Optional[str] = None
    agent_id: Optional[str] = None
    limit: int = 100
    offset: int = 0


@dataclass
class DeleteAllOptions:
    """Scope of a bulk delete. Empty scope deletes every memory in the collection."""

    user_id: Optional[str] = None
    agent_id: Optional[str] = None
