"""Vector store implementations."""

from memkeep.config import VectorStoreConfig
from memkeep.storage.base import VectorStore
from memkeep.storage.memory_store import InMemoryVectorStore


def create_store(config: VectorStoreConfig) -> VectorStore:
    """Build the vector store named by ``config.provider``."""
    if config.provider == "memory":
        return InMemoryVectorStore(dimensions=config.embedding_model_dims)

    from memkeep.storage.duckdb_store import DuckDBVectorStore

    return DuckDBVectorStore(
        db_path=config.resolved_db_path(),
        collection_name=config.collection_name,
        embedding_dimension=config.embedding_model_dims,
    )


__all__ = ["InMemoryVectorStore", "VectorStore", "create_store"]
