"""Memory orchestrator: embedding, deduplication, storage and locking."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Union

from memkeep.config import Config, IntelligenceConfig, validate_config
from memkeep.context import OperationContext, check_context
from memkeep.embedders.base import EmbeddingProvider
from memkeep.exceptions import (
    EmbeddingFailedError,
    IllegalStateError,
    InvalidConfigError,
    InvalidInputError,
    LLMOperationError,
    MemkeepError,
    StorageOperationError,
    wrap_error,
)
from memkeep.ids import SnowflakeGenerator, get_generator
from memkeep.intelligence.dedup import DedupManager
from memkeep.intelligence.ebbinghaus import EbbinghausManager
from memkeep.llm.base import LLMProvider
from memkeep.options import AddOptions, DeleteAllOptions, GetAllOptions, SearchOptions
from memkeep.rwlock import ReadWriteLock
from memkeep.schema import Memory
from memkeep.storage.base import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class RetentionStatus:
    """Outcome of recomputing one memory's retention."""

    memory_id: int
    retention_strength: float
    should_archive: bool
    next_review_at: datetime


def rank_results(memories: List[Memory], limit: int, min_score: float) -> List[Memory]:
    """Enforce the search contract on store output.

    Drops results below ``min_score``, orders by descending score (stable, so
    the store's tie order survives) and truncates to ``limit``.
    """
    kept = [m for m in memories if m.score is not None and m.score >= min_score]
    kept.sort(key=lambda m: m.score, reverse=True)
    return kept[:limit]


class MemoryClient:
    """Façade over an embedding provider and a vector store.

    Mutations (``add``, ``update``, ``delete``, ``delete_all``, ``reinforce``,
    ``refresh_retention``) hold the write side of a reader/writer lock, so the
    duplicate check and the merge or insert that follows it are atomic with
    respect to other mutations. Reads (``search``, ``get``, ``get_all``) share
    the read side.

    Usage::

        client = MemoryClient.from_config(load_config())
        client.add("User likes coffee", AddOptions(user_id="u1"))
        hits = client.search("coffee", SearchOptions(user_id="u1", limit=5))
        client.close()
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingProvider,
        llm: Optional[LLMProvider] = None,
        intelligence: Optional[IntelligenceConfig] = None,
        id_generator: Optional[SnowflakeGenerator] = None,
    ):
        """Initialize the client.

        Args:
            store: Vector store for memory records
            embedder: Embedding provider for content and queries
            llm: Optional text generation provider (owned and closed, not used for merging)
            intelligence: Dedup and retention settings; dedup runs only when ``enabled``
            id_generator: Unique ID source (defaults to the shared generator for node 1)
        """
        self.store = store
        self.embedder = embedder
        self.llm = llm
        self.intelligence = intelligence or IntelligenceConfig()
        self.dedup_manager: Optional[DedupManager] = None
        if self.intelligence.enabled:
            self.dedup_manager = DedupManager(store, self.intelligence.duplicate_threshold)
        self.retention = EbbinghausManager(self.intelligence.decay_rate, self.intelligence.reinforcement_factor)
        self.id_generator = id_generator or get_generator()
        self._lock = ReadWriteLock()
        self._closed = False

    @classmethod
    def from_config(cls, config: Union[Config, Dict[str, Any]]) -> "MemoryClient":
        """Build a client and its collaborators from configuration.

        The configuration is validated before any collaborator is created.

        Raises:
            InvalidConfigError: If the configuration is malformed
        """
        from memkeep.embedders import create_embedder
        from memkeep.llm import create_llm
        from memkeep.storage import create_store

        data = config.model_dump() if isinstance(config, Config) else config
        config = validate_config(data)

        dims = config.embedder.dimensions
        if dims is not None and dims != config.vector_store.embedding_model_dims:
            raise InvalidConfigError(
                f"embedder dimensions ({dims}) differ from vector store dimensions "
                f"({config.vector_store.embedding_model_dims})",
                op="from_config",
            )

        store = create_store(config.vector_store)
        try:
            embedder = create_embedder(config.embedder)
            llm = create_llm(config.llm) if config.llm is not None else None
        except Exception:
            store.close()
            raise

        return cls(
            store=store,
            embedder=embedder,
            llm=llm,
            intelligence=config.intelligence,
            id_generator=get_generator(config.node_id),
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self, op: str) -> None:
        if self._closed:
            raise IllegalStateError("client is closed", op=op)

    @contextmanager
    def _operation(self, op: str, ctx: Optional[OperationContext], write: bool) -> Iterator[None]:
        """Check state and cancellation, take the lock, and tag failures with ``op``."""
        check_context(ctx, op)
        self._ensure_open(op)
        lock = self._lock.write() if write else self._lock.read()
        with lock:
            self._ensure_open(op)
            check_context(ctx, op)
            try:
                yield
            except MemkeepError as e:
                if e.op == op:
                    raise
                raise wrap_error(op, e) from e
            except Exception as e:
                raise wrap_error(op, e, StorageOperationError) from e

    def _embed(self, text: str, ctx: Optional[OperationContext]) -> List[float]:
        try:
            return self.embedder.embed(text, ctx=ctx)
        except MemkeepError:
            raise
        except Exception as e:
            raise EmbeddingFailedError(str(e) or type(e).__name__) from e

    def add(
        self,
        content: str,
        options: Optional[AddOptions] = None,
        ctx: Optional[OperationContext] = None,
    ) -> Memory:
        """Add a memory, merging into a near-duplicate when ``options.infer`` is set.

        Args:
            content: The fact to remember
            options: Owner scope, metadata and the ``infer`` switch
            ctx: Optional cancellation/deadline signal

        Returns:
            The new memory, or the existing memory the content was merged into
        """
        options = options or AddOptions()
        with self._operation("add", ctx, write=True):
            if not content or not content.strip():
                raise InvalidInputError("content must not be empty")
            if not options.user_id:
                raise InvalidInputError("user_id is required")

            embedding = self._embed(content, ctx)
            check_context(ctx, "add")

            if options.infer and self.dedup_manager is not None:
                is_duplicate, existing_id = self.dedup_manager.check_duplicate(
                    embedding, options.user_id, options.agent_id, ctx=ctx
                )
                if is_duplicate:
                    return self.dedup_manager.merge_memories(existing_id, content, embedding, ctx=ctx)

            now = datetime.now(timezone.utc)
            memory = Memory(
                id=self.id_generator.generate(),
                user_id=options.user_id,
                agent_id=options.agent_id,
                content=content,
                embedding=embedding,
                metadata=dict(options.metadata),
                created_at=now,
                updated_at=now,
                retention_strength=1.0,
            )
            self.store.insert(memory, ctx=ctx)
            return memory

    def search(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        ctx: Optional[OperationContext] = None,
    ) -> List[Memory]:
        """Search memories by semantic similarity.

        Returns:
            At most ``options.limit`` memories with ``score >= options.min_score``,
            highest score first
        """
        options = options or SearchOptions()
        with self._operation("search", ctx, write=False):
            if options.limit <= 0:
                raise InvalidInputError(f"limit must be positive, got {options.limit}")
            if not query or not query.strip():
                raise InvalidInputError("query must not be empty")

            query_embedding = self._embed(query, ctx)
            check_context(ctx, "search")

            results = self.store.search(query_embedding, options, ctx=ctx)
            return rank_results(results, options.limit, options.min_score)

    def get(self, memory_id: int, ctx: Optional[OperationContext] = None) -> Memory:
        """Get a memory by ID. Raises ``NotFoundError`` if it doesn't exist."""
        with self._operation("get", ctx, write=False):
            return self.store.get(memory_id, ctx=ctx)

    def update(self, memory_id: int, content: str, ctx: Optional[OperationContext] = None) -> Memory:
        """Replace a memory's content and re-generate its embedding."""
        with self._operation("update", ctx, write=True):
            if not content or not content.strip():
                raise InvalidInputError("content must not be empty")

            embedding = self._embed(content, ctx)
            check_context(ctx, "update")
            return self.store.update(memory_id, content, embedding, ctx=ctx)

    def delete(self, memory_id: int, ctx: Optional[OperationContext] = None) -> None:
        """Delete a memory by ID. Raises ``NotFoundError`` if it doesn't exist."""
        with self._operation("delete", ctx, write=True):
            self.store.delete(memory_id, ctx=ctx)

    def get_all(
        self,
        options: Optional[GetAllOptions] = None,
        ctx: Optional[OperationContext] = None,
    ) -> List[Memory]:
        """List memories in scope, newest first."""
        options = options or GetAllOptions()
        with self._operation("get_all", ctx, write=False):
            if options.limit <= 0:
                raise InvalidInputError(f"limit must be positive, got {options.limit}")
            if options.offset < 0:
                raise InvalidInputError(f"offset must not be negative, got {options.offset}")
            return self.store.get_all(options, ctx=ctx)

    def delete_all(
        self,
        options: Optional[DeleteAllOptions] = None,
        ctx: Optional[OperationContext] = None,
    ) -> int:
        """Delete every memory in scope. Returns the number deleted."""
        options = options or DeleteAllOptions()
        with self._operation("delete_all", ctx, write=True):
            return self.store.delete_all(options, ctx=ctx)

    def reinforce(self, memory_id: int, ctx: Optional[OperationContext] = None) -> Memory:
        """Record an access: boost retention strength and stamp ``last_accessed_at``."""
        with self._operation("reinforce", ctx, write=True):
            memory = self.store.get(memory_id, ctx=ctx)
            strength = self.retention.reinforce(memory.retention_strength)
            return self.store.update_retention(memory_id, strength, datetime.now(timezone.utc), ctx=ctx)

    def refresh_retention(
        self,
        options: Optional[GetAllOptions] = None,
        ctx: Optional[OperationContext] = None,
        now: Optional[datetime] = None,
    ) -> List[RetentionStatus]:
        """Recompute decayed retention for memories in scope and persist it.

        Nothing is deleted; callers decide what to do with memories flagged
        ``should_archive``.
        """
        options = options or GetAllOptions()
        now = now or datetime.now(timezone.utc)
        with self._operation("refresh_retention", ctx, write=True):
            statuses = []
            for memory in self.store.get_all(options, ctx=ctx):
                strength = self.retention.calculate_retention(memory.created_at, memory.last_accessed_at, now=now)
                self.store.update_retention(memory.id, strength, memory.last_accessed_at, ctx=ctx)
                statuses.append(
                    RetentionStatus(
                        memory_id=memory.id,
                        retention_strength=strength,
                        should_archive=self.retention.should_archive(strength, self.intelligence.archive_threshold),
                        next_review_at=self.retention.calculate_next_review(strength, now=now),
                    )
                )
            logger.debug(f"Refreshed retention for {len(statuses)} memories")
            return statuses

    def close(self) -> None:
        """Close store, LLM and embedder.

        Waits for in-flight operations. Every failure is logged; only the first
        is raised. Closing twice is a no-op.
        """
        with self._lock.write():
            if self._closed:
                return
            self._closed = True

            failures = []
            for name, resource, kind in (
                ("store", self.store, StorageOperationError),
                ("llm", self.llm, LLMOperationError),
                ("embedder", self.embedder, EmbeddingFailedError),
            ):
                if resource is None:
                    continue
                try:
                    resource.close()
                except Exception as e:
                    logger.warning(f"Failed to close {name}: {e}")
                    failures.append((e, kind))

            if failures:
                first, kind = failures[0]
                raise wrap_error("close", first, kind) from first

    def __enter__(self) -> "MemoryClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
