"""Vector store with DuckDB backend and native array similarity search."""

import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import duckdb

from memkeep.context import OperationContext, check_context
from memkeep.exceptions import InvalidInputError, NotFoundError, StorageOperationError
from memkeep.options import DeleteAllOptions, GetAllOptions, SearchOptions
from memkeep.schema import Memory
from memkeep.storage.base import VectorStore

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_FILTER_KEY_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

_COLUMNS = (
    "id, user_id, agent_id, content, embedding, sparse_embedding, metadata, "
    "created_at, updated_at, retention_strength, last_accessed_at"
)

# array_cosine_similarity yields NaN for zero vectors; treat those as 0
_SCORE_EXPR = "COALESCE(CASE WHEN isnan(raw_score) THEN 0.0 ELSE raw_score END, 0.0)"


def _to_db_ts(dt: Optional[datetime]) -> Optional[datetime]:
    """DuckDB TIMESTAMP columns hold naive UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _from_db_ts(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc)


def _filter_value(value: Any) -> str:
    # json_extract_string renders scalars without quotes
    return value if isinstance(value, str) else json.dumps(value)


def build_where_clause(
    user_id: Optional[str],
    agent_id: Optional[str],
    filters: Optional[Dict[str, Any]] = None,
) -> Tuple[str, List[Any]]:
    """Build the WHERE clause for scope and metadata equality filters.

    Returns:
        Tuple of (SQL fragment, positional parameters)
    """
    where_clauses = []
    params: List[Any] = []

    if user_id:
        where_clauses.append("user_id = ?")
        params.append(user_id)

    if agent_id:
        where_clauses.append("agent_id = ?")
        params.append(agent_id)

    for key, value in (filters or {}).items():
        if not _FILTER_KEY_RE.match(key):
            raise InvalidInputError(f"invalid metadata filter key '{key}'")
        where_clauses.append("json_extract_string(metadata, ?) = ?")
        params.extend([f"$.{key}", _filter_value(value)])

    if not where_clauses:
        return "", params
    return "WHERE " + " AND ".join(where_clauses), params


class DuckDBVectorStore(VectorStore):
    """Memories in a DuckDB table with a fixed-size ``DOUBLE[n]`` embedding column."""

    def __init__(
        self,
        db_path: Union[Path, str] = ":memory:",
        collection_name: str = "memories",
        embedding_dimension: int = 384,
    ):
        """Initialize the store.

        Args:
            db_path: Path to DuckDB database file, or ":memory:"
            collection_name: Table holding the memories
            embedding_dimension: Dimension of embedding vectors
        """
        if not _IDENTIFIER_RE.match(collection_name):
            raise InvalidInputError(f"collection_name must be a plain SQL identifier, got '{collection_name}'")

        self.db_path = db_path
        self.collection_name = collection_name
        self.embedding_dimension = embedding_dimension
        self._lock = threading.Lock()

        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self.conn = duckdb.connect(str(db_path))
        except duckdb.Error as e:
            raise StorageOperationError(f"failed to open {db_path}: {e}", op="connect") from e

        self._init_schema()

    def _init_schema(self) -> None:
        """Create the collection table if it doesn't exist."""
        self._execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.collection_name} (
                id BIGINT PRIMARY KEY,
                user_id VARCHAR NOT NULL,
                agent_id VARCHAR,
                content VARCHAR NOT NULL,
                embedding DOUBLE[{self.embedding_dimension}] NOT NULL,
                sparse_embedding JSON,
                metadata JSON DEFAULT '{{}}',
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                retention_strength DOUBLE DEFAULT 1.0,
                last_accessed_at TIMESTAMP
            )
        """,
            op="init_schema",
        )

    def _execute(self, sql: str, params: Optional[List[Any]] = None, op: str = "execute", fetch: str = "none"):
        """Run one statement under the connection lock.

        Args:
            fetch: "none", "one" or "all"
        """
        if self.conn is None:
            raise StorageOperationError("store is closed", op=op)
        try:
            with self._lock:
                cursor = self.conn.execute(sql, params or [])
                if fetch == "one":
                    return cursor.fetchone()
                if fetch == "all":
                    return cursor.fetchall()
                return None
        except duckdb.Error as e:
            raise StorageOperationError(str(e), op=op) from e

    def _check_dimensions(self, embedding: List[float]) -> None:
        if len(embedding) != self.embedding_dimension:
            raise InvalidInputError(
                f"embedding has {len(embedding)} dimensions, collection expects {self.embedding_dimension}"
            )

    def _row_to_memory(self, row: tuple, score: Optional[float] = None) -> Memory:
        sparse = json.loads(row[5]) if row[5] else None
        return Memory(
            id=row[0],
            user_id=row[1],
            agent_id=row[2],
            content=row[3],
            embedding=list(row[4]),
            sparse_embedding={int(k): float(v) for k, v in sparse.items()} if sparse else None,
            metadata=json.loads(row[6]) if row[6] else {},
            created_at=_from_db_ts(row[7]),
            updated_at=_from_db_ts(row[8]),
            retention_strength=row[9] if row[9] is not None else 1.0,
            last_accessed_at=_from_db_ts(row[10]),
            score=score,
        )

    def insert(self, memory: Memory, ctx: Optional[OperationContext] = None) -> None:
        check_context(ctx)
        self._check_dimensions(memory.embedding)

        memory.created_at = memory.created_at or datetime.now(timezone.utc)
        memory.updated_at = memory.updated_at or memory.created_at

        self._execute(
            f"""
            INSERT INTO {self.collection_name} ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?::DOUBLE[{self.embedding_dimension}], ?, ?, ?, ?, ?, ?)
        """,
            [
                memory.id,
                memory.user_id,
                memory.agent_id,
                memory.content,
                memory.embedding,
                json.dumps(memory.sparse_embedding) if memory.sparse_embedding else None,
                json.dumps(memory.metadata or {}),
                _to_db_ts(memory.created_at),
                _to_db_ts(memory.updated_at),
                memory.retention_strength,
                _to_db_ts(memory.last_accessed_at),
            ],
            op="insert",
        )
        logger.debug(f"Stored memory {memory.id}: {memory.content[:50]}...")

    def get(self, memory_id: int, ctx: Optional[OperationContext] = None) -> Memory:
        check_context(ctx)
        row = self._execute(
            f"SELECT {_COLUMNS} FROM {self.collection_name} WHERE id = ?",
            [memory_id],
            op="get",
            fetch="one",
        )
        if row is None:
            raise NotFoundError(f"memory {memory_id} not found", op="get")
        return self._row_to_memory(row)

    def update(
        self,
        memory_id: int,
        content: str,
        embedding: List[float],
        ctx: Optional[OperationContext] = None,
    ) -> Memory:
        check_context(ctx)
        self._check_dimensions(embedding)

        row = self._execute(
            f"""
            UPDATE {self.collection_name}
            SET content = ?, embedding = ?::DOUBLE[{self.embedding_dimension}], updated_at = ?
            WHERE id = ?
            RETURNING id
        """,
            [content, embedding, _to_db_ts(datetime.now(timezone.utc)), memory_id],
            op="update",
            fetch="one",
        )
        if row is None:
            raise NotFoundError(f"memory {memory_id} not found", op="update")

        logger.debug(f"Updated memory {memory_id}")
        return self.get(memory_id)

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

        row = self._execute(
            f"""
            UPDATE {self.collection_name}
            SET retention_strength = ?, last_accessed_at = ?
            WHERE id = ?
            RETURNING id
        """,
            [retention_strength, _to_db_ts(last_accessed_at), memory_id],
            op="update_retention",
            fetch="one",
        )
        if row is None:
            raise NotFoundError(f"memory {memory_id} not found", op="update_retention")
        return self.get(memory_id)

    def delete(self, memory_id: int, ctx: Optional[OperationContext] = None) -> None:
        check_context(ctx)
        row = self._execute(
            f"DELETE FROM {self.collection_name} WHERE id = ? RETURNING id",
            [memory_id],
            op="delete",
            fetch="one",
        )
        if row is None:
            raise NotFoundError(f"memory {memory_id} not found", op="delete")
        logger.debug(f"Deleted memory {memory_id}")

    def search(
        self,
        embedding: List[float],
        options: SearchOptions,
        ctx: Optional[OperationContext] = None,
    ) -> List[Memory]:
        """Semantic search ordered by descending cosine similarity (ties by ID)."""
        check_context(ctx)
        self._check_dimensions(embedding)

        where_sql, params = build_where_clause(options.user_id, options.agent_id, options.filters)
        sql = f"""
            WITH scored AS (
                SELECT {_COLUMNS},
                       array_cosine_similarity(embedding, ?::DOUBLE[{self.embedding_dimension}]) AS raw_score
                FROM {self.collection_name}
                {where_sql}
            )
            SELECT {_COLUMNS}, {_SCORE_EXPR} AS score
            FROM scored
            WHERE {_SCORE_EXPR} >= ?
            ORDER BY score DESC, id ASC
            LIMIT ?
        """
        all_params = [embedding] + params + [options.min_score, options.limit]
        rows = self._execute(sql, all_params, op="search", fetch="all")

        return [self._row_to_memory(row[:11], score=max(-1.0, min(1.0, float(row[11])))) for row in rows]

    def get_all(self, options: GetAllOptions, ctx: Optional[OperationContext] = None) -> List[Memory]:
        """List memories ordered by creation time, newest first."""
        check_context(ctx)
        where_sql, params = build_where_clause(options.user_id, options.agent_id)
        sql = f"""
            SELECT {_COLUMNS}
            FROM {self.collection_name}
            {where_sql}
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
        """
        rows = self._execute(sql, params + [options.limit, options.offset], op="get_all", fetch="all")
        return [self._row_to_memory(row) for row in rows]

    def delete_all(self, options: DeleteAllOptions, ctx: Optional[OperationContext] = None) -> int:
        check_context(ctx)
        where_sql, params = build_where_clause(options.user_id, options.agent_id)
        rows = self._execute(
            f"DELETE FROM {self.collection_name} {where_sql} RETURNING id",
            params,
            op="delete_all",
            fetch="all",
        )
        logger.debug(f"Deleted {len(rows)} memories")
        return len(rows)

    def count(self, user_id: Optional[str] = None) -> int:
        """Count memories, optionally for one user."""
        where_sql, params = build_where_clause(user_id, None)
        row = self._execute(f"SELECT COUNT(*) FROM {self.collection_name} {where_sql}", params, op="count", fetch="one")
        return row[0] if row else 0

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            try:
                self.conn.close()
            except duckdb.Error as e:
                raise StorageOperationError(str(e), op="close") from e
            finally:
                self.conn = None
