"""Postgres + pgvector memory repository.

Connections come from an asyncpg pool sized by StorageSettings. Acquiring a
connection from an exhausted pool is a transient condition and is retried
with backoff before surfacing as StorageError.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, List, Optional, Sequence

import asyncpg
import numpy as np
from loguru import logger
from pgvector.asyncpg import register_vector

from nousflash.core.models import Memory
from nousflash.storage.base import (
    MemoryPair,
    MemoryRepository,
    RepositoryTransaction,
    ScoredMemory,
)
from nousflash.utils.exceptions import DataError, StorageError
from nousflash.utils.retry import retry_async

if TYPE_CHECKING:
    from nousflash.config.settings import StorageSettings

TABLE = "long_term_memories"

EXTENSION_SQL = "CREATE EXTENSION IF NOT EXISTS vector"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id BIGSERIAL PRIMARY KEY,
    content TEXT NOT NULL,
    embedding vector({dimension}) NOT NULL,
    significance REAL NOT NULL CHECK (significance >= 0 AND significance <= 1),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS {table}_embedding_idx
    ON {table} USING hnsw (embedding vector_cosine_ops);
"""

INSERT_SQL = f"""
INSERT INTO {TABLE} (content, embedding, significance)
VALUES ($1, $2, $3)
RETURNING id, content, embedding, significance, created_at
"""

DELETE_SQL = f"DELETE FROM {TABLE} WHERE id = ANY($1::bigint[])"

NEAREST_SQL = f"""
SELECT id, content, embedding, significance, created_at,
       embedding <=> $1 AS distance
FROM {TABLE}
ORDER BY distance ASC, created_at DESC, id DESC
LIMIT $2
"""

CLOSE_PAIRS_SQL = f"""
SELECT a.id AS a_id, a.content AS a_content, a.embedding AS a_embedding,
       a.significance AS a_significance, a.created_at AS a_created_at,
       b.id AS b_id, b.content AS b_content, b.embedding AS b_embedding,
       b.significance AS b_significance, b.created_at AS b_created_at,
       a.embedding <=> b.embedding AS distance
FROM {TABLE} a
JOIN {TABLE} b ON a.id < b.id
WHERE (a.embedding <=> b.embedding) < $1
ORDER BY distance ASC, a.id ASC, b.id ASC
"""

COUNT_SQL = f"SELECT count(*) FROM {TABLE}"


def _row_to_memory(row: Any, prefix: str = "") -> Memory:
    """Convert an asyncpg record (optionally with column prefix) to Memory."""
    embedding = row[f"{prefix}embedding"]
    return Memory(
        id=int(row[f"{prefix}id"]),
        content=row[f"{prefix}content"],
        embedding=tuple(float(x) for x in embedding),
        significance=float(row[f"{prefix}significance"]),
        created_at=row[f"{prefix}created_at"],
    )


def _storage_error(action: str, exc: Exception) -> Exception:
    """Map driver exceptions onto the agent's error taxonomy."""
    if isinstance(exc, asyncpg.DataError):
        return DataError(f"{action} rejected by database: {exc}")
    return StorageError(f"{action} failed: {exc}")


class _PostgresTransaction(RepositoryTransaction):
    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def insert(
        self,
        content: str,
        embedding: Sequence[float],
        significance: float,
    ) -> Memory:
        try:
            row = await self._conn.fetchrow(
                INSERT_SQL,
                content,
                np.asarray(embedding, dtype=np.float32),
                float(significance),
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise _storage_error("Insert", e) from e
        return _row_to_memory(row)

    async def delete_by_ids(self, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        try:
            status = await self._conn.execute(DELETE_SQL, list(ids))
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise _storage_error("Delete", e) from e
        # asyncpg returns the command tag, e.g. "DELETE 2"
        return int(status.split()[-1])


class PostgresMemoryRepository(MemoryRepository):
    """pgvector-backed repository using a pooled asyncpg connection."""

    backend_name = "postgres"

    def __init__(
        self,
        settings: Optional[StorageSettings] = None,
        dimension: int = 1536,
    ):
        if settings is None:
            from nousflash.config.settings import StorageSettings
            settings = StorageSettings()

        self.settings = settings
        self.dimension = dimension
        self._pool: Optional[asyncpg.Pool] = None
        self._init_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Create the pool. Failure here is fatal for the process."""
        async with self._init_lock:
            if self._pool is not None:
                return
            try:
                self._pool = await asyncpg.create_pool(
                    dsn=self.settings.dsn,
                    min_size=self.settings.pool_min_size,
                    max_size=self.settings.pool_max_size,
                    command_timeout=self.settings.command_timeout,
                    init=register_vector,
                )
            except ValueError as e:
                # register_vector fails this way when the extension is missing
                raise StorageError(
                    f"pgvector not available ({e}); run `nousflash init-db` first"
                ) from e
            except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
                raise StorageError(f"Could not establish connection pool: {e}") from e
            logger.info(
                f"Postgres pool ready (max {self.settings.pool_max_size} connections)"
            )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Postgres pool closed")

    async def create_extension(self) -> None:
        """
        Install pgvector over a plain connection.

        Pooled connections register the vector codec on connect, which needs
        the extension to exist already, so this runs before connect().
        """
        try:
            conn = await asyncpg.connect(
                dsn=self.settings.dsn, timeout=self.settings.command_timeout
            )
        except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
            raise StorageError(f"Could not connect to database: {e}") from e
        try:
            await conn.execute(EXTENSION_SQL)
        except (asyncpg.PostgresError, OSError) as e:
            raise StorageError(f"Could not create vector extension: {e}") from e
        finally:
            await conn.close()
        logger.info("pgvector extension ready")

    async def create_schema(self) -> None:
        """Create the table and index if missing."""
        sql = SCHEMA_SQL.format(table=TABLE, dimension=self.dimension)
        async with self._connection() as conn:
            try:
                await conn.execute(sql)
            except (asyncpg.PostgresError, OSError) as e:
                raise StorageError(f"Schema creation failed: {e}") from e
        logger.info(f"Schema ready: {TABLE} (vector({self.dimension}))")

    async def _acquire_once(self) -> asyncpg.Connection:
        if self._pool is None:
            raise StorageError("Repository not connected")
        try:
            return await self._pool.acquire(timeout=self.settings.command_timeout)
        except asyncio.TimeoutError as e:
            raise StorageError("Connection pool exhausted") from e
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise StorageError(f"Could not acquire connection: {e}") from e

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        conn = await retry_async(
            self._acquire_once,
            attempts=self.settings.acquire_retries,
            base_delay=self.settings.retry_base_delay,
            description="Connection acquire",
        )
        try:
            yield conn
        finally:
            await self._pool.release(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[RepositoryTransaction]:
        async with self._connection() as conn:
            tx = conn.transaction()
            try:
                await tx.start()
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                raise StorageError(f"Could not begin transaction: {e}") from e

            try:
                yield _PostgresTransaction(conn)
            except BaseException:
                await tx.rollback()
                raise

            try:
                await tx.commit()
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                raise StorageError(f"Commit failed: {e}") from e

    async def query_by_distance(
        self,
        embedding: Sequence[float],
        limit: int,
    ) -> List[ScoredMemory]:
        if limit <= 0:
            return []
        async with self._connection() as conn:
            try:
                rows = await conn.fetch(
                    NEAREST_SQL, np.asarray(embedding, dtype=np.float32), limit
                )
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                raise _storage_error("Nearest-neighbour query", e) from e
        return [(_row_to_memory(row), float(row["distance"])) for row in rows]

    async def find_close_pairs(self, max_distance: float) -> List[MemoryPair]:
        async with self._connection() as conn:
            try:
                rows = await conn.fetch(CLOSE_PAIRS_SQL, float(max_distance))
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                raise _storage_error("Close-pair query", e) from e
        return [
            (_row_to_memory(row, "a_"), _row_to_memory(row, "b_"), float(row["distance"]))
            for row in rows
        ]

    async def count(self) -> int:
        async with self._connection() as conn:
            try:
                return int(await conn.fetchval(COUNT_SQL))
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                raise _storage_error("Count", e) from e
