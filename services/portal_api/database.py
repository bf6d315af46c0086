"""PostgreSQL data-access client for the voting portal."""
import logging
import uuid
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import asyncpg

from .config import settings

logger = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).with_name("schema.sql")

# Columns each collection exposes; anything else is rejected before reaching SQL
COLLECTIONS = {
    "users": ("id", "voter_id", "password", "full_name", "role", "has_voted", "created_at"),
    "candidates": ("id", "name", "party", "description", "vote_count", "created_at"),
    "votes": ("id", "user_id", "candidate_id", "voted_at"),
}

# Columns stored as UUID; filtering them by anything else can match no row
UUID_COLUMNS = frozenset({"id", "user_id", "candidate_id"})

# Connection bound by transaction() for the running task
_current_connection: ContextVar[Optional[asyncpg.Connection]] = ContextVar(
    "_current_connection", default=None
)


class DatabaseError(Exception):
    """Raised when a backend call fails."""
    pass


class DuplicateRecordError(DatabaseError):
    """Raised when an insert violates a unique constraint."""

    def __init__(self, message: str, constraint: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint


def _check_columns(collection: str, columns: Iterable[str]) -> None:
    allowed = COLLECTIONS.get(collection)
    if allowed is None:
        raise ValueError(f"Unknown collection: {collection}")
    for column in columns:
        if column not in allowed:
            raise ValueError(f"Unknown column {column!r} for collection {collection}")


def _where(filters: Optional[Dict[str, Any]], start: int = 1) -> Tuple[str, List[Any]]:
    """Build a WHERE clause of ANDed equality tests, numbering params from start."""
    if not filters:
        return "", []
    clauses = []
    args = []
    for offset, (column, value) in enumerate(filters.items()):
        clauses.append(f"{column} = ${start + offset}")
        args.append(value)
    return " WHERE " + " AND ".join(clauses), args


def _unmatchable(filters: Optional[Dict[str, Any]]) -> bool:
    """True when a filter compares a UUID column with a value that is not a UUID."""
    for column, value in (filters or {}).items():
        if column not in UUID_COLUMNS or value is None or isinstance(value, uuid.UUID):
            continue
        try:
            uuid.UUID(str(value))
        except ValueError:
            return True
    return False


def _row_to_dict(row: asyncpg.Record) -> Dict[str, Any]:
    return {
        key: str(value) if isinstance(value, uuid.UUID) else value
        for key, value in row.items()
    }


def _rows_affected(status: str) -> int:
    # asyncpg returns the command tag, e.g. "UPDATE 3"
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0


class Database:
    """
    Async PostgreSQL data-access client.

    Exposes generic operations over the named collections in COLLECTIONS:
    find, insert, update, increment and count, plus transaction() which
    makes every call made inside it share one connection and commit or
    roll back together.
    """

    def __init__(self):
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self):
        """Initialize database connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                settings.postgres_dsn,
                min_size=settings.POSTGRES_POOL_MIN_SIZE,
                max_size=settings.POSTGRES_POOL_MAX_SIZE,
                command_timeout=settings.POSTGRES_COMMAND_TIMEOUT
            )
            logger.info("PostgreSQL connection pool initialized successfully")

            # Verify connection
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                logger.info("PostgreSQL connection verified")

        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
            raise

    async def apply_schema(self):
        """Create tables and constraints from schema.sql if missing."""
        async with self._connection() as conn:
            await conn.execute(SCHEMA_FILE.read_text())
        logger.info("Database schema applied")

    @asynccontextmanager
    async def _connection(self):
        conn = _current_connection.get()
        if conn is not None:
            yield conn
            return
        if self.pool is None:
            raise DatabaseError("Database pool is not initialized")
        async with self.pool.acquire() as conn:
            yield conn

    @contextmanager
    def _errors(self, operation: str, collection: str):
        try:
            yield
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Unique constraint violated on {operation} {collection}: {e}")
            raise DuplicateRecordError(str(e), constraint=e.constraint_name) from e
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Error during {operation} on {collection}: {e}")
            raise DatabaseError(f"{operation} on {collection} failed: {e}") from e

    @asynccontextmanager
    async def transaction(self):
        """
        Run the enclosed calls in one database transaction.

        Any exception raised inside the block rolls the transaction back
        and propagates. Nested use joins the outer transaction.
        """
        if _current_connection.get() is not None:
            yield
            return
        if self.pool is None:
            raise DatabaseError("Database pool is not initialized")
        with self._errors("transaction", "*"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    token = _current_connection.set(conn)
                    try:
                        yield
                    finally:
                        _current_connection.reset(token)

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Read rows matching all filters.

        Args:
            collection: Collection name
            filters: Column -> value equality filters
            order_by: Optional column to sort by
            descending: Sort direction for order_by

        Returns:
            List of row dictionaries (UUIDs as strings)
        """
        filters = filters or {}
        _check_columns(collection, list(filters) + ([order_by] if order_by else []))
        if _unmatchable(filters):
            return []
        where, args = _where(filters)
        query = f"SELECT * FROM {collection}{where}"
        if order_by:
            query += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"

        with self._errors("find", collection):
            async with self._connection() as conn:
                rows = await conn.fetch(query, *args)
        return [_row_to_dict(row) for row in rows]

    async def insert(self, collection: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Insert rows and return them as stored.

        Raises:
            DuplicateRecordError: A unique constraint rejected a row
            DatabaseError: Any other backend failure
        """
        inserted = []
        with self._errors("insert", collection):
            async with self._connection() as conn:
                async with conn.transaction():
                    for row in rows:
                        _check_columns(collection, row)
                        columns = list(row)
                        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
                        query = (
                            f"INSERT INTO {collection} ({', '.join(columns)}) "
                            f"VALUES ({placeholders}) RETURNING *"
                        )
                        record = await conn.fetchrow(query, *row.values())
                        inserted.append(_row_to_dict(record))
        return inserted

    async def update(
        self,
        collection: str,
        patch: Dict[str, Any],
        filters: Dict[str, Any]
    ) -> int:
        """Set patch columns on rows matching filters; returns rows updated."""
        _check_columns(collection, list(patch) + list(filters))
        if _unmatchable(filters):
            return 0
        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(patch, start=1))
        where, args = _where(filters, start=len(patch) + 1)
        query = f"UPDATE {collection} SET {assignments}{where}"

        with self._errors("update", collection):
            async with self._connection() as conn:
                status = await conn.execute(query, *patch.values(), *args)
        return _rows_affected(status)

    async def increment(
        self,
        collection: str,
        column: str,
        filters: Dict[str, Any],
        amount: int = 1
    ) -> int:
        """Atomically add amount to column on matching rows; returns rows updated."""
        _check_columns(collection, [column] + list(filters))
        if _unmatchable(filters):
            return 0
        where, args = _where(filters, start=2)
        query = f"UPDATE {collection} SET {column} = {column} + $1{where}"

        with self._errors("increment", collection):
            async with self._connection() as conn:
                status = await conn.execute(query, amount, *args)
        return _rows_affected(status)

    async def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count rows matching filters."""
        filters = filters or {}
        _check_columns(collection, filters)
        if _unmatchable(filters):
            return 0
        where, args = _where(filters)

        with self._errors("count", collection):
            async with self._connection() as conn:
                return await conn.fetchval(f"SELECT COUNT(*) FROM {collection}{where}", *args)

    async def check_health(self) -> bool:
        """Check database connection health."""
        try:
            if not self.pool:
                return False
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def close(self):
        """Close database connection pool."""
        try:
            if self.pool:
                await self.pool.close()
                logger.info("PostgreSQL connection pool closed successfully")
        except Exception as e:
            logger.error(f"Error closing PostgreSQL connection pool: {e}")


# Global database instance
database = Database()
