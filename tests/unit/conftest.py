"""Pytest fixtures for unit tests.

Provides an in-memory implementation of the portal's data-access interface
(find / insert / update / increment / count / transaction) with the same
unique constraints as schema.sql, transaction rollback, failure injection
and a call log, plus seeded stores, sessions and an API client.
"""

import asyncio
import copy
import uuid
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from services.portal_api.database import DatabaseError, DuplicateRecordError
from services.portal_api.portal import Portal
from services.portal_api.session import LocalStorage, SessionHolder
from services.shared.security import hash_password

ADMIN_PASSWORD = "admin123"
VOTER_PASSWORD = "voter123"

# Hashing is deliberately slow; hash each demo password once per run
_HASHES: Dict[str, str] = {}


def hashed(password: str) -> str:
    if password not in _HASHES:
        _HASHES[password] = hash_password(password)
    return _HASHES[password]


class InMemoryStore:
    """Data-access client backed by Python lists.

    Every operation yields to the event loop once before touching data, so
    concurrent callers interleave the way remote round-trips would.
    """

    UNIQUE = {
        "users": ("voter_id",),
        "votes": ("user_id",),
    }
    DEFAULTS = {
        "users": {"full_name": "", "role": "voter", "has_voted": False},
        "candidates": {"description": "", "vote_count": 0},
        "votes": {},
    }

    def __init__(self, serialize_transactions: bool = True):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"users": [], "candidates": [], "votes": []}
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, Exception] = {}
        self.gates: Dict[tuple, asyncio.Event] = {}
        self.serialize_transactions = serialize_transactions
        self.healthy = True
        self._tx_lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(f"in_tx_{id(self)}", default=False)

    # Test helpers

    def fail_on(self, operation: str, collection: str, error: Optional[Exception] = None):
        self.failures[(operation, collection)] = error or DatabaseError(f"{operation} {collection} failed")

    def gate_on(self, operation: str, collection: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[(operation, collection)] = event
        return event

    def calls_to(self, collection: str) -> List[str]:
        return [operation for operation, name in self.calls if name == collection]

    def writes(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in ("insert", "update", "increment")]

    def add(self, collection: str, **row) -> Dict[str, Any]:
        """Insert a row directly, bypassing the call log."""
        record = {**self.DEFAULTS[collection], **row}
        record.setdefault("id", str(uuid.uuid4()))
        self.tables[collection].append(record)
        return record

    def get(self, collection: str, row_id: str) -> Dict[str, Any]:
        return next(row for row in self.tables[collection] if row["id"] == row_id)

    # Data-access interface

    async def _enter(self, operation: str, collection: str):
        await asyncio.sleep(0)
        self.calls.append((operation, collection))
        gate = self.gates.get((operation, collection))
        if gate is not None:
            await gate.wait()
        error = self.failures.get((operation, collection))
        if error is not None:
            raise error

    def _matching(self, collection: str, filters: Optional[Dict[str, Any]]):
        filters = filters or {}
        return [
            row for row in self.tables[collection]
            if all(row.get(column) == value for column, value in filters.items())
        ]

    @asynccontextmanager
    async def transaction(self):
        if self._in_transaction.get():
            yield
            return
        if self.serialize_transactions:
            await self._tx_lock.acquire()
        snapshot = copy.deepcopy(self.tables)
        token = self._in_transaction.set(True)
        try:
            yield
        except BaseException:
            self.tables = snapshot
            raise
        finally:
            self._in_transaction.reset(token)
            if self.serialize_transactions:
                self._tx_lock.release()

    async def find(self, collection, filters=None, order_by=None, descending=False):
        await self._enter("find", collection)
        rows = [dict(row) for row in self._matching(collection, filters)]
        if order_by:
            rows.sort(key=lambda row: row[order_by], reverse=descending)
        return rows

    async def insert(self, collection, rows):
        await self._enter("insert", collection)
        inserted = []
        for row in rows:
            record = {**self.DEFAULTS[collection], **row}
            record.setdefault("id", str(uuid.uuid4()))
            if collection == "votes":
                record.setdefault("voted_at", datetime.now(timezone.utc))
            for column in self.UNIQUE.get(collection, ()):
                if any(existing.get(column) == record[column] for existing in self.tables[collection]):
                    raise DuplicateRecordError(
                        f"duplicate key value violates unique constraint on {collection}.{column}",
                        constraint=f"{collection}_{column}_key"
                    )
            inserted.append(record)
        self.tables[collection].extend(inserted)
        return [dict(record) for record in inserted]

    async def update(self, collection, patch, filters):
        await self._enter("update", collection)
        rows = self._matching(collection, filters)
        for row in rows:
            row.update(patch)
        return len(rows)

    async def increment(self, collection, column, filters, amount=1):
        await self._enter("increment", collection)
        rows = self._matching(collection, filters)
        for row in rows:
            row[column] += amount
        return len(rows)

    async def count(self, collection, filters=None):
        await self._enter("count", collection)
        return len(self._matching(collection, filters))

    async def check_health(self) -> bool:
        return self.healthy


@pytest.fixture
def store() -> InMemoryStore:
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def seeded_store(store: InMemoryStore) -> InMemoryStore:
    """Store with one admin, three voters (V003 already voted) and two candidates."""
    store.add("users", id="admin-1", voter_id="ADMIN", password=hashed(ADMIN_PASSWORD),
              full_name="Election Administrator", role="admin")
    store.add("users", id="user-1", voter_id="V001", password=hashed(VOTER_PASSWORD),
              full_name="Alice Voter", role="voter")
    store.add("users", id="user-2", voter_id="V002", password=hashed(VOTER_PASSWORD),
              full_name="Bob Voter", role="voter")
    store.add("users", id="user-3", voter_id="V003", password=hashed(VOTER_PASSWORD),
              full_name="Carol Voter", role="voter", has_voted=True)
    store.add("candidates", id="cand-1", name="Zoe Walker", party="Campus Forward",
              description="Transit passes", vote_count=3)
    store.add("candidates", id="cand-2", name="Adam Brooks", party="Independent", vote_count=5)
    return store


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(str(tmp_path / "session.json"))


@pytest.fixture
def session(storage: LocalStorage) -> SessionHolder:
    return SessionHolder(storage)


@pytest.fixture
def make_session(tmp_path):
    """Factory for independent sessions, each with its own storage file."""
    counter = {"n": 0}

    def _make() -> SessionHolder:
        counter["n"] += 1
        return SessionHolder(LocalStorage(str(tmp_path / f"session-{counter['n']}.json")))

    return _make


@pytest.fixture
def portal(seeded_store: InMemoryStore, session: SessionHolder) -> Portal:
    return Portal(seeded_store, session)


@pytest.fixture
def api_client(portal: Portal) -> TestClient:
    """HTTP client for the portal API bound to the in-memory portal.

    The lifespan (PostgreSQL startup) is not run; the portal is injected
    into app.state directly.
    """
    from services.portal_api.main import app, limiter

    limiter.reset()
    app.state.portal = portal
    return TestClient(app)
