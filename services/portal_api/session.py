"""Session holder and its durable local storage."""
import json
import logging
import os
from dataclasses import replace
from typing import Optional

from services.shared.models import Identity

logger = logging.getLogger(__name__)


class LocalStorage:
    """
    Key/value storage persisted as a single JSON file.

    Mirrors the browser localStorage contract the portal relies on:
    string values under string keys, surviving process restarts.
    """

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable session storage {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str):
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class SessionHolder:
    """
    The current authenticated identity, or none.

    Lifecycle: restore() once at startup, set() on login, clear() on
    logout. Every change is mirrored to durable storage under one key.
    """

    def __init__(self, storage: LocalStorage, key: str = "voting_user"):
        self.storage = storage
        self.key = key
        self._identity: Optional[Identity] = None

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def restore(self) -> Optional[Identity]:
        """Load the identity saved by a previous run, if any."""
        raw = self.storage.get_item(self.key)
        if raw is None:
            self._identity = None
            return None
        try:
            self._identity = Identity.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding malformed stored session: {e}")
            self.storage.remove_item(self.key)
            self._identity = None
            return None
        logger.info(f"Restored session for {self._identity.voter_id}")
        return self._identity

    def set(self, identity: Identity):
        self._identity = identity
        self.storage.set_item(self.key, identity.to_json())

    def mark_voted(self):
        """Record locally that the current user has voted."""
        if self._identity is None or self._identity.has_voted:
            return
        self.set(replace(self._identity, has_voted=True))

    def clear(self):
        if self._identity is not None:
            logger.info(f"Session cleared for {self._identity.voter_id}")
        self._identity = None
        self.storage.remove_item(self.key)
