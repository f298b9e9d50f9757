"""Session and user stores — pluggable get/save persistence.

The bot keeps two independent stores, one for dialog session state and one
for per-user data. Both are keyed by a contact's bare address and hold
plain JSON-compatible dicts the core never interprets.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger("hipbot.stores")


class Store(ABC):
    """Abstract key/value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        """Load the value for `key`, or None if nothing was saved yet."""
        ...

    @abstractmethod
    async def save(self, key: str, value: dict) -> None:
        """Persist `value` under `key`, replacing what was there."""
        ...


class MemoryStore(Store):
    """Process-local store. Values are deep-copied in and out so callers
    cannot mutate stored state behind the store's back."""

    def __init__(self):
        self._data: dict[str, dict] = {}

    async def get(self, key: str) -> Optional[dict]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def save(self, key: str, value: dict) -> None:
        self._data[key] = copy.deepcopy(value)

    def __len__(self) -> int:
        return len(self._data)


class PostgresStore(Store):
    """JSONB rows in the bot_state table, one namespace per store.

    Requires init_db() to have been called.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    async def get(self, key: str) -> Optional[dict]:
        from .db.connection import get_connection

        async with get_connection() as conn:
            row = await conn.fetchrow(
                "SELECT value FROM bot_state WHERE namespace = $1 AND key = $2",
                self.namespace, key,
            )
        if row is None:
            return None
        value = row["value"]
        return json.loads(value) if isinstance(value, str) else value

    async def save(self, key: str, value: dict) -> None:
        from .db.connection import get_connection

        async with get_connection() as conn:
            await conn.execute("""
                INSERT INTO bot_state (namespace, key, value) VALUES ($1, $2, $3::jsonb)
                ON CONFLICT (namespace, key) DO UPDATE SET value = $3::jsonb, updated_at = NOW()
            """, self.namespace, key, json.dumps(value))
        logger.debug(f"Saved {self.namespace}/{key}")
