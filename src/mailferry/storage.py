"""Per-user key-value store and the rule repositories built on it."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Generator, Protocol

from mailferry.models import Rule, dump_rule_set, parse_rule_set

logger = logging.getLogger(__name__)

RULES_KEY = "gmailManagerRules"


class KeyValueStore:
    """SQLite-backed string store scoped by user."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str | Path, user: str = "default"):
        """Initialize storage with database path and the user to scope keys to."""
        self.db_path = Path(db_path)
        self.user = user
        self._init_database()

    def _init_database(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                );

                CREATE TABLE IF NOT EXISTS properties (
                    user TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user, key)
                );
                """
            )

            cursor = conn.execute("SELECT version FROM schema_version")
            row = cursor.fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (self.SCHEMA_VERSION,),
                )

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with proper handling."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        """Get the value stored under key, or None."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT value FROM properties WHERE user = ? AND key = ?",
                (self.user, key),
            )
            row = cursor.fetchone()
            return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO properties (user, key, value, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (self.user, key, value, datetime.now().isoformat()),
            )
        logger.debug(f"Stored {len(value)} chars under {self.user}/{key}")

    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        with self._get_connection() as conn:
            conn.execute(
                "DELETE FROM properties WHERE user = ? AND key = ?", (self.user, key)
            )

    def keys(self) -> list[str]:
        """List the keys stored for this user."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT key FROM properties WHERE user = ? ORDER BY key", (self.user,)
            )
            return [row["key"] for row in cursor.fetchall()]


class RuleRepository(Protocol):
    """Loads and saves the whole rule set."""

    def load(self) -> list[Rule]: ...

    def save(self, rules: list[Rule]) -> None: ...


class KeyValueRuleRepository:
    """Rule set stored as JSON under one key of a KeyValueStore."""

    def __init__(self, store: KeyValueStore, key: str = RULES_KEY):
        self.store = store
        self.key = key

    def load(self) -> list[Rule]:
        return parse_rule_set(self.store.get(self.key))

    def save(self, rules: list[Rule]) -> None:
        self.store.set(self.key, dump_rule_set(rules))


class InMemoryRuleRepository:
    """Rule set kept in memory, serialized like the persistent repository."""

    def __init__(self, rules: list[Rule] | None = None):
        self._raw = dump_rule_set(rules or [])

    def load(self) -> list[Rule]:
        return parse_rule_set(self._raw)

    def save(self, rules: list[Rule]) -> None:
        self._raw = dump_rule_set(rules)
