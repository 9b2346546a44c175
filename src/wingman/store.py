"""SQLite storage for persistent state buckets."""

import copy
import json
import sqlite3
from pathlib import Path
from typing import Any

# Every read is merged over these, so older databases pick up new keys.
DEFAULTS: dict[str, dict[str, Any]] = {
    "settings": {
        "auto_decide": False,
        "chat_assist": False,
        "learn_type": True,
        "decision_speed": "normal",
        "api_key": "",
    },
    "stats": {
        "decisions": 0,
        "accepted": 0,
        "rejected": 0,
        "super_accepted": 0,
        "chats": 0,
        "suggestions": 0,
        "sessions": 0,
        "last_active": None,
    },
    "preferences": {
        "traits": [],
        "interests": [],
        "physical_preferences": [],
        "deal_breakers": [],
        "must_haves": [],
        "type_summary": "",
        "liked_history": [],
        "disliked_history": [],
    },
    "chat_style": {
        "tone": "casual",
        "emoji_usage": "moderate",
        "message_length": None,
        "patterns": [],
        "vocabulary": [],
        "samples": [],
    },
}

BUCKETS = tuple(DEFAULTS)


class BucketStore:
    """Persistent key/value buckets using SQLite.

    Each bucket is one JSON document. Writers replace whole documents with
    no locking; the last writer wins.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the buckets table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS buckets (
                name        TEXT PRIMARY KEY,
                value       TEXT NOT NULL,
                updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        conn.commit()

    @staticmethod
    def _check_bucket(bucket: str) -> None:
        if bucket not in DEFAULTS:
            raise ValueError(f"Unknown bucket: {bucket}")

    def _read_raw(self, bucket: str) -> dict[str, Any]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT value FROM buckets WHERE name = ?", (bucket,)
        ).fetchone()
        if row is None:
            return {}
        try:
            data = json.loads(row["value"])
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, bucket: str) -> dict[str, Any]:
        """Read a bucket merged over its defaults.

        Args:
            bucket: One of BUCKETS.

        Returns:
            A fresh dict; mutating it does not touch the store.
        """
        self._check_bucket(bucket)
        merged = copy.deepcopy(DEFAULTS[bucket])
        merged.update(self._read_raw(bucket))
        return merged

    def set(self, bucket: str, value: dict[str, Any]) -> None:
        """Replace a bucket with value."""
        self._check_bucket(bucket)
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO buckets (name, value)
            VALUES (?, ?)
            ON CONFLICT(name) DO UPDATE SET
                value = excluded.value,
                updated_at = datetime('now')
            """,
            (bucket, json.dumps(value, default=str)),
        )
        conn.commit()

    def update(self, bucket: str, **updates: Any) -> dict[str, Any]:
        """Read-modify-write a bucket.

        Returns:
            The bucket as written.
        """
        current = self.get(bucket)
        current.update(updates)
        self.set(bucket, current)
        return current

    def increment_stat(self, name: str, amount: int = 1) -> dict[str, Any]:
        """Increment a numeric stat. Unknown or non-numeric stats are left alone."""
        stats = self.get("stats")
        value = stats.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            stats[name] = value + amount
            self.set("stats", stats)
        return stats

    def clear(self) -> int:
        """Delete every bucket.

        Returns:
            Number of buckets removed.
        """
        conn = self._get_connection()
        cursor = conn.execute("DELETE FROM buckets")
        conn.commit()
        return cursor.rowcount

    def export_data(self) -> str:
        """Serialize all buckets (default-merged) as a JSON document."""
        return json.dumps({name: self.get(name) for name in BUCKETS}, indent=2, default=str)

    def import_data(self, payload: str) -> list[str]:
        """Load buckets from an export document.

        Unknown top-level keys are ignored.

        Returns:
            Names of the buckets written.
        """
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("Import payload must be a JSON object")
        written = []
        for name, value in data.items():
            if name in DEFAULTS and isinstance(value, dict):
                self.set(name, value)
                written.append(name)
        return written

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
