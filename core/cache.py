"""
Sample Cache - Polygon fingerprint -> sampled radiation.

In-memory mapping with an optional durable store behind it. The store is
read once at construction and written through on every put. Store
failures never affect the in-memory result.
"""

import json
import logging
import os
import sqlite3
import tempfile
import time
from typing import Dict, Optional

log = logging.getLogger(__name__)


class SampleStore:
    """Durable backend for the sample cache."""

    def load_all(self) -> Dict[str, int]:
        raise NotImplementedError

    def save(self, fingerprint: str, value: int) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class SQLiteSampleStore(SampleStore):
    """SQLite store, one row per fingerprint."""

    def __init__(self, db_path: str = "polygon_sample_cache.db"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        conn = sqlite3.connect(self.db_path)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS polygon_sample_cache (
                fingerprint TEXT PRIMARY KEY,
                radiation INTEGER,
                created_at REAL
            )
        """)
        conn.commit()
        conn.close()

    def load_all(self) -> Dict[str, int]:
        conn = sqlite3.connect(self.db_path)
        rows = conn.execute("SELECT fingerprint, radiation FROM polygon_sample_cache").fetchall()
        conn.close()
        return {row[0]: row[1] for row in rows}

    def save(self, fingerprint: str, value: int) -> None:
        conn = sqlite3.connect(self.db_path)
        conn.execute(
            """INSERT OR REPLACE INTO polygon_sample_cache
               (fingerprint, radiation, created_at)
               VALUES (?, ?, ?)""",
            (fingerprint, value, time.time())
        )
        conn.commit()
        conn.close()

    def clear(self) -> None:
        conn = sqlite3.connect(self.db_path)
        conn.execute("DELETE FROM polygon_sample_cache")
        conn.commit()
        conn.close()


class JSONFileSampleStore(SampleStore):
    """The whole mapping serialized as one JSON object on disk."""

    def __init__(self, path: str = "polygon_sample_cache.json"):
        self.path = path

    def load_all(self) -> Dict[str, int]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return {str(k): int(v) for k, v in data.items()}

    def save(self, fingerprint: str, value: int) -> None:
        data = self.load_all()
        data[fingerprint] = value
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # Swap a complete file into place
        fd, tmp_path = tempfile.mkstemp(dir=directory or ".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)


_STORE_ERRORS = (sqlite3.Error, OSError, ValueError, TypeError, AttributeError)


class SampleCache:
    """
    Fingerprint -> radiation (kWh/m²/year) cache.

    Shared by every sampling call in the process. Plain dict operations are
    the only synchronization: two sessions computing the same fingerprint
    both write and the last one wins.
    """

    def __init__(self, store: Optional[SampleStore] = None):
        self.store = store
        self._values: Dict[str, int] = {}
        self._load()

    def _load(self) -> None:
        if self.store is None:
            return
        try:
            self._values.update(self.store.load_all())
            log.debug(f"Loaded {len(self._values)} cached polygon samples")
        except _STORE_ERRORS as e:
            log.warning(f"Could not load sample cache: {e}")

    def get(self, fingerprint: str) -> Optional[int]:
        return self._values.get(fingerprint)

    def put(self, fingerprint: str, value: int) -> None:
        self._values[fingerprint] = value
        if self.store is None:
            return
        try:
            self.store.save(fingerprint, value)
        except _STORE_ERRORS as e:
            log.warning(f"Could not persist sample cache entry: {e}")

    def clear(self) -> None:
        self._values.clear()
        if self.store is None:
            return
        try:
            self.store.clear()
        except _STORE_ERRORS as e:
            log.warning(f"Could not clear persisted sample cache: {e}")

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._values


def create_store(path: Optional[str]) -> Optional[SampleStore]:
    """Store for a configured path: none, a JSON file for *.json, otherwise SQLite."""
    if not path:
        return None
    if path.endswith(".json"):
        return JSONFileSampleStore(path)
    try:
        return SQLiteSampleStore(path)
    except sqlite3.Error as e:
        log.warning(f"Sample cache store unavailable at {path}: {e}")
        return None
