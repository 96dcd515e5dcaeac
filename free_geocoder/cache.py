"""
Content-addressed result cache.

Keys are a truncated digest of the concatenated, upper-cased query components,
the same digest the address table is indexed by. Expiry is lazy: an entry read
after its TTL is a miss and is overwritten by the next successful write.

Two backends share one interface:
  - MemoryResultCache: per-process dict behind a lock
  - SQLiteResultCache: persistent, shared between processes
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol

from free_geocoder.config import CacheConfig
from free_geocoder.models import CacheEntry, LocationResult

logger = logging.getLogger(__name__)

# Characters of the base64 MD5 digest kept as the key
DIGEST_LENGTH = 16
DEFAULT_TTL = timedelta(weeks=1)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def composite_key(*parts: Optional[str]) -> str:
    """Concatenate the known parts with no separators: ('1600 PENNSYLVANIA AVE NW', 'WASHINGTON', 'DC', 'US')."""
    key = "".join(p for p in parts if p)
    return re.sub(r",\s*", "", key).upper()


def digest_key(key: str) -> str:
    """Stable, fixed-length digest of a composite key."""
    raw = hashlib.md5(key.upper().encode("utf-8")).digest()
    return base64.urlsafe_b64encode(raw).decode("ascii")[:DIGEST_LENGTH]


class ResultCache(Protocol):
    def get(self, digest: str) -> Optional[CacheEntry]: ...

    def put(self, digest: str, result: LocationResult, ttl: Optional[timedelta] = None) -> CacheEntry: ...


class MemoryResultCache:
    """In-process cache. Entries are immutable, so readers never see a half-written one."""

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Clock = utcnow):
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}

    def get(self, digest: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(digest)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    def put(self, digest: str, result: LocationResult, ttl: Optional[timedelta] = None) -> CacheEntry:
        entry = CacheEntry(
            digest=digest,
            payload=result.model_dump_json(),
            inserted_at=self._clock(),
            ttl=ttl or self.ttl,
        )
        with self._lock:
            self._entries[digest] = entry
        return entry

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SQLiteResultCache:
    """Persistent cache; each write is a single upsert, last writer wins."""

    def __init__(self, db_path: Path | str, ttl: timedelta = DEFAULT_TTL, clock: Clock = utcnow):
        self.db_path = Path(db_path)
        self.ttl = ttl
        self._clock = clock
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path), timeout=30)

    def _init_db(self) -> None:
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS result_cache (
                    digest TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    inserted_at TEXT NOT NULL,
                    ttl_seconds REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, digest: str) -> Optional[CacheEntry]:
        conn = self._connect()
        conn.row_factory = sqlite3.Row
        try:
            row = conn.execute(
                "SELECT digest, payload, inserted_at, ttl_seconds FROM result_cache WHERE digest = ?",
                (digest,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        entry = CacheEntry(
            digest=row["digest"],
            payload=row["payload"],
            inserted_at=datetime.fromisoformat(row["inserted_at"]),
            ttl=timedelta(seconds=row["ttl_seconds"]),
        )
        if entry.is_expired(self._clock()):
            return None
        return entry

    def put(self, digest: str, result: LocationResult, ttl: Optional[timedelta] = None) -> CacheEntry:
        entry = CacheEntry(
            digest=digest,
            payload=result.model_dump_json(),
            inserted_at=self._clock(),
            ttl=ttl or self.ttl,
        )
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO result_cache (digest, payload, inserted_at, ttl_seconds)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(digest) DO UPDATE SET
                        payload = excluded.payload,
                        inserted_at = excluded.inserted_at,
                        ttl_seconds = excluded.ttl_seconds
                    """,
                    (
                        entry.digest,
                        entry.payload,
                        entry.inserted_at.isoformat(),
                        entry.ttl.total_seconds(),
                    ),
                )
        finally:
            conn.close()
        return entry


def build_cache(config: CacheConfig) -> ResultCache:
    """Factory: return the configured cache backend."""
    ttl = timedelta(days=config.ttl_days)
    if config.backend == "sqlite":
        logger.info("Using SQLite result cache at %s (ttl=%s)", config.path, ttl)
        return SQLiteResultCache(config.path, ttl=ttl)
    return MemoryResultCache(ttl=ttl)
