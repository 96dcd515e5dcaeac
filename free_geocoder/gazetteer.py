"""
Read access to the gazetteer and the street-level address table.

Gazetteer layout (SQLite):
  - admin1: first-level subdivisions, geonames admin1CodesASCII ('US.MD', 'GB.ENG')
  - admin2: second-level subdivisions, geonames admin2Codes ('GB.ENG.G5', 'US.MD.031')
  - cities: MaxMind world cities (country, city, accent_city, region, population, lat, lon)

Address table layout (SQLite, built from openaddresses.io downloads):
  - addresses: one row per composite-key digest
  - cities: city rows referenced by addresses.city_id, merged into each hit

Names are matched case-insensitively and exactly. Ambiguous names return every
matching row in table order; choosing between them is the resolver's job.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from free_geocoder.cache import digest_key

logger = logging.getLogger(__name__)


class Tier(str, Enum):
    COUNTRY = "admin1"
    COUNTY = "admin2"
    CITY = "cities"


@dataclass(frozen=True)
class GazetteerRecord:
    tier: Tier
    name: str
    code: str                  # 'GB.ENG.G5'; cities use '<country>.<region>'
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    population: Optional[int] = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)


class Gazetteer(Protocol):
    def lookup_by_name(self, tier: Tier, name: str) -> list[GazetteerRecord]: ...

    def lookup_by_code(self, tier: Tier, code: str) -> Optional[GazetteerRecord]: ...

    def lookup_city(
        self, name: str, country: Optional[str] = None, region: Optional[str] = None
    ) -> list[GazetteerRecord]: ...


class AddressTable(Protocol):
    def lookup_by_key(self, key: str) -> Optional[dict[str, Any]]: ...


# ── Gazetteer ──────────────────────────────────────────────────────────

class SQLiteGazetteer:
    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def create_schema(self) -> None:
        conn = self._connect()
        try:
            for table in (Tier.COUNTRY.value, Tier.COUNTY.value):
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        code TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        asciiname TEXT NOT NULL
                    )
                    """
                )
                conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_asciiname ON {table} (asciiname COLLATE NOCASE)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cities (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    country TEXT NOT NULL,
                    city TEXT NOT NULL,
                    accent_city TEXT,
                    region TEXT,
                    population INTEGER,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_cities_city ON cities (city COLLATE NOCASE, country, region)")
            conn.commit()
        finally:
            conn.close()

    def add_admin(self, tier: Tier, code: str, name: str, asciiname: Optional[str] = None) -> None:
        if tier is Tier.CITY:
            raise ValueError("use add_city for the city tier")
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    f"INSERT OR REPLACE INTO {tier.value} (code, name, asciiname) VALUES (?, ?, ?)",
                    (code.upper(), name, asciiname or name),
                )
        finally:
            conn.close()

    def add_city(
        self,
        country: str,
        city: str,
        region: Optional[str],
        latitude: float,
        longitude: float,
        accent_city: Optional[str] = None,
        population: Optional[int] = None,
    ) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO cities (country, city, accent_city, region, population, latitude, longitude)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (country.lower(), city.lower(), accent_city or city, region, population, latitude, longitude),
                )
        finally:
            conn.close()

    def lookup_by_name(self, tier: Tier, name: str) -> list[GazetteerRecord]:
        if tier is Tier.CITY:
            return self.lookup_city(name)
        conn = self._connect()
        try:
            rows = conn.execute(
                f"""
                SELECT code, name FROM {tier.value}
                WHERE asciiname = ? COLLATE NOCASE OR name = ? COLLATE NOCASE
                ORDER BY rowid
                """,
                (name, name),
            ).fetchall()
        finally:
            conn.close()
        return [GazetteerRecord(tier=tier, name=r["name"], code=r["code"]) for r in rows]

    def lookup_by_code(self, tier: Tier, code: str) -> Optional[GazetteerRecord]:
        conn = self._connect()
        try:
            if tier is Tier.CITY:
                # The most populous city of '<country>.<region>'
                country, _, region = code.partition(".")
                row = conn.execute(
                    """
                    SELECT * FROM cities WHERE country = ? AND region = ? COLLATE NOCASE
                    ORDER BY population IS NULL, population DESC, id LIMIT 1
                    """,
                    (country.lower(), region),
                ).fetchone()
                return self._city_record(row) if row else None
            row = conn.execute(
                f"SELECT code, name FROM {tier.value} WHERE code = ? COLLATE NOCASE",
                (code,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return GazetteerRecord(tier=tier, name=row["name"], code=row["code"])

    def lookup_city(
        self, name: str, country: Optional[str] = None, region: Optional[str] = None
    ) -> list[GazetteerRecord]:
        sql = "SELECT * FROM cities WHERE city = ? COLLATE NOCASE"
        params: list[Any] = [name]
        if country:
            sql += " AND country = ?"
            params.append(country.lower())
        if region:
            sql += " AND region = ? COLLATE NOCASE"
            params.append(region)
        sql += " ORDER BY population IS NULL, population DESC, id"

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [self._city_record(r) for r in rows]

    @staticmethod
    def _city_record(row: sqlite3.Row) -> GazetteerRecord:
        country = row["country"].upper()
        region = row["region"]
        code = f"{country}.{region.upper()}" if region else country
        return GazetteerRecord(
            tier=Tier.CITY,
            name=row["accent_city"] or row["city"],
            code=code,
            latitude=row["latitude"],
            longitude=row["longitude"],
            population=row["population"],
            extra={
                "city": row["accent_city"] or row["city"],
                "country": country,
                "region": region,
                "population": row["population"],
            },
        )


# ── Address table ──────────────────────────────────────────────────────

class SQLiteAddressTable:
    """Street-level rows indexed by the digest of their composite key."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        if not self.db_path.exists():
            logger.warning("Address table %s does not exist yet", self.db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def create_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cities (
                    sequence INTEGER PRIMARY KEY AUTOINCREMENT,
                    city TEXT NOT NULL,
                    county TEXT,
                    state TEXT,
                    country TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS addresses (
                    digest TEXT PRIMARY KEY,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    number TEXT,
                    street TEXT,
                    city_id INTEGER REFERENCES cities (sequence),
                    county TEXT,
                    state TEXT,
                    country TEXT
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def add_city(self, city: str, country: str, county: Optional[str] = None, state: Optional[str] = None) -> int:
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    "INSERT INTO cities (city, county, state, country) VALUES (?, ?, ?, ?)",
                    (city.upper(), county, state, country.upper()),
                )
            return cur.lastrowid
        finally:
            conn.close()

    def add_address(
        self,
        key: str,
        latitude: float,
        longitude: float,
        number: Optional[str] = None,
        street: Optional[str] = None,
        city_id: Optional[int] = None,
        county: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
    ) -> None:
        """Store one row under the digest of ``key`` (a composite key)."""
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO addresses
                        (digest, latitude, longitude, number, street, city_id, county, state, country)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (digest_key(key), latitude, longitude, number, street, city_id, county, state, country),
                )
        finally:
            conn.close()

    def lookup_by_key(self, key: str) -> Optional[dict[str, Any]]:
        digest = digest_key(key)
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM addresses WHERE digest = ?", (digest,)).fetchone()
            if row is None or row["latitude"] is None:
                return None
            rc = {k: row[k] for k in row.keys() if k not in ("digest", "city_id") and row[k] is not None}
            if row["city_id"] is not None:
                city = conn.execute("SELECT * FROM cities WHERE sequence = ?", (row["city_id"],)).fetchone()
                if city is not None:
                    rc.update({k: city[k] for k in ("city", "county", "state", "country") if city[k] is not None})
            return rc
        finally:
            conn.close()
