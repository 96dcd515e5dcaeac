"""
Pydantic models passed between the pipeline stages.
These are pure data objects, immutable once built: every stage returns a new value.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


# ── Enums ──────────────────────────────────────────────────────────────

class QueryMode(str, Enum):
    SINGLE = "single"
    SCAN = "scan"


class LookupTarget(str, Enum):
    ADDRESS = "address"   # street-level address table
    PLACE = "place"       # city tier of the gazetteer


# ── Query and components ──────────────────────────────────────────────

class RawQuery(BaseModel):
    """The caller's input, untouched."""
    text: str
    mode: QueryMode = QueryMode.SINGLE

    model_config = {"frozen": True}


class ParsedComponents(BaseModel):
    """Raw components pulled out of a query; any of them may be missing."""
    house_number: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    # Name of the rule or provider that produced these components
    shape: str = "unknown"

    model_config = {"frozen": True}

    @field_validator("house_number", "street", "city", "county", "state", "country", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class NormalizedComponents(ParsedComponents):
    """Canonical components; ``country`` holds the ISO alpha-2 code."""
    country_name: Optional[str] = None

    @property
    def street_line(self) -> Optional[str]:
        """House number and street, e.g. '1600 PENNSYLVANIA AVE NW'."""
        if not self.street:
            return None
        if self.house_number:
            return f"{self.house_number} {self.street}"
        return self.street

    def describe(self) -> str:
        parts = [self.street_line, self.city, self.county, self.state, self.country]
        return ", ".join(p for p in parts if p)


# ── Administrative codes and candidates ───────────────────────────────

_CODE_RE = re.compile(r"^[A-Z]{2}(\.[A-Z0-9]+)*$")


class AdministrativeCode(BaseModel):
    """Dot-separated region code, most general part first ('GB.ENG.G5')."""
    code: str
    confidence: float = Field(1.0, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @field_validator("code")
    @classmethod
    def check_code(cls, v: str) -> str:
        v = v.upper()
        if not _CODE_RE.match(v):
            raise ValueError(f"not an administrative code: {v!r}")
        return v

    @property
    def parts(self) -> list[str]:
        return self.code.split(".")

    @property
    def country(self) -> str:
        return self.parts[0]

    @property
    def leaf(self) -> str:
        return self.parts[-1]

    @property
    def is_country_level(self) -> bool:
        return len(self.parts) == 1

    def prefixes(self) -> list[str]:
        """Every dot-prefix of the code, shortest first."""
        parts = self.parts
        return [".".join(parts[:i]) for i in range(1, len(parts) + 1)]

    def __str__(self) -> str:
        return self.code


class CandidateQuery(BaseModel):
    """One lookup attempt built by the orchestrator."""
    key: str
    scope: Optional[AdministrativeCode] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    target: LookupTarget = LookupTarget.ADDRESS

    model_config = {"frozen": True}


# ── Results ───────────────────────────────────────────────────────────

class LocationResult(BaseModel):
    latitude: float
    longitude: float
    admin_codes: list[str] = Field(default_factory=list)
    location: str = Field(..., description="Normalized location string the match was made for")
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: str = "gazetteer"
    # City-level metadata merged in from the matching row
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class CacheEntry(BaseModel):
    digest: str
    payload: str          # LocationResult as JSON
    inserted_at: datetime
    ttl: timedelta

    model_config = {"frozen": True}

    @property
    def expires_at(self) -> datetime:
        return self.inserted_at + self.ttl

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def result(self) -> LocationResult:
        return LocationResult.model_validate_json(self.payload)
