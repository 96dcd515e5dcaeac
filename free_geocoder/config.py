"""
Central configuration loaded from environment variables with sensible defaults.
Data locations come from env vars; nothing is looked up relative to the caller.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


@dataclass(frozen=True)
class GazetteerConfig:
    # SQLite file holding the admin1 / admin2 / cities tiers
    database: str = os.getenv("GAZETTEER_DB", "gazetteer.sqlite")


@dataclass(frozen=True)
class AddressConfig:
    # Local download of http://results.openaddresses.io/ (optional)
    openaddr_home: str = os.getenv("OPENADDR_HOME", "")
    database: str = os.getenv("OPENADDR_DB", "openaddresses.sqlite")

    @property
    def path(self) -> Path | None:
        if not self.openaddr_home:
            return None
        return Path(self.openaddr_home) / self.database


@dataclass(frozen=True)
class CacheConfig:
    backend: str = os.getenv("GEOCODER_CACHE_BACKEND", "memory")  # memory | sqlite
    path: str = os.getenv("GEOCODER_CACHE_PATH", "geocode_cache.sqlite")
    ttl_days: int = int(os.getenv("GEOCODER_CACHE_TTL_DAYS", "7"))


@dataclass(frozen=True)
class ScanConfig:
    # Texts shorter than this can't hold an address
    min_text_length: int = int(os.getenv("SCAN_MIN_TEXT_LENGTH", "6"))
    min_token_length: int = int(os.getenv("SCAN_MIN_TOKEN_LENGTH", "2"))
    # Empirical confidences, one per kind of window match
    bare_confidence: float = float(os.getenv("SCAN_BARE_CONFIDENCE", "0.1"))
    state_confidence: float = float(os.getenv("SCAN_STATE_CONFIDENCE", "0.6"))
    street_confidence: float = float(os.getenv("SCAN_STREET_CONFIDENCE", "0.8"))
    window_confidence: float = float(os.getenv("SCAN_WINDOW_CONFIDENCE", "1.0"))
    # Longest token window tried against the full street-address pattern
    street_window: int = int(os.getenv("SCAN_STREET_WINDOW", "8"))


@dataclass(frozen=True)
class ResolverConfig:
    # Confidence attached to a code that never got narrower than the country
    country_only_confidence: float = float(os.getenv("RESOLVER_COUNTRY_ONLY_CONFIDENCE", "0.5"))


@dataclass(frozen=True)
class Settings:
    gazetteer: GazetteerConfig = field(default_factory=GazetteerConfig)
    addresses: AddressConfig = field(default_factory=AddressConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
