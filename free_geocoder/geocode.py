"""
Lookup orchestration.

Strategy:
  1. Short-circuit a handful of known locations the data stores inconsistently
  2. Decompose -> normalize -> resolve the location to an administrative code
  3. Build an ordered ladder of candidate queries, most specific first
  4. For each candidate: check the result cache, then the address table or
     the gazetteer's city tier; the first hit wins and is cached
  5. In list mode, return every row of every candidate that hits instead

Scanning free text runs the same lookup over sliding token windows.
Reverse geocoding is out of scope and raises NotSupported.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Sequence

from free_geocoder import locale_tables
from free_geocoder.cache import ResultCache, build_cache, composite_key, digest_key
from free_geocoder.config import Settings, get_settings
from free_geocoder.decompose import (
    CA_PROVINCE_SUFFIX_RE,
    CA_STREET_RE,
    US_STATE_SUFFIX_RE,
    US_STREET_RE,
    AddressDecomposer,
)
from free_geocoder.exceptions import InvalidUsage, LookupMiss, NotSupported, ShapeUnrecognized, Unresolved
from free_geocoder.gazetteer import AddressTable, Gazetteer, GazetteerRecord, SQLiteAddressTable, SQLiteGazetteer
from free_geocoder.models import (
    AdministrativeCode,
    CandidateQuery,
    LocationResult,
    LookupTarget,
    NormalizedComponents,
    QueryMode,
    RawQuery,
)
from free_geocoder.normalize import normalize
from free_geocoder.resolve import HierarchicalResolver
from free_geocoder.segmenters import AddressSegmenter, default_segmenters

logger = logging.getLogger(__name__)

# ── Known locations ────────────────────────────────────────────────────

# Places the source data stores inconsistently; keyed by folded query text
KNOWN_LOCATIONS: dict[str, dict[str, Any]] = {
    "NEWPORT PAGNELL, BUCKINGHAMSHIRE, ENGLAND": {
        "latitude": 52.08675,
        "longitude": -0.72270,
        "admin_codes": ["GB.ENG"],
    },
}

# ── Candidate ladder ───────────────────────────────────────────────────

# (components, confidence, target); a None confidence is decided by the scope
CANDIDATE_LADDER: tuple[tuple[tuple[str, ...], Optional[float], LookupTarget], ...] = (
    (("house_number", "street", "city", "county", "state", "country"), 1.0, LookupTarget.ADDRESS),
    (("house_number", "street", "city", "state", "country"), 0.9, LookupTarget.ADDRESS),
    # A street match stands in for an unknown house number
    (("street", "city", "county", "state", "country"), 0.8, LookupTarget.ADDRESS),
    (("street", "city", "state", "country"), 0.7, LookupTarget.ADDRESS),
    (("city", "county", "state", "country"), 0.6, LookupTarget.ADDRESS),
    (("city", "state", "country"), 0.55, LookupTarget.ADDRESS),
    (("city",), None, LookupTarget.PLACE),
    # 'X County' rows
    (("county", "state", "country"), 0.25, LookupTarget.ADDRESS),
    (("city", "state"), 0.2, LookupTarget.ADDRESS),
)

PLACE_REGION_CONFIDENCE = 0.5
PLACE_COUNTRY_CONFIDENCE = 0.3


def _key_parts(components: NormalizedComponents, fields: tuple[str, ...]) -> Optional[list[str]]:
    values = [getattr(components, f) for f in fields]
    if not all(values):
        return None
    if fields[0] == "house_number":
        # '1600' + 'PENNSYLVANIA AVE NW' -> '1600 PENNSYLVANIA AVE NW'
        return [components.street_line, *values[2:]]
    return values


def build_candidates(
    components: NormalizedComponents, region: Optional[AdministrativeCode]
) -> list[CandidateQuery]:
    """Ordered lookup attempts for ``components``; deterministic for a given input."""
    candidates: list[CandidateQuery] = []
    seen: set[tuple[LookupTarget, str, Optional[str]]] = set()

    for fields, confidence, target in CANDIDATE_LADDER:
        parts = _key_parts(components, fields)
        if parts is None:
            continue
        scope = region if target is LookupTarget.PLACE else None
        if confidence is None:
            if region is None or region.is_country_level:
                confidence = PLACE_COUNTRY_CONFIDENCE
            else:
                confidence = PLACE_REGION_CONFIDENCE
        key = composite_key(*parts)
        identity = (target, key, scope.code if scope else None)
        if identity in seen:
            continue
        seen.add(identity)
        candidates.append(CandidateQuery(key=key, scope=scope, confidence=confidence, target=target))

    # Stable: equal confidences keep ladder order
    return sorted(candidates, key=lambda c: -c.confidence)


def candidate_digest(candidate: CandidateQuery, region: Optional[AdministrativeCode] = None) -> str:
    """
    Cache key for one candidate. The region is part of it: the same table row
    reached from queries resolving to different regions is cached once per region.
    """
    scope = candidate.scope if candidate.target is LookupTarget.PLACE else region
    return digest_key(f"{candidate.key}|{scope or ''}")


# ── Geocoder ───────────────────────────────────────────────────────────

class Geocoder:
    """
    Free-text location -> LocationResult, from local tables only.
    Collaborators are injected; use ``from_settings()`` for the configured ones.
    """

    def __init__(
        self,
        gazetteer: Gazetteer,
        addresses: Optional[AddressTable] = None,
        cache: Optional[ResultCache] = None,
        segmenters: Optional[Sequence[AddressSegmenter]] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.gazetteer = gazetteer
        self.addresses = addresses
        self.cache = cache if cache is not None else build_cache(self.settings.cache)
        if segmenters is None:
            segmenters = default_segmenters()
        self.decomposer = AddressDecomposer(segmenters)
        self.resolver = HierarchicalResolver(
            gazetteer, country_only_confidence=self.settings.resolver.country_only_confidence
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> Geocoder:
        settings = settings or get_settings()
        addresses = None
        if settings.addresses.path is not None:
            addresses = SQLiteAddressTable(settings.addresses.path)
        return cls(
            gazetteer=SQLiteGazetteer(settings.gazetteer.database),
            addresses=addresses,
            settings=settings,
        )

    # ── Public API ─────────────────────────────────────────────────────

    def geocode(self, location: Optional[str], list: bool = False):
        """
        Resolve ``location``. Returns the best LocationResult or None; with
        ``list=True``, every match ordered by descending confidence.
        """
        if location is None or not location.strip():
            raise InvalidUsage("geocode(location)")
        if list:
            return self._geocode_all(location)
        return self._geocode_one(location, QueryMode.SINGLE)

    def scan(self, text: Optional[str]) -> list[LocationResult]:
        """Find every location mentioned in free text. Hits are not de-duplicated."""
        if text is None:
            raise InvalidUsage("scan(text)")
        cfg = self.settings.scan
        if len(text) < cfg.min_text_length:
            return []

        words = re.sub(r"\W+", " ", text).split()
        results: list[LocationResult] = []
        for offset, word in enumerate(words):
            if len(word) < cfg.min_token_length:
                continue
            self._collect(results, word, word, None)

            street = self._scan_street(words, offset)
            if street is not None:
                results.append(street)

            if offset + 1 < len(words):
                pair = ", ".join(words[offset:offset + 2])
                if US_STATE_SUFFIX_RE.match(pair):
                    self._collect(results, f"{pair}, US", pair, cfg.state_confidence)
                elif CA_PROVINCE_SUFFIX_RE.match(pair):
                    self._collect(results, f"{pair}, Canada", pair, cfg.state_confidence)
                self._collect(results, pair, pair, cfg.bare_confidence)

            if offset + 2 < len(words):
                triple = ", ".join(words[offset:offset + 3])
                self._collect(results, triple, triple, cfg.window_confidence)
        logger.debug("Scan of %d words found %d locations", len(words), len(results))
        return results

    def reverse_geocode(self, latlng: Optional[str]) -> None:
        if not latlng:
            raise InvalidUsage("reverse_geocode(latlng)")
        raise NotSupported("reverse_geocode")

    # ── Single / list lookups ──────────────────────────────────────────

    def _geocode_one(self, location: str, mode: QueryMode) -> Optional[LocationResult]:
        known = self._known(location)
        if known is not None:
            return known
        prepared = self._prepare(location, mode)
        if prepared is None:
            return None
        components, region, candidates = prepared

        description = components.describe()
        for candidate in candidates:
            digest = candidate_digest(candidate, region)
            entry = self.cache.get(digest)
            if entry is not None:
                logger.debug("Cache hit for '%s' (%s)", candidate.key, digest)
                return entry.result().model_copy(
                    update={"location": description, "confidence": candidate.confidence}
                )
            try:
                result = self._lookup(candidate, components, region)[0]
            except LookupMiss:
                logger.debug("No match for candidate '%s'", candidate.key)
                continue
            self.cache.put(digest, result)
            return result

        logger.info("No match for '%s'", location)
        return None

    def _geocode_all(self, location: str) -> list[LocationResult]:
        known = self._known(location)
        if known is not None:
            return [known]
        prepared = self._prepare(location, QueryMode.SINGLE)
        if prepared is None:
            return []
        components, region, candidates = prepared

        results: list[LocationResult] = []
        seen: set[tuple[float, float, tuple[str, ...]]] = set()
        for candidate in candidates:
            try:
                rows = self._lookup(candidate, components, region)
            except LookupMiss:
                continue
            for result in rows:
                identity = (result.latitude, result.longitude, tuple(result.admin_codes))
                if identity in seen:
                    continue
                seen.add(identity)
                results.append(result)
        return sorted(results, key=lambda r: -r.confidence)

    def _prepare(
        self, location: str, mode: QueryMode
    ) -> Optional[tuple[NormalizedComponents, Optional[AdministrativeCode], list[CandidateQuery]]]:
        raw = RawQuery(text=location, mode=mode)
        try:
            parsed = self.decomposer.decompose(raw)
        except ShapeUnrecognized as e:
            logger.debug("%s", e)
            return None

        components = normalize(parsed)
        try:
            region = self.resolver.resolve(components)
        except Unresolved as e:
            logger.debug("%s; searching unscoped", e)
            region = None

        candidates = build_candidates(components, region)
        logger.debug(
            "'%s' -> %s (region=%s, %d candidates)", location, components.describe(), region, len(candidates)
        )
        return components, region, candidates

    def _known(self, location: str) -> Optional[LocationResult]:
        key = locale_tables.fold(location)
        known = KNOWN_LOCATIONS.get(key)
        if known is None:
            return None
        return LocationResult(location=location.strip(), confidence=1.0, source="known", **known)

    # ── Table access ───────────────────────────────────────────────────

    def _lookup(
        self,
        candidate: CandidateQuery,
        components: NormalizedComponents,
        region: Optional[AdministrativeCode],
    ) -> list[LocationResult]:
        """Every row for one candidate; raises LookupMiss when there are none."""
        description = components.describe()
        if candidate.target is LookupTarget.PLACE:
            records = self._lookup_place(components.city, candidate.scope)
            if not records:
                raise LookupMiss(candidate.key)
            return [self._place_result(r, candidate, description) for r in records]

        if self.addresses is None:
            raise LookupMiss(candidate.key)
        row = self.addresses.lookup_by_key(candidate.key)
        if row is None:
            raise LookupMiss(candidate.key)
        metadata = {k: v for k, v in row.items() if k not in ("latitude", "longitude")}
        return [
            LocationResult(
                latitude=row["latitude"],
                longitude=row["longitude"],
                admin_codes=[region.code] if region else [],
                location=description,
                confidence=candidate.confidence,
                source="openaddresses",
                metadata=metadata,
            )
        ]

    def _lookup_place(self, city: str, scope: Optional[AdministrativeCode]) -> list[GazetteerRecord]:
        if scope is None:
            return self.gazetteer.lookup_city(city)
        if scope.is_country_level:
            return self.gazetteer.lookup_city(city, country=scope.country)
        # Cities are filed under their first-level region in some countries
        # and under the county in others, so try the narrowest first
        for region in dict.fromkeys([scope.leaf, scope.parts[1]]):
            records = self.gazetteer.lookup_city(city, country=scope.country, region=region)
            if records:
                return records
        return []

    @staticmethod
    def _place_result(record: GazetteerRecord, candidate: CandidateQuery, description: str) -> LocationResult:
        admin_codes = [candidate.scope.code] if candidate.scope else [record.code]
        return LocationResult(
            latitude=record.latitude,
            longitude=record.longitude,
            admin_codes=admin_codes,
            location=description,
            confidence=candidate.confidence,
            source="gazetteer",
            metadata=dict(record.extra),
        )

    # ── Scanning ───────────────────────────────────────────────────────

    def _collect(
        self, results: list[LocationResult], query: str, window: str, confidence: Optional[float]
    ) -> None:
        """Geocode ``query`` and, on a hit, record it against the window it came from."""
        result = self._geocode_one(query, QueryMode.SCAN)
        if result is None:
            return
        update: dict[str, Any] = {"location": window}
        if confidence is not None:
            update["confidence"] = confidence
        results.append(result.model_copy(update=update))

    def _scan_street(self, words: list[str], offset: int) -> Optional[LocationResult]:
        cfg = self.settings.scan
        for size in range(4, cfg.street_window + 1):
            if offset + size > len(words):
                break
            window = " ".join(words[offset:offset + size])
            for pattern, suffix in ((US_STREET_RE, "US"), (CA_STREET_RE, "Canada")):
                if not pattern.match(window):
                    continue
                result = self._geocode_one(f"{window}, {suffix}", QueryMode.SCAN)
                if result is not None:
                    return result.model_copy(update={"location": window, "confidence": cfg.street_confidence})
        return None
