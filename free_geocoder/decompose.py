"""
Address decomposition: classify a location string's shape and pull out its parts.

Shapes are tried in order, first match wins:
  1. Town, County, Country               'Ramsgate, Kent, UK'
  2. Town, County, State, Country        'Silver Spring, Montgomery, MD, USA'
  3. Street addresses:
       a. national segmentation providers picked by the country suffix
       b. country-agnostic providers (libpostal)
       c. anchored US / Canadian street-address patterns
       d. comma-splitting heuristics
  4. Anything else without commas or a country suffix is unrecognized.

The shape tables are plain data: a new shape is a new ShapeMatcher entry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from free_geocoder import locale_tables
from free_geocoder.exceptions import ShapeUnrecognized
from free_geocoder.models import ParsedComponents, RawQuery
from free_geocoder.normalize import DIRECTIONALS, STREET_TYPES
from free_geocoder.segmenters import AddressSegmenter

logger = logging.getLogger(__name__)

# ── Shared pattern fragments ──────────────────────────────────────────

_STREET_TYPE_ALT = "|".join(sorted(STREET_TYPES, key=len, reverse=True))
_DIRECTIONAL_ALT = "|".join(sorted(DIRECTIONALS, key=len, reverse=True))
US_STATE_ALT = "|".join(sorted(locale_tables.US_STATE_ABBREVS))
CA_PROVINCE_ALT = "|".join(sorted(locale_tables.CA_PROVINCE_ABBREVS))

_US_ZIP = r"\d{5}(?:-?\d{4})?"
_CA_POSTCODE = r"[A-Z]\d[A-Z]\s?\d[A-Z]\d"


def _street_address_re(regions: str, postcode: str) -> re.Pattern:
    """'<number> <street> <type> [<dir>], <city>, <region> [<postcode>]', anchored at both ends."""
    return re.compile(
        r"^(?P<number>\d{1,6}[A-Z]?)\s+"
        rf"(?P<street>.+?\s(?:{_STREET_TYPE_ALT})(?:\s+(?:{_DIRECTIONAL_ALT}))?)"
        r"[\s,]+(?P<city>[A-Z][A-Z\s'\-]*?)"
        rf"[\s,]+(?P<state>{regions})"
        rf"(?:[\s,]+(?P<postcode>{postcode}))?$",
        re.IGNORECASE,
    )


def _region_suffix_re(regions: str) -> re.Pattern:
    """'<place>, <region>': a place name ending in a state/province abbreviation."""
    return re.compile(
        rf"^(?P<place>[A-Z][A-Z\s'\-]*?)[\s,.]+(?P<state>{regions})$",
        re.IGNORECASE,
    )


US_STREET_RE = _street_address_re(US_STATE_ALT, _US_ZIP)
CA_STREET_RE = _street_address_re(CA_PROVINCE_ALT, _CA_POSTCODE)
US_STATE_SUFFIX_RE = _region_suffix_re(US_STATE_ALT)
CA_PROVINCE_SUFFIX_RE = _region_suffix_re(CA_PROVINCE_ALT)

_NUMBER_STREET_RE = re.compile(r"^(?P<number>\d{1,6}[A-Z]?)\s+(?P<street>.+)$", re.IGNORECASE)
_SAINT_RE = re.compile(r"^st\.?\s+(?P<rest>.+)$", re.IGNORECASE)


# ── Pre-cleaning ──────────────────────────────────────────────────────

def preclean(text: str) -> str:
    """Tidy the quirks seen in real input before any shape is tried."""
    text = re.sub(r",\s+,\s+", ", ", text.strip())
    text = re.sub(r"^,\s*", "", text)
    m = re.match(r"^(.+),\s*Washington\s*DC,(.+)$", text, re.IGNORECASE)
    if m:
        text = f"{m.group(1)}, Washington, DC, {m.group(2).strip()}"
    text = text.replace(".", "")
    return re.sub(r"\s+", " ", text).strip(" ,")


def looks_like_street(segment: str) -> bool:
    """True for 'Rockville Pike' or '10 Downing St', False for 'Saint Albans'."""
    tokens = segment.upper().split()
    if not tokens:
        return False
    if tokens[0][0].isdigit():
        return True
    while len(tokens) > 1 and tokens[-1] in DIRECTIONALS:
        tokens.pop()
    return len(tokens) > 1 and tokens[-1] in STREET_TYPES


def _town(segment: str) -> str:
    town = segment.replace("-", " ").strip()
    m = _SAINT_RE.match(town)
    if m:
        town = f"Saint {m.group('rest')}"
    return town


def _country_name(country: str) -> str:
    if country.upper() in ("UK", "UNITED KINGDOM"):
        return "Great Britain"
    return country


def _is_state(segment: str) -> bool:
    return not locale_tables.is_country(segment) and locale_tables.state_country(segment) is not None


# ── Shape matchers ────────────────────────────────────────────────────

@dataclass(frozen=True)
class ShapeMatcher:
    name: str
    pattern: re.Pattern
    # Returns None when the text fits the pattern but not the shape
    extract: Callable[[re.Match, Optional[str]], Optional[ParsedComponents]]

    def match(self, text: str, country: Optional[str] = None) -> Optional[ParsedComponents]:
        m = self.pattern.match(text)
        if m is None:
            return None
        return self.extract(m, country)


def _town_county_country(m: re.Match, _country: Optional[str]) -> Optional[ParsedComponents]:
    town = _town(m.group("town"))
    if not town:
        return None
    middle = m.group("middle").strip()
    last = (m.group("last") or "").strip()
    shape = "town_county_country"

    # A street-type town ('Silver Spring', 'Oak Ridge') is only trusted when
    # the final segment pins the place to a state or country
    final = last or middle
    if looks_like_street(town) and not (_is_state(final) or locale_tables.is_country(final)):
        return None

    if last:
        if _is_state(last):
            # 'Silver Spring, Montgomery, MD'
            return ParsedComponents(city=town, county=middle, state=last,
                                    country=locale_tables.state_country(last), shape=shape)
        return ParsedComponents(city=town, county=middle, country=_country_name(last), shape=shape)

    # Two segments: the second is a state, a country or a county, in that order
    if _is_state(middle):
        return ParsedComponents(city=town, state=middle,
                                country=locale_tables.state_country(middle), shape=shape)
    if locale_tables.is_country(middle):
        return ParsedComponents(city=town, country=_country_name(middle), shape=shape)
    return ParsedComponents(city=town, county=middle, shape=shape)


def _town_county_state_country(m: re.Match, _country: Optional[str]) -> Optional[ParsedComponents]:
    town = _town(m.group("town"))
    if not town:
        return None
    return ParsedComponents(
        city=town,
        county=m.group("county"),
        state=m.group("state"),
        country=m.group("country"),
        shape="town_county_state_country",
    )


def _street_match(default_country: str) -> Callable[[re.Match, Optional[str]], ParsedComponents]:
    def extract(m: re.Match, country: Optional[str]) -> ParsedComponents:
        return ParsedComponents(
            house_number=m.group("number"),
            street=m.group("street"),
            city=m.group("city"),
            state=m.group("state").upper(),
            country=country or default_country,
            shape=f"street_{default_country.lower()}",
        )
    return extract


TOWN_SHAPES: tuple[ShapeMatcher, ...] = (
    ShapeMatcher(
        "town_county_country",
        re.compile(r"^(?P<town>[^,\d]+),(?P<middle>[\w\s'\-]+)(?:,(?P<last>[\w\s'\-]+))?$"),
        _town_county_country,
    ),
    ShapeMatcher(
        "town_county_state_country",
        re.compile(
            r"^(?P<town>[^,\d]+),\s*(?P<county>[\w\s'\-]+?)\s*,\s*(?P<state>[\w\s'\-]+?)\s*,"
            r"\s*(?P<country>Canada|United States|USA|US)\s*$",
            re.IGNORECASE,
        ),
        _town_county_state_country,
    ),
)

STREET_SHAPES: tuple[tuple[frozenset[str], ShapeMatcher], ...] = (
    (frozenset({"US"}), ShapeMatcher("street_us", US_STREET_RE, _street_match("US"))),
    (frozenset({"CA"}), ShapeMatcher("street_ca", CA_STREET_RE, _street_match("CA"))),
)


# ── Decomposer ────────────────────────────────────────────────────────

class AddressDecomposer:
    """
    Pure function of its input and the providers it was built with.
    National providers (those with a country set) always run before the
    country-agnostic ones, whatever order they were passed in.
    """

    def __init__(self, segmenters: Sequence[AddressSegmenter] = ()):
        national = [s for s in segmenters if s.countries is not None]
        agnostic = [s for s in segmenters if s.countries is None]
        self.segmenters: tuple[AddressSegmenter, ...] = tuple(national + agnostic)

    def decompose(self, raw: RawQuery) -> ParsedComponents:
        text = preclean(raw.text)
        if not text:
            raise ShapeUnrecognized(raw.text)

        for shape in TOWN_SHAPES:
            parsed = shape.match(text)
            if parsed is not None:
                logger.debug("'%s' matched shape %s", text, shape.name)
                return parsed

        parsed = self._street_address(text)
        if parsed is None:
            raise ShapeUnrecognized(raw.text)
        logger.debug("'%s' decomposed by %s", text, parsed.shape)
        return parsed

    def _street_address(self, text: str) -> Optional[ParsedComponents]:
        split = locale_tables.split_country_suffix(text)
        if split:
            head, suffix, cc = split
        else:
            head, suffix, cc = text, None, None

        for segmenter in self.segmenters:
            if segmenter.countries is not None and cc not in segmenter.countries:
                continue
            parsed = segmenter.parse(head, cc)
            if parsed is not None:
                return parsed

        for countries, shape in STREET_SHAPES:
            if cc is not None and cc not in countries:
                continue
            parsed = shape.match(head, suffix)
            if parsed is not None:
                return parsed

        return self._heuristics(head, suffix, cc, has_commas="," in text)

    @staticmethod
    def _heuristics(head: str, suffix: Optional[str], cc: Optional[str], has_commas: bool) -> Optional[ParsedComponents]:
        if not has_commas:
            if suffix is None:
                return None
            # 'Ramsgate England', 'Rockville USA'
            return ParsedComponents(city=head, country=suffix, shape="place_country")

        parts = [p.strip() for p in head.split(",") if p.strip()]
        if not parts:
            return None

        state = None
        if len(parts) > 1 and (_is_state(parts[-1]) or (cc and locale_tables.state_code(parts[-1], cc))):
            state = parts.pop()
        country = suffix or locale_tables.state_country(state)

        number = street = None
        if len(parts) > 1 and looks_like_street(parts[0]):
            first = parts.pop(0)
            m = _NUMBER_STREET_RE.match(first)
            if m and looks_like_street(m.group("street")):
                number, street = m.group("number"), m.group("street")
            else:
                street = first

        city = parts.pop(0) if parts else None
        county = parts[0] if parts else None
        if not city and not street:
            return None
        return ParsedComponents(
            house_number=number,
            street=street,
            city=city,
            county=county,
            state=state,
            country=country,
            shape="comma_heuristic",
        )
