"""
Component normalization.

Every key we build for the gazetteer and the address table is made from these
canonical forms, so two spellings of the same address must come out of here
identical:
  1. Upper-case, drop periods, strip trailing punctuation, collapse whitespace
  2. Strip leading zeros from numeric street tokens ("04th St" -> "4TH ST")
  3. Canonicalize the street type ("AVENUE" -> "AVE")
  4. Resolve country and state/province names to their codes
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from free_geocoder import locale_tables
from free_geocoder.models import NormalizedComponents, ParsedComponents

logger = logging.getLogger(__name__)

# Long and short spellings both map to the canonical form, so applying the
# table twice gives the same answer as applying it once.
STREET_TYPES: dict[str, str] = {
    "STREET": "ST", "ST": "ST",
    "AVENUE": "AVE", "AVE": "AVE", "AV": "AVE",
    "ROAD": "RD", "RD": "RD",
    "DRIVE": "DR", "DR": "DR",
    "COURT": "CT", "CT": "CT",
    "CIRCLE": "CIR", "CIR": "CIR",
    "PARKWAY": "PKWY", "PKWY": "PKWY",
    "LANE": "LN", "LN": "LN",
    "PLACE": "PL", "PL": "PL",
    "GARDENS": "GRDNS", "GRDNS": "GRDNS",
    "CREEK": "CRK", "CRK": "CRK",
    "CENTER": "CTR", "CTR": "CTR",
    "RIDGE": "RDG", "RDG": "RDG",
    "FORT": "FT", "FT": "FT",
    "SPRING": "SPRING", "SPG": "SPRING",
    "PIKE": "PIKE",
    "BOULEVARD": "BLVD", "BLVD": "BLVD",
}

DIRECTIONALS = frozenset({
    "N", "S", "E", "W", "NE", "NW", "SE", "SW",
    "NORTH", "SOUTH", "EAST", "WEST",
    "NORTHEAST", "NORTHWEST", "SOUTHEAST", "SOUTHWEST",
})

_TRAILING_PUNCT_RE = re.compile(r"[\s,;:!?]+$")
_LEADING_PUNCT_RE = re.compile(r"^[\s,;:]+")
_LEADING_ZEROS_RE = re.compile(r"^0+(?=\d)")
_COUNTY_SUFFIX_RE = re.compile(r"\s+COUNTY$")


def clean(value: Optional[str]) -> Optional[str]:
    """Upper-case, remove periods and stray punctuation, collapse whitespace."""
    if value is None:
        return None
    value = value.replace(".", "")
    value = _TRAILING_PUNCT_RE.sub("", value)
    value = _LEADING_PUNCT_RE.sub("", value)
    value = re.sub(r"\s+", " ", value).strip().upper()
    return value or None


def normalize_street_type(token: str) -> str:
    """'Avenue' -> 'AVE'. Unknown tokens come back upper-cased, unchanged."""
    token = token.upper()
    return STREET_TYPES.get(token, token)


def canonicalize_street(street: Optional[str]) -> Optional[str]:
    """
    '04th Street' -> '4TH ST', 'Pennsylvania Avenue NW' -> 'PENNSYLVANIA AVE NW'.
    Only the street type itself is rewritten, i.e. the last type token,
    optionally followed by a directional, so 'Fort Ave' keeps its 'FORT'.
    """
    street = clean(street)
    if not street:
        return None
    tokens = [_LEADING_ZEROS_RE.sub("", t) for t in street.split(" ")]

    i = len(tokens) - 1
    while i > 0 and tokens[i] in DIRECTIONALS:
        i -= 1
    if i > 0 and tokens[i] in STREET_TYPES:
        tokens[i] = STREET_TYPES[tokens[i]]
    elif "AVENUE" in tokens[1:]:
        # 'Avenue B', 'Avenue of the Americas'
        j = tokens.index("AVENUE", 1)
        tokens[j] = "AVE"
    return " ".join(tokens)


def normalize(components: ParsedComponents) -> NormalizedComponents:
    """Return canonical copies of ``components``; the input is left alone."""
    country_name = clean(components.country)
    cc = locale_tables.country_code(country_name) if country_name else None

    state = clean(components.state)
    if state and not cc:
        cc = locale_tables.state_country(state)
    if state and len(state) > 2:
        code = locale_tables.state_code(state, cc)
        if code:
            state = code
        else:
            logger.warning("Unresolved state/province name '%s' (country=%s), passing through", state, cc)

    county = clean(components.county)
    if county:
        county = _COUNTY_SUFFIX_RE.sub("", county) or county

    house_number = clean(components.house_number)
    if house_number:
        house_number = _LEADING_ZEROS_RE.sub("", house_number)

    return NormalizedComponents(
        house_number=house_number,
        street=canonicalize_street(components.street),
        city=clean(components.city),
        county=county,
        state=state,
        country=cc,
        country_name=country_name,
        shape=components.shape,
    )
