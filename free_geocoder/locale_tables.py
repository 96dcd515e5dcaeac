"""
Static name <-> code tables.

Countries resolve through pycountry (ISO 3166-1), with a small alias table for
the spellings people actually type ("UK", "USA", "England"). US states and
Canadian provinces use the abbreviation tables below; every other country's
subdivisions come from pycountry (ISO 3166-2).
"""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache
from typing import Optional

import pycountry

# US state abbreviations -> full names
US_STATE_ABBREVS = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi",
    "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma",
    "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington", "WV": "West Virginia",
    "WI": "Wisconsin", "WY": "Wyoming", "DC": "District of Columbia",
    "GU": "Guam", "PR": "Puerto Rico", "VI": "Virgin Islands",
}

# Canadian province / territory abbreviations -> full names
CA_PROVINCE_ABBREVS = {
    "AB": "Alberta", "BC": "British Columbia", "MB": "Manitoba",
    "NB": "New Brunswick", "NL": "Newfoundland and Labrador",
    "NT": "Northwest Territories", "NS": "Nova Scotia", "NU": "Nunavut",
    "ON": "Ontario", "PE": "Prince Edward Island", "QC": "Quebec",
    "SK": "Saskatchewan", "YT": "Yukon",
}

# Spellings that pycountry doesn't know, or knows as something else
COUNTRY_ALIASES = {
    "UK": "GB", "GB": "GB", "UNITED KINGDOM": "GB", "GREAT BRITAIN": "GB",
    "BRITAIN": "GB", "ENGLAND": "GB", "SCOTLAND": "GB", "WALES": "GB",
    "NORTHERN IRELAND": "GB",
    "US": "US", "USA": "US", "UNITED STATES": "US",
    "UNITED STATES OF AMERICA": "US", "AMERICA": "US",
}

# Country suffixes that pick a national address grammar
COUNTRY_SUFFIXES = (
    "United States of America", "United States", "USA", "US",
    "England", "Scotland", "Wales", "Northern Ireland",
    "United Kingdom", "Great Britain", "UK", "GB",
    "Canada", "Australia",
)

_SUFFIX_RE = re.compile(
    r"^(?P<head>.+?)[\s,]+(?P<suffix>" + "|".join(COUNTRY_SUFFIXES) + r")\s*$",
    re.IGNORECASE,
)

_EXTRA_STATE_NAMES = {
    "US": {"WASHINGTON DC": "DC", "WASHINGTON D C": "DC"},
    "CA": {"QUEBEC CITY": "QC", "NEWFOUNDLAND": "NL", "YUKON TERRITORY": "YT"},
}


def fold(text: str) -> str:
    """Upper-case, strip accents and collapse whitespace: 'Québec ' -> 'QUEBEC'."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"\s+", " ", stripped).strip().upper()


def country_code(name: Optional[str], allow_codes: bool = True) -> Optional[str]:
    """
    Resolve a country name (or alias) to its ISO alpha-2 code.
    Bare 2-letter input is only taken as a code when ``allow_codes`` is set,
    since 'MD' or 'IL' in an address is usually a state, not Moldova or Israel.
    """
    if not name:
        return None
    key = fold(name)
    if key in COUNTRY_ALIASES:
        return COUNTRY_ALIASES[key]
    if len(key) == 2:
        if not allow_codes:
            return None
        country = pycountry.countries.get(alpha_2=key)
        return country.alpha_2 if country else None
    try:
        return pycountry.countries.lookup(key).alpha_2
    except LookupError:
        return None


def is_country(name: Optional[str]) -> bool:
    return country_code(name, allow_codes=False) is not None


@lru_cache(maxsize=None)
def _subdivision_names(cc: str) -> dict[str, str]:
    """Folded subdivision name -> subdivision code (without the country prefix)."""
    if cc == "US":
        names = {fold(name): abbr for abbr, name in US_STATE_ABBREVS.items()}
    elif cc == "CA":
        names = {fold(name): abbr for abbr, name in CA_PROVINCE_ABBREVS.items()}
    else:
        names = {}
        for sub in pycountry.subdivisions.get(country_code=cc) or []:
            names.setdefault(fold(sub.name), sub.code.split("-", 1)[1])
    names.update(_EXTRA_STATE_NAMES.get(cc, {}))
    return names


def state_code(name: Optional[str], cc: Optional[str]) -> Optional[str]:
    """
    Resolve a state/province name to its short code within country ``cc``.
    Returns None when the name isn't known; 2-letter input is returned as is.
    """
    if not name:
        return None
    key = fold(name)
    if len(key) == 2:
        return key
    if cc:
        return _subdivision_names(cc.upper()).get(key)
    # No country given: only the North American tables are unambiguous enough
    for guess in ("US", "CA"):
        code = _subdivision_names(guess).get(key)
        if code:
            return code
    return None


def state_country(name: Optional[str]) -> Optional[str]:
    """Country ('US' or 'CA') that a state/province name or abbreviation belongs to."""
    if not name:
        return None
    key = fold(name)
    if key in US_STATE_ABBREVS or key in _subdivision_names("US"):
        return "US"
    if key in CA_PROVINCE_ABBREVS or key in _subdivision_names("CA"):
        return "CA"
    return None


def split_country_suffix(text: str) -> Optional[tuple[str, str, str]]:
    """
    Split a recognizable country suffix off the end of ``text``.
    Returns (head, suffix as written, ISO code) or None:
    'Ramsgate England' -> ('Ramsgate', 'England', 'GB').
    """
    m = _SUFFIX_RE.match(text.strip())
    if m:
        suffix = m.group("suffix")
        return m.group("head").strip(" ,"), suffix, country_code(suffix)
    head, sep, last = text.rpartition(",")
    if sep and head.strip():
        cc = country_code(last, allow_codes=False)
        if cc:
            return head.strip(" ,"), last.strip(), cc
    return None
