"""
Pluggable address-segmentation providers.

A provider turns a raw street address into components, or returns None when it
can't. Providers are handed to the decomposer at construction time and tried in
order; a missing library means the provider is simply never built.

  - UsAddressSegmenter: usaddress's CRF tagger, US addresses only
  - LibpostalSegmenter: libpostal via the `postal` bindings, any country
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import usaddress

from free_geocoder.exceptions import CapabilityUnavailable
from free_geocoder.models import ParsedComponents

logger = logging.getLogger(__name__)

# Capabilities already reported missing in this process
_warned: set[str] = set()


class AddressSegmenter(Protocol):
    name: str
    # ISO codes this provider understands; None means any country
    countries: Optional[frozenset[str]]

    def parse(self, text: str, country_hint: Optional[str]) -> Optional[ParsedComponents]: ...


_USADDRESS_STREET_TAGS = (
    "StreetNamePreModifier",
    "StreetNamePreDirectional",
    "StreetNamePreType",
    "StreetName",
    "StreetNamePostType",
    "StreetNamePostDirectional",
    "StreetNamePostModifier",
)


class UsAddressSegmenter:
    name = "usaddress"
    countries: Optional[frozenset[str]] = frozenset({"US"})

    def parse(self, text: str, country_hint: Optional[str]) -> Optional[ParsedComponents]:
        try:
            tagged, address_type = usaddress.tag(text)
        except usaddress.RepeatedLabelError as e:
            logger.debug("usaddress could not tag '%s': %s", text, e)
            return None

        if address_type == "Ambiguous":
            return None
        street = " ".join(tagged[t] for t in _USADDRESS_STREET_TAGS if t in tagged)
        city = tagged.get("PlaceName")
        if not street and not city:
            return None

        number = tagged.get("AddressNumber")
        if number and tagged.get("AddressNumberSuffix"):
            number = f"{number} {tagged['AddressNumberSuffix']}"

        return ParsedComponents(
            house_number=number,
            street=street.strip(" ,") or None,
            city=city.strip(" ,") if city else None,
            state=tagged.get("StateName"),
            country=tagged.get("CountryName") or country_hint,
            shape=self.name,
        )


class LibpostalSegmenter:
    name = "libpostal"
    countries: Optional[frozenset[str]] = None

    def __init__(self):
        try:
            from postal.parser import parse_address
        except ImportError as e:
            raise CapabilityUnavailable(self.name, str(e)) from e
        self._parse_address = parse_address

    def parse(self, text: str, country_hint: Optional[str]) -> Optional[ParsedComponents]:
        labels: dict[str, str] = {}
        for value, label in self._parse_address(text):
            # libpostal can emit a label twice; the first occurrence is the one we want
            labels.setdefault(label, value)

        if not labels.get("road") and not labels.get("city"):
            return None
        return ParsedComponents(
            house_number=labels.get("house_number"),
            street=labels.get("road"),
            city=labels.get("city") or labels.get("suburb"),
            county=labels.get("state_district"),
            state=labels.get("state"),
            country=labels.get("country") or country_hint,
            shape=self.name,
        )


def warn_unavailable(error: CapabilityUnavailable) -> None:
    """Log a missing capability at most once per process."""
    if error.capability in _warned:
        return
    _warned.add(error.capability)
    logger.warning("%s; falling back to the next address strategy", error)


def default_segmenters() -> list[AddressSegmenter]:
    """National grammars first, then the deep parser if it's installed."""
    segmenters: list[AddressSegmenter] = [UsAddressSegmenter()]
    try:
        segmenters.append(LibpostalSegmenter())
    except CapabilityUnavailable as e:
        warn_unavailable(e)
    return segmenters
