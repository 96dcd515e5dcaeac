"""
Hierarchical resolution: turn normalized components into an administrative code.

  country  ->  GB | GB.ENG (a country-tier entry named like the country wins)
  state    ->  US.MD       (2-letter codes append directly, names are looked up)
  county   ->  GB.ENG.G5   (looked up in the county tier, best match by shared prefix)

A name can exist under several parents ('Montgomery' is a county in both MD and
VA), so every lookup is scored against the code built so far.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from free_geocoder.exceptions import Unresolved
from free_geocoder.gazetteer import Gazetteer, GazetteerRecord, Tier
from free_geocoder.models import AdministrativeCode, NormalizedComponents

logger = logging.getLogger(__name__)


def shared_prefix(code: str, context: str) -> int:
    """Number of leading dot-parts ``code`` shares with ``context``."""
    n = 0
    for a, b in zip(code.upper().split("."), context.upper().split(".")):
        if a != b:
            break
        n += 1
    return n


def score_matches(records: Iterable[GazetteerRecord], context: str) -> list[tuple[int, GazetteerRecord]]:
    """
    Score each record against the context code, dropping the ones that share
    nothing with it. Highest score first; equal scores keep gazetteer order.
    """
    scored = [(shared_prefix(r.code, context), r) for r in records]
    scored = [(s, r) for s, r in scored if s > 0]
    return sorted(scored, key=lambda pair: -pair[0])


def best_match(records: Iterable[GazetteerRecord], context: str) -> Optional[GazetteerRecord]:
    scored = score_matches(records, context)
    return scored[0][1] if scored else None


def _is_region_code(value: str) -> bool:
    return len(value) == 2 and value.isalpha() and value.isupper()


class HierarchicalResolver:
    def __init__(self, gazetteer: Gazetteer, country_only_confidence: float = 0.5):
        self.gazetteer = gazetteer
        self.country_only_confidence = country_only_confidence

    def resolve(self, components: NormalizedComponents) -> AdministrativeCode:
        cc = components.country
        if not cc:
            raise Unresolved(components.describe())

        code = self._country(components, cc)
        code = self._state(components, code)
        code = self._county(components, code)

        if "." not in code:
            logger.debug("'%s' resolved no further than %s", components.describe(), code)
            return AdministrativeCode(code=code, confidence=self.country_only_confidence)
        return AdministrativeCode(code=code)

    def _country(self, components: NormalizedComponents, cc: str) -> str:
        if components.country_name and len(components.country_name) > 2:
            # 'England' is a subdivision of GB, not a country of its own
            record = best_match(self.gazetteer.lookup_by_name(Tier.COUNTRY, components.country_name), cc)
            if record:
                return record.code.upper()
        return cc

    def _state(self, components: NormalizedComponents, code: str) -> str:
        state = components.state
        if not state or "." in code:
            return code
        if _is_region_code(state):
            return f"{code}.{state}"
        record = best_match(self.gazetteer.lookup_by_name(Tier.COUNTRY, state), code)
        if record:
            return record.code.upper()
        logger.debug("State '%s' not found under %s", state, code)
        return code

    def _county(self, components: NormalizedComponents, code: str) -> str:
        county = components.county
        if not county:
            return code

        # A US state or Canadian province written where the county goes
        if _is_region_code(county) and "." not in code:
            return f"{code}.{county}"

        candidates = self.gazetteer.lookup_by_name(Tier.COUNTY, county)
        candidates += self.gazetteer.lookup_by_name(Tier.COUNTY, f"{county} COUNTY")
        record = self._narrower(candidates, code)
        if record is None and components.city:
            # UK unitary authorities are listed under the town's name
            record = self._narrower(self.gazetteer.lookup_by_name(Tier.COUNTY, components.city), code)
        if record is None:
            record = self._narrower(self.gazetteer.lookup_by_name(Tier.COUNTRY, county), code)
        if record is None:
            logger.debug("County '%s' not found under %s", county, code)
            return code
        return record.code.upper()

    @staticmethod
    def _narrower(records: list[GazetteerRecord], code: str) -> Optional[GazetteerRecord]:
        """Best match that actually adds something to ``code``."""
        depth = code.count(".") + 1
        return best_match((r for r in records if r.code.count(".") + 1 > depth), code)
