"""
Tests for hierarchical resolution against the conftest gazetteer.
"""

from __future__ import annotations

import pytest

from free_geocoder.exceptions import Unresolved
from free_geocoder.gazetteer import GazetteerRecord, Tier
from free_geocoder.models import NormalizedComponents
from free_geocoder.resolve import HierarchicalResolver, score_matches, shared_prefix


@pytest.fixture
def resolver(gazetteer) -> HierarchicalResolver:
    return HierarchicalResolver(gazetteer)


class TestScoring:
    def test_shared_prefix(self):
        assert shared_prefix("US.MD.031", "US.MD") == 2
        assert shared_prefix("US.VA.121", "US.MD") == 1
        assert shared_prefix("GB.ENG.G5", "US") == 0

    def test_zero_scores_dropped(self):
        records = [
            GazetteerRecord(tier=Tier.COUNTY, name="Kent", code="US.DE.001"),
            GazetteerRecord(tier=Tier.COUNTY, name="Kent", code="GB.ENG.G5"),
        ]
        scored = score_matches(records, "GB")
        assert [r.code for _, r in scored] == ["GB.ENG.G5"]

    def test_ties_keep_gazetteer_order(self):
        records = [
            GazetteerRecord(tier=Tier.COUNTY, name="Washington", code="US.OR.067"),
            GazetteerRecord(tier=Tier.COUNTY, name="Washington", code="US.MD.043"),
        ]
        scored = score_matches(records, "US")
        assert [r.code for _, r in scored] == ["US.OR.067", "US.MD.043"]


class TestResolve:
    def test_county(self, resolver):
        code = resolver.resolve(NormalizedComponents(city="RAMSGATE", county="KENT", country="GB"))
        assert code.code == "GB.ENG.G5"
        assert code.confidence == 1.0

    def test_country_named_subdivision(self, resolver):
        code = resolver.resolve(NormalizedComponents(city="RAMSGATE", country="GB", country_name="ENGLAND"))
        assert code.code == "GB.ENG"

    def test_state_code_appends(self, resolver):
        code = resolver.resolve(NormalizedComponents(city="ROCKVILLE", state="MD", country="US"))
        assert code.code == "US.MD"

    def test_state_name_lookup(self, resolver):
        code = resolver.resolve(NormalizedComponents(city="ROCKVILLE", state="MARYLAND", country="US"))
        assert code.code == "US.MD"

    def test_tie_break_prefers_state_hint(self, resolver):
        code = resolver.resolve(
            NormalizedComponents(city="ROCKVILLE", county="MONTGOMERY", state="MD", country="US")
        )
        assert code.code == "US.MD.031"

    def test_two_letter_county(self, resolver):
        code = resolver.resolve(NormalizedComponents(city="WASHINGTON", county="DC", country="US"))
        assert code.code == "US.DC"

    def test_unitary_authority(self, resolver):
        code = resolver.resolve(NormalizedComponents(city="BRISTOL", county="AVON", country="GB"))
        assert code.code == "GB.ENG.B7"

    def test_state_written_as_county(self, resolver):
        code = resolver.resolve(NormalizedComponents(city="SPRINGFIELD", county="ILLINOIS", country="US"))
        assert code.code == "US.IL"

    def test_country_only(self, resolver):
        code = resolver.resolve(NormalizedComponents(city="PARIS", country="FR", country_name="FRANCE"))
        assert code.code == "FR"
        assert code.is_country_level
        assert code.confidence == 0.5

    def test_no_country(self, resolver):
        with pytest.raises(Unresolved):
            resolver.resolve(NormalizedComponents(city="ATLANTIS", county="NOWHERE"))
