"""
Tests for the lookup orchestrator.
Runs against the small on-disk tables from conftest (no network required).
"""

from __future__ import annotations

import pytest

from free_geocoder.exceptions import InvalidUsage, NotSupported
from free_geocoder.geocode import Geocoder, build_candidates, candidate_digest
from free_geocoder.models import AdministrativeCode, LookupTarget, NormalizedComponents

# Rows loaded by the conftest fixtures
WHITE_HOUSE = (38.8977, -77.0365)
ROCKVILLE_ADDRESS = (39.0840, -77.1528)


class TestGeocode:
    def test_town_county_country(self, geocoder):
        result = geocoder.geocode("Ramsgate, Kent, UK")
        assert result is not None
        assert result.admin_codes[0].startswith("GB")
        assert result.admin_codes == ["GB.ENG.G5"]
        assert result.latitude == pytest.approx(51.33426)
        assert result.source == "gazetteer"
        assert "KENT" in result.location

    def test_street_address(self, geocoder):
        result = geocoder.geocode("1600 Pennsylvania Avenue NW, Washington DC, USA")
        assert result is not None
        assert (result.latitude, result.longitude) == pytest.approx(WHITE_HOUSE)
        assert result.location.startswith("1600 PENNSYLVANIA AVE NW")
        assert result.location.endswith("US")
        assert result.source == "openaddresses"
        assert result.confidence == 0.9
        assert result.metadata["city"] == "WASHINGTON"

    def test_city_state(self, geocoder):
        result = geocoder.geocode("Rockville, MD")
        assert result is not None
        assert (result.latitude, result.longitude) == pytest.approx(ROCKVILLE_ADDRESS)
        assert result.admin_codes == ["US.MD"]

    def test_gibberish_is_none(self, geocoder):
        assert geocoder.geocode("asdfqwer") is None

    def test_unknown_place_is_none(self, geocoder):
        assert geocoder.geocode("Nowhere, Kent, UK") is None

    def test_known_location(self, geocoder):
        result = geocoder.geocode("Newport Pagnell, Buckinghamshire, England")
        assert result.latitude == pytest.approx(52.08675)
        assert result.longitude == pytest.approx(-0.72270)
        assert result.source == "known"

    def test_empty_location(self, geocoder):
        with pytest.raises(InvalidUsage):
            geocoder.geocode("")
        with pytest.raises(InvalidUsage):
            geocoder.geocode("   ")
        with pytest.raises(InvalidUsage):
            geocoder.geocode(None)


class TestCaching:
    def test_repeated_calls_are_idempotent(self, geocoder, cache):
        first = geocoder.geocode("Ramsgate, Kent, UK")
        assert len(cache) == 1
        second = geocoder.geocode("Ramsgate, Kent, UK")
        assert second == first
        assert len(cache) == 1

    def test_cached_equals_fresh(self, geocoder, gazetteer, addresses):
        cached_run = geocoder.geocode("1600 Pennsylvania Avenue NW, Washington DC, USA")
        cached_run = geocoder.geocode("1600 Pennsylvania Avenue NW, Washington DC, USA")

        fresh = Geocoder(gazetteer, addresses=addresses, segmenters=(), settings=geocoder.settings)
        assert fresh.geocode("1600 Pennsylvania Avenue NW, Washington DC, USA") == cached_run

    def test_cache_is_keyed_by_candidate_digest(self, geocoder, cache):
        geocoder.geocode("Rockville, MD")
        components = NormalizedComponents(city="ROCKVILLE", state="MD", country="US")
        region = AdministrativeCode(code="US.MD")
        top = build_candidates(components, region)[0]
        entry = cache.get(candidate_digest(top, region))
        assert entry is not None
        assert entry.result().latitude == pytest.approx(ROCKVILLE_ADDRESS[0])

    def test_shared_key_different_regions(self, geocoder, gazetteer, addresses):
        # Both queries reach the ROCKVILLE, MD, US row but resolve to different regions
        county_level = geocoder.geocode("Rockville, Montgomery, MD")
        state_level = geocoder.geocode("Rockville, MD")
        assert county_level.admin_codes == ["US.MD.031"]
        assert state_level.admin_codes == ["US.MD"]

        fresh = Geocoder(gazetteer, addresses=addresses, segmenters=(), settings=geocoder.settings)
        assert fresh.geocode("Rockville, MD") == state_level
        assert geocoder.geocode("Rockville, Montgomery, MD") == county_level

    def test_address_digest_includes_region(self):
        components = NormalizedComponents(city="ROCKVILLE", state="MD", country="US")
        top = build_candidates(components, AdministrativeCode(code="US.MD"))[0]
        assert candidate_digest(top, AdministrativeCode(code="US.MD")) != candidate_digest(
            top, AdministrativeCode(code="US.MD.031")
        )

    def test_list_mode_bypasses_cache(self, geocoder, cache):
        geocoder.geocode("Rockville, MD", list=True)
        assert len(cache) == 0


class TestListMode:
    def test_all_matches_best_first(self, geocoder):
        results = geocoder.geocode("Rockville, MD", list=True)
        assert [r.confidence for r in results] == [0.55, 0.5]
        assert [r.source for r in results] == ["openaddresses", "gazetteer"]

    def test_rows_are_distinct(self, geocoder):
        results = geocoder.geocode("Rockville, MD", list=True)
        identities = {(r.latitude, r.longitude, tuple(r.admin_codes)) for r in results}
        assert len(identities) == len(results)

    def test_no_match_is_empty_list(self, geocoder):
        assert geocoder.geocode("asdfqwer", list=True) == []

    def test_known_location_list(self, geocoder):
        results = geocoder.geocode("Newport Pagnell, Buckinghamshire, England", list=True)
        assert len(results) == 1


class TestCandidates:
    def test_full_ladder_order(self):
        components = NormalizedComponents(
            house_number="1600",
            street="PENNSYLVANIA AVE NW",
            city="WASHINGTON",
            county="DISTRICT",
            state="DC",
            country="US",
        )
        candidates = build_candidates(components, AdministrativeCode(code="US.DC"))
        assert [c.confidence for c in candidates] == [1.0, 0.9, 0.8, 0.7, 0.6, 0.55, 0.5, 0.25, 0.2]
        assert candidates[0].key == "1600 PENNSYLVANIA AVE NWWASHINGTONDISTRICTDCUS"
        assert candidates[1].key == "1600 PENNSYLVANIA AVE NWWASHINGTONDCUS"
        assert candidates[6].target is LookupTarget.PLACE
        assert candidates[6].scope.code == "US.DC"
        assert candidates[-1].key == "WASHINGTONDC"

    def test_missing_components_are_skipped(self):
        components = NormalizedComponents(city="RAMSGATE", county="KENT", country="GB")
        candidates = build_candidates(components, AdministrativeCode(code="GB.ENG.G5"))
        assert len(candidates) == 1
        assert candidates[0].target is LookupTarget.PLACE
        assert candidates[0].key == "RAMSGATE"

    def test_country_only_place_confidence(self):
        components = NormalizedComponents(city="PARIS", country="FR")
        candidates = build_candidates(components, AdministrativeCode(code="FR", confidence=0.5))
        assert candidates[0].confidence == 0.3

    def test_unscoped_place(self):
        components = NormalizedComponents(city="ATLANTIS")
        candidates = build_candidates(components, None)
        assert len(candidates) == 1
        assert candidates[0].scope is None

    def test_deterministic(self):
        components = NormalizedComponents(street="MAIN ST", city="SPRINGFIELD", state="IL", country="US")
        region = AdministrativeCode(code="US.IL")
        assert build_candidates(components, region) == build_candidates(components, region)


class TestScan:
    def test_city_state_country(self, geocoder):
        results = geocoder.scan("Washington DC USA")
        assert results
        assert any(r.confidence >= 0.6 for r in results)
        assert {r.location for r in results} >= {"Washington, DC"}

    def test_state_window_confidence(self, geocoder):
        results = geocoder.scan("Washington DC USA")
        by_window = {}
        for r in results:
            by_window.setdefault(r.location, []).append(r.confidence)
        assert sorted(by_window["Washington, DC"]) == [0.1, 0.6]
        assert by_window["Washington, DC, USA"] == [1.0]

    def test_street_window(self, geocoder):
        results = geocoder.scan("I live at 1600 Pennsylvania Avenue NW Washington DC 20500 these days")
        street = [r for r in results if r.location == "1600 Pennsylvania Avenue NW Washington DC"]
        assert len(street) == 1
        assert street[0].confidence == 0.8
        assert (street[0].latitude, street[0].longitude) == pytest.approx(WHITE_HOUSE)

    def test_short_text(self, geocoder):
        assert geocoder.scan("DC") == []

    def test_nothing_found(self, geocoder):
        assert geocoder.scan("nothing to see in this sentence") == []

    def test_none_text(self, geocoder):
        with pytest.raises(InvalidUsage):
            geocoder.scan(None)


class TestReverseGeocode:
    def test_not_supported(self, geocoder):
        with pytest.raises(NotSupported):
            geocoder.reverse_geocode("38.8977,-77.0365")

    def test_missing_argument(self, geocoder):
        with pytest.raises(InvalidUsage):
            geocoder.reverse_geocode("")
