"""
Shared fixtures: a tiny gazetteer and address table on disk, and a geocoder
wired to them with an in-memory cache and no segmentation providers, so the
regex and heuristic paths are exercised deterministically.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from free_geocoder.cache import MemoryResultCache, composite_key
from free_geocoder.config import Settings
from free_geocoder.gazetteer import SQLiteAddressTable, SQLiteGazetteer, Tier
from free_geocoder.geocode import Geocoder

WHITE_HOUSE = (38.8977, -77.0365)
ROCKVILLE_ADDRESS = (39.0840, -77.1528)


class FakeClock:
    """Callable clock the tests can move forward by hand."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gazetteer(tmp_path) -> SQLiteGazetteer:
    gaz = SQLiteGazetteer(tmp_path / "gazetteer.sqlite")
    gaz.create_schema()

    gaz.add_admin(Tier.COUNTRY, "GB.ENG", "England")
    gaz.add_admin(Tier.COUNTRY, "US.MD", "Maryland")
    gaz.add_admin(Tier.COUNTRY, "US.VA", "Virginia")
    gaz.add_admin(Tier.COUNTRY, "US.DC", "District of Columbia")
    gaz.add_admin(Tier.COUNTRY, "US.IL", "Illinois")

    gaz.add_admin(Tier.COUNTY, "GB.ENG.G5", "Kent")
    gaz.add_admin(Tier.COUNTY, "GB.ENG.B7", "Bristol")
    # Same name under two states; VA first so gazetteer order alone picks the wrong one
    gaz.add_admin(Tier.COUNTY, "US.VA.121", "Montgomery County", "Montgomery County")
    gaz.add_admin(Tier.COUNTY, "US.MD.031", "Montgomery County", "Montgomery County")

    gaz.add_city("GB", "ramsgate", "G5", 51.33426, 1.41658, accent_city="Ramsgate", population=40408)
    gaz.add_city("US", "washington", "DC", 38.89511, -77.03637, accent_city="Washington", population=552433)
    gaz.add_city("US", "rockville", "MD", 39.08400, -77.15278, accent_city="Rockville", population=61209)
    gaz.add_city("US", "springfield", "IL", 39.80172, -89.64371, accent_city="Springfield", population=116250)
    return gaz


@pytest.fixture
def addresses(tmp_path) -> SQLiteAddressTable:
    table = SQLiteAddressTable(tmp_path / "openaddresses.sqlite")
    table.create_schema()

    washington = table.add_city("Washington", "US", state="DC")
    table.add_address(
        composite_key("1600 PENNSYLVANIA AVE NW", "WASHINGTON", "DC", "US"),
        *WHITE_HOUSE,
        number="1600",
        street="PENNSYLVANIA AVE NW",
        city_id=washington,
        state="DC",
        country="US",
    )

    rockville = table.add_city("Rockville", "US", county="Montgomery", state="MD")
    for key in (composite_key("ROCKVILLE", "MD", "US"), composite_key("ROCKVILLE", "MD")):
        table.add_address(key, *ROCKVILLE_ADDRESS, city_id=rockville, state="MD", country="US")
    return table


@pytest.fixture
def cache(clock) -> MemoryResultCache:
    return MemoryResultCache(clock=clock)


@pytest.fixture
def geocoder(gazetteer, addresses, cache) -> Geocoder:
    return Geocoder(gazetteer, addresses=addresses, cache=cache, segmenters=(), settings=Settings())
