"""
Tests for the address-segmentation providers.
usaddress is a hard dependency; libpostal is optional and faked where absent.
"""

from __future__ import annotations

import logging
import sys

import pytest

from free_geocoder import segmenters
from free_geocoder.exceptions import CapabilityUnavailable
from free_geocoder.segmenters import LibpostalSegmenter, UsAddressSegmenter, default_segmenters, warn_unavailable


class TestUsAddress:
    def test_street_address(self):
        parsed = UsAddressSegmenter().parse("1600 Pennsylvania Avenue NW, Washington, DC 20500", "US")
        assert parsed is not None
        assert parsed.house_number == "1600"
        assert "Pennsylvania" in parsed.street
        assert parsed.city == "Washington"
        assert parsed.state == "DC"
        assert parsed.country == "US"
        assert parsed.shape == "usaddress"

    def test_only_us(self):
        assert UsAddressSegmenter.countries == frozenset({"US"})


class TestLibpostal:
    def test_missing_library(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "postal", None)
        monkeypatch.setitem(sys.modules, "postal.parser", None)
        with pytest.raises(CapabilityUnavailable) as exc:
            LibpostalSegmenter()
        assert exc.value.capability == "libpostal"

    def test_label_mapping(self):
        seg = LibpostalSegmenter.__new__(LibpostalSegmenter)
        seg._parse_address = lambda text: [
            ("10", "house_number"),
            ("downing street", "road"),
            ("london", "city"),
            ("greater london", "state_district"),
            ("england", "state"),
        ]
        parsed = seg.parse("10 Downing Street, London", "GB")
        assert parsed.house_number == "10"
        assert parsed.street == "downing street"
        assert parsed.city == "london"
        assert parsed.county == "greater london"
        assert parsed.country == "GB"

    def test_nothing_useful(self):
        seg = LibpostalSegmenter.__new__(LibpostalSegmenter)
        seg._parse_address = lambda text: [("asdfqwer", "house")]
        assert seg.parse("asdfqwer", None) is None


class TestDefaults:
    def test_warns_once(self, monkeypatch, caplog):
        monkeypatch.setattr(segmenters, "_warned", set())
        error = CapabilityUnavailable("libpostal", "No module named 'postal'")
        with caplog.at_level(logging.WARNING, logger="free_geocoder.segmenters"):
            warn_unavailable(error)
            warn_unavailable(error)
        assert caplog.text.count("libpostal is not available") == 1

    def test_default_without_libpostal(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "postal", None)
        monkeypatch.setitem(sys.modules, "postal.parser", None)
        monkeypatch.setattr(segmenters, "_warned", set())
        built = default_segmenters()
        assert [s.name for s in built] == ["usaddress"]
