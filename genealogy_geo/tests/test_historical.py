"""
Tests for historical corroboration of candidates.
"""

from __future__ import annotations

import pytest

from genealogy_geo.historical import apply_historical, corroborating_name, usable_year
from genealogy_geo.models import MatchMethod
from genealogy_geo.strategies import Candidate


def _prussia(confidence: float = 0.85) -> Candidate:
    return Candidate("DE", confidence, MatchMethod.PATTERN, "Prussia", "historical name 'Prussia'")


class TestUsableYear:
    @pytest.mark.parametrize("year", [1, 1850, 2024, 2100])
    def test_plausible(self, config, year):
        assert usable_year(year, config) == year

    @pytest.mark.parametrize("year", [None, 0, -5, 2101, 99999, True, "1850", 1850.0])
    def test_ignored(self, config, year):
        assert usable_year(year, config) is None


class TestCorroboratingName:
    def test_match_in_range(self, mini_store):
        hn = corroborating_name(_prussia(), 1850, mini_store)
        assert hn is not None and hn.name == "Prussia"

    def test_out_of_range(self, mini_store):
        assert corroborating_name(_prussia(), 1950, mini_store) is None

    def test_modern_literal_does_not_correspond(self, mini_store):
        cand = Candidate("DE", 1.0, MatchMethod.EXACT, "Germany", "canonical name")
        assert corroborating_name(cand, 1850, mini_store) is None

    def test_literal_containing_the_name(self, mini_store):
        cand = Candidate("DE", 0.6, MatchMethod.PATTERN, "East Prussia", "pattern")
        assert corroborating_name(cand, 1850, mini_store).name == "Prussia"


class TestApplyHistorical:
    def test_boost(self, mini_store, config):
        (adjusted,) = apply_historical([_prussia()], 1850, mini_store, config)
        assert adjusted.method == MatchMethod.HISTORICAL
        assert adjusted.confidence == pytest.approx(0.95)
        assert adjusted.historical_year == 1850
        assert "1701-1918" in adjusted.reason

    def test_capped_at_one(self, mini_store, config):
        (adjusted,) = apply_historical([_prussia(0.95)], 1850, mini_store, config)
        assert adjusted.confidence == 1.0

    def test_outside_interval_unchanged(self, mini_store, config):
        cand = _prussia()
        assert apply_historical([cand], 1950, mini_store, config) == [cand]

    def test_never_downgrades(self, mini_store, config):
        cand = Candidate("DE", 1.0, MatchMethod.EXACT, "Germany", "canonical name")
        (adjusted,) = apply_historical([cand], 1850, mini_store, config)
        assert adjusted == cand

    def test_no_year_returns_input(self, mini_store, config):
        cands = [_prussia()]
        assert apply_historical(cands, None, mini_store, config) is cands

    def test_implausible_year_ignored(self, mini_store, config):
        cands = [_prussia()]
        assert apply_historical(cands, -40, mini_store, config) is cands

    def test_rerank_after_boost(self, mini_store, config):
        other = Candidate("AT", 0.85, MatchMethod.PATTERN, "Osterreich", "pattern")
        prussia = _prussia(0.8)
        ranked = apply_historical([other, prussia], 1850, mini_store, config)
        assert [c.iso2 for c in ranked] == ["DE", "AT"]

    def test_tied_boosts_keep_order(self, mini_store, config):
        cz = Candidate("CZ", 0.85, MatchMethod.PATTERN, "Czechoslovakia", "historical name")
        sk = Candidate("SK", 0.85, MatchMethod.PATTERN, "Czechoslovakia", "historical name")
        ranked = apply_historical([cz, sk], 1950, mini_store, config)
        assert [c.iso2 for c in ranked] == ["CZ", "SK"]
        assert all(c.method == MatchMethod.HISTORICAL for c in ranked)
