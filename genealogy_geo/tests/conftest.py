"""
Shared fixtures: a small hand-written reference map for exact expectations,
and the bundled dataset for end-to-end behaviour.
"""

from __future__ import annotations

import pytest

from genealogy_geo.config import _BUNDLED_DATA, MatchingConfig
from genealogy_geo.matcher import CountryMatcher
from genealogy_geo.reference import ReferenceDataStore

MINI_DATA = {
    "AT": {
        "canonical": "Austria",
        "iso3": "AUT",
        "aliases": ["Osterreich"],
        "regions": ["Central Europe"],
    },
    "CZ": {
        "canonical": "Czech Republic",
        "iso3": "CZE",
        "aliases": ["Czechia"],
        "patterns": ["bohemia"],
        "historicalNames": {"Czechoslovakia": [1918, 1992]},
    },
    "DE": {
        "canonical": "Germany",
        "iso3": "DEU",
        "aliases": ["Deutschland", "Allemagne"],
        "patterns": ["bavaria"],
        "regions": ["Central Europe"],
        "historicalNames": {"Prussia": [1701, 1918]},
    },
    "FR": {
        "canonical": "France",
        "iso3": "FRA",
        "aliases": ["Frankreich"],
    },
    "GB": {
        "canonical": "United Kingdom",
        "iso3": "GBR",
        "aliases": ["England", "Britain"],
        "patterns": ["london"],
        "regions": ["British Isles"],
    },
    "IE": {
        "canonical": "Ireland",
        "iso3": "IRL",
        "aliases": ["Eire"],
        "patterns": ["cork", "dublin"],
        "regions": ["British Isles"],
    },
    "SK": {
        "canonical": "Slovakia",
        "iso3": "SVK",
        "patterns": ["bratislava"],
        "historicalNames": {"Czechoslovakia": [1918, 1992]},
    },
    "US": {
        "canonical": "United States",
        "iso3": "USA",
        "aliases": ["USA", "United States of America"],
        "patterns": ["ohio", "new york", "*, usa"],
        "historicalNames": {"New Amsterdam": [1625, 1664]},
    },
}


@pytest.fixture(scope="session")
def config():
    return MatchingConfig()


@pytest.fixture(scope="session")
def mini_store():
    return ReferenceDataStore(MINI_DATA)


@pytest.fixture(scope="session")
def bundled_store():
    return ReferenceDataStore.from_json(_BUNDLED_DATA)


@pytest.fixture(scope="session")
def matcher(bundled_store, config):
    return CountryMatcher(store=bundled_store, config=config)


@pytest.fixture(scope="session")
def mini_matcher(mini_store, config):
    return CountryMatcher(store=mini_store, config=config)
