"""
Historical corroboration.

When a record carries a year, a candidate whose matched literal is one of its
country's historical names, valid in that year, is promoted to the
"historical" method with a fixed confidence bonus. Historical data only ever
corroborates: a candidate that does not line up with a dated name is left
exactly as the strategy produced it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from genealogy_geo.config import MatchingConfig
from genealogy_geo.models import MatchMethod
from genealogy_geo.normalize import contains_phrase, normalize_place
from genealogy_geo.reference import HistoricalName, ReferenceDataStore
from genealogy_geo.strategies import Candidate

logger = logging.getLogger(__name__)


def usable_year(year: Optional[int], config: MatchingConfig) -> Optional[int]:
    """Return the year if it is a plausible calendar year, else None."""
    if year is None:
        return None
    if isinstance(year, bool) or not isinstance(year, int):
        logger.debug("Ignoring non-integer context year %r", year)
        return None
    if not config.min_plausible_year <= year <= config.max_plausible_year:
        logger.debug("Ignoring implausible context year %d", year)
        return None
    return year


def corroborating_name(
    candidate: Candidate,
    year: int,
    store: ReferenceDataStore,
) -> Optional[HistoricalName]:
    """The historical name of the candidate's country that its matched literal refers to in `year`."""
    matched = normalize_place(candidate.matched_value)
    if not matched:
        return None
    for hn in store.historical_names(candidate.iso2):
        if not hn.covers(year):
            continue
        key = normalize_place(hn.name)
        if matched == key or contains_phrase(matched, key):
            return hn
    return None


def apply_historical(
    candidates: list[Candidate],
    year: Optional[int],
    store: ReferenceDataStore,
    config: MatchingConfig,
) -> list[Candidate]:
    """
    Boost corroborated candidates and re-rank. Without a usable year the
    candidates come back unchanged.
    """
    year = usable_year(year, config)
    if year is None or not candidates:
        return candidates

    adjusted: list[Candidate] = []
    for cand in candidates:
        hn = corroborating_name(cand, year, store)
        if hn is None:
            adjusted.append(cand)
            continue
        boosted = round(min(1.0, cand.confidence + config.historical_bonus), 4)
        adjusted.append(
            replace(
                cand,
                confidence=max(boosted, cand.confidence),
                method=MatchMethod.HISTORICAL,
                historical_year=year,
                reason=f"{cand.reason}; '{hn.name}' valid {hn.start_year}-{hn.end_year}",
            )
        )

    # Stable: equal scores keep the strategy's ordering
    return sorted(adjusted, key=lambda c: -c.confidence)
