"""
Match orchestrator.

Runs the strategy cascade as an explicit state machine:

    NotStarted -> ExactTried -> AliasTried -> PatternTried -> RegionTried
               -> FuzzyTried -> HistoricalAdjusted -> Done

Exact and alias hits are accepted immediately. Pattern, region and fuzzy hits
are accepted only if their best candidate reaches the acceptance floor. An
accepted candidate set skips straight to historical adjustment. If nothing is
accepted every stage still runs, and the result is unresolved (iso2=None)
carrying the best sub-threshold guess.

Every call returns exactly one MatchResult; failures degrade to unmatched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional

from genealogy_geo.config import MatchingConfig, get_settings
from genealogy_geo.historical import apply_historical
from genealogy_geo.models import (
    MatchDetails,
    MatchMethod,
    MatchResult,
    PlaceContext,
    PlaceWithCountry,
)
from genealogy_geo.normalize import is_blank, normalize_place
from genealogy_geo.reference import ReferenceDataStore, get_store
from genealogy_geo.strategies import (
    Candidate,
    closest_surface,
    match_alias,
    match_exact,
    match_fuzzy,
    match_pattern,
    match_region,
)

logger = logging.getLogger(__name__)

Strategy = Callable[[str, ReferenceDataStore, MatchingConfig], list[Candidate]]


class MatchState(str, Enum):
    NOT_STARTED = "not_started"
    EXACT_TRIED = "exact_tried"
    ALIAS_TRIED = "alias_tried"
    PATTERN_TRIED = "pattern_tried"
    REGION_TRIED = "region_tried"
    FUZZY_TRIED = "fuzzy_tried"
    HISTORICAL_ADJUSTED = "historical_adjusted"
    DONE = "done"


@dataclass(frozen=True)
class Stage:
    state: MatchState
    method: MatchMethod
    strategy: Strategy
    accepts_any_hit: bool

    def accepts(self, candidates: list[Candidate], config: MatchingConfig) -> bool:
        if not candidates:
            return False
        return self.accepts_any_hit or candidates[0].confidence >= config.accept_floor


CASCADE: tuple[Stage, ...] = (
    Stage(MatchState.EXACT_TRIED, MatchMethod.EXACT, match_exact, accepts_any_hit=True),
    Stage(MatchState.ALIAS_TRIED, MatchMethod.ALIAS, match_alias, accepts_any_hit=True),
    Stage(MatchState.PATTERN_TRIED, MatchMethod.PATTERN, match_pattern, accepts_any_hit=False),
    Stage(MatchState.REGION_TRIED, MatchMethod.REGION, match_region, accepts_any_hit=False),
    Stage(MatchState.FUZZY_TRIED, MatchMethod.FUZZY, match_fuzzy, accepts_any_hit=False),
)


@dataclass
class MatchTrace:
    """States visited while matching one place (for debugging and tests)."""
    states: list[MatchState] = field(default_factory=lambda: [MatchState.NOT_STARTED])
    accepted_by: Optional[MatchState] = None

    def enter(self, state: MatchState) -> None:
        self.states.append(state)


class CountryMatcher:
    """
    Resolves place strings to ISO2 country codes.

    Stateless per call: the reference store is shared read-only, so one
    instance can serve any number of worker threads.
    """

    def __init__(
        self,
        store: Optional[ReferenceDataStore] = None,
        config: Optional[MatchingConfig] = None,
        cascade: tuple[Stage, ...] = CASCADE,
    ):
        self.store = store or get_store()
        self.config = config or get_settings().matching
        self.cascade = cascade

    def match(self, place: str, context: Optional[PlaceContext] = None) -> MatchResult:
        result, _ = self.match_with_trace(place, context)
        return result

    def match_with_trace(
        self,
        place: str,
        context: Optional[PlaceContext] = None,
    ) -> tuple[MatchResult, MatchTrace]:
        trace = MatchTrace()
        try:
            result = self._run(place, context, trace, use_hints=True)
        except Exception:
            logger.exception("Country matching failed for %r; treating as unmatched", place)
            result = self._unmatched(place if isinstance(place, str) else str(place), "", None)
        trace.enter(MatchState.DONE)
        return result, trace

    def process_place(
        self,
        place: str,
        context: Optional[PlaceContext] = None,
    ) -> tuple[PlaceWithCountry, MatchResult]:
        result = self.match(place, context)
        return PlaceWithCountry.from_result(place, result), result

    # ── Cascade ───────────────────────────────────────────────────────

    def _run(
        self,
        place: str,
        context: Optional[PlaceContext],
        trace: MatchTrace,
        use_hints: bool,
    ) -> MatchResult:
        if is_blank(place):
            return self._unmatched(place or "", "", None)
        normalized = normalize_place(place)

        accepted: list[Candidate] = []
        best_guess: Optional[Candidate] = None

        for stage in self.cascade:
            candidates = stage.strategy(normalized, self.store, self.config)
            trace.enter(stage.state)
            if stage.accepts(candidates, self.config):
                accepted = candidates
                trace.accepted_by = stage.state
                logger.debug(
                    "%r -> %s via %s (%.2f, %d candidates)",
                    place, candidates[0].iso2, stage.method.value, candidates[0].confidence, len(candidates),
                )
                break
            if candidates and (best_guess is None or candidates[0].confidence > best_guess.confidence):
                best_guess = candidates[0]

        if not accepted:
            closest = closest_surface(normalized, self.store, self.config)
            if closest is not None and (best_guess is None or closest.confidence > best_guess.confidence):
                best_guess = closest
            return self._unmatched(place, normalized, best_guess)

        year = context.year if context else None
        ranked = apply_historical(accepted, year, self.store, self.config)
        trace.enter(MatchState.HISTORICAL_ADJUSTED)

        if use_hints and context is not None:
            ranked = self._apply_context_hints(ranked, context, trace)

        return self._resolved(place, normalized, ranked)

    def _apply_context_hints(
        self,
        ranked: list[Candidate],
        context: PlaceContext,
        trace: MatchTrace,
    ) -> list[Candidate]:
        """
        Break a tie at the top using a relative's birthplace: if it resolves to
        one of the tied countries, that country becomes primary. Confidence is
        not changed.
        """
        top = ranked[0].confidence
        tied = [c for c in ranked if c.confidence == top]
        if len(tied) < 2:
            return ranked

        for label, hint in (("parent", context.parent_birth), ("spouse", context.spouse_birth)):
            if not hint:
                continue
            hinted = self._run(hint, None, MatchTrace(), use_hints=False)
            if hinted.iso2 is None or hinted.iso2 == ranked[0].iso2:
                continue
            for i, cand in enumerate(ranked):
                if cand.iso2 == hinted.iso2 and cand.confidence == top:
                    promoted = replace(cand, reason=f"{cand.reason}; {label} born in {hinted.iso2}")
                    logger.debug("Context hint %s=%r promoted %s", label, hint, cand.iso2)
                    return [promoted] + ranked[:i] + ranked[i + 1:]
        return ranked

    # ── Result builders ───────────────────────────────────────────────

    @staticmethod
    def _resolved(place: str, normalized: str, ranked: list[Candidate]) -> MatchResult:
        primary = ranked[0]
        return MatchResult(
            iso2=primary.iso2,
            confidence=min(1.0, primary.confidence),
            method=primary.method,
            details=MatchDetails(
                original_input=place,
                normalized_input=normalized,
                matched_value=primary.matched_value,
                historical_year=primary.historical_year,
                alternatives=[c.as_alternative() for c in ranked[1:]],
            ),
        )

    @staticmethod
    def _unmatched(place: str, normalized: str, best_guess: Optional[Candidate]) -> MatchResult:
        alternatives = []
        confidence = 0.0
        if best_guess is not None:
            confidence = min(best_guess.confidence, 1.0)
            alternatives = [
                replace(best_guess, reason=f"best guess: {best_guess.reason}").as_alternative()
            ]
        return MatchResult(
            iso2=None,
            confidence=confidence,
            method=None,
            details=MatchDetails(
                original_input=place,
                normalized_input=normalized,
                alternatives=alternatives,
            ),
        )
