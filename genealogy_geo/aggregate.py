"""
Aggregation of per-place match results into dataset statistics.

Counting is commutative and associative, so workers can each fold their own
chunk into an Aggregator and the partials are merged once at the end. The
unresolved list is re-sorted by original input position after a merge so any
"first N unresolved" sample is reproducible.
"""

from __future__ import annotations

from typing import Iterable, Optional

from genealogy_geo.config import MatchingConfig, get_settings
from genealogy_geo.models import (
    BestGuess,
    MatchMethod,
    MatchResult,
    PlaceInput,
    ProcessingMetadata,
    UnresolvedContext,
    UnresolvedLocation,
)

_METHOD_LABELS = {
    MatchMethod.EXACT: "Exact / ISO code",
    MatchMethod.ALIAS: "Alias",
    MatchMethod.PATTERN: "Pattern",
    MatchMethod.REGION: "Region",
    MatchMethod.HISTORICAL: "Historical",
    MatchMethod.FUZZY: "Fuzzy",
}


def _best_guess(result: MatchResult) -> Optional[BestGuess]:
    if result.iso2 is not None:
        return BestGuess(iso2=result.iso2, confidence=result.confidence)
    if result.details and result.details.alternatives:
        top = result.details.alternatives[0]
        return BestGuess(iso2=top.iso2, confidence=top.confidence)
    return None


def unresolved_from(item: PlaceInput, result: MatchResult) -> UnresolvedLocation:
    ctx = item.context
    context = None
    if ctx is not None and (ctx.year is not None or ctx.parent_birth or ctx.spouse_birth):
        context = UnresolvedContext(
            year=ctx.year,
            parent_birth=ctx.parent_birth,
            spouse_birth=ctx.spouse_birth,
        )
    return UnresolvedLocation(
        original=item.place,
        individual_id=ctx.individual_id if ctx else None,
        event_type=ctx.event_type if ctx else None,
        context=context,
        best_guess=_best_guess(result),
    )


class Aggregator:
    """Folds (input, result) pairs into ProcessingMetadata + unresolved places."""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.threshold = (config or get_settings().matching).unresolved_threshold
        self.reset()

    def reset(self) -> None:
        self.metadata = ProcessingMetadata.empty()
        self._unresolved: list[tuple[int, UnresolvedLocation]] = []
        self._next_index = 0

    def is_unresolved(self, result: MatchResult) -> bool:
        return not result.is_resolved or result.confidence < self.threshold

    def add(self, item: PlaceInput, result: MatchResult, index: Optional[int] = None) -> None:
        """Count one result. `index` is the input's position in the whole batch."""
        if index is None:
            index = self._next_index
        self._next_index = max(self._next_index, index + 1)

        self.metadata.record(result)
        if self.is_unresolved(result):
            self._unresolved.append((index, unresolved_from(item, result)))

    def extend(self, pairs: Iterable[tuple[PlaceInput, MatchResult]]) -> "Aggregator":
        for item, result in pairs:
            self.add(item, result)
        return self

    @property
    def unresolved(self) -> list[UnresolvedLocation]:
        return [loc for _, loc in sorted(self._unresolved, key=lambda pair: pair[0])]

    def merge(self, other: "Aggregator") -> "Aggregator":
        """Combine two partials into a new aggregator; neither input is modified."""
        merged = Aggregator.__new__(Aggregator)
        merged.threshold = self.threshold
        merged.metadata = self.metadata.merge(other.metadata)
        merged._unresolved = sorted(self._unresolved + other._unresolved, key=lambda pair: pair[0])
        merged._next_index = max(self._next_index, other._next_index)
        return merged

    @classmethod
    def merge_all(cls, partials: Iterable["Aggregator"], config: Optional[MatchingConfig] = None) -> "Aggregator":
        total = cls(config)
        for part in partials:
            total = total.merge(part)
        return total

    def summary_lines(self) -> list[str]:
        return summary_lines(self.metadata)


def summary_lines(meta: ProcessingMetadata) -> list[str]:
    """Human-readable statistics block for logs and the CLI."""
    if not meta.total_locations:
        return ["Country matching: no locations processed"]

    lines = [
        "Country Matching Statistics:",
        f"   Total locations: {meta.total_locations:,}",
        f"   Match rate: {meta.match_rate * 100:.1f}%",
        "   Confidence breakdown:",
        f"     - High (>=90%): {meta.matched.high:,}",
        f"     - Medium (70-89%): {meta.matched.medium:,}",
        f"     - Low (50-69%): {meta.matched.low:,}",
        f"     - Unmatched (<50%): {meta.matched.unmatched:,}",
        "   Matching methods used:",
    ]
    for method, label in _METHOD_LABELS.items():
        count = getattr(meta.methods, method.value)
        if count:
            lines.append(f"     - {label}: {count:,}")
    if meta.methods.unmatched:
        lines.append(f"     - Unmatched: {meta.methods.unmatched:,}")
    return lines


def aggregate(
    pairs: Iterable[tuple[PlaceInput, MatchResult]],
    config: Optional[MatchingConfig] = None,
) -> tuple[ProcessingMetadata, list[UnresolvedLocation]]:
    """Pure reduction over results in input order."""
    agg = Aggregator(config).extend(pairs)
    return agg.metadata, agg.unresolved
