"""
Batch runner.
Matches a batch of place strings on a pool of worker threads and folds the
results into one BatchReport.

Each chunk is matched independently against the shared read-only reference
store and produces its own partial Aggregator; partials are merged at a single
point once every chunk is done. One bad input never aborts the batch: unusable
context fields are dropped, and an item with no usable place is reported as
unmatched.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from genealogy_geo.aggregate import Aggregator
from genealogy_geo.config import get_settings
from genealogy_geo.matcher import CountryMatcher
from genealogy_geo.models import (
    BatchReport,
    MatchDetails,
    MatchResult,
    PlaceContext,
    PlaceInput,
    PlaceWithCountry,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnusableInput:
    """An input that could not be read at all (e.g. a malformed JSONL line)."""
    original: str
    reason: str


RawInput = Union[PlaceInput, UnusableInput, str, tuple, Mapping[str, Any]]

_CONTEXT_FIELDS = ("year", "parent_birth", "spouse_birth", "individual_id", "event_type")


def coerce_context(raw: Any) -> Optional[PlaceContext]:
    """
    Validate a context, dropping any field that fails validation.
    A year such as "abt 1850" is discarded and the match runs without a year.
    """
    if raw is None or isinstance(raw, PlaceContext):
        return raw
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring context %r: expected an object", raw)
        return None
    try:
        return PlaceContext.model_validate(raw)
    except ValidationError as e:
        bad = {err["loc"][0] for err in e.errors() if err["loc"]}
        logger.warning(
            "Dropping unusable context fields %s",
            ", ".join(f"{name}={raw.get(name)!r}" for name in sorted(map(str, bad))),
        )
        return PlaceContext.model_validate({k: v for k, v in raw.items() if k not in bad})


def coerce_input(raw: RawInput) -> PlaceInput:
    """
    Accept the shapes callers hand us:
      - PlaceInput
      - "Cork, Ireland"
      - ("Cork, Ireland", PlaceContext | dict | None)
      - {"place": ..., "context": {...}} or {"place": ..., "year": 1850, ...}

    Raises ValueError (pydantic's ValidationError) when the place itself is
    unusable and TypeError for an unsupported shape.
    """
    if isinstance(raw, PlaceInput):
        return raw
    if isinstance(raw, str):
        return PlaceInput(place=raw)
    if isinstance(raw, tuple):
        place, context = (raw + (None,))[:2]
    elif isinstance(raw, Mapping):
        place = raw.get("place", "")
        if "context" in raw:
            context = raw["context"]
        else:
            context = {k: raw[k] for k in _CONTEXT_FIELDS if raw.get(k) is not None} or None
    else:
        raise TypeError(f"Unsupported place input: {type(raw).__name__}")
    return PlaceInput(place=place, context=coerce_context(context))


def _prepare(raw: RawInput) -> tuple[PlaceInput, bool]:
    """Coerce one item; returns (item, usable). Unusable items keep str(raw) as the place."""
    if isinstance(raw, UnusableInput):
        logger.warning("Unusable place input %r (%s); recording as unmatched", raw.original, raw.reason)
        return PlaceInput(place=raw.original), False
    try:
        return coerce_input(raw), True
    except (TypeError, ValueError) as e:
        logger.warning("Unusable place input %r (%s); recording as unmatched", raw, e)
        return PlaceInput(place=str(raw)), False


def _chunks(items: Sequence, size: int) -> list[tuple[int, Sequence]]:
    size = max(1, size)
    return [(start, items[start:start + size]) for start in range(0, len(items), size)]


def _match_chunk(
    matcher: CountryMatcher,
    start: int,
    chunk: Sequence[tuple[PlaceInput, bool]],
) -> tuple[list[tuple[PlaceWithCountry, MatchResult]], Aggregator]:
    agg = Aggregator(matcher.config)
    out: list[tuple[PlaceWithCountry, MatchResult]] = []
    for offset, (item, usable) in enumerate(chunk):
        if usable:
            place, result = matcher.process_place(item.place, item.context)
        else:
            result = MatchResult(details=MatchDetails(original_input=item.place))
            place = PlaceWithCountry.from_result(item.place, result)
        agg.add(item, result, index=start + offset)
        out.append((place, result))
    return out, agg


async def run_batch_async(
    inputs: Iterable[RawInput],
    matcher: Optional[CountryMatcher] = None,
    workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
) -> BatchReport:
    settings = get_settings().batch
    matcher = matcher or CountryMatcher()
    items = [_prepare(raw) for raw in inputs]
    workers = max(1, workers or settings.workers)
    chunk_size = chunk_size or settings.chunk_size

    start_time = time.monotonic()
    semaphore = asyncio.Semaphore(workers)

    async def _worker(start: int, chunk: Sequence[tuple[PlaceInput, bool]]):
        async with semaphore:
            return await asyncio.to_thread(_match_chunk, matcher, start, chunk)

    chunks = _chunks(items, chunk_size)
    logger.info("Matching %d places in %d chunks on %d workers", len(items), len(chunks), workers)
    partials = await asyncio.gather(*(_worker(start, chunk) for start, chunk in chunks))

    # Single merge point; gather preserves chunk order
    places: list[PlaceWithCountry] = []
    results: list[MatchResult] = []
    for matched, _agg in partials:
        for place, result in matched:
            places.append(place)
            results.append(result)
    total = Aggregator.merge_all((agg for _, agg in partials), matcher.config)

    elapsed = time.monotonic() - start_time
    logger.info(
        "Batch complete in %.2fs: %d places, %d unresolved",
        elapsed, total.metadata.total_locations, len(total.unresolved),
    )
    return BatchReport(
        places=places,
        results=results,
        metadata=total.metadata,
        unresolved=total.unresolved,
    )


def run_batch(
    inputs: Iterable[RawInput],
    matcher: Optional[CountryMatcher] = None,
    workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
) -> BatchReport:
    """Synchronous wrapper around run_batch_async (not for use inside a running loop)."""
    return asyncio.run(run_batch_async(inputs, matcher, workers, chunk_size))
