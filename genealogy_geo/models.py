"""
Pydantic models used across the engine for validation and serialization.
These are pure data objects with no reference data coupling.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


# ── Enums ──────────────────────────────────────────────────────────────

class MatchMethod(str, Enum):
    EXACT = "exact"
    ALIAS = "alias"
    PATTERN = "pattern"
    REGION = "region"
    FUZZY = "fuzzy"
    HISTORICAL = "historical"


class ConfidenceBand(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNMATCHED = "unmatched"


def band_for(confidence: float, resolved: bool = True) -> ConfidenceBand:
    """
    Bucket a confidence into its reporting band.
    A result without a country is always unmatched, whatever its score.
    """
    if not resolved or confidence < 0.5:
        return ConfidenceBand.UNMATCHED
    if confidence >= 0.9:
        return ConfidenceBand.HIGH
    if confidence >= 0.7:
        return ConfidenceBand.MEDIUM
    return ConfidenceBand.LOW


# ── Input models ──────────────────────────────────────────────────────

class PlaceContext(BaseModel):
    """Hints from the caller's genealogical record model."""
    year: Optional[int] = None
    parent_birth: Optional[str] = None
    spouse_birth: Optional[str] = None
    individual_id: Optional[str] = None
    event_type: Optional[str] = Field(None, description="birth, death, marriage, ...")


class PlaceInput(BaseModel):
    place: str
    context: Optional[PlaceContext] = None


# ── Match results ─────────────────────────────────────────────────────

class AlternativeMatch(BaseModel):
    iso2: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str


class MatchDetails(BaseModel):
    original_input: str
    normalized_input: str = ""
    matched_value: Optional[str] = None
    historical_year: Optional[int] = None
    alternatives: list[AlternativeMatch] = Field(default_factory=list)


class MatchResult(BaseModel):
    """The engine's unit of output for one input string."""
    iso2: Optional[str] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    method: Optional[MatchMethod] = None
    details: Optional[MatchDetails] = None

    @property
    def is_resolved(self) -> bool:
        return self.iso2 is not None

    @property
    def band(self) -> ConfidenceBand:
        return band_for(self.confidence, self.is_resolved)


class CountryMatch(BaseModel):
    iso2: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    method: MatchMethod
    matched_on: Optional[str] = None
    alternatives: Optional[list[AlternativeMatch]] = None


class PlaceWithCountry(BaseModel):
    """Per-record output persisted downstream."""
    original: str
    country: Optional[CountryMatch] = None

    @classmethod
    def from_result(cls, original: str, result: MatchResult) -> "PlaceWithCountry":
        if not result.is_resolved or result.method is None:
            return cls(original=original)
        details = result.details
        return cls(
            original=original,
            country=CountryMatch(
                iso2=result.iso2,
                confidence=result.confidence,
                method=result.method,
                matched_on=details.matched_value if details else None,
                alternatives=(details.alternatives or None) if details else None,
            ),
        )


# ── Dataset rollup ────────────────────────────────────────────────────

class BandCounts(BaseModel):
    high: int = 0        # >= 0.9
    medium: int = 0      # 0.7 - 0.9
    low: int = 0         # 0.5 - 0.7
    unmatched: int = 0   # < 0.5

    def total(self) -> int:
        return self.high + self.medium + self.low + self.unmatched


class MethodCounts(BaseModel):
    exact: int = 0
    alias: int = 0
    pattern: int = 0
    region: int = 0
    fuzzy: int = 0
    historical: int = 0
    unmatched: int = 0

    def total(self) -> int:
        return sum(getattr(self, name) for name in _METHOD_BUCKETS)


# Every MatchMethod has a counter, plus the "unmatched" pseudo-method
_METHOD_BUCKETS: tuple[str, ...] = tuple(m.value for m in MatchMethod) + ("unmatched",)


class ProcessingMetadata(BaseModel):
    total_locations: int = 0
    matched: BandCounts = Field(default_factory=BandCounts)
    methods: MethodCounts = Field(default_factory=MethodCounts)

    @classmethod
    def empty(cls) -> "ProcessingMetadata":
        return cls()

    def record(self, result: MatchResult) -> None:
        """Count one result into exactly one band and one method bucket."""
        band = result.band
        self.total_locations += 1
        setattr(self.matched, band.value, getattr(self.matched, band.value) + 1)
        bucket = "unmatched" if band is ConfidenceBand.UNMATCHED or result.method is None \
            else result.method.value
        setattr(self.methods, bucket, getattr(self.methods, bucket) + 1)

    def merge(self, other: "ProcessingMetadata") -> "ProcessingMetadata":
        """Return the sum of two partial rollups (associative, commutative)."""
        return ProcessingMetadata(
            total_locations=self.total_locations + other.total_locations,
            matched=BandCounts(**{
                name: getattr(self.matched, name) + getattr(other.matched, name)
                for name in BandCounts.model_fields
            }),
            methods=MethodCounts(**{
                name: getattr(self.methods, name) + getattr(other.methods, name)
                for name in _METHOD_BUCKETS
            }),
        )

    @property
    def match_rate(self) -> float:
        if not self.total_locations:
            return 0.0
        return (self.total_locations - self.matched.unmatched) / self.total_locations


class BestGuess(BaseModel):
    iso2: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class UnresolvedContext(BaseModel):
    year: Optional[int] = None
    parent_birth: Optional[str] = None
    spouse_birth: Optional[str] = None


class UnresolvedLocation(BaseModel):
    """An input that did not clear the confidence bar."""
    original: str
    individual_id: Optional[str] = None
    event_type: Optional[str] = None
    context: Optional[UnresolvedContext] = None
    best_guess: Optional[BestGuess] = None

    model_config = {"frozen": True}


class BatchReport(BaseModel):
    places: list[PlaceWithCountry] = Field(default_factory=list)
    results: list[MatchResult] = Field(default_factory=list)
    metadata: ProcessingMetadata = Field(default_factory=ProcessingMetadata)
    unresolved: list[UnresolvedLocation] = Field(default_factory=list)


# ── API models ────────────────────────────────────────────────────────

class MatchRequest(BaseModel):
    place: str
    context: Optional[PlaceContext] = None


class MatchResponse(BaseModel):
    place: PlaceWithCountry
    result: MatchResult


class BatchRequest(BaseModel):
    """Items are coerced one by one in the batch runner, so a malformed entry
    becomes an unmatched result instead of rejecting the whole request."""
    places: list[Union[str, dict[str, Any]]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    countries: int = 0
    aliases: int = 0
    patterns: int = 0
    regions: int = 0
    historical_names: int = 0
