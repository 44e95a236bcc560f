"""
Country matching strategies.

Each strategy is a pure function:

    strategy(normalized_place, store, config) -> list[Candidate]

returning at most one candidate per country, best first. Ties go to the
longer matched text, then ISO2; aliases keep their list position order.
Strategies never decide acceptance; the orchestrator does.

Confidence tiers (defaults, see MatchingConfig):
  exact    1.0         canonical name or ISO2/ISO3 code
  alias    0.95        alternate name
  pattern  0.6 - 0.85  token containment, scaled by covered length
  region   0.5 - 0.6   broad region tag shared by several countries
  fuzzy    >= 0.5      normalized Levenshtein similarity
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from genealogy_geo.config import MatchingConfig
from genealogy_geo.models import AlternativeMatch, MatchMethod
from genealogy_geo.normalize import contains_phrase, has_historical_prefix, segments
from genealogy_geo.reference import ReferenceDataStore, Surface

# Inputs shorter than this are never matched by being contained in a longer pattern
_MIN_CONTAINED_LEN = 4


@dataclass(frozen=True)
class Candidate:
    iso2: str
    confidence: float
    method: MatchMethod
    matched_value: str
    reason: str
    historical_year: Optional[int] = None

    def as_alternative(self) -> AlternativeMatch:
        return AlternativeMatch(iso2=self.iso2, confidence=self.confidence, reason=self.reason)


def _clamp(value: float, low: float, high: float) -> float:
    return round(max(low, min(high, value)), 4)


def _rank_key(cand: Candidate) -> tuple:
    # Longer matched text wins a tie ("new mexico" over "mexico"), then ISO2
    return (-cand.confidence, -len(cand.matched_value), cand.iso2)


def _best_per_country(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Keep the strongest candidate per country, best first."""
    best: dict[str, Candidate] = {}
    for cand in candidates:
        current = best.get(cand.iso2)
        if current is None or _rank_key(cand) < _rank_key(current):
            best[cand.iso2] = cand
    return sorted(best.values(), key=_rank_key)


# ── Exact ─────────────────────────────────────────────────────────────

def match_exact(normalized: str, store: ReferenceDataStore, config: MatchingConfig) -> list[Candidate]:
    hits = store.canonical_hits(normalized)
    if hits:
        # Already in ISO2 order; every tied country keeps the same confidence
        return [
            Candidate(s.iso2, config.exact_confidence, MatchMethod.EXACT, s.literal,
                      f"canonical name '{s.literal}'")
            for s in hits
        ]

    code = store.code_hit(normalized)
    if code is not None:
        return [
            Candidate(code.iso2, config.exact_confidence, MatchMethod.EXACT, code.literal,
                      f"{code.kind.upper()} code '{code.literal}'")
        ]
    return []


# ── Alias ─────────────────────────────────────────────────────────────

def match_alias(normalized: str, store: ReferenceDataStore, config: MatchingConfig) -> list[Candidate]:
    out: list[Candidate] = []
    seen: set[str] = set()
    for s in store.alias_hits(normalized):
        if s.iso2 in seen:
            continue
        seen.add(s.iso2)
        out.append(
            Candidate(s.iso2, config.alias_confidence, MatchMethod.ALIAS, s.literal,
                      f"alias '{s.literal}' (position {s.position + 1})")
        )
    return out


# ── Pattern ───────────────────────────────────────────────────────────

def _containment_score(
    normalized: str,
    surface: Surface,
    config: MatchingConfig,
    tail: Optional[str] = None,
    allow_contained: bool = True,
) -> Optional[float]:
    """
    Score token containment between the input and a surface form, either way.
    Confidence is the covered share of the longer string, clamped into the
    pattern tier. A surface that is the whole last segment of a multi-part
    place ("Dublin, Ohio") scores at least the middle of the tier, since the
    last component is the most general one.
    """
    if surface.template is not None:
        if not surface.template.match(normalized):
            return None
        ratio = surface.literal_length / max(len(normalized), 1)
    elif contains_phrase(normalized, surface.key):
        ratio = len(surface.key) / len(normalized)
        if tail is not None and surface.key == tail:
            ratio = max(ratio, (config.pattern_floor + config.pattern_cap) / 2)
    elif allow_contained and len(normalized) >= _MIN_CONTAINED_LEN and contains_phrase(surface.key, normalized):
        ratio = len(normalized) / len(surface.key)
    else:
        return None
    return _clamp(ratio, config.pattern_floor, config.pattern_cap)


def match_pattern(normalized: str, store: ReferenceDataStore, config: MatchingConfig) -> list[Candidate]:
    found: list[Candidate] = []

    # "City, County, Country": a trailing segment that names a country outright.
    # Two-letter codes are skipped here; "Springfield, IL" is Illinois, not Israel.
    parts = segments(normalized)
    tail = parts[-1] if len(parts) > 1 else None
    if tail is not None:
        for s in store.country_names(tail):
            if s.kind == "iso2":
                continue
            found.append(
                Candidate(s.iso2, config.pattern_cap, MatchMethod.PATTERN, s.literal,
                          f"last segment '{tail}' names {s.literal}")
            )

    for s in store.pattern_surfaces:
        score = _containment_score(normalized, s, config, tail)
        if score is not None:
            found.append(
                Candidate(s.iso2, score, MatchMethod.PATTERN, s.literal, f"pattern '{s.literal}'")
            )

    for s in store.historical_surfaces:
        score = _containment_score(normalized, s, config, tail)
        if score is not None:
            found.append(
                Candidate(s.iso2, score, MatchMethod.PATTERN, s.literal, f"historical name '{s.literal}'")
            )

    # "East Germany" is not Germany; qualified names only match via patterns/history
    if not has_historical_prefix(normalized):
        for s in store.name_surfaces:
            score = _containment_score(normalized, s, config, tail, allow_contained=False)
            if score is not None:
                found.append(
                    Candidate(s.iso2, score, MatchMethod.PATTERN, s.literal,
                              f"contains {s.kind} name '{s.literal}'")
                )

    return _best_per_country(found)


# ── Region ────────────────────────────────────────────────────────────

def match_region(normalized: str, store: ReferenceDataStore, config: MatchingConfig) -> list[Candidate]:
    floor = round(config.region_cap - 0.1, 4)
    found: list[Candidate] = []
    for tag, members in store.region_tags():
        if tag == normalized:
            score = config.region_cap
        elif contains_phrase(normalized, tag):
            score = _clamp(floor + 0.1 * len(tag) / len(normalized), floor, config.region_cap)
        else:
            continue
        for iso2 in members:
            found.append(
                Candidate(iso2, score, MatchMethod.REGION, tag,
                          f"region '{tag}' shared by {len(members)} "
                          f"{'country' if len(members) == 1 else 'countries'}")
            )
    return _best_per_country(found)


# ── Fuzzy ─────────────────────────────────────────────────────────────

def _fuzzy_queries(normalized: str) -> list[str]:
    parts = segments(normalized)
    if len(parts) > 1:
        return [normalized, parts[-1]]
    return [normalized]


def _fuzzy_scan(
    normalized: str,
    store: ReferenceDataStore,
    config: MatchingConfig,
    cutoff: float,
) -> list[Candidate]:
    choices = store.fuzzy_keys[: config.fuzzy_max_candidates]
    found: list[Candidate] = []
    for query in _fuzzy_queries(normalized):
        for _key, score, idx in process.extract(
            query,
            choices,
            scorer=Levenshtein.normalized_similarity,
            score_cutoff=cutoff,
            limit=None,
        ):
            s = store.fuzzy_surfaces[idx]
            found.append(
                Candidate(s.iso2, round(score, 4), MatchMethod.FUZZY, s.literal,
                          f"similar to {s.kind} name '{s.literal}' ({score:.2f})")
            )
    return _best_per_country(found)


def match_fuzzy(normalized: str, store: ReferenceDataStore, config: MatchingConfig) -> list[Candidate]:
    """
    Edit-distance fallback over every canonical name and alias.
    Keeps the best candidate plus those within fuzzy_delta of it.
    """
    if not normalized:
        return []
    ranked = _fuzzy_scan(normalized, store, config, config.fuzzy_min_score)
    if not ranked:
        return []
    best = ranked[0].confidence
    return [c for c in ranked if c.confidence >= round(best - config.fuzzy_delta, 4)]


def closest_surface(normalized: str, store: ReferenceDataStore, config: MatchingConfig) -> Optional[Candidate]:
    """Single nearest country name regardless of threshold (best-guess reporting)."""
    if not normalized:
        return None
    ranked = _fuzzy_scan(normalized, store, config, 0.0)
    return ranked[0] if ranked else None
