"""
Place string normalization.

Every matching strategy keys on the output of normalize_place():
  1. Transliterate to ASCII ("Preußen" -> "preussen", "Fránce" -> "france")
  2. Lowercase
  3. Collapse initialisms ("U.S.A." -> "usa")
  4. Treat remaining periods, brackets, slashes and semicolons as separators
  5. Collapse whitespace, tidy comma spacing, drop empty comma segments
  6. Strip leading/trailing punctuation

The raw input is never modified; callers keep it alongside the normalized key.
"""

from __future__ import annotations

import re
from functools import lru_cache

from unidecode import unidecode

_INITIALISM_RE = re.compile(r"\b(?:[a-z]\.){2,}")
_SEPARATOR_RE = re.compile(r"[.()\[\]{}\"]+")
_SEGMENT_BREAK_RE = re.compile(r"\s*[;/|]\s*")
_WHITESPACE_RE = re.compile(r"\s+")
_COMMA_RE = re.compile(r"\s*,\s*")
_EDGE_PUNCT = " ,.;:-'\"!?"

# Leading qualifiers that turn a modern country name into a different, historical one
HISTORICAL_PREFIXES: tuple[str, ...] = (
    "east ",
    "west ",
    "north ",
    "south ",
    "soviet ",
    "former ",
)


@lru_cache(maxsize=65536)
def normalize_place(raw: str) -> str:
    """
    Canonicalize a raw place string into the matching key.
    Returns "" for blank input.
    """
    if not raw:
        return ""

    text = unidecode(raw).lower()
    text = _INITIALISM_RE.sub(lambda m: m.group(0).replace(".", ""), text)
    text = _SEGMENT_BREAK_RE.sub(", ", text)
    text = _SEPARATOR_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text)

    parts = [p.strip(_EDGE_PUNCT) for p in _COMMA_RE.split(text)]
    return ", ".join(p for p in parts if p)


def segments(normalized: str) -> list[str]:
    """Split a normalized place into its comma-separated parts."""
    if not normalized:
        return []
    return normalized.split(", ")


def is_blank(raw: str | None) -> bool:
    return raw is None or not normalize_place(raw)


@lru_cache(maxsize=8192)
def _phrase_pattern(phrase: str) -> re.Pattern:
    # Token boundaries: start/end of string, whitespace or comma
    return re.compile(r"(?:^|(?<=[,\s]))" + re.escape(phrase) + r"(?=$|[,\s])")


def contains_phrase(text: str, phrase: str) -> bool:
    """
    True if `phrase` appears in `text` as a run of whole tokens.
    "cork" is in "county cork, ireland"; "us" is not in "russia".
    """
    if not phrase or len(phrase) > len(text):
        return False
    return _phrase_pattern(phrase).search(text) is not None


def has_historical_prefix(normalized: str) -> bool:
    return normalized.startswith(HISTORICAL_PREFIXES)
