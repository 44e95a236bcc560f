"""
Reference data store: ISO2 code -> country matching record.

Loaded once (from a mapping or a JSON file), validated eagerly, and read-only
afterwards. All lookup tables are built at load time on normalized keys so the
strategies never normalize reference data themselves.

JSON layout (one object per ISO2 code):

    {
      "DE": {
        "canonical": "Germany",
        "iso3": "DEU",
        "aliases": ["Deutschland", "Allemagne"],
        "patterns": ["bavaria", "*, deutschland"],
        "regions": ["Central Europe"],
        "historicalNames": {"Prussia": [1701, 1918]}
      }
    }
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from genealogy_geo.config import get_settings
from genealogy_geo.errors import ConfigurationError
from genealogy_geo.normalize import normalize_place

logger = logging.getLogger(__name__)

_ISO2_RE = re.compile(r"^[A-Z]{2}$")
_ISO3_RE = re.compile(r"^[A-Z]{3}$")


# ── Records ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HistoricalName:
    name: str
    start_year: int
    end_year: int

    def covers(self, year: int) -> bool:
        return self.start_year <= year <= self.end_year


@dataclass(frozen=True)
class CountryMatchingData:
    iso2: str
    canonical: str
    iso3: str
    aliases: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    historical_names: tuple[HistoricalName, ...] = ()

    @classmethod
    def from_dict(cls, iso2: str, raw: Any) -> "CountryMatchingData":
        """Build a record from its JSON form (camelCase or snake_case keys)."""
        if not isinstance(raw, Mapping):
            raise ConfigurationError("record must be an object", iso2)

        historical = raw.get("historicalNames", raw.get("historical_names")) or {}
        if not isinstance(historical, Mapping):
            raise ConfigurationError("historicalNames must map a name to [startYear, endYear]", iso2)

        return cls(
            iso2=iso2,
            canonical=_require_str(raw.get("canonical"), "canonical", iso2),
            iso3=_require_str(raw.get("iso3"), "iso3", iso2),
            aliases=_str_tuple(raw.get("aliases"), "aliases", iso2),
            patterns=_str_tuple(raw.get("patterns"), "patterns", iso2),
            regions=_str_tuple(raw.get("regions"), "regions", iso2),
            historical_names=tuple(
                _historical_name(name, span, iso2) for name, span in historical.items()
            ),
        )


CountryMatchingMap = Mapping[str, CountryMatchingData]


@dataclass(frozen=True)
class Surface:
    """One normalized surface form pointing at a country."""
    key: str
    iso2: str
    literal: str
    kind: str        # canonical | alias | pattern | historical | iso2 | iso3
    position: int = 0
    template: Optional[re.Pattern] = None

    @property
    def literal_length(self) -> int:
        """Characters that must literally appear (wildcards excluded)."""
        return len(self.key.replace("*", "").strip(" ,"))


def _require_str(value: Any, field_name: str, iso2: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"missing or empty '{field_name}'", iso2)
    return value.strip()


def _str_tuple(value: Any, field_name: str, iso2: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ConfigurationError(f"'{field_name}' must be a list of strings", iso2)
    out = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigurationError(f"'{field_name}' contains a non-string entry: {item!r}", iso2)
        if item.strip():
            out.append(item.strip())
    return tuple(out)


def _historical_name(name: Any, span: Any, iso2: str) -> HistoricalName:
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError("historical name must be a non-empty string", iso2)
    if (
        not isinstance(span, (list, tuple))
        or len(span) != 2
        or not all(isinstance(y, int) and not isinstance(y, bool) for y in span)
    ):
        raise ConfigurationError(
            f"historical name '{name}' needs an interval [startYear, endYear], got {span!r}", iso2
        )
    start, end = span
    if start > end:
        raise ConfigurationError(
            f"historical name '{name}' has start year {start} after end year {end}", iso2
        )
    return HistoricalName(name.strip(), start, end)


def _compile_template(key: str) -> re.Pattern:
    """'*, usa' -> ^.*, usa$ (a wildcard spans any run of characters)."""
    return re.compile("^" + ".*".join(re.escape(part) for part in key.split("*")) + "$")


# ── Store ─────────────────────────────────────────────────────────────

class ReferenceDataStore:
    """
    Immutable, shareable lookup tables over a CountryMatchingMap.

    Safe to share across worker threads: every table is a tuple or a
    read-only mapping and nothing is mutated after __init__.
    """

    def __init__(self, countries: Mapping[str, CountryMatchingData | Mapping[str, Any]]):
        records = _coerce_records(countries)
        _validate(records)
        self.countries: CountryMatchingMap = MappingProxyType(records)

        canonical: dict[str, list[Surface]] = {}
        aliases: dict[str, list[Surface]] = {}
        codes: dict[str, Surface] = {}
        regions: dict[str, set[str]] = {}
        patterns: list[Surface] = []
        names: list[Surface] = []
        historical: list[Surface] = []

        for iso2, data in records.items():
            canon = Surface(normalize_place(data.canonical), iso2, data.canonical, "canonical")
            canonical.setdefault(canon.key, []).append(canon)
            names.append(canon)

            codes[iso2.lower()] = Surface(iso2.lower(), iso2, iso2, "iso2")
            codes[data.iso3.lower()] = Surface(data.iso3.lower(), iso2, data.iso3, "iso3")

            seen_aliases: set[str] = set()
            for pos, alias in enumerate(data.aliases):
                key = normalize_place(alias)
                if not key or key in seen_aliases:
                    continue
                seen_aliases.add(key)
                surface = Surface(key, iso2, alias, "alias", pos)
                aliases.setdefault(key, []).append(surface)
                names.append(surface)

            for pos, pattern in enumerate(data.patterns):
                key = normalize_place(pattern)
                if not key.replace("*", "").strip(" ,"):
                    continue
                template = _compile_template(key) if "*" in key else None
                patterns.append(Surface(key, iso2, pattern, "pattern", pos, template))

            for pos, hn in enumerate(data.historical_names):
                historical.append(Surface(normalize_place(hn.name), iso2, hn.name, "historical", pos))

            for region in data.regions:
                key = normalize_place(region)
                if key:
                    regions.setdefault(key, set()).add(iso2)

        self._canonical = MappingProxyType(
            {k: tuple(sorted(v, key=lambda s: s.iso2)) for k, v in canonical.items()}
        )
        self._aliases = MappingProxyType(
            {k: tuple(sorted(v, key=lambda s: (s.position, s.iso2))) for k, v in aliases.items()}
        )
        self._codes = MappingProxyType(codes)
        self._regions = MappingProxyType({k: tuple(sorted(v)) for k, v in regions.items()})
        self.pattern_surfaces: tuple[Surface, ...] = tuple(patterns)
        self.name_surfaces: tuple[Surface, ...] = tuple(names)
        self.historical_surfaces: tuple[Surface, ...] = tuple(historical)
        # Fuzzy scans canonical names first, then aliases, in ISO2 order
        self.fuzzy_surfaces: tuple[Surface, ...] = tuple(
            sorted(names, key=lambda s: (s.kind != "canonical", s.iso2, s.position))
        )
        self.fuzzy_keys: tuple[str, ...] = tuple(s.key for s in self.fuzzy_surfaces)

        logger.info(
            "Reference data loaded: %d countries, %d aliases, %d patterns, %d regions, %d historical names",
            len(records), sum(len(v) for v in self._aliases.values()), len(self.pattern_surfaces),
            len(self._regions), len(self.historical_surfaces),
        )

    # ── Constructors ──────────────────────────────────────────────────

    @classmethod
    def from_json(cls, path: str | Path) -> "ReferenceDataStore":
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"cannot read reference data {path}: {e}") from e
        try:
            raw = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid JSON in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{path} must contain an object keyed by ISO2 code")
        return cls(raw)

    # ── Lookups ───────────────────────────────────────────────────────

    def get(self, iso2: str) -> Optional[CountryMatchingData]:
        return self.countries.get(iso2)

    def canonical_hits(self, key: str) -> tuple[Surface, ...]:
        return self._canonical.get(key, ())

    def alias_hits(self, key: str) -> tuple[Surface, ...]:
        return self._aliases.get(key, ())

    def code_hit(self, key: str) -> Optional[Surface]:
        return self._codes.get(key)

    def country_names(self, key: str) -> tuple[Surface, ...]:
        """Every surface that names a country outright: canonical, alias or ISO code."""
        hits = self.canonical_hits(key) + self.alias_hits(key)
        code = self.code_hit(key)
        return hits + (code,) if code else hits

    def region_tags(self) -> Iterable[tuple[str, tuple[str, ...]]]:
        return self._regions.items()

    def historical_names(self, iso2: str) -> tuple[HistoricalName, ...]:
        data = self.get(iso2)
        return data.historical_names if data else ()

    def stats(self) -> dict[str, int]:
        return {
            "countries": len(self.countries),
            "aliases": sum(len(v) for v in self._aliases.values()),
            "patterns": len(self.pattern_surfaces),
            "regions": len(self._regions),
            "historical_names": len(self.historical_surfaces),
        }


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in pairs:
        if key in out:
            raise ConfigurationError(f"duplicate key '{key}' in reference data")
        out[key] = value
    return out


def _coerce_records(
    countries: Mapping[str, CountryMatchingData | Mapping[str, Any]],
) -> dict[str, CountryMatchingData]:
    records: dict[str, CountryMatchingData] = {}
    for raw_code, raw in countries.items():
        if not isinstance(raw_code, str):
            raise ConfigurationError(f"ISO2 key must be a string, got {raw_code!r}")
        iso2 = raw_code.strip().upper()
        if not _ISO2_RE.match(iso2):
            raise ConfigurationError(f"'{raw_code}' is not a two-letter ISO2 code")
        if iso2 in records:
            raise ConfigurationError("duplicate ISO2 key", iso2)
        if isinstance(raw, CountryMatchingData):
            if raw.iso2 != iso2:
                raise ConfigurationError(f"record is keyed under {iso2} but carries iso2 {raw.iso2}", iso2)
            records[iso2] = raw
        else:
            records[iso2] = CountryMatchingData.from_dict(iso2, raw)
    # ISO2 lexical order is the tie-break everywhere downstream
    return dict(sorted(records.items()))


def _validate(records: Mapping[str, CountryMatchingData]) -> None:
    iso3_owner: dict[str, str] = {}
    canonical_owner: dict[str, set[str]] = {}

    for iso2, data in records.items():
        iso3 = data.iso3.upper()
        if not _ISO3_RE.match(iso3):
            raise ConfigurationError(f"'{data.iso3}' is not a three-letter ISO3 code", iso2)
        if iso3 in iso3_owner:
            raise ConfigurationError(f"ISO3 code {iso3} already used by {iso3_owner[iso3]}", iso2)
        iso3_owner[iso3] = iso2

        key = normalize_place(data.canonical)
        if not key:
            raise ConfigurationError("canonical name normalizes to an empty string", iso2)
        canonical_owner.setdefault(key, set()).add(iso2)

        for hn in data.historical_names:
            if hn.start_year > hn.end_year:
                raise ConfigurationError(
                    f"historical name '{hn.name}' has start year {hn.start_year} after end year {hn.end_year}",
                    iso2,
                )

    # Aliases and patterns must never claim another country's canonical name
    for iso2, data in records.items():
        for kind, values in (("alias", data.aliases), ("pattern", data.patterns)):
            for value in values:
                owners = canonical_owner.get(normalize_place(value), set()) - {iso2}
                if owners:
                    raise ConfigurationError(
                        f"{kind} '{value}' is the canonical name of {', '.join(sorted(owners))}", iso2
                    )


def load_reference_data(path: str | Path | None = None) -> ReferenceDataStore:
    """Load and validate reference data (defaults to the configured path)."""
    return ReferenceDataStore.from_json(path or get_settings().reference.path)


@lru_cache(maxsize=1)
def get_store() -> ReferenceDataStore:
    """Process-wide store, loaded once on first use."""
    return load_reference_data()
