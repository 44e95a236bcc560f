from __future__ import annotations

import argparse
import json
import sys
from collections import defaultdict
from pathlib import Path

from genealogy_geo.errors import ConfigurationError
from genealogy_geo.matcher import CountryMatcher
from genealogy_geo.models import PlaceContext
from genealogy_geo.reference import ReferenceDataStore, load_reference_data


def _read_jsonl(path: Path) -> list[dict]:
    rows: list[dict] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                rows.append(json.loads(line))
    return rows


def shared_surfaces(store: ReferenceDataStore) -> dict[str, list[str]]:
    """Aliases and patterns claimed by more than one country (legal, but ambiguous)."""
    owners: dict[str, set[str]] = defaultdict(set)
    for s in store.pattern_surfaces + store.name_surfaces:
        if s.kind in ("alias", "pattern"):
            owners[s.key].add(s.iso2)
    return {key: sorted(isos) for key, isos in sorted(owners.items()) if len(isos) > 1}


def probe(store: ReferenceDataStore, probe_file: Path) -> list[str]:
    """
    Run expected matches from a JSONL file of
    {"place": ..., "year": ..., "expected": "DE"} rows; return failures.
    """
    matcher = CountryMatcher(store=store)
    failures: list[str] = []
    for row in _read_jsonl(probe_file):
        context = PlaceContext(year=row["year"]) if row.get("year") is not None else None
        result = matcher.match(row["place"], context)
        if result.iso2 != row.get("expected"):
            failures.append(
                f"{row['place']!r}: expected {row.get('expected')}, got {result.iso2} "
                f"({result.confidence:.2f} {result.method.value if result.method else 'unmatched'})"
            )
    return failures


def main() -> None:
    parser = argparse.ArgumentParser(description="Validate country matching reference data.")
    parser.add_argument("--data", default=None, help="Reference JSON (defaults to COUNTRY_DATA_PATH / bundled)")
    parser.add_argument("--probe", default=None, help="JSONL of expected matches to check")
    args = parser.parse_args()

    try:
        store = load_reference_data(args.data)
    except ConfigurationError as e:
        print(f"Invalid reference data: {e}", file=sys.stderr)
        sys.exit(1)

    stats = store.stats()
    print(
        f"OK: {stats['countries']} countries, {stats['aliases']} aliases, {stats['patterns']} patterns, "
        f"{stats['regions']} regions, {stats['historical_names']} historical names"
    )

    shared = shared_surfaces(store)
    if shared:
        print(f"{len(shared)} surface forms shared by several countries:")
        for key, isos in shared.items():
            print(f"  - {key}: {', '.join(isos)}")

    if args.probe:
        failures = probe(store, Path(args.probe))
        for line in failures:
            print(f"  FAIL {line}")
        if failures:
            sys.exit(1)
        print("All probes matched")


if __name__ == "__main__":
    main()
