"""CLI entrypoint for genealogy_geo."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from genealogy_geo.logging_config import setup_logging
from genealogy_geo.models import MatchResult, PlaceContext

logger = logging.getLogger(__name__)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="genealogy-geo")
    parser.add_argument("--data", default=None, help="Reference data JSON (defaults to the bundled set)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging (shows why places were matched)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve")

    match_parser = sub.add_parser("match")
    match_parser.add_argument("place")
    match_parser.add_argument("--year", type=int, default=None)
    match_parser.add_argument("--parent-birth", default=None)
    match_parser.add_argument("--spouse-birth", default=None)

    batch_parser = sub.add_parser("batch")
    batch_parser.add_argument("input", help="JSONL (one object per line) or plain text (one place per line)")
    batch_parser.add_argument("--output", default=None, help="Write the full JSON report here")
    batch_parser.add_argument("--workers", type=int, default=None)
    batch_parser.add_argument("--chunk-size", type=int, default=None)

    try_parser = sub.add_parser("try")
    try_parser.add_argument("place", nargs="?")
    try_parser.add_argument("--year", type=int, default=None)

    args = parser.parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)

    if args.command == "serve":
        _serve()
    elif args.command == "match":
        context = PlaceContext(year=args.year, parent_birth=args.parent_birth, spouse_birth=args.spouse_birth)
        _match_once(args.data, args.place, context)
    elif args.command == "batch":
        _batch(args.data, Path(args.input), args.output, args.workers, args.chunk_size)
    elif args.command == "try":
        _try_mode(args.data, args.place, args.year)


def _build_matcher(data_path: Optional[str]):
    from genealogy_geo.matcher import CountryMatcher
    from genealogy_geo.reference import get_store, load_reference_data

    store = load_reference_data(data_path) if data_path else get_store()
    return CountryMatcher(store=store)


def _serve() -> None:
    import uvicorn

    from genealogy_geo.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "genealogy_geo.api:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=(settings.env == "development"),
        log_level=settings.log_level.lower(),
    )


def _match_once(data_path: Optional[str], place: str, context: PlaceContext) -> None:
    matcher = _build_matcher(data_path)
    result = matcher.match(place, context)
    print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))


def _read_inputs(path: Path) -> list:
    from genealogy_geo.pipeline import UnusableInput

    rows: list = []
    with path.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            if path.suffix in (".jsonl", ".ndjson"):
                try:
                    rows.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning("%s:%d is not valid JSON (%s)", path, lineno, e.msg)
                    rows.append(UnusableInput(original=line, reason=f"invalid JSON: {e.msg}"))
            else:
                rows.append(line)
    return rows


def _batch(
    data_path: Optional[str],
    input_path: Path,
    output: Optional[str],
    workers: Optional[int],
    chunk_size: Optional[int],
) -> None:
    from genealogy_geo.aggregate import summary_lines
    from genealogy_geo.config import get_settings
    from genealogy_geo.pipeline import run_batch

    matcher = _build_matcher(data_path)
    report = run_batch(_read_inputs(input_path), matcher=matcher, workers=workers, chunk_size=chunk_size)

    if output:
        Path(output).write_text(report.model_dump_json(indent=2), encoding="utf-8")
        print(f"Wrote report for {report.metadata.total_locations} places to {output}")

    print("\n".join(summary_lines(report.metadata)))

    sample = get_settings().batch.report_sample
    if report.unresolved:
        print(f"\nUnresolved locations (first {min(sample, len(report.unresolved))}):")
        for loc in report.unresolved[:sample]:
            guess = f" (best guess {loc.best_guess.iso2} {loc.best_guess.confidence:.0%})" if loc.best_guess else ""
            who = f" [{loc.individual_id} {loc.event_type or ''}]".rstrip() if loc.individual_id else ""
            print(f"  - {loc.original}{who}{guess}")


def _try_mode(data_path: Optional[str], initial_place: Optional[str], year: Optional[int]) -> None:
    matcher = _build_matcher(data_path)

    def run_once(place: str, yr: Optional[int]) -> None:
        _print_cli_result(place, matcher.match(place, PlaceContext(year=yr)))

    if initial_place:
        run_once(initial_place, year)
        return

    print("Country Matcher Interactive")
    print("Enter a place, then an optional year. Type 'quit' to exit.")

    while True:
        place = input("place> ").strip()
        if not place:
            continue
        if place.lower() in {"quit", "exit", "q"}:
            break
        raw_year = input("year> ").strip()
        try:
            yr = int(raw_year) if raw_year else None
        except ValueError:
            print(f"Ignoring year {raw_year!r} (not a number)", file=sys.stderr)
            yr = None
        run_once(place, yr)


def _print_cli_result(place: str, result: MatchResult) -> None:
    print("\n" + "-" * 72)
    print(f"Place:       {place}")
    if result.details:
        print(f"Normalized:  {result.details.normalized_input}")
    if not result.is_resolved:
        print(f"Country:     (unresolved, best score {result.confidence:.0%})")
    else:
        print(f"Country:     {result.iso2}")
        print(f"Confidence:  {result.confidence:.0%} ({result.band.value})")
        print(f"Method:      {result.method.value}")
        if result.details and result.details.matched_value:
            print(f"Matched on:  {result.details.matched_value}")
        if result.details and result.details.historical_year:
            print(f"Year:        {result.details.historical_year}")

    if result.details and result.details.alternatives:
        print("Alternatives:")
        for alt in result.details.alternatives[:5]:
            print(f"  - {alt.iso2} {alt.confidence:.0%}: {alt.reason}")


if __name__ == "__main__":
    main()
