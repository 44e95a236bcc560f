"""
Tests for the batch runner: input coercion, chunked matching and the merged report.
"""

from __future__ import annotations

import pytest

from genealogy_geo.models import PlaceContext, PlaceInput
from genealogy_geo.pipeline import UnusableInput, coerce_context, coerce_input, run_batch

PLACES = [
    "France",
    {"place": "Prussia", "year": 1850, "individual_id": "I1"},
    ("Cork", {"year": 1880}),
    {"place": "xyzzyplace123", "context": {"individual_id": "I2", "event_type": "death"}},
    "",
    PlaceInput(place="British Isles"),
    "Dublin, Ohio",
]


class TestCoerceInput:
    def test_string(self):
        assert coerce_input("Cork") == PlaceInput(place="Cork")

    def test_place_input_passthrough(self):
        item = PlaceInput(place="Cork")
        assert coerce_input(item) is item

    def test_tuple(self):
        item = coerce_input(("Cork", {"year": 1880}))
        assert item.context.year == 1880

    def test_tuple_with_context_model(self):
        item = coerce_input(("Cork", PlaceContext(year=1880)))
        assert item.context.year == 1880

    def test_bare_tuple(self):
        assert coerce_input(("Cork",)).context is None

    def test_nested_context(self):
        item = coerce_input({"place": "Cork", "context": {"parent_birth": "Kerry"}})
        assert item.context.parent_birth == "Kerry"

    def test_flat_context(self):
        item = coerce_input({"place": "Cork", "year": 1880, "event_type": "birth"})
        assert item.context.year == 1880
        assert item.context.event_type == "birth"

    def test_flat_without_context(self):
        assert coerce_input({"place": "Cork"}).context is None

    def test_unsupported(self):
        with pytest.raises(TypeError):
            coerce_input(42)

    def test_missing_place_raises(self):
        with pytest.raises(ValueError):
            coerce_input({"place": None})

    # ── Unusable context fields ──

    def test_bad_flat_year_is_dropped(self):
        item = coerce_input({"place": "Cork", "year": "abt 1850", "individual_id": "I1"})
        assert item.place == "Cork"
        assert item.context.year is None
        assert item.context.individual_id == "I1"

    def test_bad_nested_year_is_dropped(self):
        item = coerce_input({"place": "Cork", "context": {"year": "1850?", "parent_birth": "Kerry"}})
        assert item.context.year is None
        assert item.context.parent_birth == "Kerry"

    def test_bad_tuple_context_is_dropped(self):
        item = coerce_input(("Cork", {"year": [1850]}))
        assert item.context == PlaceContext()

    def test_non_mapping_context_is_ignored(self):
        assert coerce_input({"place": "Cork", "context": "born 1850"}).context is None

    def test_context_model_passthrough(self):
        ctx = PlaceContext(year=1880)
        assert coerce_context(ctx) is ctx


class TestRunBatch:
    def test_one_result_per_input_in_order(self, matcher):
        report = run_batch(PLACES, matcher=matcher, workers=2, chunk_size=2)
        assert len(report.places) == len(report.results) == len(PLACES)
        assert [p.original for p in report.places] == [
            "France", "Prussia", "Cork", "xyzzyplace123", "", "British Isles", "Dublin, Ohio",
        ]
        assert [r.iso2 for r in report.results] == ["FR", "DE", "IE", None, None, "GB", "US"]

    def test_metadata(self, matcher):
        report = run_batch(PLACES, matcher=matcher, workers=2, chunk_size=3)
        meta = report.metadata
        assert meta.total_locations == len(PLACES)
        assert meta.matched.total() == meta.methods.total() == len(PLACES)
        assert meta.methods.historical == 1
        assert meta.methods.unmatched == 2

    def test_unresolved_report(self, matcher):
        report = run_batch(PLACES, matcher=matcher, workers=2, chunk_size=2)
        assert [u.original for u in report.unresolved] == ["xyzzyplace123", ""]
        assert report.unresolved[0].individual_id == "I2"
        assert report.unresolved[0].event_type == "death"

    def test_chunking_does_not_change_the_report(self, matcher):
        single = run_batch(PLACES, matcher=matcher, workers=1, chunk_size=100)
        split = run_batch(PLACES, matcher=matcher, workers=4, chunk_size=1)
        assert single == split

    # ── Malformed items ──

    def test_bad_year_does_not_abort_batch(self, matcher):
        report = run_batch(
            ["France", {"place": "Cork, Ireland", "year": "abt 1850"}, "Germany"],
            matcher=matcher,
        )
        assert len(report.results) == 3
        assert [r.iso2 for r in report.results] == ["FR", "IE", "DE"]
        assert report.places[1].original == "Cork, Ireland"

    def test_missing_place_is_unmatched(self, matcher):
        bad = {"place": None}
        report = run_batch(["France", bad, "Germany"], matcher=matcher, workers=2, chunk_size=1)
        assert len(report.places) == len(report.results) == 3
        assert [r.iso2 for r in report.results] == ["FR", None, "DE"]
        assert report.results[1].details.original_input == str(bad)
        assert report.results[1].confidence == 0.0
        assert [u.original for u in report.unresolved] == [str(bad)]
        assert report.metadata.methods.unmatched == 1

    def test_unsupported_shape_is_unmatched(self, matcher):
        report = run_batch(["France", 42], matcher=matcher)
        assert [r.iso2 for r in report.results] == ["FR", None]
        assert report.places[1].original == "42"

    def test_unreadable_input_is_unmatched(self, matcher):
        line = '{"place": "Cork"'
        report = run_batch([UnusableInput(original=line, reason="invalid JSON"), "France"], matcher=matcher)
        assert [r.iso2 for r in report.results] == [None, "FR"]
        assert report.unresolved[0].original == line

    def test_empty(self, matcher):
        report = run_batch([], matcher=matcher)
        assert report.places == []
        assert report.metadata.total_locations == 0
        assert report.unresolved == []
