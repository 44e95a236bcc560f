"""
Tests for CLI input reading.
"""

from __future__ import annotations

from genealogy_geo.__main__ import _read_inputs
from genealogy_geo.pipeline import UnusableInput, run_batch


class TestReadInputs:
    def test_plain_text(self, tmp_path):
        path = tmp_path / "places.txt"
        path.write_text("Cork, Ireland\n\nFrance\n", encoding="utf-8")
        assert _read_inputs(path) == ["Cork, Ireland", "France"]

    def test_jsonl(self, tmp_path):
        path = tmp_path / "places.jsonl"
        path.write_text('"France"\n{"place": "Prussia", "year": 1850}\n', encoding="utf-8")
        assert _read_inputs(path) == ["France", {"place": "Prussia", "year": 1850}]

    def test_malformed_line_is_kept(self, tmp_path):
        path = tmp_path / "places.jsonl"
        path.write_text('"France"\n{"place": "Cork"\n"Germany"\n', encoding="utf-8")
        rows = _read_inputs(path)
        assert len(rows) == 3
        assert isinstance(rows[1], UnusableInput)
        assert rows[1].original == '{"place": "Cork"'

    def test_malformed_line_does_not_abort_batch(self, tmp_path, matcher):
        path = tmp_path / "places.jsonl"
        path.write_text('"France"\n{"place": "Cork"\n{"place": "Germany", "year": "c. 1900"}\n', encoding="utf-8")
        report = run_batch(_read_inputs(path), matcher=matcher)
        assert [r.iso2 for r in report.results] == ["FR", None, "DE"]
        assert [u.original for u in report.unresolved] == ['{"place": "Cork"']
