"""
Purpose: Tests for the streaming CSV writer.
Description: Header locking after the sample window, schema drift handling, the short-input
path, empty input, cell formatting and cleanup when the input fails midway.
Key Tests: test_drift_after_sample_is_dropped, test_small_input_single_write, test_failure_leaves_no_file.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import List

import pytest

import exporter.csv_stream as csv_stream
from exporter.csv_stream import StreamingCsvWriter, stream_to_file


def _read(path: Path):
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        return reader.fieldnames, list(reader)


def _chunks(records, size):
    for i in range(0, len(records), size):
        yield records[i:i + size]


def test_drift_after_sample_is_dropped(tmp_path):
    records = [{"x": i, "y": f"v{i}"} for i in range(1000)]
    records += [{"x": i, "y": f"v{i}", "z": "late"} for i in range(1000, 1500)]
    out = tmp_path / "out.csv"

    result = stream_to_file(_chunks(records, 250), out)

    header, rows = _read(out)
    assert header == ["x", "y"]
    assert len(rows) == 1500
    assert all("z" not in row for row in rows)
    assert rows[1499] == {"x": "1499", "y": "v1499"}
    assert result.record_count == 1500
    assert result.schema_drift_detected is True
    assert result.new_fields == ["z"]
    assert result.had_truncation is False


def test_small_input_single_write(tmp_path):
    records = [{"b": i, "a": {"n": i}} for i in range(10)]
    records[4]["extra"] = "only here"
    out = tmp_path / "small.csv"

    result = stream_to_file([records[:3], records[3:]], out)

    header, rows = _read(out)
    assert header == ["a.n", "b", "extra"]
    assert len(rows) == 10
    assert rows[4]["extra"] == "only here"
    assert rows[0]["extra"] == ""
    assert result.record_count == 10
    assert result.schema_drift_detected is False


def test_header_row_written_once(tmp_path):
    records = [{"k": i} for i in range(2300)]
    out = tmp_path / "big.csv"
    stream_to_file(_chunks(records, 1000), out)
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines.count("k") == 1
    assert len(lines) == 2301


def test_empty_input_writes_nothing(tmp_path):
    out = tmp_path / "none.csv"
    result = stream_to_file(iter([[], []]), out)
    assert result.record_count == 0
    assert not out.exists()
    assert not Path(f"{out}.tmp").exists()


def test_in_memory_record_list(tmp_path):
    out = tmp_path / "list.csv"
    result = stream_to_file([{"a": 1}, {"a": 2, "b": [1, 2]}], out)
    header, rows = _read(out)
    assert header == ["a", "b"]
    assert rows[1]["b"] == "[1,2]"
    assert result.record_count == 2


def test_cell_formatting_and_quoting(tmp_path):
    out = tmp_path / "cells.csv"
    stream_to_file([[{"flag": True, "none": None, "text": 'say "hi", ok'}]], out)
    header, rows = _read(out)
    assert rows == [{"flag": "true", "none": "", "text": 'say "hi", ok'}]
    raw = out.read_text(encoding="utf-8")
    assert '"say ""hi"", ok"' in raw


def test_truncation_flag(tmp_path):
    out = tmp_path / "trunc.csv"
    result = stream_to_file([[{"emb": list(range(2000))}]], out)
    _, rows = _read(out)
    assert rows[0]["emb"] == "[Array with 2000 items - truncated for export]"
    assert result.had_truncation is True


def test_drift_warning_logged_once(tmp_path, monkeypatch):
    warnings: List[str] = []
    monkeypatch.setattr(csv_stream, "log_warning", warnings.append)
    batches = [
        [{"a": 1}] * 4,
        [{"a": 2, "z": 1}],
        [{"a": 3, "q": 1, "z": 2}],
    ]
    result = stream_to_file(batches, tmp_path / "drift.csv", sample_size=4)
    assert sum("Schema drift detected" in w for w in warnings) == 1
    assert result.new_fields == ["z", "q"]
    assert result.record_count == 6


def test_failure_leaves_no_file(tmp_path):
    out = tmp_path / "broken.csv"

    def batches():
        yield [{"a": i} for i in range(1200)]
        raise RuntimeError("upstream died")

    with pytest.raises(RuntimeError):
        stream_to_file(batches(), out)
    assert not out.exists()
    assert not Path(f"{out}.tmp").exists()


def test_writer_buffers_until_sample_size(tmp_path):
    writer = StreamingCsvWriter(tmp_path / "w.csv", sample_size=3)
    writer.write_batch([{"a": 1}, {"a": 2}])
    assert writer.is_buffering
    assert not writer.tmp_path.exists()
    writer.write_batch([{"a": 3}])
    assert writer.headers == ["a"]
    assert writer.tmp_path.exists()
    result = writer.finish()
    assert result.record_count == 3
    assert (tmp_path / "w.csv").exists()
    assert not writer.tmp_path.exists()


def test_sample_closes_on_batch_boundary(tmp_path):
    records = [{"x": i, "y": i} for i in range(1000)]
    records += [{"x": i, "y": i, "z": i} for i in range(1000, 1500)]
    out = tmp_path / "boundary.csv"

    # 600 + 600 crosses the sample size inside the second batch, which already carries "z".
    result = stream_to_file(_chunks(records, 600), out)

    header, rows = _read(out)
    assert header == ["x", "y", "z"]
    assert result.schema_drift_detected is False
    assert len(rows) == 1500
