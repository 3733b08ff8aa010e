"""
Purpose: Stream record batches to a CSV file with a stable header.
Description: Buffers the first 1000 records to infer the header (sorted union of their
flattened key paths), writes them, then appends each later batch using that locked
header. Fields that first appear after the sample are reported once and left out.
Key Functions/Classes: `StreamingCsvWriter`, `stream_to_file`.

AIDEV-NOTE: Output goes to `<path>.tmp` and is renamed into place only on success.
"""

from __future__ import annotations

import csv
import io
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .constants import INITIAL_BUFFER_SIZE
from .exporter_logging import log_info, log_warning
from .flatten import flatten_record
from .models import ExportResult, Record


Batches = Union[Iterable[Sequence[Record]], Sequence[Record], Record]


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def iter_batches(records: Batches) -> Iterable[List[Record]]:
    """Normalize writer input to an iterable of record lists.

    A mapping is a single record; a list of mappings is one in-memory batch;
    anything else is treated as an iterable of batches.
    """
    if isinstance(records, Mapping):
        yield [dict(records)]
        return
    if isinstance(records, (list, tuple)) and records and all(isinstance(r, Mapping) for r in records):
        yield list(records)
        return
    for batch in records:
        yield [batch] if isinstance(batch, Mapping) else list(batch)


class StreamingCsvWriter:
    """Two-phase CSV writer: buffer a sample, lock the header, then stream.

    The sample closes on a batch boundary: the batch that takes the buffer to
    `sample_size` or beyond is sampled whole, so its keys join the header.
    """

    def __init__(self, path: Union[str, Path], *, sample_size: int = INITIAL_BUFFER_SIZE) -> None:
        self.path = Path(path)
        self.tmp_path = Path(f"{self.path}.tmp")
        self.sample_size = sample_size
        self.headers: Optional[List[str]] = None
        self.record_count = 0
        self.had_truncation = False
        self.schema_drift_detected = False
        self.new_fields: List[str] = []
        self._buffer: List[Record] = []
        self._header_set: frozenset = frozenset()
        self._fh: Optional[io.TextIOWrapper] = None
        self._writer: Optional[csv.DictWriter] = None

    @property
    def is_buffering(self) -> bool:
        return self.headers is None

    def write_batch(self, batch: Sequence[Record]) -> None:
        if not batch:
            return
        if self.is_buffering:
            self._buffer.extend(batch)
            if len(self._buffer) >= self.sample_size:
                self._lock_header_and_write_buffer()
            return

        rows = self._flatten(batch)
        self._detect_drift(rows)
        self._write_rows(rows)

    def finish(self) -> ExportResult:
        """Write any still-buffered records, close the file and move it into place."""
        if self.is_buffering and self._buffer:
            self._lock_header_and_write_buffer()
        if self._fh is not None:
            self._close_handle()
            os.replace(self.tmp_path, self.path)
        return ExportResult(
            record_count=self.record_count,
            had_truncation=self.had_truncation,
            schema_drift_detected=self.schema_drift_detected,
            new_fields=list(self.new_fields),
        )

    def abort(self) -> None:
        """Release the handle and discard the partial file."""
        self._buffer.clear()
        self._close_handle()
        if self.tmp_path.exists():
            self.tmp_path.unlink()

    def _flatten(self, records: Iterable[Record]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for record in records:
            flat, truncated = flatten_record(record)
            if truncated:
                self.had_truncation = True
            rows.append(flat)
        return rows

    def _lock_header_and_write_buffer(self) -> None:
        rows = self._flatten(self._buffer)
        self._buffer = []

        keys = set()
        for row in rows:
            keys.update(row)
        self.headers = sorted(keys)
        self._header_set = frozenset(self.headers)

        self._fh = self.tmp_path.open("w", newline="", encoding="utf-8")
        self._writer = csv.DictWriter(self._fh, fieldnames=self.headers, restval="", extrasaction="ignore")
        self._writer.writeheader()
        self._write_rows(rows)

    def _detect_drift(self, rows: Iterable[Dict[str, Any]]) -> None:
        seen = set(self.new_fields)
        found: List[str] = []
        for row in rows:
            for key in row:
                if key not in self._header_set and key not in seen:
                    seen.add(key)
                    found.append(key)
        if not found:
            return
        self.new_fields.extend(found)
        if not self.schema_drift_detected:
            self.schema_drift_detected = True
            log_warning(f"  ⚠ Schema drift detected: {len(found)} new field(s) found after initial sample")
            log_warning(f"  ⚠ New fields: {', '.join(found)}")
            log_warning("  ⚠ These fields are left out of the CSV to keep columns consistent")

    def _write_rows(self, rows: Iterable[Dict[str, Any]]) -> None:
        assert self._writer is not None
        count = 0
        for row in rows:
            self._writer.writerow({k: _cell(v) for k, v in row.items()})
            count += 1
        self.record_count += count

    def _close_handle(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.flush()
        finally:
            self._fh.close()
            self._fh = None
            self._writer = None


def stream_to_file(
    records: Batches,
    path: Union[str, Path],
    *,
    on_progress: Optional[Callable[[int], None]] = None,
    sample_size: int = INITIAL_BUFFER_SIZE,
) -> ExportResult:
    """Write `records` (batches, or an in-memory list) to a CSV at `path`.

    No file is created when zero records arrive. The file handle is released
    on every exit path; on failure the partial output is removed and the
    error propagates.
    """
    writer = StreamingCsvWriter(path, sample_size=sample_size)
    done = False
    try:
        for batch in iter_batches(records):
            writer.write_batch(batch)
            if on_progress and not writer.is_buffering:
                on_progress(writer.record_count)
        result = writer.finish()
        done = True
    finally:
        if not done:
            writer.abort()

    if result.record_count == 0:
        log_info(f"No data to export to {path}")
    else:
        log_info(f"✓ Exported {result.record_count} records to {path}")
        if result.had_truncation:
            log_info("  ⚠ Note: Some large array fields were truncated (embeddings, tokens, etc.)")
        if result.schema_drift_detected:
            log_info("  ⚠ Note: Schema drift was detected - some fields may be incomplete")
    return result
