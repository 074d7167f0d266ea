"""
CSV export of ClickUp tasks and task lists.

Records are arbitrary nested dicts. They are flattened into dotted field
paths (``status.color``) and written with a header of all field paths sorted
lexicographically.

Two modes are provided:

- Batch (``records_to_csv`` / ``CsvExporter.export_batch``): the full record
  collection is known, so every row has exactly as many fields as the header.
- Streaming (``StreamingCsvWriter``): records arrive one by one and are never
  buffered. When a record brings new field paths, only the header line of
  the file already written is replaced. Rows written before that keep their
  original width, so the finished file can have rows narrower than its
  header. Rows are not padded afterwards.
"""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

logger = logging.getLogger('clickup_archiver.exporters.csv_exporter')

LIST_SEPARATOR = "; "
_NEEDS_QUOTING = (',', '"', '\n', '\r')


def _to_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(',', ':'), ensure_ascii=False, default=str)


def flatten_record(record: Any, prefix: str = "") -> Dict[str, Any]:
    """
    Extract every field of a record as a dotted-path mapping.

    Nested dicts are expanded into ``parent.child`` keys. Lists are kept as
    values and rendered by ``format_cell``; a top-level scalar or list gets
    the ``value`` / ``array`` key.

    Args:
        record: Record to flatten
        prefix: Dotted path of ``record`` inside its parent

    Returns:
        Mapping of field path to raw value
    """
    fields: Dict[str, Any] = {}

    if record is None:
        return fields

    if isinstance(record, (list, tuple)):
        fields[prefix or "array"] = format_cell(list(record))
        return fields

    if not isinstance(record, dict):
        return {prefix or "value": record}

    for key, value in record.items():
        field_name = f"{prefix}.{key}" if prefix else str(key)

        if value is None:
            fields[field_name] = ""
        elif isinstance(value, dict):
            fields.update(flatten_record(value, field_name))
        else:
            fields[field_name] = value

    return fields


def format_cell(value: Any) -> str:
    """Render a flattened value as cell text."""
    if value is None:
        return ""

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, (str, int, float)):
        return str(value)

    if isinstance(value, (list, tuple)):
        if not value:
            return ""
        if isinstance(value[0], (dict, list, tuple)):
            return _to_json(list(value))
        return LIST_SEPARATOR.join(format_cell(item) for item in value)

    if isinstance(value, dict):
        return _to_json(value)

    return str(value)


def escape_csv(value: Any) -> str:
    """
    Escape a single value for CSV output.

    The value is quoted when it contains a comma, a quote or a line break;
    quotes inside are doubled.
    """
    text = format_cell(value)
    if any(ch in text for ch in _NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def _csv_line(values: Iterable[Any]) -> str:
    return ",".join(escape_csv(value) for value in values) + "\n"


def get_field_names(record: Any) -> Set[str]:
    """Get all field paths of a record."""
    return set(flatten_record(record).keys())


def record_to_csv_row(record: Any, field_order: List[str]) -> str:
    """Render one record as a CSV row (without line break) for a field order."""
    fields = flatten_record(record)
    if not field_order:
        return ""
    return _csv_line(format_cell(fields.get(name)) for name in field_order).rstrip("\n")


def record_to_csv(record: Any) -> str:
    """Render one record as a header plus a single row."""
    fields = flatten_record(record)
    field_order = sorted(fields)
    header = _csv_line(field_order).rstrip("\n")
    row = _csv_line(format_cell(fields[name]) for name in field_order).rstrip("\n")
    return "\n".join([header, row])


def records_to_csv(records: List[Any]) -> str:
    """
    Convert a list of records to CSV text.

    Args:
        records: Records to export

    Returns:
        Header line plus one row per record joined by newlines, or an empty
        string when there are no records
    """
    if not records:
        return ""

    flattened = [flatten_record(record) for record in records]

    all_fields: Set[str] = set()
    for fields in flattened:
        all_fields.update(fields.keys())
    field_order = sorted(all_fields)

    lines = [_csv_line(field_order).rstrip("\n")]
    for fields in flattened:
        lines.append(_csv_line(format_cell(fields.get(name)) for name in field_order).rstrip("\n"))

    return "\n".join(lines)


class StreamingCsvWriter:
    """
    Incremental CSV writer whose header grows as new fields appear.

    Usage::

        writer = StreamingCsvWriter(path)
        for task in tasks:
            writer.observe(task)
        count = writer.finalize()

    The writer owns its schema (sorted field paths) and its output file.
    A crash between a header rewrite and the following row append can leave
    the file with a header that does not match the last row.
    """

    def __init__(self, path: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.logger = logger or logging.getLogger('clickup_archiver.exporters.csv_exporter')
        self.schema: List[str] = []
        self._known_fields: Set[str] = set()
        self._header_bytes = 0
        self.rows_written = 0
        self.header_rewrites = 0
        self._finalized = False

    def observe(self, record: Any) -> None:
        """Write one record, growing the header first if it has new fields."""
        if self._finalized:
            raise RuntimeError(f"StreamingCsvWriter for {self.path} is already finalized")

        fields = flatten_record(record)
        new_fields = set(fields) - self._known_fields

        if self.rows_written == 0:
            self._known_fields.update(fields)
            self.schema = sorted(self._known_fields)
            self._write_header()
        elif new_fields:
            self._known_fields.update(new_fields)
            self.schema = sorted(self._known_fields)
            self._rewrite_header()
            self.logger.debug(
                f"Header of {self.path.name} grew by {len(new_fields)} field(s) "
                f"to {len(self.schema)} columns"
            )

        row = _csv_line(format_cell(fields.get(name)) for name in self.schema)
        with open(self.path, 'a', encoding='utf-8', newline='') as f:
            f.write(row)
        self.rows_written += 1

    def finalize(self) -> int:
        """Close the export session and return the number of rows written."""
        self._finalized = True
        if self.rows_written == 0:
            self.logger.debug(f"No records observed, {self.path.name} not created")
        else:
            self.logger.info(
                f"Wrote {self.rows_written} row(s) with {len(self.schema)} column(s) to {self.path}"
            )
        return self.rows_written

    def _header_line(self) -> bytes:
        return _csv_line(self.schema).encode('utf-8')

    def _write_header(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        header = self._header_line()
        with open(self.path, 'wb') as f:
            f.write(header)
        self._header_bytes = len(header)

    def _rewrite_header(self) -> None:
        """Replace the header line, copying the existing rows unchanged."""
        header = self._header_line()
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'wb') as dst, open(self.path, 'rb') as src:
                dst.write(header)
                src.seek(self._header_bytes)
                shutil.copyfileobj(src, dst)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise
        self._header_bytes = len(header)
        self.header_rewrites += 1


class CsvExporter:
    """Writes CSV files for one export directory and keeps export statistics."""

    def __init__(self, output_dir: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.output_dir = Path(output_dir)
        self.logger = logger or logging.getLogger('clickup_archiver.exporters.csv_exporter')
        self.stats = {
            'files_written': 0,
            'rows_written': 0
        }

    def export_batch(self, records: List[Any], filename: str) -> Optional[Path]:
        """
        Write a whole record collection to ``filename``.

        Args:
            records: Records to export
            filename: File name inside the output directory

        Returns:
            Path written, or None when there was nothing to write
        """
        if not records:
            self.logger.info(f"No records for {filename}, skipping")
            return None

        content = records_to_csv(records)
        path = self.output_dir / filename
        self.output_dir.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8', newline='') as f:
            f.write(content)

        self.stats['files_written'] += 1
        self.stats['rows_written'] += len(records)
        self.logger.info(f"Saved {len(records)} record(s) to {path}")
        return path

    def open_stream(self, filename: str) -> StreamingCsvWriter:
        """Start a streaming export session for ``filename``."""
        return StreamingCsvWriter(self.output_dir / filename, logger=self.logger)

    def close_stream(self, writer: StreamingCsvWriter) -> int:
        """Finalize a streaming session and fold its counts into the stats."""
        count = writer.finalize()
        if count:
            self.stats['files_written'] += 1
            self.stats['rows_written'] += count
        return count


__all__ = [
    'CsvExporter',
    'StreamingCsvWriter',
    'escape_csv',
    'flatten_record',
    'format_cell',
    'get_field_names',
    'record_to_csv',
    'record_to_csv_row',
    'records_to_csv'
]
