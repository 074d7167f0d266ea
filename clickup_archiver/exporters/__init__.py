"""Export package writing the ClickUp archive to the local filesystem.

Package Structure:
- markdown_exporter: Writes doc forests as directories of markdown pages
- csv_exporter: Flattens tasks and task lists into CSV (batch and streaming)

Output layout per space:
- <space>/<doc>/<page>.md and <space>/<doc>/<parent page>/<sub page>.md
- <space>/tasks.csv (streamed, header grows as new fields appear)
- <space>/task_lists.csv (written in one batch)
"""

from .csv_exporter import (
    CsvExporter,
    StreamingCsvWriter,
    escape_csv,
    flatten_record,
    format_cell,
    get_field_names,
    record_to_csv,
    record_to_csv_row,
    records_to_csv
)
from .markdown_exporter import MarkdownExporter, sanitize_filename

__all__ = [
    'CsvExporter',
    'MarkdownExporter',
    'StreamingCsvWriter',
    'escape_csv',
    'flatten_record',
    'format_cell',
    'get_field_names',
    'record_to_csv',
    'record_to_csv_row',
    'records_to_csv',
    'sanitize_filename'
]
