"""
Purpose: Braintrust CSV exporter.
Description: Retrying, cursor-paginated fetching of experiment and dataset records
streamed to CSV files with a stable, drift-aware header.
Key Functions/Classes: `export_project`, `ProjectExporter`, `fetch_pages`, `stream_to_file`, `with_retry`.
"""

from .csv_stream import stream_to_file
from .orchestrator import ProjectExporter, export_project, sanitize_filename
from .pagination import fetch_pages
from .rate_limiter import with_retry

__all__ = [
    "ProjectExporter",
    "export_project",
    "fetch_pages",
    "sanitize_filename",
    "stream_to_file",
    "with_retry",
]
