"""
Tabular data loaders.

Provides:
- load_records for CSV/TSV/Excel sources with extension-based detection
- CSV and Excel readers with row, column and criteria lookups
- Excel writer for data exports and colour-coded test results
"""

from workerdata.loaders.base import (
    ColumnNotFoundError,
    DataSourceError,
    LoaderOptions,
    Record,
    SheetNotFoundError,
    SourceType,
    detect_source_type,
    load_records,
)

__all__ = [
    "ColumnNotFoundError",
    "DataSourceError",
    "LoaderOptions",
    "Record",
    "SheetNotFoundError",
    "SourceType",
    "detect_source_type",
    "load_records",
]
