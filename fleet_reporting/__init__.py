"""
fleet_reporting -- the report surface collaborators of the batch.

``fetch`` runs and projects the per-account query; ``writer`` appends the
projected rows to the report sheet and purges rows past retention.
"""

from fleet_reporting.fetch import (
    CsvExportQueryRunner,
    QueryRunner,
    ReportQueryFetchAdapter,
    project_row,
)
from fleet_reporting.writer import TIMESTAMP_COLUMN, ReportWriter, expired_row_buckets

__all__ = [
    "CsvExportQueryRunner",
    "QueryRunner",
    "ReportQueryFetchAdapter",
    "ReportWriter",
    "TIMESTAMP_COLUMN",
    "expired_row_buckets",
    "project_row",
]
