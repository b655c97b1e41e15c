"""
fleet_batch.tasks -- Collaborator protocols and the static account directory.
"""

from fleet_batch.tasks.base import (
    AccountDirectory,
    FetchAdapter,
    ReportSink,
    ReportWriteSummary,
    StaticAccountDirectory,
)

__all__ = [
    "AccountDirectory",
    "FetchAdapter",
    "ReportSink",
    "ReportWriteSummary",
    "StaticAccountDirectory",
]
