"""
Run configuration schema.

Frozen dataclasses parsed from the YAML run configuration by
``fleet_config.loader``.  Nothing here reads files.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ReportQuery:
    """The fixed per-account report query."""

    select: tuple[str, ...]
    report: str
    where: str | None = None
    during: str | None = None

    def to_awql(self) -> str:
        """Render as ``SELECT .. FROM .. [WHERE ..] [DURING ..]``."""
        parts = [f"SELECT {', '.join(self.select)}", f"FROM {self.report}"]
        if self.where:
            parts.append(f"WHERE {self.where}")
        if self.during:
            parts.append(f"DURING {self.during}")
        return " ".join(parts)


@dataclass(frozen=True)
class StorageLayout:
    """Where the ledger and report regions live."""

    workbook_path: Path
    ledger_sheet: str = "_remoteStorage"
    report_sheet: str = "Report"


@dataclass(frozen=True)
class RunConfig:
    """Everything one invocation needs besides its collaborators."""

    query: ReportQuery
    storage: StorageLayout
    parallel_execution_limit: int = 50
    retention_days: int = 30
