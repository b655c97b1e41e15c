"""
Configuration Loader (``fleet_config.loader``).

Responsibility
--------------
Loads the YAML run configuration and parses it into the frozen dataclasses
of ``fleet_config.schema``.  Runtime callers go through
``fleet_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from fleet_config.schema import ReportQuery, RunConfig, StorageLayout

RESERVED_FIELDS = frozenset({"Timestamp"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_query(data: dict[str, Any]) -> ReportQuery:
    """
    Parse the ``query`` section.

    Raises:
        KeyError: if ``select`` or ``from`` is missing.
        ValueError: if the select list is empty or names a reserved field.
    """
    select = tuple(str(f) for f in data["select"] or ())
    if not select:
        raise ValueError("query.select must name at least one field")
    reserved = RESERVED_FIELDS.intersection(select)
    if reserved:
        raise ValueError(
            f"query.select may not contain reserved fields: {sorted(reserved)}"
        )
    if len(set(select)) != len(select):
        raise ValueError(f"query.select contains duplicate fields: {select}")
    return ReportQuery(
        select=select,
        report=str(data["from"]),
        where=data.get("where"),
        during=data.get("during"),
    )


def parse_storage(data: dict[str, Any], base_dir: Path) -> StorageLayout:
    """Parse the ``storage`` section; a relative workbook path is taken from ``base_dir``."""
    workbook = Path(data["workbook_path"])
    if not workbook.is_absolute():
        workbook = base_dir / workbook
    ledger_sheet = str(data.get("ledger_sheet", "_remoteStorage"))
    report_sheet = str(data.get("report_sheet", "Report"))
    if ledger_sheet == report_sheet:
        raise ValueError(
            f"ledger and report must live on separate sheets, got {ledger_sheet!r}"
        )
    return StorageLayout(
        workbook_path=workbook,
        ledger_sheet=ledger_sheet,
        report_sheet=report_sheet,
    )


def parse_run_config(data: dict[str, Any], base_dir: Path) -> RunConfig:
    """
    Parse a complete run configuration.

    Raises:
        KeyError: if a required section is missing.
        ValueError: if the parallel limit is < 1 or retention is negative.
    """
    limit = int(data.get("parallel_execution_limit", 50))
    if limit < 1:
        raise ValueError(f"parallel_execution_limit must be >= 1, got {limit}")
    retention = int(data.get("retention_days", 30))
    if retention < 0:
        raise ValueError(f"retention_days must be >= 0, got {retention}")
    return RunConfig(
        query=parse_query(data["query"]),
        storage=parse_storage(data["storage"], base_dir),
        parallel_execution_limit=limit,
        retention_days=retention,
    )
