"""
fleet_config -- single public entrypoint for run configuration.

Responsibility:
    ``get_active_config()`` is the only way components obtain configuration.
    There are no environment variables; the YAML file shipped under
    ``fleet_config/sets/`` is the default and a different file may be named
    explicitly by the entry script.

Failure modes:
    - ``FileNotFoundError`` -- the named configuration file does not exist.
    - ``KeyError`` / ``ValueError`` -- structural validation failures.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fleet_config.loader import load_yaml_file, parse_run_config
from fleet_config.schema import ReportQuery, RunConfig, StorageLayout

_logger = logging.getLogger("fleet_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "ReportQuery",
    "RunConfig",
    "StorageLayout",
    "get_active_config",
]


def get_active_config(config_path: Path | str | None = None) -> RunConfig:
    """Load and validate the run configuration.

    A relative ``storage.workbook_path`` resolves against the current
    working directory for the packaged default, and against the file's own
    directory for an explicitly named file.
    """
    if config_path is None:
        path = _DEFAULT_CONFIG_FILE
        base_dir = Path.cwd()
    else:
        path = Path(config_path)
        base_dir = path.resolve().parent

    config = parse_run_config(load_yaml_file(path), base_dir)

    _logger.info(
        "FLEET_CONFIG_TRACE",
        extra={
            "config_path": str(path),
            "workbook_path": str(config.storage.workbook_path),
            "parallel_execution_limit": config.parallel_execution_limit,
            "retention_days": config.retention_days,
            "query": config.query.to_awql(),
        },
    )
    return config
