#!/usr/bin/env python3
"""
Run one invocation of the cross-account report batch.

Processes at most one batch (the parallel execution limit) of accounts that
have not yet been processed today, appends their report rows to the
workbook's Report sheet, and records them in the _remoteStorage ledger
sheet.  Schedule this script (e.g. hourly); each invocation resumes where
the previous one stopped.

Usage:
    python3 scripts/run_fleet_report.py --accounts accounts.yaml --exports exports/ [options]

Examples:
    # Default configuration, accounts from a YAML list, per-account CSV exports
    python3 scripts/run_fleet_report.py --accounts accounts.yaml --exports exports/

    # Explicit config file and a smaller batch
    python3 scripts/run_fleet_report.py --config report.yaml \\
        --accounts accounts.csv --exports exports/ --ceiling 10
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run one resumable batch of the cross-account report.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Run configuration YAML (default: packaged fleet_config/sets/default.yaml).",
    )
    parser.add_argument(
        "--workbook",
        type=Path,
        default=None,
        help="Override storage.workbook_path from the configuration.",
    )
    parser.add_argument(
        "--accounts",
        required=True,
        type=Path,
        help="Account directory file (YAML list or CSV with a customer_id column).",
    )
    parser.add_argument(
        "--exports",
        required=True,
        type=Path,
        help="Directory of per-account report exports named <customer_id>.csv.",
    )
    parser.add_argument(
        "--ceiling",
        type=int,
        default=None,
        help="Override parallel_execution_limit from the configuration.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log per-account selection decisions (DEBUG).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    import yaml

    from fleet_batch.orchestrator import ReportRunOrchestrator
    from fleet_batch.tasks.base import StaticAccountDirectory
    from fleet_config import get_active_config
    from fleet_kernel.exceptions import RunAlreadyInProgressError, StorageFaultError
    from fleet_kernel.logging_config import configure_logging, get_logger
    from fleet_reporting.fetch import CsvExportQueryRunner

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    logger = get_logger("scripts.run_fleet_report")

    try:
        config = get_active_config(args.config)
    except (OSError, KeyError, ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    if args.workbook is not None:
        config = dataclasses.replace(
            config,
            storage=dataclasses.replace(config.storage, workbook_path=args.workbook),
        )
    if args.ceiling is not None:
        if args.ceiling < 1:
            print("ERROR: --ceiling must be >= 1", file=sys.stderr)
            return 1
        config = dataclasses.replace(config, parallel_execution_limit=args.ceiling)

    if not args.exports.is_dir():
        print(f"ERROR: Export directory not found: {args.exports}", file=sys.stderr)
        return 1

    try:
        directory = StaticAccountDirectory.from_file(args.accounts)
    except (OSError, KeyError, ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Failed to read accounts: {e}", file=sys.stderr)
        return 1

    try:
        orchestrator = ReportRunOrchestrator.from_config(
            config,
            directory=directory,
            query_runner=CsvExportQueryRunner(args.exports),
        )
        outcome = orchestrator.run()
    except RunAlreadyInProgressError:
        logger.error("run_rejected_lock_held", exc_info=True)
        return 1
    except StorageFaultError:
        logger.error("run_aborted_storage_fault", exc_info=True)
        return 1

    print(
        f"{outcome.day_key}: {outcome.status.value} "
        f"(batch={len(outcome.batch)}, succeeded={len(outcome.succeeded)}, "
        f"empty={len(outcome.empty)}, failed={len(outcome.failed)}, "
        f"deferred={outcome.deferred_count}, rows_written={outcome.rows_written}, "
        f"rows_purged={outcome.rows_purged})"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
