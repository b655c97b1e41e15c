"""
Tests for scripts/run_fleet_report.py -- the scheduled entry point.
"""

import importlib.util
import json
import sys
from pathlib import Path

import openpyxl
import pytest
import yaml

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "run_fleet_report.py"


@pytest.fixture(scope="module")
def script():
    spec = importlib.util.spec_from_file_location("run_fleet_report", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    sys.modules["run_fleet_report"] = module
    spec.loader.exec_module(module)
    yield module
    sys.modules.pop("run_fleet_report", None)


@pytest.fixture
def workspace(tmp_path):
    exports = tmp_path / "exports"
    exports.mkdir()
    for cid in ("111", "222", "333"):
        (exports / f"{cid}.csv").write_text(
            "ExternalCustomerId,AccountDescriptiveName,Clicks,Impressions\n"
            f"{cid},Account {cid},5,50\n",
            encoding="utf-8",
        )
    accounts = tmp_path / "accounts.yaml"
    accounts.write_text(yaml.safe_dump({"accounts": ["111", "222", "333"]}))
    return tmp_path


def _args(workspace, *extra):
    return [
        "--accounts", str(workspace / "accounts.yaml"),
        "--exports", str(workspace / "exports"),
        "--workbook", str(workspace / "report.xlsx"),
        *extra,
    ]


class TestMain:
    def test_one_batch_per_invocation(self, script, workspace, capsys):
        assert script.main(_args(workspace, "--ceiling", "2")) == 0
        out = capsys.readouterr().out
        assert "completed" in out
        assert "succeeded=2" in out
        assert "deferred=1" in out

        wb = openpyxl.load_workbook(workspace / "report.xlsx")
        ledger = [list(r) for r in wb["_remoteStorage"].iter_rows(values_only=True)]
        assert len(json.loads(ledger[0][1])) == 2
        assert wb["Report"].max_row == 3

        assert script.main(_args(workspace, "--ceiling", "2")) == 0
        assert script.main(_args(workspace, "--ceiling", "2")) == 0
        assert "nothing_to_do" in capsys.readouterr().out.splitlines()[-1]

    def test_csv_account_directory(self, script, workspace, capsys):
        accounts = workspace / "accounts.csv"
        accounts.write_text("customer_id,name\n111,First\n\n222,Second\n")
        args = _args(workspace)
        args[1] = str(accounts)
        assert script.main(args) == 0
        assert "batch=2" in capsys.readouterr().out

    def test_missing_export_is_empty_not_failure(self, script, workspace, capsys):
        (workspace / "exports" / "333.csv").unlink()
        assert script.main(_args(workspace)) == 0
        out = capsys.readouterr().out
        assert "empty=1" in out
        assert "failed=0" in out

    def test_explicit_config_file(self, script, workspace, capsys):
        config = workspace / "run.yaml"
        config.write_text(yaml.safe_dump({
            "parallel_execution_limit": 1,
            "query": {
                "select": ["ExternalCustomerId", "Clicks"],
                "from": "ACCOUNT_PERFORMANCE_REPORT",
            },
            "storage": {"workbook_path": "from_config.xlsx"},
        }))
        args = [
            "--config", str(config),
            "--accounts", str(workspace / "accounts.yaml"),
            "--exports", str(workspace / "exports"),
        ]
        assert script.main(args) == 0
        assert "batch=1" in capsys.readouterr().out
        assert (workspace / "from_config.xlsx").exists()

    def test_lock_held_exits_nonzero(self, script, workspace):
        (workspace / "report.xlsx.lock").write_text("1")
        assert script.main(_args(workspace)) == 1

    def test_corrupt_workbook_exits_nonzero(self, script, workspace):
        (workspace / "report.xlsx").write_bytes(b"not a workbook")
        assert script.main(_args(workspace)) == 1

    def test_missing_export_dir(self, script, workspace, capsys):
        args = _args(workspace)
        args[3] = str(workspace / "missing")
        assert script.main(args) == 1
        assert "Export directory not found" in capsys.readouterr().err

    def test_bad_ceiling(self, script, workspace, capsys):
        assert script.main(_args(workspace, "--ceiling", "0")) == 1
        assert "--ceiling" in capsys.readouterr().err

    def test_missing_accounts_file(self, script, workspace, capsys):
        args = _args(workspace)
        args[1] = str(workspace / "nope.yaml")
        assert script.main(args) == 1
        assert "Failed to read accounts" in capsys.readouterr().err

    def test_missing_config_file(self, script, workspace, capsys):
        args = ["--config", str(workspace / "nope.yaml"), *_args(workspace)]
        assert script.main(args) == 1
        assert "Failed to load config" in capsys.readouterr().err

    def test_required_arguments(self, script):
        with pytest.raises(SystemExit):
            script.main([])
