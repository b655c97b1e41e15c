"""
Tests for fleet_store.tabular -- TabularStore backends.

Validates the region primitives (read_all, append, extend, overwrite,
delete, clear, freeze_header) on the in-memory and openpyxl backends,
workbook durability across reloads, storage faults, and the run lock.
"""

import openpyxl
import pytest

from fleet_kernel.exceptions import RunAlreadyInProgressError, StorageFaultError
from fleet_store.tabular import (
    InMemoryTabularStore,
    TabularStore,
    XlsxTabularStore,
    XlsxWorkbook,
)


@pytest.fixture(params=["memory", "xlsx"])
def store(request, tmp_path) -> TabularStore:
    if request.param == "memory":
        return InMemoryTabularStore(region="Sheet")
    return XlsxWorkbook(tmp_path / "store.xlsx").sheet("Sheet")


# =============================================================================
# Protocol conformance
# =============================================================================


class TestProtocol:
    def test_in_memory_is_tabular_store(self):
        assert isinstance(InMemoryTabularStore(), TabularStore)

    def test_xlsx_is_tabular_store(self, tmp_path):
        assert isinstance(XlsxWorkbook(tmp_path / "a.xlsx").sheet("S"), TabularStore)


# =============================================================================
# Region primitives (both backends)
# =============================================================================


class TestRegionPrimitives:
    def test_empty_store_reads_no_rows(self, store):
        assert store.read_all() == []

    def test_append_adds_after_last_row(self, store):
        store.append(["a", 1])
        store.append(["b", 2])
        assert store.read_all() == [["a", 1], ["b", 2]]

    def test_extend_writes_block(self, store):
        store.append(["header"])
        store.extend([["x", 1], ["y", 2], ["z", 3]])
        assert store.read_all() == [["header"], ["x", 1], ["y", 2], ["z", 3]]

    def test_extend_with_no_rows_is_noop(self, store):
        store.extend([])
        assert store.read_all() == []

    def test_overwrite_replaces_row(self, store):
        store.extend([["a", 1], ["b", 2]])
        store.overwrite(2, ["b", 20])
        assert store.read_all() == [["a", 1], ["b", 20]]

    def test_overwrite_with_shorter_row_clears_old_cells(self, store):
        store.append(["a", 1, "extra"])
        store.overwrite(1, ["a", 2])
        assert store.read_all() == [["a", 2]]

    def test_overwrite_past_extent_is_ignored(self, store):
        store.append(["a", 1])
        store.overwrite(5, ["z", 9])
        store.overwrite(0, ["z", 9])
        assert store.read_all() == [["a", 1]]

    def test_delete_shifts_later_rows_up(self, store):
        store.extend([["r1"], ["r2"], ["r3"], ["r4"]])
        store.delete(2)
        assert store.read_all() == [["r1"], ["r3"], ["r4"]]

    def test_delete_contiguous_range(self, store):
        store.extend([["r1"], ["r2"], ["r3"], ["r4"], ["r5"]])
        store.delete(2, 3)
        assert store.read_all() == [["r1"], ["r5"]]

    def test_bottom_up_deletion_keeps_indices_valid(self, store):
        store.extend([["r1"], ["r2"], ["r3"], ["r4"], ["r5"]])
        for index in sorted([2, 4], reverse=True):
            store.delete(index)
        assert store.read_all() == [["r1"], ["r3"], ["r5"]]

    def test_append_after_delete_leaves_no_gap(self, store):
        store.extend([["r1"], ["r2"], ["r3"]])
        store.delete(2, 2)
        store.append(["r4"])
        assert store.read_all() == [["r1"], ["r4"]]

    def test_clear_removes_everything(self, store):
        store.extend([["a", 1], ["b", 2]])
        store.clear()
        assert store.read_all() == []
        store.append(["c", 3])
        assert store.read_all() == [["c", 3]]


# =============================================================================
# In-memory specifics
# =============================================================================


class TestInMemoryTabularStore:
    def test_trailing_empty_rows_are_not_part_of_extent(self):
        store = InMemoryTabularStore(rows=[["a"], [None, None], []])
        assert store.read_all() == [["a"]]

    def test_integral_floats_normalized(self):
        store = InMemoryTabularStore(rows=[["k", 20240101.0, 1.5]])
        assert store.read_all() == [["k", 20240101, 1.5]]

    def test_freeze_header_recorded(self):
        store = InMemoryTabularStore()
        store.freeze_header(1)
        assert store.frozen_rows == 1


# =============================================================================
# openpyxl workbook specifics
# =============================================================================


class TestXlsxWorkbook:
    def test_control_characters_dropped_from_text_cells(self, tmp_path):
        path = tmp_path / "report.xlsx"
        XlsxWorkbook(path).sheet("Report").append(["Acme\x0bCo", "a\x00b", 5])

        reopened = XlsxWorkbook(path).sheet("Report")
        assert reopened.read_all() == [["AcmeCo", "ab", 5]]

    def test_writes_are_durable_across_reload(self, tmp_path):
        path = tmp_path / "report.xlsx"
        XlsxWorkbook(path).sheet("_remoteStorage").append(["20240101", '{"A":true}'])

        reopened = XlsxWorkbook(path).sheet("_remoteStorage")
        assert reopened.read_all() == [["20240101", '{"A":true}']]

    def test_missing_sheet_is_created(self, tmp_path):
        path = tmp_path / "report.xlsx"
        workbook = XlsxWorkbook(path)
        workbook.sheet("Report")
        workbook.sheet("_remoteStorage")

        assert openpyxl.load_workbook(path).sheetnames == ["Report", "_remoteStorage"]

    def test_sheets_are_independent_regions(self, tmp_path):
        workbook = XlsxWorkbook(tmp_path / "report.xlsx")
        ledger = workbook.sheet("_remoteStorage")
        report = workbook.sheet("Report")
        ledger.append(["k", "1"])
        report.append(["h1", "h2"])
        assert ledger.read_all() == [["k", "1"]]
        assert report.read_all() == [["h1", "h2"]]

    def test_freeze_header_sets_panes(self, tmp_path):
        path = tmp_path / "report.xlsx"
        store = XlsxWorkbook(path).sheet("Report")
        store.append(["Clicks", "Timestamp"])
        store.freeze_header(1)
        assert openpyxl.load_workbook(path)["Report"].freeze_panes == "A2"

    def test_reload_discards_unsaved_state(self, tmp_path):
        path = tmp_path / "report.xlsx"
        workbook = XlsxWorkbook(path)
        store = workbook.sheet("S")
        store.append(["saved"])
        workbook.worksheet("S").cell(row=2, column=1, value="unsaved")
        workbook.reload()
        assert workbook.sheet("S").read_all() == [["saved"]]

    def test_region_is_sheet_name(self, tmp_path):
        store = XlsxWorkbook(tmp_path / "a.xlsx").sheet("Report")
        assert isinstance(store, XlsxTabularStore)
        assert store.region == "Report"

    def test_corrupt_file_raises_storage_fault(self, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"this is not a zip archive")
        with pytest.raises(StorageFaultError) as exc_info:
            XlsxWorkbook(path)
        assert exc_info.value.code == "STORAGE_FAULT"
        assert exc_info.value.operation == "load"


class TestWorkbookLock:
    def test_lock_file_exists_while_held(self, tmp_path):
        workbook = XlsxWorkbook(tmp_path / "report.xlsx")
        with workbook.lock() as lock_path:
            assert lock_path.exists()
            assert lock_path.name == "report.xlsx.lock"
        assert not lock_path.exists()

    def test_second_lock_is_rejected(self, tmp_path):
        path = tmp_path / "report.xlsx"
        first = XlsxWorkbook(path)
        second = XlsxWorkbook(path)
        with first.lock():
            with pytest.raises(RunAlreadyInProgressError) as exc_info:
                with second.lock():
                    pass
        assert exc_info.value.code == "RUN_IN_PROGRESS"
        assert exc_info.value.lock_path.endswith("report.xlsx.lock")

    def test_lock_released_after_exception(self, tmp_path):
        workbook = XlsxWorkbook(tmp_path / "report.xlsx")
        with pytest.raises(RuntimeError):
            with workbook.lock():
                raise RuntimeError("boom")
        with workbook.lock():
            pass
