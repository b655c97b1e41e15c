"""
TabularStore protocol and backends.

Contract:
    A TabularStore is a rectangular region of persistent tabular storage
    (one spreadsheet sheet).  It offers only bulk region primitives: read
    every row, append after the last occupied row, overwrite a row, delete
    contiguous rows, clear.  There is no point-key access; callers that need
    keyed lookup scan ``read_all()`` (see ``fleet_store.ledger``).

    Row indices passed to ``overwrite`` and ``delete`` are 1-based, like
    spreadsheet row numbers.  ``delete`` shifts every later row up, so
    callers deleting several ranges compute them all first and apply them
    from the highest index down.

Architecture: fleet_store.  File I/O only (openpyxl); no batch imports.

Failure modes:
    - Any I/O or workbook-format failure raises ``StorageFaultError``.
    - ``overwrite`` outside the current extent is silently ignored.
    - The xlsx backend drops XML control characters from string cells.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol, Sequence, runtime_checkable
from zipfile import BadZipFile

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.exceptions import InvalidFileException

from fleet_kernel.exceptions import RunAlreadyInProgressError, StorageFaultError
from fleet_kernel.logging_config import get_logger

logger = get_logger("store.tabular")


@runtime_checkable
class TabularStore(Protocol):
    """Protocol for a rectangular, row-addressed storage region."""

    @property
    def region(self) -> str:
        """Human-readable region name (sheet name) for logs and errors."""
        ...

    def read_all(self) -> list[list[Any]]:
        """Return every row of the current extent, top to bottom."""
        ...

    def append(self, row: Sequence[Any]) -> None:
        """Add one row after the last occupied row."""
        ...

    def extend(self, rows: Sequence[Sequence[Any]]) -> None:
        """Write a block of rows after the last occupied row."""
        ...

    def overwrite(self, row_index: int, row: Sequence[Any]) -> None:
        """Replace the row at 1-based ``row_index``; ignored past the extent."""
        ...

    def delete(self, row_index: int, count: int = 1) -> None:
        """Remove ``count`` contiguous rows starting at 1-based ``row_index``."""
        ...

    def clear(self) -> None:
        """Remove all rows."""
        ...

    def freeze_header(self, rows: int = 1) -> None:
        """Keep the first ``rows`` rows frozen as a header."""
        ...


def _normalize_cell(value: Any) -> Any:
    """Spreadsheets hand back integral numbers as floats; undo that."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _trim(rows: list[list[Any]]) -> list[list[Any]]:
    """Drop trailing empty cells per row and trailing fully-empty rows."""
    trimmed: list[list[Any]] = []
    for row in rows:
        cells = [_normalize_cell(v) for v in row]
        while cells and cells[-1] is None:
            cells.pop()
        trimmed.append(cells)
    while trimmed and not trimmed[-1]:
        trimmed.pop()
    return trimmed


# =============================================================================
# In-memory backend
# =============================================================================


class InMemoryTabularStore:
    """List-of-lists TabularStore for tests and dry runs."""

    def __init__(self, region: str = "memory", rows: Sequence[Sequence[Any]] = ()):
        self._region = region
        self._rows: list[list[Any]] = [list(r) for r in rows]
        self.frozen_rows = 0

    @property
    def region(self) -> str:
        return self._region

    def read_all(self) -> list[list[Any]]:
        return _trim([list(r) for r in self._rows])

    def append(self, row: Sequence[Any]) -> None:
        self._rows = self.read_all()
        self._rows.append(list(row))

    def extend(self, rows: Sequence[Sequence[Any]]) -> None:
        self._rows = self.read_all()
        self._rows.extend(list(r) for r in rows)

    def overwrite(self, row_index: int, row: Sequence[Any]) -> None:
        self._rows = self.read_all()
        if row_index < 1 or row_index > len(self._rows):
            return
        self._rows[row_index - 1] = list(row)

    def delete(self, row_index: int, count: int = 1) -> None:
        if row_index < 1 or count < 1:
            return
        del self._rows[row_index - 1 : row_index - 1 + count]

    def clear(self) -> None:
        self._rows = []

    def freeze_header(self, rows: int = 1) -> None:
        self.frozen_rows = rows


# =============================================================================
# openpyxl workbook backend
# =============================================================================


class XlsxWorkbook:
    """
    An .xlsx workbook file holding one sheet per storage region.

    Contract:
        - The file is created on first save when it does not exist.
        - ``sheet(name)`` returns an ``XlsxTabularStore`` bound to the named
          sheet, inserting the sheet when it is missing.
        - Every mutation through a store saves the workbook, so each write
          is durable on its own.
        - ``lock()`` holds an advisory lock file next to the workbook for
          the duration of a run.

    Non-goals:
        - No cross-process cache coherence: one workbook object per run.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)
        self._wb = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Any:
        if not self._path.exists():
            wb = openpyxl.Workbook()
            # Drop the default sheet; regions are created by name.
            wb.remove(wb.active)
            return wb
        try:
            return openpyxl.load_workbook(self._path)
        except (OSError, BadZipFile, InvalidFileException, KeyError) as exc:
            raise StorageFaultError("load", str(self._path), str(exc)) from exc

    def reload(self) -> None:
        """Re-read the file, discarding any in-memory state."""
        self._wb = self._load()

    def sheet(self, name: str) -> XlsxTabularStore:
        """Return the store for sheet ``name``, creating the sheet if needed."""
        if name not in self._wb.sheetnames:
            self._wb.create_sheet(title=name)
            logger.info(
                "sheet_created",
                extra={"workbook": str(self._path), "sheet": name},
            )
            self.save(name)
        return XlsxTabularStore(self, name)

    def worksheet(self, name: str) -> Any:
        return self._wb[name]

    def save(self, region: str | None = None) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._wb.save(self._path)
        except (OSError, ValueError, IndexError) as exc:
            raise StorageFaultError(
                "save", region or str(self._path), str(exc),
            ) from exc

    @contextmanager
    def lock(self) -> Iterator[Path]:
        """Advisory run lock: ``<workbook>.lock`` created exclusively."""
        lock_path = self._path.with_name(self._path.name + ".lock")
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise RunAlreadyInProgressError(str(lock_path)) from None
        except OSError as exc:
            raise StorageFaultError("lock", str(lock_path), str(exc)) from exc
        try:
            os.write(fd, str(os.getpid()).encode("ascii"))
            os.close(fd)
            yield lock_path
        finally:
            try:
                lock_path.unlink()
            except FileNotFoundError:
                pass


class XlsxTabularStore:
    """TabularStore over one sheet of an ``XlsxWorkbook``."""

    def __init__(self, workbook: XlsxWorkbook, sheet_name: str):
        self._workbook = workbook
        self._sheet_name = sheet_name

    @property
    def region(self) -> str:
        return self._sheet_name

    @property
    def _ws(self) -> Any:
        return self._workbook.worksheet(self._sheet_name)

    def read_all(self) -> list[list[Any]]:
        ws = self._ws
        return _trim([list(r) for r in ws.iter_rows(values_only=True)])

    def _write_row(self, row_number: int, row: Sequence[Any]) -> None:
        ws = self._ws
        width = max(len(row), ws.max_column)
        for col in range(1, width + 1):
            value = row[col - 1] if col <= len(row) else None
            if isinstance(value, str):
                # openpyxl rejects XML control characters.
                value = ILLEGAL_CHARACTERS_RE.sub("", value)
            ws.cell(row=row_number, column=col, value=value)

    def append(self, row: Sequence[Any]) -> None:
        self.extend([row])

    def extend(self, rows: Sequence[Sequence[Any]]) -> None:
        if not rows:
            return
        start = len(self.read_all()) + 1
        for offset, row in enumerate(rows):
            self._write_row(start + offset, row)
        self._workbook.save(self._sheet_name)

    def overwrite(self, row_index: int, row: Sequence[Any]) -> None:
        if row_index < 1 or row_index > len(self.read_all()):
            return
        self._write_row(row_index, row)
        self._workbook.save(self._sheet_name)

    def delete(self, row_index: int, count: int = 1) -> None:
        if row_index < 1 or count < 1:
            return
        self._ws.delete_rows(row_index, count)
        self._workbook.save(self._sheet_name)

    def clear(self) -> None:
        ws = self._ws
        if ws.max_row:
            ws.delete_rows(1, ws.max_row)
        self._workbook.save(self._sheet_name)

    def freeze_header(self, rows: int = 1) -> None:
        ws = self._ws
        target = f"A{rows + 1}"
        if ws.freeze_panes != target:
            ws.freeze_panes = target
            self._workbook.save(self._sheet_name)
