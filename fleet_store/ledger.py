"""
KeyValueLedger -- a get/set/remove/enumerate API on top of a TabularStore.

Contract:
    Rows are ``[key, serialized_value, ...]``.  A value longer than
    ``CELL_CHUNK_SIZE`` characters continues in the cells to its right (a
    spreadsheet cell holds at most 32,767 characters); ``get`` joins them.
    Every operation performs a full linear scan of ``store.read_all()``;
    there is no secondary index.  Keys are compared as strings.  Values are
    JSON documents and must round-trip through ``json.dumps`` /
    ``json.loads``.

    ``length()`` is an in-memory counter owned by this instance.  It is
    recomputed from a full scan on construction and then maintained by
    ``set`` / ``remove`` / ``clear``; a second ledger over the same store
    does not see this instance's counter.

Failure modes:
    - A malformed value cell is reported as absent (``default``), never raised.
    - Storage faults from the underlying store propagate unchanged.
"""

from __future__ import annotations

import json
from typing import Any

from fleet_kernel.logging_config import get_logger
from fleet_store.tabular import TabularStore

logger = get_logger("store.ledger")

CELL_CHUNK_SIZE = 32_000


def encode_value(value: Any) -> str:
    """Serialize a ledger value for the value cell."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def decode_value(cell: str) -> Any:
    """Inverse of ``encode_value``; raises ``ValueError`` on malformed input."""
    return json.loads(cell)


def _key_of(row: list[Any]) -> str:
    if not row or row[0] is None:
        return ""
    return str(row[0])


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def split_cells(encoded: str) -> list[str]:
    """Cut an encoded value into cell-sized chunks (at least one)."""
    if not encoded:
        return [encoded]
    return [
        encoded[i : i + CELL_CHUNK_SIZE]
        for i in range(0, len(encoded), CELL_CHUNK_SIZE)
    ]


def _joined_value(row: list[Any]) -> str:
    return "".join(str(cell) for cell in row[1:] if cell is not None)


class KeyValueLedger:
    """Durable key-value store backed by a two-column tabular region."""

    def __init__(self, store: TabularStore):
        self._store = store
        self._length = len(store.read_all())

    @property
    def store(self) -> TabularStore:
        return self._store

    def get(self, key: Any, default: Any = None) -> Any:
        """Return the value stored under ``key``, or ``default`` when absent."""
        if _is_blank(key):
            return default
        key = str(key)
        for row in self._store.read_all():
            if _key_of(row) != key:
                continue
            cell = _joined_value(row)
            if _is_blank(cell):
                continue
            try:
                return decode_value(cell)
            except ValueError:
                logger.warning(
                    "ledger_value_malformed",
                    extra={"key": key, "region": self._store.region},
                )
                return default
        return default

    def set(self, key: Any, value: Any) -> None:
        """Overwrite the row for ``key`` in place, or append a new one.

        Blank keys and blank values (``None`` or ``""``) are ignored.
        """
        if _is_blank(key) or _is_blank(value):
            return
        key = str(key)
        row = [key, *split_cells(encode_value(value))]
        for index, existing in enumerate(self._store.read_all(), start=1):
            if _key_of(existing) == key:
                self._store.overwrite(index, row)
                return
        self._store.append(row)
        self._length += 1

    def remove(self, key: Any) -> None:
        """Delete the row for ``key``; no-op when absent."""
        if _is_blank(key):
            return
        key = str(key)
        for index, existing in enumerate(self._store.read_all(), start=1):
            if _key_of(existing) == key:
                self._store.delete(index)
                self._length -= 1
                return

    def key_at(self, index: int) -> str | None:
        """Key of the row at 0-based ``index``, or None if empty or out of range."""
        rows = self._store.read_all()
        if index < 0 or index >= len(rows):
            return None
        key = _key_of(rows[index])
        return key or None

    def keys(self) -> tuple[str, ...]:
        """Every non-empty key in storage order."""
        return tuple(k for k in (_key_of(r) for r in self._store.read_all()) if k)

    def length(self) -> int:
        return self._length

    def __len__(self) -> int:
        return self._length

    def clear(self) -> None:
        self._store.clear()
        self._length = 0
