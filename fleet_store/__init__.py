"""
fleet_store -- durable, human-inspectable storage on spreadsheet sheets.

Provides the TabularStore protocol (bulk region primitives only), an
in-memory backend, an openpyxl workbook backend, and the KeyValueLedger
built on top of them by linear scan.
"""

from fleet_store.ledger import KeyValueLedger, decode_value, encode_value
from fleet_store.tabular import (
    InMemoryTabularStore,
    TabularStore,
    XlsxTabularStore,
    XlsxWorkbook,
)

__all__ = [
    "InMemoryTabularStore",
    "KeyValueLedger",
    "TabularStore",
    "XlsxTabularStore",
    "XlsxWorkbook",
    "decode_value",
    "encode_value",
]
