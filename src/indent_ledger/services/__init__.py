"""Services for the indent ledger."""

from indent_ledger.services.sheet_ledger import (
    ItemUpdate,
    SheetLedger,
    SheetResult,
    SheetStatus,
    UpdateStatus,
    coerce_quantity,
)
from indent_ledger.services.workbook_store import ExcelWorkbookStore

__all__ = [
    "ExcelWorkbookStore",
    "ItemUpdate",
    "SheetLedger",
    "SheetResult",
    "SheetStatus",
    "UpdateStatus",
    "coerce_quantity",
]
