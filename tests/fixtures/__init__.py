"""Test fixtures and helpers for building ledger workbooks.

Example usage:
    from tests.fixtures import MemoryWorkbookStore, build_master_workbook

    path = build_master_workbook(tmp_path / "Indent.xlsx")
"""

from __future__ import annotations

import copy
from pathlib import Path

from openpyxl import Workbook

from indent_ledger.ledger_document import LedgerDocument
from indent_ledger.services.workbook_store import ExcelWorkbookStore
from indent_ledger.utils.exceptions import ConcurrentModificationError


def build_master_workbook(path: Path) -> Path:
    """Write a small ledger workbook: a notes sheet followed by MASTER."""
    wb = Workbook()
    notes = wb.active
    notes.title = "Notes"
    notes["A1"] = "Orders close at 6pm"

    ws = wb.create_sheet("MASTER")
    ws.append(["S.No", "Vegetable", "AcmeCo", "Globex", "Total"])
    ws.append([1, "Tomato", 5, None, "=SUM(C2:D2)"])
    ws.append([2, "Onion", None, "=C3*2", "=SUM(C3:D3)"])
    ws.append([3, "Potato", 7, 2, "=SUM(C4:D4)"])
    # Row 5 stays empty and ends the item list; row 6 is stale data
    ws["B6"] = "Ghost"
    ws["C6"] = 99
    ws["A8"] = "Prepared by"
    ws.merge_cells("A8:E8")
    ws.row_dimensions[1].height = 24
    ws.row_dimensions[5].height = 6
    ws.column_dimensions["B"].width = 18

    wb.save(path)
    return path


class MemoryWorkbookStore(ExcelWorkbookStore):
    """Store double that keeps the document in memory.

    Loads hand out deep copies, so each operation sees its own document just
    as it would when reading the file.
    """

    def __init__(self, document: LedgerDocument) -> None:
        super().__init__(Path("memory.xlsx"))
        self._document = document
        self._document.version = "v0"
        self.saves = 0

    @property
    def document(self) -> LedgerDocument:
        return self._document

    def read_bytes(self) -> bytes:
        return b"memory"

    def load(self) -> LedgerDocument:
        return copy.deepcopy(self._document)

    def save(self, document: LedgerDocument) -> None:
        if document.version != self._document.version:
            raise ConcurrentModificationError(
                file_path=str(self.path),
                expected_version=str(document.version),
                actual_version=str(self._document.version),
            )
        self.saves += 1
        saved = copy.deepcopy(document)
        saved.version = f"v{self.saves}"
        for sheet in saved.sheets:
            sheet.is_new = False
            sheet.dirty.clear()
        self._document = saved
        document.version = saved.version
