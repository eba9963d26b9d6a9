from __future__ import annotations

from pathlib import Path

import pytest

from indent_ledger.ledger_document import (
    EMPTY,
    FormulaCell,
    LedgerDocument,
    LedgerSheet,
    ScalarCell,
)
from tests.fixtures import MemoryWorkbookStore, build_master_workbook


@pytest.fixture
def workbook_path(tmp_path: Path) -> Path:
    return build_master_workbook(tmp_path / "Indent.xlsx")


@pytest.fixture
def master_sheet() -> LedgerSheet:
    """In-memory template with a formula in a company column."""
    return LedgerSheet(
        name="MASTER",
        rows=[
            [
                ScalarCell("S.No"),
                ScalarCell("Vegetable"),
                ScalarCell("AcmeCo"),
                ScalarCell("Globex"),
            ],
            [ScalarCell(1), ScalarCell("Tomato"), ScalarCell(5)],
            [
                ScalarCell(2),
                ScalarCell("Onion"),
                EMPTY,
                FormulaCell("C3*2", result=0),
            ],
            [ScalarCell(3), ScalarCell(" Potato "), ScalarCell(0), ScalarCell(2)],
            [],
            [EMPTY, ScalarCell("Ghost"), ScalarCell(99)],
            [],
        ],
        row_heights={1: 24.0, 5: 6.0},
        merged_ranges=["A7:D7"],
    )


@pytest.fixture
def memory_store(master_sheet: LedgerSheet) -> MemoryWorkbookStore:
    return MemoryWorkbookStore(LedgerDocument(sheets=[master_sheet]))
