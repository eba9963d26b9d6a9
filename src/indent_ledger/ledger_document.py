"""Dataclasses representing a ledger workbook held in memory."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

MAX_SHEET_NAME_LENGTH = 31
"""Sheet-name length ceiling imposed by the workbook format."""


@dataclass(frozen=True)
class EmptyCell:
    """A cell with no value."""


@dataclass(frozen=True)
class ScalarCell:
    """A literal value: number, text, boolean or date."""

    value: Any


@dataclass(frozen=True)
class FormulaCell:
    """A formula together with its last computed result.

    The formula text is stored without the leading ``=``.
    """

    formula: str
    result: Any = None

    def with_result(self, result: Any) -> FormulaCell:
        """Return a copy carrying the same formula and a new cached result."""
        return FormulaCell(formula=self.formula, result=result)


Cell = EmptyCell | ScalarCell | FormulaCell

EMPTY = EmptyCell()


def cell_value(cell: Cell) -> Any:
    """Project a cell to a plain value (cached result for formulas)."""
    if isinstance(cell, FormulaCell):
        return cell.result
    if isinstance(cell, ScalarCell):
        return cell.value
    return None


def is_blank(value: Any) -> bool:
    """Return True for values a header or item scan treats as absent."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)):
        return value == 0 or math.isnan(value)
    return False


def sheet_key(date: Any) -> str:
    """Build the sheet name for a date key."""
    return str(date)[:MAX_SHEET_NAME_LENGTH]


@dataclass
class LedgerSheet:
    """A single worksheet: a 1-based grid of cells.

    ``rows[0]`` is row 1; ``rows[r][0]`` is column A. Rows may be shorter than
    the widest row; missing cells read as empty.
    """

    name: str
    rows: list[list[Cell]] = field(default_factory=list)
    row_heights: dict[int, float] = field(default_factory=dict)
    merged_ranges: list[str] = field(default_factory=list)
    is_new: bool = False
    source_name: str | None = None
    dirty: set[tuple[int, int]] = field(default_factory=set)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def get_row(self, row: int) -> list[Cell]:
        if row < 1:
            raise IndexError(f"Row index must be 1-based, got {row}")
        if row > len(self.rows):
            return []
        return self.rows[row - 1]

    def get_cell(self, row: int, column: int) -> Cell:
        if column < 1:
            raise IndexError(f"Column index must be 1-based, got {column}")
        cells = self.get_row(row)
        if column > len(cells):
            return EMPTY
        return cells[column - 1]

    def set_cell(self, row: int, column: int, cell: Cell) -> None:
        """Overwrite one cell, growing the grid as needed."""
        if row < 1 or column < 1:
            raise IndexError(f"Cell indexes must be 1-based, got ({row}, {column})")
        while len(self.rows) < row:
            self.rows.append([])
        cells = self.rows[row - 1]
        while len(cells) < column:
            cells.append(EMPTY)
        cells[column - 1] = cell
        self.dirty.add((row, column))


@dataclass
class LedgerDocument:
    """An ordered collection of sheets keyed by exact name.

    ``version`` identifies the persisted bytes the document was loaded from;
    stores use it to detect writes that happened in between.
    """

    sheets: list[LedgerSheet] = field(default_factory=list)
    full_calc_on_load: bool = False
    version: str | None = None

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def get_sheet(self, name: str) -> LedgerSheet | None:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None

    def add_sheet(self, name: str, source_name: str | None = None) -> LedgerSheet:
        if self.get_sheet(name) is not None:
            raise ValueError(f"Sheet '{name}' already exists")
        sheet = LedgerSheet(name=name, is_new=True, source_name=source_name)
        self.sheets.append(sheet)
        return sheet

    def mark_full_recalculation(self) -> None:
        """Ask the spreadsheet application to recalculate everything on open."""
        self.full_calc_on_load = True
