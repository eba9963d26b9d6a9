"""Tests for the in-memory ledger document model."""

import math

import pytest

from indent_ledger.ledger_document import (
    EMPTY,
    MAX_SHEET_NAME_LENGTH,
    FormulaCell,
    LedgerDocument,
    LedgerSheet,
    ScalarCell,
    cell_value,
    is_blank,
    sheet_key,
)


class TestCells:
    """Tests for the cell variants."""

    def test_with_result_keeps_formula(self) -> None:
        cell = FormulaCell("SUM(C2:D2)", result=3)

        updated = cell.with_result(12)

        assert updated == FormulaCell("SUM(C2:D2)", result=12)
        assert cell.result == 3

    def test_formula_cells_are_immutable(self) -> None:
        cell = FormulaCell("A1*2")

        with pytest.raises(AttributeError):
            cell.formula = "A1*3"  # type: ignore[misc]

    @pytest.mark.parametrize(
        ("cell", "expected"),
        [
            (EMPTY, None),
            (ScalarCell("Tomato"), "Tomato"),
            (FormulaCell("C3*2", result=8), 8),
            (FormulaCell("C3*2"), None),
        ],
    )
    def test_cell_value(self, cell: object, expected: object) -> None:
        assert cell_value(cell) == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize("value", [None, "", 0, 0.0, False, math.nan])
    def test_blank_values(self, value: object) -> None:
        assert is_blank(value)

    @pytest.mark.parametrize("value", ["x", " ", 1, -2.5, True])
    def test_present_values(self, value: object) -> None:
        assert not is_blank(value)


class TestSheetKey:
    """Tests for sheet name derivation."""

    def test_short_keys_unchanged(self) -> None:
        assert sheet_key("2024-06-01") == "2024-06-01"

    def test_long_keys_truncated(self) -> None:
        key = "x" * 40

        assert sheet_key(key) == "x" * MAX_SHEET_NAME_LENGTH

    def test_non_string_keys(self) -> None:
        assert sheet_key(20240601) == "20240601"


class TestLedgerSheet:
    """Tests for 1-based grid access."""

    def test_missing_cells_read_empty(self) -> None:
        sheet = LedgerSheet(name="s", rows=[[ScalarCell("a")]])

        assert sheet.get_cell(1, 1) == ScalarCell("a")
        assert sheet.get_cell(1, 5) == EMPTY
        assert sheet.get_cell(9, 1) == EMPTY
        assert sheet.get_row(9) == []

    def test_set_cell_grows_grid_and_tracks_dirty(self) -> None:
        sheet = LedgerSheet(name="s")

        sheet.set_cell(3, 2, ScalarCell(7))

        assert sheet.row_count == 3
        assert sheet.get_row(3) == [EMPTY, ScalarCell(7)]
        assert sheet.dirty == {(3, 2)}

    def test_rejects_zero_indexes(self) -> None:
        sheet = LedgerSheet(name="s")

        with pytest.raises(IndexError):
            sheet.get_cell(0, 1)
        with pytest.raises(IndexError):
            sheet.set_cell(1, 0, EMPTY)


class TestLedgerDocument:
    """Tests for sheet lookup and creation."""

    def test_lookup_is_case_sensitive(self) -> None:
        document = LedgerDocument(sheets=[LedgerSheet(name="MASTER")])

        assert document.get_sheet("MASTER") is not None
        assert document.get_sheet("master") is None

    def test_add_sheet(self) -> None:
        document = LedgerDocument(sheets=[LedgerSheet(name="MASTER")])

        sheet = document.add_sheet("2024-06-01", source_name="MASTER")

        assert document.sheet_names == ["MASTER", "2024-06-01"]
        assert sheet.is_new is True
        assert sheet.source_name == "MASTER"

    def test_add_duplicate_sheet(self) -> None:
        document = LedgerDocument(sheets=[LedgerSheet(name="MASTER")])

        with pytest.raises(ValueError, match="already exists"):
            document.add_sheet("MASTER")

    def test_mark_full_recalculation(self) -> None:
        document = LedgerDocument()

        document.mark_full_recalculation()

        assert document.full_calc_on_load is True
