"""Workbook persistence for the ledger using openpyxl."""

from __future__ import annotations

import datetime
import hashlib
import math
import os
from copy import copy
from io import BytesIO
from pathlib import Path
from typing import Any
from zipfile import BadZipFile, ZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.cell import Cell as WorksheetCell
from openpyxl.cell.cell import ERROR_CODES, MergedCell
from openpyxl.compat import safe_string
from openpyxl.utils.datetime import to_excel
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet
from openpyxl.xml.constants import SHEET_MAIN_NS
from openpyxl.xml.functions import fromstring, tostring

from indent_ledger.ledger_document import (
    EMPTY,
    Cell,
    FormulaCell,
    LedgerDocument,
    LedgerSheet,
    ScalarCell,
)
from indent_ledger.utils.exceptions import (
    ConcurrentModificationError,
    StorageError,
    WorkbookNotFoundError,
)
from indent_ledger.utils.logging import get_logger

logger = get_logger(__name__)

_READ_ERRORS = (InvalidFileException, BadZipFile, KeyError, ValueError, OSError)

_CELL_TAG = f"{{{SHEET_MAIN_NS}}}c"
_FORMULA_TAG = f"{{{SHEET_MAIN_NS}}}f"
_VALUE_TAG = f"{{{SHEET_MAIN_NS}}}v"

_DATE_TYPES = (datetime.date, datetime.time, datetime.timedelta)


def _checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _cached_value(
    result: Any, epoch: datetime.datetime
) -> tuple[str | None, str] | None:
    """Return the ``(t attribute, <v> text)`` pair for a formula result.

    ``None`` means the result is not worth caching and the cell is left for
    the spreadsheet application to compute.
    """
    if result is None or result == "":
        return None
    if isinstance(result, bool):
        return "b", str(int(result))
    if isinstance(result, _DATE_TYPES):
        return None, safe_string(to_excel(result, epoch))
    if isinstance(result, (int, float)):
        if not math.isfinite(result):
            return None
        return None, safe_string(result)
    text = str(result)
    if text in ERROR_CODES:
        return "e", text
    return "str", text


class ExcelWorkbookStore:
    """Load and persist a LedgerDocument from a single .xlsx file.

    Every ``load`` reads the file fresh; nothing is cached between calls.
    ``save`` refuses to overwrite a file that changed since the document
    was loaded.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read_bytes(self) -> bytes:
        """Return the raw bytes of the persisted workbook."""
        if not self._path.exists():
            raise WorkbookNotFoundError(file_path=str(self._path))
        try:
            return self._path.read_bytes()
        except OSError as e:
            raise StorageError(
                f"Failed to read workbook: {e}", file_path=str(self._path)
            ) from e

    def load(self) -> LedgerDocument:
        """Read the workbook into an in-memory document."""
        data = self.read_bytes()
        # Load twice: once to capture formulas, once for cached results
        workbook = self._open(data, data_only=False)
        computed_wb = self._open(data, data_only=True)

        sheets = [
            self._extract_sheet(ws, computed_wb[ws.title]) for ws in workbook.worksheets
        ]
        logger.debug(
            "Workbook loaded",
            path=str(self._path),
            sheets=len(sheets),
            size_bytes=len(data),
        )
        return LedgerDocument(sheets=sheets, version=_checksum(data))

    def save(self, document: LedgerDocument) -> None:
        """Write new sheets and touched cells back to the workbook file.

        openpyxl serialises formulas without their cached values, so the
        results held by the document are injected into the saved sheet
        parts afterwards. Untouched formulas keep the results they were
        loaded with.

        Raises:
            ConcurrentModificationError: If the file no longer matches the
                version the document was loaded from.
            StorageError: If the workbook cannot be read or written.
        """
        current = self.read_bytes()
        actual_version = _checksum(current)
        if document.version is not None and actual_version != document.version:
            raise ConcurrentModificationError(
                file_path=str(self._path),
                expected_version=document.version,
                actual_version=actual_version,
            )

        workbook = self._open(current, data_only=False)
        created = 0
        written = 0
        results: list[tuple[Worksheet, dict[str, Any]]] = []
        for sheet in document.sheets:
            if sheet.is_new:
                ws = self._write_new_sheet(workbook, sheet)
                created += 1
            else:
                ws = workbook[sheet.name]
                if sheet.dirty:
                    written += self._write_dirty_cells(ws, sheet)
            results.append((ws, self._formula_results(ws, sheet)))

        if document.full_calc_on_load:
            workbook.calculation.fullCalcOnLoad = True

        buffer = BytesIO()
        try:
            workbook.save(buffer)
        except (ValueError, TypeError) as e:
            raise StorageError(
                f"Failed to serialise workbook: {e}", file_path=str(self._path)
            ) from e
        # Worksheet paths are assigned by the writer, so map them after saving
        data = self._inject_cached_results(
            buffer.getvalue(),
            {ws.path.lstrip("/"): cached for ws, cached in results if cached},
            workbook.epoch,
        )
        self._replace(data)

        document.version = _checksum(data)
        for sheet in document.sheets:
            sheet.is_new = False
            sheet.dirty.clear()

        logger.info(
            "Workbook saved",
            path=str(self._path),
            sheets_created=created,
            cells_written=written,
        )

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _open(self, data: bytes, *, data_only: bool) -> Workbook:
        try:
            return load_workbook(filename=BytesIO(data), data_only=data_only)
        except _READ_ERRORS as e:
            raise StorageError(
                f"Failed to parse workbook: {e}", file_path=str(self._path)
            ) from e

    def _replace(self, data: bytes) -> None:
        """Swap the new bytes in with a single rename."""
        tmp_path = self._path.with_name(f".{self._path.name}.tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(
                f"Failed to write workbook: {e}", file_path=str(self._path)
            ) from e

    def _extract_sheet(self, sheet: Worksheet, computed_sheet: Worksheet) -> LedgerSheet:
        grid: list[list[Cell]] = []
        if not self._is_blank_sheet(sheet):
            bounds = {
                "min_row": 1,
                "min_col": 1,
                "max_row": sheet.max_row,
                "max_col": sheet.max_column,
            }
            for row_cells, computed_values in zip(
                sheet.iter_rows(**bounds),
                computed_sheet.iter_rows(**bounds, values_only=True),
                strict=True,
            ):
                grid.append(
                    [
                        self._build_cell(cell, computed_value)
                        for cell, computed_value in zip(
                            row_cells, computed_values, strict=True
                        )
                    ]
                )

            # Cells covered by a merge read as the range's top-left cell
            for rng in sheet.merged_cells.ranges:
                anchor = grid[rng.min_row - 1][rng.min_col - 1]
                for row_idx, col_idx in rng.cells:
                    grid[row_idx - 1][col_idx - 1] = anchor

        rows = []
        for cells in grid:
            while cells and cells[-1] == EMPTY:
                cells.pop()
            rows.append(cells)

        return LedgerSheet(
            name=sheet.title,
            rows=rows,
            row_heights={
                idx: dim.height
                for idx, dim in sheet.row_dimensions.items()
                if dim.height is not None
            },
            merged_ranges=sorted(rng.coord for rng in sheet.merged_cells.ranges),
        )

    @staticmethod
    def _build_cell(cell: WorksheetCell, computed_value: Any) -> Cell:
        if cell.data_type == "f":
            # ArrayFormula keeps its expression in .text
            text = getattr(cell.value, "text", cell.value)
            return FormulaCell(
                formula=str(text).removeprefix("="), result=computed_value
            )
        if cell.value is None:
            return EMPTY
        return ScalarCell(cell.value)

    @staticmethod
    def _is_blank_sheet(sheet: Worksheet) -> bool:
        return (
            sheet.max_row == 1
            and sheet.max_column == 1
            and sheet.cell(row=1, column=1).value is None
        )

    def _write_new_sheet(self, workbook: Workbook, sheet: LedgerSheet) -> Worksheet:
        ws = workbook.create_sheet(title=sheet.name)
        if ws.title != sheet.name:
            # openpyxl renames instead of failing when the name is taken
            raise StorageError(
                f'Sheet name "{sheet.name}" collides with an existing sheet',
                file_path=str(self._path),
                details={"sheet_name": sheet.name, "assigned_name": ws.title},
            )

        for row_idx, cells in enumerate(sheet.rows, start=1):
            for col_idx, cell in enumerate(cells, start=1):
                value = self._to_cell_value(cell, sheet.name, row_idx, col_idx)
                if value is not None:
                    ws.cell(row=row_idx, column=col_idx).value = value

        if sheet.source_name and sheet.source_name in workbook.sheetnames:
            self._copy_layout(workbook[sheet.source_name], ws)

        for row_idx, height in sheet.row_heights.items():
            ws.row_dimensions[row_idx].height = height
        for coord in sheet.merged_ranges:
            ws.merge_cells(coord)
        return ws

    @staticmethod
    def _copy_layout(source: Worksheet, target: Worksheet) -> None:
        """Carry cell styles and column widths over from the source sheet."""
        for (row_idx, col_idx), source_cell in source._cells.items():
            if source_cell.has_style:
                target.cell(row=row_idx, column=col_idx)._style = copy(
                    source_cell._style
                )
        for key, dim in source.column_dimensions.items():
            if dim.width:
                target.column_dimensions[key].width = dim.width

    @staticmethod
    def _merge_anchor(ws: Worksheet, cell: MergedCell) -> WorksheetCell:
        """Return the top-left cell of the merged range covering ``cell``."""
        for rng in ws.merged_cells.ranges:
            if cell.coordinate in rng:
                return ws.cell(row=rng.min_row, column=rng.min_col)
        raise StorageError(
            f"No merged range covers {cell.coordinate}",
            details={"sheet_name": ws.title, "coordinate": cell.coordinate},
        )

    def _write_dirty_cells(self, ws: Worksheet, sheet: LedgerSheet) -> int:
        written = 0
        for row_idx, col_idx in sorted(sheet.dirty):
            target = ws.cell(row=row_idx, column=col_idx)
            if isinstance(target, MergedCell):
                target = self._merge_anchor(ws, target)
                logger.debug(
                    "Writing merged cell through its anchor",
                    sheet_name=sheet.name,
                    coordinate=target.coordinate,
                )
            target.value = self._to_cell_value(
                sheet.get_cell(row_idx, col_idx), sheet.name, row_idx, col_idx
            )
            written += 1
        return written

    def _formula_results(self, ws: Worksheet, sheet: LedgerSheet) -> dict[str, Any]:
        """Map worksheet coordinates to the cached results of formula cells.

        Cells inside a merge only count when they were written, in which
        case the result belongs to the range's anchor.
        """
        results: dict[str, Any] = {}
        for row_idx, cells in enumerate(sheet.rows, start=1):
            for col_idx, cell in enumerate(cells, start=1):
                if not isinstance(cell, FormulaCell) or cell.result is None:
                    continue
                target = ws.cell(row=row_idx, column=col_idx)
                if isinstance(target, MergedCell):
                    if (row_idx, col_idx) not in sheet.dirty:
                        continue
                    target = self._merge_anchor(ws, target)
                results[target.coordinate] = cell.result
        return results

    def _inject_cached_results(
        self,
        data: bytes,
        results: dict[str, dict[str, Any]],
        epoch: datetime.datetime,
    ) -> bytes:
        """Rewrite the saved package with ``<v>`` values for formula cells."""
        if not results:
            return data

        output = BytesIO()
        with ZipFile(BytesIO(data)) as source, ZipFile(output, "w") as target:
            for info in source.infolist():
                part = source.read(info.filename)
                cached = results.get(info.filename)
                if cached:
                    part = self._patch_sheet_part(part, cached, epoch)
                target.writestr(info, part)
        return output.getvalue()

    @staticmethod
    def _patch_sheet_part(
        part: bytes, results: dict[str, Any], epoch: datetime.datetime
    ) -> bytes:
        root = fromstring(part)
        for element in root.iter(_CELL_TAG):
            if element.find(_FORMULA_TAG) is None:
                continue
            cached = _cached_value(results.get(element.get("r")), epoch)
            if cached is None:
                continue
            data_type, text = cached
            if data_type is None:
                element.attrib.pop("t", None)
            else:
                element.set("t", data_type)
            value = element.find(_VALUE_TAG)
            if value is None:
                value = element.makeelement(_VALUE_TAG, {})
                element.append(value)
            value.text = text
        return tostring(root)

    @staticmethod
    def _to_cell_value(cell: Cell, sheet_name: str, row: int, column: int) -> Any:
        """Map a document cell to the value openpyxl expects.

        Formulas are written as text; their cached result is added to the
        saved package separately.
        """
        if isinstance(cell, FormulaCell):
            return f"={cell.formula}"
        if isinstance(cell, ScalarCell):
            value = cell.value
            if isinstance(value, float) and math.isnan(value):
                logger.warning(
                    "Writing non-numeric quantity as empty cell",
                    sheet_name=sheet_name,
                    row=row,
                    column=column,
                )
                return None
            return value
        return None
