"""Daily sheet creation and per-company quantity reads/writes.

Every operation follows the same lifecycle: load the whole workbook from the
store, read or mutate the in-memory document, and (for writes) persist it
back. Mutating operations are serialised through one writer lock so two
requests in this process never interleave between load and persist; the
store's version check catches writers outside the process.
"""

from __future__ import annotations

import math
import re
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from indent_ledger.ledger_document import (
    FormulaCell,
    LedgerDocument,
    LedgerSheet,
    ScalarCell,
    cell_value,
    is_blank,
    sheet_key,
)
from indent_ledger.services.workbook_store import ExcelWorkbookStore
from indent_ledger.utils.exceptions import (
    CompanyNotFoundError,
    ErrorCode,
    SheetNotFoundError,
    TemplateMissingError,
    ValidationError,
)
from indent_ledger.utils.logging import LogContext, get_logger, timed_operation

logger = get_logger(__name__)

DEFAULT_TEMPLATE_NAMES = ("MASTER", "Master", "Template")

HEADER_ROW = 1
ITEM_COLUMN = 2
FIRST_ITEM_ROW = 2

_INVALID_SHEET_CHARS = re.compile(r"[\\*?:/\[\]]")


class SheetStatus(str, Enum):
    """Outcome of ensuring a daily sheet."""

    EXISTS = "exists"
    CREATED = "created"


class UpdateStatus(str, Enum):
    """Per-item outcome of a quantity update."""

    UPDATED = "updated"
    NOT_FOUND = "not-found"


@dataclass
class SheetResult:
    status: SheetStatus
    sheet_name: str


@dataclass
class ItemUpdate:
    item: str
    status: UpdateStatus


def coerce_quantity(qty: Any) -> int | float | None:
    """Normalise an incoming quantity.

    Empty input becomes ``None``; numbers pass through; numeric strings are
    parsed. Anything else becomes NaN.
    """
    if qty is None:
        return None
    if isinstance(qty, bool):
        return int(qty)
    if isinstance(qty, (int, float)):
        return qty
    text = str(qty).strip()
    if not text:
        return None
    if "_" in text:
        return math.nan
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        return math.nan
    return value if math.isfinite(value) else math.nan


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _require(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Missing {field}", field=field)
    return str(value)


class SheetLedger:
    """Clone dated sheets from a template and read/write company columns."""

    def __init__(
        self,
        store: ExcelWorkbookStore,
        *,
        template_names: Sequence[str] = DEFAULT_TEMPLATE_NAMES,
        strict_quantities: bool = False,
    ) -> None:
        self._store = store
        self._template_names = tuple(template_names)
        self._strict_quantities = strict_quantities
        self._write_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def ensure_daily_sheet(self, date: Any) -> SheetResult:
        """Return the dated sheet, cloning it from the template on first use.

        Args:
            date: Date key; any non-blank identifier.

        Returns:
            SheetResult with status ``exists`` or ``created``.

        Raises:
            ValidationError: If the date is missing, is not a legal sheet name,
                or differs from an existing sheet name only by letter case.
            TemplateMissingError: If the workbook has no sheets.
        """
        sheet_name = sheet_key(_require(date, "date"))
        match = _INVALID_SHEET_CHARS.search(sheet_name)
        if match:
            raise ValidationError(
                f"Invalid character {match.group()} in sheet name",
                field="date",
                error_code=ErrorCode.INVALID_SHEET_NAME,
            )

        with (
            LogContext(sheet_name=sheet_name),
            timed_operation(logger, "ensure_daily_sheet") as metrics,
            self._write_lock,
        ):
            document = self._store.load()
            if document.get_sheet(sheet_name) is not None:
                logger.debug("Daily sheet already exists")
                return SheetResult(SheetStatus.EXISTS, sheet_name)

            # Workbooks compare sheet names case-insensitively
            clash = next(
                (
                    name
                    for name in document.sheet_names
                    if name.lower() == sheet_name.lower()
                ),
                None,
            )
            if clash is not None:
                raise ValidationError(
                    f'Sheet name "{sheet_name}" conflicts with existing sheet "{clash}"',
                    field="date",
                    error_code=ErrorCode.SHEET_NAME_CONFLICT,
                    details={"sheet_name": sheet_name, "existing_sheet": clash},
                )

            template = self._resolve_template(document)
            new_sheet = document.add_sheet(sheet_name, source_name=template.name)
            self._clone_sheet(template, new_sheet)

            document.mark_full_recalculation()
            self._store.save(document)

            metrics.sheets_created = 1
            metrics.rows_scanned = template.row_count
            logger.info(
                "Daily sheet created",
                template=template.name,
                rows=new_sheet.row_count,
                merges=len(new_sheet.merged_ranges),
            )
            return SheetResult(SheetStatus.CREATED, sheet_name)

    def read_company_quantities(self, date: Any, company: Any) -> dict[str, Any]:
        """Project one company column into an item -> quantity mapping.

        A company without a header column yields an empty mapping.

        Raises:
            ValidationError: If date or company is missing.
            SheetNotFoundError: If the dated sheet does not exist.
        """
        sheet_name = sheet_key(_require(date, "date"))
        company = _require(company, "company")

        with (
            LogContext(sheet_name=sheet_name),
            timed_operation(logger, "read_company_quantities") as metrics,
        ):
            sheet = self._get_sheet(self._store.load(), sheet_name)
            company_col = self.find_company_column(sheet, company)
            if company_col is None:
                logger.debug("Company has no column", company=company)
                return {}

            quantities: dict[str, Any] = {}
            for row, name in self.iter_items(sheet):
                value = cell_value(sheet.get_cell(row, company_col))
                quantities[name.strip()] = "" if is_blank(value) else value
            metrics.rows_scanned = len(quantities)
            return quantities

    def write_company_quantities(
        self, date: Any, company: Any, updates: Mapping[Any, Any] | None
    ) -> list[ItemUpdate]:
        """Merge item quantities into one company column.

        Formula cells keep their formula and receive the value as their
        cached result. Unknown items are reported per item and do not stop
        the batch.

        Returns:
            One ItemUpdate per input pair, in input order.

        Raises:
            ValidationError: If a required field is missing, or a quantity
                is non-numeric while strict quantities are enabled.
            SheetNotFoundError: If the dated sheet does not exist.
            CompanyNotFoundError: If no header matches the company.
        """
        sheet_name = sheet_key(_require(date, "date"))
        company = _require(company, "company")
        if updates is None:
            raise ValidationError("Missing quantities", field="quantities")
        if not isinstance(updates, Mapping):
            raise ValidationError(
                "quantities must be a mapping of item name to quantity",
                field="quantities",
            )

        normalized = [(str(item), coerce_quantity(qty)) for item, qty in updates.items()]
        if self._strict_quantities:
            invalid = [item for item, qty in normalized if _is_nan(qty)]
            if invalid:
                raise ValidationError(
                    "Quantities must be numeric",
                    field="quantities",
                    error_code=ErrorCode.INVALID_QUANTITY,
                    errors=[f"{item}: not a number" for item in invalid],
                )

        with (
            LogContext(sheet_name=sheet_name),
            timed_operation(logger, "write_company_quantities") as metrics,
            self._write_lock,
        ):
            document = self._store.load()
            sheet = self._get_sheet(document, sheet_name)
            company_col = self.find_company_column(sheet, company)
            if company_col is None:
                raise CompanyNotFoundError(company, sheet_name=sheet_name)

            row_map = {
                name.strip().lower(): row for row, name in self.iter_items(sheet)
            }
            metrics.rows_scanned = len(row_map)

            results: list[ItemUpdate] = []
            for item, qty in normalized:
                row = row_map.get(item.strip().lower())
                if row is None:
                    results.append(ItemUpdate(item, UpdateStatus.NOT_FOUND))
                    continue

                current = sheet.get_cell(row, company_col)
                if isinstance(current, FormulaCell):
                    sheet.set_cell(row, company_col, current.with_result(qty))
                else:
                    sheet.set_cell(row, company_col, ScalarCell(qty))
                results.append(ItemUpdate(item, UpdateStatus.UPDATED))

            document.mark_full_recalculation()
            self._store.save(document)

            updated = sum(1 for r in results if r.status is UpdateStatus.UPDATED)
            metrics.cells_written = updated
            logger.log_batch_result(
                sheet_name=sheet_name,
                company=company,
                updated=updated,
                not_found=len(results) - updated,
            )
            return results

    def download_document(self) -> bytes:
        """Return the persisted workbook bytes."""
        return self._store.read_bytes()

    # ------------------------------------------------------------------ #
    # Lookup helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def find_company_column(sheet: LedgerSheet, company: str) -> int | None:
        """Return the first header column matching the company, if any."""
        wanted = company.strip().lower()
        for col, cell in enumerate(sheet.get_row(HEADER_ROW), start=1):
            header = cell_value(cell)
            if is_blank(header):
                continue
            if str(header).strip().lower() == wanted:
                return col
        return None

    @staticmethod
    def iter_items(sheet: LedgerSheet) -> list[tuple[int, str]]:
        """List (row, item name) pairs down column B.

        The scan stops at the first empty item cell; anything below it is
        outside the ledger.
        """
        items: list[tuple[int, str]] = []
        row = FIRST_ITEM_ROW
        while True:
            name = cell_value(sheet.get_cell(row, ITEM_COLUMN))
            if is_blank(name):
                break
            items.append((row, str(name)))
            row += 1
        return items

    def _resolve_template(self, document: LedgerDocument) -> LedgerSheet:
        for name in self._template_names:
            sheet = document.get_sheet(name)
            if sheet is not None:
                return sheet
        if not document.sheets:
            raise TemplateMissingError(candidates=list(self._template_names))
        return document.sheets[0]

    @staticmethod
    def _get_sheet(document: LedgerDocument, sheet_name: str) -> LedgerSheet:
        sheet = document.get_sheet(sheet_name)
        if sheet is None:
            raise SheetNotFoundError(sheet_name)
        return sheet

    @staticmethod
    def _clone_sheet(template: LedgerSheet, target: LedgerSheet) -> None:
        # Cells are immutable, so copying the row lists shares no mutable state
        target.rows = [list(cells) for cells in template.rows]
        target.row_heights = dict(template.row_heights)
        target.merged_ranges = list(template.merged_ranges)
