"""JSON payload and CSV conversion for workbooks.

The JSON payload is validated with pydantic models before any Sheet is
built, so a malformed document never leaves a half-imported workbook.
Computed values are never persisted; the caller recalculates after load.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from minisheet._cell import Cell, strip_line_endings
from minisheet._config import SheetConfig
from minisheet._errors import MinisheetError, WorkbookImportError
from minisheet._styles import BorderSpec, CellStyle, TableRange
from minisheet._utils import CellRect, cell_id, parse_cell_id
from minisheet._worksheet import Sheet

if TYPE_CHECKING:
    from minisheet._workbook import Workbook

logger = logging.getLogger(__name__)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BorderPayload(_Payload):
    top: str | None = None
    right: str | None = None
    bottom: str | None = None
    left: str | None = None


class StylePayload(_Payload):
    bold: bool = False
    italic: bool = False
    underline: bool = False
    align: Literal["left", "center", "right"] = "left"
    wrap: bool = False
    fill: str | None = None
    border: BorderPayload | None = None

    def to_style(self) -> CellStyle:
        border = BorderSpec(**self.border.model_dump()) if self.border else None
        return CellStyle(
            bold=self.bold,
            italic=self.italic,
            underline=self.underline,
            align=self.align,
            wrap=self.wrap,
            fill=self.fill or None,
        ).with_border(border)


class CellPayload(_Payload):
    raw_input: str = Field(default="", alias="rawInput")
    style: StylePayload | None = None


class TablePayload(_Payload):
    id: str
    start_col: int = Field(alias="startCol", ge=0)
    start_row: int = Field(alias="startRow", ge=1)
    end_col: int = Field(alias="endCol", ge=0)
    end_row: int = Field(alias="endRow", ge=1)
    header_fill: str = Field(alias="headerFill")
    body_fill: str = Field(alias="bodyFill")
    zebra: bool = True


class SheetPayload(_Payload):
    id: str | None = None
    name: str = Field(min_length=1)
    column_count: int = Field(alias="columnCount", ge=1)
    row_count: int = Field(alias="rowCount", ge=1)
    cells: dict[str, CellPayload] = Field(default_factory=dict)
    column_widths: dict[int, float] = Field(default_factory=dict, alias="columnWidths")
    row_heights: dict[int, float] = Field(default_factory=dict, alias="rowHeights")
    column_filters: dict[int, list[str]] = Field(default_factory=dict, alias="columnFilters")
    tables: list[TablePayload] = Field(default_factory=list)


class WorkbookPayload(_Payload):
    name: str = "Workbook"
    sheets: list[SheetPayload] = Field(min_length=1)
    active_sheet_index: int = Field(default=0, alias="activeSheetIndex", ge=0)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def sheet_to_payload(sheet: Sheet) -> dict[str, Any]:
    cells: dict[str, Any] = {}
    for ref, cell in sheet.iter_cells():
        cells[ref] = {
            "rawInput": cell.raw_input,
            "style": cell.style.to_dict() if cell.style is not None else None,
        }
    return {
        "id": sheet.id,
        "name": sheet.name,
        "columnCount": sheet.column_count,
        "rowCount": sheet.row_count,
        "cells": cells,
        "columnWidths": {str(c): w for c, w in sorted(sheet.column_widths.items())},
        "rowHeights": {str(r): h for r, h in sorted(sheet.row_heights.items())},
        "columnFilters": {str(c): sorted(v) for c, v in sorted(sheet.column_filters.items())},
        "tables": [t.to_dict() for t in sheet.tables],
    }


def workbook_to_payload(workbook: Workbook) -> dict[str, Any]:
    return {
        "name": workbook.name,
        "sheets": [sheet_to_payload(s) for s in workbook.sheets],
        "activeSheetIndex": workbook.active_index,
    }


def dump_json(payload: dict[str, Any], indent: int | None = None) -> str:
    return json.dumps(payload, indent=indent, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def parse_json(text: str | bytes) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Rejected workbook import: invalid JSON (%s)", exc)
        raise WorkbookImportError(f"Invalid workbook JSON: {exc}") from exc


def _build_sheet(data: SheetPayload, config: SheetConfig) -> Sheet:
    sheet = Sheet(data.name, data.column_count, data.row_count, config=config, sheet_id=data.id)
    for ref, cell in data.cells.items():
        parse_cell_id(ref)
        style = cell.style.to_style() if cell.style is not None else None
        if style is not None and style.is_default:
            style = None
        if strip_line_endings(cell.raw_input):
            sheet.put_cell(ref, Cell.from_input(cell.raw_input, style))
        elif style is not None:
            sheet.put_cell(ref, Cell.styled_blank(style))
    for col, width in data.column_widths.items():
        sheet.set_column_width(col, width)
    for row, height in data.row_heights.items():
        sheet.set_row_height(row, height)
    for col, values in data.column_filters.items():
        sheet.set_column_filter(col, values)
    for t in data.tables:
        rect = CellRect.spanning(cell_id(t.start_col, t.start_row), cell_id(t.end_col, t.end_row))
        if not sheet.rect.contains(cell_id(rect.max_col, rect.max_row)):
            raise ValueError(f"Table {t.id!r} extends outside sheet {data.name!r}")
        sheet.tables.append(TableRange(t.id, rect, t.header_fill, t.body_fill, t.zebra))
    return sheet


def workbook_from_payload(data: Any, config: SheetConfig) -> tuple[str, list[Sheet], int]:
    """Validate *data* and build fresh sheets from it.

    Returns ``(name, sheets, active_index)``. Nothing outside the returned
    objects is touched, so a failure leaves the caller's state intact.
    """
    try:
        payload = WorkbookPayload.model_validate(data)
        names = [s.name for s in payload.sheets]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate sheet names in {names}")
        ids = [s.id for s in payload.sheets if s.id]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate sheet ids")
        if payload.active_sheet_index >= len(payload.sheets):
            raise ValueError(
                f"activeSheetIndex {payload.active_sheet_index} out of range for "
                f"{len(payload.sheets)} sheet(s)"
            )
        sheets = [_build_sheet(s, config) for s in payload.sheets]
    except (ValidationError, MinisheetError, ValueError, KeyError) as exc:
        logger.warning("Rejected workbook import: %s", exc)
        raise WorkbookImportError(f"Invalid workbook payload: {exc}") from exc
    return payload.name, sheets, payload.active_sheet_index


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def sheet_to_csv(sheet: Sheet) -> str:
    """Raw inputs of the used area, every field quoted.

    The used area runs from A1 to the last row and column holding content;
    an empty sheet exports as an empty string.
    """
    used = [parse_cell_id(ref) for ref, cell in sheet.iter_cells() if not cell.is_empty]
    if not used:
        return ""
    max_col = max(c for c, _ in used)
    max_row = max(r for _, r in used)
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in range(1, max_row + 1):
        record = []
        for col in range(max_col + 1):
            cell = sheet.read(cell_id(col, row))
            record.append(cell.raw_input if cell is not None else "")
        writer.writerow(record)
    return buf.getvalue()


def csv_to_inputs(text: str, sheet: Sheet) -> dict[str, str]:
    """Map CSV fields onto CellIds from A1, dropping anything off the grid."""
    inputs: dict[str, str] = {}
    reader = csv.reader(io.StringIO(text))
    for row_idx, record in enumerate(reader, start=1):
        if row_idx > sheet.row_count:
            logger.debug("CSV import truncated at row %d", sheet.row_count)
            break
        for col_idx, value in enumerate(record[:sheet.column_count]):
            inputs[cell_id(col_idx, row_idx)] = value
    return inputs
