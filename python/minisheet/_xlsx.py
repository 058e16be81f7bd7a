""".xlsx interchange through openpyxl.

Only raw inputs travel: formulas are written as formulas and recomputed on
load. Styles map onto the subset openpyxl and minisheet share (font flags,
horizontal alignment, wrap, solid fill, thin borders).
"""

from __future__ import annotations

import datetime
import logging
import os
import re
import zipfile
from typing import TYPE_CHECKING, Any

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import column_index_from_string, get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from minisheet._cell import Cell, display_text
from minisheet._config import SheetConfig
from minisheet._errors import WorkbookImportError
from minisheet._styles import ALIGNMENTS, BorderSpec, CellStyle
from minisheet._utils import cell_id
from minisheet._worksheet import Sheet

if TYPE_CHECKING:
    from minisheet._workbook import Workbook

logger = logging.getLogger(__name__)

_HEX_COLOR_RE = re.compile(r"#?([0-9A-Fa-f]{6})")

# Pixel <-> Excel unit conversions (default Calibri 11).
_PX_PER_CHAR = 7.0
_PX_PER_POINT = 4.0 / 3.0

_THIN = Side(style="thin")


def _excel_color(color: str | None) -> str | None:
    if not color:
        return None
    m = _HEX_COLOR_RE.fullmatch(color.strip())
    return m.group(1).upper() if m else None


def _to_openpyxl(style: CellStyle) -> dict[str, Any]:
    attrs: dict[str, Any] = {
        "font": Font(bold=style.bold, italic=style.italic, underline="single" if style.underline else None),
        "alignment": Alignment(horizontal=style.align, wrap_text=style.wrap),
    }
    color = _excel_color(style.fill)
    if color is not None:
        attrs["fill"] = PatternFill(fill_type="solid", fgColor=color)
    elif style.fill:
        logger.debug("Fill %r has no xlsx equivalent; dropped", style.fill)
    if style.border is not None:
        attrs["border"] = Border(
            top=_THIN if style.border.top else Side(),
            right=_THIN if style.border.right else Side(),
            bottom=_THIN if style.border.bottom else Side(),
            left=_THIN if style.border.left else Side(),
        )
    return attrs


def _cell_value(cell: Cell) -> Any:
    # Numbers go in as numbers so Excel treats them as numeric.
    if cell.is_formula:
        return cell.raw_input.rstrip("\r\n")
    if isinstance(cell.computed_value, (int, float)) and not isinstance(cell.computed_value, bool):
        return cell.computed_value
    return cell.raw_input or None


def save_workbook(workbook: Workbook, filename: str | os.PathLike[str]) -> None:
    """Write every sheet of *workbook* to an .xlsx file."""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for sheet in workbook.sheets:
        ws = wb.create_sheet(title=sheet.name)
        for ref, cell in sheet.iter_cells():
            target = ws[ref]
            target.value = _cell_value(cell)
            if cell.style is not None:
                for attr, value in _to_openpyxl(cell.style).items():
                    setattr(target, attr, value)
        for col, width in sheet.column_widths.items():
            ws.column_dimensions[get_column_letter(col + 1)].width = width / _PX_PER_CHAR
        for row, height in sheet.row_heights.items():
            ws.row_dimensions[row].height = height / _PX_PER_POINT
    wb.active = workbook.active_index
    wb.save(str(filename))
    logger.debug("Saved %d sheet(s) to %s", len(workbook.sheets), filename)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _raw_input(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return display_text(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


def _from_openpyxl(cell: Any, line: str) -> CellStyle | None:
    font = cell.font
    align = cell.alignment.horizontal if cell.alignment.horizontal in ALIGNMENTS else "left"
    fill = None
    if cell.fill is not None and cell.fill.fill_type == "solid":
        rgb = cell.fill.fgColor.rgb
        if isinstance(rgb, str) and len(rgb) >= 6:
            fill = f"#{rgb[-6:].lower()}"
    border = None
    if cell.border is not None:
        border = BorderSpec(
            top=line if cell.border.top.style else None,
            right=line if cell.border.right.style else None,
            bottom=line if cell.border.bottom.style else None,
            left=line if cell.border.left.style else None,
        )
    style = CellStyle(
        bold=bool(font.b),
        italic=bool(font.i),
        underline=bool(font.u),
        align=align,
        wrap=bool(cell.alignment.wrap_text),
        fill=fill,
    ).with_border(border)
    return None if style.is_default else style


def load_sheets(filename: str | os.PathLike[str], config: SheetConfig) -> list[Sheet]:
    """Read every worksheet of an .xlsx file into new Sheets.

    Content beyond the configured grid limits is dropped with a warning.
    """
    try:
        wb = openpyxl.load_workbook(str(filename))
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
        logger.warning("Rejected workbook import: %s is not a readable .xlsx file (%s)", filename, exc)
        raise WorkbookImportError(f"Cannot read {filename}: {exc}") from exc
    sheets: list[Sheet] = []
    try:
        for ws in wb.worksheets:
            columns = min(max(ws.max_column, config.default_columns), config.max_columns)
            rows = min(max(ws.max_row, config.default_rows), config.max_rows)
            if ws.max_column > columns or ws.max_row > rows:
                logger.warning(
                    "Sheet %r is %dx%d; content beyond %dx%d dropped",
                    ws.title, ws.max_column, ws.max_row, columns, rows,
                )
            sheet = Sheet(ws.title, columns, rows, config=config)
            for row in ws.iter_rows(min_row=1, max_row=rows, max_col=columns):
                for xl_cell in row:
                    style = _from_openpyxl(xl_cell, config.border_line) if xl_cell.has_style else None
                    ref = cell_id(xl_cell.column - 1, xl_cell.row)
                    if xl_cell.value is not None and xl_cell.value != "":
                        sheet.put_cell(ref, Cell.from_input(_raw_input(xl_cell.value), style))
                    elif style is not None:
                        sheet.put_cell(ref, Cell.styled_blank(style))
            for letter, dim in ws.column_dimensions.items():
                col = column_index_from_string(letter) - 1
                if dim.width and col < columns:
                    sheet.set_column_width(col, dim.width * _PX_PER_CHAR)
            for idx, dim in ws.row_dimensions.items():
                if dim.height and idx <= rows:
                    sheet.set_row_height(idx, dim.height * _PX_PER_POINT)
            sheets.append(sheet)
    finally:
        wb.close()
    if not sheets:
        sheets.append(Sheet(config=config))
    return sheets
