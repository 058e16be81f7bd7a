"""minisheet - a small spreadsheet engine with dependency-aware recalculation.

Usage::

    from minisheet import Workbook

    wb = Workbook()
    wb.write("A1", "1")
    wb.write("A2", "x")
    wb.write("A3", "3")
    wb.write("B1", "=SUM(A1:A3)")
    print(wb.get_visible_value("B1"))   # "4"

    wb.selection.click("A1")
    wb.selection.shift_click("B3")
    wb.toggle_style("bold")
    wb.undo()

    wb.save_xlsx("out.xlsx")
"""

import os

from minisheet._cell import Cell, CellKind
from minisheet._config import DEFAULT_CONFIG, SheetConfig
from minisheet._errors import (
    CellOutOfRangeError,
    DestructiveResizeError,
    EmptySelectionError,
    InvalidDimensionsError,
    LastSheetError,
    MinisheetError,
    SheetNotFoundError,
    WorkbookImportError,
)
from minisheet._history import HistoryEntry, HistoryManager
from minisheet._selection import Selection
from minisheet._styles import TABLE_STYLES, BorderSpec, CellStyle, TableRange
from minisheet._utils import CellRect, cell_id, column_name, parse_cell_id
from minisheet._workbook import Workbook
from minisheet._worksheet import Sheet
from minisheet.calc import RecalcResult, SheetError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "DEFAULT_CONFIG",
    "TABLE_STYLES",
    "BorderSpec",
    "Cell",
    "CellKind",
    "CellOutOfRangeError",
    "CellRect",
    "CellStyle",
    "DestructiveResizeError",
    "EmptySelectionError",
    "HistoryEntry",
    "HistoryManager",
    "InvalidDimensionsError",
    "LastSheetError",
    "MinisheetError",
    "RecalcResult",
    "Selection",
    "Sheet",
    "SheetConfig",
    "SheetError",
    "SheetNotFoundError",
    "TableRange",
    "Workbook",
    "WorkbookImportError",
    "cell_id",
    "column_name",
    "load_workbook",
    "parse_cell_id",
]


def load_workbook(filename: str | os.PathLike[str], config: SheetConfig | None = None) -> Workbook:
    """Open a workbook from ``.xlsx`` or minisheet ``.json``."""
    filename = str(filename)
    if filename.lower().endswith(".json"):
        with open(filename, encoding="utf-8") as fh:
            text = fh.read()
        wb = Workbook(config=config)
        wb.load_json(text)
        return wb
    return Workbook.load_xlsx(filename, config)
