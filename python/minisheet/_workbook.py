"""Workbook: the session context owning sheets, selection and history.

Every mutation goes through here so that it is recorded in the history and
followed by a synchronous recalculation before control returns.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Callable, Iterator
from dataclasses import replace
from typing import Any

from minisheet._cell import Cell
from minisheet._config import DEFAULT_CONFIG, SheetConfig
from minisheet._errors import (
    DestructiveResizeError,
    EmptySelectionError,
    LastSheetError,
    SheetNotFoundError,
)
from minisheet._history import HistoryManager
from minisheet._selection import Selection
from minisheet._styles import TABLE_STYLES, CellStyle, TableRange, border_for
from minisheet._utils import parse_cell_id
from minisheet._worksheet import Sheet
from minisheet.calc._evaluator import recalculate
from minisheet.calc._functions import FunctionRegistry
from minisheet.calc._parser import shift_references
from minisheet.calc._protocol import RecalcResult

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[list[str]], bool]


class Workbook:
    """An ordered set of sheets plus the editing session around them."""

    def __init__(self, name: str = "Workbook", config: SheetConfig | None = None) -> None:
        self.config = config or DEFAULT_CONFIG
        self.name = name
        self._sheets: list[Sheet] = [Sheet("Sheet1", config=self.config)]
        self._active = 0
        self.selection = Selection()
        self.history = HistoryManager(self.config.history_capacity)
        self.functions = FunctionRegistry()

    # ------------------------------------------------------------------
    # Sheet access
    # ------------------------------------------------------------------

    @property
    def sheets(self) -> list[Sheet]:
        return list(self._sheets)

    @property
    def sheetnames(self) -> list[str]:
        return [s.name for s in self._sheets]

    @property
    def active(self) -> Sheet:
        return self._sheets[self._active]

    @property
    def active_index(self) -> int:
        return self._active

    def sheet(self, name: str) -> Sheet:
        for s in self._sheets:
            if s.name == name:
                return s
        raise SheetNotFoundError(f"Sheet '{name}' does not exist")

    def sheet_by_id(self, sheet_id: str) -> Sheet:
        for s in self._sheets:
            if s.id == sheet_id:
                return s
        raise SheetNotFoundError(f"No sheet with id {sheet_id!r}")

    def __getitem__(self, name: str) -> Sheet:
        return self.sheet(name)

    def __contains__(self, name: str) -> bool:
        return any(s.name == name for s in self._sheets)

    def __iter__(self) -> Iterator[Sheet]:
        return iter(list(self._sheets))

    def __len__(self) -> int:
        return len(self._sheets)

    def _target(self, sheet: Sheet | None) -> Sheet:
        return self.active if sheet is None else sheet

    # ------------------------------------------------------------------
    # Sheet management
    # ------------------------------------------------------------------

    def _unique_name(self, base: str) -> str:
        if base not in self:
            return base
        n = 2
        while f"{base} ({n})" in self:
            n += 1
        return f"{base} ({n})"

    def _check_new_name(self, name: str) -> str:
        name = name.strip()
        if not name:
            raise ValueError("Sheet name must not be empty")
        if name in self:
            raise ValueError(f"Sheet '{name}' already exists")
        return name

    def add_sheet(self, name: str | None = None, columns: int | None = None, rows: int | None = None) -> Sheet:
        """Append a new empty sheet and make it active."""
        if name is None:
            n = len(self._sheets) + 1
            while f"Sheet{n}" in self:
                n += 1
            name = f"Sheet{n}"
        name = self._check_new_name(name)
        sheet = Sheet(name, columns, rows, config=self.config)
        self._sheets.append(sheet)
        self.set_active(len(self._sheets) - 1)
        logger.info("Added sheet %r (%s)", name, sheet.id)
        return sheet

    def rename_sheet(self, old: str, new: str) -> Sheet:
        sheet = self.sheet(old)
        if new.strip() == old:
            return sheet
        sheet.name = self._check_new_name(new)
        logger.info("Renamed sheet %r to %r", old, sheet.name)
        return sheet

    def duplicate_sheet(self, name: str | None = None, new_name: str | None = None) -> Sheet:
        """Copy a sheet (the active one by default) right after the original."""
        source = self.active if name is None else self.sheet(name)
        target_name = self._check_new_name(new_name) if new_name else self._unique_name(f"{source.name} (copy)")
        dup = source.copy(target_name)
        idx = self._sheets.index(source) + 1
        self._sheets.insert(idx, dup)
        self.set_active(idx)
        recalculate(dup, self.functions)
        logger.info("Duplicated sheet %r as %r", source.name, dup.name)
        return dup

    def delete_sheet(self, name: str) -> None:
        """Remove a sheet and every history step touching it.

        The last remaining sheet can never be deleted.
        """
        sheet = self.sheet(name)
        if len(self._sheets) == 1:
            raise LastSheetError("Cannot delete the only sheet in a workbook")
        idx = self._sheets.index(sheet)
        was_active = idx == self._active
        del self._sheets[idx]
        self.history.discard_sheet(sheet.id)
        if idx < self._active or self._active >= len(self._sheets):
            self._active = max(self._active - 1, 0)
        if was_active:
            self.selection.clear()
        logger.info("Deleted sheet %r (%s)", name, sheet.id)

    def set_active(self, key: int | str) -> Sheet:
        """Switch the active sheet by index or name; clears the selection."""
        if isinstance(key, str):
            idx = self._sheets.index(self.sheet(key))
        else:
            if not 0 <= key < len(self._sheets):
                raise SheetNotFoundError(f"Sheet index {key} out of range")
            idx = key
        if idx != self._active:
            self.selection.clear()
        self._active = idx
        return self._sheets[idx]

    # ------------------------------------------------------------------
    # Cell content
    # ------------------------------------------------------------------

    def write(self, ref: str, raw_input: str, sheet: Sheet | None = None) -> RecalcResult:
        """Store *raw_input* at *ref*, record it, and recalculate."""
        target = self._target(sheet)
        entry = target.write(ref, raw_input)
        if entry is not None:
            self.history.record(entry)
        return self.recalculate(target)

    def read(self, ref: str, sheet: Sheet | None = None) -> Cell | None:
        return self._target(sheet).read(ref)

    def commit_edit(self, raw_input: str, d_row: int = 1, d_col: int = 0) -> RecalcResult:
        """Write to the selection anchor, then move the selection (Enter moves down)."""
        sheet = self.active
        anchor = self.selection.anchor
        if anchor is None:
            raise EmptySelectionError("Committing an edit")
        result = self.write(anchor, raw_input)
        self.selection.step(d_row, d_col, sheet.column_count, sheet.row_count)
        return result

    def _write_many(self, values: dict[str, str], sheet: Sheet) -> RecalcResult:
        # Reject the whole operation before the first write.
        sheet.check_refs(values)
        with self.history.batch():
            for ref, raw in values.items():
                entry = sheet.write(ref, raw)
                if entry is not None:
                    self.history.record(entry)
        return self.recalculate(sheet)

    def clear_cells(self, refs: list[str] | None = None) -> RecalcResult:
        """Remove the given cells (default: the selection) as one undo step."""
        if refs is None:
            self.selection.bounds("Clearing cells")
            refs = self.selection.ordered()
        return self._write_many(dict.fromkeys(refs, ""), self.active)

    def fill_selection(self, raw_input: str) -> RecalcResult:
        """Write the same input into every selected cell."""
        self.selection.bounds("Filling the selection")
        return self._write_many(dict.fromkeys(self.selection.ordered(), raw_input), self.active)

    def fill_down(self) -> RecalcResult:
        """Copy the top row of the selection rectangle into the rows below.

        Formula references shift by the row offset; other inputs copy as is.
        """
        rect = self.selection.bounds("Fill down")
        sheet = self.active
        cells = rect.cells()
        values: dict[str, str] = {}
        for col_offset, source_ref in enumerate(cells[:rect.width]):
            source = sheet.read(source_ref)
            for row_offset in range(1, rect.height):
                target = cells[row_offset * rect.width + col_offset]
                if source is None:
                    values[target] = ""
                elif source.is_formula:
                    values[target] = shift_references(source.raw_input, row_offset, 0)
                else:
                    values[target] = source.raw_input
        return self._write_many(values, sheet)

    # ------------------------------------------------------------------
    # Grid size
    # ------------------------------------------------------------------

    def resize(
        self,
        columns: int,
        rows: int,
        confirm: ConfirmCallback | None = None,
        sheet: Sheet | None = None,
    ) -> list[str]:
        """Resize a sheet's grid; returns the CellIds that were removed.

        A shrink that would drop non-empty cells needs ``confirm(removed)``
        to return True; otherwise DestructiveResizeError is raised and the
        sheet is left untouched. Any shrink discards the sheet's history.
        """
        target = self._target(sheet)
        removed = target.removed_by_resize(columns, rows)
        if removed and (confirm is None or not confirm(removed)):
            logger.warning(
                "Refused resize of %r to %dx%d: %d cell(s) would be removed",
                target.name, columns, rows, len(removed),
            )
            raise DestructiveResizeError(removed)
        shrinking = columns < target.column_count or rows < target.row_count
        target.resize(columns, rows)
        if shrinking:
            self.history.discard_sheet(target.id)
        if target is self.active:
            self.selection.prune(columns, rows)
        self.recalculate(target)
        return removed

    # ------------------------------------------------------------------
    # Styles
    # ------------------------------------------------------------------

    def _restyle(self, refs: list[str], fn: Callable[[str, CellStyle], CellStyle | None]) -> None:
        sheet = self.active
        sheet.check_refs(refs)
        with self.history.batch():
            for ref in refs:
                entry = sheet.set_style(ref, fn(ref, sheet.style_of(ref)))
                if entry is not None:
                    self.history.record(entry)

    def toggle_style(self, prop: str) -> None:
        """Toggle bold/italic/underline/wrap on the selection.

        Turns the property off only when every selected cell already has it.
        """
        self.selection.bounds(f"Toggling {prop}")
        refs = self.selection.ordered()
        turn_on = not all(getattr(self.active.style_of(r), prop) for r in refs)
        self._restyle(
            refs,
            lambda ref, style: style if getattr(style, prop) == turn_on else style.toggled(prop),
        )

    def cycle_align(self) -> str:
        """Advance the alignment of the first selected cell and apply it to all."""
        self.selection.bounds("Changing alignment")
        refs = self.selection.ordered()
        align = self.active.style_of(refs[0]).next_alignment().align
        self._restyle(refs, lambda ref, style: replace(style, align=align))
        return align

    def apply_fill(self, color: str | None) -> None:
        self.selection.bounds("Applying a fill")
        self._restyle(self.selection.ordered(), lambda ref, style: style.with_fill(color))

    def apply_border(self, kind: str) -> None:
        """Apply a border preset to the selection's bounding rectangle.

        ``all`` and ``none`` replace every cell's border; the other kinds
        add their lines to whatever each cell already has.
        """
        rect = self.selection.bounds("Applying a border")
        line = self.config.border_line

        def restyle(ref: str, style: CellStyle) -> CellStyle:
            spec = border_for(ref, rect, kind, line)
            if kind in ("all", "none") or style.border is None:
                return style.with_border(spec)
            return style.with_border(style.border.merged(spec))

        self._restyle(rect.cells(), restyle)

    def insert_table(self, style_name: str = "Blue Header", zebra: bool = True) -> TableRange:
        """Format the selection rectangle as a table with a bold header row.

        Undo reverts the cell styles only; the TableRange stays in
        ``sheet.tables`` until the sheet is resized past it or deleted.
        """
        if style_name not in TABLE_STYLES:
            raise ValueError(f"Unknown table style {style_name!r}; expected one of {sorted(TABLE_STYLES)}")
        rect = self.selection.bounds("Inserting a table")
        preset = TABLE_STYLES[style_name]
        table = TableRange(f"t_{uuid.uuid4().hex[:6]}", rect, preset.header, preset.body, zebra)
        header = set(table.header_cells())

        def restyle(ref: str, style: CellStyle) -> CellStyle:
            if ref in header:
                return replace(style, bold=True, fill=preset.header)
            body_index = parse_cell_id(ref)[1] - rect.min_row - 1
            fill = preset.body if not zebra or body_index % 2 == 0 else None
            return style.with_fill(fill)

        self._restyle(rect.cells(), restyle)
        self.active.tables.append(table)
        return table

    def get_style(self, ref: str, sheet: Sheet | None = None) -> CellStyle:
        return self._target(sheet).style_of(ref)

    # ------------------------------------------------------------------
    # Recalculation / history
    # ------------------------------------------------------------------

    def recalculate(self, sheet: Sheet | None = None) -> RecalcResult:
        return recalculate(self._target(sheet), self.functions)

    def get_visible_value(self, ref: str, sheet: Sheet | None = None) -> str:
        """Displayed text of a cell: computed value, sentinel, or ``""``."""
        return self._target(sheet).display_value(ref)

    def undo(self) -> bool:
        return self.history.undo(self)

    def redo(self) -> bool:
        return self.history.redo(self)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        from minisheet._serialize import workbook_to_payload

        return workbook_to_payload(self)

    def to_json(self, indent: int | None = None) -> str:
        from minisheet._serialize import dump_json

        return dump_json(self.to_dict(), indent)

    @classmethod
    def from_dict(cls, data: Any, config: SheetConfig | None = None) -> Workbook:
        wb = cls(config=config)
        wb.load_payload(data)
        return wb

    def load_payload(self, data: Any) -> None:
        """Replace this workbook's contents with a payload.

        Validation happens before anything is touched: a malformed payload
        raises WorkbookImportError and leaves the workbook as it was.
        """
        from minisheet._serialize import workbook_from_payload

        name, sheets, active = workbook_from_payload(data, self.config)
        self._replace_state(name, sheets, active)

    def load_json(self, text: str | bytes) -> None:
        from minisheet._serialize import parse_json

        self.load_payload(parse_json(text))

    def _replace_state(self, name: str, sheets: list[Sheet], active: int) -> None:
        self.name = name
        self._sheets = sheets
        self._active = active
        self.selection.clear()
        self.history.clear()
        for s in self._sheets:
            recalculate(s, self.functions)
        logger.info("Loaded workbook %r with %d sheet(s)", name, len(sheets))

    def export_csv(self, sheet: Sheet | None = None) -> str:
        from minisheet._serialize import sheet_to_csv

        return sheet_to_csv(self._target(sheet))

    def import_csv(self, text: str, sheet: Sheet | None = None) -> RecalcResult:
        """Write CSV rows from A1 as one undo step.

        Rows or columns beyond the grid are dropped.
        """
        from minisheet._serialize import csv_to_inputs

        target = self._target(sheet)
        return self._write_many(csv_to_inputs(text, target), target)

    def save_xlsx(self, filename: str | os.PathLike[str]) -> None:
        from minisheet._xlsx import save_workbook

        save_workbook(self, filename)

    @classmethod
    def load_xlsx(cls, filename: str | os.PathLike[str], config: SheetConfig | None = None) -> Workbook:
        from minisheet._xlsx import load_sheets

        wb = cls(config=config)
        sheets = load_sheets(filename, wb.config)
        wb._replace_state(os.path.splitext(os.path.basename(str(filename)))[0], sheets, 0)
        return wb

    def __repr__(self) -> str:
        return f"<Workbook [{self.name}] sheets={self.sheetnames} active={self.active.name!r}>"
