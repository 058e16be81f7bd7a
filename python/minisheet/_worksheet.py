"""Sheet: the per-sheet cell store plus grid size and layout state."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator
from typing import Any

from minisheet._cell import Cell, display_text, strip_line_endings
from minisheet._config import DEFAULT_CONFIG, SheetConfig
from minisheet._errors import CellOutOfRangeError, InvalidDimensionsError
from minisheet._history import HistoryEntry
from minisheet._styles import CellStyle, TableRange
from minisheet._utils import CellRect, cell_id, parse_cell_id
from minisheet.calc._graph import DependencyGraph


def new_sheet_id() -> str:
    return f"s_{uuid.uuid4().hex[:6]}"


class Sheet:
    """One sheet of a Workbook.

    ``cells`` maps CellId -> Cell and only ever holds ids inside the
    ``column_count`` x ``row_count`` grid. Mutations return the
    :class:`HistoryEntry` describing them (or None when nothing changed);
    recording it and recalculating is the Workbook's job.
    """

    __slots__ = (
        "id", "name", "_column_count", "_row_count", "cells",
        "column_widths", "row_heights", "column_filters", "tables",
        "dirty", "config", "_graph",
    )

    def __init__(
        self,
        name: str = "Sheet1",
        columns: int | None = None,
        rows: int | None = None,
        *,
        config: SheetConfig | None = None,
        sheet_id: str | None = None,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        columns = self.config.default_columns if columns is None else columns
        rows = self.config.default_rows if rows is None else rows
        self._check_dimensions(columns, rows)
        self.id = sheet_id or new_sheet_id()
        self.name = name
        self._column_count = columns
        self._row_count = rows
        self.cells: dict[str, Cell] = {}
        self.column_widths: dict[int, float] = {}
        self.row_heights: dict[int, float] = {}
        self.column_filters: dict[int, set[str]] = {}
        self.tables: list[TableRange] = []
        # Formula cells whose computed value may be stale.
        self.dirty: set[str] = set()
        self._graph = DependencyGraph()

    @property
    def column_count(self) -> int:
        return self._column_count

    @property
    def row_count(self) -> int:
        return self._row_count

    @property
    def rect(self) -> CellRect:
        return CellRect(0, 1, self._column_count - 1, self._row_count)

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def contains(self, ref: str) -> bool:
        col, row = parse_cell_id(ref)
        return col < self._column_count and row <= self._row_count

    def _check_ref(self, ref: str) -> None:
        try:
            inside = self.contains(ref)
        except ValueError:
            inside = False
        if not inside:
            raise CellOutOfRangeError(ref, self._column_count, self._row_count)

    def check_refs(self, refs: Iterable[str]) -> None:
        """Raise CellOutOfRangeError for the first ref outside the grid."""
        for ref in refs:
            self._check_ref(ref)

    def read(self, ref: str) -> Cell | None:
        return self.cells.get(ref)

    def __getitem__(self, ref: str) -> Cell:
        """``sheet['A1']`` -> Cell; KeyError if the cell is not present."""
        return self.cells[ref]

    def __contains__(self, ref: str) -> bool:
        return ref in self.cells

    def __len__(self) -> int:
        return len(self.cells)

    def iter_cells(self) -> Iterator[tuple[str, Cell]]:
        """Present cells in row-major order."""
        for ref in sorted(self.cells, key=lambda r: parse_cell_id(r)[::-1]):
            yield ref, self.cells[ref]

    def write(self, ref: str, raw_input: str) -> HistoryEntry | None:
        """Store user input, classifying it once.

        Input that is empty after stripping trailing newlines removes the
        cell. Any existing style is kept across a rewrite.
        """
        self._check_ref(ref)
        previous = self.cells.get(ref)
        if not strip_line_endings(raw_input):
            nxt = None
        else:
            nxt = Cell.from_input(raw_input, previous.style if previous else None)
        if previous is None and nxt is None:
            return None
        self.put_cell(ref, nxt)
        return HistoryEntry(self.id, ref, previous, nxt)

    def set_style(self, ref: str, style: CellStyle | None) -> HistoryEntry | None:
        """Replace a cell's style, creating a styled blank cell if needed.

        A blank cell whose style is cleared is removed.
        """
        self._check_ref(ref)
        if style is not None and style.is_default:
            style = None
        previous = self.cells.get(ref)
        if previous is None:
            if style is None:
                return None
            nxt: Cell | None = Cell.styled_blank(style)
        elif previous.style == style:
            return None
        elif previous.is_empty and style is None:
            nxt = None
        else:
            nxt = previous.with_style(style)
        # Styles never change values, so the dependency graph is untouched.
        if nxt is None:
            del self.cells[ref]
        else:
            self.cells[ref] = nxt
        return HistoryEntry(self.id, ref, previous, nxt)

    def style_of(self, ref: str) -> CellStyle:
        cell = self.cells.get(ref)
        return cell.style if cell is not None and cell.style is not None else CellStyle()

    def put_cell(self, ref: str, cell: Cell | None) -> None:
        """Low-level store: set or remove a snapshot and track dirtiness."""
        self._check_ref(ref)
        if cell is None:
            self.cells.pop(ref, None)
            self._graph.remove_formula(ref)
        else:
            self.cells[ref] = cell
            if cell.is_formula:
                self._graph.add_formula(ref, cell.raw_input, self)
            else:
                self._graph.remove_formula(ref)
        self.mark_dirty({ref})

    def mark_dirty(self, refs: set[str]) -> None:
        """Flag every formula downstream of *refs* (and *refs* themselves if formulas)."""
        self.dirty.update(r for r in refs if r in self._graph.formulas)
        self.dirty.update(self._graph.affected_cells(refs))

    def store_computed(self, ref: str, value: Any) -> None:
        """Record a recalculated value on a formula cell."""
        cell = self.cells[ref]
        if cell.computed_value is not value:
            self.cells[ref] = cell.with_computed(value)

    def display_value(self, ref: str) -> str:
        cell = self.cells.get(ref)
        return "" if cell is None else display_text(cell.computed_value)

    def rebuild_graph(self) -> None:
        self._graph = DependencyGraph.from_sheet(self)
        self.dirty = set(self._graph.formulas)

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    # ------------------------------------------------------------------
    # Grid size
    # ------------------------------------------------------------------

    def _check_dimensions(self, columns: int, rows: int) -> None:
        cfg = self.config
        if not 1 <= columns <= cfg.max_columns:
            raise InvalidDimensionsError(f"Column count must be 1..{cfg.max_columns}, got {columns}")
        if not 1 <= rows <= cfg.max_rows:
            raise InvalidDimensionsError(f"Row count must be 1..{cfg.max_rows}, got {rows}")

    def removed_by_resize(self, columns: int, rows: int) -> list[str]:
        """Cells (row-major) that a resize to ``columns`` x ``rows`` would drop."""
        keep = CellRect(0, 1, columns - 1, rows)
        return [ref for ref, _ in self.iter_cells() if not keep.contains(ref)]

    def resize(self, columns: int, rows: int) -> list[str]:
        """Change the grid size, removing every cell that falls outside it.

        Returns the removed CellIds. Confirmation policy lives in
        ``Workbook.resize``.
        """
        self._check_dimensions(columns, rows)
        removed = self.removed_by_resize(columns, rows)
        for ref in removed:
            del self.cells[ref]
        self._column_count = columns
        self._row_count = rows
        self.column_widths = {c: w for c, w in self.column_widths.items() if c < columns}
        self.row_heights = {r: h for r, h in self.row_heights.items() if r <= rows}
        self.column_filters = {c: v for c, v in self.column_filters.items() if c < columns}
        self.tables = [t for t in self.tables if t.rect.max_col < columns and t.rect.max_row <= rows]
        # References may have moved in or out of the grid.
        self.rebuild_graph()
        return removed

    # ------------------------------------------------------------------
    # Column widths / row heights
    # ------------------------------------------------------------------

    def set_column_width(self, col: int, width: float) -> float:
        if not 0 <= col < self._column_count:
            raise CellOutOfRangeError(f"column {col}", self._column_count, self._row_count)
        cfg = self.config
        width = min(max(float(width), cfg.min_column_width), cfg.max_column_width)
        self.column_widths[col] = width
        return width

    def set_row_height(self, row: int, height: float) -> float:
        if not 1 <= row <= self._row_count:
            raise CellOutOfRangeError(f"row {row}", self._column_count, self._row_count)
        cfg = self.config
        height = min(max(float(height), cfg.min_row_height), cfg.max_row_height)
        self.row_heights[row] = height
        return height

    def column_width(self, col: int) -> float:
        return self.column_widths.get(col, self.config.default_column_width)

    # ------------------------------------------------------------------
    # Column filters
    # ------------------------------------------------------------------

    def filter_values(self, col: int) -> list[str]:
        """Distinct non-empty display values of a column, sorted."""
        values = {
            self.display_value(cell_id(col, r)) for r in range(1, self._row_count + 1)
        }
        values.discard("")
        return sorted(values)

    def set_column_filter(self, col: int, allowed: Iterable[str]) -> None:
        """Show only rows whose value in *col* is one of *allowed*.

        An empty *allowed* set removes the filter.
        """
        if not 0 <= col < self._column_count:
            raise CellOutOfRangeError(f"column {col}", self._column_count, self._row_count)
        values = set(allowed)
        if values:
            self.column_filters[col] = values
        else:
            self.column_filters.pop(col, None)

    def clear_column_filter(self, col: int) -> None:
        self.column_filters.pop(col, None)

    def visible_rows(self) -> list[int]:
        """1-based rows that pass every column filter."""
        if not self.column_filters:
            return list(range(1, self._row_count + 1))
        return [
            r for r in range(1, self._row_count + 1)
            if all(
                self.display_value(cell_id(c, r)) in allowed
                for c, allowed in self.column_filters.items()
            )
        ]

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def copy(self, name: str) -> Sheet:
        """Independent duplicate with a fresh id; cells are immutable and shared."""
        dup = Sheet(name, self._column_count, self._row_count, config=self.config)
        dup.cells = dict(self.cells)
        dup.column_widths = dict(self.column_widths)
        dup.row_heights = dict(self.row_heights)
        dup.column_filters = {c: set(v) for c, v in self.column_filters.items()}
        dup.tables = [
            TableRange(f"t_{uuid.uuid4().hex[:6]}", t.rect, t.header_fill, t.body_fill, t.zebra)
            for t in self.tables
        ]
        dup.rebuild_graph()
        return dup

    def __repr__(self) -> str:
        return f"<Sheet [{self.name}] {self._column_count}x{self._row_count} cells={len(self.cells)}>"
