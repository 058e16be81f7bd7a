"""Selection model: anchor plus a set of highlighted cells."""

from __future__ import annotations

from minisheet._errors import EmptySelectionError
from minisheet._utils import CellRect, cell_id, parse_cell_id


class Selection:
    """Active selection of one workbook.

    ``click`` selects a single cell, ``shift_click`` extends a rectangle from
    the anchor, ``toggle_click`` adds or removes one cell (ctrl/cmd-click).
    """

    __slots__ = ("anchor", "cells")

    def __init__(self) -> None:
        self.anchor: str | None = None
        self.cells: set[str] = set()

    def click(self, ref: str) -> None:
        parse_cell_id(ref)
        self.cells = {ref}
        self.anchor = ref

    def shift_click(self, ref: str) -> None:
        """Select the rectangle between the anchor and *ref*; anchor unchanged.

        With no anchor this behaves like ``click``.
        """
        if self.anchor is None:
            self.click(ref)
            return
        self.cells = set(CellRect.spanning(self.anchor, ref).cells())

    def toggle_click(self, ref: str) -> None:
        parse_cell_id(ref)
        if ref in self.cells:
            self.cells.discard(ref)
        else:
            self.cells.add(ref)
        self.anchor = ref

    def clear(self) -> None:
        self.anchor = None
        self.cells = set()

    def step(self, d_row: int, d_col: int, columns: int, rows: int) -> str | None:
        """Move to the cell offset from the anchor, clamped to the grid.

        Used after committing an edit (Enter moves down). Returns the new
        anchor, or None when there is no anchor to move from.
        """
        if self.anchor is None:
            return None
        col, row = parse_cell_id(self.anchor)
        col = min(max(col + d_col, 0), columns - 1)
        row = min(max(row + d_row, 1), rows)
        target = cell_id(col, row)
        self.click(target)
        return target

    def prune(self, columns: int, rows: int) -> None:
        """Drop cells that no longer exist after the grid shrank."""
        rect = CellRect(0, 1, columns - 1, rows)
        self.cells = {ref for ref in self.cells if rect.contains(ref)}
        if self.anchor is not None and not rect.contains(self.anchor):
            self.anchor = None

    @property
    def is_empty(self) -> bool:
        return not self.cells

    def bounds(self, operation: str = "This operation") -> CellRect:
        """Bounding rectangle of the selected cells.

        Raises EmptySelectionError when nothing is selected.
        """
        if not self.cells:
            raise EmptySelectionError(operation)
        coords = [parse_cell_id(ref) for ref in self.cells]
        cols = [c for c, _ in coords]
        rows = [r for _, r in coords]
        return CellRect(min(cols), min(rows), max(cols), max(rows))

    def rect_cells(self, operation: str = "This operation") -> list[str]:
        """Every cell of the bounding rectangle, row-major."""
        return self.bounds(operation).cells()

    def ordered(self) -> list[str]:
        """Selected cells in row-major order."""
        return sorted(self.cells, key=lambda ref: parse_cell_id(ref)[::-1])

    def __contains__(self, ref: str) -> bool:
        return ref in self.cells

    def __len__(self) -> int:
        return len(self.cells)

    def __repr__(self) -> str:
        return f"<Selection anchor={self.anchor} cells={len(self.cells)}>"
