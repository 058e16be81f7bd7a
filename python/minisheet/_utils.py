"""CellId helpers: column letters, A1 coordinates and rectangles."""

from __future__ import annotations

import re
from dataclasses import dataclass

_CELL_ID_RE = re.compile(r"^([A-Z]+)([1-9][0-9]*)$")


def column_name(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    name = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        name = chr(ord("A") + rem) + name
    return name


def column_index(name: str) -> int:
    """A -> 0, Z -> 25, AA -> 26."""
    if not name or not name.isalpha() or not name.isupper():
        raise ValueError(f"Invalid column name: {name!r}")
    n = 0
    for ch in name:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def cell_id(col: int, row: int) -> str:
    """Build a CellId from a 0-based column and a 1-based row."""
    if row < 1:
        raise ValueError(f"Row must be >= 1, got {row}")
    return f"{column_name(col)}{row}"


def parse_cell_id(ref: str) -> tuple[int, int]:
    """``"B7"`` -> ``(1, 7)``: 0-based column, 1-based row.

    Raises ValueError for anything that is not an uppercase A1 reference.
    """
    m = _CELL_ID_RE.match(ref)
    if not m:
        raise ValueError(f"Invalid cell id: {ref!r}")
    row = int(m.group(2))
    if row < 1:
        raise ValueError(f"Invalid cell id: {ref!r}")
    return column_index(m.group(1)), row


def is_cell_id(ref: str) -> bool:
    try:
        parse_cell_id(ref)
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class CellRect:
    """Inclusive rectangle of cells: 0-based columns, 1-based rows."""

    min_col: int
    min_row: int
    max_col: int
    max_row: int

    @classmethod
    def spanning(cls, a: str, b: str) -> CellRect:
        """Rectangle with corners *a* and *b*, in any order."""
        c1, r1 = parse_cell_id(a)
        c2, r2 = parse_cell_id(b)
        return cls(min(c1, c2), min(r1, r2), max(c1, c2), max(r1, r2))

    @property
    def width(self) -> int:
        return self.max_col - self.min_col + 1

    @property
    def height(self) -> int:
        return self.max_row - self.min_row + 1

    def contains(self, ref: str) -> bool:
        col, row = parse_cell_id(ref)
        return self.min_col <= col <= self.max_col and self.min_row <= row <= self.max_row

    def cells(self) -> list[str]:
        """Every CellId in the rectangle, row-major."""
        return [
            cell_id(c, r)
            for r in range(self.min_row, self.max_row + 1)
            for c in range(self.min_col, self.max_col + 1)
        ]

    def __str__(self) -> str:
        return f"{cell_id(self.min_col, self.min_row)}:{cell_id(self.max_col, self.max_row)}"
