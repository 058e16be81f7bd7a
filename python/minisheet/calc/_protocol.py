"""Recalculation result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CellDelta:
    """A single formula cell's value change from recalculation."""

    cell_ref: str
    old_value: Any
    new_value: Any
    formula: str | None = None  # the formula that produced new_value


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of one full recalculation pass over a sheet."""

    sheet_name: str
    deltas: tuple[CellDelta, ...]  # formula cells whose value changed
    total_formula_cells: int = 0
    cyclic_cells: frozenset[str] = frozenset()
    error_cells: frozenset[str] = frozenset()  # evaluated to #ERR

    @property
    def changed(self) -> bool:
        return bool(self.deltas)

    @property
    def changed_cells(self) -> list[str]:
        return [d.cell_ref for d in self.deltas]
