"""Snapshot-based undo/redo history."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from minisheet._cell import Cell
    from minisheet._workbook import Workbook

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """One cell's before/after snapshots.

    ``previous_cell is None``: the cell did not exist before the edit.
    ``next_cell is None``: the edit deleted the cell.
    """

    sheet_id: str
    cell_id: str
    previous_cell: Cell | None
    next_cell: Cell | None


# One user action; undone and redone as a unit.
HistoryStep = tuple[HistoryEntry, ...]


class HistoryManager:
    """Linear undo/redo stacks of history steps, bounded by *capacity*.

    ``record`` appends a single-entry step; entries recorded inside a
    ``batch()`` block form one step.
    """

    def __init__(self, capacity: int = 500) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be >= 1")
        self._capacity = capacity
        self._undo: deque[HistoryStep] = deque()
        self._redo: list[HistoryStep] = []
        self._pending: list[HistoryEntry] | None = None
        self._depth = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def record(self, entry: HistoryEntry) -> None:
        if self._pending is not None:
            self._pending.append(entry)
            return
        self._push((entry,))

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Group every entry recorded inside the block into one step.

        Nested batches fold into the outermost one. Nothing is pushed if the
        block raises or records nothing.
        """
        if self._depth == 0:
            self._pending = []
        self._depth += 1
        try:
            yield
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._pending = None
            raise
        self._depth -= 1
        if self._depth == 0:
            entries, self._pending = self._pending or [], None
            if entries:
                self._push(tuple(entries))

    def _push(self, step: HistoryStep) -> None:
        self._undo.append(step)
        self._redo.clear()
        while len(self._undo) > self._capacity:
            self._undo.popleft()

    def undo(self, workbook: Workbook) -> bool:
        """Restore the previous snapshots of the most recent step.

        Returns False when there is nothing to undo.
        """
        if not self._undo:
            return False
        step = self._undo.pop()
        for entry in reversed(step):
            workbook.sheet_by_id(entry.sheet_id).put_cell(entry.cell_id, entry.previous_cell)
        self._redo.append(step)
        self._recalculate(workbook, step)
        return True

    def redo(self, workbook: Workbook) -> bool:
        """Re-apply the next snapshots of the most recently undone step."""
        if not self._redo:
            return False
        step = self._redo.pop()
        for entry in step:
            workbook.sheet_by_id(entry.sheet_id).put_cell(entry.cell_id, entry.next_cell)
        self._undo.append(step)
        self._recalculate(workbook, step)
        return True

    @staticmethod
    def _recalculate(workbook: Workbook, step: HistoryStep) -> None:
        for sheet_id in dict.fromkeys(e.sheet_id for e in step):
            workbook.recalculate(workbook.sheet_by_id(sheet_id))

    def discard_sheet(self, sheet_id: str) -> None:
        """Drop every step that touches *sheet_id* from both stacks."""
        before = len(self._undo) + len(self._redo)
        self._undo = deque(s for s in self._undo if all(e.sheet_id != sheet_id for e in s))
        self._redo = [s for s in self._redo if all(e.sheet_id != sheet_id for e in s)]
        dropped = before - len(self._undo) - len(self._redo)
        if dropped:
            logger.info("Discarded %d history step(s) for sheet %s", dropped, sheet_id)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
