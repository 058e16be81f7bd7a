"""Structural errors.

Formula problems never raise; they become ``#ERR`` / ``#CYCLE`` values.
The exceptions here reject an operation before it mutates anything.

    MinisheetError
    ├── WorkbookImportError        malformed payload, nothing imported
    ├── EmptySelectionError        rectangle operation on an empty selection
    ├── DestructiveResizeError     shrink would drop cells and was not confirmed
    ├── InvalidDimensionsError     grid size outside the configured limits
    ├── CellOutOfRangeError        CellId outside the sheet's grid
    ├── SheetNotFoundError
    └── LastSheetError             deleting the only sheet
"""

from __future__ import annotations


class MinisheetError(Exception):
    """Base class for every structural error raised by minisheet."""


class WorkbookImportError(MinisheetError, ValueError):
    pass


class EmptySelectionError(MinisheetError):
    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation} requires a non-empty selection")
        self.operation = operation


class DestructiveResizeError(MinisheetError):
    def __init__(self, removed: list[str]) -> None:
        super().__init__(
            f"Resize would remove {len(removed)} non-empty cell(s) and was not confirmed"
        )
        self.removed = removed


class InvalidDimensionsError(MinisheetError, ValueError):
    pass


class CellOutOfRangeError(MinisheetError, KeyError):
    def __init__(self, ref: str, columns: int, rows: int) -> None:
        super().__init__(f"Cell {ref!r} is outside the {columns}x{rows} grid")
        self.ref = ref

    def __str__(self) -> str:
        return str(self.args[0])


class SheetNotFoundError(MinisheetError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0])


class LastSheetError(MinisheetError):
    pass
