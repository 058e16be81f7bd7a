"""minisheet.calc - reference resolution and recalculation for minisheet sheets."""

from minisheet.calc._evaluator import SheetEvaluator, recalculate
from minisheet.calc._functions import FunctionRegistry, SheetError, is_error
from minisheet.calc._graph import DependencyGraph
from minisheet.calc._parser import (
    ResolvedReferences,
    all_references,
    expand_range,
    resolve,
    shift_references,
)
from minisheet.calc._protocol import CellDelta, RecalcResult

__all__ = [
    "CellDelta",
    "DependencyGraph",
    "FunctionRegistry",
    "RecalcResult",
    "ResolvedReferences",
    "SheetError",
    "SheetEvaluator",
    "all_references",
    "expand_range",
    "is_error",
    "recalculate",
    "resolve",
    "shift_references",
]
