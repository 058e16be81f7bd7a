"""Error sentinels and the aggregate-function registry."""

from __future__ import annotations

from typing import Any, Callable

# ---------------------------------------------------------------------------
# SheetError: sentinel values that propagate through formula chains
# ---------------------------------------------------------------------------


class SheetError:
    """Sentinel computed value signalling an evaluation failure.

    Use ``SheetError.of(code)`` to get the cached singleton for a code.
    Sentinels compare equal to their string code, so ``value == "#ERR"``
    works for callers that only see display text.
    """

    __slots__ = ("code",)
    _cache: dict[str, SheetError] = {}

    ERR: SheetError
    CYCLE: SheetError

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> SheetError:
        canon = code.upper()
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SheetError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


SheetError.ERR = SheetError.of("#ERR")
SheetError.CYCLE = SheetError.of("#CYCLE")


def is_error(val: Any) -> bool:
    """Return True if *val* is a SheetError sentinel."""
    return isinstance(val, SheetError)


def first_error(*values: Any) -> SheetError | None:
    """Return the first SheetError found in *values*, or None."""
    for v in values:
        if isinstance(v, SheetError):
            return v
    return None


class FormulaError(Exception):
    """Raised inside the evaluator; the formula's cell becomes ``#ERR``."""


# ---------------------------------------------------------------------------
# Aggregates. Each takes the flat list of resolved argument values: range
# members are already expanded in row-major order.
# ---------------------------------------------------------------------------


def numeric_values(values: list[Any]) -> list[int | float]:
    """Keep the numbers, skipping text, empty cells and error sentinels."""
    return [
        v for v in values
        if isinstance(v, (int, float)) and not isinstance(v, bool)
    ]


def _builtin_sum(args: list[Any]) -> int | float:
    return sum(numeric_values(args))


def _builtin_average(args: list[Any]) -> float:
    nums = numeric_values(args)
    if not nums:
        raise FormulaError("AVERAGE: no numeric values")
    return sum(nums) / len(nums)


def _builtin_min(args: list[Any]) -> int | float:
    nums = numeric_values(args)
    if not nums:
        return 0
    return min(nums)


def _builtin_max(args: list[Any]) -> int | float:
    nums = numeric_values(args)
    if not nums:
        return 0
    return max(nums)


def _builtin_count(args: list[Any]) -> int:
    """COUNT - counts numeric values only."""
    return len(numeric_values(args))


_BUILTINS: dict[str, Callable[[list[Any]], Any]] = {
    "SUM": _builtin_sum,
    "AVERAGE": _builtin_average,
    "AVG": _builtin_average,
    "MIN": _builtin_min,
    "MAX": _builtin_max,
    "COUNT": _builtin_count,
}


class FunctionRegistry:
    """Registry of aggregate implementations.

    Starts with the builtins and can be extended with custom aggregates.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[list[Any]], Any]] = dict(_BUILTINS)

    def register(self, name: str, func: Callable[[list[Any]], Any]) -> None:
        self._functions[name.upper()] = func

    def get(self, name: str) -> Callable[[list[Any]], Any] | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
