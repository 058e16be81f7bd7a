"""Tests for minisheet.calc sentinels, registry and aggregate builtins."""

from __future__ import annotations

import pytest

from minisheet.calc._functions import (
    _BUILTINS,
    FormulaError,
    FunctionRegistry,
    SheetError,
    first_error,
    is_error,
    numeric_values,
)


class TestSheetError:
    def test_singletons(self) -> None:
        assert SheetError.of("#err") is SheetError.ERR
        assert SheetError.of("#CYCLE") is SheetError.CYCLE

    def test_is_error(self) -> None:
        assert is_error(SheetError.ERR)
        assert not is_error("#ERR")
        assert not is_error(0)

    def test_first_error(self) -> None:
        assert first_error(1, SheetError.CYCLE, SheetError.ERR) is SheetError.CYCLE
        assert first_error(1, "x", None) is None

    def test_hashable(self) -> None:
        assert {SheetError.ERR, SheetError.of("#ERR")} == {SheetError.ERR}


class TestFunctionRegistry:
    def test_builtins_registered(self) -> None:
        reg = FunctionRegistry()
        for name in ("SUM", "AVERAGE", "AVG", "MIN", "MAX", "COUNT"):
            assert reg.has(name)
        assert reg.supported_functions == frozenset(_BUILTINS)

    def test_lookup_case_insensitive(self) -> None:
        reg = FunctionRegistry()
        assert reg.get("sum") is reg.get("SUM")
        assert reg.get("VLOOKUP") is None

    def test_register_custom(self) -> None:
        reg = FunctionRegistry()
        reg.register("first", lambda values: values[0])
        assert reg.has("FIRST")

    def test_registries_are_independent(self) -> None:
        a = FunctionRegistry()
        b = FunctionRegistry()
        a.register("ONLY_A", lambda values: 1)
        assert not b.has("ONLY_A")


class TestNumericValues:
    def test_filters_non_numbers(self) -> None:
        values = [1, 2.5, "x", None, SheetError.ERR, True]
        assert numeric_values(values) == [1, 2.5]


class TestBuiltins:
    def test_sum(self) -> None:
        assert _BUILTINS["SUM"]([1, "a", 2, None]) == 3

    def test_sum_empty(self) -> None:
        assert _BUILTINS["SUM"]([]) == 0

    def test_average(self) -> None:
        assert _BUILTINS["AVERAGE"]([1, 2, 3, "x"]) == 2

    def test_average_empty_raises(self) -> None:
        with pytest.raises(FormulaError):
            _BUILTINS["AVERAGE"](["x", None])

    def test_min_max(self) -> None:
        assert _BUILTINS["MIN"]([3, -1, "z"]) == -1
        assert _BUILTINS["MAX"]([3, -1, SheetError.CYCLE]) == 3

    def test_min_max_empty(self) -> None:
        assert _BUILTINS["MIN"]([]) == 0
        assert _BUILTINS["MAX"](["only text"]) == 0

    def test_count(self) -> None:
        assert _BUILTINS["COUNT"]([1, "2", 3.5, None, SheetError.ERR]) == 2
