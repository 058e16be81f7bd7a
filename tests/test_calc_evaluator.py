"""Tests for minisheet.calc SheetEvaluator and the recalculation pass."""

from __future__ import annotations

from typing import Any

import pytest

from minisheet._worksheet import Sheet
from minisheet.calc._evaluator import SheetEvaluator, normalize_number, recalculate
from minisheet.calc._functions import FunctionRegistry, SheetError


def _sheet(cells: dict[str, str], columns: int = 10, rows: int = 40) -> Sheet:
    sheet = Sheet("Sheet1", columns, rows)
    for ref, raw in cells.items():
        sheet.write(ref, raw)
    return sheet


def _value(cells: dict[str, str], ref: str, **kwargs: Any) -> Any:
    sheet = _sheet(cells, **kwargs)
    recalculate(sheet)
    return sheet.cells[ref].computed_value


class TestArithmetic:
    @pytest.mark.parametrize(
        ("formula", "expected"),
        [
            ("=1+2", 3),
            ("=2+3*4", 14),
            ("=(2+3)*4", 20),
            ("=10-4-3", 3),
            ("=24/4/2", 3),
            ("=7/2", 3.5),
            ("=-5+2", -3),
            ("=-(2+3)", -5),
            ("=+4", 4),
            ("=2*-3", -6),
            ("=1.5e2+1", 151),
            ("=2E-1*10", 2),
            ("=  3 * ( 1 + 1 ) ", 6),
        ],
    )
    def test_expressions(self, formula: str, expected: Any) -> None:
        assert _value({"A1": formula}, "A1") == expected

    def test_integral_float_normalized(self) -> None:
        value = _value({"A1": "=0.5*4"}, "A1")
        assert value == 2
        assert isinstance(value, int)

    def test_references(self) -> None:
        cells = {"A1": "10", "A2": "20", "A3": "=A1+A2", "A4": "=A3*2"}
        assert _value(cells, "A4") == 60

    def test_text_is_zero_in_arithmetic(self) -> None:
        assert _value({"A1": "hello", "B1": "=A1+5"}, "B1") == 5

    def test_empty_is_zero_in_arithmetic(self) -> None:
        assert _value({"B1": "=A1*3+1"}, "B1") == 1

    def test_bare_reference_passes_text_through(self) -> None:
        assert _value({"A1": "hello", "B1": "=A1"}, "B1") == "hello"

    def test_bare_reference_to_empty_is_zero(self) -> None:
        assert _value({"B1": "=A1"}, "B1") == 0

    def test_out_of_grid_reference_is_zero(self) -> None:
        assert _value({"A1": "=Z99+1"}, "A1", columns=5, rows=5) == 1

    def test_zero_padded_reference(self) -> None:
        cells = {"A1": "5", "A2": "4", "B1": "=A01+1", "B2": "=A02", "B3": "=SUM(A01:A002)"}
        sheet = _sheet(cells)
        recalculate(sheet)
        assert sheet.cells["B1"].computed_value == 6
        assert sheet.cells["B2"].computed_value == 4
        assert sheet.cells["B3"].computed_value == 9
        sheet.write("A1", "7")
        recalculate(sheet)
        assert sheet.cells["B1"].computed_value == 8


class TestErrors:
    @pytest.mark.parametrize(
        "formula",
        [
            "=1/0",
            "=A1/0",
            "=foo",
            "=a1+1",
            "=NOPE(1)",
            "=1+",
            "=(1+2",
            "=",
            "=1 2",
            "=SUM(1,,2)",
        ],
    )
    def test_err_sentinel(self, formula: str) -> None:
        assert _value({"B1": formula}, "B1") is SheetError.ERR

    def test_err_propagates(self) -> None:
        cells = {"A1": "=1/0", "A2": "=A1+1", "A3": "=A2*2"}
        assert _value(cells, "A3") is SheetError.ERR

    def test_sentinel_compares_to_text(self) -> None:
        assert SheetError.ERR == "#ERR"
        assert SheetError.CYCLE == "#CYCLE"
        assert str(SheetError.CYCLE) == "#CYCLE"

    def test_first_error_wins(self) -> None:
        cells = {"A1": "=A1", "A2": "=1/0", "A3": "=A1+A2", "A4": "=A2+A1"}
        sheet = _sheet(cells)
        recalculate(sheet)
        assert sheet.cells["A3"].computed_value is SheetError.CYCLE
        assert sheet.cells["A4"].computed_value is SheetError.ERR


class TestCycles:
    def test_self_reference(self) -> None:
        assert _value({"A1": "=A1"}, "A1") is SheetError.CYCLE

    def test_mutual_reference(self) -> None:
        sheet = _sheet({"A1": "=B1", "B1": "=A1"})
        result = recalculate(sheet)
        assert sheet.cells["A1"].computed_value is SheetError.CYCLE
        assert sheet.cells["B1"].computed_value is SheetError.CYCLE
        assert result.cyclic_cells == frozenset({"A1", "B1"})

    def test_dependent_of_cycle(self) -> None:
        cells = {"A1": "=B1", "B1": "=A1", "C1": "=A1+1"}
        assert _value(cells, "C1") is SheetError.CYCLE

    def test_range_including_itself(self) -> None:
        assert _value({"A1": "1", "A3": "=SUM(A1:A3)"}, "A3") is SheetError.CYCLE

    def test_result_independent_of_entry_order(self) -> None:
        forward = _sheet({"A1": "=B1+1", "B1": "=C1+1", "C1": "=A1+1", "D1": "=C1"})
        backward = _sheet({"D1": "=C1", "C1": "=A1+1", "B1": "=C1+1", "A1": "=B1+1"})
        recalculate(forward)
        recalculate(backward)
        for ref in ("A1", "B1", "C1", "D1"):
            assert forward.cells[ref].computed_value is SheetError.CYCLE
            assert backward.cells[ref].computed_value is SheetError.CYCLE

    def test_cycle_broken_after_edit(self) -> None:
        sheet = _sheet({"A1": "=B1", "B1": "=A1"})
        recalculate(sheet)
        sheet.write("B1", "7")
        recalculate(sheet)
        assert sheet.cells["A1"].computed_value == 7


class TestAggregates:
    def test_sum_skips_text(self) -> None:
        cells = {"A1": "1", "A2": "x", "A3": "3", "B1": "=SUM(A1:A3)"}
        assert _value(cells, "B1") == 4

    def test_sum_skips_errors_and_empty(self) -> None:
        cells = {"A1": "2", "A2": "=1/0", "A4": "5", "B1": "=SUM(A1:A4)"}
        assert _value(cells, "B1") == 7

    def test_sum_mixed_args(self) -> None:
        cells = {"A1": "1", "A2": "2", "B1": "4", "C1": "=SUM(A1:A2, B1, 10, 2*3)"}
        assert _value(cells, "C1") == 23

    def test_sum_reversed_range(self) -> None:
        cells = {"A1": "1", "B2": "2", "C1": "=SUM(B2:A1)"}
        assert _value(cells, "C1") == 3

    def test_sum_in_expression(self) -> None:
        cells = {"A1": "1", "A2": "2", "B1": "=SUM(A1:A2)*10+1"}
        assert _value(cells, "B1") == 31

    def test_nested_aggregate(self) -> None:
        cells = {"A1": "1", "A2": "5", "A3": "3", "B1": "=SUM(MAX(A1:A3), MIN(A1:A3))"}
        assert _value(cells, "B1") == 6

    def test_lowercase_function_name(self) -> None:
        assert _value({"A1": "2", "B1": "=sum(A1, 3)"}, "B1") == 5

    def test_average(self) -> None:
        cells = {"A1": "1", "A2": "2", "A3": "x", "B1": "=AVERAGE(A1:A3)"}
        assert _value(cells, "B1") == 1.5

    def test_avg_alias(self) -> None:
        cells = {"A1": "2", "A2": "4", "B1": "=AVG(A1:A2)"}
        assert _value(cells, "B1") == 3

    def test_average_of_nothing_is_error(self) -> None:
        assert _value({"B1": "=AVERAGE(A1:A3)"}, "B1") is SheetError.ERR

    def test_min_max(self) -> None:
        cells = {"A1": "4", "A2": "-2", "A3": "9", "B1": "=MIN(A1:A3)", "B2": "=MAX(A1:A3)"}
        sheet = _sheet(cells)
        recalculate(sheet)
        assert sheet.cells["B1"].computed_value == -2
        assert sheet.cells["B2"].computed_value == 9

    def test_min_of_nothing_is_zero(self) -> None:
        assert _value({"B1": "=MIN(A1:A3)"}, "B1") == 0

    def test_count(self) -> None:
        cells = {"A1": "4", "A2": "word", "A3": "=1+1", "B1": "=COUNT(A1:A4)"}
        assert _value(cells, "B1") == 2

    def test_out_of_grid_range_is_skipped(self) -> None:
        cells = {"A1": "3", "B1": "=SUM(A1, A1:Z1)"}
        assert _value(cells, "B1", columns=5, rows=5) == 3

    def test_custom_function(self) -> None:
        registry = FunctionRegistry()
        registry.register("double", lambda values: 2 * sum(values))
        sheet = _sheet({"A1": "4", "B1": "=DOUBLE(A1)"})
        recalculate(sheet, registry)
        assert sheet.cells["B1"].computed_value == 8


class TestRecalculate:
    def test_idempotent(self) -> None:
        sheet = _sheet({"A1": "1", "A2": "=A1*2", "A3": "=SUM(A1:A2)", "A4": "=A4"})
        first = recalculate(sheet)
        snapshot = {ref: cell.computed_value for ref, cell in sheet.cells.items()}
        second = recalculate(sheet)
        assert {ref: cell.computed_value for ref, cell in sheet.cells.items()} == snapshot
        assert first.changed
        assert not second.changed

    def test_deltas_report_changed_formulas(self) -> None:
        sheet = _sheet({"A1": "1", "B1": "=A1+1", "C1": "=5"})
        recalculate(sheet)
        sheet.write("A1", "10")
        result = recalculate(sheet)
        assert result.changed_cells == ["B1"]
        assert result.deltas[0].old_value == 2
        assert result.deltas[0].new_value == 11
        assert result.deltas[0].formula == "=A1+1"

    def test_error_cells_reported(self) -> None:
        sheet = _sheet({"A1": "=1/0", "B1": "=2"})
        result = recalculate(sheet)
        assert result.error_cells == frozenset({"A1"})
        assert result.total_formula_cells == 2

    def test_clears_dirty_set(self) -> None:
        sheet = _sheet({"A1": "1", "B1": "=A1"})
        assert sheet.dirty == {"B1"}
        recalculate(sheet)
        assert sheet.dirty == set()

    def test_deep_chain(self) -> None:
        sheet = Sheet("Sheet1", 1, 1000)
        sheet.write("A1", "1")
        for row in range(2, 1001):
            sheet.write(f"A{row}", f"=A{row - 1}+1")
        recalculate(sheet)
        assert sheet.cells["A1000"].computed_value == 1000


class TestSheetEvaluator:
    def test_evaluate_all_returns_formula_values(self) -> None:
        sheet = _sheet({"A1": "3", "B1": "=A1*A1"})
        assert SheetEvaluator(sheet).evaluate_all() == {"B1": 9}

    def test_value_of_non_formula(self) -> None:
        sheet = _sheet({"A1": "3", "A2": "text"})
        ev = SheetEvaluator(sheet)
        assert ev.value_of("A1") == 3
        assert ev.value_of("A2") == "text"
        assert ev.value_of("A3") is None


class TestNormalizeNumber:
    def test_int_passthrough(self) -> None:
        assert normalize_number(5) == 5

    def test_fraction_kept(self) -> None:
        assert normalize_number(0.25) == 0.25

    def test_huge_float_kept(self) -> None:
        assert isinstance(normalize_number(1e20), float)
