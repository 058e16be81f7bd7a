"""SheetEvaluator: constrained recursive expression evaluator for formulas.

A formula body is split at top-level operators with balanced-parenthesis
matching, so ``=(A1+A2)*SUM(B1:B3)/2`` evaluates with the usual precedence.
Only numeric literals, cell references, ``+ - * /``, parentheses and the
registered aggregate functions are understood; any other text is an error.
Nothing is ever handed to Python's ``eval``.
"""

from __future__ import annotations

import logging
import math
import re
from typing import TYPE_CHECKING, Any

from minisheet.calc._functions import FormulaError, FunctionRegistry, SheetError, first_error
from minisheet.calc._graph import DependencyGraph
from minisheet.calc._parser import canonical_ref, expand_range, is_range, is_reference, split_range
from minisheet.calc._protocol import CellDelta, RecalcResult

if TYPE_CHECKING:
    from minisheet._worksheet import Sheet

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_MANTISSA_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
# A well-formed reference that resolve() rejected because it lies outside the
# grid. It stays literal text, which is 0 in arithmetic.
_LITERAL_REF_RE = re.compile(r"[A-Z]+[0-9]+")

# ---------------------------------------------------------------------------
# Expression parsing helpers
# ---------------------------------------------------------------------------


def _find_matching_paren(expr: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *expr[start]*, or -1."""
    depth = 1
    i = start + 1
    while i < len(expr):
        ch = expr[i]
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _match_function_call(expr: str) -> tuple[str, str] | None:
    """If *expr* is exactly ``FUNC(balanced_args)``, return ``(name, args_str)``.

    ``SUM(A1:A5)*2`` is NOT matched: there is trailing content after the
    close-paren.
    """
    m = re.match(r'^([A-Za-z][A-Za-z0-9_.]*)\s*\(', expr)
    if not m:
        return None
    open_idx = m.end() - 1
    close_idx = _find_matching_paren(expr, open_idx)
    if close_idx >= 0 and close_idx == len(expr) - 1:
        return (m.group(1), expr[open_idx + 1 : close_idx])
    return None


def _find_top_level_split(expr: str) -> tuple[str, str, str] | None:
    """Find the rightmost lowest-precedence binary operator at paren depth 0.

    Additive operators bind looser than multiplicative ones. Scanning right
    to left gives left-to-right associativity. Returns ``(left, op, right)``
    or ``None``.
    """
    for ops in (('+', '-'), ('*', '/')):
        depth = 0
        i = len(expr) - 1
        while i > 0:
            ch = expr[i]
            if ch == ')':
                depth += 1
            elif ch == '(':
                depth -= 1
            elif depth == 0 and ch in ops:
                # Must be binary: the preceding non-space char ends an operand.
                j = i - 1
                while j >= 0 and expr[j] == ' ':
                    j -= 1
                if j >= 0 and expr[j] not in "(,+-*/" and not (
                    ch in "+-" and expr[j] in "eE" and _is_mantissa(expr, j)
                ):
                    left = expr[:i].strip()
                    right = expr[i + 1 :].strip()
                    if left and right:
                        return (left, ch, right)
            i -= 1
    return None


def _is_mantissa(expr: str, e_idx: int) -> bool:
    """True when the "e" at *e_idx* is the exponent marker of a number literal."""
    start = e_idx
    while start > 0 and (expr[start - 1].isdigit() or expr[start - 1] == "."):
        start -= 1
    # Digits right after a letter belong to a cell reference such as A1.
    if start > 0 and (expr[start - 1].isalpha() or expr[start - 1] == "_"):
        return False
    return _MANTISSA_RE.fullmatch(expr[start:e_idx]) is not None


def _split_top_level_args(args_str: str) -> list[str]:
    """Split on commas at depth 0 without resolving anything."""
    args: list[str] = []
    depth = 0
    current = ""
    for ch in args_str:
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        elif ch == ',' and depth == 0:
            args.append(current.strip())
            current = ""
            continue
        current += ch
    args.append(current.strip())
    return args


def _arith(value: Any) -> Any:
    """Coerce a cell value for arithmetic: text and empty are 0."""
    if isinstance(value, SheetError):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return 0


def _binary_op(left: Any, op: str, right: Any) -> Any:
    """Evaluate an arithmetic binary operation; sentinels propagate."""
    err = first_error(left, right)
    if err is not None:
        return err
    if op == '+':
        return left + right
    if op == '-':
        return left - right
    if op == '*':
        return left * right
    if right == 0:
        raise FormulaError("division by zero")
    return left / right


def normalize_number(value: Any) -> Any:
    """Integral floats become ints; non-finite numbers are an error."""
    if isinstance(value, float):
        if not math.isfinite(value):
            raise FormulaError("non-finite result")
        if value.is_integer() and abs(value) < 1e15:
            return int(value)
    return value


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class SheetEvaluator:
    """Evaluates every formula of one sheet in a single memoized pass.

    Usage::

        evaluator = SheetEvaluator(sheet)
        values = evaluator.evaluate_all()

    The memo table lives as long as the evaluator; build a new one per pass.
    """

    def __init__(self, sheet: Sheet, functions: FunctionRegistry | None = None) -> None:
        self._sheet = sheet
        self._functions = functions or FunctionRegistry()
        self._graph = DependencyGraph.from_sheet(sheet)
        self._cyclic = self._graph.cyclic_cells()
        self._memo: dict[str, Any] = {}
        self._in_progress: set[str] = set()

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def cyclic_cells(self) -> set[str]:
        return set(self._cyclic)

    def evaluate_all(self) -> dict[str, Any]:
        """Evaluate every formula cell; returns cell_ref -> computed value."""
        for cell_ref in self._graph.evaluation_order():
            self.value_of(cell_ref)
        return {ref: self._memo[ref] for ref in self._graph.formulas}

    def value_of(self, cell_ref: str) -> Any:
        """The value of *cell_ref* for this pass (memoized for formulas)."""
        if cell_ref in self._memo:
            return self._memo[cell_ref]
        cell = self._sheet.cells.get(cell_ref)
        if cell is None:
            return None
        if not cell.is_formula:
            return cell.computed_value
        if cell_ref in self._cyclic or cell_ref in self._in_progress:
            self._memo[cell_ref] = SheetError.CYCLE
            return SheetError.CYCLE

        self._in_progress.add(cell_ref)
        try:
            value = self._evaluate_formula(cell_ref, cell.raw_input)
        finally:
            self._in_progress.discard(cell_ref)
        # A re-entrant visit may already have pinned this cell to #CYCLE.
        self._memo.setdefault(cell_ref, value)
        return self._memo[cell_ref]

    # ------------------------------------------------------------------
    # Formula evaluation (recursive descent)
    # ------------------------------------------------------------------

    def _evaluate_formula(self, cell_ref: str, formula: str) -> Any:
        """Evaluate one formula string (starting with ``=``)."""
        body = formula.rstrip('\r\n')
        if body.startswith('='):
            body = body[1:]
        body = body.strip()
        try:
            # A bare reference passes the referenced value through, text included.
            if is_reference(body, self._sheet):
                value = self.value_of(canonical_ref(body))
                return 0 if value is None else normalize_number(value)
            return normalize_number(self._eval_expr(body))
        except (FormulaError, ArithmeticError, ValueError, RecursionError) as e:
            logger.debug("Cannot evaluate formula %r in %s: %s", formula, cell_ref, e)
            return SheetError.ERR

    def _eval_expr(self, expr: str) -> Any:
        """Recursively evaluate an expression (no leading ``=``).

        Dispatch order (first match wins):

        1. Binary split at top level (paren-aware, precedence-correct)
        2. Parenthesized sub-expression ``(...)``
        3. Function call ``FUNC(balanced_args)``
        4. Unary minus / plus
        5. Numeric literal
        6. Cell reference
        7. Out-of-grid reference (literal text, so 0)
        """
        expr = expr.strip()
        if not expr:
            raise FormulaError("empty expression")

        # 1. Binary split (additive -> multiplicative)
        split = _find_top_level_split(expr)
        if split:
            left_str, op, right_str = split
            left_val = self._eval_expr(left_str)
            right_val = self._eval_expr(right_str)
            return _binary_op(left_val, op, right_val)

        # 2. Parenthesized sub-expression: (expr)
        if expr.startswith('('):
            close = _find_matching_paren(expr, 0)
            if close == len(expr) - 1:
                return self._eval_expr(expr[1:close])
            raise FormulaError(f"unbalanced parentheses in {expr!r}")

        # 3. Function call: FUNC(balanced_args)
        func = _match_function_call(expr)
        if func:
            return self._eval_function(func[0].upper(), func[1])

        # 4. Unary minus / plus
        if expr.startswith('-'):
            val = self._eval_expr(expr[1:])
            if isinstance(val, SheetError):
                return val
            return -val
        if expr.startswith('+'):
            return self._eval_expr(expr[1:])

        # 5. Numeric literal
        if _NUMBER_RE.fullmatch(expr):
            if expr.isdigit():
                return int(expr)
            return float(expr)

        # 6. Cell reference
        if is_reference(expr, self._sheet):
            return _arith(self.value_of(canonical_ref(expr)))

        # 7. Out-of-grid reference
        if _LITERAL_REF_RE.fullmatch(expr):
            return 0

        raise FormulaError(f"unexpected token {expr!r}")

    # ------------------------------------------------------------------
    # Function dispatch
    # ------------------------------------------------------------------

    def _eval_function(self, func_name: str, args_str: str) -> Any:
        func = self._functions.get(func_name)
        if func is None:
            raise FormulaError(f"unsupported function {func_name}")
        values: list[Any] = []
        if args_str.strip():
            for arg in _split_top_level_args(args_str):
                values.extend(self._resolve_arg(arg))
        return func(values)

    def _resolve_arg(self, arg: str) -> list[Any]:
        """Resolve one aggregate argument to its member values.

        Ranges and single references yield raw cell values (text, empty and
        sentinels included) so the aggregate can skip what is not numeric.
        """
        if not arg:
            raise FormulaError("empty argument")
        if is_range(arg, self._sheet):
            start, end = split_range(arg)
            return [self.value_of(ref) for ref in expand_range(start, end)]
        if _is_literal_range(arg):
            return [arg]
        if is_reference(arg, self._sheet):
            return [self.value_of(canonical_ref(arg))]
        return [self._eval_expr(arg)]


def _is_literal_range(arg: str) -> bool:
    parts = arg.split(':')
    return len(parts) == 2 and all(_LITERAL_REF_RE.fullmatch(p.strip()) for p in parts)


# ---------------------------------------------------------------------------
# Recalculation pass
# ---------------------------------------------------------------------------


def _values_differ(a: Any, b: Any) -> bool:
    if type(a) is not type(b):
        return True
    return a != b


def recalculate(sheet: Sheet, functions: FunctionRegistry | None = None) -> RecalcResult:
    """Re-evaluate every formula of *sheet* and store the results.

    Each formula cell's ``computed_value`` is overwritten from this pass's
    memo table, which is then discarded. Clears the sheet's dirty set.
    """
    evaluator = SheetEvaluator(sheet, functions)
    values = evaluator.evaluate_all()

    deltas: list[CellDelta] = []
    errors: set[str] = set()
    for cell_ref in sorted(values):
        cell = sheet.cells[cell_ref]
        new_value = values[cell_ref]
        if new_value is SheetError.ERR:
            errors.add(cell_ref)
        if _values_differ(cell.computed_value, new_value):
            deltas.append(CellDelta(
                cell_ref=cell_ref,
                old_value=cell.computed_value,
                new_value=new_value,
                formula=cell.raw_input,
            ))
        sheet.store_computed(cell_ref, new_value)

    sheet.dirty.clear()
    if deltas:
        logger.debug("Recalculated %s: %d formula cell(s) changed", sheet.name, len(deltas))

    return RecalcResult(
        sheet_name=sheet.name,
        deltas=tuple(deltas),
        total_formula_cells=len(values),
        cyclic_cells=frozenset(evaluator.cyclic_cells),
        error_cells=frozenset(errors),
    )
