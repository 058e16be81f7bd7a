"""Reference resolver: regex-based extraction of cell and range references."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from minisheet._utils import CellRect, cell_id, column_index

if TYPE_CHECKING:
    from minisheet._worksheet import Sheet

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# Single cell ref: one-or-more uppercase letters then one-or-more digits. Not
# preceded by an identifier character and not followed by one (or by "(",
# which would make it a function name such as LOG10(...)).
_CELL_REF = r"([A-Z]+)([0-9]+)"
_SINGLE_REF_RE = re.compile(rf"(?<![A-Za-z0-9_.]){_CELL_REF}(?![A-Za-z0-9_.(])")

# Range: A1:B5
_RANGE_REF_RE = re.compile(
    rf"(?<![A-Za-z0-9_.]){_CELL_REF}\s*:\s*{_CELL_REF}(?![A-Za-z0-9_.(])"
)

# Function names: SUM(...), average(...)
_FUNC_RE = re.compile(r"([A-Za-z][A-Za-z0-9_.]*)\s*\(")


@dataclass
class ResolvedReferences:
    """References found in one expression.

    ``refs`` holds standalone cell references; ``ranges`` holds
    ``(start, end)`` pairs exactly as written (corners may be in any order).
    """

    refs: set[str] = field(default_factory=set)
    ranges: set[tuple[str, str]] = field(default_factory=set)

    def cells(self) -> set[str]:
        """Standalone refs plus every expanded range member."""
        out = set(self.refs)
        for start, end in self.ranges:
            out.update(expand_range(start, end))
        return out


def _in_bounds(col_str: str, row_str: str, sheet: Sheet | None) -> bool:
    row = int(row_str)
    if row < 1:
        return False
    if sheet is None:
        return True
    return column_index(col_str) < sheet.column_count and row <= sheet.row_count


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def parse_references(expression: str, sheet: Sheet | None = None) -> list[str]:
    """Extract standalone cell references, in order of appearance.

    Corners of a range are not included - use parse_range_references.
    References outside *sheet*'s grid are left out: they are literal text.
    """
    range_spans = [(m.start(), m.end()) for m in _RANGE_REF_RE.finditer(expression)]
    refs: list[str] = []
    seen: set[str] = set()

    for m in _SINGLE_REF_RE.finditer(expression):
        pos = m.start()
        if any(s <= pos < e for s, e in range_spans):
            continue
        if not _in_bounds(m.group(1), m.group(2), sheet):
            continue
        ref = f"{m.group(1)}{int(m.group(2))}"
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)

    return refs


def parse_range_references(
    expression: str, sheet: Sheet | None = None,
) -> list[tuple[str, str]]:
    """Extract ``(start, end)`` range pairs, in order of appearance.

    A range with any corner outside *sheet*'s grid is not a range.
    """
    ranges: list[tuple[str, str]] = []
    seen: set[tuple[str, str]] = set()

    for m in _RANGE_REF_RE.finditer(expression):
        c1, r1, c2, r2 = m.groups()
        if not (_in_bounds(c1, r1, sheet) and _in_bounds(c2, r2, sheet)):
            continue
        pair = (f"{c1}{int(r1)}", f"{c2}{int(r2)}")
        if pair not in seen:
            ranges.append(pair)
            seen.add(pair)

    return ranges


def parse_functions(expression: str) -> list[str]:
    """Extract all function names used in an expression, uppercased."""
    funcs: list[str] = []
    seen: set[str] = set()
    for m in _FUNC_RE.finditer(expression):
        name = m.group(1).upper()
        if name not in seen:
            funcs.append(name)
            seen.add(name)
    return funcs


def resolve(expression: str, sheet: Sheet | None = None) -> ResolvedReferences:
    """Resolve the references of *expression* against *sheet*'s grid.

    Purely syntactic: no values are read.
    """
    return ResolvedReferences(
        refs=set(parse_references(expression, sheet)),
        ranges=set(parse_range_references(expression, sheet)),
    )


def is_range(text: str, sheet: Sheet | None = None) -> bool:
    """True when *text* is exactly one in-grid ``CellId:CellId`` range."""
    m = _RANGE_REF_RE.fullmatch(text.strip())
    if not m:
        return False
    c1, r1, c2, r2 = m.groups()
    return _in_bounds(c1, r1, sheet) and _in_bounds(c2, r2, sheet)


def is_reference(text: str, sheet: Sheet | None = None) -> bool:
    """True when *text* is exactly one in-grid cell reference."""
    m = _SINGLE_REF_RE.fullmatch(text.strip())
    return bool(m) and _in_bounds(m.group(1), m.group(2), sheet)


def canonical_ref(text: str) -> str:
    """``" A01 "`` -> ``"A1"``: the CellId a written reference points at."""
    m = _SINGLE_REF_RE.fullmatch(text.strip())
    if not m:
        raise ValueError(f"Not a cell reference: {text!r}")
    return f"{m.group(1)}{int(m.group(2))}"


def split_range(text: str) -> tuple[str, str]:
    """``"A1 : B03"`` -> ``("A1", "B3")``."""
    start, end = text.split(":")
    return canonical_ref(start), canonical_ref(end)


# ---------------------------------------------------------------------------
# Range expansion
# ---------------------------------------------------------------------------


def expand_range(start: str, end: str) -> list[str]:
    """Expand a range into its member CellIds, row-major.

    ``expand_range("B2", "A1")`` == ``["A1", "B1", "A2", "B2"]``.
    """
    return CellRect.spanning(start, end).cells()


def all_references(expression: str, sheet: Sheet | None = None) -> list[str]:
    """Standalone references plus expanded range members, de-duplicated."""
    refs: list[str] = []
    seen: set[str] = set()

    for ref in parse_references(expression, sheet):
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)

    for start, end in parse_range_references(expression, sheet):
        for ref in expand_range(start, end):
            if ref not in seen:
                refs.append(ref)
                seen.add(ref)

    return refs


# ---------------------------------------------------------------------------
# Reference shifting (fill down / fill right)
# ---------------------------------------------------------------------------


def shift_references(formula: str, row_delta: int, col_delta: int) -> str:
    """Shift every cell reference in *formula* by the given offsets.

    Returns *formula* unchanged if any shifted reference would leave the
    grid's top-left corner.
    """

    def _replace(m: re.Match[str]) -> str:
        new_col = column_index(m.group(1)) + col_delta
        new_row = int(m.group(2)) + row_delta
        if new_col < 0 or new_row < 1:
            raise ValueError("shifted reference out of range")
        return cell_id(new_col, new_row)

    try:
        return _SINGLE_REF_RE.sub(_replace, formula)
    except ValueError:
        return formula

