"""Cell snapshots and write-time classification of raw input."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, replace
from typing import Any

from minisheet._styles import CellStyle

# Whole-string numeric literal: optional sign, digits with optional fraction
# (or a bare fraction), optional exponent. Rejects "nan", "inf", "1_000".
_NUMERIC_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class CellKind(enum.Enum):
    FORMULA = "formula"
    NUMBER = "number"
    TEXT = "text"
    EMPTY = "empty"  # no content, kept only to carry a style


def strip_line_endings(raw: str) -> str:
    return raw.rstrip("\r\n")


def parse_number(text: str) -> int | float | None:
    """Return the number *text* spells exactly, or None."""
    candidate = text.strip()
    if not _NUMERIC_RE.fullmatch(candidate):
        return None
    if re.fullmatch(r"[+-]?\d+", candidate):
        return int(candidate)
    return float(candidate)


def display_text(value: Any) -> str:
    """Text shown for a computed value: integral numbers without ``.0``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return f"{value:.15g}"
    return str(value)


def classify(raw_input: str) -> tuple[CellKind, Any]:
    """Classify raw input once, at write time.

    Returns the kind and the initial computed value: the number for numeric
    literals, the text itself for text, and None for formulas (filled in by
    the next recalculation) and empty input.
    """
    text = strip_line_endings(raw_input)
    if not text:
        return CellKind.EMPTY, None
    if text.startswith("="):
        return CellKind.FORMULA, None
    number = parse_number(text)
    if number is not None:
        return CellKind.NUMBER, number
    return CellKind.TEXT, raw_input


@dataclass(frozen=True)
class Cell:
    """Immutable snapshot of one cell."""

    raw_input: str
    kind: CellKind
    computed_value: Any = None
    style: CellStyle | None = None

    @classmethod
    def from_input(cls, raw_input: str, style: CellStyle | None = None) -> Cell:
        kind, value = classify(raw_input)
        return cls(raw_input=raw_input, kind=kind, computed_value=value, style=style)

    @classmethod
    def styled_blank(cls, style: CellStyle) -> Cell:
        return cls(raw_input="", kind=CellKind.EMPTY, computed_value=None, style=style)

    @property
    def is_formula(self) -> bool:
        return self.kind is CellKind.FORMULA

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    def with_style(self, style: CellStyle | None) -> Cell:
        return replace(self, style=style)

    def with_computed(self, value: Any) -> Cell:
        return replace(self, computed_value=value)

    def __repr__(self) -> str:
        return f"<Cell {self.kind.value} {self.raw_input!r} -> {self.computed_value!r}>"
