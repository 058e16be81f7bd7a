"""Tests for CellId helpers, cell classification, styles and config."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from minisheet._cell import Cell, CellKind, classify, display_text, parse_number
from minisheet._config import SheetConfig
from minisheet._styles import (
    TABLE_STYLES,
    BorderSpec,
    CellStyle,
    border_for,
)
from minisheet._utils import CellRect, cell_id, column_index, column_name, is_cell_id, parse_cell_id


class TestUtils:
    def test_column_name(self) -> None:
        assert column_name(0) == "A"
        assert column_name(25) == "Z"
        assert column_name(26) == "AA"
        assert column_name(701) == "ZZ"

    def test_column_index(self) -> None:
        assert column_index("A") == 0
        assert column_index("AA") == 26

    def test_cell_id_roundtrip(self) -> None:
        assert cell_id(1, 3) == "B3"
        assert parse_cell_id("B3") == (1, 3)

    @pytest.mark.parametrize("bad", ["", "3B", "b3", "A0", "A01", "A", "A1:B2", "$A$1"])
    def test_invalid_cell_id(self, bad: str) -> None:
        assert not is_cell_id(bad)
        with pytest.raises(ValueError):
            parse_cell_id(bad)

    def test_rect(self) -> None:
        rect = CellRect.spanning("C3", "A2")
        assert (rect.min_col, rect.min_row, rect.max_col, rect.max_row) == (0, 2, 2, 3)
        assert rect.width == 3
        assert rect.height == 2
        assert rect.contains("B2")
        assert not rect.contains("D2")
        assert str(rect) == "A2:C3"
        assert rect.cells()[:3] == ["A2", "B2", "C2"]


class TestClassify:
    @pytest.mark.parametrize(
        ("raw", "kind", "value"),
        [
            ("42", CellKind.NUMBER, 42),
            ("-3.5", CellKind.NUMBER, -3.5),
            ("1e3", CellKind.NUMBER, 1000.0),
            (".5", CellKind.NUMBER, 0.5),
            ("  7 ", CellKind.NUMBER, 7),
            ("=A1+1", CellKind.FORMULA, None),
            ("hello", CellKind.TEXT, "hello"),
            ("nan", CellKind.TEXT, "nan"),
            ("inf", CellKind.TEXT, "inf"),
            ("1_000", CellKind.TEXT, "1_000"),
            ("12abc", CellKind.TEXT, "12abc"),
            ("", CellKind.EMPTY, None),
            ("\r\n", CellKind.EMPTY, None),
        ],
    )
    def test_classify(self, raw: str, kind: CellKind, value: object) -> None:
        assert classify(raw) == (kind, value)

    def test_trailing_newline_ignored_for_classification(self) -> None:
        cell = Cell.from_input("12\n")
        assert cell.kind is CellKind.NUMBER
        assert cell.computed_value == 12
        assert cell.raw_input == "12\n"

    def test_parse_number_rejects_partial(self) -> None:
        assert parse_number("1.2.3") is None
        assert parse_number("0x10") is None

    def test_styled_blank(self) -> None:
        cell = Cell.styled_blank(CellStyle(bold=True))
        assert cell.is_empty
        assert cell.raw_input == ""
        assert cell.style.bold

    def test_cells_are_immutable(self) -> None:
        cell = Cell.from_input("1")
        with pytest.raises(AttributeError):
            cell.raw_input = "2"  # type: ignore[misc]


class TestDisplayText:
    @pytest.mark.parametrize(
        ("value", "text"),
        [
            (None, ""),
            (3, "3"),
            (3.0, "3"),
            (0.1 + 0.2, "0.3"),
            (1.5, "1.5"),
            ("abc", "abc"),
            (True, "TRUE"),
        ],
    )
    def test_display(self, value: object, text: str) -> None:
        assert display_text(value) == text


class TestCellStyle:
    def test_defaults(self) -> None:
        style = CellStyle()
        assert style.is_default
        assert style.align == "left"

    def test_invalid_align(self) -> None:
        with pytest.raises(ValueError, match="align"):
            CellStyle(align="justify")

    def test_toggled(self) -> None:
        assert CellStyle().toggled("bold").bold
        assert not CellStyle(italic=True).toggled("italic").italic
        with pytest.raises(ValueError):
            CellStyle().toggled("fill")

    def test_next_alignment_cycles(self) -> None:
        style = CellStyle()
        seen = []
        for _ in range(3):
            style = style.next_alignment()
            seen.append(style.align)
        assert seen == ["center", "right", "left"]

    def test_empty_border_dropped(self) -> None:
        assert CellStyle().with_border(BorderSpec()).border is None

    def test_dict_roundtrip(self) -> None:
        style = CellStyle(bold=True, align="right", fill="#ff0000", border=BorderSpec(top="1px solid #000"))
        assert CellStyle.from_dict(style.to_dict()) == style

    def test_border_merge(self) -> None:
        merged = BorderSpec(top="a").merged(BorderSpec(bottom="b"))
        assert merged == BorderSpec(top="a", bottom="b")


class TestBorderFor:
    rect = CellRect.spanning("A1", "C3")

    def test_all(self) -> None:
        assert border_for("B2", self.rect, "all", "x") == BorderSpec.box("x")

    def test_none(self) -> None:
        assert border_for("B2", self.rect, "none") is None

    def test_outside(self) -> None:
        assert border_for("A1", self.rect, "outside", "x") == BorderSpec(top="x", left="x")
        assert border_for("B2", self.rect, "outside", "x") is None
        assert border_for("C3", self.rect, "outside", "x") == BorderSpec(right="x", bottom="x")

    def test_inside(self) -> None:
        assert border_for("B2", self.rect, "inside", "x") == BorderSpec.box("x")
        assert border_for("A1", self.rect, "inside", "x") == BorderSpec(right="x", bottom="x")

    def test_single_edge(self) -> None:
        assert border_for("B1", self.rect, "top", "x") == BorderSpec(top="x")
        assert border_for("B2", self.rect, "top", "x") is None
        assert border_for("C2", self.rect, "right", "x") == BorderSpec(right="x")

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError, match="border kind"):
            border_for("A1", self.rect, "diagonal")


class TestTableStyles:
    def test_presets(self) -> None:
        assert "Blue Header" in TABLE_STYLES
        assert all(s.header.startswith("#") for s in TABLE_STYLES.values())


class TestSheetConfig:
    def test_defaults(self) -> None:
        cfg = SheetConfig()
        assert (cfg.default_columns, cfg.default_rows) == (10, 40)
        assert cfg.history_capacity == 500

    def test_rejects_default_above_max(self) -> None:
        with pytest.raises(ValidationError):
            SheetConfig(default_columns=30, max_columns=26)

    def test_rejects_non_positive(self) -> None:
        with pytest.raises(ValidationError):
            SheetConfig(history_capacity=0)

    def test_frozen(self) -> None:
        cfg = SheetConfig()
        with pytest.raises(ValidationError):
            cfg.max_rows = 5  # type: ignore[misc]
