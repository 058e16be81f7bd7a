"""Cell style value objects and the border / table layout rules."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from minisheet._utils import CellRect, parse_cell_id

ALIGNMENTS = ("left", "center", "right")
BORDER_KINDS = ("all", "outside", "inside", "top", "bottom", "left", "right", "none")
DEFAULT_BORDER_LINE = "1px solid #000"


@dataclass(frozen=True)
class BorderSpec:
    """Per-side border lines; ``None`` means no line on that side."""

    top: str | None = None
    right: str | None = None
    bottom: str | None = None
    left: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.top or self.right or self.bottom or self.left)

    @classmethod
    def box(cls, line: str = DEFAULT_BORDER_LINE) -> BorderSpec:
        return cls(top=line, right=line, bottom=line, left=line)

    def merged(self, other: BorderSpec | None) -> BorderSpec:
        """Sides set on *other* win; unset sides keep this spec's lines."""
        if other is None:
            return self
        return BorderSpec(
            top=other.top or self.top,
            right=other.right or self.right,
            bottom=other.bottom or self.bottom,
            left=other.left or self.left,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            side: getattr(self, side)
            for side in ("top", "right", "bottom", "left")
            if getattr(self, side)
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BorderSpec:
        return cls(
            top=data.get("top"),
            right=data.get("right"),
            bottom=data.get("bottom"),
            left=data.get("left"),
        )


@dataclass(frozen=True)
class CellStyle:
    """Visual style of a cell, independent of its content."""

    bold: bool = False
    italic: bool = False
    underline: bool = False
    align: str = "left"
    wrap: bool = False
    fill: str | None = None
    border: BorderSpec | None = None

    def __post_init__(self) -> None:
        if self.align not in ALIGNMENTS:
            raise ValueError(f"align must be one of {ALIGNMENTS}, got {self.align!r}")

    @property
    def is_default(self) -> bool:
        return self == CellStyle()

    def toggled(self, prop: str) -> CellStyle:
        """Flip one of the boolean properties (bold, italic, underline, wrap)."""
        if prop not in ("bold", "italic", "underline", "wrap"):
            raise ValueError(f"Cannot toggle style property {prop!r}")
        return replace(self, **{prop: not getattr(self, prop)})

    def next_alignment(self) -> CellStyle:
        """left -> center -> right -> left."""
        idx = ALIGNMENTS.index(self.align)
        return replace(self, align=ALIGNMENTS[(idx + 1) % len(ALIGNMENTS)])

    def with_fill(self, color: str | None) -> CellStyle:
        return replace(self, fill=color or None)

    def with_border(self, border: BorderSpec | None) -> CellStyle:
        if border is not None and border.is_empty:
            border = None
        return replace(self, border=border)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "bold": self.bold,
            "italic": self.italic,
            "underline": self.underline,
            "align": self.align,
            "wrap": self.wrap,
            "fill": self.fill,
        }
        data["border"] = self.border.to_dict() if self.border else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CellStyle:
        border = data.get("border")
        return cls(
            bold=bool(data.get("bold", False)),
            italic=bool(data.get("italic", False)),
            underline=bool(data.get("underline", False)),
            align=data.get("align") or "left",
            wrap=bool(data.get("wrap", False)),
            fill=data.get("fill") or None,
            border=BorderSpec.from_dict(border) if border else None,
        )


def border_for(ref: str, rect: CellRect, kind: str, line: str = DEFAULT_BORDER_LINE) -> BorderSpec | None:
    """The border a cell receives when *kind* is applied to *rect*.

    ``outside`` draws the rectangle's perimeter, ``inside`` the lines between
    its cells, and the single-side kinds draw that edge of the rectangle.
    Returns ``None`` when the cell gets no lines (``none`` clears).
    """
    if kind not in BORDER_KINDS:
        raise ValueError(f"Unknown border kind {kind!r}; expected one of {BORDER_KINDS}")
    col, row = parse_cell_id(ref)
    on_top = row == rect.min_row
    on_bottom = row == rect.max_row
    on_left = col == rect.min_col
    on_right = col == rect.max_col

    if kind == "none":
        return None
    if kind == "all":
        return BorderSpec.box(line)
    if kind == "outside":
        spec = BorderSpec(
            top=line if on_top else None,
            right=line if on_right else None,
            bottom=line if on_bottom else None,
            left=line if on_left else None,
        )
    elif kind == "inside":
        spec = BorderSpec(
            top=None if on_top else line,
            right=None if on_right else line,
            bottom=None if on_bottom else line,
            left=None if on_left else line,
        )
    else:
        edge = {"top": on_top, "bottom": on_bottom, "left": on_left, "right": on_right}[kind]
        spec = BorderSpec(**{kind: line}) if edge else BorderSpec()
    return None if spec.is_empty else spec


# ---------------------------------------------------------------------------
# Insert Table presets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TableStyle:
    name: str
    header: str
    body: str


TABLE_STYLES: dict[str, TableStyle] = {
    s.name: s
    for s in (
        TableStyle("Blue Header", "#4472c4", "#d0e2ff"),
        TableStyle("Green Header", "#70ad47", "#e2f0d9"),
        TableStyle("Orange Header", "#ed7d31", "#fce4d6"),
        TableStyle("Gray Header", "#5b9bd5", "#d9e2f3"),
        TableStyle("Purple Header", "#7030a0", "#e3d9f3"),
        TableStyle("Red Header", "#c00000", "#f4cccc"),
    )
}


@dataclass
class TableRange:
    """A formatted table inserted over a rectangular range."""

    id: str
    rect: CellRect
    header_fill: str
    body_fill: str
    zebra: bool = True

    def header_cells(self) -> list[str]:
        return CellRect(self.rect.min_col, self.rect.min_row, self.rect.max_col, self.rect.min_row).cells()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startCol": self.rect.min_col,
            "startRow": self.rect.min_row,
            "endCol": self.rect.max_col,
            "endRow": self.rect.max_row,
            "headerFill": self.header_fill,
            "bodyFill": self.body_fill,
            "zebra": self.zebra,
        }
