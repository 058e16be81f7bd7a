"""Configuration model for minisheet workbooks."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from minisheet._styles import DEFAULT_BORDER_LINE


class SheetConfig(BaseModel):
    """Limits and defaults shared by every sheet of a workbook."""

    model_config = ConfigDict(frozen=True)

    # Grid
    default_columns: int = Field(10, ge=1, description="Columns of a newly created sheet")
    default_rows: int = Field(40, ge=1, description="Rows of a newly created sheet")
    max_columns: int = Field(26, ge=1, le=18278, description="Largest allowed column count")
    max_rows: int = Field(1000, ge=1, description="Largest allowed row count")

    # History
    history_capacity: int = Field(
        500, ge=1, description="Undo steps kept before the oldest is discarded"
    )

    # Layout
    default_column_width: float = Field(120.0, gt=0, description="Width of an unsized column")
    min_column_width: float = Field(36.0, gt=0, description="Column width clamp (low)")
    max_column_width: float = Field(2000.0, gt=0, description="Column width clamp (high)")
    min_row_height: float = Field(18.0, gt=0, description="Row height clamp (low)")
    max_row_height: float = Field(2000.0, gt=0, description="Row height clamp (high)")

    # Styling
    border_line: str = Field(DEFAULT_BORDER_LINE, description="Line drawn by border commands")

    @model_validator(mode="after")
    def _check_ranges(self) -> SheetConfig:
        if self.default_columns > self.max_columns:
            raise ValueError("default_columns exceeds max_columns")
        if self.default_rows > self.max_rows:
            raise ValueError("default_rows exceeds max_rows")
        if self.min_column_width > self.max_column_width:
            raise ValueError("min_column_width exceeds max_column_width")
        if self.min_row_height > self.max_row_height:
            raise ValueError("min_row_height exceeds max_row_height")
        return self


DEFAULT_CONFIG = SheetConfig()
