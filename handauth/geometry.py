"""Region geometry for handauth

This module partitions a fixed-size sample into the regions features are
collected over:
- Overlapping "field" grid (cells overlap by a stride of 30% of their size)
- Non-overlapping row bands and column bands

The last row/column of every scheme is stretched to reach the image edge.
"""

from __future__ import annotations
import math
from dataclasses import dataclass

from handauth.errors import GridConfigError
from handauth.models import Rect, Sample
from handauth.config import (
    FIELD_SIZE_NUMERATOR, FIELD_SIZE_COUNT_FACTOR, FIELD_SIZE_OFFSET,
    FIELD_STRIDE_RATIO, FIELD_SIZE_MIN, BAND_SIZE_MIN
)


def overlapping_field_size(dimension: int, count: int) -> int:
    """Size of an overlapping field so ``count`` fields at 30% stride span ``dimension``."""
    return int(math.floor(
        (FIELD_SIZE_NUMERATOR * dimension) / (FIELD_SIZE_COUNT_FACTOR * count + FIELD_SIZE_OFFSET)
    ))


def field_stride(field_size: int) -> int:
    return int(math.floor(FIELD_STRIDE_RATIO * field_size))


@dataclass(frozen=True)
class RegionGeometry:
    """Field grid and row/column bands for one image size.

    Use :meth:`create` (or :meth:`for_sample`) to build a validated geometry.

    Attributes:
        height, width: Image size (pixels)
        rows, cols: Requested grid size
        field_height, field_width: Size of an overlapping grid cell
        y_stride, x_stride: Step between adjacent grid cells
        row_height, col_width: Size of a non-overlapping band
    """
    height: int
    width: int
    rows: int
    cols: int
    field_height: int
    field_width: int
    y_stride: int
    x_stride: int
    row_height: int
    col_width: int

    @classmethod
    def create(cls, height: int, width: int, rows: int, cols: int) -> RegionGeometry:
        """Compute and validate the partition of a ``height`` x ``width`` image.

        Raises:
            GridConfigError: If the grid is too fine for the image
        """
        if rows < 1 or cols < 1:
            raise GridConfigError(f"rows and cols must be positive (got {rows}, {cols})")

        field_height = overlapping_field_size(height, rows)
        field_width = overlapping_field_size(width, cols)
        y_stride = field_stride(field_height)
        x_stride = field_stride(field_width)
        row_height = height // rows
        col_width = width // cols

        if field_height <= FIELD_SIZE_MIN or row_height <= BAND_SIZE_MIN:
            raise GridConfigError(f"decrease number of rows ({rows}) for image {width}x{height}")

        if field_width <= FIELD_SIZE_MIN or col_width <= BAND_SIZE_MIN:
            raise GridConfigError(f"decrease number of columns ({cols}) for image {width}x{height}")

        if y_stride * (rows - 1) > height:
            raise GridConfigError(f"decrease number of rows or stride value ({rows}, stride {y_stride})")

        if x_stride * (cols - 1) > width:
            raise GridConfigError(f"decrease number of columns or stride value ({cols}, stride {x_stride})")

        return cls(
            height=height,
            width=width,
            rows=rows,
            cols=cols,
            field_height=field_height,
            field_width=field_width,
            y_stride=y_stride,
            x_stride=x_stride,
            row_height=row_height,
            col_width=col_width,
        )

    @classmethod
    def for_sample(cls, sample: Sample, rows: int, cols: int) -> RegionGeometry:
        return cls.create(sample.height, sample.width, rows, cols)

    # ------------------------------------------------------------------
    # Reference areas

    @property
    def field_area(self) -> float:
        return float(self.field_width * self.field_height)

    @property
    def row_area(self) -> float:
        return float(self.width * self.row_height)

    @property
    def col_area(self) -> float:
        return float(self.height * self.col_width)

    # ------------------------------------------------------------------
    # Rectangles

    def field_rect(self, row: int, col: int) -> Rect:
        x0 = col * self.x_stride
        x1 = x0 + self.field_width
        if x1 > self.width or col == self.cols - 1:
            x1 = self.width

        y0 = row * self.y_stride
        y1 = y0 + self.field_height
        if y1 > self.height or row == self.rows - 1:
            y1 = self.height

        return Rect(x0, y0, x1, y1)

    def row_rect(self, row: int) -> Rect:
        y0 = row * self.row_height
        y1 = y0 + self.row_height
        if y1 > self.height or row == self.rows - 1:
            y1 = self.height
        return Rect(0, y0, self.width, y1)

    def col_rect(self, col: int) -> Rect:
        x0 = col * self.col_width
        x1 = x0 + self.col_width
        if x1 > self.width or col == self.cols - 1:
            x1 = self.width
        return Rect(x0, 0, x1, self.height)

    # ------------------------------------------------------------------
    # Regions

    def field(self, sample: Sample, row: int, col: int) -> Sample:
        return self._region(sample, self.field_rect(row, col))

    def row(self, sample: Sample, row: int) -> Sample:
        return self._region(sample, self.row_rect(row))

    def col(self, sample: Sample, col: int) -> Sample:
        return self._region(sample, self.col_rect(col))

    def _region(self, sample: Sample, rect: Rect) -> Sample:
        clipped = Rect(
            max(rect.x0, 0), max(rect.y0, 0),
            min(rect.x1, sample.width), min(rect.y1, sample.height),
        )
        if clipped.empty:
            raise GridConfigError(f"empty region {rect} in {sample!r} for {self!r}")
        return sample.region(clipped)

    def __repr__(self) -> str:
        return (f"<RegionGeometry {self.width}x{self.height} "
                f"f:{self.field_width}x{self.field_height} s:{self.x_stride}x{self.y_stride} "
                f"r:{self.rows}({self.row_height}) c:{self.cols}({self.col_width})>")
