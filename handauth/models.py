"""Data structures for handauth

This module defines the core data classes used throughout the signature
template system. These classes are shared across all modules (preprocessing,
geometry, features, template, scoring).
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, NamedTuple, Tuple
import numpy as np

from handauth.config import (
    AREA_FILTER_FIELD_THRESHOLD, AREA_FILTER_ROWCOL_THRESHOLD, STD_MEAN_FILTER_THRESHOLD
)


class AreaType(Enum):
    """Area class a feature statistic is collected over."""
    BASIC = "basic"
    GRID = "grid"
    ROW = "row"
    COL = "col"

    def __str__(self) -> str:
        return self.value


class FeatureType(Enum):
    """Kind of scalar feature extracted from a sample region."""
    LENGTH = "length"
    GRADIENT = "gradient"
    ASPECT = "aspect"
    HOG = "hog"
    CORNERS = "corners"

    def __str__(self) -> str:
        return self.value


class Rect(NamedTuple):
    """Half-open pixel rectangle [x0, x1) x [y0, y1)."""
    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def empty(self) -> bool:
        return self.x1 <= self.x0 or self.y1 <= self.y0


@dataclass
class Sample:
    """Grayscale signature image (or a region cut out of one).

    Attributes:
        pixels: 2D uint8 matrix, non-zero pixels are ink after preprocessing
            (a boolean mask is converted to 0/255)
    """
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.ndim != 2:
            raise ValueError(f"Sample must be a 2D grayscale matrix, got shape {self.pixels.shape}")

        if self.pixels.dtype == np.bool_:
            self.pixels = self.pixels.astype(np.uint8) * 255
        elif self.pixels.dtype != np.uint8:
            raise ValueError(f"Sample pixels must be uint8, got {self.pixels.dtype}")

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def ratio(self) -> float:
        """Aspect ratio width / height."""
        return float(self.width) / float(self.height)

    @property
    def area(self) -> int:
        return int(self.pixels.size)

    @property
    def empty(self) -> bool:
        return self.pixels.size == 0

    def region(self, rect: Rect) -> Sample:
        """Independent copy of the pixels inside ``rect``."""
        return Sample(self.pixels[rect.y0:rect.y1, rect.x0:rect.x1].copy())

    def copy(self) -> Sample:
        return Sample(self.pixels.copy())

    def __repr__(self) -> str:
        return f"<Sample {self.width}x{self.height} area {self.area}>"


ALL_AREAS: FrozenSet[AreaType] = frozenset(AreaType)
ALL_FEATURES: FrozenSet[FeatureType] = frozenset(FeatureType)

DEFAULT_BASIC_FEATURES: Tuple[FeatureType, ...] = (
    FeatureType.LENGTH, FeatureType.GRADIENT, FeatureType.HOG, FeatureType.ASPECT,
)
DEFAULT_REGION_FEATURES: Tuple[FeatureType, ...] = (
    FeatureType.LENGTH, FeatureType.GRADIENT, FeatureType.HOG,
)


@dataclass
class TemplateSettings:
    """Which area classes and feature types a template collects.

    A template passes its settings on to every probe template built while
    scoring, so enrollment and verification always agree.

    Attributes:
        areas: Enabled area classes
        features: Enabled feature types (a type must also be listed below
            to be collected for an area)
        basic_features: Feature types attached to the whole-image area
        region_features: Feature types attached to grid cells, rows and columns
    """
    areas: FrozenSet[AreaType] = ALL_AREAS
    features: FrozenSet[FeatureType] = ALL_FEATURES
    basic_features: Tuple[FeatureType, ...] = DEFAULT_BASIC_FEATURES
    region_features: Tuple[FeatureType, ...] = DEFAULT_REGION_FEATURES

    def __post_init__(self) -> None:
        """Normalize collections and validate settings after initialization."""
        self.areas = frozenset(_as_enum(AreaType, self.areas))
        self.features = frozenset(_as_enum(FeatureType, self.features))
        self.basic_features = tuple(_as_enum(FeatureType, self.basic_features))
        self.region_features = tuple(_as_enum(FeatureType, self.region_features))

        if not self.areas:
            raise ValueError("At least one area class must be enabled")

        if AreaType.BASIC in self.areas and not self.basic_feature_types():
            raise ValueError("Basic area is enabled but has no enabled feature types")

        regions = {AreaType.GRID, AreaType.ROW, AreaType.COL} & self.areas
        if regions and not self.region_feature_types():
            raise ValueError("Region areas are enabled but have no enabled feature types")

    def area_enabled(self, area: AreaType) -> bool:
        return area in self.areas

    def basic_feature_types(self) -> Tuple[FeatureType, ...]:
        return tuple(f for f in self.basic_features if f in self.features)

    def region_feature_types(self) -> Tuple[FeatureType, ...]:
        return tuple(f for f in self.region_features if f in self.features)


@dataclass
class FilterSettings:
    """Post-enrollment template curation.

    Attributes:
        area_filter: Drop regions without enough ink
        field_threshold: Minimum length mean as a fraction of the field area
        row_col_threshold: Minimum length mean as a fraction of the row/col area
        std_mean_filter: Drop regions whose features vary too much
        std_mean_threshold: Maximum std / mean ratio
    """
    area_filter: bool = True
    field_threshold: float = AREA_FILTER_FIELD_THRESHOLD
    row_col_threshold: float = AREA_FILTER_ROWCOL_THRESHOLD
    std_mean_filter: bool = True
    std_mean_threshold: float = STD_MEAN_FILTER_THRESHOLD

    def __post_init__(self) -> None:
        """Validate filter settings after initialization."""
        if not (self.field_threshold >= 0.0 and self.row_col_threshold >= 0.0):
            raise ValueError(f"Area thresholds must be non-negative, got "
                             f"{self.field_threshold}, {self.row_col_threshold}")

        if not self.std_mean_threshold >= 0.0:
            raise ValueError(f"Std-mean threshold must be non-negative, got {self.std_mean_threshold}")


NO_FILTERS = FilterSettings(area_filter=False, std_mean_filter=False)


def _as_enum(enum_cls, values: Iterable) -> list:
    return [v if isinstance(v, enum_cls) else enum_cls(v) for v in values]
