"""Signature template for handauth

A Template keeps one OnlineFeature per (region, feature type) for four area
classes:
- basic: the whole sample
- grid: every cell of the overlapping field grid, keyed (row, col)
- row: every row band, keyed by row index
- col: every column band, keyed by column index

Templates are filled by enrolling samples one by one (``extract``), curated
once by the optional filters, then used to ``score`` probe samples.

"""

from __future__ import annotations
import math
from typing import Dict, Iterable, List, Optional, Tuple

from handauth.errors import TemplateStateError
from handauth.features import FeatureMap, new_feature_map
from handauth.geometry import RegionGeometry
from handauth.logger import get_logger
from handauth.models import AreaType, FeatureType, Sample, TemplateSettings
from handauth.scoring import Score, score_basic, score_regions

logger = get_logger(__name__)

GridKey = Tuple[int, int]


class Template:
    """Per-person statistical signature template.

    Attributes:
        rows, cols: Grid size used to partition samples
        settings: Enabled area classes and feature types
        basic: Whole-sample feature map
        grid: Feature map per surviving grid cell
        row: Feature map per surviving row band
        col: Feature map per surviving column band
        geometry: Geometry of the first enrolled sample (None before extraction)
        samples: Number of samples extracted so far
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        reference: Optional[Template] = None,
        settings: Optional[TemplateSettings] = None,
    ) -> None:
        """Create an empty template.

        Args:
            rows, cols: Grid size
            reference: Template whose surviving grid/row/col keys (and
                settings, unless given) are mirrored instead of a full grid
            settings: Enabled areas and features (default: everything)
        """
        if settings is None:
            settings = reference.settings if reference is not None else TemplateSettings()

        self.rows = rows
        self.cols = cols
        self.settings = settings
        self.geometry: Optional[RegionGeometry] = None
        self.samples = 0

        if reference is None:
            row_keys: Iterable[int] = range(rows)
            col_keys: Iterable[int] = range(cols)
            grid_keys: Iterable[GridKey] = [(r, c) for r in range(rows) for c in range(cols)]
        else:
            row_keys = list(reference.row)
            col_keys = list(reference.col)
            grid_keys = list(reference.grid)

        basic_types = settings.basic_feature_types()
        region_types = settings.region_feature_types()

        self.basic: FeatureMap = {}
        self.grid: Dict[GridKey, FeatureMap] = {}
        self.row: Dict[int, FeatureMap] = {}
        self.col: Dict[int, FeatureMap] = {}

        if settings.area_enabled(AreaType.BASIC):
            self.basic = new_feature_map(basic_types)
        if settings.area_enabled(AreaType.GRID):
            self.grid = {key: new_feature_map(region_types) for key in grid_keys}
        if settings.area_enabled(AreaType.ROW):
            self.row = {key: new_feature_map(region_types) for key in row_keys}
        if settings.area_enabled(AreaType.COL):
            self.col = {key: new_feature_map(region_types) for key in col_keys}

    # ------------------------------------------------------------------
    # Extraction

    def extract(self, sample: Sample, sample_index: int) -> None:
        """Fold one enrolled sample into every enabled statistic.

        Args:
            sample: Preprocessed sample
            sample_index: 1-based position of the sample in the enrollment;
                1 (re)initializes every statistic, n > 1 updates them

        Raises:
            ValueError: If sample_index < 1
            GridConfigError: If the grid is too fine for the sample size
        """
        if sample_index < 1:
            raise ValueError("must enroll at least one sample first (sample_index >= 1)")

        # geometry errors must surface before any statistic changes
        geometry = RegionGeometry.for_sample(sample, self.rows, self.cols)

        for feature in self.basic.values():
            feature.update(sample, sample_index)

        for (r, c), feature_map in self.grid.items():
            region = geometry.field(sample, r, c)
            for feature in feature_map.values():
                feature.update(region, sample_index)

        for r, feature_map in self.row.items():
            region = geometry.row(sample, r)
            for feature in feature_map.values():
                feature.update(region, sample_index)

        for c, feature_map in self.col.items():
            region = geometry.col(sample, c)
            for feature in feature_map.values():
                feature.update(region, sample_index)

        if sample_index == 1 or self.geometry is None:
            self.geometry = geometry
        self.samples = sample_index

        logger.debug("extracted sample %d %r with %r", sample_index, sample, geometry)

    # ------------------------------------------------------------------
    # Scoring

    def score(self, sample: Sample) -> Tuple[Score, Template]:
        """Score a probe sample against this template.

        The probe is extracted into a one-sample template over the same
        surviving regions; each enabled area class gets the mean absolute
        standard score of all its (region, feature) pairs.

        Args:
            sample: Preprocessed probe sample

        Returns:
            Tuple of (score, probe template)
        """
        probe = Template(self.rows, self.cols, reference=self, settings=self.settings)
        probe.extract(sample, 1)

        basic_types = self.settings.basic_feature_types()
        region_types = self.settings.region_feature_types()

        scores: Dict[AreaType, float] = {}
        candidates = (
            (AreaType.BASIC, lambda: score_basic(self.basic, probe.basic, basic_types)),
            (AreaType.GRID, lambda: score_regions(self.grid, probe.grid, region_types)),
            (AreaType.ROW, lambda: score_regions(self.row, probe.row, region_types)),
            (AreaType.COL, lambda: score_regions(self.col, probe.col, region_types)),
        )
        for area, compute in candidates:
            if not self.settings.area_enabled(area):
                continue
            value = compute()
            if value is None:
                logger.debug("no %s regions left to score", area)
                continue
            scores[area] = value

        score = Score(scores)
        logger.debug("scored %r: %r", sample, score)
        return score, probe

    # ------------------------------------------------------------------
    # Curation

    def area_filter(self, field_threshold: float, row_col_threshold: float) -> None:
        """Drop regions whose mean ink length is too small for their area.

        A grid cell survives when its length mean reaches
        ``field_threshold * field_area``; rows and columns are compared
        against ``row_col_threshold`` times their band area.

        Raises:
            TemplateStateError: If no sample has been extracted yet
            ValueError: If a threshold is negative or NaN, or the length
                feature is not collected for regions
        """
        _check_threshold("field threshold", field_threshold)
        _check_threshold("row/col threshold", row_col_threshold)
        geometry = self._require_geometry()
        if FeatureType.LENGTH not in self.settings.region_feature_types():
            raise ValueError("area filter requires the length feature on region areas")

        field_limit = geometry.field_area * field_threshold
        row_limit = geometry.row_area * row_col_threshold
        col_limit = geometry.col_area * row_col_threshold

        before = self.counts()
        self.grid = _keep(self.grid, lambda m: m[FeatureType.LENGTH].mean >= field_limit)
        self.row = _keep(self.row, lambda m: m[FeatureType.LENGTH].mean >= row_limit)
        self.col = _keep(self.col, lambda m: m[FeatureType.LENGTH].mean >= col_limit)
        logger.debug("area filter (%.3f, %.3f): %s -> %s", field_threshold, row_col_threshold,
                     before, self.counts())

    def std_mean_filter(self, threshold: float) -> None:
        """Drop regions where any feature has ``std > threshold * mean``.

        Raises:
            TemplateStateError: If no sample has been extracted yet
            ValueError: If threshold is negative or NaN
        """
        _check_threshold("std-mean threshold", threshold)
        self._require_geometry()

        def stable(feature_map: FeatureMap) -> bool:
            return all(f.std <= f.mean * threshold for f in feature_map.values())

        before = self.counts()
        self.grid = _keep(self.grid, stable)
        self.row = _keep(self.row, stable)
        self.col = _keep(self.col, stable)
        logger.debug("std-mean filter (%.3f): %s -> %s", threshold, before, self.counts())

    def _require_geometry(self) -> RegionGeometry:
        if self.geometry is None:
            raise TemplateStateError("must extract at least one sample before filtering")
        return self.geometry

    # ------------------------------------------------------------------
    # Introspection

    @property
    def fields_count(self) -> int:
        return len(self.grid)

    @property
    def rows_count(self) -> int:
        return len(self.row)

    @property
    def cols_count(self) -> int:
        return len(self.col)

    def counts(self) -> Dict[str, int]:
        return {"grid": self.fields_count, "row": self.rows_count, "col": self.cols_count}

    def describe(self) -> str:
        """Multi-line dump of every statistic, for debugging."""
        lines: List[str] = [repr(self)]
        lines.append(f"  basic {_describe_map(self.basic)}")
        for (r, c), feature_map in sorted(self.grid.items()):
            lines.append(f"  grid [{r},{c}] {_describe_map(feature_map)}")
        for r, feature_map in sorted(self.row.items()):
            lines.append(f"  row [{r}] {_describe_map(feature_map)}")
        for c, feature_map in sorted(self.col.items()):
            lines.append(f"  col [{c}] {_describe_map(feature_map)}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (f"<Template {self.rows}x{self.cols} samples={self.samples} "
                f"grid={self.fields_count} row={self.rows_count} col={self.cols_count}>")


def _check_threshold(name: str, value: float) -> None:
    if math.isnan(value) or value < 0.0:
        raise ValueError(f"{name} must be a non-negative number, got {value}")


def _keep(regions: dict, predicate) -> dict:
    survivors = [key for key, feature_map in regions.items() if predicate(feature_map)]
    return {key: regions[key] for key in survivors}


def _describe_map(feature_map: FeatureMap) -> str:
    return ", ".join(repr(feature) for feature in feature_map.values())
