"""Scoring module for handauth

This module contains:
- score_basic / score_regions: aggregate per-feature standard scores of a
  probe against a template into one distance per area class
- Score: per-area distances of one verification attempt
- Score.check: conjunctive multi-area threshold decision

"""

from __future__ import annotations
import math
from collections.abc import Mapping
from typing import Dict, Hashable, Iterator, List, Optional, Sequence

import numpy as np

from handauth.features import FeatureMap
from handauth.models import AreaType, FeatureType

# Per-area threshold weights, missing areas weigh 1.0
AreaThresholdWeights = Dict[AreaType, float]


# ---------------------------------------------------------------------------
# Area Aggregation


def feature_distances(
    template_map: FeatureMap,
    probe_map: FeatureMap,
    feature_types: Sequence[FeatureType],
) -> List[float]:
    """Absolute standard scores of the probe's features against the template's."""
    return [
        abs(template_map[feature_type].score(probe_map[feature_type]))
        for feature_type in feature_types
        if feature_type in template_map
    ]


def score_basic(
    template_map: FeatureMap,
    probe_map: FeatureMap,
    feature_types: Sequence[FeatureType],
) -> Optional[float]:
    """Mean absolute standard score over the whole-image features."""
    distances = feature_distances(template_map, probe_map, feature_types)
    if not distances:
        return None
    return float(np.mean(distances))


def score_regions(
    template_regions: Dict[Hashable, FeatureMap],
    probe_regions: Dict[Hashable, FeatureMap],
    feature_types: Sequence[FeatureType],
) -> Optional[float]:
    """Flat mean absolute standard score over every (region, feature) pair.

    Only the template's regions are scored, so a curated template scores just
    the regions that survived filtering.

    Returns:
        Mean distance, or None when the template has no region left
    """
    distances: List[float] = []
    for key, template_map in template_regions.items():
        distances.extend(feature_distances(template_map, probe_regions[key], feature_types))
    if not distances:
        return None
    return float(np.mean(distances))


# ---------------------------------------------------------------------------
# Score


class Score(Mapping):
    """Aggregated distance of one probe per area class.

    Read-only mapping AreaType -> non-negative float. Lower is closer to the
    enrolled template.
    """

    def __init__(self, scores: Optional[Mapping] = None) -> None:
        self._scores: Dict[AreaType, float] = {
            AreaType(area): float(value) for area, value in (scores or {}).items()
        }

    def __getitem__(self, area: AreaType) -> float:
        return self._scores[area]

    def __iter__(self) -> Iterator[AreaType]:
        return iter(self._scores)

    def __len__(self) -> int:
        return len(self._scores)

    def weighted(self, weights: Optional[AreaThresholdWeights] = None) -> Dict[AreaType, float]:
        """Per-area scores multiplied by their weight (1.0 when absent)."""
        weights = weights or {}
        result = {}
        for area, score in self._scores.items():
            weight = float(weights.get(area, 1.0))
            if weight < 0.0 or math.isnan(weight):
                raise ValueError(f"Weight for {area} must be non-negative, got {weight}")
            result[area] = score * weight
        return result

    def check(self, threshold: float, weights: Optional[AreaThresholdWeights] = None) -> bool:
        """Accept or reject the probe.

        Every area must stay strictly below the threshold: the probe is
        rejected as soon as one weighted area score reaches it.

        Args:
            threshold: Decision threshold on weighted area scores
            weights: Per-area weights (default 1.0)

        Returns:
            True if accepted (genuine), False if rejected

        Raises:
            ValueError: If threshold is NaN or a weight is negative
        """
        if math.isnan(threshold):
            raise ValueError("Threshold must be a number, got NaN")

        for area, score in self.weighted(weights).items():
            if score >= threshold:
                return False
        return True

    def __repr__(self) -> str:
        parts = ", ".join(f"{area}: {score:.3f}" for area, score in self._scores.items())
        return f"<Score {parts}>"
