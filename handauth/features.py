"""Feature extraction module for handauth

This module contains:
- Sample functions: pure functions mapping a sample region to one scalar
  (length, gradient balance, aspect ratio, histogram of gradients, corners)
- OnlineFeature: mean/variance/std/min/max of one scalar, updated
  incrementally as samples are enrolled

"""

from __future__ import annotations
import math
from typing import Callable, Dict
import cv2
import numpy as np

from handauth.models import FeatureType, Sample
from handauth.config import (
    GRADIENT_KSIZE, HOG_BINS, HOG_BIN_WIDTH_DEG,
    CORNER_MAX_CORNERS, CORNER_QUALITY_LEVEL, CORNER_MIN_DISTANCE
)


# ---------------------------------------------------------------------------
# Sample Functions


def length(sample: Sample) -> float:
    """Number of ink (non-zero) pixels, the stroke length of a thinned sample."""
    return float(cv2.countNonZero(sample.pixels))


def aspect(sample: Sample) -> float:
    return sample.ratio


def gradient(sample: Sample) -> float:
    """Share of horizontal gradient responses among all gradient responses.

    Returns:
        nz(dx) / (nz(dx) + nz(dy)), or 0.0 if either direction has no response
    """
    _require_pixels(sample)
    dx, dy = cv2.spatialGradient(sample.pixels, ksize=GRADIENT_KSIZE, borderType=cv2.BORDER_REPLICATE)
    grad_x = cv2.countNonZero(dx)
    grad_y = cv2.countNonZero(dy)
    if grad_x == 0 or grad_y == 0:
        return 0.0
    return float(grad_x) / float(grad_x + grad_y)


def histogram_of_gradients(sample: Sample) -> float:
    """Magnitude-weighted mean gradient orientation in degrees.

    Orientations are folded into [0, 180) and accumulated into HOG_BINS bins
    of HOG_BIN_WIDTH_DEG degrees; the result is the weighted mean of the bin
    start angles.

    Returns:
        Mean orientation in [0, 180), 0.0 for a sample without ink or gradients
    """
    _require_pixels(sample)
    if cv2.countNonZero(sample.pixels) == 0:
        return 0.0

    sobel_x = cv2.Sobel(sample.pixels, cv2.CV_32F, 1, 0, ksize=GRADIENT_KSIZE, borderType=cv2.BORDER_REPLICATE)
    sobel_y = cv2.Sobel(sample.pixels, cv2.CV_32F, 0, 1, ksize=GRADIENT_KSIZE, borderType=cv2.BORDER_REPLICATE)
    magnitude, angle = cv2.cartToPolar(sobel_x, sobel_y, angleInDegrees=True)

    folded = np.mod(angle.astype(np.float64), 180.0)
    bins = np.floor(folded / HOG_BIN_WIDTH_DEG).astype(np.int64)
    bins = np.clip(bins, 0, HOG_BINS - 1)

    histogram = np.bincount(bins.ravel(), weights=magnitude.astype(np.float64).ravel(), minlength=HOG_BINS)
    total = float(histogram.sum())
    if total <= 0.0:
        return 0.0

    values = np.arange(HOG_BINS, dtype=np.float64) * HOG_BIN_WIDTH_DEG
    return float(np.dot(histogram, values) / total)


def corners(sample: Sample) -> float:
    """Number of Shi-Tomasi corners detected in the sample."""
    _require_pixels(sample)
    detected = cv2.goodFeaturesToTrack(
        sample.pixels,
        maxCorners=CORNER_MAX_CORNERS,
        qualityLevel=CORNER_QUALITY_LEVEL,
        minDistance=CORNER_MIN_DISTANCE,
    )
    if detected is None:
        return 0.0
    return float(len(detected))


def _require_pixels(sample: Sample) -> None:
    if sample.empty:
        raise ValueError(f"empty pixel matrix in {sample!r}")


SAMPLE_FUNCTIONS: Dict[FeatureType, Callable[[Sample], float]] = {
    FeatureType.LENGTH: length,
    FeatureType.GRADIENT: gradient,
    FeatureType.ASPECT: aspect,
    FeatureType.HOG: histogram_of_gradients,
    FeatureType.CORNERS: corners,
}


# ---------------------------------------------------------------------------
# OnlineFeature


class OnlineFeature:
    """Running statistics of one feature type over enrolled samples.

    The first sample (index 1) initializes the statistic; every following
    sample n updates it in place:

        variance = (variance + (value - mean)^2 / n) * (n - 1) / n
        mean     = ((n - 1) * mean + value) / n
        std      = sqrt(variance)

    which keeps mean and population variance of all values seen so far.

    Attributes:
        feature_type: Kind of feature, selects the sample function
        mean, variance, std, min, max: Current statistics
    """

    def __init__(self, feature_type: FeatureType) -> None:
        self.feature_type = feature_type
        self.mean = 0.0
        self.variance = 0.0
        self.std = 0.0
        self.min = 0.0
        self.max = 0.0

    @property
    def sample_function(self) -> Callable[[Sample], float]:
        return SAMPLE_FUNCTIONS[self.feature_type]

    def update(self, sample: Sample, sample_index: int) -> None:
        """Extract this feature from ``sample`` and fold it into the statistics.

        Args:
            sample: Sample region the feature is computed on
            sample_index: 1-based index of the sample in the enrollment sequence

        Raises:
            ValueError: If sample_index < 1
        """
        if sample_index < 1:
            raise ValueError("must enroll at least one sample first (sample_index >= 1)")
        self.update_value(self.sample_function(sample), sample_index)

    def update_value(self, value: float, sample_index: int) -> None:
        if sample_index < 1:
            raise ValueError("must enroll at least one sample first (sample_index >= 1)")

        value = float(value)
        if sample_index == 1:
            self.mean = value
            self.min = value
            self.max = value
            self.variance = 0.0
            self.std = 0.0
            return

        n = float(sample_index)
        # variance uses the mean before this sample
        variance = (self.variance + (value - self.mean) ** 2 / n) * (n - 1.0) / n
        self.mean = self.mean + (value - self.mean) / n
        self.variance = variance
        self.std = math.sqrt(variance)
        self.min = min(self.min, value)
        self.max = max(self.max, value)

    def score(self, other: OnlineFeature) -> float:
        """Standard score of ``other.mean`` against this statistic.

        With zero std the score is 0.0 for an equal mean and infinite
        (signed) otherwise.
        """
        difference = other.mean - self.mean
        if self.std == 0.0:
            if difference == 0.0:
                return 0.0
            return math.copysign(math.inf, difference)
        return difference / self.std

    def __repr__(self) -> str:
        text = f"{self.feature_type} {self.mean:.3f}"
        if self.min != self.max:
            text += f" [{self.min:.3f}, {self.max:.3f}]"
        if self.variance != 0.0:
            text += f", var {self.variance:.3f}({self.std:.3f})"
        return f"<OnlineFeature {text}>"


FeatureMap = Dict[FeatureType, OnlineFeature]


def new_feature_map(feature_types) -> FeatureMap:
    return {feature_type: OnlineFeature(feature_type) for feature_type in feature_types}
