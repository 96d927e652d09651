import math

import cv2
import numpy as np
import pytest

from handauth.features import (
    OnlineFeature, aspect, corners, gradient, histogram_of_gradients, length, new_feature_map
)
from handauth.models import FeatureType, Sample


def _line_sample(horizontal: bool) -> Sample:
    pixels = np.zeros((100, 300), dtype=np.uint8) if horizontal else np.zeros((300, 100), dtype=np.uint8)
    if horizontal:
        cv2.line(pixels, (50, 50), (250, 50), 255, 1)
    else:
        cv2.line(pixels, (50, 50), (50, 250), 255, 1)
    return Sample(pixels)


# ---------------------------------------------------------------------------
# Sample functions


def test_length_counts_ink_pixels():
    pixels = np.zeros((10, 10), dtype=np.uint8)
    pixels[2, 3:8] = 255
    assert length(Sample(pixels)) == 5.0


def test_aspect_is_width_over_height():
    assert aspect(Sample(np.zeros((10, 20), dtype=np.uint8))) == 2.0


def test_blank_sample_has_zero_gradient_hog_and_corners():
    blank = Sample(np.zeros((40, 40), dtype=np.uint8))
    assert gradient(blank) == 0.0
    assert histogram_of_gradients(blank) == 0.0
    assert corners(blank) == 0.0


def test_gradient_balance_follows_stroke_direction():
    horizontal = gradient(_line_sample(horizontal=True))
    vertical = gradient(_line_sample(horizontal=False))
    assert 0.0 < horizontal < 0.5 < vertical < 1.0


def test_hog_of_horizontal_line_is_near_90_degrees():
    value = histogram_of_gradients(_line_sample(horizontal=True))
    assert 0.0 <= value < 180.0
    assert abs(value - 90.0) < 10.0


def test_corners_of_filled_square():
    pixels = np.zeros((100, 100), dtype=np.uint8)
    cv2.rectangle(pixels, (20, 20), (80, 80), 255, -1)
    assert corners(Sample(pixels)) >= 4.0


def test_empty_region_raises():
    empty = Sample(np.zeros((0, 5), dtype=np.uint8))
    with pytest.raises(ValueError):
        gradient(empty)


# ---------------------------------------------------------------------------
# OnlineFeature


def test_running_mean_and_population_variance():
    feature = OnlineFeature(FeatureType.LENGTH)
    for index, value in enumerate([2, 4, 4, 4, 5, 5, 7, 9], start=1):
        feature.update_value(value, index)

    assert feature.mean == pytest.approx(5.0)
    assert feature.variance == pytest.approx(4.0)
    assert feature.std == pytest.approx(2.0)
    assert feature.min == 2.0
    assert feature.max == 9.0


def test_first_index_resets_statistics():
    feature = OnlineFeature(FeatureType.LENGTH)
    feature.update_value(1.0, 1)
    feature.update_value(3.0, 2)
    assert feature.variance > 0.0

    feature.update_value(10.0, 1)
    assert (feature.mean, feature.variance, feature.std) == (10.0, 0.0, 0.0)
    assert feature.min == feature.max == 10.0


def test_identical_values_keep_exact_mean_and_zero_variance():
    feature = OnlineFeature(FeatureType.HOG)
    for index in range(1, 6):
        feature.update_value(3.3, index)
    assert feature.mean == 3.3
    assert feature.variance == 0.0
    assert feature.std == 0.0


def test_sample_index_below_one_raises(sample):
    feature = OnlineFeature(FeatureType.LENGTH)
    with pytest.raises(ValueError):
        feature.update(sample, 0)
    with pytest.raises(ValueError):
        feature.update_value(1.0, -1)


def test_update_uses_sample_function(sample):
    feature = OnlineFeature(FeatureType.LENGTH)
    feature.update(sample, 1)
    assert feature.mean == length(sample)


def test_standard_score():
    template = OnlineFeature(FeatureType.LENGTH)
    for index, value in enumerate([3.0, 7.0], start=1):
        template.update_value(value, index)
    probe = OnlineFeature(FeatureType.LENGTH)
    probe.update_value(9.0, 1)

    assert template.std == pytest.approx(2.0)
    assert template.score(probe) == pytest.approx(2.0)


def test_zero_std_score_policy():
    template = OnlineFeature(FeatureType.ASPECT)
    template.update_value(1.5, 1)

    same, higher, lower = (OnlineFeature(FeatureType.ASPECT) for _ in range(3))
    same.update_value(1.5, 1)
    higher.update_value(2.0, 1)
    lower.update_value(1.0, 1)

    assert template.score(same) == 0.0
    assert template.score(higher) == math.inf
    assert template.score(lower) == -math.inf


def test_new_feature_map_has_one_statistic_per_type():
    feature_map = new_feature_map([FeatureType.LENGTH, FeatureType.HOG])
    assert list(feature_map) == [FeatureType.LENGTH, FeatureType.HOG]
    assert all(f.feature_type is t for t, f in feature_map.items())
