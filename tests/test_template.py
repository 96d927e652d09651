import cv2
import numpy as np
import pytest

from handauth.errors import GridConfigError, TemplateStateError
from handauth.models import AreaType, FeatureType, FilterSettings, Sample, TemplateSettings
from handauth.template import Template

ROWS, COLS = 4, 6


def _enroll(*samples, settings=None) -> Template:
    template = Template(ROWS, COLS, settings=settings)
    for index, sample in enumerate(samples, start=1):
        template.extract(sample, index)
    return template


def _keys(template):
    return set(template.grid), set(template.row), set(template.col)


def test_new_template_covers_full_grid():
    template = Template(ROWS, COLS)
    assert template.fields_count == ROWS * COLS
    assert template.rows_count == ROWS
    assert template.cols_count == COLS
    assert set(template.basic) == {FeatureType.LENGTH, FeatureType.GRADIENT, FeatureType.HOG, FeatureType.ASPECT}
    assert template.geometry is None


def test_identical_samples_score_zero_and_accept(sample):
    template = _enroll(sample, sample.copy(), sample.copy())

    feature_maps = [template.basic, *template.grid.values(), *template.row.values(), *template.col.values()]
    for feature_map in feature_maps:
        for feature in feature_map.values():
            assert feature.variance == 0.0
            assert feature.std == 0.0

    score, _ = template.score(sample)
    assert set(score) == {AreaType.BASIC, AreaType.GRID, AreaType.ROW, AreaType.COL}
    assert all(value == 0.0 for value in score.values())
    assert score.check(1e-6)


def test_extract_records_geometry_of_first_sample(make_sample):
    template = _enroll(make_sample(), make_sample(height=210))
    assert (template.geometry.height, template.geometry.width) == (200, 300)
    assert template.samples == 2


def test_extract_rejects_index_below_one(sample):
    with pytest.raises(ValueError):
        Template(ROWS, COLS).extract(sample, 0)


def test_too_fine_grid_fails_before_any_update():
    template = Template(100, 100)
    with pytest.raises(GridConfigError):
        template.extract(Sample(np.full((50, 50), 255, dtype=np.uint8)), 1)
    assert template.basic[FeatureType.LENGTH].mean == 0.0
    assert template.geometry is None


def test_filters_before_extraction_raise():
    template = Template(ROWS, COLS)
    with pytest.raises(TemplateStateError):
        template.area_filter(0.05, 0.02)
    with pytest.raises(TemplateStateError):
        template.std_mean_filter(0.5)


def test_area_filter_drops_regions_without_ink(left_half_sample):
    template = _enroll(left_half_sample, left_half_sample.copy())
    template.area_filter(0.0001, 0.0001)

    assert set(template.col) == {0, 1}
    assert set(template.row) == {0, 1, 2, 3}
    assert all(col < 3 for _, col in template.grid)


def test_area_filter_requires_length_feature(sample):
    settings = TemplateSettings(region_features=("gradient", "hog"))
    template = _enroll(sample, settings=settings)
    with pytest.raises(ValueError):
        template.area_filter(0.05, 0.02)


def test_filters_only_shrink_and_are_idempotent(make_sample):
    template = _enroll(make_sample(), make_sample(offset=4), make_sample(offset=8))
    full = _keys(template)

    template.area_filter(0.001, 0.001)
    after_area = _keys(template)
    assert all(a <= f for a, f in zip(after_area, full))

    template.area_filter(0.001, 0.001)
    assert _keys(template) == after_area

    template.std_mean_filter(0.5)
    after_std = _keys(template)
    assert all(s <= a for s, a in zip(after_std, after_area))

    template.std_mean_filter(0.5)
    assert _keys(template) == after_std


def test_std_mean_filter_keeps_stable_regions(sample):
    template = _enroll(sample, sample.copy())
    template.std_mean_filter(0.0)
    assert template.fields_count == ROWS * COLS
    assert template.rows_count == ROWS
    assert template.cols_count == COLS


def test_probe_mirrors_surviving_regions(left_half_sample):
    template = _enroll(left_half_sample, left_half_sample.copy())
    template.area_filter(0.0001, 0.0001)

    _, probe = template.score(left_half_sample)
    assert _keys(probe) == _keys(template)
    assert probe.settings == template.settings


def test_area_without_surviving_regions_is_not_scored(sample):
    template = _enroll(sample, sample.copy())
    template.area_filter(1.0, 1.0)
    assert (template.fields_count, template.rows_count, template.cols_count) == (0, 0, 0)

    score, _ = template.score(sample)
    assert set(score) == {AreaType.BASIC}


def test_disabled_areas_are_neither_collected_nor_scored(sample):
    settings = TemplateSettings(areas={"basic", "row"})
    template = _enroll(sample, sample.copy(), settings=settings)
    assert template.fields_count == 0
    assert template.cols_count == 0

    score, _ = template.score(sample)
    assert set(score) == {AreaType.BASIC, AreaType.ROW}


def test_different_probe_gets_positive_score(make_sample):
    template = _enroll(make_sample(), make_sample(offset=2), make_sample(offset=4))
    score, _ = template.score(make_sample(offset=30))
    assert score[AreaType.GRID] > 0.0


def test_probe_of_different_height_is_scored(make_sample):
    template = _enroll(make_sample(), make_sample(offset=2))
    score, probe = template.score(make_sample(height=180))
    assert (probe.geometry.height, probe.geometry.width) == (180, 300)
    assert set(score) == {AreaType.BASIC, AreaType.GRID, AreaType.ROW, AreaType.COL}


def test_describe_lists_every_region(sample):
    template = _enroll(sample)
    lines = template.describe().splitlines()
    assert len(lines) == 2 + ROWS * COLS + ROWS + COLS


def test_forty_by_twenty_template_of_ten_identical_samples(sample):
    template = Template(40, 20)
    for index in range(1, 11):
        template.extract(sample.copy(), index)

    for feature_map in [template.basic, *template.grid.values(), *template.row.values(), *template.col.values()]:
        assert all(f.variance == 0.0 and f.std == 0.0 for f in feature_map.values())

    score, _ = template.score(sample.copy())
    assert all(value == 0.0 for value in score.values())
    assert score.check(1e-9)


@pytest.mark.parametrize("pixels", [
    np.zeros((200, 300)),
    np.zeros((200, 300), dtype=np.int32),
])
def test_non_uint8_sample_is_rejected_before_extraction(pixels):
    template = Template(ROWS, COLS)
    with pytest.raises(ValueError):
        template.extract(Sample(pixels), 1)
    assert template.basic[FeatureType.LENGTH].mean == 0.0
    assert template.geometry is None


def test_boolean_mask_sample_is_converted_to_ink():
    mask = np.zeros((200, 300), dtype=bool)
    mask[60, 110:120] = True
    sample = Sample(mask)
    assert sample.pixels.dtype == np.uint8
    assert sample.pixels.max() == 255

    template = _enroll(sample)
    assert template.basic[FeatureType.LENGTH].mean == 10.0


def test_std_mean_filter_drops_band_with_varying_ink():
    settings = TemplateSettings(region_features=("length",))
    blank = Sample(np.zeros((200, 300), dtype=np.uint8))
    inked = blank.copy()
    # row band 1 spans y 50..100, column band 2 spans x 100..150
    inked.pixels[60:70, 110:120] = 255

    template = _enroll(blank, inked, settings=settings)
    template.std_mean_filter(0.1)

    assert set(template.row) == {0, 2, 3}
    assert set(template.col) == {0, 1, 3, 4, 5}
    assert 0 < template.fields_count < ROWS * COLS


def test_std_mean_filter_drops_region_when_one_feature_varies():
    settings = TemplateSettings(region_features=("length", "gradient"))
    horizontal = Sample(np.zeros((200, 300), dtype=np.uint8))
    vertical = Sample(np.zeros((200, 300), dtype=np.uint8))
    # same ink length, opposite stroke direction
    cv2.line(horizontal.pixels, (110, 75), (129, 75), 255, 1)
    cv2.line(vertical.pixels, (120, 65), (120, 84), 255, 1)

    template = _enroll(horizontal, vertical, settings=settings)
    assert template.row[1][FeatureType.LENGTH].std == 0.0
    assert template.row[1][FeatureType.GRADIENT].std > 0.0

    template.std_mean_filter(0.1)

    assert set(template.row) == {0, 2, 3}
    assert set(template.col) == {0, 1, 3, 4, 5}


@pytest.mark.parametrize("threshold", [float("nan"), -0.1])
def test_filters_reject_invalid_thresholds(sample, threshold):
    template = _enroll(sample, sample.copy())
    with pytest.raises(ValueError):
        template.area_filter(threshold, 0.02)
    with pytest.raises(ValueError):
        template.area_filter(0.05, threshold)
    with pytest.raises(ValueError):
        template.std_mean_filter(threshold)
    assert template.fields_count == ROWS * COLS
    with pytest.raises(ValueError):
        FilterSettings(std_mean_threshold=threshold)
    with pytest.raises(ValueError):
        FilterSettings(field_threshold=threshold)
