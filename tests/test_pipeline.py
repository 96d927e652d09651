from pathlib import Path

import pytest

from handauth.models import AreaType, FilterSettings, NO_FILTERS
from handauth.pipeline import (
    SignaturePipeline, apply_filters, enroll, enroll_many, enumerate_images,
    group_by_identity, infer_identity_from_filename, main, verify
)
from handauth.serialization import load_template
from handauth.template import Template

ROWS, COLS = 4, 6


def test_process_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        SignaturePipeline().process(tmp_path / "missing.png")


def test_enroll_identical_images_accepts_same_image(signature_path):
    template = enroll([signature_path] * 3, ROWS, COLS, filters=NO_FILTERS)
    assert template.samples == 3

    accepted, score = verify(signature_path, template, threshold=0.01)
    assert accepted
    assert set(score) == {AreaType.BASIC, AreaType.GRID, AreaType.ROW, AreaType.COL}
    assert all(value == 0.0 for value in score.values())


def test_enroll_applies_filters(signature_path):
    unfiltered = enroll([signature_path] * 2, ROWS, COLS, filters=NO_FILTERS)
    filtered = enroll([signature_path] * 2, ROWS, COLS, filters=FilterSettings(area_filter=True))
    assert filtered.fields_count <= unfiltered.fields_count
    assert filtered.rows_count <= unfiltered.rows_count
    assert filtered.cols_count <= unfiltered.cols_count


def test_apply_filters_curates_template(sample):
    template = Template(ROWS, COLS)
    template.extract(sample, 1)
    apply_filters(template, FilterSettings(field_threshold=1.0, row_col_threshold=1.0))
    assert (template.fields_count, template.rows_count, template.cols_count) == (0, 0, 0)


def test_enroll_without_images_raises():
    with pytest.raises(ValueError):
        enroll([], ROWS, COLS)


def test_enroll_missing_image_raises(tmp_path, signature_path):
    with pytest.raises(FileNotFoundError):
        enroll([signature_path, tmp_path / "missing.png"], ROWS, COLS)


def test_enroll_saves_template(tmp_path, signature_path):
    output = tmp_path / "out" / "001.json"
    template = enroll([signature_path] * 2, ROWS, COLS, filters=NO_FILTERS, output_path=output)
    assert output.exists()

    accepted, _ = verify(signature_path, output, threshold=0.01)
    assert accepted
    assert load_template(output).fields_count == template.fields_count


def test_enroll_many_reports_failures_per_identity(tmp_path, write_image, signature_image):
    first = write_image("001_01.png", signature_image())
    second = write_image("002_01.png", signature_image(offset=10))
    identities = {
        "001": [first, first],
        "002": [second, second],
        "003": [tmp_path / "missing.png"],
    }

    templates = enroll_many(identities, ROWS, COLS, filters=NO_FILTERS, max_workers=2)

    assert set(templates) == {"001", "002"}
    assert all(t.samples == 2 for t in templates.values())


def test_enroll_many_without_identities():
    assert enroll_many({}) == {}


def test_identity_helpers(tmp_path, write_image, signature_image):
    image = signature_image()
    paths = [write_image(name, image) for name in ("002_01.png", "001_02.png", "001_01.png")]
    (tmp_path / "notes.txt").write_text("not an image")

    assert infer_identity_from_filename(Path("007_03.png")) == "007"
    assert infer_identity_from_filename(Path("single.png")) == "single"
    assert [p.name for p in enumerate_images(tmp_path)] == ["001_01.png", "001_02.png", "002_01.png"]
    assert {k: len(v) for k, v in group_by_identity(paths).items()} == {"002": 1, "001": 2}


def test_enumerate_images_of_missing_directory_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        enumerate_images(tmp_path / "nope")


def test_cli_enroll_then_verify(tmp_path, signature_path):
    template_path = tmp_path / "001.json"
    log_dir = tmp_path / "logs"

    code = main([
        "--log-dir", str(log_dir), "enroll", "001", str(signature_path), str(signature_path),
        "-o", str(template_path), "--rows", str(ROWS), "--cols", str(COLS), "--no-area-filter",
    ])
    assert code == 0
    assert template_path.exists()

    assert main(["--log-dir", str(log_dir), "verify", str(template_path), str(signature_path)]) == 0


def test_cli_without_command_prints_help(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().out
