"""handauth - Handwritten Signature Enrollment/Verification Pipeline

ARCHITECTURE:
- Modular design with specialized modules:
  * config.py: Centralized configuration
  * models.py: Core data structures and settings
  * preprocessing.py: Image processing (normalization, foreground, crop, resize, thinning)
  * geometry.py / features.py: Region partition and per-region feature statistics
  * template.py: Template extraction, curation and scoring
  * scoring.py: Per-area score aggregation and decision rule
  * serialization.py: Template persistence

PIPELINE:
1. Preprocessing: Normalization → Foreground → Crop → Resize → Zhang-Suen thinning
2. Enrollment: Online feature statistics per basic/grid/row/col area
3. Curation: Area filter → Std-mean filter
4. Verification: Probe standard scores per area → Conjunctive threshold check

"""

from __future__ import annotations
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from handauth.config import (
    ROWS_DEFAULT, COLS_DEFAULT, DEFAULT_TEMPLATE_PATH, IMAGE_EXTENSIONS, TEMPLATE_EXTENSION,
    VERIFICATION_THRESHOLD,
    BASIC_THRESHOLD_WEIGHT, GRID_THRESHOLD_WEIGHT, ROW_THRESHOLD_WEIGHT, COL_THRESHOLD_WEIGHT
)
from handauth.logger import configure_logging, get_logger, log_enrollment, log_error, log_verification
from handauth.models import AreaType, FilterSettings, Sample, TemplateSettings
from handauth.preprocessing import load_grayscale_image, preprocess
from handauth.scoring import AreaThresholdWeights, Score
from handauth.serialization import load_template, save_template, template_from_dict, template_to_dict
from handauth.template import Template

logger = get_logger(__name__)


def default_threshold_weights() -> AreaThresholdWeights:
    """Per-area threshold weights from the configuration."""
    return {
        AreaType.BASIC: BASIC_THRESHOLD_WEIGHT,
        AreaType.GRID: GRID_THRESHOLD_WEIGHT,
        AreaType.ROW: ROW_THRESHOLD_WEIGHT,
        AreaType.COL: COL_THRESHOLD_WEIGHT,
    }


# ---------------------------------------------------------------------------
# SignaturePipeline: Image to Sample


class SignaturePipeline:
    """End-to-end signature image processing.

    Attributes:
        target_width: Width every sample is resized to (config default if None)
        ratio: Aspect ratio forced on samples (each image keeps its own if None)
        thinning_max_iter: Cap on thinning passes (config default if None)
    """

    def __init__(
        self,
        target_width: Optional[int] = None,
        ratio: Optional[float] = None,
        thinning_max_iter: Optional[int] = None
    ) -> None:
        self.target_width = target_width
        self.ratio = ratio
        self.thinning_max_iter = thinning_max_iter

    def process(self, image_path: Path) -> Sample:
        """Load and preprocess one signature image.

        Args:
            image_path: Path to signature image

        Returns:
            Thinned, fixed-width Sample

        Raises:
            FileNotFoundError: If image_path does not exist or cannot be decoded
            ValueError: If the image contains no ink
        """
        image_path = Path(image_path)
        if not image_path.exists():
            raise FileNotFoundError(f"Image not found: {image_path}")

        image = load_grayscale_image(image_path)
        sample = preprocess(
            image,
            target_width=self.target_width,
            ratio=self.ratio,
            thinning_max_iter=self.thinning_max_iter
        )
        logger.debug("processed %s into %r", image_path.name, sample)
        return sample


# ---------------------------------------------------------------------------
# High-Level API: Enroll, Verify


def apply_filters(template: Template, filters: FilterSettings) -> None:
    """Curate an enrolled template: area filter first, then std-mean filter."""
    if filters.area_filter:
        template.area_filter(filters.field_threshold, filters.row_col_threshold)
    if filters.std_mean_filter:
        template.std_mean_filter(filters.std_mean_threshold)


def enroll(
    image_paths: Sequence[Path],
    rows: int = None,
    cols: int = None,
    *,
    identifier: Optional[str] = None,
    settings: Optional[TemplateSettings] = None,
    filters: Optional[FilterSettings] = None,
    pipeline: Optional[SignaturePipeline] = None,
    output_path: Optional[Path] = None
) -> Template:
    """Enroll one person from several genuine signature images.

    Workflow:
    1. Process every image into a sample
    2. Extract samples into a new template (indices 1..N)
    3. Curate the template with the enabled filters
    4. Optionally save the template

    Args:
        image_paths: Signature images of the same person
        rows, cols: Grid size (uses config defaults if None)
        identifier: Identity name used in logs (first image stem if None)
        settings: Enabled areas and features (default: everything)
        filters: Curation settings (default: both filters enabled)
        pipeline: Image pipeline (default SignaturePipeline())
        output_path: Save the template to this file if given

    Returns:
        Enrolled and curated Template

    Raises:
        ValueError: If no image is given or an image contains no ink
        FileNotFoundError: If an image cannot be read
        GridConfigError: If the grid is too fine for the samples
    """
    if rows is None:
        rows = ROWS_DEFAULT
    if cols is None:
        cols = COLS_DEFAULT
    if filters is None:
        filters = FilterSettings()
    if pipeline is None:
        pipeline = SignaturePipeline()

    image_paths = [Path(p) for p in image_paths]
    if not image_paths:
        raise ValueError("At least one image is required for enrollment")
    if identifier is None:
        identifier = image_paths[0].stem

    logger.info("enrolling '%s' with %d samples (%dx%d grid)", identifier, len(image_paths), rows, cols)

    template = Template(rows, cols, settings=settings)
    for sample_index, image_path in enumerate(image_paths, start=1):
        sample = pipeline.process(image_path)
        template.extract(sample, sample_index)

    apply_filters(template, filters)

    details: Dict[str, Any] = {'samples': template.samples}
    details.update(template.counts())
    log_enrollment(identifier, "SUCCESS", details)

    if output_path is not None:
        saved = save_template(template, output_path)
        logger.info("saved template of '%s' to %s", identifier, saved)

    return template


def verify(
    probe_path: Path,
    template: Union[Template, Path],
    threshold: float = None,
    weights: Optional[AreaThresholdWeights] = None,
    *,
    pipeline: Optional[SignaturePipeline] = None
) -> Tuple[bool, Score]:
    """Verify a probe signature against an enrolled template (1:1).

    Args:
        probe_path: Path to probe signature image
        template: Enrolled Template, or path of a saved one
        threshold: Decision threshold (uses config default if None)
        weights: Per-area threshold weights (uses config defaults if None)
        pipeline: Image pipeline (default SignaturePipeline())

    Returns:
        Tuple of (accepted, score)

    Raises:
        FileNotFoundError: If the probe or the template file cannot be read
    """
    if threshold is None:
        threshold = VERIFICATION_THRESHOLD
    if weights is None:
        weights = default_threshold_weights()
    if pipeline is None:
        pipeline = SignaturePipeline()
    if not isinstance(template, Template):
        template = load_template(template)

    probe_path = Path(probe_path)
    sample = pipeline.process(probe_path)
    score, _ = template.score(sample)
    accepted = score.check(threshold, weights)

    details: Dict[str, Any] = {'threshold': threshold}
    details.update({str(area): f"{value:.3f}" for area, value in score.items()})
    log_verification(probe_path.name, accepted, details)

    return accepted, score


# ---------------------------------------------------------------------------
# Batch Enrollment (one process per identity)


def worker_enroll_identity(
    identifier: str,
    image_paths: List[str],
    settings: dict
) -> dict:
    """
    Worker function to enroll a single identity (runs in ProcessPool).

    Args:
        identifier: Identity name
        image_paths: List of image file paths for this identity
        settings: Dict with 'rows', 'cols', 'template_settings', 'filters'
            and 'target_width'

    Returns:
        {
            'success': bool,
            'identifier': str,
            'template': dict (serialized template) or None,
            'num_images': int,
            'error': Optional[str]
        }
    """
    try:
        template = enroll(
            [Path(p) for p in image_paths],
            settings['rows'],
            settings['cols'],
            identifier=identifier,
            settings=settings.get('template_settings'),
            filters=settings.get('filters'),
            pipeline=SignaturePipeline(target_width=settings.get('target_width'))
        )

        return {
            'success': True,
            'identifier': identifier,
            'template': template_to_dict(template),
            'num_images': len(image_paths),
            'error': None
        }

    except Exception as e:
        log_error(e, context=f"enroll {identifier}")
        return {
            'success': False,
            'identifier': identifier,
            'template': None,
            'num_images': len(image_paths) if image_paths else 0,
            'error': f"{type(e).__name__}: {e}"
        }


def enroll_many(
    identities: Mapping[str, Sequence[Path]],
    rows: int = None,
    cols: int = None,
    *,
    settings: Optional[TemplateSettings] = None,
    filters: Optional[FilterSettings] = None,
    target_width: Optional[int] = None,
    max_workers: Optional[int] = None
) -> Dict[str, Template]:
    """Enroll many identities in parallel, one process per identity.

    A failing identity is logged and left out of the result; the other
    identities are not affected.

    Args:
        identities: Mapping identity -> its signature images
        rows, cols: Grid size (uses config defaults if None)
        settings: Enabled areas and features (default: everything)
        filters: Curation settings (default: both filters enabled)
        target_width: Sample width (uses config default if None)
        max_workers: Process pool size (os.cpu_count() if None)

    Returns:
        Dict identity -> Template for every identity enrolled successfully
    """
    worker_settings = {
        'rows': ROWS_DEFAULT if rows is None else rows,
        'cols': COLS_DEFAULT if cols is None else cols,
        'template_settings': settings,
        'filters': filters,
        'target_width': target_width
    }

    templates: Dict[str, Template] = {}
    if not identities:
        return templates

    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(
                worker_enroll_identity,
                identifier,
                [str(p) for p in paths],
                worker_settings
            ): identifier
            for identifier, paths in identities.items()
        }

        for future in as_completed(futures):
            result = future.result()
            identifier = result['identifier']
            if result['success']:
                templates[identifier] = template_from_dict(result['template'])
            else:
                logger.warning("enrollment of '%s' failed: %s", identifier, result['error'])
                log_enrollment(identifier, "FAILURE", {'error': result['error']})

    logger.info("enrolled %d of %d identities", len(templates), len(identities))
    return templates


# ---------------------------------------------------------------------------
# Utility Functions


def enumerate_images(directory: Path) -> List[Path]:
    """List all signature images in a directory.

    Raises:
        FileNotFoundError: If directory doesn't exist or contains no images
    """
    directory = Path(directory)
    if not directory.exists() or not directory.is_dir():
        raise FileNotFoundError(f"Image directory not found: {directory}")

    files = [p for p in directory.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS]

    if not files:
        raise FileNotFoundError(f"No signature images found in {directory}")

    files.sort()
    return files


def infer_identity_from_filename(path: Path) -> str:
    """Infer identity from filename (e.g., "007_03.png" → "007").

    Returns:
        String before first underscore, or full stem if no underscore
    """
    stem = Path(path).stem
    if "_" in stem:
        return stem.split("_")[0]
    return stem


def group_by_identity(paths: Sequence[Path]) -> Dict[str, List[Path]]:
    """Group image paths by the identity inferred from their filenames."""
    groups: Dict[str, List[Path]] = {}
    for path in paths:
        groups.setdefault(infer_identity_from_filename(path), []).append(Path(path))
    return groups


# ---------------------------------------------------------------------------
# Main Entry Point


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog="handauth",
        description="handauth - Handwritten Signature Enrollment/Verification"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Also log to the console")
    parser.add_argument("--log-dir", type=Path, default=None, help="Log directory")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Enroll command
    enroll_parser = subparsers.add_parser("enroll", help="Enroll signatures of one person")
    enroll_parser.add_argument("identifier", type=str, help="Identity name")
    enroll_parser.add_argument("images", type=Path, nargs="+", help="Genuine signature images")
    enroll_parser.add_argument("--output", "-o", type=Path, default=None,
                               help="Template output file (default <templates>/IDENTIFIER.json)")
    _add_enroll_options(enroll_parser)

    # Enroll-dir command
    batch_parser = subparsers.add_parser("enroll-dir", help="Enroll every identity found in a directory")
    batch_parser.add_argument("directory", type=Path, help="Directory of <identity>_<n> images")
    batch_parser.add_argument("--output", "-o", type=Path, default=DEFAULT_TEMPLATE_PATH,
                              help="Template output directory")
    batch_parser.add_argument("--workers", type=int, default=None, help="Number of worker processes")
    _add_enroll_options(batch_parser)

    # Verify command
    verify_parser = subparsers.add_parser("verify", help="Verify a probe against a template (1:1)")
    verify_parser.add_argument("template", type=Path, help="Template file")
    verify_parser.add_argument("probe", type=Path, help="Probe signature image")
    verify_parser.add_argument("--threshold", "-t", type=float, default=VERIFICATION_THRESHOLD,
                               help="Decision threshold")
    verify_parser.add_argument("--basic-weight", type=float, default=BASIC_THRESHOLD_WEIGHT)
    verify_parser.add_argument("--grid-weight", type=float, default=GRID_THRESHOLD_WEIGHT)
    verify_parser.add_argument("--row-weight", type=float, default=ROW_THRESHOLD_WEIGHT)
    verify_parser.add_argument("--col-weight", type=float, default=COL_THRESHOLD_WEIGHT)

    return parser


def _add_enroll_options(parser) -> None:
    defaults = FilterSettings()
    parser.add_argument("--rows", type=int, default=ROWS_DEFAULT, help="Grid rows")
    parser.add_argument("--cols", type=int, default=COLS_DEFAULT, help="Grid columns")
    parser.add_argument("--no-area-filter", action="store_true", help="Disable the area filter")
    parser.add_argument("--field-threshold", type=float, default=defaults.field_threshold)
    parser.add_argument("--row-col-threshold", type=float, default=defaults.row_col_threshold)
    parser.add_argument("--no-std-filter", action="store_true", help="Disable the std-mean filter")
    parser.add_argument("--std-threshold", type=float, default=defaults.std_mean_threshold)
    parser.add_argument("--corners", action="store_true", help="Also collect corner counts")


def _enroll_settings(args) -> Tuple[TemplateSettings, FilterSettings]:
    settings = TemplateSettings()
    if args.corners:
        settings = TemplateSettings(
            basic_features=settings.basic_features + ("corners",),
            region_features=settings.region_features + ("corners",)
        )
    filters = FilterSettings(
        area_filter=not args.no_area_filter,
        field_threshold=args.field_threshold,
        row_col_threshold=args.row_col_threshold,
        std_mean_filter=not args.no_std_filter,
        std_mean_threshold=args.std_threshold
    )
    return settings, filters


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 2

    configure_logging(log_dir=args.log_dir, verbose=args.verbose)

    if args.command == "enroll":
        settings, filters = _enroll_settings(args)
        output = args.output or DEFAULT_TEMPLATE_PATH / f"{args.identifier}{TEMPLATE_EXTENSION}"
        template = enroll(
            args.images,
            args.rows,
            args.cols,
            identifier=args.identifier,
            settings=settings,
            filters=filters,
            output_path=output
        )
        print(f"[enroll] {args.identifier}: {template!r}")

    elif args.command == "enroll-dir":
        settings, filters = _enroll_settings(args)
        identities = group_by_identity(enumerate_images(args.directory))
        templates = enroll_many(
            identities,
            args.rows,
            args.cols,
            settings=settings,
            filters=filters,
            max_workers=args.workers
        )
        for identifier, template in sorted(templates.items()):
            save_template(template, args.output / f"{identifier}{TEMPLATE_EXTENSION}")
        print(f"[enroll] Saved {len(templates)} of {len(identities)} template(s) to {args.output}")
        if len(templates) < len(identities):
            return 1

    elif args.command == "verify":
        weights = {
            AreaType.BASIC: args.basic_weight,
            AreaType.GRID: args.grid_weight,
            AreaType.ROW: args.row_weight,
            AreaType.COL: args.col_weight,
        }
        accepted, score = verify(args.probe, args.template, args.threshold, weights)
        print(f"[verify] Result: {'ACCEPT' if accepted else 'REJECT'}")
        print(f"[verify] Score: {score!r}")
        return 0 if accepted else 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
