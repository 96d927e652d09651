"""Configuration file for handauth

This module contains all configurable parameters for the signature template
and verification system.

Modify these values to tune the system behavior without changing the core code.
"""

from pathlib import Path
from typing import Optional

# ============================================================================
# FILE PATHS AND EXTENSIONS
# ============================================================================

DEFAULT_TEMPLATE_PATH = Path.cwd() / "templates"  # Default templates directory
IMAGE_EXTENSIONS = {".bmp", ".png", ".jpg", ".jpeg", ".tif", ".tiff"}  # Supported image formats

# ============================================================================
# GRID GEOMETRY
# ============================================================================

# Default grid size (typically tens of rows by tens of columns)
ROWS_DEFAULT: int = 20
COLS_DEFAULT: int = 60

# Overlapping field grid: field = floor(10 * dim / (3 * count + 7)),
# stride = floor(FIELD_STRIDE_RATIO * field)
FIELD_SIZE_NUMERATOR: float = 10.0
FIELD_SIZE_COUNT_FACTOR: float = 3.0
FIELD_SIZE_OFFSET: float = 7.0
FIELD_STRIDE_RATIO: float = 0.3

# Minimum region sizes (exclusive), smaller means too many rows/cols
FIELD_SIZE_MIN: int = 5
BAND_SIZE_MIN: int = 3

# ============================================================================
# IMAGE PREPROCESSING
# ============================================================================

# Width every sample is resized to (height follows the aspect ratio)
TARGET_WIDTH: int = 500

# Bilateral denoising
BILATERAL_DIAMETER: int = 5
BILATERAL_SIGMA_COLOR: float = 75.0
BILATERAL_SIGMA_SPACE: float = 75.0

# Contrast stretch applied after min-max normalization
CONTRAST_ALPHA: float = 1.1
CONTRAST_BETA: float = 20.0

# Gamma of the darkening lookup table (value = (i / 255) ** GAMMA * 255)
NORMALISE_GAMMA: float = 2.0

# Blur before Otsu foreground thresholding
FOREGROUND_BLUR_KSIZE: int = 3

# ============================================================================
# FEATURE EXTRACTION
# ============================================================================

# Kernel size for spatial gradient / Sobel operators
GRADIENT_KSIZE: int = 3

# Histogram of gradients: 90 bins of 2 degrees over [0, 180)
HOG_BINS: int = 90
HOG_BIN_WIDTH_DEG: float = 2.0

# Corner detection (Shi-Tomasi)
CORNER_MAX_CORNERS: int = 0  # 0 = unlimited
CORNER_QUALITY_LEVEL: float = 0.01
CORNER_MIN_DISTANCE: float = 5.0

# ============================================================================
# THINNING
# ============================================================================

# Maximum Zhang-Suen passes (None = run until no pixel is removed)
THINNING_MAX_ITER: Optional[int] = None

# ============================================================================
# TEMPLATE CURATION
# ============================================================================

# Area filter: minimum mean ink length as a fraction of the region area
AREA_FILTER_FIELD_THRESHOLD: float = 0.05
AREA_FILTER_ROWCOL_THRESHOLD: float = 0.02

# Std-mean filter: maximum std / mean ratio of a stable region
STD_MEAN_FILTER_THRESHOLD: float = 0.5

# ============================================================================
# VERIFICATION THRESHOLDS
# ============================================================================

# Default decision threshold on the weighted per-area z-score mean
VERIFICATION_THRESHOLD: float = 1.25

# Per-area threshold weights (multiplied with the area score)
BASIC_THRESHOLD_WEIGHT: float = 1.0
GRID_THRESHOLD_WEIGHT: float = 1.0
ROW_THRESHOLD_WEIGHT: float = 1.0
COL_THRESHOLD_WEIGHT: float = 1.0

# Threshold sweep used by evaluation
MIN_THRESHOLD: float = 1.0
MAX_THRESHOLD: float = 3.0
THRESHOLD_STEP: float = 0.05

# ============================================================================
# TEMPLATE STORAGE
# ============================================================================

TEMPLATE_EXTENSION: str = ".json"
TEMPLATE_FORMAT_VERSION: int = 1

# ============================================================================
# LOGGING AND DEBUG
# ============================================================================

LOG_DIR: Path = Path.cwd() / "logs"
VERBOSE: bool = False  # Also log to console when True

# ============================================================================
# VALIDATION
# ============================================================================

def validate_config():
    """Validate configuration consistency."""
    errors = []

    if ROWS_DEFAULT < 1 or COLS_DEFAULT < 1:
        errors.append(f"ROWS_DEFAULT and COLS_DEFAULT must be positive (got {ROWS_DEFAULT}, {COLS_DEFAULT})")

    if not (0.0 < FIELD_STRIDE_RATIO <= 1.0):
        errors.append(f"FIELD_STRIDE_RATIO must be in (0.0, 1.0] (got {FIELD_STRIDE_RATIO})")

    if TARGET_WIDTH <= 0:
        errors.append(f"TARGET_WIDTH must be positive (got {TARGET_WIDTH})")

    if FOREGROUND_BLUR_KSIZE % 2 != 1:
        errors.append(f"FOREGROUND_BLUR_KSIZE must be odd (got {FOREGROUND_BLUR_KSIZE})")

    if HOG_BINS * HOG_BIN_WIDTH_DEG != 180.0:
        errors.append(f"HOG_BINS * HOG_BIN_WIDTH_DEG must cover 180 degrees "
                      f"(got {HOG_BINS * HOG_BIN_WIDTH_DEG})")

    if THINNING_MAX_ITER is not None and THINNING_MAX_ITER <= 0:
        errors.append(f"THINNING_MAX_ITER must be positive or None (got {THINNING_MAX_ITER})")

    for name, value in (
        ("AREA_FILTER_FIELD_THRESHOLD", AREA_FILTER_FIELD_THRESHOLD),
        ("AREA_FILTER_ROWCOL_THRESHOLD", AREA_FILTER_ROWCOL_THRESHOLD),
    ):
        if not (0.0 <= value <= 1.0):
            errors.append(f"{name} must be in [0.0, 1.0] (got {value})")

    if STD_MEAN_FILTER_THRESHOLD < 0.0:
        errors.append(f"STD_MEAN_FILTER_THRESHOLD must be non-negative (got {STD_MEAN_FILTER_THRESHOLD})")

    if VERIFICATION_THRESHOLD <= 0.0:
        errors.append(f"VERIFICATION_THRESHOLD must be positive (got {VERIFICATION_THRESHOLD})")

    if MIN_THRESHOLD > MAX_THRESHOLD or THRESHOLD_STEP <= 0.0:
        errors.append(f"Threshold sweep must satisfy MIN <= MAX and STEP > 0 "
                      f"(got {MIN_THRESHOLD}, {MAX_THRESHOLD}, {THRESHOLD_STEP})")

    if errors:
        raise ValueError("Configuration validation failed:\n" + "\n".join(errors))

# Run validation on import
validate_config()
