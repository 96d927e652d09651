"""Preprocessing module for handauth

This module contains all image preprocessing functions for signature processing:
- Image loading
- Normalization (denoise, contrast stretch, gamma darkening)
- Foreground extraction (Otsu binarization, ink becomes non-zero)
- Cropping to the ink bounding box and resizing to a fixed width
- Zhang-Suen thinning of the strokes

"""

from __future__ import annotations
from pathlib import Path
from typing import Optional
import cv2
import numpy as np

from handauth.models import Sample
from handauth.thinning import zhang_suen_thinning
from handauth.config import (
    TARGET_WIDTH,
    BILATERAL_DIAMETER, BILATERAL_SIGMA_COLOR, BILATERAL_SIGMA_SPACE,
    CONTRAST_ALPHA, CONTRAST_BETA, NORMALISE_GAMMA, FOREGROUND_BLUR_KSIZE
)


def load_grayscale_image(path: Path) -> np.ndarray:
    """Load signature image as grayscale uint8.

    Args:
        path: Path to signature image file

    Returns:
        Grayscale image as uint8 (0-255 range)

    Raises:
        FileNotFoundError: If image cannot be loaded
    """
    image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise FileNotFoundError(f"Unable to read signature image: {path}")

    return image


def gamma_lookup_table(gamma: float = None) -> np.ndarray:
    """256-entry table mapping i to (i / 255) ** gamma * 255, clamped to [0, 255]."""
    if gamma is None:
        gamma = NORMALISE_GAMMA

    values = np.power(np.arange(256, dtype=np.float64) / 255.0, gamma) * 255.0
    return np.clip(values, 0.0, 255.0).astype(np.uint8)


def normalise_image(image: np.ndarray,
                    alpha: float = None,
                    beta: float = None,
                    gamma: float = None) -> np.ndarray:
    """Normalize paper and ink intensities.

    Applies bilateral denoising, min-max stretch to [0, 255], a linear
    contrast boost ``alpha * v + beta`` and a gamma lookup that darkens
    mid-tones so faint strokes survive thresholding.

    Args:
        image: Input grayscale image (uint8)
        alpha: Contrast gain (uses config default if None)
        beta: Brightness offset (uses config default if None)
        gamma: Lookup table gamma (uses config default if None)

    Returns:
        Normalized image (uint8)
    """
    if alpha is None:
        alpha = CONTRAST_ALPHA
    if beta is None:
        beta = CONTRAST_BETA

    denoised = cv2.bilateralFilter(image, BILATERAL_DIAMETER, BILATERAL_SIGMA_COLOR, BILATERAL_SIGMA_SPACE)
    stretched = cv2.normalize(denoised, None, 0, 255, cv2.NORM_MINMAX)
    contrasted = cv2.convertScaleAbs(stretched, alpha=alpha, beta=beta)
    return cv2.LUT(contrasted, gamma_lookup_table(gamma))


def extract_foreground(image: np.ndarray, ksize: int = None) -> np.ndarray:
    """Binarize with Otsu's threshold, ink becomes 255 and paper 0.

    Args:
        image: Normalized grayscale image (uint8)
        ksize: Gaussian blur kernel size (uses config default if None)

    Returns:
        Binary image (uint8, values 0 or 255)
    """
    if ksize is None:
        ksize = FOREGROUND_BLUR_KSIZE

    blurred = cv2.GaussianBlur(image, (ksize, ksize), 0, borderType=cv2.BORDER_REPLICATE)
    _, binary = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    return binary


def crop_to_ink(binary: np.ndarray) -> np.ndarray:
    """Crop to the union of the bounding boxes of all external contours.

    Raises:
        ValueError: If the image contains no ink
    """
    contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    if not contours:
        raise ValueError("No ink found in signature image")

    x0, y0 = binary.shape[1], binary.shape[0]
    x1, y1 = 0, 0
    for contour in contours:
        x, y, w, h = cv2.boundingRect(contour)
        x0, y0 = min(x0, x), min(y0, y)
        x1, y1 = max(x1, x + w), max(y1, y + h)

    return binary[y0:y1, x0:x1].copy()


def resize_to_width(image: np.ndarray, width: int, ratio: Optional[float] = None) -> np.ndarray:
    """Resize with nearest-neighbour interpolation to a fixed width.

    Args:
        image: Binary image
        width: Target width (pixels)
        ratio: Aspect ratio width / height to keep (uses the image's own if None)

    Returns:
        Resized image of ``width`` x ``int(width / ratio)`` pixels
    """
    if ratio is None:
        ratio = float(image.shape[1]) / float(image.shape[0])

    height = max(1, int(width / ratio))
    return cv2.resize(image, (width, height), interpolation=cv2.INTER_NEAREST)


def preprocess(image: np.ndarray,
               target_width: int = None,
               ratio: Optional[float] = None,
               thinning_max_iter: Optional[int] = None) -> Sample:
    """Turn a raw grayscale signature into a thinned, fixed-width sample.

    Pipeline: normalise → foreground → crop → resize → Zhang-Suen thinning.

    Args:
        image: Raw grayscale image (uint8)
        target_width: Output width (uses config default if None)
        ratio: Aspect ratio forced on the output (the cropped image's own if None)
        thinning_max_iter: Cap on thinning passes (config default if None)

    Returns:
        Sample whose non-zero pixels are the 1-pixel wide strokes

    Raises:
        ValueError: If the image contains no ink
    """
    if target_width is None:
        target_width = TARGET_WIDTH

    normalised = normalise_image(image)
    binary = extract_foreground(normalised)
    cropped = crop_to_ink(binary)
    resized = resize_to_width(cropped, target_width, ratio)
    thinned = zhang_suen_thinning(resized, max_iter=thinning_max_iter)
    return Sample(thinned)


def load_sample(path: Path, target_width: int = None, ratio: Optional[float] = None) -> Sample:
    """Load and preprocess a signature image file.

    Raises:
        FileNotFoundError: If image cannot be loaded
        ValueError: If the image contains no ink
    """
    return preprocess(load_grayscale_image(path), target_width=target_width, ratio=ratio)
