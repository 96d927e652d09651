"""Zhang-Suen thinning for handauth

Reduces every ink stroke of a binary image to a 1-pixel wide skeleton.

Neighbours of a pixel are taken clockwise starting above it:

    NW  N  NE        7  0  1
    W   p  E    =    6  p  2
    SW  S  SE        5  4  3

Each neighbourhood is encoded as an 8-bit code (bit k set when neighbour k is
ink, out-of-bounds neighbours are background), so one sub-step is a single
correlation followed by a lookup in a 256-entry removal table. Pixels are
marked over the whole image before any of them is removed.
"""

from __future__ import annotations
from typing import Optional
import numpy as np
from scipy import ndimage

from handauth.config import THINNING_MAX_ITER

NORTH, NORTH_EAST, EAST, SOUTH_EAST, SOUTH, SOUTH_WEST, WEST, NORTH_WEST = range(8)

# correlation weights: neighbour k contributes 2**k
_NEIGHBOUR_WEIGHTS = np.array([
    [1 << NORTH_WEST, 1 << NORTH, 1 << NORTH_EAST],
    [1 << WEST, 0, 1 << EAST],
    [1 << SOUTH_WEST, 1 << SOUTH, 1 << SOUTH_EAST],
], dtype=np.int32)


def neighbours_from_code(code: int) -> tuple:
    """Ink flags of the 8 neighbours (clockwise from N) encoded in ``code``."""
    return tuple(bool((code >> k) & 1) for k in range(8))


def white_neighbour_count(neighbours) -> int:
    return sum(1 for n in neighbours if n)


def transition_count(neighbours) -> int:
    """Number of ink -> background transitions walking the neighbours cyclically."""
    return sum(1 for k in range(8) if neighbours[k] and not neighbours[(k + 1) % 8])


def basic_condition(neighbours) -> bool:
    count = white_neighbour_count(neighbours)
    return 2 <= count <= 6 and transition_count(neighbours) == 1


def step1_condition(neighbours) -> bool:
    n, e, s, w = neighbours[NORTH], neighbours[EAST], neighbours[SOUTH], neighbours[WEST]
    return basic_condition(neighbours) and not (n and e and s) and not (e and s and w)


def step2_condition(neighbours) -> bool:
    n, e, s, w = neighbours[NORTH], neighbours[EAST], neighbours[SOUTH], neighbours[WEST]
    return basic_condition(neighbours) and not (n and e and w) and not (n and s and w)


def _removal_table(condition) -> np.ndarray:
    return np.array([condition(neighbours_from_code(code)) for code in range(256)], dtype=bool)


_STEP1_TABLE = _removal_table(step1_condition)
_STEP2_TABLE = _removal_table(step2_condition)


def neighbour_codes(mask: np.ndarray) -> np.ndarray:
    """8-bit neighbourhood code of every pixel of a boolean mask."""
    return ndimage.correlate(mask.astype(np.int32), _NEIGHBOUR_WEIGHTS, mode="constant", cval=0)


def _thinning_step(mask: np.ndarray, table: np.ndarray) -> int:
    marked = mask & table[neighbour_codes(mask)]
    removed = int(np.count_nonzero(marked))
    if removed:
        mask[marked] = False
    return removed


def zhang_suen_thinning(image: np.ndarray, max_iter: Optional[int] = None) -> np.ndarray:
    """Apply Zhang-Suen thinning until a full pass removes no pixel.

    Args:
        image: 2D binary image, non-zero pixels are ink
        max_iter: Maximum number of full passes (uses config default if None,
            which runs to the fixed point)

    Returns:
        Thinned image of the same shape and dtype; kept pixels keep their value
    """
    if image.ndim != 2:
        raise ValueError(f"Thinning expects a 2D image, got shape {image.shape}")

    if max_iter is None:
        max_iter = THINNING_MAX_ITER

    mask = image != 0
    iteration = 0

    while max_iter is None or iteration < max_iter:
        iteration += 1
        removed = _thinning_step(mask, _STEP1_TABLE)
        removed += _thinning_step(mask, _STEP2_TABLE)
        if removed == 0:
            break

    thinned = image.copy()
    thinned[~mask] = 0
    return thinned
