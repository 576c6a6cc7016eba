# src/coefficients.py
"""
Sprague and Grabill coefficient matrices for splitting 5-year age groups.

Sprague multipliers follow Siegel & Swanson (2004, p. 727), as arranged in
the Buettner & Gerland splitting scripts; Grabill's multipliers follow
Shryock & Siegel (1973). A coefficient matrix maps m grouped rows to
single-age rows and depends only on (m, open-group flag).
"""
from __future__ import annotations

import logging

import numpy as np

from errors import InsufficientGroups

logger = logging.getLogger(__name__)

MIN_GROUPS = 6


# ---------------------------------------------------------------------
# Sprague multipliers
# ---------------------------------------------------------------------
# ages 0-9
G1G2 = np.array([
    [ 0.3616, -0.2768,  0.1488, -0.0336,  0.0000],
    [ 0.2640, -0.0960,  0.0400, -0.0080,  0.0000],
    [ 0.1840,  0.0400, -0.0320,  0.0080,  0.0000],
    [ 0.1200,  0.1360, -0.0720,  0.0160,  0.0000],
    [ 0.0704,  0.1968, -0.0848,  0.0176,  0.0000],
    [ 0.0336,  0.2272, -0.0752,  0.0144,  0.0000],
    [ 0.0080,  0.2320, -0.0480,  0.0080,  0.0000],
    [-0.0080,  0.2160, -0.0080,  0.0000,  0.0000],
    [-0.0160,  0.1840,  0.0400, -0.0080,  0.0000],
    [-0.0176,  0.1408,  0.0912, -0.0144,  0.0000],
])

# middle panels
G3 = np.array([
    [-0.0128,  0.0848,  0.1504, -0.0240,  0.0016],
    [-0.0016,  0.0144,  0.2224, -0.0416,  0.0064],
    [ 0.0064, -0.0336,  0.2544, -0.0336,  0.0064],
    [ 0.0064, -0.0416,  0.2224,  0.0144, -0.0016],
    [ 0.0016, -0.0240,  0.1504,  0.0848, -0.0128],
])

# last ten closed ages
G4G5 = np.array([
    [0.0000, -0.0144,  0.0912,  0.1408, -0.0176],
    [0.0000, -0.0080,  0.0400,  0.1840, -0.0160],
    [0.0000,  0.0000, -0.0080,  0.2160, -0.0080],
    [0.0000,  0.0080, -0.0480,  0.2320,  0.0080],
    [0.0000,  0.0144, -0.0752,  0.2272,  0.0336],
    [0.0000,  0.0176, -0.0848,  0.1968,  0.0704],
    [0.0000,  0.0160, -0.0720,  0.1360,  0.1200],
    [0.0000,  0.0080, -0.0320,  0.0400,  0.1840],
    [0.0000, -0.0080,  0.0400, -0.0960,  0.2640],
    [0.0000, -0.0336,  0.1488, -0.2768,  0.3616],
])

# ---------------------------------------------------------------------
# Grabill multipliers
# ---------------------------------------------------------------------
G3_GRABILL = np.array([
    [ 0.0111, 0.0816, 0.0826, 0.0256, -0.0009],
    [ 0.0049, 0.0673, 0.0903, 0.0377, -0.0002],
    [ 0.0015, 0.0519, 0.0932, 0.0519,  0.0015],
    [-0.0002, 0.0377, 0.0903, 0.0673,  0.0049],
    [-0.0009, 0.0256, 0.0826, 0.0816,  0.0111],
])

for _block in (G1G2, G3, G4G5, G3_GRABILL):
    _block.setflags(write=False)


def _check_groups(m: int, caller: str) -> None:
    if m < MIN_GROUPS:
        raise InsufficientGroups(
            f"[{caller}] need at least {MIN_GROUPS} age groups (including the open group), got {m}."
        )


def _place_middle_panels(bm: np.ndarray, block: np.ndarray, n_panels: int) -> None:
    """
    Stagger `block` down the diagonal: panel i fills rows 10+5i..14+5i and
    columns i..i+4.
    """
    for i in range(n_panels):
        r0 = 10 + 5 * i
        bm[r0:r0 + 5, i:i + 5] = block


def sprague_expand(m: int, oag: bool = True) -> np.ndarray:
    """
    Sprague coefficient matrix for `m` 5-year age groups.

    Parameters
    ----------
    m : int
        Number of age groups, open group included when `oag` is True.
    oag : bool
        Is the last group open? If so it is passed through unchanged and the
        matrix has 5m-4 rows; otherwise 5m rows.

    Returns
    -------
    np.ndarray
        (n, m) coefficient matrix; every column sums to 1.
    """
    m = int(m)
    _check_groups(m, "sprague_expand")

    n = 5 * m - (4 if oag else 0)
    n_panels = m - (5 if oag else 4)

    bm = np.zeros((n, m), dtype=float)
    bm[0:10, 0:5] = G1G2
    _place_middle_panels(bm, G3, n_panels)

    fr = n - (11 if oag else 10)
    fc = m - (6 if oag else 5)
    bm[fr:fr + 10, fc:fc + 5] = G4G5

    if oag:
        bm[n - 1, m - 1] = 1.0

    logger.debug("sprague_expand: %d groups -> %s coefficient matrix (oag=%s)", m, bm.shape, oag)
    return bm


def grabill_expand(m: int) -> np.ndarray:
    """
    Grabill coefficient matrix for `m` 5-year age groups ending in an open group.

    The boundary blocks reuse the Grabill middle panel, so boundary columns
    do NOT sum to 1. `grabill()` blends these rows into the Sprague split and
    rescales, which restores the period totals.
    """
    m = int(m)
    _check_groups(m, "grabill_expand")

    m1 = 5 * m - 5
    n_panels = m - 5

    young = np.zeros((10, 5), dtype=float)
    young[0:5, 0:3] = G3_GRABILL[:, 2:5]
    young[5:10, 0:4] = G3_GRABILL[:, 1:5]

    old = np.zeros((10, 5), dtype=float)
    old[0:5, 1:5] = G3_GRABILL[:, 0:4]
    old[5:10, 2:5] = G3_GRABILL[:, 0:3]

    bm = np.zeros((m1 + 1, m), dtype=float)
    bm[0:10, 0:5] = young
    fr = (m - 3) * 5
    fc = m - 6
    bm[fr:fr + 10, fc:fc + 5] = old
    _place_middle_panels(bm, G3_GRABILL, n_panels)

    # open age group passes through
    bm[m1, m - 1] = 1.0

    logger.debug("grabill_expand: %d groups -> %s coefficient matrix", m, bm.shape)
    return bm


__all__ = [
    "G1G2",
    "G3",
    "G4G5",
    "G3_GRABILL",
    "MIN_GROUPS",
    "sprague_expand",
    "grabill_expand",
]
