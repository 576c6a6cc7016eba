# src/redistribution.py
"""
Linear redistribution of 5-year age groups into single ages.

`sprague()` applies the Sprague coefficient matrix directly. `grabill()`
keeps Grabill's smoother middle ages, blends the ten youngest and ten oldest
closed ages into the Sprague split, and rescales so that each period total
matches the input.
"""
from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from coefficients import sprague_expand, grabill_expand
from errors import DimensionMismatch
from helpers import as_age_frame, single_age_index, _restore_shape

logger = logging.getLogger(__name__)

# number of boundary ages blended at each end in grabill()
BLEND_AGES = 10


def apply_coefficients(coefs: np.ndarray, popmat: pd.DataFrame) -> pd.DataFrame:
    """
    Multiply a coefficient matrix into an age-by-period count matrix.

    Parameters
    ----------
    coefs : np.ndarray
        (n, m) coefficient matrix.
    popmat : pd.DataFrame
        (m, k) counts with integer age index.

    Returns
    -------
    pd.DataFrame
        (n, k) single-age counts indexed from the youngest input age, with the
        input's columns.
    """
    coefs = np.asarray(coefs, dtype=float)
    if coefs.ndim != 2 or coefs.shape[1] != popmat.shape[0]:
        raise DimensionMismatch(
            f"Coefficient matrix has {coefs.shape[-1]} columns but the count matrix has {popmat.shape[0]} rows."
        )
    values = coefs @ popmat.to_numpy(dtype=float)
    start = int(popmat.index.min())
    return pd.DataFrame(
        values,
        index=single_age_index(start, coefs.shape[0], name=popmat.index.name),
        columns=popmat.columns,
    )


def sprague(popmat, oag: bool = True):
    """
    Split 5-year age groups into single ages with Sprague multipliers.

    Parameters
    ----------
    popmat : pd.DataFrame | pd.Series
        Counts in 5-year age groups: lower-bound ages as index, periods as
        columns. At least six groups including the open group.
    oag : bool
        Is the last group open? (default True). The open group is passed
        through unchanged.

    Returns
    -------
    pd.DataFrame | pd.Series
        Single-age counts with the same columns (a Series for Series input).

    Notes
    -----
    Irregular inputs can yield small negative counts in the oldest closed
    ages. Nothing here clamps them; use `sprague_closeout()` if that matters.
    """
    frame, was_series = as_age_frame(popmat)
    out = apply_coefficients(sprague_expand(len(frame), oag=oag), frame)
    logger.debug("sprague: %d groups -> %d single ages", len(frame), len(out))
    return _restore_shape(out, was_series)


def grabill_weights(n: int = BLEND_AGES) -> np.ndarray:
    """
    Blending weights exp(i) / exp(n + 0.1), i = 1..n.

    Near 0 at the boundary and about 0.9 n ages in. These do much better than
    linear weights.
    """
    i = np.arange(1, n + 1, dtype=float)
    return np.exp(i) / np.exp(n + 0.1)


def blend_grabill(pops: np.ndarray, popg: np.ndarray) -> np.ndarray:
    """
    Graft a raw Grabill split into a Sprague split and restore period totals.

    Parameters
    ----------
    pops : np.ndarray
        (n, k) Sprague single-age counts; last row is the open group.
    popg : np.ndarray
        (n, k) raw Grabill single-age counts from the same input.

    Returns
    -------
    np.ndarray
        Blended counts whose column sums equal those of `pops`.
    """
    pops = np.asarray(pops, dtype=float)
    popg = np.array(popg, dtype=float)
    if pops.shape != popg.shape:
        raise DimensionMismatch(f"Sprague split {pops.shape} and Grabill split {popg.shape} differ in shape.")

    n = pops.shape[0]
    w = grabill_weights(BLEND_AGES)[:, None]
    w_old = w[::-1]
    lr = n - 1            # open row, excluded
    fr = lr - BLEND_AGES  # first of the ten oldest closed ages

    popg[:BLEND_AGES] = w * popg[:BLEND_AGES] + (1.0 - w) * pops[:BLEND_AGES]
    popg[fr:lr] = w_old * popg[fr:lr] + (1.0 - w_old) * pops[fr:lr]

    # marginal constraint: spread the discrepancy over rows by blended weight
    wr = np.ones_like(pops)
    wr[:BLEND_AGES] = w
    wr[fr:lr] = w_old
    wr[n - 1] = 0.0

    redist = pops.sum(axis=0) - popg.sum(axis=0)
    middle = popg * wr
    share = np.divide(middle, middle.sum(axis=0), out=np.zeros_like(middle), where=middle.sum(axis=0) != 0)
    return popg + share * redist


def grabill(popmat):
    """
    Split 5-year age groups into single ages with Grabill's method.

    Grabill's aggressive middle-age redistribution is blended into the
    Sprague split over the first and final ten ages. Open age groups are
    preserved, as are period totals.

    Parameters
    ----------
    popmat : pd.DataFrame | pd.Series
        Counts in 5-year age groups ending in an open group; at least six
        groups.

    Returns
    -------
    pd.DataFrame | pd.Series
        Single-age counts.
    """
    frame, was_series = as_age_frame(popmat)
    m = len(frame)
    pops = apply_coefficients(sprague_expand(m, oag=True), frame)
    popg = apply_coefficients(grabill_expand(m), frame)

    out = pd.DataFrame(
        blend_grabill(pops.to_numpy(), popg.to_numpy()),
        index=pops.index,
        columns=pops.columns,
    )
    logger.debug("grabill: %d groups -> %d single ages", m, len(out))
    return _restore_shape(out, was_series)


__all__ = [
    "apply_coefficients",
    "sprague",
    "grabill_weights",
    "blend_grabill",
    "grabill",
]
