# src/closeout.py
"""
Closeout of the oldest ages with monotone-spline estimates.

A monotone spline on the cumulative counts often gives more convincing
single-age counts at the top of the age range than Sprague's multipliers,
which can go negative there. `sprague_closeout()` keeps the given split
below `pivot_age` and switches to the spline from `pivot_age` up.
"""
from __future__ import annotations

import logging
import warnings
from typing import Optional

import numpy as np
import pandas as pd

from errors import InvalidPivotAge
from helpers import as_age_frame, single_age_index, _restore_shape
from monotone import split_mono
from redistribution import sprague

logger = logging.getLogger(__name__)

# lowest pivot age accepted after moving it down
MIN_PIVOT_AGE = 80


def sprague_closeout(popmat, pops=None, pivot_age: Optional[int] = 90):
    """
    Blend the upper ages of a single-age split into monotone-spline estimates.

    Parameters
    ----------
    popmat : pd.DataFrame | pd.Series
        Counts in 5-year age groups ending in the open group (lower-bound
        ages as index, periods as columns).
    pops : pd.DataFrame | pd.Series, optional
        Single-age split of `popmat` to close out. Defaults to
        `sprague(popmat)`; a `grabill()` split works too, although then the
        period totals are not necessarily preserved.
    pivot_age : int
        Age at which to switch to spline-based estimates (default 90). Must
        be a group lower bound at least 10 years below the open group.

    Returns
    -------
    pd.DataFrame | pd.Series
        Single-age counts, negatives floored at zero.

    Notes
    -----
    If `pivot_age` is too high it is moved to the open age minus 10 with an
    `InvalidPivotAge` warning; if that lands below 80, `pops` is returned
    as-is and no closeout is performed.

    In the pivot group the larger of the Sprague and spline estimates is used
    for the first age, then the five single ages are rescaled to the
    original group count. Higher ages come from the spline.
    """
    frame, was_series = as_age_frame(popmat)
    if pops is None:
        pops_frame = sprague(frame)
    else:
        pops_frame, _ = as_age_frame(pops)

    age5 = frame.index.to_numpy(dtype=int)
    age1 = np.arange(age5.min(), age5.max() + 1)
    if len(pops_frame) != len(age1):
        raise ValueError(
            f"[sprague_closeout] pops has {len(pops_frame)} rows, expected {len(age1)} single ages."
        )

    popmono = np.column_stack([
        split_mono(frame[col].to_numpy(), age5=age5, keep_oag=True)
        for col in frame.columns
    ])

    pivot_age = int(pivot_age)
    max_pivot = int(age1.max()) - 10
    if pivot_age > max_pivot:
        pivot_age = max_pivot
        if pivot_age < MIN_PIVOT_AGE:
            warnings.warn(
                f"pivot_age moved to {pivot_age}, 10 years below the open age, but that is < "
                f"{MIN_PIVOT_AGE}; returning the split as-is, no closeout performed.",
                InvalidPivotAge,
                stacklevel=2,
            )
            return _restore_shape(pops_frame, was_series)
        warnings.warn(f"pivot_age moved to {pivot_age}, continued.", InvalidPivotAge, stacklevel=2)

    if pivot_age not in frame.index:
        raise ValueError(f"[sprague_closeout] pivot_age {pivot_age} is not an age-group lower bound.")

    pi = int(np.flatnonzero(age1 == pivot_age)[0])
    sprague_vals = pops_frame.to_numpy(dtype=float)

    # favour the larger estimate at the seam
    window = popmono[pi:pi + 5].copy()
    larger = sprague_vals[pi] > window[0]
    window[0, larger] = sprague_vals[pi, larger]
    window = np.nan_to_num(window, nan=0.0)

    # rescale the pivot group back to its original total
    pivot5 = frame.loc[pivot_age].to_numpy(dtype=float)
    wsum = window.sum(axis=0)
    ok = wsum != 0
    window[:, ok] = window[:, ok] / wsum[ok] * pivot5[ok]

    out = np.vstack([sprague_vals[:pi], window, popmono[pi + 5:]])
    out[out < 0] = 0.0

    logger.debug("sprague_closeout: pivot at %d, %d columns", pivot_age, out.shape[1])
    result = pd.DataFrame(
        out,
        index=single_age_index(age1[0], len(age1), name=frame.index.name),
        columns=frame.columns,
    )
    return _restore_shape(result, was_series)


__all__ = ["MIN_PIVOT_AGE", "sprague_closeout"]
