# src/oscillate.py
"""
Oscillatory average of Sprague splits.

Single ages can be grouped into 5-year age groups in five ways by staggering
terminal digits. Splitting each grouping with Sprague and averaging per age
dampens digit heaping; the result is smoother than `sprague()` though not as
smooth as `grabill()`.
"""
from __future__ import annotations

import logging
import math

import numpy as np
import pandas as pd

from closeout import sprague_closeout
from helpers import age_lower_bounds, calc_age_n, group_ages
from redistribution import sprague

logger = logging.getLogger(__name__)

N_OFFSETS = 5
CLOSEOUT_AGE = 90


def _offset_estimate(values: np.ndarray, ages: np.ndarray, shift: int, closeout: bool) -> np.ndarray:
    """
    Sprague estimates for one terminal-digit offset, NaN where this offset
    does not cover an age or the estimate is negative.
    """
    est = np.full(values.size, np.nan)

    age_n = calc_age_n(ages, n=5, shiftdown=shift)
    # only use age groups with all 5 single ages represented
    grp, counts = np.unique(age_n, return_counts=True)
    full = set(grp[counts == 5].tolist())
    keep = np.array([a in full for a in age_n], dtype=bool)
    if not keep.any():
        return est

    val5 = group_ages(values[keep], ages[keep], age_n=age_n[keep])
    # placeholder open age group; discarded below
    val5.loc[int(val5.index.max()) + 5] = math.pi

    pop_est = sprague(val5)
    if closeout:
        # pivot on the shifted group holding CLOSEOUT_AGE
        pivot = int(calc_age_n([CLOSEOUT_AGE], n=5, shiftdown=shift)[0])
        pop_est = sprague_closeout(val5, pop_est, pivot_age=pivot)

    pop_est = pop_est.to_numpy(dtype=float, copy=True)[:-1]
    pop_est[pop_est < 0] = np.nan
    est[keep] = pop_est
    return est


def sprague_oscillate(values, ages=None, oag: bool = True, closeout: bool = True) -> pd.Series:
    """
    Average Sprague splits over the five terminal-digit groupings.

    Parameters
    ----------
    values : array-like or pd.Series
        Single-age counts.
    ages : array-like of int, optional
        Single ages (lower bounds); taken from the Series index or 0, 1, ...
        when omitted.
    oag : bool
        Is the last value the open age group? (default True). It is returned
        unchanged.
    closeout : bool
        Close out each Sprague split with `sprague_closeout()` (default
        True). Recommended: it usually gives more plausible results and avoids
        negative values.

    Returns
    -------
    pd.Series
        Smoothed single-age counts indexed by age. Results are not constrained
        to any age group, but the closed ages sum to the original closed total.
    """
    name = values.name if isinstance(values, pd.Series) else None
    if ages is None:
        if isinstance(values, pd.Series):
            ages = age_lower_bounds(values.index)
        else:
            ages = np.arange(len(values))
    vals = np.asarray(values, dtype=float)
    ages = np.asarray(ages, dtype=int)
    if vals.size != ages.size:
        raise ValueError("values and ages must have the same length.")

    if oag:
        open_val, open_age = vals[-1], ages[-1]
        vals, ages = vals[:-1], ages[:-1]

    total = vals.sum()
    p1x1 = np.column_stack([
        _offset_estimate(vals, ages, shift, closeout) for shift in range(N_OFFSETS)
    ])

    # mean per age over the offsets that cover it
    counts = np.sum(~np.isnan(p1x1), axis=1)
    p_out = np.where(counts > 0, np.nansum(p1x1, axis=1) / np.maximum(counts, 1), np.nan)
    if np.any(counts == 0):
        logger.warning("sprague_oscillate: %d ages have no usable estimate", int(np.sum(counts == 0)))

    # rescale to proper total
    p_out = p_out * total / np.nansum(p_out)

    if oag:
        ages = np.append(ages, open_age)
        p_out = np.append(p_out, open_val)
    return pd.Series(p_out, index=pd.Index(ages), name=name)


__all__ = ["sprague_oscillate"]
