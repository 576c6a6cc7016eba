# src/monotone.py
"""
Monotone spline splitting of grouped counts.

The cumulative sum of the grouped counts is interpolated with a
Fritsch-Carlson monotone cubic Hermite spline and differenced at single
ages. The spline passes exactly through the cumulative points and is
non-decreasing, so the single-age counts are non-negative.
"""
from __future__ import annotations

import numpy as np
from scipy.interpolate import CubicHermiteSpline


def monotone_slopes(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Fritsch-Carlson knot derivatives for monotone Hermite interpolation.

    Starts from the mean of adjacent secants (end knots take the one-sided
    secant), zeroes both slopes on flat intervals, and pulls (alpha, beta)
    back onto the monotonicity region where the Fritsch-Carlson test fails.
    Intervals are processed left to right; each adjustment feeds the next.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size != y.size:
        raise ValueError("x and y must have the same length.")
    if x.size < 2:
        raise ValueError("Need at least two knots.")
    if not np.all(np.diff(x) > 0):
        raise ValueError("Knots must be strictly increasing.")

    sx = np.diff(y) / np.diff(x)
    if sx.size == 1:
        return np.array([sx[0], sx[0]])
    m = np.concatenate([[sx[0]], (sx[1:] + sx[:-1]) / 2.0, [sx[-1]]])

    for k in range(sx.size):
        sk = sx[k]
        if sk == 0.0:
            m[k] = m[k + 1] = 0.0
            continue
        alpha = m[k] / sk
        beta = m[k + 1] / sk
        a2b3 = 2.0 * alpha + beta - 3.0
        ab23 = alpha + 2.0 * beta - 3.0
        if a2b3 > 0 and ab23 > 0 and alpha * (a2b3 + ab23) < a2b3 * a2b3:
            tau = 3.0 * sk / np.sqrt(alpha * alpha + beta * beta)
            m[k] = tau * alpha
            m[k + 1] = tau * beta
    return m


def split_mono(values, age5=None, keep_oag: bool = False) -> np.ndarray:
    """
    Split age-grouped counts into single ages with a monotone spline.

    Parameters
    ----------
    values : array-like
        Counts in age groups (5-year groups, last one possibly open).
    age5 : array-like of int, optional
        Lower bounds of the groups; defaults to 0, 5, 10, ...
    keep_oag : bool
        Re-impute the last element of `values` as the open age group
        (default False). The spline's open-age estimate has no meaning since
        the open group has no width.

    Returns
    -------
    np.ndarray
        Single-age counts for ages min(age5) .. max(age5).
    """
    vals = np.asarray(values, dtype=float)
    if age5 is None:
        age5 = np.arange(vals.size) * 5
    age5 = np.asarray(age5, dtype=int)
    if age5.size != vals.size:
        raise ValueError("values and age5 must have the same length.")

    lo = int(age5.min())
    x = np.concatenate([[lo], age5 + 5]).astype(float)
    y = np.concatenate([[0.0], np.cumsum(vals)])
    age_pred = np.arange(lo, int(age5.max()) + 2, dtype=float)

    spline = CubicHermiteSpline(x, y, monotone_slopes(x, y))
    single = np.diff(spline(age_pred))
    if keep_oag:
        single[-1] = vals[-1]
    return single


__all__ = ["monotone_slopes", "split_mono"]
