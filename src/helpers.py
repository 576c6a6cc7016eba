# src/helpers.py
"""
General-purpose helpers shared across the splitting engines.

This module centralizes reusable utilities that are agnostic to the
splitting method:
- Age-label parsing ('0-4', '90+', '5') to integer lower bounds.
- Coercion of Series / DataFrame inputs to an age-by-period matrix.
- Age grouping into N-year bins, with optional terminal-digit shifts.
- Liberal header detection, list coercion and filename suffixes for the
  pipeline driver.

All functions are pure. Nothing here imports other project modules; every
engine imports from here.
"""
from __future__ import annotations

import os
import re
from typing import Optional, Tuple

import numpy as np
import pandas as pd

# ---------------------------------------------------------------------------
# Age labels
# ---------------------------------------------------------------------------

_age_pat    = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")   # e.g., 0-4
_open_pat   = re.compile(r"^\s*(\d+)\s*\+\s*$")          # e.g., 90+
_single_pat = re.compile(r"^\s*(\d+)\s*$")               # e.g., 0
_sep_pat    = re.compile(r"[,;]")

# column label for an unnamed Series while it is handled as a frame
_UNNAMED = "__unnamed__"


def parse_edad(label) -> Tuple[Optional[int], Optional[int]]:
    """
    Return (lo, hi) inclusive; (lo, None) for open-ended; (None, None) if unparsable.

    Integer and integral float labels are accepted as single ages.
    """
    if label is None or (isinstance(label, float) and np.isnan(label)):
        return (None, None)
    if isinstance(label, (int, np.integer)) and not isinstance(label, bool):
        return (int(label), int(label))
    if isinstance(label, (float, np.floating)) and float(label).is_integer():
        return (int(label), int(label))
    t = str(label).strip()
    m = _age_pat.match(t)
    if m:
        lo, hi = int(m.group(1)), int(m.group(2))
        if hi < lo:
            lo, hi = hi, lo
        return (lo, hi)
    m = _open_pat.match(t)
    if m:
        return (int(m.group(1)), None)
    m = _single_pat.match(t)
    if m:
        a = int(m.group(1))
        return (a, a)
    return (None, None)


def age_lower_bounds(labels) -> np.ndarray:
    """
    Lower-bound ages for an iterable of age labels.

    Raises
    ------
    ValueError
        If any label cannot be parsed.
    """
    out = []
    for lbl in labels:
        lo, _ = parse_edad(lbl)
        if lo is None:
            raise ValueError(f"Cannot parse age label: {lbl!r}")
        out.append(lo)
    return np.asarray(out, dtype=int)


# ---------------------------------------------------------------------------
# Age-by-period matrices
# ---------------------------------------------------------------------------

def as_age_frame(popmat) -> Tuple[pd.DataFrame, bool]:
    """
    Coerce a Series or DataFrame of counts to a float DataFrame with an
    integer age index.

    Parameters
    ----------
    popmat : pd.Series | pd.DataFrame
        Counts with age labels (lower bounds or 'lo-hi' / 'lo+' strings) as
        index and one column per period.

    Returns
    -------
    (pd.DataFrame, bool)
        The coerced copy and whether the input was a Series, so callers can
        hand a Series back.
    """
    was_series = isinstance(popmat, pd.Series)
    if was_series:
        frame = popmat.to_frame(name=popmat.name if popmat.name is not None else _UNNAMED)
    elif isinstance(popmat, pd.DataFrame):
        frame = popmat
    else:
        raise TypeError(
            f"Expected a pandas Series or DataFrame of age-labelled counts, got {type(popmat).__name__}."
        )
    if frame.shape[1] == 0:
        raise ValueError("Age-by-period matrix needs at least one column.")

    ages = age_lower_bounds(frame.index)
    if len(ages) > 1 and not np.all(np.diff(ages) > 0):
        raise ValueError("Ages must be strictly increasing.")

    out = pd.DataFrame(
        frame.to_numpy(dtype=float, copy=True),
        index=pd.Index(ages, name=frame.index.name),
        columns=frame.columns,
    )
    return out, was_series


def single_age_index(start: int, n: int, name=None) -> pd.Index:
    """Consecutive single ages start, start+1, ..., start+n-1."""
    return pd.Index(np.arange(int(start), int(start) + int(n)), name=name)


def _restore_shape(frame: pd.DataFrame, was_series: bool):
    """Return a Series if the caller passed one in."""
    if was_series:
        col = frame.columns[0]
        return frame.iloc[:, 0].rename(None if col == _UNNAMED else col)
    return frame


# ---------------------------------------------------------------------------
# Age grouping
# ---------------------------------------------------------------------------

def calc_age_n(ages, n: int = 5, shiftdown: int = 0) -> np.ndarray:
    """
    Lower bound of the N-year age group each single age belongs to.

    With `shiftdown` > 0 the group boundaries move down by that many years,
    e.g. n=5, shiftdown=1 groups ages as ..., 4-8, 9-13, ...

    Parameters
    ----------
    ages : array-like of int
        Single ages.
    n : int
        Group width (default 5).
    shiftdown : int
        Terminal-digit offset, |shiftdown| < n.

    Returns
    -------
    np.ndarray
        Group lower bounds aligned to `ages` (may be negative at the young end
        when shifted).
    """
    shift = abs(int(shiftdown))
    if shift >= n:
        raise ValueError(f"shiftdown must be smaller than the group width ({n}).")
    a = np.asarray(ages, dtype=int) + shift
    return a - a % int(n) - shift


def group_ages(values, ages=None, n: int = 5, shiftdown: int = 0, age_n=None) -> pd.Series:
    """
    Sum single-age values into N-year age groups.

    Parameters
    ----------
    values : array-like or pd.Series
        Single-age counts. A Series supplies its index as `ages` when `ages`
        is not given.
    ages : array-like of int, optional
        Single ages aligned to `values`; defaults to 0, 1, ...
    n : int
        Group width (default 5).
    shiftdown : int
        Terminal-digit offset passed to `calc_age_n`.
    age_n : array-like of int, optional
        Precomputed group lower bounds; overrides `n` and `shiftdown`.

    Returns
    -------
    pd.Series
        Group totals indexed by group lower bound, in age order.
    """
    name = values.name if isinstance(values, pd.Series) else None
    if ages is None:
        if isinstance(values, pd.Series):
            ages = age_lower_bounds(values.index)
        else:
            ages = np.arange(len(values))
    vals = np.asarray(values, dtype=float)
    if age_n is None:
        age_n = calc_age_n(ages, n=n, shiftdown=shiftdown)
    age_n = np.asarray(age_n, dtype=int)
    if len(age_n) != len(vals):
        raise ValueError("values and ages must have the same length.")

    out = pd.Series(vals).groupby(age_n, sort=True).sum()
    out.index = out.index.astype(int)
    out.name = name
    return out


# ---------------------------------------------------------------------------
# CSV helpers
# ---------------------------------------------------------------------------

def _find_col(df: pd.DataFrame, must_include: list[str]) -> str | None:
    """
    Return the first column name in `df` whose lowercase name contains *all*
    substrings in `must_include`. Used for robust header detection.
    """
    low = {str(c).lower(): c for c in df.columns}
    for lc, orig in low.items():
        if all(s in lc for s in must_include):
            return orig
    return None


def _coerce_list(x):
    """
    Series keys from config as a flat list of column names.

    Strings are split on ',' or ';'; lists are flattened one level with the
    same splitting applied to their string items. Anything else gives None.
    """
    if isinstance(x, str):
        return [s.strip() for s in _sep_pat.split(x) if s.strip()]
    if isinstance(x, list):
        out: list[str] = []
        for it in x:
            if isinstance(it, str):
                out.extend(_coerce_list(it))
            elif isinstance(it, list):
                out.extend(str(v) for v in it)
            else:
                out.append(str(it))
        return out
    return None


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def _with_suffix(fname: str, suffix: str) -> str:
    """
    Insert a suffix before the file extension.

    Example
    -------
    _with_suffix("foo.csv", "_bar") -> "foo_bar.csv"
    """
    if not suffix:
        return fname
    base, ext = os.path.splitext(fname)
    return f"{base}{suffix}{ext}"
