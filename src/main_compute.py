# ------------------------------------------------------------------------------
# Single-age splitting pipeline.
# - Reads a long table of counts in 5-year age groups (CSV or RDS).
# - Splits every (series_keys) series into single ages with the configured
#   method: sprague | grabill | mono | closeout | oscillate.
# - Checks period totals against the grouped input (diagnostics.check_totals).
# - Writes ONE long CSV to results_dir (filenames.single_year, suffixed by
#   method).
# ------------------------------------------------------------------------------


from __future__ import annotations
from typing import Dict, Optional
import os
import logging
import numpy as np
import pandas as pd
from tqdm import tqdm

from data_loaders import (
    _load_config,
    load_population,
    allocate_and_drop_missing_age,
    to_age_period_matrix,
)
from helpers import _coerce_list, _with_suffix, as_age_frame, single_age_index
from redistribution import sprague, grabill
from monotone import split_mono
from closeout import sprague_closeout
from oscillate import sprague_oscillate

logger = logging.getLogger(__name__)

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
CONFIG_PATH = os.path.join(ROOT_DIR, "config.yaml")

METHODS = ("sprague", "grabill", "mono", "closeout", "oscillate")


# ------------------------------- Splitting -----------------------------------

def _split_mono_frame(frame: pd.DataFrame, oag: bool) -> pd.DataFrame:
    """Monotone-spline split of every column; single ages from the youngest group."""
    age5 = frame.index.to_numpy(dtype=int)
    cols = {c: split_mono(frame[c].to_numpy(), age5=age5, keep_oag=oag) for c in frame.columns}
    out = pd.DataFrame(cols, columns=frame.columns)
    out.index = single_age_index(age5.min(), len(out), name=frame.index.name)
    return out


def _oscillate_frame(frame: pd.DataFrame, oag: bool, closeout: bool) -> pd.DataFrame:
    """Oscillatory average of every column of a single-age matrix."""
    ages = frame.index.to_numpy(dtype=int)
    if len(ages) > 1 and not np.all(np.diff(ages) == 1):
        raise ValueError("[oscillate] needs single-age input (consecutive ages).")
    cols = {
        c: sprague_oscillate(frame[c].to_numpy(), ages, oag=oag, closeout=closeout).to_numpy()
        for c in frame.columns
    }
    return pd.DataFrame(cols, index=frame.index, columns=frame.columns)


def split_population(popmat,
                     method: str = "sprague",
                     *,
                     oag: bool = True,
                     pivot_age: int = 90,
                     base: str = "sprague",
                     oscillate_closeout: bool = True) -> pd.DataFrame:
    """
    Split an age-by-period count matrix into single ages.

    Parameters
    ----------
    popmat : Age-by-period counts (5-year groups; single ages for 'oscillate').
    method : One of 'sprague', 'grabill', 'mono', 'closeout', 'oscillate'.
    oag : Is the last age group open? ('grabill' and 'closeout' require it.)
    pivot_age : Closeout pivot age (method 'closeout').
    base : Split to close out, 'sprague' or 'grabill' (method 'closeout').
    oscillate_closeout : Close out each offset's split (method 'oscillate').

    Returns
    -------
    pd.DataFrame with single ages in rows and the input's columns.
    """
    frame, _ = as_age_frame(popmat)
    method = str(method).strip().lower()

    if method == "sprague":
        return sprague(frame, oag=oag)
    if method == "grabill":
        return grabill(frame)
    if method == "mono":
        return _split_mono_frame(frame, oag)
    if method == "closeout":
        if base == "grabill":
            return sprague_closeout(frame, grabill(frame), pivot_age=pivot_age)
        if base != "sprague":
            raise ValueError(f"Unknown closeout base: {base!r}")
        return sprague_closeout(frame, pivot_age=pivot_age)
    if method == "oscillate":
        return _oscillate_frame(frame, oag, oscillate_closeout)
    raise ValueError(f"Unknown splitting method: {method!r}. Expected one of {METHODS}.")


def check_totals(single: pd.DataFrame, grouped: pd.DataFrame, rtol: float = 1e-9) -> pd.Series:
    """
    Per-period relative discrepancy between split and grouped totals.
    Logs a warning for every period above `rtol`.
    """
    s = single.sum(axis=0)
    g = grouped.sum(axis=0)
    rel = (s - g).abs() / g.abs().where(g != 0, 1.0)
    bad = rel[rel > rtol]
    for period, v in bad.items():
        logger.warning("[check_totals] period %s: split total deviates by %.3g (relative).", period, v)
    return rel


# ------------------------------- Pipeline ------------------------------------

def _series_groups(df: pd.DataFrame, series_keys: list):
    keys = [c for c in series_keys if c in df.columns]
    if not keys:
        yield {}, df
        return
    for vals, g in df.groupby(keys, dropna=False):
        if not isinstance(vals, tuple):
            vals = (vals,)
        yield dict(zip(keys, vals)), g


def run_pipeline(cfg: dict, paths: Dict[str, str], df: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    Split every series of the population table and write the long result.

    `df` overrides reading `paths['population_file']`.
    Returns the long single-age DataFrame that was written.
    """
    inp = cfg["input"]
    spl = cfg["splitting"]
    diag = cfg.get("diagnostics", {})
    age_col, period_col, value_col = inp["age_col"], inp["period_col"], inp["value_col"]
    series_keys = _coerce_list(inp.get("series_keys")) or []

    method = str(spl.get("method", "sprague")).lower()
    co = spl.get("closeout", {})
    if method == "sprague" and bool(co.get("enabled", False)):
        method = "closeout"

    if df is None:
        df = load_population(paths["population_file"])
    df = allocate_and_drop_missing_age(
        df, grouping=series_keys + [period_col], age_col=age_col, value_col=value_col
    )

    groups = list(_series_groups(df, series_keys))
    logger.info("[pipeline] %d series, method=%s", len(groups), method)

    records = []
    for keyvals, g in tqdm(groups, desc=f"split:{method}", disable=len(groups) < 2):
        grouped = to_age_period_matrix(g, age_col=age_col, period_col=period_col, value_col=value_col)
        single = split_population(
            grouped,
            method,
            oag=bool(spl.get("oag", True)),
            pivot_age=int(co.get("pivot_age", 90)),
            base=str(co.get("base", "sprague")),
            oscillate_closeout=bool(spl.get("oscillate", {}).get("closeout", True)),
        )
        if bool(diag.get("check_totals", True)):
            check_totals(single, grouped, rtol=float(diag.get("total_rtol", 1e-9)))

        long = (
            single.rename_axis(age_col)
                  .reset_index()
                  .melt(id_vars=age_col, var_name=period_col, value_name=value_col)
        )
        for k, v in keyvals.items():
            long[k] = v
        records.append(long)

    cols = [*series_keys, period_col, age_col, value_col]
    out = pd.concat(records, ignore_index=True) if records else pd.DataFrame(columns=cols)
    out = out[[c for c in cols if c in out.columns]]

    os.makedirs(paths["results_dir"], exist_ok=True)
    fname = _with_suffix(cfg.get("filenames", {}).get("single_year", "single_year.csv"), f"_{method}")
    out_path = os.path.join(paths["results_dir"], fname)
    out.to_csv(out_path, index=False)
    logger.info("[pipeline] wrote %d rows to %s", len(out), out_path)
    return out


def main(config_path: str = CONFIG_PATH) -> pd.DataFrame:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    cfg, paths = _load_config(ROOT_DIR, config_path)
    return run_pipeline(cfg, paths)


# ----------------------------------- main -------------------------------------
if __name__ == "__main__":
    main()
