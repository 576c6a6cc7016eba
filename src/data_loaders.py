# src/data_loaders.py
import os
import logging
import yaml
import pyreadr
import pandas as pd

from helpers import parse_edad, _find_col

logger = logging.getLogger(__name__)


def return_default_config():
    """
    Returns the default configuration dictionary
    """
    return {
        "paths": {
            "data_dir": "./data",
            "results_dir": "./results",
            "population_file": "./data/poblacion_5.csv",
        },
        "input": {
            "age_col": "EDAD",
            "period_col": "ANO",
            "value_col": "VALOR",
            "series_keys": ["DPTO_NOMBRE", "SEXO"],
        },
        "splitting": {
            "method": "sprague",
            "oag": True,
            "closeout": {"enabled": False, "pivot_age": 90, "base": "sprague"},
            "oscillate": {"closeout": True},
        },
        "diagnostics": {
            "check_totals": True,
            "total_rtol": 1e-9,
        },
        "filenames": {"single_year": "single_year.csv"},
    }

def _resolve(ROOT_DIR, p):
    """
    Resolve path p relative to ROOT_DIR if not absolute.
    """
    return os.path.abspath(os.path.join(ROOT_DIR, p))

def _deep_merge(dst, src):
    """
    Recursively merge src into dst
    """
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = v

def _load_config(ROOT_DIR: str, path: str):
    """
    Load YAML config if present; otherwise use defaults for both config and paths.
    Returns (cfg, PATHS)
    """
    cfg = return_default_config()
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as fh:
            user = yaml.safe_load(fh) or {}
        _deep_merge(cfg, user)
    else:
        logger.info("[config] No config file at %s; using built-in defaults.", path)

    PATHS = {
        "data_dir": _resolve(ROOT_DIR, cfg["paths"]["data_dir"]),
        "results_dir": _resolve(ROOT_DIR, cfg["paths"]["results_dir"]),
        "population_file": _resolve(ROOT_DIR, cfg["paths"]["population_file"]),
    }
    return cfg, PATHS

# ----------------------------- readers ------------------------------

def read_rds_file(file_path: str) -> pd.DataFrame:
    """
    Reads an RDS file and returns its contents as a pandas DataFrame.
    """
    try:
        result = pyreadr.read_r(file_path)
        return result[None]
    except Exception as e:
        raise RuntimeError(f"Failed to read {file_path}: {e}")

def load_population(path: str) -> pd.DataFrame:
    """
    Load a long population table (one row per series, period and age group)
    from CSV or RDS.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    ext = os.path.splitext(path)[1].lower()
    if ext == ".rds":
        return read_rds_file(path)
    return pd.read_csv(path)

# ----------------------------- reshaping ------------------------------

def allocate_and_drop_missing_age(df: pd.DataFrame,
                                  grouping: list,
                                  age_col: str = "EDAD",
                                  value_col: str = "VALOR") -> pd.DataFrame:
    """
    Redistributes rows with missing age data proportionally to rows with known ages,
    then removes the missing age rows.
    """
    df = df.copy()
    df[value_col] = df[value_col].astype(float)
    grouping = [c for c in grouping if c in df.columns]
    groups = df.groupby(grouping, dropna=False) if grouping else [(None, df)]
    for _, grp in groups:
        idx = grp.index
        miss = grp[age_col].isna()
        obs  = ~miss
        M = grp.loc[miss, value_col].sum()
        S = grp.loc[obs,  value_col].sum()
        if M > 0 and S > 0:
            weights = grp.loc[obs, value_col] / S
            df.loc[idx[obs], value_col] += M * weights
    df = df[df[age_col].notna()].copy()
    return df

def to_age_period_matrix(df: pd.DataFrame,
                         age_col: str = "EDAD",
                         period_col: str = "ANO",
                         value_col: str = "VALOR") -> pd.DataFrame:
    """
    Pivot a long table into an age-by-period count matrix.

    Age labels ('0-4', '90+', '5') are reduced to integer lower bounds; rows
    are sorted by age and duplicate (age, period) cells are summed. The
    value column falls back to any column whose name contains 'valor' or
    'value'.
    """
    if value_col not in df.columns:
        cand = _find_col(df, ["valor"]) or _find_col(df, ["value"])
        if cand is None:
            raise KeyError(f"Column '{value_col}' not found in DataFrame")
        value_col = cand
    for c in (age_col, period_col):
        if c not in df.columns:
            raise KeyError(f"Column '{c}' not found in DataFrame")

    work = df[[age_col, period_col, value_col]].copy()
    lo = work[age_col].apply(lambda t: parse_edad(t)[0])
    if lo.isna().any():
        bad = work.loc[lo.isna(), age_col].unique()
        raise ValueError(f"Cannot parse age labels: {list(bad)}")
    work["_age"] = lo.astype(int)
    work[value_col] = pd.to_numeric(work[value_col], errors="coerce").fillna(0.0)

    mat = pd.pivot_table(
        work,
        index="_age",
        columns=period_col,
        values=value_col,
        aggfunc="sum",
        fill_value=0.0,
    ).sort_index()
    mat.index.name = age_col
    mat.columns.name = None
    return mat.astype(float)
