"""
data_collection.py
Loading and NIA filtering for the Toronto Neighbourhood Crime Rates table

Two input layouts are accepted:
- one row per (neighbourhood, year) with `<CRIME>_RATE` columns
- the open-data layout with years spread across columns (`ASSAULT_RATE_2014`)
"""

import logging
import re
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

log = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

KEY_COLUMN  = "HOOD_ID"
YEAR_COLUMN = "YEAR"
RATE_SUFFIX = "_RATE"

# Analysis window, inclusive
YEAR_RANGE = (2014, 2023)

# Column stem → display label. The crime-type set is fixed for the analysis.
CRIME_TYPE_LABELS = {
    "ASSAULT":     "Assault",
    "AUTOTHEFT":   "Auto Theft",
    "BIKETHEFT":   "Bike Theft",
    "BREAKENTER":  "Break and Enter",
    "HOMICIDE":    "Homicide",
    "ROBBERY":     "Robbery",
    "SHOOTING":    "Shooting",
    "THEFTFROMMV": "Theft from Motor Vehicle",
    "THEFTOVER":   "Theft Over",
}

# Neighbourhoods designated as Neighbourhood Improvement Areas in 2014
# (140-neighbourhood model identifiers)
NIA_HOOD_IDS = frozenset({
    "2", "3", "5", "6", "21", "22", "24", "25", "26", "27", "28",
    "43", "44", "55", "61", "72", "85", "91", "110", "111", "112",
    "113", "115", "121", "124", "125", "126", "135", "136", "137",
    "138", "139",
})

# ASSAULT_2014 (count) or ASSAULT_RATE_2014 (rate)
_YEAR_COLUMN_RE = re.compile(r"^(?P<metric>[A-Z]+(?:_RATE)?)_(?P<year>\d{4})$")


# ── Layout conversion ─────────────────────────────────────────────────────────

def from_year_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Convert the open-data layout (one column per metric per year) into one row
    per (neighbourhood, year) with a column per metric.
    """
    year_cols = [c for c in df.columns if _YEAR_COLUMN_RE.match(str(c))]
    if not year_cols:
        raise ValueError(
            f"Dataset has no '{YEAR_COLUMN}' column and no year-suffixed metric columns"
        )
    id_cols = [c for c in df.columns if c not in year_cols]

    long = df.melt(id_vars=id_cols, value_vars=year_cols, var_name="_column", value_name="_value")
    parts = long["_column"].str.extract(_YEAR_COLUMN_RE)
    long["_metric"] = parts["metric"]
    long[YEAR_COLUMN] = parts["year"].astype(int)

    wide = (
        long.set_index(id_cols + [YEAR_COLUMN, "_metric"])["_value"]
        .unstack("_metric")
        .reset_index()
    )
    wide.columns.name = None
    log.info(f"Converted year-wide layout: {len(year_cols)} columns → "
             f"{len(wide):,} neighbourhood-year rows")
    return wide


# ── Load ──────────────────────────────────────────────────────────────────────

def load_data(filepath: str) -> pd.DataFrame:
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {filepath}")

    log.info(f"Loading: {filepath}")
    # Read identifiers as text so a blank one can't turn "72" into "72.0"
    df = pd.read_csv(path, dtype={KEY_COLUMN: str})
    log.info(f"Loaded {len(df):,} rows × {len(df.columns)} columns")

    if KEY_COLUMN not in df.columns:
        raise ValueError(f"Dataset is missing expected column: {KEY_COLUMN}")

    df[KEY_COLUMN] = df[KEY_COLUMN].str.strip()
    no_key = df[KEY_COLUMN].isna() | (df[KEY_COLUMN] == "")
    if no_key.any():
        log.warning(f"{no_key.sum():,} rows have no {KEY_COLUMN} — dropped")
        df = df.loc[~no_key].reset_index(drop=True)

    if YEAR_COLUMN not in df.columns:
        df = from_year_columns(df)

    df[YEAR_COLUMN] = pd.to_numeric(df[YEAR_COLUMN], errors="coerce").astype("Int64")

    missing_rates = [c for c in expected_rate_columns() if c not in df.columns]
    if missing_rates:
        log.warning(f"Expected rate columns not found — skipping: {missing_rates}")

    return df


def load_nia_ids(filepath: str | None = None) -> frozenset[str]:
    """NIA identifiers from a CSV with a HOOD_ID column, or the 2014 defaults."""
    if filepath is None:
        return NIA_HOOD_IDS

    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"NIA file not found: {filepath}")

    nia = pd.read_csv(path, dtype=str)
    if KEY_COLUMN not in nia.columns:
        raise ValueError(f"NIA file is missing expected column: {KEY_COLUMN}")

    ids = frozenset(nia[KEY_COLUMN].dropna().str.strip())
    log.info(f"Loaded {len(ids)} NIA identifiers from {filepath}")
    return ids


# ── Filter ────────────────────────────────────────────────────────────────────

def filter_nia(df: pd.DataFrame, nia_ids: Iterable[str]) -> pd.DataFrame:
    if isinstance(nia_ids, str):
        raise TypeError("nia_ids must be a collection of identifiers, not a single string")
    if KEY_COLUMN not in df.columns:
        raise ValueError(f"Dataset is missing expected column: {KEY_COLUMN}")

    nia_ids = {str(i).strip() for i in nia_ids}
    mask = df[KEY_COLUMN].astype(str).str.strip().isin(nia_ids)
    return df.loc[mask].reset_index(drop=True)


# ── Crime-type columns ────────────────────────────────────────────────────────

def expected_rate_columns() -> list[str]:
    return [f"{stem}{RATE_SUFFIX}" for stem in CRIME_TYPE_LABELS]


def rate_columns(df: pd.DataFrame) -> list[str]:
    """Rate columns for the known crime types, in table order."""
    expected = set(expected_rate_columns())
    return [c for c in df.columns if c in expected]


def unlisted_rate_columns(df: pd.DataFrame) -> list[str]:
    """`*_RATE` columns that are not one of the known crime types (e.g. `VACANCY_RATE`)."""
    expected = set(expected_rate_columns())
    return [c for c in df.columns if str(c).endswith(RATE_SUFFIX) and c not in expected]
