"""
data_cleaning.py
Preparation Pipeline for the NIA Crime Trend Analysis

Design principles:
- Every transformation is logged with before/after counts
- No silent data loss — all decisions are documented
- Functions are pure (input → output), no global state
- A single `run_pipeline()` call reproduces the long-format table end-to-end
"""

import pandas as pd
import numpy as np
import logging
import json
from pathlib import Path

from data_collection import (
    CRIME_TYPE_LABELS, KEY_COLUMN, RATE_SUFFIX, YEAR_COLUMN, YEAR_RANGE,
    filter_nia, load_data, load_nia_ids, rate_columns, unlisted_rate_columns,
)

# ── Logging Setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

# Long-format column names
NEIGHBOURHOOD = "Neighbourhood"
YEAR          = "Year"
CRIME_TYPE    = "Crime Type"
RATE          = "Rate"
COUNT         = "Count"

# Display label → column stem, for re-pivoting
_LABEL_TO_STEM = {label: stem for stem, label in CRIME_TYPE_LABELS.items()}


# ── Audit Trail ───────────────────────────────────────────────────────────────

class AuditTrail:
    """Tracks every preparation decision with before/after row counts and change stats."""

    def __init__(self, total_rows: int):
        self.total_rows = total_rows
        self.steps: list[dict] = []

    def record(self, step: str, description: str, changed: int, detail: str = ""):
        pct = changed / self.total_rows * 100 if self.total_rows else 0.0
        self.steps.append({
            "step": step,
            "description": description,
            "rows_affected": changed,
            "pct_affected": round(pct, 2),
            "detail": detail,
        })
        log.info(f"[{step}] {description} → {changed:,} rows affected ({pct:.1f}%) {detail}")

    def save(self, path: str):
        class _NumpyEncoder(json.JSONEncoder):
            """Convert numpy int/float types to native Python before serialising."""
            def default(self, obj):
                if isinstance(obj, np.integer):
                    return int(obj)
                if isinstance(obj, np.floating):
                    return float(obj)
                if isinstance(obj, np.ndarray):
                    return obj.tolist()
                return super().default(obj)

        with open(path, "w") as f:
            json.dump({"total_rows": self.total_rows, "steps": self.steps}, f,
                      indent=2, cls=_NumpyEncoder)
        log.info(f"Audit trail saved → {path}")

    def summary(self):
        print("\n" + "=" * 65)
        print("PREPARATION AUDIT SUMMARY")
        print("=" * 65)
        print(f"{'Step':<22} {'Affected':>10} {'%':>7}  Description")
        print("-" * 65)
        for s in self.steps:
            print(f"{s['step']:<22} {s['rows_affected']:>10,} {s['pct_affected']:>6.1f}%  {s['description']}")
        print("=" * 65)


# ── Helper: column name ↔ crime-type label ────────────────────────────────────

def crime_type_label(column: str) -> str:
    """`ASSAULT_RATE` → `Assault`. Unknown stems are returned as-is."""
    stem = column[: -len(RATE_SUFFIX)] if column.endswith(RATE_SUFFIX) else column
    return CRIME_TYPE_LABELS.get(stem, stem)


def rate_column_for(label: str) -> str:
    return f"{_LABEL_TO_STEM.get(label, label)}{RATE_SUFFIX}"


# ── Step 1: NIA Filter ────────────────────────────────────────────────────────

def keep_nia_neighbourhoods(df: pd.DataFrame, nia_ids, audit: AuditTrail) -> pd.DataFrame:
    before = len(df)
    df = filter_nia(df, nia_ids)
    audit.record("NIA filter", f"Rows outside the {len(nia_ids)} NIA neighbourhoods removed",
                 before - len(df), f"({df[KEY_COLUMN].nunique()} neighbourhoods kept)")
    return df


# ── Step 2: Analysis Window ───────────────────────────────────────────────────

def restrict_years(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    before = len(df)
    in_window = df[YEAR_COLUMN].between(*YEAR_RANGE).fillna(False).astype(bool)
    df = df.loc[in_window].reset_index(drop=True)
    audit.record("Year window", f"Rows outside {YEAR_RANGE[0]}–{YEAR_RANGE[1]} removed",
                 before - len(df))
    return df


# ── Step 3: Rate Validation ───────────────────────────────────────────────────

def clean_rates(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    """
    Rates are per 100,000 residents and cannot be negative. Negative values are
    nulled rather than dropped so the row still fans out during the reshape.
    """
    df = df.copy()
    negatives = 0
    for col in rate_columns(df):
        df[col] = pd.to_numeric(df[col], errors="coerce")
        bad = df[col] < 0
        negatives += int(bad.sum())
        df.loc[bad, col] = np.nan

    audit.record("Rates: negative → NaN", "Negative rates treated as missing", negatives)
    return df


# ── Step 4: Wide → Long ───────────────────────────────────────────────────────

def reshape_to_long(df: pd.DataFrame) -> pd.DataFrame:
    """
    One row per (neighbourhood, year) with N rate columns becomes N rows per
    (neighbourhood, year). Output always has exactly len(df) × N rows.

    Only the known crime types are fanned out; any other `*_RATE` column is
    left out of the long table with a warning.

    A raw count is carried alongside the rate only when every rate column has
    a matching count column (`ASSAULT_RATE` ↔ `ASSAULT`).
    """
    rates = rate_columns(df)
    if not rates:
        raise ValueError(f"Dataset has no known crime-type '*{RATE_SUFFIX}' columns to reshape")

    unlisted = unlisted_rate_columns(df)
    if unlisted:
        log.warning(f"Rate columns outside the known crime types — not reshaped: {unlisted}")

    counts = [c[: -len(RATE_SUFFIX)] for c in rates]
    has_counts = all(c in df.columns for c in counts)
    if not has_counts:
        counts = []
    id_cols = [c for c in df.columns if c not in rates and c not in counts and c not in unlisted]

    long = df.melt(id_vars=id_cols, value_vars=rates, var_name=CRIME_TYPE, value_name=RATE)
    if has_counts:
        # melt is column-major, so counts line up row-for-row with the rates
        long[COUNT] = df[counts].melt()["value"].to_numpy()

    long[CRIME_TYPE] = long[CRIME_TYPE].map(crime_type_label)
    return long.rename(columns={KEY_COLUMN: NEIGHBOURHOOD, YEAR_COLUMN: YEAR})


def pivot_to_wide(long: pd.DataFrame) -> pd.DataFrame:
    """Inverse of `reshape_to_long`."""
    values = [c for c in (RATE, COUNT) if c in long.columns]
    id_cols = [c for c in long.columns if c not in values and c != CRIME_TYPE]

    wide = long.set_index(id_cols + [CRIME_TYPE])[values].unstack(CRIME_TYPE)

    columns = []
    for value, label in wide.columns:
        rate_col = rate_column_for(label)
        columns.append(rate_col if value == RATE else rate_col[: -len(RATE_SUFFIX)])
    wide.columns = columns

    wide = wide.reset_index().rename(columns={NEIGHBOURHOOD: KEY_COLUMN, YEAR: YEAR_COLUMN})
    return wide


# ── Pipeline Orchestrator ─────────────────────────────────────────────────────

def run_pipeline(
    input_path: str,
    output_path: str | None = None,
    audit_path: str | None = None,
    nia_path: str | None = None,
) -> pd.DataFrame:
    """
    End-to-end preparation pipeline. Call this to reproduce the long table.

    Parameters
    ----------
    input_path  : path to the neighbourhood crime-rate CSV
    output_path : optional path for the long-format CSV
    audit_path  : optional path for the JSON audit log
    nia_path    : optional CSV of NIA identifiers (defaults to the 2014 list)

    Returns
    -------
    Long-format DataFrame, one row per neighbourhood-year-crime-type
    """
    log.info("=" * 60)
    log.info("NIA CRIME RATES — PREPARATION PIPELINE START")
    log.info("=" * 60)

    df = load_data(input_path)
    nia_ids = load_nia_ids(nia_path)
    audit = AuditTrail(total_rows=len(df))

    df = keep_nia_neighbourhoods(df, nia_ids, audit)
    df = restrict_years(df, audit)
    df = clean_rates(df, audit)

    long = reshape_to_long(df)
    n_rates = len(rate_columns(df))
    audit.record("Wide → long", f"{n_rates} rate columns fanned out", len(df),
                 f"({len(df):,} rows × {n_rates} → {len(long):,} long rows)")

    if output_path:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        long.to_csv(output_path, index=False)
        log.info(f"Long-format data saved → {output_path}")
    log.info(f"Final shape: {long.shape[0]:,} rows × {long.shape[1]} columns")

    if audit_path:
        Path(audit_path).parent.mkdir(parents=True, exist_ok=True)
        audit.save(audit_path)
    audit.summary()

    return long


# ── Entry Point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    run_pipeline(
        input_path="data/raw/neighbourhood_crime_rates.csv",
        output_path="data/processed/nia_crime_rates_long.csv",
        audit_path="data/processed/preparation_audit.json",
    )
