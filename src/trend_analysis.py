"""
trend_analysis.py
Grouped statistics and per-crime-type linear trends for the NIA crime rates

All functions take the long-format table from `data_cleaning.reshape_to_long`.
Missing rates are excluded from every computation, never counted as zero.
"""

import logging

import numpy as np
import pandas as pd
from scipy import stats

from data_cleaning import CRIME_TYPE, NEIGHBOURHOOD, RATE, YEAR

log = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

INSUFFICIENT_DATA = "insufficient data"
FITTED = "ok"

# Slopes within ± this many incidents per 100k per year read as "flat"
FLAT_SLOPE_TOLERANCE = 0.5

# linregress p-values need residual degrees of freedom
MIN_YEARS_FOR_SIGNIFICANCE = 3


# ── Helpers ───────────────────────────────────────────────────────────────────

def _canonical_order(long: pd.DataFrame) -> pd.DataFrame:
    """
    Sort on the keys (and the rate itself, to break ties) so grouped sums are
    accumulated in the same order however the input rows were shuffled.
    """
    keys = [c for c in (CRIME_TYPE, YEAR, NEIGHBOURHOOD) if c in long.columns]
    ordered = long.assign(**{RATE: pd.to_numeric(long[RATE], errors="coerce")})
    return ordered.sort_values(keys + [RATE], kind="mergesort", na_position="last")


# ── Aggregation ───────────────────────────────────────────────────────────────

def summary_statistics(long: pd.DataFrame) -> pd.DataFrame:
    """Mean, median, sample standard deviation and present-value count per crime type."""
    ordered = _canonical_order(long)
    summary = (
        ordered.groupby(CRIME_TYPE)[RATE]
        .agg(["mean", "median", "std", "count"])
        .rename(columns={"mean": "Mean", "median": "Median", "std": "Std Dev", "count": "N"})
    )
    return summary


def yearly_averages(long: pd.DataFrame) -> pd.DataFrame:
    """Average rate across neighbourhoods for every (crime type, year)."""
    ordered = _canonical_order(long)
    yearly = (
        ordered.groupby([CRIME_TYPE, YEAR])[RATE]
        .mean()
        .reset_index(name="Average Rate")
    )
    yearly[YEAR] = yearly[YEAR].astype(int)
    return yearly


# ── Trend Fitting ─────────────────────────────────────────────────────────────

def _present(years, rates) -> tuple[np.ndarray, np.ndarray]:
    years = np.asarray(years, dtype=float)
    rates = np.asarray(rates, dtype=float)
    keep = ~np.isnan(years) & ~np.isnan(rates)
    return years[keep], rates[keep]


def fit_trend(years, rates) -> dict:
    """
    Ordinary least-squares line rate = slope * year + intercept.
    Fewer than two distinct years gives INSUFFICIENT_DATA instead of a fit.
    """
    years, rates = _present(years, rates)
    n_years = len(np.unique(years))
    if n_years < 2:
        return {"slope": None, "intercept": None, "n_years": n_years, "status": INSUFFICIENT_DATA}

    slope, intercept = np.polyfit(years, rates, 1)
    return {"slope": float(slope), "intercept": float(intercept),
            "n_years": n_years, "status": FITTED}


def fit_all_trends(yearly: pd.DataFrame) -> pd.DataFrame:
    """One fitted line per crime type. Insufficient groups are reported, not raised."""
    rows = []
    for crime_type, grp in yearly.groupby(CRIME_TYPE):
        fit = fit_trend(grp[YEAR], grp["Average Rate"])
        if fit["status"] == INSUFFICIENT_DATA:
            log.warning(f"{crime_type}: {fit['n_years']} distinct year(s) — no trend fitted")
        rows.append({
            CRIME_TYPE:  crime_type,
            "Slope":     fit["slope"],
            "Intercept": fit["intercept"],
            "Years":     fit["n_years"],
            "Status":    fit["status"],
        })
    return pd.DataFrame(rows, columns=[CRIME_TYPE, "Slope", "Intercept", "Years", "Status"])


def trend_line(fit: dict, years) -> np.ndarray | None:
    if fit["status"] != FITTED:
        return None
    return fit["slope"] * np.asarray(years, dtype=float) + fit["intercept"]


def trend_direction(slope, tolerance: float = FLAT_SLOPE_TOLERANCE) -> str:
    if slope is None or pd.isna(slope):
        return INSUFFICIENT_DATA
    if slope > tolerance:
        return "rising"
    if slope < -tolerance:
        return "falling"
    return "flat"


# ── Significance ──────────────────────────────────────────────────────────────

def trend_significance(years, rates) -> dict:
    """
    R² and two-sided p-value for the slope. Reported alongside the table only;
    the plotted line always comes from `fit_trend`.
    """
    years, rates = _present(years, rates)
    n_years = len(np.unique(years))
    if n_years < MIN_YEARS_FOR_SIGNIFICANCE:
        return {"r_squared": None, "p_value": None, "n_years": n_years, "status": INSUFFICIENT_DATA}

    result = stats.linregress(years, rates)
    return {
        "r_squared": float(result.rvalue ** 2),
        "p_value":   float(result.pvalue),
        "n_years":   n_years,
        "status":    FITTED,
    }


def significance_table(yearly: pd.DataFrame) -> pd.DataFrame:
    rows = []
    for crime_type, grp in yearly.groupby(CRIME_TYPE):
        sig = trend_significance(grp[YEAR], grp["Average Rate"])
        rows.append({CRIME_TYPE: crime_type, "R²": sig["r_squared"], "p-value": sig["p_value"]})
    return pd.DataFrame(rows, columns=[CRIME_TYPE, "R²", "p-value"])
