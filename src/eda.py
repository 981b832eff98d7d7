"""
eda.py
Crime Trend Report for Toronto's Neighbourhood Improvement Areas, 2014–2023

Design principles:
- Every figure answers one question: which crime types rose or fell in NIAs?
- Visuals are publication-ready (labeled, titled, sourced)
- Fitted lines are plain least-squares overlays; significance is reported
  in the table, never drawn
- All outputs are reproducible and saved with descriptive names
"""

import argparse
import logging
import math
import sys
from pathlib import Path

import pandas as pd
import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import seaborn as sns

from data_cleaning import CRIME_TYPE, RATE, YEAR, run_pipeline
from trend_analysis import (
    FITTED, INSUFFICIENT_DATA, fit_all_trends, significance_table,
    summary_statistics, trend_direction, trend_line, yearly_averages,
)

log = logging.getLogger(__name__)

# ── Style ─────────────────────────────────────────────────────────────────────
PALETTE    = "YlOrRd"
ACCENT     = "#D62728"   # red — fitted trend lines
NEUTRAL    = "#4C72B0"   # blue — observed yearly averages
BG_GRAY    = "#F7F7F7"
OUTPUT_DIR = Path("data/processed")
PANEL_COLS = 3

plt.rcParams.update({
    "figure.facecolor": BG_GRAY,
    "axes.facecolor":   BG_GRAY,
    "axes.spines.top":  False,
    "axes.spines.right": False,
    "axes.labelsize":   11,
    "axes.titlesize":   13,
    "axes.titleweight": "bold",
    "xtick.labelsize":  9,
    "ytick.labelsize":  9,
    "font.family":      "sans-serif",
})


# ── Helpers ───────────────────────────────────────────────────────────────────

def _save(fig: plt.Figure, name: str, fig_dir: Path) -> Path:
    fig_dir.mkdir(parents=True, exist_ok=True)
    path = fig_dir / f"{name}.png"
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  ✓ Saved → {path}")
    return path


def _source_note(ax, note="Source: Toronto Police Service Public Safety Data Portal"):
    ax.annotate(note, xy=(0, -0.18), xycoords="axes fraction",
                fontsize=7, color="gray")


def fmt_thousands(ax, axis="y"):
    fmt = mticker.FuncFormatter(lambda x, _: f"{x:,.0f}")
    if axis == "y":
        ax.yaxis.set_major_formatter(fmt)
    else:
        ax.xaxis.set_major_formatter(fmt)


def _fmt(value, pattern=",.2f") -> str:
    return "n/a" if pd.isna(value) else format(value, pattern)


def build_summary_table(summary: pd.DataFrame, trends: pd.DataFrame,
                        significance: pd.DataFrame) -> pd.DataFrame:
    """Descriptive statistics joined with each crime type's slope and fit quality."""
    table = (
        summary.reset_index()
        .merge(trends[[CRIME_TYPE, "Slope", "Status"]], on=CRIME_TYPE, how="left")
        .merge(significance, on=CRIME_TYPE, how="left")
    )
    return table.set_index(CRIME_TYPE)


# ── Table ─────────────────────────────────────────────────────────────────────

def render_summary_table(table: pd.DataFrame, output_dir: Path = OUTPUT_DIR) -> Path:
    """
    Q: How high is each crime rate in NIAs, and how much does it vary?
    Printed, saved as CSV and drawn as a figure for embedding.
    """
    print("=" * 60)
    print("TABLE 1 | CRIME RATE SUMMARY (per 100,000 residents)")
    print("=" * 60)
    print(table.round(3).to_string())

    output_dir.mkdir(parents=True, exist_ok=True)
    table.to_csv(output_dir / "summary_statistics.csv")

    display = table.copy()
    for col in ("Mean", "Median", "Std Dev", "Slope"):
        display[col] = display[col].apply(_fmt)
    display["N"] = display["N"].apply(lambda v: _fmt(v, ",.0f"))
    display["R²"] = display["R²"].apply(lambda v: _fmt(v, ".2f"))
    display["p-value"] = display["p-value"].apply(lambda v: _fmt(v, ".3f"))

    fig, ax = plt.subplots(figsize=(12, 0.45 * len(display) + 1.5))
    ax.axis("off")
    cells = ax.table(
        cellText=display.values,
        rowLabels=display.index,
        colLabels=display.columns,
        loc="center",
        cellLoc="center",
    )
    cells.auto_set_font_size(False)
    cells.set_fontsize(9)
    cells.scale(1, 1.3)
    ax.set_title("Crime Rates in Neighbourhood Improvement Areas, 2014–2023")
    return _save(fig, "01_summary_table", output_dir / "plots")


# ── Figure: Small Multiples ───────────────────────────────────────────────────

def render_trend_panels(yearly: pd.DataFrame, trends: pd.DataFrame,
                        output_dir: Path = OUTPUT_DIR) -> Path:
    """
    Q: Which crime types are rising or falling in NIAs?
    One panel per crime type: yearly average with its least-squares line.
    """
    print("\n" + "=" * 60)
    print("FIGURE 1 | YEARLY AVERAGE RATE WITH LINEAR TREND")
    print("=" * 60)

    crime_types = sorted(yearly[CRIME_TYPE].unique())
    ncols = min(PANEL_COLS, max(len(crime_types), 1))
    nrows = max(math.ceil(len(crime_types) / ncols), 1)

    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 3.4 * nrows),
                             sharex=True, squeeze=False)
    fig.suptitle("Average Crime Rate per 100,000 Residents in NIAs",
                 fontsize=14, fontweight="bold")
    fits = trends.set_index(CRIME_TYPE)

    for ax, crime_type in zip(axes.flat, crime_types):
        series = yearly[yearly[CRIME_TYPE] == crime_type].sort_values(YEAR)
        ax.plot(series[YEAR], series["Average Rate"], marker="o", color=NEUTRAL,
                linewidth=2, label="Yearly average")

        row = fits.loc[crime_type]
        fit = {"slope": row["Slope"], "intercept": row["Intercept"], "status": row["Status"]}
        line = trend_line(fit, series[YEAR])
        if line is None:
            ax.text(0.5, 0.5, "Insufficient data", transform=ax.transAxes,
                    ha="center", va="center", fontsize=10, color="gray")
        else:
            ax.plot(series[YEAR], line, "--", color=ACCENT, linewidth=2,
                    label=f"Trend: {fit['slope']:+.1f}/yr")
            ax.legend(fontsize=7)

        ax.set_title(crime_type, fontsize=11)
        ax.xaxis.set_major_locator(mticker.MaxNLocator(integer=True))
        fmt_thousands(ax)

    for ax in list(axes.flat)[len(crime_types):]:
        ax.set_visible(False)

    for ax in axes[-1]:
        ax.set_xlabel("Year")
    for ax in axes[:, 0]:
        ax.set_ylabel("Rate per 100k")
    _source_note(axes[-1, 0])

    plt.tight_layout()
    return _save(fig, "02_trend_panels", output_dir / "plots")


# ── Figure: Heatmap ───────────────────────────────────────────────────────────

def render_rate_heatmap(yearly: pd.DataFrame, output_dir: Path = OUTPUT_DIR) -> Path:
    """
    Q: In which years did each crime type peak?
    Rows are normalised to their own maximum so rare crimes stay visible.
    """
    grid = yearly.pivot(index=CRIME_TYPE, columns=YEAR, values="Average Rate")
    grid_norm = grid.div(grid.max(axis=1), axis=0)

    fig, ax = plt.subplots(figsize=(12, 0.5 * len(grid) + 2))
    sns.heatmap(grid_norm, ax=ax, cmap=PALETTE, linewidths=0.3,
                cbar_kws={"label": "Share of Peak Year"})
    ax.set_title("Crime Type vs Year (Normalised)\nWhen did each type peak?")
    ax.set_xlabel("Year")
    ax.set_ylabel("")
    _source_note(ax)

    plt.tight_layout()
    return _save(fig, "03_rate_heatmap", output_dir / "plots")


# ── Findings ──────────────────────────────────────────────────────────────────

def narrate_findings(trends: pd.DataFrame, significance: pd.DataFrame | None = None) -> list[str]:
    """One sentence per crime type describing the direction of its trend."""
    sig = significance.set_index(CRIME_TYPE) if significance is not None else None

    findings = []
    for _, row in trends.iterrows():
        crime_type = row[CRIME_TYPE]
        if row["Status"] != FITTED:
            findings.append(f"{crime_type}: {INSUFFICIENT_DATA} for a trend.")
            continue

        direction = trend_direction(row["Slope"])
        sentence = f"{crime_type}: {direction} ({row['Slope']:+.2f} per 100k per year"
        if sig is not None and crime_type in sig.index and not pd.isna(sig.loc[crime_type, "R²"]):
            sentence += (f", R² = {sig.loc[crime_type, 'R²']:.2f}, "
                         f"p = {sig.loc[crime_type, 'p-value']:.3f}")
        findings.append(sentence + ").")

    print("\n" + "=" * 60)
    print("FINDINGS")
    print("=" * 60)
    for line in findings:
        print(f"  {line}")
    return findings


# ── Report Orchestrator ───────────────────────────────────────────────────────

def run_eda(input_path: str, output_dir: str | Path = OUTPUT_DIR,
            nia_path: str | None = None) -> dict:
    """
    Run the full analysis in one call: prepare, aggregate, fit, render.
    All figures are saved to `<output_dir>/plots/`.
    """
    output_dir = Path(output_dir)
    long = run_pipeline(
        input_path=input_path,
        output_path=str(output_dir / "nia_crime_rates_long.csv"),
        audit_path=str(output_dir / "preparation_audit.json"),
        nia_path=nia_path,
    )
    if long[RATE].notna().sum() == 0:
        raise ValueError("No NIA observations with a crime rate in the analysis window")

    summary = summary_statistics(long)
    yearly = yearly_averages(long)
    trends = fit_all_trends(yearly)
    significance = significance_table(yearly)
    trends.to_csv(output_dir / "trends.csv", index=False)

    table = build_summary_table(summary, trends, significance)
    render_summary_table(table, output_dir)
    render_trend_panels(yearly, trends, output_dir)
    render_rate_heatmap(yearly, output_dir)
    findings = narrate_findings(trends, significance)

    fig_dir = output_dir / "plots"
    print("\n" + "=" * 60)
    print(f"✓ REPORT COMPLETE — {len(list(fig_dir.glob('*.png')))} figures saved to {fig_dir}/")
    print("=" * 60)

    return {
        "long": long,
        "summary": summary,
        "yearly": yearly,
        "trends": trends,
        "significance": significance,
        "findings": findings,
    }


# ── Entry Point ───────────────────────────────────────────────────────────────

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Crime rate trends for Toronto's Neighbourhood Improvement Areas",
    )
    parser.add_argument("--input", default="data/raw/neighbourhood_crime_rates.csv",
                        help="Neighbourhood crime-rate CSV")
    parser.add_argument("--nia-file", default=None,
                        help="CSV with a HOOD_ID column (defaults to the 2014 NIA list)")
    parser.add_argument("--output-dir", default=str(OUTPUT_DIR),
                        help="Directory for tables, figures and the audit log")
    args = parser.parse_args(argv)

    try:
        run_eda(args.input, args.output_dir, nia_path=args.nia_file)
    except (FileNotFoundError, ValueError) as exc:
        log.error(str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
