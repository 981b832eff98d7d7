"""
Aggregation and trend fitting tests
"""

import numpy as np
import pandas as pd
import pytest

from data_cleaning import CRIME_TYPE, NEIGHBOURHOOD, RATE, YEAR, reshape_to_long
from data_collection import NIA_HOOD_IDS, filter_nia
from trend_analysis import (
    FITTED, INSUFFICIENT_DATA,
    fit_all_trends, fit_trend, significance_table, summary_statistics,
    trend_direction, trend_line, trend_significance, yearly_averages,
)


def _long(rows):
    return pd.DataFrame(rows, columns=[NEIGHBOURHOOD, YEAR, CRIME_TYPE, RATE])


class TestSummaryStatistics:

    def test_missing_values_excluded_from_mean(self):
        long = _long([
            ["2", 2014, "Robbery", 10.0],
            ["3", 2014, "Robbery", np.nan],
            ["5", 2014, "Robbery", 20.0],
        ])
        stats = summary_statistics(long)

        assert stats.loc["Robbery", "Mean"] == 15.0
        assert stats.loc["Robbery", "Median"] == 15.0
        assert stats.loc["Robbery", "N"] == 2

    def test_sample_standard_deviation(self):
        long = _long([["2", 2014, "Assault", v] for v in (2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0)])
        stats = summary_statistics(long)
        assert stats.loc["Assault", "Std Dev"] == pytest.approx(np.std([2, 4, 4, 4, 5, 5, 7, 9], ddof=1))

    def test_shuffled_input_gives_identical_statistics(self, trend_rates):
        long = reshape_to_long(trend_rates)
        shuffled = long.sample(frac=1.0, random_state=7).reset_index(drop=True)

        pd.testing.assert_frame_equal(summary_statistics(long), summary_statistics(shuffled),
                                      check_exact=True)
        pd.testing.assert_frame_equal(yearly_averages(long), yearly_averages(shuffled),
                                      check_exact=True)

    def test_one_row_per_crime_type(self, wide_rates):
        stats = summary_statistics(reshape_to_long(wide_rates))
        assert list(stats.index) == ["Assault", "Robbery", "Theft Over"]
        assert list(stats.columns) == ["Mean", "Median", "Std Dev", "N"]


class TestYearlyAverages:

    def test_average_across_neighbourhoods(self):
        long = _long([
            ["2", 2014, "Robbery", 10.0],
            ["3", 2014, "Robbery", 30.0],
            ["2", 2015, "Robbery", 5.0],
            ["3", 2015, "Robbery", np.nan],
        ])
        yearly = yearly_averages(long).set_index(YEAR)["Average Rate"]
        assert yearly[2014] == 20.0
        assert yearly[2015] == 5.0


class TestFitTrend:

    def test_exact_line(self):
        fit = fit_trend([2014, 2015, 2016], [10.0, 12.0, 14.0])
        assert fit["status"] == FITTED
        assert fit["slope"] == pytest.approx(2.0)
        assert fit["slope"] * 2016 + fit["intercept"] == pytest.approx(14.0)

    def test_single_year_is_insufficient(self):
        fit = fit_trend([2014, 2014, 2014], [10.0, 11.0, 12.0])
        assert fit["status"] == INSUFFICIENT_DATA
        assert fit["slope"] is None
        assert fit["n_years"] == 1

    def test_missing_years_dropped_before_counting(self):
        fit = fit_trend([2014, 2015], [10.0, np.nan])
        assert fit["status"] == INSUFFICIENT_DATA

    def test_trend_line(self):
        fit = fit_trend([2014, 2016], [0.0, 4.0])
        assert trend_line(fit, [2015]).tolist() == pytest.approx([2.0])
        assert trend_line({"status": INSUFFICIENT_DATA}, [2015]) is None


class TestFitAllTrends:

    def test_robbery_falls_theft_over_rises(self, trend_rates):
        long = reshape_to_long(filter_nia(trend_rates, NIA_HOOD_IDS))
        trends = fit_all_trends(yearly_averages(long)).set_index(CRIME_TYPE)

        assert trends.loc["Robbery", "Slope"] < 0
        assert trends.loc["Theft Over", "Slope"] > 0
        assert trends.loc["Robbery", "Slope"] == pytest.approx(-12.0)
        assert trends.loc["Theft Over", "Slope"] == pytest.approx(4.0)
        assert (trends["Years"] == 10).all()

    def test_insufficient_group_does_not_stop_others(self):
        long = _long([
            ["2", 2014, "Homicide", 3.0],
            ["2", 2014, "Assault", 100.0],
            ["2", 2015, "Assault", 120.0],
        ])
        trends = fit_all_trends(yearly_averages(long)).set_index(CRIME_TYPE)

        assert trends.loc["Homicide", "Status"] == INSUFFICIENT_DATA
        assert pd.isna(trends.loc["Homicide", "Slope"])
        assert trends.loc["Assault", "Status"] == FITTED
        assert trends.loc["Assault", "Slope"] == pytest.approx(20.0)


class TestSignificance:

    def test_perfect_line(self):
        sig = trend_significance(range(2014, 2024), [5.0 + 3 * i for i in range(10)])
        assert sig["status"] == FITTED
        assert sig["r_squared"] == pytest.approx(1.0)
        assert sig["p_value"] < 0.001

    def test_needs_three_years(self):
        sig = trend_significance([2014, 2015], [1.0, 2.0])
        assert sig["status"] == INSUFFICIENT_DATA
        assert sig["r_squared"] is None

    def test_table(self, trend_rates):
        table = significance_table(yearly_averages(reshape_to_long(trend_rates)))
        assert list(table.columns) == [CRIME_TYPE, "R²", "p-value"]
        assert table["R²"].tolist() == pytest.approx([1.0, 1.0])


@pytest.mark.parametrize("slope, expected", [
    (3.2, "rising"),
    (-1.0, "falling"),
    (0.1, "flat"),
    (None, INSUFFICIENT_DATA),
    (float("nan"), INSUFFICIENT_DATA),
])
def test_trend_direction(slope, expected):
    assert trend_direction(slope) == expected
