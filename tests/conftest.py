"""
Test Configuration
==================

Pytest fixtures for the NIA crime trend analysis.
"""

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest


@pytest.fixture
def wide_rates():
    """Two neighbourhoods × two years, three crime types with matching counts."""
    return pd.DataFrame({
        "HOOD_ID":        ["2", "2", "72", "72"],
        "AREA_NAME":      ["Mount Olive", "Mount Olive", "Regent Park", "Regent Park"],
        "YEAR":           [2014, 2015, 2014, 2015],
        "ASSAULT":        [120, 110, 300, 310],
        "ASSAULT_RATE":   [450.0, 410.5, 1200.0, 1230.2],
        "ROBBERY":        [30, 25, 60, 55],
        "ROBBERY_RATE":   [110.0, 95.0, 240.0, 219.0],
        "THEFTOVER":      [5, 7, 9, 12],
        "THEFTOVER_RATE": [18.0, 26.0, 36.0, 47.5],
    })


@pytest.fixture
def trend_rates():
    """
    Ten years for three NIA neighbourhoods: Robbery falls every year,
    Theft Over rises every year. Neighbourhood 999 is not an NIA.
    """
    rows = []
    for hood, offset in (("24", 0.0), ("44", 15.0), ("137", 30.0), ("999", 500.0)):
        for i, year in enumerate(range(2014, 2024)):
            rows.append({
                "HOOD_ID": hood,
                "YEAR": year,
                "ROBBERY_RATE": 300.0 - 12.0 * i + offset,
                "THEFTOVER_RATE": 20.0 + 4.0 * i + offset,
            })
    return pd.DataFrame(rows)


@pytest.fixture
def trend_csv(tmp_path, trend_rates):
    path = tmp_path / "neighbourhood_crime_rates.csv"
    trend_rates.to_csv(path, index=False)
    return path
