"""Shared fixtures for the factor model tests.

Everything runs against a throwaway SQLite file; no network access.
"""

import pandas as pd
import pytest

from factor_model.data.reference import seed_benchmark
from factor_model.data.store import SQLiteFactorStore
from factor_model.utils.catalog import MetricCatalog
from factor_model.utils.models import FinalScore

COMPANIES = {
    "AAA": {"name": "Alpha Ltd", "sector": "Technology", "industry": "Software", "market_cap": 250e9},
    "BBB": {"name": "Bravo Ltd", "sector": "Energy", "industry": "Oil & Gas", "market_cap": 60e9},
    "CCC": {"name": "Charlie Ltd", "sector": "Technology", "industry": "Hardware", "market_cap": 1e9},
}

# 2020 cohort, chosen so every score below can be worked out by hand
RAW_2020 = {
    "roce": {"AAA": 10, "BBB": 20, "CCC": 30},
    "roe": {"AAA": 30, "BBB": 10, "CCC": 20},
    "de": {"AAA": 1.0, "BBB": 4.0, "CCC": 2.0},
    "pe": {"AAA": 10, "BBB": 30, "CCC": 20},
    "rev1yr": {"AAA": 5, "BBB": 5, "CCC": 5},
    "price_return": {"AAA": 12, "BBB": None, "CCC": None},
}


def make_frame(raw, year, companies=COMPANIES):
    rows = []
    for metric, values in raw.items():
        for ticker, value in values.items():
            rows.append({
                "ticker": ticker,
                "metric": metric,
                "year": year,
                "value": value,
                **companies[ticker],
            })
    return pd.DataFrame(rows)


@pytest.fixture
def store(tmp_path):
    return SQLiteFactorStore(tmp_path / "factor_model.db")


@pytest.fixture
def catalog():
    return MetricCatalog()


@pytest.fixture
def universe_frame():
    return make_frame(RAW_2020, 2020)


# final scores per year for the backtest; C leads, A and B tie on 80
BACKTEST_SCORES = {
    2011: {"A": 80, "B": 80, "C": 95, "D": 60, "E": 70, "F": 10, "G": 50},
    2012: {"A": 40, "B": 90, "C": 85, "D": 85, "E": 20, "F": 75, "G": 65},
    2013: {"A": 55, "B": 45, "C": 35, "D": 25, "E": 15, "F": 5, "G": 65},
}


@pytest.fixture
def scored_store(store):
    """Store holding final scores for 2011-2013 and the Nifty 50 series."""
    store.ensure_years(BACKTEST_SCORES)
    for year, scores in BACKTEST_SCORES.items():
        store.replace_year_scores(year, [], [], [
            FinalScore(ticker=t, year=year, final_score=s) for t, s in scores.items()
        ])
    seed_benchmark(store)
    return store
