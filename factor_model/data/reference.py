"""
Curated reference tables: benchmark returns and historical aggregate
portfolio returns.

These are fixed datasets, not something this package regenerates.
"""

import logging
from typing import Dict, List

from factor_model.utils.config import BACKTEST_DEFAULTS
from factor_model.utils.models import BenchmarkReturn
from factor_model.utils.numbers import round_half_up

logger = logging.getLogger(__name__)

# Nifty 50 annual return (%) earned in each calendar year
NIFTY50_RETURNS = {
    2012: -9.23, 2013: 7.31, 2014: 17.98, 2015: 26.65, 2016: -4.06,
    2017: 18.55, 2018: 10.25, 2019: 14.93, 2020: -26.03, 2021: 70.87,
    2022: 18.88, 2023: 4.33, 2024: 20.00, 2025: 8.70,
}

# Equal-weighted top-20 factor portfolio: selection year -> return (%)
# earned over the following year
PORTFOLIO_RETURNS_HISTORY = {
    2011: -15.2,
    2012: 12.4,
    2013: 34.8,
    2014: 38.6,
    2015: -2.1,
    2016: 32.7,
    2017: 14.3,
    2018: 22.5,
    2019: -18.6,
    2020: 92.4,
    2021: 28.3,
    2022: 16.8,
    2023: 31.2,
    2024: 12.6,
}


def benchmark_series(
    annual_returns: Dict[int, float],
    benchmark_name: str = BACKTEST_DEFAULTS['benchmark_name']
) -> List[BenchmarkReturn]:
    """
    Build benchmark rows with a running cumulative return (%) measured
    from the first year in the table.
    """
    rows = []
    wealth = 1.0
    for year in sorted(annual_returns):
        wealth *= 1 + annual_returns[year] / 100
        rows.append(BenchmarkReturn(
            benchmark_name=benchmark_name,
            year=year,
            annual_return=annual_returns[year],
            cumulative_return=round_half_up((wealth - 1) * 100, 2)
        ))
    return rows


def seed_benchmark(
    store,
    annual_returns: Dict[int, float] = None,
    benchmark_name: str = BACKTEST_DEFAULTS['benchmark_name']
) -> int:
    """Write a benchmark series into the store (defaults to Nifty 50)"""
    rows = benchmark_series(annual_returns or NIFTY50_RETURNS, benchmark_name)
    count = store.upsert_benchmark_returns(rows)
    logger.info(f"Seeded {count} {benchmark_name} benchmark years")
    return count
