"""
Return and risk statistics for an annual portfolio series.

All inputs and outputs are percentages (12.4 means +12.4%). Everything
is computed at full precision and rounded to 2 dp only at the end.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from factor_model.utils.config import BACKTEST_DEFAULTS
from factor_model.utils.models import PerformanceMetrics
from factor_model.utils.numbers import round_half_up

logger = logging.getLogger(__name__)


def _sample_std(values: np.ndarray) -> float:
    """Standard deviation with an n-1 denominator (n when n == 1)"""
    n = len(values)
    deviations = values - values.mean()
    return float(np.sqrt(np.sum(deviations ** 2) / max(n - 1, 1)))


def cagr(returns: Sequence[float]) -> float:
    """
    Constant annual rate (%) equivalent to compounding the series.

    A series that wipes out the capital (compound factor <= 0) has a
    CAGR of -100.
    """
    arr = np.asarray(returns, dtype=float)
    growth = float(np.prod(1 + arr / 100))
    if growth <= 0:
        return -100.0
    return (growth ** (1 / len(arr)) - 1) * 100


def drawdown_series(returns: Sequence[float]) -> List[float]:
    """
    Drawdown (%) after each period, from wealth starting at 1.0.

    Each value is (wealth - running peak) / running peak * 100, so 0
    at a new high and negative below it.
    """
    wealth = np.cumprod(1 + np.asarray(returns, dtype=float) / 100)
    peak = np.maximum.accumulate(np.concatenate(([1.0], wealth)))[1:]
    return list((wealth - peak) / peak * 100)


def cumulative_growth(returns: Sequence[float], base: float = BACKTEST_DEFAULTS['growth_base']) -> List[float]:
    """Value of `base` invested at the start, after each period (2 dp)"""
    wealth = base * np.cumprod(1 + np.asarray(returns, dtype=float) / 100)
    return [round_half_up(float(v), 2) for v in wealth]


class PerformanceAnalytics:
    """
    Computes CAGR, volatility, Sharpe, max drawdown, alpha, win rate and
    information ratio against a benchmark.

    Example:
        >>> PerformanceAnalytics().compute([-10, 20], [0, 0]).cagr
        3.92
    """

    def __init__(self, risk_free_rate: float = BACKTEST_DEFAULTS['risk_free_rate']):
        self.risk_free_rate = risk_free_rate

    def compute(
        self,
        portfolio_returns: Sequence[float],
        benchmark_returns: Sequence[float],
        risk_free_rate: Optional[float] = None
    ) -> Optional[PerformanceMetrics]:
        """
        Args:
            portfolio_returns: Annual portfolio returns (%), oldest first
            benchmark_returns: Benchmark returns (%) for the same years
            risk_free_rate: Annual rate (%) for the Sharpe ratio

        Returns:
            PerformanceMetrics, or None for an empty series

        Raises:
            ValueError: the two series differ in length
        """
        if len(portfolio_returns) != len(benchmark_returns):
            raise ValueError(
                f"Portfolio has {len(portfolio_returns)} returns but benchmark "
                f"has {len(benchmark_returns)}"
            )

        n = len(portfolio_returns)
        if n == 0:
            logger.warning("Empty return series, no metrics computed")
            return None

        rf = self.risk_free_rate if risk_free_rate is None else risk_free_rate
        portfolio = np.asarray(portfolio_returns, dtype=float)
        benchmark = np.asarray(benchmark_returns, dtype=float)

        portfolio_cagr = cagr(portfolio)
        benchmark_cagr = cagr(benchmark)

        volatility = _sample_std(portfolio)
        sharpe = (portfolio_cagr - rf) / volatility if volatility > 0 else 0.0

        drawdowns = drawdown_series(portfolio)
        max_drawdown = min(0.0, min(drawdowns))

        wins = int(np.sum(portfolio > benchmark))
        win_rate = wins / n * 100

        excess = portfolio - benchmark
        excess_std = _sample_std(excess)
        information_ratio = float(excess.mean()) / excess_std if excess_std > 0 else 0.0

        return PerformanceMetrics(
            cagr=round_half_up(portfolio_cagr, 2),
            benchmark_cagr=round_half_up(benchmark_cagr, 2),
            volatility=round_half_up(volatility, 2),
            sharpe=round_half_up(sharpe, 2),
            max_drawdown=round_half_up(max_drawdown, 2),
            alpha=round_half_up(portfolio_cagr - benchmark_cagr, 2),
            win_rate=round_half_up(win_rate, 2),
            information_ratio=round_half_up(information_ratio, 2),
            years_count=n,
            drawdown_series=[round_half_up(float(d), 2) for d in drawdowns]
        )
