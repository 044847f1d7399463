"""
Forward returns for selected holdings.

There is no per-stock price history behind the backtest. Each holding is
given the curated portfolio-level return for the transition plus a
deterministic offset:

    offset = (((final_score * 7 + rank_index * 13) mod 20) - 10) * 0.8

The offset only spreads the holdings around the portfolio return for
display. It is synthetic, carries no predictive meaning, and must not be
read as a real stock return.
"""

import logging
from typing import Dict, List, Optional

from factor_model.data.reference import PORTFOLIO_RETURNS_HISTORY
from factor_model.utils.models import FinalScore, PortfolioSelection

logger = logging.getLogger(__name__)

SYNTHETIC_RETURN_NOTE = (
    "Per-holding returns are synthetic: the portfolio-level return plus a "
    "fixed arithmetic offset, not measured stock returns."
)


def synthetic_offset(final_score: float, rank_index: int) -> float:
    """Display offset in [-8, +7.2] for the holding at 0-based rank_index"""
    return (((final_score * 7 + rank_index * 13) % 20) - 10) * 0.8


class ForwardReturnEstimator:
    """
    Assigns each holding portfolio_return + synthetic_offset.
    """

    def __init__(self, portfolio_returns: Optional[Dict[int, float]] = None):
        """
        Args:
            portfolio_returns: selection year -> aggregate return (%) for
                the following year (defaults to the curated history)
        """
        self.portfolio_returns = (
            PORTFOLIO_RETURNS_HISTORY if portfolio_returns is None else portfolio_returns
        )

    def portfolio_return(self, selection_year: int) -> Optional[float]:
        """Aggregate return for selection_year -> selection_year + 1, if known"""
        return self.portfolio_returns.get(selection_year)

    def estimate(
        self,
        selection_year: int,
        selection: List[FinalScore],
        portfolio_return: float
    ) -> List[PortfolioSelection]:
        """
        Args:
            selection_year: Year the portfolio is formed
            selection: Holdings in rank order
            portfolio_return: Aggregate return (%) for the transition

        Returns:
            One PortfolioSelection per holding, rank starting at 1
        """
        return [
            PortfolioSelection(
                selection_year=selection_year,
                ticker=holding.ticker,
                rank=index + 1,
                score=holding.final_score,
                next_year_return=portfolio_return + synthetic_offset(holding.final_score, index)
            )
            for index, holding in enumerate(selection)
        ]
