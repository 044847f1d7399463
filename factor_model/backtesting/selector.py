"""
Picks the top-N companies by final score for a year.
"""

import logging
from typing import Iterable, List

from factor_model.utils.models import FinalScore

logger = logging.getLogger(__name__)


def rank_final_scores(scores: Iterable[FinalScore], top_n: int) -> List[FinalScore]:
    """
    Highest final score first; equal scores ordered by ticker so the
    selection is the same on every run.
    """
    ordered = sorted(scores, key=lambda s: (-s.final_score, s.ticker))
    return ordered[:max(top_n, 0)]


class PortfolioSelector:
    """
    Ranks a year's final scores and keeps the best top_n.

    If fewer than top_n companies are scored, all of them are returned.
    """

    def __init__(self, store):
        self.store = store

    def select(self, year: int, top_n: int) -> List[FinalScore]:
        selection = rank_final_scores(self.store.get_final_scores(year), top_n)

        if len(selection) < top_n:
            logger.debug(f"{year}: only {len(selection)} scored companies for top {top_n}")

        return selection
