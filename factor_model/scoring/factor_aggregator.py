"""
Aggregates normalized metric scores into factor scores.

Process:
1. Group a company's parameter scores by factor (Growth, Quality, etc.)
2. Take the plain mean of the scores that are present
3. Skip the factor entirely when none are present
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, NamedTuple, Optional, Tuple

from factor_model.utils.catalog import MetricCatalog
from factor_model.utils.models import ParameterScore
from factor_model.utils.numbers import round_score

logger = logging.getLogger(__name__)


class FactorAverage(NamedTuple):
    average: float  # full precision, feeds the composite score
    score: int  # rounded, what gets stored
    metric_count: int


class FactorAggregator:
    """
    Combines metric scores into factor scores using an equal-weight mean.

    Example:
        Valuation has 5 metrics, a company has scores for 3 of them:
        - P/E 60, EV/EBITDA 71, P/FCF 50 (P/OCF and PEG missing)

        Factor average = (60 + 71 + 50) / 3 = 60.33 -> stored as 60
    """

    def __init__(self, catalog: Optional[MetricCatalog] = None):
        self.catalog = catalog or MetricCatalog()

    def aggregate(self, scores: Iterable[Optional[float]]) -> Optional[FactorAverage]:
        """
        Mean of the present scores.

        Returns:
            FactorAverage, or None when no score is present. Missing
            scores are excluded, never counted as 0 or 50.
        """
        present = [float(s) for s in scores if s is not None]
        if not present:
            return None

        average = sum(present) / len(present)
        return FactorAverage(average=average, score=round_score(average), metric_count=len(present))

    def aggregate_company_year(
        self,
        parameter_scores: Iterable[ParameterScore]
    ) -> Dict[Tuple[str, str], FactorAverage]:
        """
        Aggregate all factors for every company in one year's scores.

        Args:
            parameter_scores: ParameterScores of a single year

        Returns:
            (ticker, factor) -> FactorAverage, only for factors with data
        """
        grouped = defaultdict(list)

        for ps in parameter_scores:
            factor = self.catalog.factor_of(ps.metric)
            grouped[(ps.ticker, factor)].append(ps.normalized_value)

        averages = {}
        for key in sorted(grouped):
            result = self.aggregate(grouped[key])
            if result is None:
                logger.debug(f"No scored metrics for {key[0]} / {key[1]}, factor skipped")
                continue
            averages[key] = result

        return averages
