"""
Calculates the final 0-100 composite score.

This ties everything together:
1. Factor averages (unrounded)
2. Factor weights
3. Weighted sum, rounded once at the end
"""

import logging
from typing import Dict, Optional

from factor_model.utils.config import FACTOR_WEIGHTS
from factor_model.utils.exceptions import ConfigurationError
from factor_model.utils.numbers import round_score

logger = logging.getLogger(__name__)


class CompositeScorer:
    """
    Computes the final score from factor averages.

    Formula:
        Final Score = Σ (factor_weight × factor_average)

    Example:
        Growth: 60.4 (weight: 0.30) -> contributes 18.12 points
        Quality: 80.0 (weight: 0.30) -> contributes 24 points
        Valuation: 70.2 (weight: 0.30) -> contributes 21.06 points
        Momentum: 50.0 (weight: 0.10) -> contributes 5 points

        Final Score = round(68.18) = 68

    The averages must be the full-precision ones, not the rounded
    factor scores that get stored; rounding happens separately at each
    stage.
    """

    def __init__(self, factor_weights: Optional[Dict[str, float]] = None):
        """
        Args:
            factor_weights: Dict mapping factor -> weight
                            Must sum to 1.0
        """
        self.factor_weights = dict(factor_weights or FACTOR_WEIGHTS)

        total_weight = sum(self.factor_weights.values())
        if abs(total_weight - 1.0) > 1e-6:
            raise ConfigurationError(f"Factor weights sum to {total_weight}, not 1.0")

    def weighted_sum(self, factor_averages: Dict[str, Optional[float]]) -> float:
        """
        Unrounded Σ weight × average.

        A factor with no average contributes 0; its weight is not handed
        to the other factors.
        """
        total = 0.0
        for factor, weight in self.factor_weights.items():
            average = factor_averages.get(factor)
            if average is None:
                continue
            total += weight * average

        unknown = set(factor_averages) - set(self.factor_weights)
        if unknown:
            logger.warning(f"Ignoring averages for unknown factors: {sorted(unknown)}")

        return total

    def score(self, factor_averages: Dict[str, Optional[float]]) -> int:
        """Rounded final score for storage"""
        return round_score(self.weighted_sum(factor_averages))
