"""
Cross-sectional min-max normalization.

Each metric is scaled against its peer cohort for the same year only:
- the worst value in the cohort gets 0, the best gets 100
- "best" depends on polarity (low P/E is good, high ROCE is good)

Cohorts that cannot be scaled (fewer than two values, or all values
equal) give every company with a value the neutral score of 50.
"""

import numpy as np
from typing import Hashable, List, Optional, Sequence, Tuple
import logging

from factor_model.utils.config import NEUTRAL_SCORE
from factor_model.utils.numbers import round_score, to_number

logger = logging.getLogger(__name__)


class CrossSectionalNormalizer:
    """
    Min-max scales one metric across all companies in one year.
    """

    def __init__(self, neutral_score: int = NEUTRAL_SCORE):
        self.neutral_score = neutral_score

    def normalize(
        self,
        values: Sequence[Tuple[Hashable, Optional[float]]],
        lower_is_better: bool = False
    ) -> List[Tuple[Hashable, Optional[int]]]:
        """
        Scale raw values to integer scores in [0, 100].

        Args:
            values: (entity, raw value or None) pairs, in any order
            lower_is_better: invert the scale so the minimum scores 100

        Returns:
            (entity, score or None) pairs in the same order. Absent raw
            values stay absent; they are never defaulted here.

        Example:
            >>> CrossSectionalNormalizer().normalize([('A', 10), ('B', 20), ('C', 30)])
            [('A', 0), ('B', 50), ('C', 100)]
        """
        cleaned = [(entity, to_number(raw)) for entity, raw in values]
        valid = np.array([v for _, v in cleaned if v is not None], dtype=float)

        if len(valid) < 2:
            logger.debug(f"Cohort has {len(valid)} valid value(s), using neutral score")
            return self._neutral(cleaned)

        min_val = float(valid.min())
        max_val = float(valid.max())
        spread = max_val - min_val

        if spread == 0:
            logger.debug("Cohort has zero spread, using neutral score")
            return self._neutral(cleaned)

        results = []
        for entity, v in cleaned:
            if v is None:
                results.append((entity, None))
                continue
            raw = (v - min_val) / spread
            scaled = 1 - raw if lower_is_better else raw
            results.append((entity, round_score(scaled * 100)))

        return results

    def _neutral(self, cleaned):
        return [
            (entity, None if v is None else self.neutral_score)
            for entity, v in cleaned
        ]
