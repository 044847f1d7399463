"""
Turns one year of raw observations into parameter scores.

Key insight: For some metrics, low values are good (P/E ratio).
For others, high values are good (ROCE).

The catalog tells us which is which, and the normalizer does the scaling
inside each (metric, year) cohort, so that 100 = best, 0 = worst.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from factor_model.scoring.normalizer import CrossSectionalNormalizer
from factor_model.utils.catalog import MetricCatalog
from factor_model.utils.exceptions import ConfigurationError
from factor_model.utils.models import ParameterScore, RawObservation
from factor_model.utils.numbers import to_number

logger = logging.getLogger(__name__)


class MetricScorer:
    """
    Scores every metric cohort found in a year's observations.
    """

    def __init__(
        self,
        catalog: Optional[MetricCatalog] = None,
        normalizer: Optional[CrossSectionalNormalizer] = None
    ):
        """
        Args:
            catalog: Metric catalog (defaults to the configured one)
            normalizer: Scaler used for each cohort
        """
        self.catalog = catalog or MetricCatalog()
        self.normalizer = normalizer or CrossSectionalNormalizer()

    def score_cohort(
        self,
        metric_name: str,
        year: int,
        entries: List[Tuple[str, Optional[float]]]
    ) -> List[ParameterScore]:
        """
        Normalize one metric across all companies for one year.

        Args:
            metric_name: Catalog metric name
            year: Fiscal year of the cohort
            entries: (ticker, raw value or None) pairs

        Returns:
            One ParameterScore per entry, absent values kept absent

        Raises:
            ConfigurationError: metric is not in the catalog
        """
        lower_is_better = self.catalog.is_lower_better(metric_name)
        normalized = self.normalizer.normalize(entries, lower_is_better=lower_is_better)

        return [
            ParameterScore(
                ticker=ticker,
                metric=metric_name,
                year=year,
                raw_value=to_number(raw),
                normalized_value=score
            )
            for (ticker, raw), (_, score) in zip(entries, normalized)
        ]

    def score_all_metrics(
        self,
        year: int,
        observations: Iterable[RawObservation]
    ) -> Tuple[Dict[str, List[ParameterScore]], List[str]]:
        """
        Score all metric cohorts of a year.

        Observations for metrics outside the catalog are rejected one by
        one; the rest of the year is still scored.

        Returns:
            (metric_name -> parameter scores, rejected record keys)
        """
        cohorts: Dict[str, List[Tuple[str, Optional[float]]]] = defaultdict(list)
        rejected: List[str] = []

        for obs in observations:
            if obs.year != year:
                continue
            if not self.catalog.has_metric(obs.metric):
                key = f"{obs.ticker}/{obs.metric}/{obs.year}"
                logger.warning(f"Rejected {key}: metric not in catalog")
                rejected.append(key)
                continue
            cohorts[obs.metric].append((obs.ticker, obs.value))

        scored: Dict[str, List[ParameterScore]] = {}
        for metric_name in sorted(cohorts):
            try:
                scored[metric_name] = self.score_cohort(metric_name, year, cohorts[metric_name])
            except ConfigurationError as e:
                logger.error(f"Could not score {metric_name} for {year}: {e}")
                rejected.extend(
                    f"{ticker}/{metric_name}/{year}" for ticker, _ in cohorts[metric_name]
                )

        return scored, rejected
