"""
Main scoring engine - orchestrates the entire pipeline.
"""

import logging
from typing import Dict, Iterable, List, Optional

from tqdm import tqdm

from factor_model.data.sources import RawMetricSource
from factor_model.scoring.factor_aggregator import FactorAggregator
from factor_model.scoring.final_scorer import CompositeScorer
from factor_model.scoring.metric_scorer import MetricScorer
from factor_model.utils.catalog import MetricCatalog
from factor_model.utils.exceptions import ConfigurationError, MissingInputError
from factor_model.utils.models import (
    FactorScore,
    FinalScore,
    IngestionResult,
    RawObservation,
    ScoringRunResult,
)

logger = logging.getLogger(__name__)


class ScoringEngine:

    def __init__(self, store, catalog: Optional[MetricCatalog] = None, show_progress: bool = False):
        self.store = store
        self.catalog = catalog or MetricCatalog()
        self.metric_scorer = MetricScorer(self.catalog)
        self.factor_aggregator = FactorAggregator(self.catalog)
        self.composite_scorer = CompositeScorer(self.catalog.factor_weights)
        self.show_progress = show_progress

        logger.info("ScoringEngine initialized")

    def score_year(self, year: int) -> ScoringRunResult:
        """
        Recompute every derived score for one year from its raw metrics.

        The year's parameter, factor and final scores are replaced as a
        whole, so running twice on the same raw data gives the same rows.
        """
        logger.info(f"Scoring year {year}...")

        # Step 1: Normalize each metric cohort
        observations = self.store.get_raw_metrics(year)
        scored, rejected = self.metric_scorer.score_all_metrics(year, observations)
        parameter_scores = [ps for cohort in scored.values() for ps in cohort]

        # Step 2: Aggregate factors
        averages = self.factor_aggregator.aggregate_company_year(parameter_scores)

        factor_scores = [
            FactorScore(ticker=ticker, factor=factor, year=year, score=avg.score)
            for (ticker, factor), avg in averages.items()
        ]

        # Step 3: Composite from the unrounded averages
        per_company: Dict[str, Dict[str, float]] = {}
        for (ticker, factor), avg in averages.items():
            per_company.setdefault(ticker, {})[factor] = avg.average

        final_scores = [
            FinalScore(ticker=ticker, year=year, final_score=self.composite_scorer.score(factor_avgs))
            for ticker, factor_avgs in sorted(per_company.items())
        ]

        # Step 4: Persist
        self.store.replace_year_scores(year, parameter_scores, factor_scores, final_scores)

        result = ScoringRunResult(
            year=year,
            parameter_scores=len(parameter_scores),
            factor_scores=len(factor_scores),
            final_scores=len(final_scores),
            rejected=rejected
        )

        logger.info(
            f"Scored {year}: {result.final_scores} companies, "
            f"{result.factor_scores} factor scores, {len(rejected)} rejected"
        )
        return result

    def score_years(self, years: Optional[Iterable[int]] = None) -> Dict[int, ScoringRunResult]:
        """
        Score several years (all stored years by default).

        Raises:
            MissingInputError: there is no year to score
        """
        years = sorted(set(years)) if years is not None else self.store.list_years()

        if not years:
            raise MissingInputError("No years found: ingest raw metrics before scoring")

        results = {}
        for year in tqdm(years, desc="Scoring years", disable=not self.show_progress):
            results[year] = self.score_year(year)

        return results

    def ingest(self, source: RawMetricSource) -> IngestionResult:
        """
        Load a raw metric source and rescore every year it touched.

        Rows the source cannot read and observations naming a metric
        outside the catalog are rejected one by one; everything else is
        still loaded. Nothing is written when no observation is usable.
        """
        companies = list(source.iter_companies())

        accepted: List[RawObservation] = []
        rejected: List[str] = []

        for obs in source.iter_observations():
            try:
                self.catalog.metric(obs.metric)
            except ConfigurationError as e:
                key = f"{obs.ticker}/{obs.metric}/{obs.year}"
                logger.warning(f"Rejected {key}: {e}")
                rejected.append(key)
                continue
            accepted.append(obs)

        rejected = list(source.rejected) + rejected
        years = sorted({obs.year for obs in accepted})

        if not years:
            raise MissingInputError(
                f"No usable observations in source ({len(rejected)} rejected): nothing to score"
            )

        company_count = self.store.upsert_companies(companies)
        logger.info(f"Upserted {company_count} companies")

        added = self.store.ensure_companies(obs.ticker for obs in accepted)
        if added:
            logger.info(f"Added {added} companies without details")

        self.store.ensure_years(years)
        self.store.upsert_raw_metrics(accepted)
        logger.info(f"Stored {len(accepted)} observations across {len(years)} years")

        scoring = self.score_years(years)

        return IngestionResult(
            companies=company_count,
            observations=len(accepted),
            rejected=rejected,
            years=years,
            scoring=scoring
        )
