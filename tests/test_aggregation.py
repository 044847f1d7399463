"""Tests for factor aggregation and the composite score."""

import pytest

from factor_model.scoring.factor_aggregator import FactorAggregator
from factor_model.scoring.final_scorer import CompositeScorer
from factor_model.utils.exceptions import ConfigurationError
from factor_model.utils.models import ParameterScore


class TestFactorAggregator:
    def test_mean_of_present_scores(self, catalog):
        result = FactorAggregator(catalog).aggregate([60, 71, 50, None, None])
        assert result.average == pytest.approx(60.3333, abs=1e-4)
        assert result.score == 60
        assert result.metric_count == 3

    def test_no_scores_means_no_factor(self, catalog):
        assert FactorAggregator(catalog).aggregate([None, None]) is None
        assert FactorAggregator(catalog).aggregate([]) is None

    def test_half_rounds_up(self, catalog):
        assert FactorAggregator(catalog).aggregate([50, 51]).score == 51

    def test_company_year_grouping(self, catalog):
        rows = [
            ParameterScore(ticker="A", metric="roce", year=2020, raw_value=1, normalized_value=0),
            ParameterScore(ticker="A", metric="roe", year=2020, raw_value=2, normalized_value=100),
            ParameterScore(ticker="A", metric="pe", year=2020, raw_value=3, normalized_value=40),
            ParameterScore(ticker="A", metric="price_return", year=2020, raw_value=None, normalized_value=None),
            ParameterScore(ticker="B", metric="roce", year=2020, raw_value=5, normalized_value=100),
        ]
        averages = FactorAggregator(catalog).aggregate_company_year(rows)

        assert set(averages) == {("A", "Quality"), ("A", "Valuation"), ("B", "Quality")}
        assert averages[("A", "Quality")].score == 50
        assert averages[("A", "Valuation")].score == 40
        assert averages[("B", "Quality")].score == 100


class TestCompositeScorer:
    def test_weighted_sum(self):
        scorer = CompositeScorer()
        averages = {"Growth": 60.4, "Quality": 80.0, "Valuation": 70.2, "Momentum": 50.0}
        assert scorer.weighted_sum(averages) == pytest.approx(68.18)
        assert scorer.score(averages) == 68

    def test_missing_factor_contributes_zero(self):
        scorer = CompositeScorer()
        assert scorer.score({"Growth": 100, "Quality": 100, "Valuation": 100}) == 90

    def test_uses_unrounded_averages(self):
        scorer = CompositeScorer()
        unrounded = {"Growth": 1.6, "Quality": 1.6, "Valuation": 1.6}
        rounded = {"Growth": 2, "Quality": 2, "Valuation": 2}
        # 0.9 * 1.6 = 1.44 -> 1, but 0.9 * 2 = 1.8 -> 2
        assert scorer.score(unrounded) == 1
        assert scorer.score(rounded) == 2

    def test_bounds(self):
        scorer = CompositeScorer()
        assert scorer.score({}) == 0
        assert scorer.score({f: 100 for f in scorer.factor_weights}) == 100

    def test_bad_weights(self):
        with pytest.raises(ConfigurationError):
            CompositeScorer({"Growth": 0.5, "Quality": 0.4})
