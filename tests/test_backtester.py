"""Tests for selection, forward returns and the backtest runner."""

import pytest

from conftest import BACKTEST_SCORES
from factor_model.backtesting.backtester import Backtester, clamp_top_n
from factor_model.backtesting.forward_returns import (
    SYNTHETIC_RETURN_NOTE,
    ForwardReturnEstimator,
    synthetic_offset,
)
from factor_model.backtesting.selector import PortfolioSelector, rank_final_scores
from factor_model.utils.exceptions import MissingInputError
from factor_model.utils.models import FinalScore


@pytest.fixture
def backtester(scored_store):
    return Backtester(scored_store)


def finals(year):
    return [FinalScore(ticker=t, year=year, final_score=s) for t, s in BACKTEST_SCORES[year].items()]


# =====================================================================
# SELECTION
# =====================================================================

class TestSelection:
    def test_ties_go_to_ticker_order(self):
        picked = rank_final_scores(finals(2011), 3)
        assert [s.ticker for s in picked] == ["C", "A", "B"]

    def test_top_n_larger_than_universe(self):
        assert len(rank_final_scores(finals(2011), 50)) == 7

    def test_zero(self):
        assert rank_final_scores(finals(2011), 0) == []

    def test_selector_reads_the_store(self, scored_store):
        picked = PortfolioSelector(scored_store).select(2012, 4)
        assert [s.ticker for s in picked] == ["B", "C", "D", "F"]

    def test_unscored_year(self, scored_store):
        assert PortfolioSelector(scored_store).select(2030, 5) == []


# =====================================================================
# FORWARD RETURNS
# =====================================================================

class TestForwardReturns:
    @pytest.mark.parametrize("score, index, offset", [
        (95, 0, -4.0),
        (80, 1, 2.4),
        (80, 2, -3.2),
        (70, 3, -0.8),
        (60, 4, 1.6),
    ])
    def test_offset(self, score, index, offset):
        assert synthetic_offset(score, index) == pytest.approx(offset)

    def test_offset_range(self):
        offsets = [synthetic_offset(s, i) for s in range(101) for i in range(50)]
        assert min(offsets) == pytest.approx(-8.0)
        assert max(offsets) == pytest.approx(7.2)

    def test_estimate_assigns_ranks(self):
        selection = rank_final_scores(finals(2011), 3)
        holdings = ForwardReturnEstimator().estimate(2011, selection, -15.2)

        assert [h.rank for h in holdings] == [1, 2, 3]
        assert [h.next_year_return for h in holdings] == pytest.approx([-19.2, -12.8, -18.4])

    def test_history_lookup(self):
        estimator = ForwardReturnEstimator()
        assert estimator.portfolio_return(2011) == -15.2
        assert estimator.portfolio_return(2024) == 12.6
        assert estimator.portfolio_return(2025) is None


# =====================================================================
# RUN
# =====================================================================

class TestRun:
    def test_processes_all_but_last_year(self, backtester, scored_store):
        result = backtester.run(top_n=5, start_year=2011)

        assert result.years_processed == 2
        assert result.years_skipped == 0
        assert [(r.selection_year, r.return_year, r.portfolio_size) for r in result.results] == [
            (2011, 2012, 5), (2012, 2013, 5)
        ]
        assert [r.portfolio_return for r in result.results] == [-15.2, 12.4]

    def test_selections_are_stored_by_rank(self, backtester, scored_store):
        backtester.run(top_n=5)
        stored = scored_store.get_selections(2011)

        # the full ranking is kept, not only the top 5
        assert [h["selection"].ticker for h in stored] == ["C", "A", "B", "E", "D", "G", "F"]
        assert [h["selection"].rank for h in stored] == [1, 2, 3, 4, 5, 6, 7]
        assert len(scored_store.get_selections(2011, limit=5)) == 5
        assert stored[0]["name"] == "C"

    def test_top_n_is_clamped(self, backtester):
        assert backtester.run(top_n=3).top_n == 5
        assert clamp_top_n(100) == 50
        assert clamp_top_n(None) == 20

    def test_start_year(self, backtester):
        result = backtester.run(top_n=5, start_year=2012)
        assert [r.selection_year for r in result.results] == [2012]

    def test_rerun_does_not_duplicate(self, backtester, scored_store):
        backtester.run(top_n=5)
        backtester.run(top_n=5)
        assert len(scored_store.get_backtest_results()) == 2

    def test_missing_aggregate_return_is_skipped(self, scored_store):
        backtester = Backtester(scored_store, estimator=ForwardReturnEstimator({2011: 10.0}))
        result = backtester.run(top_n=5)

        assert result.years_processed == 1
        assert result.years_skipped == 1
        assert result.skipped_years == [2012]

    def test_missing_return_year_is_skipped(self, store):
        store.ensure_years([2011, 2013])
        store.replace_year_scores(2011, [], [], finals(2011))
        result = Backtester(store).run(top_n=5)

        assert result.years_processed == 0
        assert result.skipped_years == [2011]
        assert store.get_backtest_results() == []

    def test_unscored_year_is_skipped(self, store):
        store.ensure_years([2011, 2012])
        result = Backtester(store).run(top_n=5)
        assert result.skipped_years == [2011]

    def test_no_years(self, store):
        with pytest.raises(MissingInputError):
            Backtester(store).run()


# =====================================================================
# RERUNS AFTER RESCORING
# =====================================================================

def store_scores(store, year, scores):
    store.replace_year_scores(year, [], [], [
        FinalScore(ticker=t, year=year, final_score=s) for t, s in scores.items()
    ])


@pytest.fixture
def two_year_store(store):
    store.ensure_years([2011, 2012])
    store_scores(store, 2011, {"A": 90, "B": 80, "C": 70, "D": 60, "E": 50, "F": 40})
    return store


class TestRerunAfterRescore:
    def test_changed_membership_replaces_holdings(self, two_year_store):
        backtester = Backtester(two_year_store)
        backtester.run(top_n=5)

        store_scores(two_year_store, 2011, {"F": 99, "B": 80, "C": 70, "D": 60, "E": 50, "A": 1})
        backtester.run(top_n=5)

        (row,) = backtester.annual(top_n=5)
        assert [h.ticker for h in row.holdings] == ["F", "B", "C", "D", "E"]
        stored = two_year_store.get_selections(2011)
        assert [(h["selection"].ticker, h["selection"].rank) for h in stored][-1] == ("A", 6)

    def test_shrunk_universe_drops_larger_rows(self, two_year_store):
        backtester = Backtester(two_year_store)
        backtester.run(top_n=50)

        store_scores(two_year_store, 2011, {"A": 90, "B": 80, "C": 70, "D": 60})
        backtester.run(top_n=50)

        assert [r.portfolio_size for r in two_year_store.get_backtest_results()] == [4]
        (row,) = backtester.annual(top_n=50)
        assert row.num_stocks == 4
        assert [h.ticker for h in row.holdings] == ["A", "B", "C", "D"]

    def test_reports_follow_last_run_until_rerun(self, two_year_store):
        backtester = Backtester(two_year_store)
        backtester.run(top_n=50)

        store_scores(two_year_store, 2011, {"A": 90, "B": 80, "C": 70, "D": 60})

        (row,) = backtester.annual(top_n=50)
        assert row.num_stocks == 6
        assert backtester.summary(top_n=50).has_data


# =====================================================================
# SUMMARY AND REPORTS
# =====================================================================

class TestSummary:
    def test_summary(self, backtester):
        backtester.run(top_n=5)
        summary = backtester.summary(top_n=5)

        assert summary.has_data
        assert summary.years == [2012, 2013]
        assert summary.portfolio_returns == [-15.2, 12.4]
        assert summary.benchmark_returns == [-9.23, 7.31]
        assert summary.cumulative_portfolio == [84.8, 95.32]
        assert summary.cumulative_benchmark == [90.77, 97.41]
        assert summary.metrics.cagr == pytest.approx(-2.37)
        assert summary.metrics.win_rate == 50.0

    def test_no_rows_for_size(self, backtester):
        backtester.run(top_n=5)
        assert not backtester.summary(top_n=50).has_data

    def test_small_universe_matches_larger_top_n(self, backtester):
        backtester.run(top_n=50)
        # only 7 companies are scored, so top 10 and top 50 are the same rows
        assert backtester.summary(top_n=50).has_data
        assert backtester.summary(top_n=10).years == [2012, 2013]

    def test_missing_benchmark_counts_as_zero(self, backtester):
        backtester.run(top_n=5)
        summary = backtester.summary(top_n=5, benchmark_name="SENSEX")

        assert summary.benchmark_returns == [0.0, 0.0]
        assert summary.cumulative_benchmark == [100.0, 100.0]

    def test_start_year_filters_stored_rows(self, backtester):
        backtester.run(top_n=5, start_year=2011)

        summary = backtester.summary(top_n=5, start_year=2012)
        assert summary.years == [2013]
        assert summary.portfolio_returns == [12.4]
        assert [r.selection_year for r in backtester.annual(top_n=5, start_year=2012)] == [2012]
        assert not backtester.summary(top_n=5, start_year=2013).has_data

    def test_nothing_run(self, backtester):
        summary = backtester.summary()
        assert not summary.has_data
        assert summary.metrics is None


class TestAnnual:
    def test_rows(self, backtester):
        backtester.run(top_n=5)
        first, second = backtester.annual(top_n=5)

        assert (first.selection_year, first.return_year) == (2011, 2012)
        assert first.portfolio_return == -15.2
        assert first.benchmark_return == -9.23
        assert first.alpha == -5.97
        assert not first.outperformed
        assert first.num_stocks == 5
        assert second.alpha == 5.09
        assert second.outperformed

    def test_holdings(self, backtester):
        backtester.run(top_n=5)
        holdings = backtester.annual(top_n=5)[0].holdings

        assert [h.ticker for h in holdings] == ["C", "A", "B", "E", "D"]
        assert [h.estimated_return for h in holdings] == [-19.2, -12.8, -18.4, -16.0, -13.6]
        assert holdings[0].score == 95.0

    def test_holdings_limited_to_top_n(self, backtester):
        backtester.run(top_n=50)
        backtester.run(top_n=5)
        assert len(backtester.annual(top_n=5)[0].holdings) == 5
        assert len(backtester.annual(top_n=50)[0].holdings) == 7


class TestReport:
    def test_report_flags_synthetic_returns(self, backtester):
        backtester.run(top_n=5)
        report = backtester.generate_report(backtester.summary(5), backtester.annual(5))

        assert "TOP 5" in report
        assert "2011->2012" in report
        assert SYNTHETIC_RETURN_NOTE in report

    def test_empty_report(self, backtester):
        assert backtester.generate_report(backtester.summary(), []) == "No backtest results available"
