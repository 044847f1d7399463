"""Tests for the stock screener."""

import pytest

from factor_model.data.sources import DataFrameMetricSource
from factor_model.scanning.screener import StockScreener
from factor_model.scoring.engine import ScoringEngine
from factor_model.utils.exceptions import ConfigurationError, MissingInputError


@pytest.fixture
def screener(store, catalog, universe_frame):
    ScoringEngine(store, catalog).ingest(DataFrameMetricSource(universe_frame))
    return StockScreener(store, catalog)


def tickers(frame):
    return list(frame["ticker"])


class TestListStocks:
    def test_default_is_latest_year_by_final_score(self, screener):
        stocks, total = screener.list_stocks()

        assert total == 3
        assert tickers(stocks) == ["AAA", "CCC", "BBB"]
        assert list(stocks["final_score"]) == [70, 52, 20]

    def test_factor_columns(self, screener):
        stocks, _ = screener.list_stocks(year=2020)
        row = stocks.set_index("ticker").loc["AAA"]

        assert row["Quality"] == 67
        assert row["Valuation"] == 100
        assert row["market_cap_bucket"] == "Large"

    def test_ascending(self, screener):
        stocks, _ = screener.list_stocks(sort_order="asc")
        assert tickers(stocks) == ["BBB", "CCC", "AAA"]

    def test_missing_factor_sorts_as_zero(self, screener):
        stocks, _ = screener.list_stocks(sort_by="Momentum")
        assert tickers(stocks) == ["AAA", "BBB", "CCC"]

    @pytest.mark.parametrize("search, expected", [
        ("bb", ["BBB"]),
        ("CHARLIE", ["CCC"]),
        ("ltd", ["AAA", "CCC", "BBB"]),
        ("zzz", []),
    ])
    def test_search(self, screener, search, expected):
        stocks, total = screener.list_stocks(search=search)
        assert tickers(stocks) == expected
        assert total == len(expected)

    def test_sector_filter(self, screener):
        stocks, total = screener.list_stocks(sector="Technology")
        assert total == 2
        assert tickers(stocks) == ["AAA", "CCC"]

    def test_bucket_filter(self, screener):
        assert tickers(screener.list_stocks(market_cap_bucket="Large")[0]) == ["AAA"]
        assert tickers(screener.list_stocks(market_cap_bucket="Mid")[0]) == ["BBB"]

    def test_paging(self, screener):
        stocks, total = screener.list_stocks(page=2, page_size=1)
        assert total == 3
        assert tickers(stocks) == ["CCC"]

    def test_page_past_the_end(self, screener):
        stocks, total = screener.list_stocks(page=5, page_size=2)
        assert stocks.empty
        assert total == 3

    def test_page_size_is_bounded(self, screener):
        stocks, _ = screener.list_stocks(page=0, page_size=0)
        assert tickers(stocks) == ["AAA"]


class TestErrors:
    def test_unknown_year(self, screener):
        with pytest.raises(MissingInputError):
            screener.list_stocks(year=1999)

    def test_empty_store(self, store):
        with pytest.raises(MissingInputError):
            StockScreener(store).list_stocks()

    def test_bad_sort_column(self, screener):
        with pytest.raises(ConfigurationError) as exc:
            screener.list_stocks(sort_by="roe")
        assert exc.value.key == "roe"
