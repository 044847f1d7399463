"""
Backtesting framework for the top-N factor portfolio.

Process:
1. Each selection year, pick the top N companies by final score
2. Attribute the curated aggregate return of the following year to them
3. Compare the yearly series with a benchmark
4. Summarize with CAGR, volatility, Sharpe, drawdown, alpha, win rate, IR
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from factor_model.backtesting.analytics import PerformanceAnalytics, cumulative_growth
from factor_model.backtesting.forward_returns import ForwardReturnEstimator, SYNTHETIC_RETURN_NOTE
from factor_model.backtesting.selector import PortfolioSelector
from factor_model.utils.config import BACKTEST_DEFAULTS
from factor_model.utils.exceptions import MissingInputError
from factor_model.utils.models import (
    AnnualRow,
    BacktestRunResult,
    BacktestSummary,
    Holding,
    PortfolioBacktestResult,
)
from factor_model.utils.numbers import round_half_up

logger = logging.getLogger(__name__)


def clamp_top_n(top_n: Optional[int]) -> int:
    """Portfolio size bounded to the supported range"""
    if top_n is None:
        top_n = BACKTEST_DEFAULTS['top_n']
    return min(BACKTEST_DEFAULTS['max_top_n'], max(BACKTEST_DEFAULTS['min_top_n'], int(top_n)))


class Backtester:
    """
    Runs the yearly selection and reports on it.

    Key metrics:
    - CAGR and alpha against the benchmark
    - Volatility, Sharpe and max drawdown
    - Win rate (% of years beating the benchmark) and information ratio
    """

    def __init__(
        self,
        store,
        estimator: Optional[ForwardReturnEstimator] = None,
        analytics: Optional[PerformanceAnalytics] = None,
        max_workers: int = 4
    ):
        self.store = store
        self.selector = PortfolioSelector(store)
        self.estimator = estimator or ForwardReturnEstimator()
        self.analytics = analytics or PerformanceAnalytics()
        self.max_workers = max_workers

    def run(
        self,
        top_n: Optional[int] = None,
        start_year: int = BACKTEST_DEFAULTS['start_year']
    ) -> BacktestRunResult:
        """
        Select portfolios for every year from start_year on and store
        the backtest rows.

        The last stored year has no following year and is never a
        selection year. Years without a known aggregate return are
        skipped and counted.

        Raises:
            MissingInputError: no years are stored at all
        """
        top_n = clamp_top_n(top_n)
        all_years = self.store.list_years()

        if not all_years:
            raise MissingInputError("No years found: ingest and score raw metrics first")

        stored = set(all_years)
        available = [y for y in all_years if y >= start_year]
        selection_years = available[:-1]

        logger.info(f"Backtesting top {top_n} over {len(selection_years)} selection years")

        result = BacktestRunResult(top_n=top_n)

        for selection_year in selection_years:
            return_year = selection_year + 1

            if return_year not in stored:
                logger.warning(f"{selection_year}: return year {return_year} not stored, skipped")
                self._skip(result, selection_year)
                continue

            ranking = self.selector.select(selection_year, BACKTEST_DEFAULTS['max_top_n'])
            if not ranking:
                logger.warning(f"{selection_year}: no final scores, skipped")
                self._skip(result, selection_year)
                continue

            portfolio_return = self.estimator.portfolio_return(selection_year)
            if portfolio_return is None:
                logger.warning(f"{selection_year}: no aggregate return for {return_year}, skipped")
                self._skip(result, selection_year)
                continue

            backtest_row = PortfolioBacktestResult(
                selection_year=selection_year,
                return_year=return_year,
                portfolio_size=min(top_n, len(ranking)),
                portfolio_return=portfolio_return
            )
            # the whole ranking is kept so any top_n can be read back from it
            holdings = self.estimator.estimate(selection_year, ranking, portfolio_return)
            self.store.replace_backtest_year(backtest_row, holdings)

            result.results.append(backtest_row)
            result.years_processed += 1

        logger.info(
            f"Backtest complete: {result.years_processed} years processed, "
            f"{result.years_skipped} skipped"
        )
        return result

    @staticmethod
    def _skip(result: BacktestRunResult, year: int):
        result.years_skipped += 1
        result.skipped_years.append(year)

    def _rows_for(self, top_n: int, start_year: Optional[int] = None) -> List[PortfolioBacktestResult]:
        """
        Stored backtest rows belonging to a top-N run, oldest first.

        A year whose last run ranked fewer companies than top_n was stored
        with the smaller size, so the expected size is checked per year
        against the stored ranking.
        """
        rows = []
        expected: Dict[int, int] = {}
        for row in self.store.get_backtest_results():
            if start_year is not None and row.selection_year < start_year:
                continue
            if row.selection_year not in expected:
                expected[row.selection_year] = min(
                    top_n, self.store.count_selections(row.selection_year)
                )
            if row.portfolio_size == expected[row.selection_year]:
                rows.append(row)
        return rows

    def _benchmark_for(self, years: List[int], benchmark_name: str) -> List[float]:
        bench = self.store.get_benchmark_returns(benchmark_name)
        values = []
        for year in years:
            if year in bench:
                values.append(bench[year].annual_return)
            else:
                logger.warning(f"No {benchmark_name} return for {year}, using 0")
                values.append(0.0)
        return values

    def summary(
        self,
        top_n: Optional[int] = None,
        benchmark_name: str = BACKTEST_DEFAULTS['benchmark_name'],
        risk_free_rate: Optional[float] = None,
        start_year: Optional[int] = None
    ) -> BacktestSummary:
        """
        Per-year returns, growth of 100 and the metrics bundle, for
        selection years from start_year on (all stored years by default).
        """
        top_n = clamp_top_n(top_n)
        rows = self._rows_for(top_n, start_year)

        if not rows:
            logger.info(f"No backtest data for top {top_n}")
            return BacktestSummary(top_n=top_n, has_data=False)

        years = [r.return_year for r in rows]
        portfolio_returns = [r.portfolio_return for r in rows]
        benchmark_returns = self._benchmark_for(years, benchmark_name)

        return BacktestSummary(
            top_n=top_n,
            years=years,
            portfolio_returns=portfolio_returns,
            benchmark_returns=benchmark_returns,
            cumulative_portfolio=cumulative_growth(portfolio_returns),
            cumulative_benchmark=cumulative_growth(benchmark_returns),
            metrics=self.analytics.compute(portfolio_returns, benchmark_returns, risk_free_rate),
            has_data=True
        )

    def annual(
        self,
        top_n: Optional[int] = None,
        benchmark_name: str = BACKTEST_DEFAULTS['benchmark_name'],
        start_year: Optional[int] = None
    ) -> List[AnnualRow]:
        """
        Year-by-year table with the selected holdings.

        Holdings are read for all years in parallel; reads only.
        """
        top_n = clamp_top_n(top_n)
        rows = self._rows_for(top_n, start_year)
        benchmark = self._benchmark_for([r.return_year for r in rows], benchmark_name)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            holdings_by_year = list(executor.map(
                lambda r: self.store.get_selections(r.selection_year, limit=top_n),
                rows
            ))

        annual_rows = []
        for row, bench_return, holdings in zip(rows, benchmark, holdings_by_year):
            alpha = row.portfolio_return - bench_return
            annual_rows.append(AnnualRow(
                selection_year=row.selection_year,
                return_year=row.return_year,
                portfolio_return=round_half_up(row.portfolio_return, 2),
                benchmark_return=round_half_up(bench_return, 2),
                alpha=round_half_up(alpha, 2),
                num_stocks=row.portfolio_size,
                outperformed=alpha > 0,
                holdings=[
                    Holding(
                        ticker=h['selection'].ticker,
                        name=h['name'],
                        score=round_half_up(h['selection'].score, 1),
                        estimated_return=round_half_up(h['selection'].next_year_return, 1)
                    )
                    for h in holdings
                ]
            ))

        return annual_rows

    def generate_report(self, summary: BacktestSummary, annual_rows: List[AnnualRow]) -> str:
        """Generate a human-readable backtest report."""

        if not summary.has_data or summary.metrics is None:
            return "No backtest results available"

        m = summary.metrics
        report = []
        report.append("=" * 70)
        report.append(f"BACKTEST REPORT - TOP {summary.top_n}")
        report.append("=" * 70)
        report.append(f"Years: {summary.years[0]}-{summary.years[-1]} ({m.years_count})")
        report.append("")

        report.append("PERFORMANCE")
        report.append("-" * 70)
        report.append(f"CAGR:              {m.cagr:8.2f}%   (benchmark {m.benchmark_cagr:.2f}%)")
        report.append(f"Alpha:             {m.alpha:8.2f}%")
        report.append(f"Volatility:        {m.volatility:8.2f}%")
        report.append(f"Sharpe ratio:      {m.sharpe:8.2f}")
        report.append(f"Max drawdown:      {m.max_drawdown:8.2f}%")
        report.append(f"Win rate:          {m.win_rate:8.2f}%")
        report.append(f"Information ratio: {m.information_ratio:8.2f}")
        report.append(
            f"Growth of 100:     {summary.cumulative_portfolio[-1]:8.2f}    "
            f"(benchmark {summary.cumulative_benchmark[-1]:.2f})"
        )

        report.append("")
        report.append("YEAR BY YEAR")
        report.append("-" * 70)
        for row in annual_rows:
            marker = "+" if row.outperformed else " "
            top = ", ".join(h.ticker for h in row.holdings[:5])
            report.append(
                f"{row.selection_year}->{row.return_year} {marker} "
                f"portfolio {row.portfolio_return:7.2f}%  "
                f"benchmark {row.benchmark_return:7.2f}%  "
                f"alpha {row.alpha:7.2f}%  [{top}]"
            )

        report.append("")
        report.append(f"Note: {SYNTHETIC_RETURN_NOTE}")

        return "\n".join(report)


# Testing
if __name__ == "__main__":
    import tempfile

    from factor_model.data.reference import seed_benchmark
    from factor_model.data.store import SQLiteFactorStore
    from factor_model.utils.models import FinalScore

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    with tempfile.TemporaryDirectory() as tmp:
        store = SQLiteFactorStore(f"{tmp}/demo.db")
        seed_benchmark(store)

        years = list(range(2011, 2026))
        store.ensure_years(years)
        for year in years:
            scores = [
                FinalScore(ticker=f"T{i:02d}", year=year, final_score=(i * 37 + year) % 101)
                for i in range(30)
            ]
            store.replace_year_scores(year, [], [], scores)

        backtester = Backtester(store)
        backtester.run(top_n=20)

        print(backtester.generate_report(backtester.summary(20), backtester.annual(20)))
