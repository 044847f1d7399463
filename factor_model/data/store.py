"""
SQLite storage for companies, raw metrics, scores and backtest rows.

Every write is an upsert on the record's natural key or a whole-year
replace, so re-ingesting or re-running overwrites instead of duplicating.
"""

import sqlite3
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from factor_model.utils.config import DEFAULT_DB_PATH
from factor_model.utils.models import (
    BenchmarkReturn,
    Company,
    FactorScore,
    FinalScore,
    ParameterScore,
    PortfolioBacktestResult,
    PortfolioSelection,
    RawObservation,
    size_bucket,
)

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS companies (
        ticker TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        sector TEXT NOT NULL,
        industry TEXT NOT NULL,
        market_cap REAL NOT NULL,
        market_cap_bucket TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS years (
        year INTEGER PRIMARY KEY
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS raw_metrics (
        ticker TEXT NOT NULL,
        metric TEXT NOT NULL,
        year INTEGER NOT NULL,
        value REAL,
        PRIMARY KEY (ticker, metric, year)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS parameter_scores (
        ticker TEXT NOT NULL,
        metric TEXT NOT NULL,
        year INTEGER NOT NULL,
        raw_value REAL,
        normalized_value INTEGER,
        PRIMARY KEY (ticker, metric, year)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS factor_scores (
        ticker TEXT NOT NULL,
        factor TEXT NOT NULL,
        year INTEGER NOT NULL,
        score INTEGER NOT NULL,
        PRIMARY KEY (ticker, factor, year)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS final_scores (
        ticker TEXT NOT NULL,
        year INTEGER NOT NULL,
        final_score INTEGER NOT NULL,
        PRIMARY KEY (ticker, year)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS portfolio_selection (
        selection_year INTEGER NOT NULL,
        ticker TEXT NOT NULL,
        rank INTEGER NOT NULL,
        score REAL NOT NULL,
        next_year_return REAL NOT NULL,
        PRIMARY KEY (selection_year, ticker)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS portfolio_backtest (
        selection_year INTEGER NOT NULL,
        return_year INTEGER NOT NULL,
        portfolio_size INTEGER NOT NULL,
        portfolio_return REAL NOT NULL,
        PRIMARY KEY (selection_year, return_year, portfolio_size)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS benchmark_returns (
        benchmark_name TEXT NOT NULL,
        year INTEGER NOT NULL,
        annual_return REAL NOT NULL,
        cumulative_return REAL,
        PRIMARY KEY (benchmark_name, year)
    )
    """,
]


class SQLiteFactorStore:
    """
    Storage handle passed explicitly to the scoring and backtest code.

    A connection is opened per operation, so one store can be shared by
    reader threads.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = str(db_path)

        # Ensure data directory exists
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

    @contextmanager
    def _connect(self):
        """Connection that commits on success and always closes"""
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Create tables if they don't exist"""
        with self._connect() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

        logger.info(f"Database initialized at {self.db_path}")

    # ------------------------------------------------------------------
    # Companies and years
    # ------------------------------------------------------------------

    def upsert_companies(self, companies: Iterable[Company]) -> int:
        rows = [
            (c.ticker, c.name or c.ticker, c.sector, c.industry,
             c.market_cap, c.market_cap_bucket)
            for c in companies
        ]
        with self._connect() as conn:
            conn.executemany("""
                INSERT OR REPLACE INTO companies
                    (ticker, name, sector, industry, market_cap, market_cap_bucket)
                VALUES (?, ?, ?, ?, ?, ?)
            """, rows)
        return len(rows)

    def ensure_companies(self, tickers: Iterable[str]) -> int:
        """Placeholder rows for tickers not stored yet; known companies are untouched"""
        rows = [(t, t, 'Unknown', 'Unknown', 0.0, size_bucket(0.0)) for t in sorted(set(tickers))]
        with self._connect() as conn:
            before = conn.total_changes
            conn.executemany("""
                INSERT OR IGNORE INTO companies
                    (ticker, name, sector, industry, market_cap, market_cap_bucket)
                VALUES (?, ?, ?, ?, ?, ?)
            """, rows)
            added = conn.total_changes - before
        return added

    def get_company(self, ticker: str) -> Optional[Company]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT ticker, name, sector, industry, market_cap FROM companies WHERE ticker = ?",
                (ticker.upper(),)
            ).fetchone()

        if not row:
            return None
        return Company(ticker=row[0], name=row[1], sector=row[2], industry=row[3], market_cap=row[4])

    def ensure_years(self, years: Iterable[int]):
        """Create year rows lazily; existing years are left alone"""
        with self._connect() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO years (year) VALUES (?)",
                [(int(y),) for y in years]
            )

    def list_years(self) -> List[int]:
        with self._connect() as conn:
            rows = conn.execute("SELECT year FROM years ORDER BY year").fetchall()
        return [r[0] for r in rows]

    # ------------------------------------------------------------------
    # Raw metrics and scores
    # ------------------------------------------------------------------

    def upsert_raw_metrics(self, observations: Iterable[RawObservation]) -> int:
        rows = [(o.ticker, o.metric, o.year, o.value) for o in observations]
        with self._connect() as conn:
            conn.executemany("""
                INSERT OR REPLACE INTO raw_metrics (ticker, metric, year, value)
                VALUES (?, ?, ?, ?)
            """, rows)
        return len(rows)

    def get_raw_metrics(self, year: int) -> List[RawObservation]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT ticker, metric, year, value FROM raw_metrics WHERE year = ? ORDER BY ticker, metric",
                (year,)
            ).fetchall()
        return [RawObservation(ticker=r[0], metric=r[1], year=r[2], value=r[3]) for r in rows]

    def replace_year_scores(
        self,
        year: int,
        parameter_scores: List[ParameterScore],
        factor_scores: List[FactorScore],
        final_scores: List[FinalScore]
    ):
        """
        Swap in a freshly computed set of derived scores for a year.

        Runs in one transaction, so readers never see a half-scored year.
        """
        with self._connect() as conn:
            for table in ("parameter_scores", "factor_scores", "final_scores"):
                conn.execute(f"DELETE FROM {table} WHERE year = ?", (year,))

            conn.executemany("""
                INSERT OR REPLACE INTO parameter_scores
                    (ticker, metric, year, raw_value, normalized_value)
                VALUES (?, ?, ?, ?, ?)
            """, [(p.ticker, p.metric, p.year, p.raw_value, p.normalized_value)
                  for p in parameter_scores])

            conn.executemany("""
                INSERT OR REPLACE INTO factor_scores (ticker, factor, year, score)
                VALUES (?, ?, ?, ?)
            """, [(f.ticker, f.factor, f.year, f.score) for f in factor_scores])

            conn.executemany("""
                INSERT OR REPLACE INTO final_scores (ticker, year, final_score)
                VALUES (?, ?, ?)
            """, [(f.ticker, f.year, f.final_score) for f in final_scores])

        logger.debug(
            f"Stored {year}: {len(parameter_scores)} parameter, "
            f"{len(factor_scores)} factor, {len(final_scores)} final scores"
        )

    def get_parameter_scores(self, year: int) -> List[ParameterScore]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT ticker, metric, year, raw_value, normalized_value
                FROM parameter_scores WHERE year = ? ORDER BY ticker, metric
            """, (year,)).fetchall()
        return [
            ParameterScore(ticker=r[0], metric=r[1], year=r[2], raw_value=r[3], normalized_value=r[4])
            for r in rows
        ]

    def get_factor_scores(self, year: int) -> List[FactorScore]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT ticker, factor, year, score FROM factor_scores WHERE year = ? ORDER BY ticker, factor",
                (year,)
            ).fetchall()
        return [FactorScore(ticker=r[0], factor=r[1], year=r[2], score=r[3]) for r in rows]

    def get_final_scores(self, year: int) -> List[FinalScore]:
        """Final scores for a year, best first, ties by ticker"""
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT ticker, year, final_score FROM final_scores
                WHERE year = ? ORDER BY final_score DESC, ticker ASC
            """, (year,)).fetchall()
        return [FinalScore(ticker=r[0], year=r[1], final_score=r[2]) for r in rows]

    def scores_frame(self, year: int) -> pd.DataFrame:
        """
        One row per scored company: company fields, final score and one
        column per factor (NaN where the factor score is absent).
        """
        with self._connect() as conn:
            final = pd.read_sql_query("""
                SELECT c.ticker, c.name, c.sector, c.industry, c.market_cap,
                       c.market_cap_bucket, f.final_score
                FROM final_scores f
                JOIN companies c ON c.ticker = f.ticker
                WHERE f.year = ?
            """, conn, params=(year,))
            factors = pd.read_sql_query(
                "SELECT ticker, factor, score FROM factor_scores WHERE year = ?",
                conn, params=(year,)
            )

        if not factors.empty:
            wide = factors.pivot(index='ticker', columns='factor', values='score').reset_index()
            wide.columns.name = None
            final = final.merge(wide, on='ticker', how='left')

        return final

    # ------------------------------------------------------------------
    # Backtest
    # ------------------------------------------------------------------

    def replace_backtest_year(
        self,
        result: PortfolioBacktestResult,
        selections: List[PortfolioSelection]
    ):
        """
        Store one selection year of a backtest run.

        `selections` is the year's full ranking and replaces whatever was
        stored for the year before. Backtest rows larger than the new
        ranking can no longer be produced and are dropped. All in one
        transaction.
        """
        year = result.selection_year
        with self._connect() as conn:
            conn.execute("DELETE FROM portfolio_selection WHERE selection_year = ?", (year,))
            conn.executemany("""
                INSERT INTO portfolio_selection
                    (selection_year, ticker, rank, score, next_year_return)
                VALUES (?, ?, ?, ?, ?)
            """, [(s.selection_year, s.ticker, s.rank, s.score, s.next_year_return)
                  for s in selections])

            conn.execute(
                "DELETE FROM portfolio_backtest WHERE selection_year = ? AND portfolio_size > ?",
                (year, len(selections))
            )
            conn.execute("""
                INSERT OR REPLACE INTO portfolio_backtest
                    (selection_year, return_year, portfolio_size, portfolio_return)
                VALUES (?, ?, ?, ?)
            """, (year, result.return_year, result.portfolio_size, result.portfolio_return))

        logger.debug(f"Stored backtest year {year}: {len(selections)} ranked, top {result.portfolio_size}")

    def count_selections(self, selection_year: int) -> int:
        """Size of the ranking stored by the latest run for a year"""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM portfolio_selection WHERE selection_year = ?",
                (selection_year,)
            ).fetchone()
        return row[0]

    def get_backtest_results(self) -> List[PortfolioBacktestResult]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT selection_year, return_year, portfolio_size, portfolio_return
                FROM portfolio_backtest ORDER BY return_year, portfolio_size
            """).fetchall()
        return [
            PortfolioBacktestResult(
                selection_year=r[0], return_year=r[1], portfolio_size=r[2], portfolio_return=r[3]
            )
            for r in rows
        ]

    def get_selections(self, selection_year: int, limit: Optional[int] = None) -> List[Dict]:
        """Holdings of a selection year in rank order, with company names"""
        sql = """
            SELECT s.selection_year, s.ticker, s.rank, s.score, s.next_year_return,
                   COALESCE(c.name, s.ticker)
            FROM portfolio_selection s
            LEFT JOIN companies c ON c.ticker = s.ticker
            WHERE s.selection_year = ?
            ORDER BY s.rank, s.ticker
        """
        params = [selection_year]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()

        return [
            {
                'selection': PortfolioSelection(
                    selection_year=r[0], ticker=r[1], rank=r[2], score=r[3], next_year_return=r[4]
                ),
                'name': r[5]
            }
            for r in rows
        ]

    def upsert_benchmark_returns(self, returns: Iterable[BenchmarkReturn]) -> int:
        rows = [
            (b.benchmark_name, b.year, b.annual_return, b.cumulative_return)
            for b in returns
        ]
        with self._connect() as conn:
            conn.executemany("""
                INSERT OR REPLACE INTO benchmark_returns
                    (benchmark_name, year, annual_return, cumulative_return)
                VALUES (?, ?, ?, ?)
            """, rows)
        return len(rows)

    def get_benchmark_returns(self, benchmark_name: str) -> Dict[int, BenchmarkReturn]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT benchmark_name, year, annual_return, cumulative_return
                FROM benchmark_returns WHERE benchmark_name = ? ORDER BY year
            """, (benchmark_name,)).fetchall()
        return {
            r[1]: BenchmarkReturn(benchmark_name=r[0], year=r[1], annual_return=r[2], cumulative_return=r[3])
            for r in rows
        }
