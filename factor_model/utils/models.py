"""
Data models using Pydantic for validation.

Why Pydantic? It ensures data has correct types and catches errors early.
Example: a normalized score of 120 raises a ValidationError instead of
silently landing in the database.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, List

from factor_model.utils.config import SIZE_BUCKETS


def size_bucket(market_cap: Optional[float]) -> str:
    """Large / Mid / Small from market cap (same currency unit)."""
    market_cap = market_cap or 0
    if market_cap >= SIZE_BUCKETS['Large']:
        return 'Large'
    if market_cap >= SIZE_BUCKETS['Mid']:
        return 'Mid'
    return 'Small'


class Metric(BaseModel):
    """A single catalog metric"""
    name: str
    factor: str
    weight: float = Field(..., ge=0, le=1)
    lower_is_better: bool = False
    display_name: str = ""
    description: str = ""


class Factor(BaseModel):
    """A factor and the metrics that roll up into it"""
    name: str
    weight: float = Field(..., ge=0, le=1)
    metrics: List[str] = []


class Company(BaseModel):
    """
    One company in the universe.

    The size bucket is derived from market cap, never supplied.
    """
    ticker: str = Field(..., min_length=1, description="Unique ticker")
    name: str = ""
    sector: str = "Unknown"
    industry: str = "Unknown"
    market_cap: float = 0.0

    @field_validator('ticker')
    @classmethod
    def normalize_ticker(cls, v):
        """Tickers are stored upper case and trimmed"""
        v = v.strip().upper()
        if not v:
            raise ValueError("Ticker cannot be blank")
        return v

    @property
    def market_cap_bucket(self) -> str:
        return size_bucket(self.market_cap)


class RawObservation(BaseModel):
    """One raw metric value for (company, metric, year); value may be absent"""
    ticker: str
    metric: str
    year: int
    value: Optional[float] = None

    @field_validator('ticker')
    @classmethod
    def normalize_ticker(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError("Ticker cannot be blank")
        return v

    @field_validator('metric')
    @classmethod
    def metric_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Metric cannot be blank")
        return v


class ParameterScore(BaseModel):
    """Raw value and its cross-sectional score, stored together"""
    ticker: str
    metric: str
    year: int
    raw_value: Optional[float] = None
    normalized_value: Optional[int] = Field(None, ge=0, le=100)


class FactorScore(BaseModel):
    """Rounded mean of a factor's normalized scores"""
    ticker: str
    factor: str
    year: int
    score: int = Field(..., ge=0, le=100)


class FinalScore(BaseModel):
    """Weighted combination of factor scores"""
    ticker: str
    year: int
    final_score: int = Field(..., ge=0, le=100)


class PortfolioSelection(BaseModel):
    """
    A holding of the simulated portfolio formed at selection_year.

    next_year_return is an estimate (portfolio return plus a synthetic
    offset), not a measured stock return.
    """
    selection_year: int
    ticker: str
    rank: int = Field(..., ge=1)
    score: float
    next_year_return: float


class PortfolioBacktestResult(BaseModel):
    """Aggregate portfolio return for selection_year -> return_year"""
    selection_year: int
    return_year: int
    portfolio_size: int = Field(..., ge=1)
    portfolio_return: float

    @field_validator('return_year')
    @classmethod
    def follows_selection_year(cls, v, info):
        selection_year = info.data.get('selection_year')
        if selection_year is not None and v != selection_year + 1:
            raise ValueError("return_year must be selection_year + 1")
        return v


class BenchmarkReturn(BaseModel):
    """One benchmark's return for a year"""
    benchmark_name: str
    year: int
    annual_return: float
    cumulative_return: Optional[float] = None


class PerformanceMetrics(BaseModel):
    """Return and risk statistics, all percentages rounded to 2 dp"""
    cagr: float
    benchmark_cagr: float
    volatility: float
    sharpe: float
    max_drawdown: float = Field(..., le=0)
    alpha: float
    win_rate: float = Field(..., ge=0, le=100)
    information_ratio: float
    years_count: int
    drawdown_series: List[float] = []


class ScoringRunResult(BaseModel):
    """Output counts of one scoring pass over a year"""
    year: int
    parameter_scores: int = 0
    factor_scores: int = 0
    final_scores: int = 0
    rejected: List[str] = []


class IngestionResult(BaseModel):
    """Output of loading a raw metric source"""
    companies: int = 0
    observations: int = 0
    rejected: List[str] = []
    years: List[int] = []
    scoring: Dict[int, ScoringRunResult] = {}


class BacktestRunResult(BaseModel):
    """Output of one backtest run"""
    top_n: int
    years_processed: int = 0
    years_skipped: int = 0
    skipped_years: List[int] = []
    results: List[PortfolioBacktestResult] = []


class Holding(BaseModel):
    """A selected stock as shown in the annual table"""
    ticker: str
    name: str = ""
    score: float
    estimated_return: float


class AnnualRow(BaseModel):
    """One year of the annual backtest table"""
    selection_year: int
    return_year: int
    portfolio_return: float
    benchmark_return: float
    alpha: float
    num_stocks: int
    outperformed: bool
    holdings: List[Holding] = []


class BacktestSummary(BaseModel):
    """Per-year returns, growth of 100 and the metrics bundle"""
    top_n: int
    years: List[int] = []
    portfolio_returns: List[float] = []
    benchmark_returns: List[float] = []
    cumulative_portfolio: List[float] = []
    cumulative_benchmark: List[float] = []
    metrics: Optional[PerformanceMetrics] = None
    has_data: bool = False
