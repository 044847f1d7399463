"""
Raw metric sources.

A source hands the scoring engine typed (ticker, metric, year, value)
observations plus the company records they refer to. Reading workbooks
and mapping their column names is the job of whatever builds the frame.
"""

import logging
from typing import Iterator, List, Optional

import pandas as pd
from pydantic import ValidationError

from factor_model.utils.models import Company, RawObservation
from factor_model.utils.numbers import to_number

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['ticker', 'metric', 'year', 'value']
DETAIL_COLUMNS = ['name', 'sector', 'industry', 'market_cap']


class RawMetricSource:
    """
    Interface: anything yielding companies and raw observations.

    Rows that cannot be turned into a record are skipped and their keys
    collected in `rejected`; one bad row never stops the others.
    """

    def __init__(self):
        self.rejected: List[str] = []

    def _reject(self, key: str, reason):
        logger.warning(f"Rejected {key}: {reason}")
        self.rejected.append(key)

    def iter_companies(self) -> Iterator[Company]:
        raise NotImplementedError

    def iter_observations(self) -> Iterator[RawObservation]:
        raise NotImplementedError


class DataFrameMetricSource(RawMetricSource):
    """
    Long-format DataFrame source.

    Expected columns: ticker, metric, year, value, plus optional
    name, sector, industry, market_cap. Company details may also come
    in a separate frame keyed by ticker.

    Example:
        >>> df = pd.DataFrame([
        ...     {'ticker': 'TCS', 'metric': 'roce', 'year': 2020, 'value': 48.1},
        ...     {'ticker': 'INFY', 'metric': 'roce', 'year': 2020, 'value': 31.7},
        ... ])
        >>> source = DataFrameMetricSource(df)
    """

    def __init__(self, frame: pd.DataFrame, companies: Optional[pd.DataFrame] = None):
        super().__init__()
        missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"Metric frame is missing columns: {missing}")

        self.frame = frame.copy()
        self.frame['ticker'] = _clean_text(self.frame['ticker']).str.upper()
        self.frame['metric'] = _clean_text(self.frame['metric'])
        self.companies = companies

    @classmethod
    def from_csv(cls, path: str, companies_path: Optional[str] = None) -> "DataFrameMetricSource":
        """Load the same long format from CSV file(s)"""
        frame = pd.read_csv(path)
        companies = pd.read_csv(companies_path) if companies_path else None
        logger.info(f"Loaded {len(frame)} rows from {path}")
        return cls(frame, companies)

    def iter_companies(self) -> Iterator[Company]:
        """Companies that come with details; bare tickers are left to the store"""
        if self.companies is not None:
            details = self.companies.copy()
            details['ticker'] = _clean_text(details['ticker']).str.upper()
        elif any(c in self.frame.columns for c in DETAIL_COLUMNS):
            details = self.frame
        else:
            return

        details = details.drop_duplicates(subset='ticker', keep='first')
        for _, row in details.iterrows():
            try:
                company = self._company_from_row(row)
            except ValidationError as e:
                self._reject(f"{row['ticker'] or '<blank>'}/company", e.errors()[0]['msg'])
                continue
            yield company

    def iter_observations(self) -> Iterator[RawObservation]:
        for row in self.frame.itertuples(index=False):
            year = to_number(row.year)
            key = f"{row.ticker or '<blank>'}/{row.metric}/{'?' if year is None else int(year)}"
            if year is None:
                self._reject(key, "no year")
                continue
            try:
                obs = RawObservation(
                    ticker=row.ticker,
                    metric=row.metric,
                    year=int(year),
                    value=to_number(row.value)
                )
            except ValidationError as e:
                self._reject(key, e.errors()[0]['msg'])
                continue
            yield obs

    @staticmethod
    def _company_from_row(row) -> Company:
        def text(column, default):
            value = row.get(column)
            if value is None or pd.isna(value) or not str(value).strip():
                return default
            return str(value).strip()

        return Company(
            ticker=row['ticker'],
            name=text('name', row['ticker']),
            sector=text('sector', 'Unknown'),
            industry=text('industry', 'Unknown'),
            market_cap=to_number(row.get('market_cap')) or 0.0
        )


def _clean_text(column: pd.Series) -> pd.Series:
    """Trimmed strings, with missing cells as empty strings"""
    return column.map(lambda v: '' if v is None or pd.isna(v) else str(v).strip())
