"""
Stock screener over stored scores.

Lists the scored universe for a year, ranked by final score or by any
factor, with search, sector and size filters.
"""

import pandas as pd
import logging
from typing import Optional, Tuple

from factor_model.utils.catalog import MetricCatalog
from factor_model.utils.config import SCREENER_DEFAULTS
from factor_model.utils.exceptions import ConfigurationError, MissingInputError

logger = logging.getLogger(__name__)


class StockScreener:
    """
    Filters and ranks stored scores.

    Usage:
        screener = StockScreener(store)
        stocks, total = screener.list_stocks(year=2024, sector='Energy')
    """

    def __init__(self, store, catalog: Optional[MetricCatalog] = None):
        self.store = store
        self.catalog = catalog or MetricCatalog()

    def list_stocks(
        self,
        year: Optional[int] = None,
        search: str = '',
        sector: str = '',
        market_cap_bucket: str = '',
        sort_by: str = 'final_score',
        sort_order: str = 'desc',
        page: int = 1,
        page_size: int = SCREENER_DEFAULTS['page_size']
    ) -> Tuple[pd.DataFrame, int]:
        """
        One page of scored companies.

        Args:
            year: Fiscal year (latest stored year when omitted)
            search: Case-insensitive match on ticker or name
            sector: Exact sector name
            market_cap_bucket: 'Large', 'Mid' or 'Small'
            sort_by: 'final_score' or a factor name
            sort_order: 'asc' or 'desc'
            page: 1-based page number
            page_size: Rows per page, at most SCREENER_DEFAULTS['max_page_size']

        Returns:
            (page DataFrame, total matching rows)

        Raises:
            MissingInputError: the year is not stored
            ConfigurationError: sort_by is neither final_score nor a factor
        """
        year = self._resolve_year(year)

        if sort_by != 'final_score' and sort_by not in self.catalog.factor_names:
            raise ConfigurationError(f"Cannot sort by '{sort_by}'", key=sort_by)

        page = max(1, int(page))
        page_size = min(SCREENER_DEFAULTS['max_page_size'], max(1, int(page_size)))

        df = self.store.scores_frame(year)

        for factor in self.catalog.factor_names:
            if factor not in df.columns:
                df[factor] = float('nan')

        if search:
            needle = search.strip().lower()
            mask = (
                df['ticker'].str.lower().str.contains(needle, regex=False)
                | df['name'].str.lower().str.contains(needle, regex=False)
            )
            df = df[mask]
        if sector:
            df = df[df['sector'] == sector]
        if market_cap_bucket:
            df = df[df['market_cap_bucket'] == market_cap_bucket]

        total = len(df)

        # missing factor scores sort as 0
        df = df.assign(_sort_key=df[sort_by].fillna(0))
        df = df.sort_values(
            ['_sort_key', 'ticker'],
            ascending=[sort_order == 'asc', True]
        ).drop(columns='_sort_key')

        offset = (page - 1) * page_size
        page_df = df.iloc[offset:offset + page_size].reset_index(drop=True)

        logger.info(f"Screener {year}: {total} matches, returning {len(page_df)}")
        return page_df, total

    def _resolve_year(self, year: Optional[int]) -> int:
        years = self.store.list_years()
        if not years:
            raise MissingInputError("No years found")
        if year is None:
            return years[-1]
        if year not in years:
            raise MissingInputError(f"Year {year} not found")
        return year
