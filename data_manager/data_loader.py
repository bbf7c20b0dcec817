"""
Price loader with column-name normalization for stable band analysis.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union
import pandas as pd

from data_manager.data_validator import DataValidator

logger = logging.getLogger(__name__)

DATE_COLUMNS = ['date', 'datetime', 'timestamp', 'time', 'unnamed:_0']
PRICE_COLUMNS = ['adj_close', 'close', 'price', 'last']

def normalize_column(name: str) -> str:
    """'Adj Close' -> 'adj_close', ' Last-Price ' -> 'last_price'"""
    return re.sub(r'[\s\-]+', '_', str(name).strip().lower())

class PriceLoader:
    """Loads a daily price series from a CSV file."""

    def __init__(self, validator: Optional[DataValidator] = None):
        self.validator = validator or DataValidator()
        self.logger = logging.getLogger('data_manager.loader')

    def _find_column(self, columns, candidates, label: str) -> str:
        for candidate in candidates:
            if candidate in columns:
                return candidate
        raise ValueError(f"No {label} column found, expected one of {candidates}, got {list(columns)}")

    def normalize(self, df: pd.DataFrame, price_column: Optional[str] = None) -> pd.Series:
        """Turn a raw price table into a sorted, de-duplicated price series"""
        df = df.rename(columns=normalize_column)

        date_col = self._find_column(df.columns, DATE_COLUMNS, 'date')
        price_col = (normalize_column(price_column) if price_column
                     else self._find_column(df.columns, PRICE_COLUMNS, 'price'))
        if price_col not in df.columns:
            raise ValueError(f"Price column '{price_col}' not found in {list(df.columns)}")

        timestamps = pd.DatetimeIndex(pd.to_datetime(df[date_col]), name='timestamp')
        if timestamps.tz is not None:
            self.logger.info(f"Converting {timestamps.tz} timestamps to naive UTC")
            timestamps = timestamps.tz_convert('UTC').tz_localize(None)

        prices = pd.Series(
            pd.to_numeric(df[price_col], errors='coerce').values,
            index=timestamps,
            name='price'
        )
        prices = prices[prices.index.notna()].sort_index(kind='mergesort')

        duplicated = prices.index.duplicated(keep='last')
        if duplicated.any():
            self.logger.warning(f"Dropping {duplicated.sum()} duplicate timestamps (keeping last)")
            prices = prices[~duplicated]

        n_missing = int(prices.isna().sum())
        if n_missing:
            self.logger.warning(f"Dropping {n_missing} rows without a price")
            prices = prices.dropna()

        return prices

    def load_csv(self, file_path: Union[str, Path], price_column: Optional[str] = None) -> pd.Series:
        """Load and validate a price series from CSV."""
        try:
            self.logger.info(f"Reading prices from: {file_path}")
            df = pd.read_csv(file_path)
            self.logger.info(f"Total rows in CSV: {len(df)}")

            prices = self.normalize(df, price_column=price_column)

            is_valid, issues = self.validator.validate_prices(prices)
            if not is_valid:
                raise ValueError(f"Invalid price data: {'; '.join(issues)}")

            self.logger.info(
                f"Loaded {len(prices)} prices from {prices.index[0]:%Y-%m-%d} "
                f"to {prices.index[-1]:%Y-%m-%d}"
            )
            return prices

        except Exception as e:
            self.logger.error(f"Error loading prices: {str(e)}")
            raise
