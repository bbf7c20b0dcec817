"""
Prepare fine (daily) and coarse (weekly) observations for stable bands.
"""

import logging
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

class BandDataPrep:
    """Builds observation tables from a price series."""

    def __init__(self, sma_window: int = 20, dispersion_window: int = 20):
        """
        Args:
            sma_window: Trailing window of the smoothed price
            dispersion_window: Trailing window of the price and return standard deviations
        """
        self.sma_window = sma_window
        self.dispersion_window = dispersion_window
        self.logger = logging.getLogger('data_manager.prep')

    @staticmethod
    def log_returns(prices: pd.Series) -> pd.Series:
        """ln(price / previous price), undefined for the first observation"""
        return np.log(prices / prices.shift(1))

    def prepare_daily(self, prices: pd.Series) -> pd.DataFrame:
        """
        Fine observations with trailing smoothing and dispersion.

        Returns:
            DataFrame with price, log_return, smoothed_price, price_dispersion
            and return_dispersion columns
        """
        prices = prices.astype(float)
        daily = pd.DataFrame({'price': prices}, index=prices.index)
        daily['log_return'] = self.log_returns(prices)
        daily['smoothed_price'] = prices.rolling(window=self.sma_window).mean()
        daily['price_dispersion'] = prices.rolling(window=self.dispersion_window).std()
        daily['return_dispersion'] = daily['log_return'].rolling(window=self.dispersion_window).std()
        daily.index.name = 'timestamp'

        self.logger.info(
            f"Prepared {len(daily)} fine observations "
            f"(SMA {self.sma_window}, dispersion {self.dispersion_window})"
        )
        return daily

    def resample_weekly(self, prices: pd.Series, rule: str = 'W-FRI') -> pd.DataFrame:
        """
        Coarse observations: last price of each period and its log return.

        Empty periods (e.g. holiday weeks) are dropped rather than filled.
        """
        weekly_prices = prices.astype(float).resample(rule).last().dropna()
        weekly = pd.DataFrame({'price': weekly_prices})
        weekly['log_return'] = self.log_returns(weekly_prices)
        weekly.index.name = 'timestamp'

        self.logger.info(f"Resampled {len(prices)} prices into {len(weekly)} '{rule}' periods")
        return weekly

    def infer_horizon_fraction(self, fine: pd.DataFrame, coarse: pd.DataFrame) -> float:
        """Reciprocal of the median number of fine observations per coarse period"""
        if len(coarse) < 2:
            raise ValueError("Need at least two coarse periods to infer a horizon fraction")

        # Assign each fine timestamp to the first coarse period ending at or after it
        period = np.searchsorted(coarse.index.values, fine.index.values, side='left')
        inside = period < len(coarse)
        counts = pd.Series(period[inside]).value_counts()
        # The first period may be partial
        counts = counts.drop(index=0, errors='ignore')
        if counts.empty:
            raise ValueError("No complete coarse period covers the fine observations")

        fraction = 1.0 / float(counts.median())
        self.logger.info(f"Inferred horizon fraction {fraction:.4f} from {len(counts)} periods")
        return fraction
