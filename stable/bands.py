"""Conversion of projected stable quantiles into price bands"""

from typing import Dict, Optional, Tuple
import logging
import numpy as np
import pandas as pd

from .capability import StableCapability, LevyStableCapability
from .exceptions import QuantileFailure

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['price', 'log_return', 'smoothed_price']

BAND_COLUMNS = [
    'price', 'log_return', 'smoothed_price', 'tail_index', 'scaled_scale', 'as_of',
    'lower_log_return', 'upper_log_return', 'lower_price', 'upper_price'
]

class BandConstructor:
    """Builds stable bands around a smoothed price baseline"""

    def __init__(self, capability: Optional[StableCapability] = None, qtile: float = 0.05):
        """
        Initialize constructor

        Args:
            capability: Quantile capability, defaults to scipy's levy_stable
            qtile: Two-sided tail probability; quantiles are taken at qtile / 2
                and 1 - qtile / 2
        """
        if not (0 < qtile < 1):
            raise ValueError(f"qtile must be in (0, 1), got {qtile}")
        self.capability = capability or LevyStableCapability()
        self.qtile = qtile
        self.logger = logging.getLogger('stable.bands')

    @property
    def lower_probability(self) -> float:
        return self.qtile / 2

    @property
    def upper_probability(self) -> float:
        return 1 - self.qtile / 2

    def quantiles(self, tail_index: float, scaled_scale: float) -> Tuple[float, float]:
        """Lower and upper log-return quantiles of a symmetric zero-centred stable law"""
        upper = self.capability.quantile(self.upper_probability, tail_index, 0.0, scaled_scale, 0.0)
        lower = self.capability.quantile(self.lower_probability, tail_index, 0.0, scaled_scale, 0.0)
        return lower, upper

    @staticmethod
    def to_price(smoothed_price, log_return_quantile):
        """Apply a log-return quantile as a multiplicative offset"""
        return smoothed_price * (1 + np.expm1(log_return_quantile))

    def construct(self, fine_obs: pd.DataFrame, projected: pd.DataFrame) -> pd.DataFrame:
        """
        Bands for every fine row with a projected estimate, smoothed price and return

        Rows missing any input are dropped. A row whose quantiles fail keeps
        NaN bands.
        """
        try:
            missing = [col for col in REQUIRED_COLUMNS if col not in fine_obs.columns]
            if missing:
                raise ValueError(f"Fine observations missing columns: {missing}")

            joined = fine_obs[REQUIRED_COLUMNS].join(
                projected[['tail_index', 'scaled_scale', 'as_of']], how='inner'
            )
            joined = joined.dropna(subset=['log_return', 'smoothed_price',
                                           'tail_index', 'scaled_scale'])

            # Parameters are piecewise constant, so each distinct pair is queried once
            lookup: Dict[Tuple[float, float], Tuple[float, float]] = {}
            failed = 0
            for tail_index, scaled_scale in joined[['tail_index', 'scaled_scale']].drop_duplicates().itertuples(index=False):
                try:
                    lookup[(tail_index, scaled_scale)] = self.quantiles(tail_index, scaled_scale)
                except QuantileFailure as e:
                    failed += 1
                    lookup[(tail_index, scaled_scale)] = (np.nan, np.nan)
                    self.logger.warning(
                        f"Quantile failed for alpha={tail_index:.4f}, "
                        f"scale={scaled_scale:.6f}: {str(e)}"
                    )

            pairs = [lookup[key] for key in zip(joined['tail_index'], joined['scaled_scale'])]
            quantiles = np.array(pairs, dtype=float).reshape(-1, 2)

            bands = joined.copy()
            bands['lower_log_return'] = quantiles[:, 0]
            bands['upper_log_return'] = quantiles[:, 1]
            bands['lower_price'] = self.to_price(bands['smoothed_price'], bands['lower_log_return'])
            bands['upper_price'] = self.to_price(bands['smoothed_price'], bands['upper_log_return'])

            self.logger.info(
                f"Constructed bands for {bands['upper_price'].notna().sum()}/{len(fine_obs)} "
                f"rows at qtile={self.qtile} ({len(lookup)} parameter sets, {failed} failed)"
            )
            return bands[BAND_COLUMNS]

        except Exception as e:
            self.logger.error(f"Error constructing bands: {str(e)}")
            raise

def flag_excursions(bands: pd.DataFrame) -> pd.DataFrame:
    """Mark closes outside the band: 1 above, -1 below, 0 inside, missing if undefined"""
    flagged = bands.copy()
    defined = flagged['lower_price'].notna() & flagged['upper_price'].notna()
    excursion = pd.Series(pd.NA, index=flagged.index, dtype='Int8')
    excursion[defined] = 0
    excursion[defined & (flagged['price'] > flagged['upper_price'])] = 1
    excursion[defined & (flagged['price'] < flagged['lower_price'])] = -1
    flagged['excursion'] = excursion
    return flagged
