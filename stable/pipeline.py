"""End-to-end stable band computation over coarse and fine observations"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import pandas as pd

from models import BandResult
from .bands import BandConstructor
from .capability import StableCapability, LevyStableCapability
from .config import BandConfig
from .estimator import RollingStableEstimator
from .projector import FrequencyProjector, naive_timestamps

logger = logging.getLogger(__name__)

class StableBandPipeline:
    """Rolling estimation -> frequency projection -> band construction"""

    def __init__(self, config: Optional[BandConfig] = None,
                 capability: Optional[StableCapability] = None,
                 checkpoint_dir: Optional[Path] = None):
        self.config = config or BandConfig()
        self.config.validate()
        self.capability = capability or LevyStableCapability()

        self.estimator = RollingStableEstimator(
            capability=self.capability,
            min_window=self.config.min_window,
            n_workers=self.config.n_workers,
            checkpoint_dir=checkpoint_dir
        )
        self.projector = FrequencyProjector(horizon_fraction=self.config.horizon_fraction)
        self.constructor = BandConstructor(capability=self.capability, qtile=self.config.qtile)
        self.logger = logging.getLogger('stable.pipeline')

    @staticmethod
    def _check_frame(frame: pd.DataFrame, columns, label: str) -> None:
        if not isinstance(frame.index, pd.DatetimeIndex):
            raise ValueError(f"{label} observations must be indexed by a DatetimeIndex")
        if frame.index.has_duplicates:
            raise ValueError(f"{label} observations contain duplicate timestamps")
        if not frame.index.is_monotonic_increasing:
            raise ValueError(f"{label} observations must be ordered by timestamp")
        missing = [col for col in columns if col not in frame.columns]
        if missing:
            raise ValueError(f"{label} observations missing columns: {missing}")

    def _naive_frame(self, frame: pd.DataFrame, label: str) -> pd.DataFrame:
        """Move a timezone-aware frame onto naive UTC timestamps"""
        if frame.index.tz is None:
            return frame
        self.logger.info(f"{label} timestamps are {frame.index.tz}, converting to naive UTC")
        frame = frame.copy()
        frame.index = naive_timestamps(frame.index).rename(frame.index.name)
        return frame

    def run(self, coarse: pd.DataFrame, fine: pd.DataFrame, monitor=None) -> BandResult:
        """
        Compute stable bands

        Args:
            coarse: Coarse observations with a log_return column (first value undefined)
            fine: Fine observations with price, log_return and smoothed_price
            monitor: Optional ProgressMonitor updated once per eligible coarse step

        Returns:
            BandResult with the coarse, projected and band tables, step failures
            and the fraction of fine rows with a computed band
        """
        try:
            self._check_frame(coarse, ['log_return'], 'Coarse')
            self._check_frame(fine, ['price', 'log_return', 'smoothed_price'], 'Fine')
            coarse = self._naive_frame(coarse, 'Coarse')
            fine = self._naive_frame(fine, 'Fine')

            self.logger.info(
                f"Running stable bands on {len(coarse)} coarse and {len(fine)} fine observations "
                f"({coarse.index[0]:%Y-%m-%d} to {coarse.index[-1]:%Y-%m-%d})"
                if len(coarse) else "Running stable bands on an empty coarse series"
            )

            rolling = self.estimator.estimate(
                coarse['log_return'],
                parallel=self.config.parallel,
                monitor=monitor
            )
            projected = self.projector.project(rolling.params, fine.index)
            bands = self.constructor.construct(fine, projected)

            computed = int(bands['upper_price'].notna().sum())
            coverage = computed / len(fine) if len(fine) else 0.0

            self.logger.info(
                f"Stable bands complete: {computed}/{len(fine)} fine rows "
                f"({coverage:.1%}), {len(rolling.failures)} failed coarse steps"
            )

            return BandResult(
                coarse_params=rolling.params,
                projected_params=projected,
                bands=bands,
                failures=rolling.failures,
                coverage=coverage,
                run_date=datetime.now()
            )

        except Exception as e:
            self.logger.error(f"Error in stable band pipeline: {str(e)}")
            raise
