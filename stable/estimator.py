from typing import Dict, List, Optional, Tuple
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
import logging
import numpy as np
import pandas as pd

from models import StableEstimate, StepFailure, RollingEstimate
from .capability import StableCapability, LevyStableCapability
from .checkpoint import CheckpointManager
from .exceptions import FitFailure
from .window import select_window, window_bounds

logger = logging.getLogger(__name__)

PARAM_COLUMNS = ['tail_index', 'skew', 'scale', 'location']

StepOutcome = Tuple[int, Optional[StableEstimate], Optional[str]]

def estimate_step(returns: np.ndarray, index: int, as_of: pd.Timestamp,
                  min_window: int, capability: StableCapability) -> Optional[StableEstimate]:
    """Fit the expanding window ending just before step index

    Returns None below min_window. Raises FitFailure when the capability
    cannot fit the window.
    """
    window = select_window(returns, index, min_window)
    if window is None:
        return None

    tail_index, skew, scale, location = capability.fit_restricted(window)
    window_start, window_end = window_bounds(index)
    return StableEstimate(
        tail_index=tail_index,
        skew=skew,
        scale=scale,
        location=location,
        as_of=pd.Timestamp(as_of),
        window_start=window_start,
        window_end=window_end
    )

def _run_step(prefix: np.ndarray, index: int, as_of: pd.Timestamp,
              min_window: int, capability: StableCapability) -> StepOutcome:
    """Worker entry point, only ever sees returns[:index]"""
    try:
        return index, estimate_step(prefix, index, as_of, min_window, capability), None
    except FitFailure as e:
        return index, None, str(e)

class RollingStableEstimator:
    """Expanding-window restricted stable fits over a coarse return series"""

    def __init__(self, capability: Optional[StableCapability] = None,
                 min_window: int = 30,
                 n_workers: Optional[int] = None,
                 checkpoint_dir: Optional[Path] = None):
        """
        Initialize estimator

        Args:
            capability: Fit/quantile capability, defaults to scipy's levy_stable
            min_window: First step index that receives an estimate
            n_workers: Process pool size for parallel runs
            checkpoint_dir: Directory to cache per-step fits
        """
        if min_window < 3:
            raise ValueError(f"min_window must be >= 3, got {min_window}")
        self.capability = capability or LevyStableCapability()
        self.min_window = min_window
        self.n_workers = n_workers
        self.checkpoints = (
            CheckpointManager(checkpoint_dir, self.capability.name, self.capability.settings())
            if checkpoint_dir is not None else None
        )
        self.logger = logging.getLogger('stable.estimator')

    def estimate_step(self, returns: pd.Series, index: int) -> Optional[StableEstimate]:
        """Estimate for a single step of a coarse return series"""
        values = np.asarray(returns, dtype=float)
        return estimate_step(values[:index], index, returns.index[index],
                             self.min_window, self.capability)

    def _validate_returns(self, returns: pd.Series) -> None:
        if not isinstance(returns.index, pd.DatetimeIndex):
            raise ValueError("Returns must be indexed by a DatetimeIndex")
        if returns.index.has_duplicates:
            raise ValueError("Returns contain duplicate timestamps")
        if not returns.index.is_monotonic_increasing:
            raise ValueError("Returns must be ordered by timestamp")

    def estimate(self, returns: pd.Series, parallel: bool = False,
                 monitor=None) -> RollingEstimate:
        """Estimate every eligible step of the coarse series

        Steps below min_window stay unset; a failed fit is recorded against
        its step and the remaining steps still run.
        """
        try:
            self._validate_returns(returns)
            values = np.asarray(returns, dtype=float)
            dates = returns.index
            eligible = list(range(self.min_window, len(values)))

            self.logger.info(
                f"Rolling stable estimation:\n"
                f"  Observations: {len(values)}\n"
                f"  Min window: {self.min_window}\n"
                f"  Eligible steps: {len(eligible)}\n"
                f"  Capability: {self.capability.name}\n"
                f"  Parallel: {parallel}"
            )

            outcomes: Dict[int, StepOutcome] = {}
            pending = []
            for index in eligible:
                cached = self._load_cached(values, index, dates[index])
                if cached is not None:
                    outcomes[index] = (index, cached, None)
                    if monitor:
                        monitor.update(1)
                else:
                    pending.append(index)

            if parallel and len(pending) > 1:
                computed = self._run_parallel(values, dates, pending, monitor)
            else:
                computed = self._run_serial(values, dates, pending, monitor)

            for index, estimate, error in computed:
                if estimate is not None:
                    self._save_cached(values, index, estimate)
                outcomes[index] = (index, estimate, error)

            return self._build_result(dates, outcomes)

        except Exception as e:
            self.logger.error(f"Error in rolling estimation: {str(e)}")
            raise

    def _run_serial(self, values: np.ndarray, dates: pd.DatetimeIndex,
                    indices: List[int], monitor=None) -> List[StepOutcome]:
        results = []
        for index in indices:
            results.append(_run_step(values[:index], index, dates[index],
                                     self.min_window, self.capability))
            if monitor:
                monitor.update(1)
        return results

    def _run_parallel(self, values: np.ndarray, dates: pd.DatetimeIndex,
                      indices: List[int], monitor=None) -> List[StepOutcome]:
        results = []
        with ProcessPoolExecutor(max_workers=self.n_workers) as executor:
            futures = [
                executor.submit(_run_step, values[:index].copy(), index, dates[index],
                                self.min_window, self.capability)
                for index in indices
            ]
            for future in as_completed(futures):
                results.append(future.result())
                if monitor:
                    monitor.update(1)
        return results

    def _load_cached(self, values: np.ndarray, index: int,
                     as_of: pd.Timestamp) -> Optional[StableEstimate]:
        if self.checkpoints is None:
            return None
        window = select_window(values, index, self.min_window)
        return self.checkpoints.load_checkpoint(as_of, window)

    def _save_cached(self, values: np.ndarray, index: int, estimate: StableEstimate):
        if self.checkpoints is None:
            return
        window = select_window(values, index, self.min_window)
        self.checkpoints.save_checkpoint(estimate.as_of, window, estimate)

    def _build_result(self, dates: pd.DatetimeIndex,
                      outcomes: Dict[int, StepOutcome]) -> RollingEstimate:
        """Merge step outcomes into an index-ordered table"""
        records = []
        failures = []
        for index, date in enumerate(dates):
            record = {name: np.nan for name in PARAM_COLUMNS}
            record.update({'window_start': pd.NA, 'window_end': pd.NA, 'status': 'insufficient'})

            if index in outcomes:
                _, estimate, error = outcomes[index]
                if estimate is not None:
                    record.update({
                        'tail_index': estimate.tail_index,
                        'skew': estimate.skew,
                        'scale': estimate.scale,
                        'location': estimate.location,
                        'window_start': estimate.window_start,
                        'window_end': estimate.window_end,
                        'status': 'ok'
                    })
                else:
                    record['status'] = 'fit_failure'
                    failures.append(StepFailure(
                        index=index, as_of=date, kind='fit_failure', message=error
                    ))
                    self.logger.warning(f"Fit failed at step {index} ({date:%Y-%m-%d}): {error}")
            records.append(record)

        params = pd.DataFrame(
            records,
            index=pd.DatetimeIndex(dates, name='timestamp'),
            columns=PARAM_COLUMNS + ['window_start', 'window_end', 'status']
        )
        params['window_start'] = params['window_start'].astype('Int64')
        params['window_end'] = params['window_end'].astype('Int64')

        n_ok = int((params['status'] == 'ok').sum())
        n_eligible = max(len(dates) - self.min_window, 0)
        self.logger.info(f"Estimated {n_ok}/{n_eligible} steps, {len(failures)} fit failures")
        if n_ok:
            fitted = params.loc[params['status'] == 'ok']
            self.logger.info(
                f"Tail index range: [{fitted['tail_index'].min():.3f}, "
                f"{fitted['tail_index'].max():.3f}], last scale: {fitted['scale'].iloc[-1]:.6f}"
            )

        return RollingEstimate(params=params, failures=failures)
