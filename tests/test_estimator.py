import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

import pytest
import numpy as np
import pandas as pd
from models import StableEstimate
from stable.capability import LevyStableCapability, NormalStableCapability
from stable.checkpoint import CheckpointManager
from stable.estimator import RollingStableEstimator, estimate_step
from stable.exceptions import FitFailure

MIN_WINDOW = 30

class UnusableCapability(NormalStableCapability):
    """Fails the test if a fit is attempted"""

    def fit_restricted(self, sample):
        raise AssertionError("fit should have been served from a checkpoint")

@pytest.fixture
def weekly_returns():
    """61 weekly log returns, the first one undefined"""
    np.random.seed(42)
    dates = pd.date_range('2020-01-03', periods=61, freq='W-FRI')
    values = np.random.normal(0, 0.02, len(dates))
    values[0] = np.nan
    return pd.Series(values, index=dates, name='log_return')

@pytest.fixture
def estimator():
    return RollingStableEstimator(
        capability=NormalStableCapability(),
        min_window=MIN_WINDOW
    )

def test_estimates_start_at_min_window(estimator, weekly_returns):
    result = estimator.estimate(weekly_returns)
    params = result.params

    assert len(params) == len(weekly_returns)
    assert (params['status'].iloc[:MIN_WINDOW] == 'insufficient').all()
    assert params['tail_index'].iloc[:MIN_WINDOW].isna().all()
    assert (params['status'].iloc[MIN_WINDOW:] == 'ok').all()
    assert params['tail_index'].iloc[MIN_WINDOW:].notna().all()
    assert result.failures == []
    assert len(result.estimated) == len(weekly_returns) - MIN_WINDOW

def test_estimate_uses_expanding_window(estimator, weekly_returns):
    params = estimator.estimate(weekly_returns).params
    values = weekly_returns.to_numpy()

    for index in range(MIN_WINDOW, len(values)):
        row = params.iloc[index]
        assert row['window_start'] == 1
        assert row['window_end'] == index
        expected_scale = np.sqrt(np.mean(values[1:index] ** 2) / 2)
        assert row['scale'] == pytest.approx(expected_scale)
        assert row['skew'] == 0.0
        assert row['location'] == 0.0

def test_windows_grow_by_one(estimator, weekly_returns):
    params = estimator.estimate(weekly_returns).params
    window_end = params['window_end'].dropna().astype(int)
    assert (np.diff(window_end.to_numpy()) == 1).all()

@pytest.mark.parametrize("index", [MIN_WINDOW, 45, 60])
def test_no_lookahead(estimator, weekly_returns, index):
    """Changing or dropping observations from step index onward leaves its estimate alone"""
    original = estimator.estimate_step(weekly_returns, index)

    mutated = weekly_returns.copy()
    mutated.iloc[index:] = 5.0
    assert estimator.estimate_step(mutated, index) == original

    truncated = weekly_returns.iloc[:index + 1]
    assert estimator.estimate_step(truncated, index) == original

    rolled = estimator.estimate(mutated).params
    assert rolled['scale'].iloc[index] == pytest.approx(original.scale)

def test_estimate_step_metadata(weekly_returns):
    estimate = estimate_step(weekly_returns.to_numpy(), 40, weekly_returns.index[40],
                             MIN_WINDOW, NormalStableCapability())

    assert isinstance(estimate, StableEstimate)
    assert estimate.as_of == weekly_returns.index[40]
    assert (estimate.window_start, estimate.window_end) == (1, 40)
    assert estimate.n_observations == 39

def test_estimate_step_below_min_window(weekly_returns):
    assert estimate_step(weekly_returns.to_numpy(), 10, weekly_returns.index[10],
                         MIN_WINDOW, NormalStableCapability()) is None

def test_degenerate_window_is_a_step_failure(estimator, weekly_returns):
    """Identical returns fail their steps without stopping later ones"""
    returns = weekly_returns.copy()
    returns.iloc[1:35] = 0.01

    result = estimator.estimate(returns)
    params = result.params

    failed = list(range(MIN_WINDOW, 36))
    assert (params['status'].iloc[failed] == 'fit_failure').all()
    assert params['scale'].iloc[failed].isna().all()
    assert [f.index for f in result.failures] == failed
    assert all(f.kind == 'fit_failure' for f in result.failures)
    assert (params['status'].iloc[36:] == 'ok').all()

    with pytest.raises(FitFailure):
        estimator.estimate_step(returns, MIN_WINDOW)

def test_smallest_min_window(weekly_returns):
    """Step 3 has only two returns to fit, step 4 is the first that can succeed"""
    estimator = RollingStableEstimator(capability=NormalStableCapability(), min_window=3)
    result = estimator.estimate(weekly_returns.iloc[:6])

    assert list(result.params['status']) == [
        'insufficient', 'insufficient', 'insufficient', 'fit_failure', 'ok', 'ok'
    ]
    assert [f.index for f in result.failures] == [3]
    assert 'Sample too short' in result.failures[0].message
    assert result.params['window_end'].iloc[4] - result.params['window_start'].iloc[4] == 3

def test_parallel_matches_serial(weekly_returns):
    estimator = RollingStableEstimator(
        capability=NormalStableCapability(),
        min_window=MIN_WINDOW,
        n_workers=2
    )
    serial = estimator.estimate(weekly_returns, parallel=False).params
    parallel = estimator.estimate(weekly_returns, parallel=True).params

    pd.testing.assert_frame_equal(serial, parallel)

def test_checkpoints_are_reused(weekly_returns, tmp_path):
    first = RollingStableEstimator(
        capability=NormalStableCapability(),
        min_window=MIN_WINDOW,
        checkpoint_dir=tmp_path
    ).estimate(weekly_returns).params

    assert len(list(tmp_path.glob('*.pkl'))) == len(weekly_returns) - MIN_WINDOW

    cached = RollingStableEstimator(
        capability=UnusableCapability(),
        min_window=MIN_WINDOW,
        checkpoint_dir=tmp_path
    )
    second = cached.estimate(weekly_returns).params

    pd.testing.assert_frame_equal(first, second)

def test_progress_monitor_is_updated(estimator, weekly_returns):
    class Counter:
        def __init__(self):
            self.count = 0

        def update(self, n=1):
            self.count += n

    counter = Counter()
    estimator.estimate(weekly_returns, monitor=counter)
    assert counter.count == len(weekly_returns) - MIN_WINDOW

def test_short_series_has_no_estimates(estimator, weekly_returns):
    result = estimator.estimate(weekly_returns.iloc[:MIN_WINDOW])
    assert (result.params['status'] == 'insufficient').all()
    assert result.estimated.empty

def test_invalid_inputs(weekly_returns):
    with pytest.raises(ValueError):
        RollingStableEstimator(capability=NormalStableCapability(), min_window=2)

    estimator = RollingStableEstimator(capability=NormalStableCapability(), min_window=MIN_WINDOW)
    with pytest.raises(ValueError, match="ordered"):
        estimator.estimate(weekly_returns.iloc[::-1])
    with pytest.raises(ValueError, match="DatetimeIndex"):
        estimator.estimate(weekly_returns.reset_index(drop=True))

def test_checkpoints_depend_on_fit_settings(weekly_returns, tmp_path):
    window = weekly_returns.to_numpy()[1:MIN_WINDOW]
    as_of = weekly_returns.index[MIN_WINDOW]
    estimate = StableEstimate(1.9, 0.0, 0.01, 0.0, as_of.to_pydatetime(), 1, MIN_WINDOW)

    CheckpointManager(tmp_path, 'levy_stable', LevyStableCapability(maxiter=500).settings()) \
        .save_checkpoint(as_of, window, estimate)

    same = CheckpointManager(tmp_path, 'levy_stable', LevyStableCapability(maxiter=500).settings())
    other = CheckpointManager(tmp_path, 'levy_stable', LevyStableCapability(maxiter=100).settings())
    assert same.load_checkpoint(as_of, window) == estimate
    assert other.load_checkpoint(as_of, window) is None

def test_capability_settings():
    assert LevyStableCapability(maxiter=100).settings() == {'maxiter': 100}
    assert repr(LevyStableCapability(maxiter=100)) == 'LevyStableCapability(maxiter=100)'
    assert NormalStableCapability().settings() == {}
