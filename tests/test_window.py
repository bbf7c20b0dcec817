import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

import pytest
import numpy as np
import pandas as pd
from stable.window import select_window, window_bounds

@pytest.fixture
def returns():
    """Coarse returns with the undefined leading entry"""
    np.random.seed(42)
    values = np.random.normal(0, 0.01, 50)
    values[0] = np.nan
    return values

def test_below_min_window_gives_nothing(returns):
    for index in range(10):
        assert select_window(returns, index, min_window=10) is None

def test_window_excludes_leading_entry_and_current_step(returns):
    window = select_window(returns, 20, min_window=10)

    assert len(window) == 19
    assert not np.isnan(window).any()
    np.testing.assert_array_equal(window, returns[1:20])

def test_window_grows_by_one_observation(returns):
    for index in range(10, len(returns)):
        current = select_window(returns, index, min_window=10)
        following = select_window(returns, index + 1, min_window=10)
        np.testing.assert_array_equal(following, np.append(current, returns[index]))

def test_window_bounds_are_half_open():
    assert window_bounds(30) == (1, 30)

def test_window_is_a_copy(returns):
    window = select_window(returns, 20, min_window=10)
    window[:] = 0.0
    assert returns[1] != 0.0

def test_series_input_is_positional(returns):
    series = pd.Series(returns, index=pd.date_range('2020-01-03', periods=len(returns), freq='W-FRI'))
    np.testing.assert_array_equal(select_window(series, 15, min_window=10), returns[1:15])

def test_index_beyond_series(returns):
    with pytest.raises(IndexError):
        select_window(returns, len(returns) + 1, min_window=10)
