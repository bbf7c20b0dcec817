"""Causality boundary for the expanding estimation window"""

from typing import Optional, Tuple
import numpy as np

def window_bounds(index: int) -> Tuple[int, int]:
    """Half-open positional range of returns usable at step index

    The first return of a series is undefined, so every window starts at 1.
    """
    return 1, index

def select_window(returns, index: int, min_window: int) -> Optional[np.ndarray]:
    """Returns observed strictly before step index, or None below min_window

    The window expands: step i + 1 sees exactly the window of step i plus
    returns[i].
    """
    if index < min_window:
        return None
    if index > len(returns):
        raise IndexError(f"Step {index} is beyond a series of {len(returns)} observations")
    start, end = window_bounds(index)
    return np.array(np.asarray(returns, dtype=float)[start:end])
