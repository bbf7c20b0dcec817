"""
Validation of price series before stable band estimation.
"""

import logging
import numpy as np
import pandas as pd
from typing import List, Tuple

logger = logging.getLogger(__name__)

class DataValidator:
    """Validates a price series indexed by timestamp."""

    def __init__(self, min_observations: int = 2, max_abs_log_return: float = 1.0):
        """
        Args:
            min_observations: Fewest prices accepted
            max_abs_log_return: Log returns beyond this are reported as suspicious
        """
        self.min_observations = min_observations
        self.max_abs_log_return = max_abs_log_return

    def validate_prices(self, prices: pd.Series) -> Tuple[bool, List[str]]:
        """
        Check ordering, uniqueness and positivity of a price series.

        Returns:
            Tuple of (is_valid, issues)
        """
        issues = []

        if not isinstance(prices.index, pd.DatetimeIndex):
            issues.append("Index is not a DatetimeIndex")
            return False, issues

        if len(prices) < self.min_observations:
            issues.append(f"Insufficient observations: {len(prices)} < {self.min_observations}")

        if prices.index.has_duplicates:
            issues.append(f"Found {prices.index.duplicated().sum()} duplicate timestamps")

        if not prices.index.is_monotonic_increasing:
            issues.append("Timestamps are not in increasing order")

        values = prices.to_numpy(dtype=float)
        if not np.all(np.isfinite(values)):
            issues.append(f"Found {(~np.isfinite(values)).sum()} missing or infinite prices")

        if np.any(values[np.isfinite(values)] <= 0):
            issues.append(f"Found {(values[np.isfinite(values)] <= 0).sum()} non-positive prices")

        if issues:
            for issue in issues:
                logger.error(issue)
            return False, issues

        # Large moves are reported but do not invalidate the series
        log_returns = np.diff(np.log(values))
        extreme = np.abs(log_returns) > self.max_abs_log_return
        if extreme.any():
            logger.warning(
                f"Found {extreme.sum()} log returns beyond +/-{self.max_abs_log_return}, "
                f"largest {np.max(np.abs(log_returns)):.4f}"
            )

        return True, issues
