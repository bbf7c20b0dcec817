"""Configuration for the stable band pipeline"""

from dataclasses import dataclass, asdict
from typing import Optional

from .exceptions import ConfigurationError

# One trading day is a fifth of a five-day trading week
DEFAULT_HORIZON_FRACTION = 1 / 5

@dataclass(frozen=True)
class BandConfig:
    """
    Settings for one stable band run

    Args:
        min_window: First coarse step that gets an estimate; the smallest
            expanding window is min_window - 1 returns. Fits need at least 3
            returns, so with min_window = 3 step 3 always records a fit failure
            and the first fit can land at step 4
        horizon_fraction: Fraction of one coarse period covered by one fine step
        qtile: Two-sided tail probability, bands cover the central 1 - qtile
        sma_window: Trailing window of the smoothed price baseline
        dispersion_window: Trailing window of the rolling standard deviations
        coarse_rule: pandas offset alias used to resample fine prices
        parallel: Fit coarse steps in a process pool
        n_workers: Pool size, None lets the executor decide
    """
    min_window: int = 30
    horizon_fraction: float = DEFAULT_HORIZON_FRACTION
    qtile: float = 0.05
    sma_window: int = 20
    dispersion_window: int = 20
    coarse_rule: str = 'W-FRI'
    parallel: bool = False
    n_workers: Optional[int] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Reject malformed settings before any processing begins"""
        if isinstance(self.min_window, bool) or not isinstance(self.min_window, int):
            raise ConfigurationError(f"min_window must be an integer, got {self.min_window!r}")
        if self.min_window < 3:
            raise ConfigurationError(f"min_window must be >= 3, got {self.min_window}")
        if not (self.horizon_fraction > 0):
            raise ConfigurationError(
                f"horizon_fraction must be positive, got {self.horizon_fraction}"
            )
        if not (0 < self.qtile < 1):
            raise ConfigurationError(f"qtile must be in (0, 1), got {self.qtile}")
        for name in ('sma_window', 'dispersion_window'):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if self.n_workers is not None and self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be >= 1, got {self.n_workers}")

    def to_dict(self) -> dict:
        return asdict(self)
