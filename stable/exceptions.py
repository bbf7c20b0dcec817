"""Error types raised by the stable band pipeline"""


class StableBandError(Exception):
    """Base class for stable band errors"""


class ConfigurationError(StableBandError, ValueError):
    """Raised for malformed configuration before any processing starts"""


class FitFailure(StableBandError):
    """Restricted stable fit did not converge or the window was degenerate"""


class QuantileFailure(StableBandError):
    """Stable quantile function rejected its inputs or failed numerically"""
