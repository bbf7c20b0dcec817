"""
Stable band package.
Restricted alpha-stable fits over expanding windows, projected onto a finer
calendar and turned into tail-aware price bands.
"""

from .bands import BandConstructor, flag_excursions
from .capability import LevyStableCapability, NormalStableCapability, StableCapability
from .config import BandConfig
from .estimator import RollingStableEstimator
from .exceptions import ConfigurationError, FitFailure, QuantileFailure
from .pipeline import StableBandPipeline
from .projector import FrequencyProjector

__all__ = [
    'BandConfig', 'BandConstructor', 'ConfigurationError', 'FitFailure',
    'FrequencyProjector', 'LevyStableCapability', 'NormalStableCapability',
    'QuantileFailure', 'RollingStableEstimator', 'StableBandPipeline',
    'StableCapability', 'flag_excursions'
]
