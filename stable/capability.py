"""
Stable distribution fit and quantile capabilities.

The rolling estimator and the band constructor only talk to a capability
through two methods, ``fit_restricted`` and ``quantile``. The scipy-backed
implementation does the real work; the Normal implementation covers the
alpha = 2 special case in closed form and is used as a deterministic stand-in.
"""

from typing import Tuple
import logging
import warnings
import numpy as np
from scipy import optimize
from scipy import stats

from .exceptions import FitFailure, QuantileFailure

logger = logging.getLogger(__name__)

FitResult = Tuple[float, float, float, float]

class StableCapability:
    """Restricted symmetric stable fit plus quantile function"""

    name = 'base'
    min_sample = 3

    def fit_restricted(self, sample: np.ndarray) -> FitResult:
        """Fit (tail_index, skew, scale, location) with skew and location fixed at 0"""
        raise NotImplementedError

    def quantile(self, probability: float, tail_index: float, skew: float,
                 scale: float, location: float) -> float:
        """Inverse CDF of the stable law at probability"""
        raise NotImplementedError

    def _check_sample(self, sample) -> np.ndarray:
        """Reject windows no fit can work with"""
        sample = np.asarray(sample, dtype=float)
        if sample.ndim != 1:
            raise FitFailure(f"Sample must be one-dimensional, got shape {sample.shape}")
        if len(sample) < self.min_sample:
            raise FitFailure(f"Sample too short: {len(sample)} < {self.min_sample}")
        if not np.all(np.isfinite(sample)):
            raise FitFailure("Sample contains NaN or infinite values")
        if np.ptp(sample) == 0:
            raise FitFailure(f"Zero-variance sample of {len(sample)} identical values")
        return sample

    @staticmethod
    def _check_fit(tail_index: float, scale: float) -> None:
        """A fit must land in the stable parameter space"""
        if not np.isfinite(tail_index) or not (0 < tail_index <= 2):
            raise FitFailure(f"Fitted tail index {tail_index} outside (0, 2]")
        if not np.isfinite(scale) or scale < 0:
            raise FitFailure(f"Fitted scale {scale} is negative or not finite")

    @staticmethod
    def _check_params(probability: float, tail_index: float, scale: float) -> None:
        if not (0 < probability < 1):
            raise QuantileFailure(f"Probability {probability} outside (0, 1)")
        if not np.isfinite(tail_index) or not (0 < tail_index <= 2):
            raise QuantileFailure(f"Tail index {tail_index} outside (0, 2]")
        if not np.isfinite(scale) or scale < 0:
            raise QuantileFailure(f"Scale {scale} is negative or not finite")

    def settings(self) -> dict:
        """Constructor settings that change fit results"""
        return dict(sorted(vars(self).items()))

    def __repr__(self):
        args = ", ".join(f"{key}={value!r}" for key, value in self.settings().items())
        return f"{type(self).__name__}({args})"

class LevyStableCapability(StableCapability):
    """Restricted maximum likelihood fit and quantiles from scipy.stats.levy_stable

    With skew fixed at 0 the S0 and S1 parameterizations coincide, so the
    module-level parameterization setting of scipy does not matter here.
    """

    name = 'levy_stable'

    def __init__(self, maxiter: int = 500):
        self.maxiter = maxiter

    def _optimizer(self, func, x0, args=(), disp=0):
        """Nelder-Mead that reports non-convergence instead of returning silently"""
        xopt, fopt, _, _, warnflag = optimize.fmin(
            func, x0, args=args, disp=disp,
            maxiter=self.maxiter, full_output=True
        )
        if warnflag != 0:
            reason = 'function evaluations' if warnflag == 1 else 'iterations'
            raise FitFailure(f"Stable fit hit the maximum number of {reason}")
        if not np.isfinite(fopt):
            raise FitFailure("Stable fit ended on a non-finite likelihood")
        return xopt

    def fit_restricted(self, sample: np.ndarray) -> FitResult:
        sample = self._check_sample(sample)
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                tail_index, skew, location, scale = stats.levy_stable.fit(
                    sample, fbeta=0.0, floc=0.0, optimizer=self._optimizer
                )
        except FitFailure:
            raise
        except (ValueError, RuntimeError, FloatingPointError, OverflowError) as e:
            raise FitFailure(f"levy_stable fit failed: {str(e)}") from e

        self._check_fit(tail_index, scale)
        return float(tail_index), float(skew), float(scale), float(location)

    def quantile(self, probability: float, tail_index: float, skew: float,
                 scale: float, location: float) -> float:
        self._check_params(probability, tail_index, scale)
        if scale == 0:
            return float(location)
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                value = stats.levy_stable.ppf(
                    probability, tail_index, skew, loc=location, scale=scale
                )
        except (ValueError, RuntimeError, FloatingPointError, OverflowError) as e:
            raise QuantileFailure(f"levy_stable quantile failed: {str(e)}") from e

        value = float(np.asarray(value))
        if not np.isfinite(value):
            raise QuantileFailure(
                f"levy_stable quantile at p={probability} is not finite "
                f"(alpha={tail_index:.4f}, scale={scale:.6f})"
            )
        return value

class NormalStableCapability(StableCapability):
    """Closed-form alpha = 2 capability

    A stable law with alpha = 2 and scale c is Normal with standard deviation
    c * sqrt(2). The fit is the zero-mean maximum likelihood estimate.
    """

    name = 'normal'

    def fit_restricted(self, sample: np.ndarray) -> FitResult:
        sample = self._check_sample(sample)
        sigma = np.sqrt(np.mean(sample ** 2))
        scale = sigma / np.sqrt(2.0)
        self._check_fit(2.0, scale)
        return 2.0, 0.0, float(scale), 0.0

    def quantile(self, probability: float, tail_index: float, skew: float,
                 scale: float, location: float) -> float:
        self._check_params(probability, tail_index, scale)
        if tail_index != 2.0:
            raise QuantileFailure(
                f"Normal capability only covers tail index 2, got {tail_index}"
            )
        return float(location + scale * np.sqrt(2.0) * stats.norm.ppf(probability))

CAPABILITIES = {
    LevyStableCapability.name: LevyStableCapability,
    NormalStableCapability.name: NormalStableCapability,
}

def get_capability(name: str) -> StableCapability:
    """Build a capability from its registered name"""
    try:
        return CAPABILITIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown capability '{name}', expected one of {sorted(CAPABILITIES)}"
        ) from None
