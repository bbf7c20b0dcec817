"""Projection of coarse stable estimates onto a finer calendar"""

from typing import List, Optional
import logging
import numpy as np
import pandas as pd

from models import ProjectedEstimate
from .estimator import PARAM_COLUMNS

logger = logging.getLogger(__name__)

PROJECTED_COLUMNS = PARAM_COLUMNS + ['as_of', 'horizon_fraction', 'scaled_scale']

def scale_to_horizon(scale, tail_index, horizon_fraction: float):
    """Stable scale over a fraction of the estimation period

    A sum of n i.i.d. stable draws with scale g has scale n ** (1 / alpha) * g,
    so one fine step covering h of a coarse period has scale g * h ** (1 / alpha).
    """
    return scale * np.power(horizon_fraction, 1.0 / tail_index)

def naive_timestamps(index) -> pd.DatetimeIndex:
    """Timezone-naive nanosecond timestamps, timezone-aware input read as UTC"""
    index = pd.DatetimeIndex(index)
    if index.tz is not None:
        index = index.tz_convert('UTC').tz_localize(None)
    return index.astype('datetime64[ns]')

class FrequencyProjector:
    """Forward-fills coarse estimates onto fine timestamps and rescales them"""

    def __init__(self, horizon_fraction: float = 0.2):
        if not (horizon_fraction > 0):
            raise ValueError(f"horizon_fraction must be positive, got {horizon_fraction}")
        self.horizon_fraction = horizon_fraction
        self.logger = logging.getLogger('stable.projector')

    def project(self, coarse_params: pd.DataFrame, fine_index: pd.DatetimeIndex) -> pd.DataFrame:
        """
        Align each fine timestamp to the latest coarse estimate at or before it

        Args:
            coarse_params: Coarse parameter table indexed by timestamp; rows with
                a missing tail index or scale are not alignment targets
            fine_index: Fine observation timestamps

        Returns:
            DataFrame indexed by fine timestamp; timestamps earlier than the
            first coarse estimate are left out
        """
        try:
            fine_index = pd.DatetimeIndex(fine_index)
            if not fine_index.is_monotonic_increasing:
                raise ValueError("Fine timestamps must be ordered")

            estimates = coarse_params.dropna(subset=['tail_index', 'scale'])
            if 'status' in estimates.columns:
                estimates = estimates[estimates['status'] == 'ok']
            estimates = estimates[PARAM_COLUMNS].sort_index()

            if estimates.empty or fine_index.empty:
                self.logger.warning("No coarse estimates to project")
                return pd.DataFrame(columns=PROJECTED_COLUMNS,
                                    index=pd.DatetimeIndex([], name='timestamp'))

            targets = estimates.rename_axis('as_of').reset_index()
            targets['as_of'] = naive_timestamps(targets['as_of']).values
            fine = pd.DataFrame({'timestamp': naive_timestamps(fine_index).values})
            projected = pd.merge_asof(
                fine, targets,
                left_on='timestamp', right_on='as_of',
                direction='backward'
            )

            # Fine rows before the first estimate have nothing to align to
            projected = projected.dropna(subset=['as_of']).set_index('timestamp')
            projected['horizon_fraction'] = self.horizon_fraction
            projected['scaled_scale'] = scale_to_horizon(
                projected['scale'], projected['tail_index'], self.horizon_fraction
            )

            self.logger.info(
                f"Projected {estimates.shape[0]} coarse estimates onto "
                f"{len(projected)}/{len(fine_index)} fine timestamps "
                f"(horizon fraction {self.horizon_fraction:.4f})"
            )
            return projected[PROJECTED_COLUMNS]

        except Exception as e:
            self.logger.error(f"Error projecting estimates: {str(e)}")
            raise

    def estimate_at(self, coarse_params: pd.DataFrame, timestamp) -> Optional[ProjectedEstimate]:
        """Projected estimate for a single fine timestamp, None before the first estimate"""
        projected = self.project(coarse_params, pd.DatetimeIndex([timestamp]))
        if projected.empty:
            return None
        return to_projected_estimates(projected)[0]

def to_projected_estimates(projected: pd.DataFrame) -> List[ProjectedEstimate]:
    """Rows of a projected table as ProjectedEstimate records"""
    return [
        ProjectedEstimate(
            tail_index=float(row.tail_index),
            skew=float(row.skew),
            scale=float(row.scale),
            location=float(row.location),
            as_of=row.as_of.to_pydatetime(),
            horizon_fraction=float(row.horizon_fraction),
            scaled_scale=float(row.scaled_scale)
        )
        for row in projected.itertuples()
    ]
