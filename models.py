"""Common data models used across the project."""

from dataclasses import dataclass, field
from datetime import datetime
import pandas as pd
from typing import List, Optional

@dataclass(frozen=True)
class StableEstimate:
    """Restricted stable fit attached to one coarse observation"""
    tail_index: float  # alpha, in (0, 2]
    skew: float  # beta, fixed at 0
    scale: float  # gamma, >= 0
    location: float  # delta, fixed at 0
    as_of: datetime
    window_start: int  # half-open positional range [window_start, window_end)
    window_end: int

    @property
    def n_observations(self) -> int:
        return self.window_end - self.window_start

@dataclass(frozen=True)
class ProjectedEstimate:
    """Coarse estimate carried onto one fine observation"""
    tail_index: float
    skew: float
    scale: float
    location: float
    as_of: datetime  # coarse timestamp the estimate came from
    horizon_fraction: float
    scaled_scale: float

@dataclass(frozen=True)
class StepFailure:
    """A coarse step whose fit failed"""
    index: int
    as_of: datetime
    kind: str  # 'fit_failure'
    message: str

@dataclass
class RollingEstimate:
    """Coarse parameter table with the failures recorded while building it"""
    params: pd.DataFrame
    failures: List[StepFailure] = field(default_factory=list)

    @property
    def estimated(self) -> pd.DataFrame:
        """Rows with a successful fit"""
        return self.params[self.params['status'] == 'ok']

@dataclass
class BandResult:
    """Output of a full stable band run"""
    coarse_params: pd.DataFrame
    projected_params: pd.DataFrame
    bands: pd.DataFrame
    failures: List[StepFailure]
    coverage: float  # fraction of fine rows with a computed band
    run_date: Optional[datetime] = None
