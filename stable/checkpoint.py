from pathlib import Path
import hashlib
import pickle
import logging
from typing import Optional
import numpy as np
import pandas as pd

from models import StableEstimate

class CheckpointManager:
    """Pickle cache of per-step stable fits

    Files are keyed by capability name and settings, step date, window length
    and a digest of the window contents, so neither a changed history nor a
    changed fit setting reuses a stale fit.
    """

    def __init__(self, checkpoint_dir: Path, capability_name: str = 'levy_stable',
                 settings: Optional[dict] = None):
        self.checkpoint_dir = Path(checkpoint_dir)
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        self.capability_name = capability_name
        self.settings = dict(sorted((settings or {}).items()))
        self.prefix = '-'.join(
            [capability_name] + [f"{key}{value}" for key, value in self.settings.items()]
        )
        self.logger = logging.getLogger('checkpoint_manager')

    def _checkpoint_file(self, date: pd.Timestamp, window: np.ndarray) -> Path:
        digest = hashlib.sha1(np.ascontiguousarray(window, dtype=float).tobytes()).hexdigest()[:16]
        return self.checkpoint_dir / (
            f"{self.prefix}_{pd.Timestamp(date).strftime('%Y%m%d')}"
            f"_{len(window)}_{digest}.pkl"
        )

    def save_checkpoint(self, date: pd.Timestamp, window: np.ndarray, estimate: StableEstimate):
        """Save a successful step fit"""
        checkpoint_file = self._checkpoint_file(date, window)
        with open(checkpoint_file, 'wb') as f:
            pickle.dump(estimate, f)

    def load_checkpoint(self, date: pd.Timestamp, window: np.ndarray) -> Optional[StableEstimate]:
        """Load checkpoint if it exists"""
        checkpoint_file = self._checkpoint_file(date, window)
        if checkpoint_file.exists():
            with open(checkpoint_file, 'rb') as f:
                estimate = pickle.load(f)
            self.logger.debug(f"Loaded checkpoint {checkpoint_file.name}")
            return estimate
        return None
