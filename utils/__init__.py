"""Utility functions and classes for stable band analysis"""

from .progress import ProgressMonitor
from .visualization import BandVisualizer

__all__ = ['ProgressMonitor', 'BandVisualizer']
