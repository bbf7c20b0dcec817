"""
Data management package for stable band analysis.
Handles price loading, validation, observation preparation and storage.
"""

from .data_loader import PriceLoader
from .data_validator import DataValidator
from .data_prep import BandDataPrep

__all__ = ['PriceLoader', 'DataValidator', 'BandDataPrep']
