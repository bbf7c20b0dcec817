from typing import Dict, Optional
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path
import logging

from models import BandResult

logger = logging.getLogger(__name__)

class BandVisualizer:
    """Visualization utilities for stable bands"""

    def __init__(self, style: str = 'seaborn-v0_8-whitegrid'):
        """
        Initialize visualizer

        Parameters:
        -----------
        style : str
            Matplotlib style to use. Available styles can be listed with
            `plt.style.available`
        """
        try:
            plt.style.use(style)
        except OSError:
            # Fallback to matplotlib's default
            plt.style.use('default')
            logger.warning(f"Style '{style}' not found, using default style")

        self.colors = plt.rcParams['axes.prop_cycle'].by_key()['color']

    def plot_bands(self,
                   bands: pd.DataFrame,
                   title: Optional[str] = None,
                   save_path: Optional[Path] = None) -> plt.Figure:
        """
        Plot price, smoothed price and stable band envelope

        Parameters:
        -----------
        bands : DataFrame
            Band table, optionally with an 'excursion' column
        title : str, optional
            Plot title
        save_path : Path, optional
            Path to save figure
        """
        if bands.empty:
            raise ValueError("Empty band data")

        fig, ax = plt.subplots(figsize=(12, 6))

        ax.plot(bands.index, bands['price'], label='Price', color=self.colors[0], linewidth=1)
        ax.plot(bands.index, bands['smoothed_price'], label='Smoothed',
                color=self.colors[1], linestyle='--', linewidth=1)
        ax.fill_between(bands.index, bands['lower_price'], bands['upper_price'],
                        color=self.colors[2], alpha=0.2, label='Stable band')

        if 'excursion' in bands.columns:
            above = bands[(bands['excursion'] == 1).fillna(False).astype(bool)]
            below = bands[(bands['excursion'] == -1).fillna(False).astype(bool)]
            ax.scatter(above.index, above['price'], marker='^', color='red',
                       label=f'Above ({len(above)})', zorder=3)
            ax.scatter(below.index, below['price'], marker='v', color='green',
                       label=f'Below ({len(below)})', zorder=3)

        ax.set_xlabel('Date')
        ax.set_ylabel('Price')
        if title:
            ax.set_title(title)
        ax.legend()

        if save_path:
            fig.savefig(save_path)

        return fig

    def plot_parameters(self,
                        coarse_params: pd.DataFrame,
                        title: Optional[str] = None,
                        save_path: Optional[Path] = None) -> plt.Figure:
        """
        Plot fitted tail index and scale over time

        Parameters:
        -----------
        coarse_params : DataFrame
            Coarse parameter table from the rolling estimator
        title : str, optional
            Plot title
        save_path : Path, optional
            Path to save figure
        """
        fitted = coarse_params.dropna(subset=['tail_index', 'scale'])
        if fitted.empty:
            raise ValueError("No fitted parameters to plot")

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

        ax1.plot(fitted.index, fitted['tail_index'], color=self.colors[0])
        ax1.axhline(y=2.0, color='k', linestyle='--', alpha=0.5)
        ax1.set_ylabel('Tail index (alpha)')

        ax2.plot(fitted.index, fitted['scale'], color=self.colors[1])
        ax2.set_xlabel('Date')
        ax2.set_ylabel('Scale (gamma)')

        if 'status' in coarse_params.columns:
            failed = coarse_params[coarse_params['status'] == 'fit_failure']
            for date in failed.index:
                ax1.axvline(x=date, color='red', alpha=0.3)

        if title:
            fig.suptitle(title)

        plt.tight_layout()

        if save_path:
            fig.savefig(save_path)

        return fig

    def plot_tail_index_distribution(self,
                                     coarse_params: pd.DataFrame,
                                     title: Optional[str] = None,
                                     save_path: Optional[Path] = None) -> plt.Figure:
        """Histogram of fitted tail indices"""
        tail_index = coarse_params['tail_index'].dropna()
        if tail_index.empty:
            raise ValueError("No fitted tail indices to plot")

        fig, ax = plt.subplots(figsize=(8, 5))
        sns.histplot(tail_index, ax=ax, bins=min(30, max(5, len(tail_index) // 2)))
        ax.axvline(x=2.0, color='k', linestyle='--', alpha=0.5)
        ax.set_xlabel('Tail index (alpha)')
        if title:
            ax.set_title(title)

        if save_path:
            fig.savefig(save_path)

        return fig

    def close_all(self):
        """Close all open figures"""
        plt.close('all')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_all()

    def plot_results(self, result: BandResult, series_id: str,
                     output_path: Path, show_plots: bool = False) -> Dict[str, Path]:
        """Plot a band run and save the figures to output directory"""
        try:
            output_path.mkdir(parents=True, exist_ok=True)

            if result.bands.empty:
                raise ValueError("No results to plot")

            saved = {
                'bands': output_path / f"{series_id}_bands.png",
                'parameters': output_path / f"{series_id}_parameters.png",
                'tail_index': output_path / f"{series_id}_tail_index.png",
            }
            self.plot_bands(result.bands, title=f"Stable bands - {series_id}",
                            save_path=saved['bands'])
            self.plot_parameters(result.coarse_params, title=f"Stable parameters - {series_id}",
                                 save_path=saved['parameters'])
            self.plot_tail_index_distribution(result.coarse_params,
                                              title=f"Tail index - {series_id}",
                                              save_path=saved['tail_index'])

            if show_plots:
                plt.show()

            self.close_all()
            return saved

        except Exception as e:
            logger.error(f"Error plotting results: {str(e)}")
            raise
