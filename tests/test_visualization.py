import sys
import os
import pytest
import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

from models import BandResult
from stable.bands import flag_excursions
from utils.visualization import BandVisualizer

@pytest.fixture
def visualizer():
    """Create visualizer instance"""
    viz = BandVisualizer()
    yield viz
    viz.close_all()

@pytest.fixture
def sample_bands():
    np.random.seed(42)
    dates = pd.bdate_range('2024-01-01', periods=60)
    price = 100 * np.exp(np.cumsum(np.random.normal(0, 0.01, len(dates))))
    smoothed = pd.Series(price).rolling(5, min_periods=1).mean().values
    bands = pd.DataFrame({
        'price': price,
        'smoothed_price': smoothed,
        'lower_price': smoothed * np.exp(-0.015),
        'upper_price': smoothed * np.exp(0.015),
    }, index=dates)
    return flag_excursions(bands)

@pytest.fixture
def sample_params():
    np.random.seed(42)
    dates = pd.date_range('2023-01-06', periods=52, freq='W-FRI')
    params = pd.DataFrame({
        'tail_index': np.clip(np.random.normal(1.8, 0.1, len(dates)), 1.1, 2.0),
        'scale': np.abs(np.random.normal(0.02, 0.002, len(dates))),
        'status': 'ok',
    }, index=dates)
    params.iloc[:30, :2] = np.nan
    params.iloc[:30, 2] = 'insufficient'
    params.iloc[40, :2] = np.nan
    params.iloc[40, 2] = 'fit_failure'
    return params

def test_plot_bands(visualizer, sample_bands, tmp_path):
    save_path = tmp_path / "bands.png"
    fig = visualizer.plot_bands(sample_bands, title='Test Bands', save_path=save_path)

    assert isinstance(fig, plt.Figure)
    assert save_path.exists()
    ax = fig.axes[0]
    assert ax.get_title() == 'Test Bands'
    labels = [text.get_text() for text in ax.get_legend().get_texts()]
    assert 'Price' in labels
    assert 'Stable band' in labels

def test_plot_bands_empty(visualizer):
    with pytest.raises(ValueError):
        visualizer.plot_bands(pd.DataFrame(columns=['price', 'smoothed_price',
                                                    'lower_price', 'upper_price']))

def test_plot_parameters(visualizer, sample_params, tmp_path):
    save_path = tmp_path / "params.png"
    fig = visualizer.plot_parameters(sample_params, save_path=save_path)

    assert len(fig.axes) == 2
    assert save_path.exists()

def test_plot_parameters_without_fits(visualizer, sample_params):
    with pytest.raises(ValueError):
        visualizer.plot_parameters(sample_params.iloc[:30])

def test_plot_tail_index_distribution(visualizer, sample_params, tmp_path):
    save_path = tmp_path / "tail.png"
    visualizer.plot_tail_index_distribution(sample_params, save_path=save_path)
    assert save_path.exists()

def test_plot_results(visualizer, sample_bands, sample_params, tmp_path):
    result = BandResult(
        coarse_params=sample_params,
        projected_params=pd.DataFrame(),
        bands=sample_bands,
        failures=[],
        coverage=1.0
    )
    saved = visualizer.plot_results(result, 'TEST', tmp_path / "plots")

    assert set(saved) == {'bands', 'parameters', 'tail_index'}
    assert all(path.exists() for path in saved.values())

def test_context_manager_closes_figures(sample_bands):
    with BandVisualizer() as viz:
        viz.plot_bands(sample_bands)
    assert plt.get_fignums() == []
