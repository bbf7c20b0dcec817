#!/usr/bin/env python
"""
Stable band calculation pipeline.
Coordinates price loading, rolling stable estimation, weekly-to-daily
projection, band construction, storage and plotting.
"""
import sys
import argparse
from pathlib import Path
import logging
from datetime import datetime
import pandas as pd
from typing import Dict, Optional, Tuple
import time
import psutil
import traceback

# Add project root to path
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from models import BandResult
from data_manager.data_loader import PriceLoader
from data_manager.data_prep import BandDataPrep
from data_manager.database import BandDatabase
from stable.bands import flag_excursions
from stable.capability import get_capability
from stable.config import BandConfig
from stable.pipeline import StableBandPipeline
from utils.progress import ProgressMonitor
from utils.visualization import BandVisualizer

class PerformanceMonitor:
    """Tracks timing and memory of pipeline stages"""
    def __init__(self):
        self.start_time = time.time()
        self.last_checkpoint = self.start_time
        self.checkpoints = {}

    def checkpoint(self, name: str):
        """Record timing for a checkpoint"""
        now = time.time()
        duration = now - self.last_checkpoint
        self.checkpoints[name] = {
            'duration': duration,
            'memory': psutil.Process().memory_info().rss / 1024 / 1024  # MB
        }
        self.last_checkpoint = now

    def report(self) -> str:
        """Generate checkpoint report"""
        total_time = time.time() - self.start_time
        report = ["Performance Report:", "-----------------"]

        for name, stats in self.checkpoints.items():
            report.append(f"{name}:")
            report.append(f"  Duration: {stats['duration']:.2f} seconds")
            report.append(f"  Memory: {stats['memory']:.2f} MB")

        report.append("-----------------")
        report.append(f"Total Time: {total_time:.2f} seconds")
        return "\n".join(report)

def setup_logging(output_dir: Path, level: int = logging.INFO) -> logging.Logger:
    """
    Configure logging with both file and console handlers

    Parameters:
    -----------
    output_dir : Path
        Directory for log file

    Returns:
    --------
    logging.Logger
        Configured logger
    """
    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"stable_bands_{timestamp}.log"

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter('%(message)s'))

    # Package loggers (stable.*, data_manager.*) propagate to the root logger
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(file_handler)
    root.addHandler(console_handler)

    return logging.getLogger("stable_bands")

def prepare_observations(prices: pd.Series, config: BandConfig,
                         logger: logging.Logger) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Build coarse and fine observation tables from daily prices"""
    prep = BandDataPrep(sma_window=config.sma_window,
                        dispersion_window=config.dispersion_window)
    fine = prep.prepare_daily(prices)
    coarse = prep.resample_weekly(prices, rule=config.coarse_rule)

    if len(coarse) <= config.min_window:
        raise ValueError(
            f"Insufficient coarse data: {len(coarse)} periods, "
            f"need more than min_window={config.min_window}"
        )

    try:
        inferred = prep.infer_horizon_fraction(fine, coarse)
        if abs(inferred - config.horizon_fraction) > 0.05:
            logger.warning(
                f"Configured horizon fraction {config.horizon_fraction:.4f} differs from "
                f"calendar-implied {inferred:.4f}"
            )
    except ValueError as e:
        logger.warning(f"Could not infer horizon fraction: {str(e)}")

    return coarse, fine

def initialize_components(config: Optional[BandConfig] = None,
                          capability_name: str = 'levy_stable',
                          checkpoint_dir: Optional[Path] = None,
                          logger: logging.Logger = None) -> Dict:
    """Initialize all analysis components"""
    if logger is None:
        logger = logging.getLogger('stable_bands')
    config = config or BandConfig()

    logger.info(f"Creating pipeline with {config.to_dict()} ...")
    pipeline = StableBandPipeline(
        config=config,
        capability=get_capability(capability_name),
        checkpoint_dir=checkpoint_dir
    )

    logger.info("Creating visualizer...")
    visualizer = BandVisualizer()

    return {
        'config': config,
        'pipeline': pipeline,
        'visualizer': visualizer
    }

def run_analysis(components: Dict, prices: pd.Series, series_id: str,
                 output_dir: Path, logger: logging.Logger,
                 db: Optional[BandDatabase] = None,
                 plot: bool = True,
                 monitor: Optional[PerformanceMonitor] = None) -> BandResult:
    """Run the stable band pipeline with progress monitoring"""
    logger.info("Starting stable band pipeline...")

    try:
        config = components['config']
        pipeline = components['pipeline']

        coarse, fine = prepare_observations(prices, config, logger)
        if monitor:
            monitor.checkpoint('prepare')

        n_steps = max(len(coarse) - config.min_window, 0)
        with ProgressMonitor(total=n_steps, desc=f"Fitting {series_id}", logger=logger) as progress:
            result = pipeline.run(coarse, fine, monitor=progress)
        result.bands = flag_excursions(result.bands)
        if monitor:
            monitor.checkpoint('estimate')

        excursions = result.bands['excursion'].value_counts()
        logger.info(
            f"Band coverage: {result.coverage:.1%}, "
            f"above: {int(excursions.get(1, 0))}, below: {int(excursions.get(-1, 0))}"
        )

        output_dir.mkdir(parents=True, exist_ok=True)
        result.bands.to_csv(output_dir / f"{series_id}_bands.csv")
        result.coarse_params.to_csv(output_dir / f"{series_id}_parameters.csv")

        if db is not None:
            db.store_result(series_id, result)
            if monitor:
                monitor.checkpoint('store')

        if plot and not result.bands.empty:
            logger.info("Generating visualizations...")
            components['visualizer'].plot_results(
                result=result,
                series_id=series_id,
                output_path=output_dir / "plots"
            )
            if monitor:
                monitor.checkpoint('plot')

        logger.info("Pipeline completed successfully")
        return result

    except Exception as e:
        logger.error(f"Error in analysis pipeline: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise

def parse_args(argv=None) -> argparse.Namespace:
    defaults = BandConfig()
    parser = argparse.ArgumentParser(description="Compute alpha-stable price bands")
    parser.add_argument('csv', type=Path, help="CSV file with a date and a price column")
    parser.add_argument('--series-id', default=None, help="Name stored with the results")
    parser.add_argument('--price-column', default=None)
    parser.add_argument('--output-dir', type=Path, default=project_root / "results")
    parser.add_argument('--db', type=Path, default=None, help="DuckDB file for result tables")
    parser.add_argument('--min-window', type=int, default=defaults.min_window)
    parser.add_argument('--horizon-fraction', type=float, default=defaults.horizon_fraction)
    parser.add_argument('--qtile', type=float, default=defaults.qtile)
    parser.add_argument('--sma-window', type=int, default=defaults.sma_window)
    parser.add_argument('--capability', choices=['levy_stable', 'normal'], default='levy_stable')
    parser.add_argument('--parallel', action='store_true')
    parser.add_argument('--workers', type=int, default=None)
    parser.add_argument('--no-plots', action='store_true')
    parser.add_argument('--no-checkpoints', action='store_true')
    return parser.parse_args(argv)

def main(argv=None):
    """Main entry point with configuration and setup"""
    args = parse_args(argv)
    output_dir = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    logger = setup_logging(output_dir)
    logger.info("Starting stable band calculation...")
    monitor = PerformanceMonitor()
    db = None

    try:
        # Configuration errors are fatal before anything is loaded
        config = BandConfig(
            min_window=args.min_window,
            horizon_fraction=args.horizon_fraction,
            qtile=args.qtile,
            sma_window=args.sma_window,
            parallel=args.parallel,
            n_workers=args.workers
        )

        prices = PriceLoader().load_csv(args.csv, price_column=args.price_column)
        monitor.checkpoint('load')

        series_id = args.series_id or args.csv.stem
        checkpoint_dir = None if args.no_checkpoints else output_dir / "checkpoints" / series_id
        components = initialize_components(config, args.capability, checkpoint_dir, logger)

        if args.db is not None:
            db = BandDatabase(args.db)

        run_analysis(components, prices, series_id, output_dir, logger,
                     db=db, plot=not args.no_plots, monitor=monitor)
        logger.info(monitor.report())

    except Exception as e:
        logger.error(f"Pipeline failed: {str(e)}")
        raise
    finally:
        if db is not None:
            db.close()

if __name__ == '__main__':
    main()
