import logging
from pathlib import Path
from typing import Union, Optional
import duckdb
import pandas as pd
from datetime import datetime
import os

from models import BandResult

logger = logging.getLogger(__name__)

ESTIMATE_COLUMNS = ['tail_index', 'skew', 'scale', 'location',
                    'window_start', 'window_end', 'status']
PROJECTED_COLUMNS = ['tail_index', 'skew', 'scale', 'location',
                     'as_of', 'horizon_fraction', 'scaled_scale']
BAND_COLUMNS = ['price', 'log_return', 'smoothed_price', 'tail_index', 'scaled_scale',
                'lower_log_return', 'upper_log_return', 'lower_price', 'upper_price']

class BandDatabase:
    def __init__(self, db_path: Union[str, Path]):
        """Initialize database connection"""
        self.logger = logging.getLogger(__name__)
        self.db_path = str(db_path)

        # Create database directory if it doesn't exist
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)

        self.conn = duckdb.connect(self.db_path)
        self._initialize_tables()
        self.logger.info(f"Initialized database at {self.db_path}")

    def _initialize_tables(self):
        """Initialize database tables"""
        try:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS stable_estimates (
                    series_id VARCHAR NOT NULL,
                    observed_at TIMESTAMP NOT NULL,
                    tail_index DOUBLE,
                    skew DOUBLE,
                    scale DOUBLE,
                    location DOUBLE,
                    window_start INTEGER,
                    window_end INTEGER,
                    status VARCHAR NOT NULL CHECK (status IN ('insufficient', 'ok', 'fit_failure')),
                    PRIMARY KEY (series_id, observed_at)
                );

                CREATE TABLE IF NOT EXISTS projected_estimates (
                    series_id VARCHAR NOT NULL,
                    observed_at TIMESTAMP NOT NULL,
                    tail_index DOUBLE,
                    skew DOUBLE,
                    scale DOUBLE,
                    location DOUBLE,
                    as_of TIMESTAMP,
                    horizon_fraction DOUBLE,
                    scaled_scale DOUBLE,
                    PRIMARY KEY (series_id, observed_at)
                );

                CREATE TABLE IF NOT EXISTS stable_bands (
                    series_id VARCHAR NOT NULL,
                    observed_at TIMESTAMP NOT NULL,
                    price DOUBLE,
                    log_return DOUBLE,
                    smoothed_price DOUBLE,
                    tail_index DOUBLE,
                    scaled_scale DOUBLE,
                    lower_log_return DOUBLE,
                    upper_log_return DOUBLE,
                    lower_price DOUBLE,
                    upper_price DOUBLE,
                    PRIMARY KEY (series_id, observed_at)
                );

                CREATE TABLE IF NOT EXISTS band_runs (
                    series_id VARCHAR PRIMARY KEY,
                    run_date TIMESTAMP,
                    coverage DOUBLE,
                    n_failures INTEGER
                );
            """)
        except Exception as e:
            self.logger.error(f"Error initializing database tables: {str(e)}")
            raise

    def _replace_rows(self, table: str, series_id: str, frame: pd.DataFrame, columns):
        """Replace a series' rows in table with the contents of frame"""
        rows = frame[columns].copy()
        rows.insert(0, 'observed_at', frame.index.values)
        rows.insert(0, 'series_id', series_id)

        self.conn.execute(f"DELETE FROM {table} WHERE series_id = ?", [series_id])
        if rows.empty:
            return
        self.conn.register('incoming_rows', rows)
        try:
            column_list = ', '.join(['series_id', 'observed_at'] + list(columns))
            self.conn.execute(
                f"INSERT INTO {table} ({column_list}) SELECT {column_list} FROM incoming_rows"
            )
        finally:
            self.conn.unregister('incoming_rows')

    def store_result(self, series_id: str, result: BandResult) -> None:
        """Store all tables of a band run, replacing earlier rows for the series

        Args:
            series_id: Identifier for the price series (e.g., 'SPX')
            result: Output of StableBandPipeline.run
        """
        try:
            self.conn.execute("BEGIN TRANSACTION")
            self._replace_rows('stable_estimates', series_id, result.coarse_params, ESTIMATE_COLUMNS)
            self._replace_rows('projected_estimates', series_id, result.projected_params, PROJECTED_COLUMNS)
            self._replace_rows('stable_bands', series_id, result.bands, BAND_COLUMNS)
            self.conn.execute("DELETE FROM band_runs WHERE series_id = ?", [series_id])
            self.conn.execute("""
                INSERT INTO band_runs (series_id, run_date, coverage, n_failures)
                VALUES (?, ?, ?, ?)
            """, [series_id, result.run_date or datetime.now(),
                  float(result.coverage), len(result.failures)])
            self.conn.execute("COMMIT")

            self.logger.info(
                f"Stored {series_id}: {len(result.coarse_params)} coarse rows, "
                f"{len(result.projected_params)} projected rows, {len(result.bands)} band rows"
            )

        except Exception as e:
            self.logger.error(f"Error storing band result: {str(e)}")
            self.conn.execute("ROLLBACK")
            raise

    def _query_series(self, table: str, series_id: str,
                      start_date: Optional[datetime] = None,
                      end_date: Optional[datetime] = None) -> pd.DataFrame:
        query = f"SELECT * FROM {table} WHERE series_id = ?"
        params = [series_id]

        if start_date:
            query += " AND observed_at >= ?"
            params.append(pd.Timestamp(start_date).to_pydatetime())
        if end_date:
            query += " AND observed_at <= ?"
            params.append(pd.Timestamp(end_date).to_pydatetime())

        query += " ORDER BY observed_at"
        df = self.conn.execute(query, params).df()
        return df.drop(columns=['series_id']).set_index('observed_at').rename_axis('timestamp')

    def get_estimates(self, series_id: str,
                      start_date: Optional[datetime] = None,
                      end_date: Optional[datetime] = None) -> pd.DataFrame:
        """Get the coarse parameter table of a series"""
        return self._query_series('stable_estimates', series_id, start_date, end_date)

    def get_projected(self, series_id: str,
                      start_date: Optional[datetime] = None,
                      end_date: Optional[datetime] = None) -> pd.DataFrame:
        """Get the fine-grid projected parameters of a series"""
        return self._query_series('projected_estimates', series_id, start_date, end_date)

    def get_bands(self, series_id: str,
                  start_date: Optional[datetime] = None,
                  end_date: Optional[datetime] = None) -> pd.DataFrame:
        """Get time series of stable bands"""
        return self._query_series('stable_bands', series_id, start_date, end_date)

    def get_run(self, series_id: str) -> Optional[dict]:
        """Summary of the last stored run of a series"""
        row = self.conn.execute(
            "SELECT run_date, coverage, n_failures FROM band_runs WHERE series_id = ?",
            [series_id]
        ).fetchone()
        if row is None:
            return None
        return {'run_date': row[0], 'coverage': row[1], 'n_failures': row[2]}

    def close(self):
        """Close database connection"""
        if hasattr(self, 'conn'):
            self.conn.close()
