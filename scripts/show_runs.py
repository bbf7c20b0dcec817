import sys
import duckdb
from pathlib import Path

def show_runs(db_path: Path, series_id: str = None, n_rows: int = 10):
    """Print stored band runs and the latest estimates and bands of a series"""
    conn = duckdb.connect(str(db_path), read_only=True)

    runs = conn.execute("""
    SELECT
        series_id,
        run_date,
        coverage,
        n_failures
    FROM band_runs
    ORDER BY series_id
    """).df()
    print("\nStored band runs:")
    print(runs)

    if runs.empty:
        conn.close()
        return

    series_id = series_id or runs.series_id.iloc[0]

    print(f"\nLatest coarse estimates for {series_id}:")
    print(conn.execute("""
    SELECT
        observed_at::DATE as date,
        tail_index,
        scale,
        window_end - window_start as n_obs,
        status
    FROM stable_estimates
    WHERE series_id = ?
    ORDER BY observed_at DESC
    LIMIT ?
    """, [series_id, n_rows]).df())

    print(f"\nLatest bands for {series_id}:")
    print(conn.execute("""
    SELECT
        observed_at::DATE as date,
        price,
        lower_price,
        smoothed_price,
        upper_price
    FROM stable_bands
    WHERE series_id = ?
    ORDER BY observed_at DESC
    LIMIT ?
    """, [series_id, n_rows]).df())

    conn.close()

if __name__ == "__main__":
    db_file = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("results/stable_bands.db")
    show_runs(db_file, sys.argv[2] if len(sys.argv) > 2 else None)
