import logging
import os
from pathlib import Path
from typing import Dict, List

import duckdb
import pandas as pd

from .config import DEFAULT_DATA_FILENAME, ENV_DATA_PATH
from .context import DIMENSIONS

logger = logging.getLogger(__name__)

# Superstore export headers mapped onto the normalized column names that
# views and filters use.
SOURCE_COLUMNS: Dict[str, str] = {
    "Order ID": "order_id",
    "Order Date": "order_date",
    "Ship Mode": "ship_mode",
    "Segment": "segment",
    "State": "state",
    "Category": "category",
    "Sub-Category": "sub_category",
    "Sales": "sales",
}


def _default_candidates(default_filename: str) -> list[Path]:
    here = Path(__file__).resolve().parent
    return [
        here / "data" / default_filename,
        here.parent / "data" / default_filename,
        here.parent / default_filename,
        Path.cwd() / "data" / default_filename,
    ]


def resolve_data_path(default_filename: str = DEFAULT_DATA_FILENAME) -> str:
    """
    Resolve the unified sales extract from env or common locations.
    Returns an empty string if nothing is found so callers can handle gracefully.
    """
    env_path = os.getenv(ENV_DATA_PATH, "").strip()
    if env_path:
        return env_path

    for candidate in _default_candidates(default_filename):
        if candidate.exists():
            return str(candidate)
    return ""


def connect_duckdb(data_path: str) -> duckdb.DuckDBPyConnection:
    """
    Create a DuckDB connection with the extract mounted as ``sales_raw`` and
    the normalized ``sales`` view on top. Parquet and CSV are supported.
    """
    if not data_path:
        raise FileNotFoundError(
            f"Data path is empty. Set {ENV_DATA_PATH} or place {DEFAULT_DATA_FILENAME} in ./data."
        )
    suffix = Path(data_path).suffix.lower()
    if suffix == ".parquet":
        reader = "read_parquet({source})"
    elif suffix == ".csv":
        reader = "read_csv_auto({source}, header=true)"
    else:
        raise ValueError(f"Unsupported sales extract format: {suffix or data_path}")
    if not Path(data_path).exists():
        raise FileNotFoundError(f"Sales extract not found: {data_path}")

    source = "'" + str(data_path).replace("'", "''") + "'"
    conn = duckdb.connect(database=":memory:")
    conn.execute("PRAGMA threads=4;")
    conn.execute(f"CREATE OR REPLACE TABLE sales_raw AS SELECT * FROM {reader.format(source=source)};")
    ensure_sales_view(conn)
    logger.info("Mounted sales extract %s", data_path)
    return conn


def register_frame(conn: duckdb.DuckDBPyConnection, df: pd.DataFrame) -> duckdb.DuckDBPyConnection:
    """Mount an in-memory frame as ``sales_raw`` (used by tests and uploads)."""
    conn.register("sales_frame", df)
    conn.execute("CREATE OR REPLACE TABLE sales_raw AS SELECT * FROM sales_frame;")
    conn.unregister("sales_frame")
    ensure_sales_view(conn)
    return conn


def ensure_sales_view(conn: duckdb.DuckDBPyConnection) -> None:
    """
    Create the normalized ``sales`` view with snake_case columns and the
    month bucket the date filter works on.
    """
    available = {row[0] for row in conn.execute("DESCRIBE sales_raw").fetchall()}
    missing = [src for src in SOURCE_COLUMNS if src not in available]
    if missing:
        raise ValueError(f"Sales extract is missing columns: {', '.join(missing)}")

    select = ",\n".join(f'"{src}" AS {dst}' for src, dst in SOURCE_COLUMNS.items() if src != "Order Date")
    conn.execute(
        f"""
        CREATE OR REPLACE VIEW sales AS
        SELECT {select},
               order_date,
               strftime(order_date, '%Y-%m') AS date_bucket
        FROM (
            SELECT *,
                   COALESCE(
                       TRY_CAST("Order Date" AS DATE),
                       CAST(TRY_STRPTIME(CAST("Order Date" AS VARCHAR), '%m/%d/%Y') AS DATE)
                   ) AS order_date
            FROM sales_raw
        );
        """
    )


def filter_options(conn: duckdb.DuckDBPyConnection) -> Dict[str, List[str]]:
    """Distinct values per filter dimension, sorted for the widget."""
    cursor = conn.cursor()
    options: Dict[str, List[str]] = {}
    for dimension in DIMENSIONS:
        rows = cursor.execute(
            f"SELECT DISTINCT {dimension} FROM sales WHERE {dimension} IS NOT NULL ORDER BY 1"
        ).fetchall()
        options[dimension] = [str(r[0]) for r in rows]
    return options
