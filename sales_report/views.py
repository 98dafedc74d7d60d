import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import duckdb
import pandas as pd

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def default_label(column: str) -> str:
    return column.replace("_", " ").strip().title()


@dataclass(frozen=True)
class ViewSchema:
    """Ordered dimension columns followed by ordered measure columns."""

    dimensions: Tuple[str, ...]
    measures: Tuple[str, ...] = ()
    labels: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "dimensions", tuple(self.dimensions))
        object.__setattr__(self, "measures", tuple(self.measures))
        object.__setattr__(self, "labels", dict(self.labels))
        columns = self.columns
        if not columns:
            raise ConfigurationError("A view schema needs at least one column.")
        dupes = sorted({c for c in columns if columns.count(c) > 1})
        if dupes:
            raise ConfigurationError(f"Columns declared more than once: {', '.join(dupes)}")

    @property
    def columns(self) -> Tuple[str, ...]:
        return self.dimensions + self.measures

    def label(self, column: str) -> str:
        return self.labels.get(column) or default_label(column)


class AggregationView:
    """
    A named, pre-computed table. The name doubles as the section header in
    the exported report. Rows are copied on construction and treated as
    read-only from then on.
    """

    def __init__(self, name: str, schema: ViewSchema, rows: Optional[pd.DataFrame] = None):
        if not name or not str(name).strip():
            raise ConfigurationError("A view needs a non-empty name.")
        self.name = str(name)
        self.schema = schema
        if rows is None:
            rows = pd.DataFrame(columns=list(schema.columns))
        self._rows = rows.reset_index(drop=True).copy()

    @property
    def rows(self) -> pd.DataFrame:
        return self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"AggregationView({self.name!r}, rows={len(self)})"

    def missing_columns(self) -> List[str]:
        return [c for c in self.schema.columns if c not in self._rows.columns]

    def dimension_tuple(self, position: int) -> Tuple:
        """The dimension values a row was aggregated over."""
        return tuple(self._rows.at[position, c] for c in self.schema.dimensions)


# ---- Standard views over the normalized ``sales`` relation (see data_loader).
@dataclass(frozen=True)
class ViewSpec:
    name: str
    schema: ViewSchema
    sql: str


VIEW_SPECS: List[ViewSpec] = [
    ViewSpec(
        "MonthlyTrend",
        ViewSchema(("date_bucket",), ("total_sales", "order_count"), {"date_bucket": "Month"}),
        """
        SELECT date_bucket,
               ROUND(SUM(sales), 2) AS total_sales,
               COUNT(DISTINCT order_id) AS order_count
        FROM sales
        GROUP BY date_bucket
        ORDER BY date_bucket
        """,
    ),
    ViewSpec(
        "StateOrders",
        ViewSchema(("state",), ("order_count", "total_sales")),
        """
        SELECT state,
               COUNT(DISTINCT order_id) AS order_count,
               ROUND(SUM(sales), 2) AS total_sales
        FROM sales
        GROUP BY state
        ORDER BY order_count DESC, state
        """,
    ),
    ViewSpec(
        "ShipModeShare",
        ViewSchema(("ship_mode",), ("order_count", "share_pct"), {"share_pct": "Share"}),
        """
        SELECT ship_mode,
               COUNT(DISTINCT order_id) AS order_count,
               ROUND(100.0 * COUNT(DISTINCT order_id)
                     / (SELECT COUNT(DISTINCT order_id) FROM sales), 1) AS share_pct
        FROM sales
        GROUP BY ship_mode
        ORDER BY order_count DESC, ship_mode
        """,
    ),
    ViewSpec(
        "CategorySales",
        ViewSchema(("category", "sub_category"), ("total_sales", "order_count"),
                   {"sub_category": "Sub-Category"}),
        """
        SELECT category,
               sub_category,
               ROUND(SUM(sales), 2) AS total_sales,
               COUNT(DISTINCT order_id) AS order_count
        FROM sales
        GROUP BY category, sub_category
        ORDER BY category, total_sales DESC, sub_category
        """,
    ),
    ViewSpec(
        "SegmentSales",
        ViewSchema(("segment",), ("total_sales", "order_count")),
        """
        SELECT segment,
               ROUND(SUM(sales), 2) AS total_sales,
               COUNT(DISTINCT order_id) AS order_count
        FROM sales
        GROUP BY segment
        ORDER BY total_sales DESC, segment
        """,
    ),
]

STANDARD_VIEW_ORDER: Tuple[str, ...] = tuple(spec.name for spec in VIEW_SPECS)


def build_view(conn: duckdb.DuckDBPyConnection, spec: ViewSpec) -> AggregationView:
    rows = conn.execute(spec.sql).df()
    return AggregationView(spec.name, spec.schema, rows)


def build_standard_views(conn: duckdb.DuckDBPyConnection) -> Dict[str, AggregationView]:
    """
    Materialize every standard view from the normalized ``sales`` relation.
    Stands in for the upstream aggregation job; the report pipeline only
    reads the result.
    """
    # A cursor per build so runs on the queue thread do not share the
    # dashboard thread's connection state.
    cursor = conn.cursor()
    views: Dict[str, AggregationView] = {}
    for spec in VIEW_SPECS:
        views[spec.name] = build_view(cursor, spec)
        logger.info("Built view %s with %d rows", spec.name, len(views[spec.name]))
    return views


def view_source(conn: duckdb.DuckDBPyConnection) -> Callable[[], Dict[str, AggregationView]]:
    """Zero-argument callable the orchestrator uses to fetch current views."""
    return lambda: build_standard_views(conn)
