"""
Tests for view definitions and the duckdb-backed standard views
"""

import duckdb
import pandas as pd
import pytest

from sales_report.config import DEFAULT_VIEW_ORDER
from sales_report.data_loader import connect_duckdb, filter_options, register_frame
from sales_report.errors import ConfigurationError
from sales_report.views import (
    STANDARD_VIEW_ORDER,
    AggregationView,
    ViewSchema,
    build_standard_views,
)


class TestViewSchema:
    def test_columns_are_dimensions_then_measures(self):
        schema = ViewSchema(("state",), ("order_count", "total_sales"))
        assert schema.columns == ("state", "order_count", "total_sales")

    def test_default_and_explicit_labels(self):
        schema = ViewSchema(("ship_mode",), ("share_pct",), {"share_pct": "Share"})
        assert schema.label("ship_mode") == "Ship Mode"
        assert schema.label("share_pct") == "Share"

    def test_no_columns(self):
        with pytest.raises(ConfigurationError):
            ViewSchema((), ())

    def test_duplicate_columns(self):
        with pytest.raises(ConfigurationError, match="state"):
            ViewSchema(("state",), ("state",))


class TestAggregationView:
    def test_name_required(self):
        with pytest.raises(ConfigurationError):
            AggregationView("  ", ViewSchema(("state",)))

    def test_rows_are_copied(self):
        source = pd.DataFrame({"state": ["Texas"], "order_count": [1]})
        view = AggregationView("StateOrders", ViewSchema(("state",), ("order_count",)), source)
        source.loc[0, "state"] = "Ohio"
        assert view.rows.loc[0, "state"] == "Texas"

    def test_missing_columns(self):
        view = AggregationView(
            "StateOrders", ViewSchema(("state",), ("order_count",)), pd.DataFrame({"state": ["Texas"]})
        )
        assert view.missing_columns() == ["order_count"]

    def test_dimension_tuple(self, category_sales):
        assert category_sales.dimension_tuple(1) == ("Furniture", "Chairs")


class TestStandardViews:
    """Aggregations over a tiny Superstore-shaped extract"""

    def test_order_matches_default_config(self):
        assert STANDARD_VIEW_ORDER == DEFAULT_VIEW_ORDER

    def test_all_views_built(self, sales_conn):
        views = build_standard_views(sales_conn)
        assert list(views) == list(STANDARD_VIEW_ORDER)
        for view in views.values():
            assert view.missing_columns() == []

    def test_monthly_trend(self, sales_conn):
        rows = build_standard_views(sales_conn)["MonthlyTrend"].rows
        assert rows["date_bucket"].tolist() == ["2017-01", "2017-02", "2017-03"]
        assert rows["order_count"].tolist() == [2, 2, 1]
        assert rows["total_sales"].tolist() == pytest.approx([870.5, 945.24, 310.0])

    def test_state_orders(self, sales_conn):
        rows = build_standard_views(sales_conn)["StateOrders"].rows
        assert rows["state"].tolist() == ["California", "New York", "Texas", "Washington"]
        assert rows["order_count"].tolist() == [2, 1, 1, 1]

    def test_ship_mode_share_sums_to_100(self, sales_conn):
        rows = build_standard_views(sales_conn)["ShipModeShare"].rows
        assert rows.iloc[0]["ship_mode"] == "Standard Class"
        assert rows["share_pct"].sum() == pytest.approx(100.0)

    def test_category_sales(self, sales_conn):
        rows = build_standard_views(sales_conn)["CategorySales"].rows
        assert list(zip(rows["category"], rows["sub_category"])) == [
            ("Furniture", "Tables"),
            ("Furniture", "Chairs"),
            ("Office Supplies", "Binders"),
            ("Office Supplies", "Paper"),
            ("Technology", "Phones"),
        ]

    def test_segment_sales(self, sales_conn):
        rows = build_standard_views(sales_conn)["SegmentSales"].rows
        assert rows["segment"].tolist() == ["Consumer", "Corporate", "Home Office"]
        assert rows["total_sales"].tolist() == pytest.approx([1170.49, 910.0, 45.25])


class TestDataLoader:
    def test_filter_options(self, sales_conn):
        options = filter_options(sales_conn)
        assert options["state"] == ["California", "New York", "Texas", "Washington"]
        assert options["date_bucket"] == ["2017-01", "2017-02", "2017-03"]
        assert options["sub_category"] == ["Binders", "Chairs", "Paper", "Phones", "Tables"]

    def test_missing_source_column(self, sales_frame):
        conn = duckdb.connect(database=":memory:")
        with pytest.raises(ValueError, match="Ship Mode"):
            register_frame(conn, sales_frame.drop(columns=["Ship Mode"]))

    def test_empty_path(self):
        with pytest.raises(FileNotFoundError):
            connect_duckdb("")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "sales.xlsx"
        path.write_bytes(b"")
        with pytest.raises(ValueError):
            connect_duckdb(str(path))

    def test_csv_extract(self, tmp_path, sales_frame):
        path = tmp_path / "sales.csv"
        sales_frame.to_csv(path, index=False)
        conn = connect_duckdb(str(path))
        views = build_standard_views(conn)
        assert views["StateOrders"].rows["order_count"].tolist() == [2, 1, 1, 1]

    def test_us_style_dates(self, tmp_path, sales_frame):
        frame = sales_frame.copy()
        frame["Order Date"] = frame["Order Date"].dt.strftime("%m/%d/%Y")
        conn = duckdb.connect(database=":memory:")
        register_frame(conn, frame)
        rows = build_standard_views(conn)["MonthlyTrend"].rows
        assert rows["date_bucket"].tolist() == ["2017-01", "2017-02", "2017-03"]
