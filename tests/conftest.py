"""
Pytest configuration and shared fixtures for all tests
Small hand-made views and a raw sales extract shaped like the Superstore export
"""

import os
import sys
from datetime import date

import duckdb
import pandas as pd
import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sales_report.config import ReportConfig
from sales_report.data_loader import register_frame
from sales_report.views import AggregationView, ViewSchema

AS_OF = date(2024, 3, 31)


# ===== AGGREGATION VIEW FIXTURES =====

@pytest.fixture
def monthly_trend():
    """Three months of totals; no state column at all."""
    rows = pd.DataFrame(
        {
            "month": ["2017-01", "2017-02", "2017-03"],
            "total_sales": [870.5, 945.24, 310.0],
        }
    )
    return AggregationView("MonthlyTrend", ViewSchema(("month",), ("total_sales",)), rows)


@pytest.fixture
def state_orders():
    rows = pd.DataFrame(
        {
            "state": ["California", "New York", "Texas", "Washington"],
            "order_count": [2, 1, 1, 1],
        }
    )
    return AggregationView("StateOrders", ViewSchema(("state",), ("order_count",)), rows)


@pytest.fixture
def ship_mode_share():
    rows = pd.DataFrame(
        {
            "ship_mode": ["Standard Class", "First Class", "Same Day", "Second Class"],
            "order_count": [2, 1, 1, 1],
        }
    )
    return AggregationView("ShipModeShare", ViewSchema(("ship_mode",), ("order_count",)), rows)


@pytest.fixture
def category_sales():
    rows = pd.DataFrame(
        {
            "category": ["Furniture", "Furniture", "Office Supplies", "Technology"],
            "sub_category": ["Tables", "Chairs", "Binders", "Phones"],
            "total_sales": [310.0, 250.0, 45.25, 1499.99],
        }
    )
    schema = ViewSchema(("category", "sub_category"), ("total_sales",), {"sub_category": "Sub-Category"})
    return AggregationView("CategorySales", schema, rows)


@pytest.fixture
def example_views(monthly_trend, state_orders, ship_mode_share):
    """The three views from the worked example, in display order."""
    return [monthly_trend, state_orders, ship_mode_share]


@pytest.fixture
def views_by_name(monthly_trend, state_orders, ship_mode_share, category_sales):
    return {
        v.name: v for v in (monthly_trend, state_orders, ship_mode_share, category_sales)
    }


# ===== RAW SALES EXTRACT FIXTURES =====

@pytest.fixture
def sales_frame():
    """
    Six order lines across five orders:
    - one order (CA-1001) with two lines to check distinct order counts
    - two California orders so the state view has a clear leader
    """
    records = [
        ("CA-1001", "2017-01-05", "Standard Class", "Consumer", "California", "Furniture", "Chairs", 250.0),
        ("CA-1001", "2017-01-05", "Standard Class", "Consumer", "California", "Office Supplies", "Paper", 20.5),
        ("CA-1002", "2017-01-20", "Second Class", "Corporate", "Texas", "Technology", "Phones", 600.0),
        ("CA-1003", "2017-02-11", "First Class", "Home Office", "New York", "Office Supplies", "Binders", 45.25),
        ("CA-1004", "2017-02-28", "Standard Class", "Consumer", "California", "Technology", "Phones", 899.99),
        ("CA-1005", "2017-03-03", "Same Day", "Corporate", "Washington", "Furniture", "Tables", 310.0),
    ]
    df = pd.DataFrame(
        records,
        columns=[
            "Order ID", "Order Date", "Ship Mode", "Segment", "State",
            "Category", "Sub-Category", "Sales",
        ],
    )
    df["Order Date"] = pd.to_datetime(df["Order Date"])
    return df


@pytest.fixture
def sales_conn(sales_frame):
    conn = duckdb.connect(database=":memory:")
    register_frame(conn, sales_frame)
    yield conn
    conn.close()


# ===== CONFIG FIXTURES =====

@pytest.fixture
def report_dir(tmp_path):
    return tmp_path / "reports"


@pytest.fixture
def report_config(report_dir):
    return ReportConfig(
        view_order=("MonthlyTrend", "StateOrders", "ShipModeShare"),
        destination=report_dir,
    )


@pytest.fixture
def as_of():
    return AS_OF
