"""
Tests for row visibility against a filter snapshot
"""

import pandas as pd
import pytest

from sales_report.context import FilterState
from sales_report.errors import AssemblyError
from sales_report.resolver import resolve, visible_mask
from sales_report.views import AggregationView, ViewSchema


class TestResolve:
    """resolve() is a stable, pure filter over one view"""

    def test_state_filter_keeps_only_matching_row(self, state_orders):
        rows = resolve(state_orders, FilterState.from_mapping({"state": ["California"]}))
        assert [r.values for r in rows] == [("California", 2)]
        assert rows[0].dimensions == ("California",)
        assert rows[0].view == "StateOrders"
        assert rows[0].position == 0

    def test_view_without_dimension_passes_everything(self, monthly_trend):
        rows = resolve(monthly_trend, FilterState.from_mapping({"state": ["California"]}))
        assert len(rows) == len(monthly_trend)

    def test_unrestricted_returns_every_row_unchanged(self, ship_mode_share):
        rows = resolve(ship_mode_share, FilterState())
        expected = list(ship_mode_share.rows.itertuples(index=False, name=None))
        assert [r.values for r in rows] == expected
        assert [r.position for r in rows] == list(range(len(ship_mode_share)))

    def test_output_is_ordered_subset(self, ship_mode_share):
        filters = FilterState.from_mapping({"ship_mode": ["Same Day", "Standard Class", "Second Class"]})
        rows = resolve(ship_mode_share, filters)
        positions = [r.position for r in rows]
        assert positions == sorted(positions)
        assert [r.values[0] for r in rows] == ["Standard Class", "Same Day", "Second Class"]

    def test_unknown_value_gives_empty_result(self, state_orders):
        rows = resolve(state_orders, FilterState.from_mapping({"state": ["Atlantis"]}))
        assert rows == []

    def test_measure_columns_are_not_filterable(self, state_orders):
        rows = resolve(state_orders, FilterState.from_mapping({"order_count": ["1"]}))
        assert len(rows) == len(state_orders)

    def test_multiple_dimensions_combine(self, category_sales):
        filters = FilterState.from_mapping({"category": ["Furniture"], "sub_category": ["Chairs", "Phones"]})
        rows = resolve(category_sales, filters)
        assert [r.dimensions for r in rows] == [("Furniture", "Chairs")]

    def test_string_selection_matches_numeric_cells(self):
        rows = pd.DataFrame({"year": [2016, 2017, 2018], "total_sales": [1.0, 2.0, 3.0]})
        view = AggregationView("Yearly", ViewSchema(("year",), ("total_sales",)), rows)
        result = resolve(view, FilterState.from_mapping({"year": ["2017"]}))
        assert [r.values for r in result] == [(2017, 2.0)]

    def test_null_cells_never_match_a_restriction(self):
        rows = pd.DataFrame({"state": ["Texas", None], "order_count": [1, 2]})
        view = AggregationView("StateOrders", ViewSchema(("state",), ("order_count",)), rows)
        result = resolve(view, FilterState.from_mapping({"state": ["Texas", "None"]}))
        assert [r.position for r in result] == [0]

    def test_view_is_not_modified(self, state_orders):
        before = state_orders.rows.copy()
        resolve(state_orders, FilterState.from_mapping({"state": ["Texas"]}))
        pd.testing.assert_frame_equal(state_orders.rows, before)

    def test_missing_declared_column_raises(self):
        rows = pd.DataFrame({"state": ["Texas"]})
        view = AggregationView("StateOrders", ViewSchema(("state",), ("order_count",)), rows)
        with pytest.raises(AssemblyError, match="order_count"):
            resolve(view, FilterState())

    def test_empty_view(self):
        view = AggregationView("Empty", ViewSchema(("state",), ("order_count",)))
        assert resolve(view, FilterState.from_mapping({"state": ["Texas"]})) == []


class TestVisibleMask:
    def test_mask_aligns_with_rows(self, state_orders):
        mask = visible_mask(state_orders, FilterState.from_mapping({"state": ["Texas", "New York"]}))
        assert mask.tolist() == [False, True, True, False]
