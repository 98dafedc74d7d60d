import logging
from pathlib import Path

import streamlit as st

from sales_report.assembler import assemble, order_views
from sales_report.config import load_report_config
from sales_report.context import LiveFilterSelection
from sales_report.data_loader import connect_duckdb, filter_options, resolve_data_path
from sales_report.errors import ReportError
from sales_report.layout import render_filter_bar, render_preview
from sales_report.orchestrator import ReportOrchestrator
from sales_report.views import build_standard_views

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Sales Report Export", layout="wide")

connect = st.cache_resource(show_spinner=False)(connect_duckdb)


@st.cache_data(show_spinner=False)
def cached_options(data_path: str):
    return filter_options(connect(data_path))


def _session_objects(data_path: str):
    if "live_filters" not in st.session_state:
        st.session_state.live_filters = LiveFilterSelection()
    if "orchestrator" not in st.session_state:
        conn = connect(data_path)
        st.session_state.orchestrator = ReportOrchestrator(
            load_report_config(),
            st.session_state.live_filters,
            lambda: build_standard_views(conn),
        )
    return st.session_state.live_filters, st.session_state.orchestrator


data_path = resolve_data_path()
st.title("Sales Report Export")
if not data_path:
    st.error("No sales extract found. Set SALES_DATA_PATH or place superstore_sales.parquet in ./data.")
    st.stop()

live, orchestrator = _session_objects(data_path)
snapshot = render_filter_bar(cached_options(data_path), live)

views = build_standard_views(connect(data_path))
try:
    preview = assemble(order_views(views, orchestrator.config.view_order), snapshot)
except ReportError as exc:
    st.error(f"Views are misconfigured: {exc}")
    st.stop()

st.caption(f"Filters: {snapshot.summary()}")
if st.button("Generate report", type="primary"):
    try:
        record = orchestrator.generate()
    except ReportError as exc:
        st.error(f"Report not generated: {exc}")
    else:
        artifact = record.artifact
        st.success(f"Saved {artifact.path}")
        st.download_button(
            "Download PDF",
            data=Path(artifact.path).read_bytes(),
            file_name=artifact.filename,
            mime="application/pdf",
        )

render_preview(preview)
