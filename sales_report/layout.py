from typing import Dict, Iterable

import pandas as pd
import streamlit as st

from .assembler import NO_DATA_MARKER, ReportDocument
from .context import DIMENSIONS, FilterState, LiveFilterSelection

FILTER_LABELS: Dict[str, str] = {
    "date_bucket": "Month",
    "ship_mode": "Ship mode",
    "category": "Category",
    "sub_category": "Sub-category",
    "state": "State",
    "segment": "Segment",
}


def render_filter_bar(options: Dict[str, Iterable[str]], live: LiveFilterSelection) -> FilterState:
    """
    Shared filter bar for the dashboard. Each multiselect writes straight
    into the live selection; an empty multiselect means "all".
    """
    cols = st.columns(3)
    for idx, dimension in enumerate(DIMENSIONS):
        with cols[idx % 3]:
            chosen = st.multiselect(
                FILTER_LABELS.get(dimension, dimension),
                list(options.get(dimension, ())),
                key=f"filter_{dimension}",
            )
        live.select(dimension, chosen)
    return live.snapshot()


def render_preview(doc: ReportDocument) -> None:
    """On-screen version of the sections the export will contain."""
    for section in doc.sections:
        st.subheader(section.title)
        if section.is_empty:
            st.info(NO_DATA_MARKER)
            continue
        frame = pd.DataFrame([row.values for row in section.rows], columns=list(section.labels))
        st.dataframe(frame, hide_index=True)
