"""
Filtered sales report export.

Aggregated sales views are filtered against one snapshot of the dashboard
selections, merged into a sectioned document and written out as a
date-stamped, fixed-layout PDF.
"""

from .assembler import NO_DATA_MARKER, ReportDocument, ReportSection, assemble, order_views
from .config import (
    DEFAULT_NAME_TEMPLATE,
    DEFAULT_REPORT_DIR,
    DEFAULT_VIEW_ORDER,
    ReportConfig,
    load_report_config,
)
from .context import DIMENSIONS, FilterState, LiveFilterSelection, ReportContext
from .errors import (
    AssemblyError,
    ConfigurationError,
    ExportError,
    ReportError,
    RunInProgressError,
)
from .exporter import ExportArtifact, export, render_filename
from .formatter import FormattedDocument, format_document
from .orchestrator import ReportOrchestrator, RunRecord, RunState
from .resolver import VisibleRow, resolve
from .views import AggregationView, ViewSchema

__all__ = [
    "AggregationView",
    "AssemblyError",
    "ConfigurationError",
    "DEFAULT_NAME_TEMPLATE",
    "DEFAULT_REPORT_DIR",
    "DEFAULT_VIEW_ORDER",
    "DIMENSIONS",
    "ExportArtifact",
    "ExportError",
    "FilterState",
    "FormattedDocument",
    "LiveFilterSelection",
    "NO_DATA_MARKER",
    "ReportConfig",
    "ReportContext",
    "ReportDocument",
    "ReportError",
    "ReportOrchestrator",
    "ReportSection",
    "RunInProgressError",
    "RunRecord",
    "RunState",
    "ViewSchema",
    "VisibleRow",
    "assemble",
    "export",
    "format_document",
    "load_report_config",
    "order_views",
    "render_filename",
    "resolve",
]
