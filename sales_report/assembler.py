import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

from .context import FilterState
from .errors import AssemblyError, ConfigurationError
from .resolver import VisibleRow, resolve
from .views import AggregationView

logger = logging.getLogger(__name__)

NO_DATA_MARKER = "No matching data for the current filters"


@dataclass(frozen=True)
class ReportSection:
    title: str
    columns: Tuple[str, ...]
    labels: Tuple[str, ...]
    rows: Tuple[VisibleRow, ...]
    source_view: str
    dimension_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class ReportDocument:
    """Sections in display order, one per input view, plus the filters used."""

    sections: Tuple[ReportSection, ...]
    filters: FilterState

    def section_titles(self) -> List[str]:
        return [s.title for s in self.sections]

    def row_count(self) -> int:
        return sum(len(s.rows) for s in self.sections)

    def row_counts(self) -> Dict[str, int]:
        return {s.title: len(s.rows) for s in self.sections}


def order_views(
    available: Mapping[str, AggregationView],
    view_order: Sequence[str],
) -> List[AggregationView]:
    """
    Pick the configured views out of ``available`` in display order.
    An unknown or repeated name is a configuration defect.
    """
    if not view_order:
        raise ConfigurationError("view_order is empty; nothing to report.")
    seen = set()
    ordered = []
    for name in view_order:
        if name in seen:
            raise ConfigurationError(f"View {name!r} appears more than once in view_order.")
        seen.add(name)
        view = available.get(name)
        if view is None:
            known = ", ".join(sorted(available)) or "none"
            raise ConfigurationError(f"Unknown view {name!r} in view_order (available: {known}).")
        ordered.append(view)
    return ordered


def _check_views(views: Sequence[AggregationView]) -> None:
    names = set()
    for view in views:
        if view.name in names:
            raise AssemblyError(f"Two views share the name {view.name!r}; sections would be ambiguous.")
        names.add(view.name)
        missing = view.missing_columns()
        if missing:
            raise AssemblyError(
                f"View {view.name!r} declares columns its rows do not have: {', '.join(missing)}"
            )


def assemble(views: Sequence[AggregationView], filters: FilterState) -> ReportDocument:
    """
    Build one section per view, in the given order. Every view is checked
    before any section is produced, so a malformed view aborts the whole run.
    """
    _check_views(views)

    sections = []
    for view in views:
        rows = resolve(view, filters)
        schema = view.schema
        sections.append(
            ReportSection(
                title=view.name,
                columns=schema.columns,
                labels=tuple(schema.label(c) for c in schema.columns),
                rows=tuple(rows),
                source_view=view.name,
                dimension_count=len(schema.dimensions),
            )
        )
        logger.debug("Section %s: %d of %d rows visible", view.name, len(rows), len(view))

    doc = ReportDocument(sections=tuple(sections), filters=filters)
    logger.info("Assembled %d sections, %d visible rows", len(doc.sections), doc.row_count())
    return doc
