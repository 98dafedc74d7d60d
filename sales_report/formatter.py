import math
import numbers
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Tuple

import pandas as pd
from fpdf import FPDF

from .assembler import NO_DATA_MARKER, ReportDocument, ReportSection
from .errors import AssemblyError

FONT_FAMILY = "Helvetica"
BODY_SIZE = 9.0
MIN_BODY_SIZE = 6.0
SECTION_TITLE_SIZE = 11.0
CELL_PADDING = 2.0  # mm, left + right
PAGE_MARGIN = 12.0

PAGE_SIZES = {
    "A4": (210.0, 297.0),
    "Letter": (215.9, 279.4),
}

PALETTE = {
    "primary": (30, 144, 255),
    "ink": (16, 35, 58),
    "panel": (232, 238, 245),
    "white": (255, 255, 255),
    "border": (120, 130, 140),
}


@dataclass(frozen=True)
class PageSetup:
    format: str = "A4"
    margin: float = PAGE_MARGIN

    def printable_width(self, orientation: str) -> float:
        width, height = PAGE_SIZES[self.format]
        page_w = width if orientation == "P" else height
        return page_w - 2 * self.margin


@dataclass(frozen=True)
class CellStyle:
    font_style: str
    size: float
    text_color: Tuple[int, int, int]
    fill_color: Optional[Tuple[int, int, int]] = None


SECTION_HEADER_STYLE = CellStyle("B", SECTION_TITLE_SIZE, PALETTE["white"], PALETTE["primary"])
COLUMN_HEADER_STYLE = CellStyle("B", BODY_SIZE, PALETTE["ink"], PALETTE["panel"])
BODY_STYLE = CellStyle("", BODY_SIZE, (0, 0, 0))
MARKER_STYLE = CellStyle("I", BODY_SIZE, (100, 110, 125))


@dataclass(frozen=True)
class FormattedSection:
    title: str
    header: Tuple[str, ...]
    body: Tuple[Tuple[str, ...], ...]
    widths: Tuple[float, ...]
    aligns: Tuple[str, ...]
    font_size: float
    empty_marker: Optional[str] = None

    @property
    def table_width(self) -> float:
        return sum(self.widths)


@dataclass(frozen=True)
class FormattedDocument:
    orientation: str
    page: PageSetup
    sections: Tuple[FormattedSection, ...]
    section_style: CellStyle = SECTION_HEADER_STYLE
    header_style: CellStyle = COLUMN_HEADER_STYLE
    body_style: CellStyle = BODY_STYLE
    marker_style: CellStyle = MARKER_STYLE
    filter_summary: str = "All data"


def pdf_safe_text(text: Any) -> str:
    if text is None:
        return ""
    return str(text).encode("latin-1", "replace").decode("latin-1")


def render_value(value: Any, column: str = "") -> str:
    """Text shown for one cell. Numbers get thousands separators."""
    if value is None or value is pd.NA or value is pd.NaT:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, numbers.Integral):
        return f"{int(value):,}"
    if isinstance(value, numbers.Real):
        value = float(value)
        if math.isnan(value):
            return ""
        if column.endswith("pct"):
            return f"{value:.1f}%"
        return f"{value:,.2f}"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    return pdf_safe_text(value)


class _Measure:
    """Helvetica metrics from fpdf so widths match what the renderer draws."""

    def __init__(self):
        self.pdf = FPDF(orientation="P", unit="mm", format="A4")

    def width(self, text: str, style: str, size: float) -> float:
        self.pdf.set_font(FONT_FAMILY, style, size)
        return self.pdf.get_string_width(text)


def _column_widths(measure: _Measure, header, body, size: float) -> Tuple[float, ...]:
    widths = []
    for idx, label in enumerate(header):
        widest = measure.width(label, COLUMN_HEADER_STYLE.font_style, size)
        for row in body:
            widest = max(widest, measure.width(row[idx], BODY_STYLE.font_style, size))
        widths.append(round(widest + CELL_PADDING, 2))
    return tuple(widths)


def _render_section(section: ReportSection) -> Tuple[Tuple[str, ...], Tuple[Tuple[str, ...], ...]]:
    width = len(section.columns)
    if len(section.labels) != width:
        raise AssemblyError(f"Section {section.title!r} has {len(section.labels)} labels for {width} columns")
    body = []
    for row in section.rows:
        if len(row.values) != width:
            raise AssemblyError(
                f"Section {section.title!r} row {row.position} has {len(row.values)} values for {width} columns"
            )
        body.append(tuple(render_value(v, c) for v, c in zip(row.values, section.columns)))
    header = tuple(pdf_safe_text(label) for label in section.labels)
    return header, tuple(body)


def _layout_section(section: ReportSection, header, body, measure: _Measure, max_width: float) -> FormattedSection:
    size = BODY_SIZE
    widths = _column_widths(measure, header, body, size)
    if sum(widths) > max_width:
        size = max(MIN_BODY_SIZE, math.floor(BODY_SIZE * max_width / sum(widths) * 2) / 2)
        widths = _column_widths(measure, header, body, size)
        if sum(widths) > max_width:
            factor = max_width / sum(widths)
            widths = tuple(round(w * factor, 2) for w in widths)

    marker = None
    if not body:
        marker = NO_DATA_MARKER
        marker_w = measure.width(marker, MARKER_STYLE.font_style, size) + CELL_PADDING
        total = sum(widths)
        if marker_w > total:
            # Widen the last column so the marker row fits inside the border.
            extra = min(marker_w, max_width) - total
            widths = widths[:-1] + (round(widths[-1] + extra, 2),)

    aligns = tuple("L" if idx < section.dimension_count else "R" for idx in range(len(section.columns)))
    return FormattedSection(
        title=pdf_safe_text(section.title),
        header=header,
        body=body,
        widths=widths,
        aligns=aligns,
        font_size=size,
        empty_marker=marker,
    )


def format_document(doc: ReportDocument, page: PageSetup = PageSetup()) -> FormattedDocument:
    """
    Lay out the assembled document: column widths fitted to content, styles
    for section and column headers, a border per section. Content and order
    are left untouched.
    """
    measure = _Measure()
    rendered = [_render_section(section) for section in doc.sections]

    portrait_w = page.printable_width("P")
    natural = [sum(_column_widths(measure, header, body, BODY_SIZE)) for header, body in rendered]
    orientation = "P" if all(w <= portrait_w for w in natural) else "L"
    max_width = page.printable_width(orientation)

    sections = tuple(
        _layout_section(section, header, body, measure, max_width)
        for section, (header, body) in zip(doc.sections, rendered)
    )
    return FormattedDocument(
        orientation=orientation,
        page=page,
        sections=sections,
        filter_summary=pdf_safe_text(doc.filters.summary()),
    )
