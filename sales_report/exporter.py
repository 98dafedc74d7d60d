import contextlib
import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from fpdf import FPDF, XPos, YPos

from .config import DEFAULT_REPORT_TITLE
from .context import ReportContext
from .errors import ConfigurationError, ExportError
from .formatter import (
    FONT_FAMILY,
    PALETTE,
    CellStyle,
    FormattedDocument,
    FormattedSection,
    pdf_safe_text,
)

logger = logging.getLogger(__name__)

ROW_HEIGHT_FACTOR = 0.6  # mm of row height per pt of font size
SECTION_ROW_HEIGHT = 8.0


@dataclass(frozen=True)
class ExportArtifact:
    path: Path
    filename: str
    as_of: date
    size_bytes: int
    sha256: str
    manifest_path: Optional[Path] = None


def render_filename(name_template: str, as_of: date) -> str:
    """
    Substitute the generation date into the template, e.g.
    ``Report_{date:%Y-%m-%d}.pdf`` -> ``Report_2024-03-31.pdf``.
    """
    if "{date" not in name_template:
        raise ConfigurationError(f"Name template {name_template!r} has no {{date}} placeholder.")
    try:
        filename = name_template.format(date=as_of)
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigurationError(f"Name template {name_template!r} could not be rendered: {exc}") from exc
    if not filename.strip() or "/" in filename or "\\" in filename or filename in {".", ".."}:
        raise ConfigurationError(f"Name template {name_template!r} must render to a plain file name.")
    return filename


class ReportPDF(FPDF):
    def __init__(self, orientation: str, page_format: str, header_title: str, header_subtitle: str):
        super().__init__(orientation=orientation, unit="mm", format=page_format)
        self.header_title = header_title
        self.header_subtitle = header_subtitle

    def header(self):
        if self.page_no() == 1:
            return
        self.set_text_color(60, 60, 60)
        self.set_font(FONT_FAMILY, "B", 9)
        self.cell(0, 5, pdf_safe_text(self.header_title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font(FONT_FAMILY, "", 8)
        subtitle = str(self.header_subtitle or "")
        if len(subtitle) > 110:
            subtitle = subtitle[:107].rstrip() + "..."
        self.cell(0, 4, pdf_safe_text(subtitle), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_draw_color(200, 200, 200)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.ln(3)
        self.set_text_color(0, 0, 0)

    def footer(self):
        self.set_y(-12)
        self.set_text_color(120, 120, 120)
        self.set_font(FONT_FAMILY, "", 8)
        self.cell(0, 4, f"Page {self.page_no()}", align="R")


def _apply_style(pdf: FPDF, style: CellStyle, size: Optional[float] = None) -> None:
    pdf.set_font(FONT_FAMILY, style.font_style, size or style.size)
    pdf.set_text_color(*style.text_color)
    if style.fill_color:
        pdf.set_fill_color(*style.fill_color)


def _render_cover(pdf: FPDF, doc: FormattedDocument, title: str, as_of: date) -> None:
    pdf.set_fill_color(*PALETTE["ink"])
    pdf.rect(pdf.l_margin, pdf.get_y(), pdf.w - pdf.l_margin - pdf.r_margin, 2, "F")
    pdf.ln(6)
    pdf.set_text_color(0, 0, 0)
    pdf.set_font(FONT_FAMILY, "B", 18)
    pdf.cell(0, 8, pdf_safe_text(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font(FONT_FAMILY, "", 11)
    pdf.cell(0, 6, f"Generated: {as_of.isoformat()}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.multi_cell(0, 6, f"Filters: {doc.filter_summary}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)


def _header_row(pdf: FPDF, doc: FormattedDocument, section: FormattedSection, row_h: float) -> None:
    _apply_style(pdf, doc.header_style, section.font_size)
    for label, width in zip(section.header, section.widths):
        pdf.cell(width, row_h, label, border=1, align="C", fill=True, new_x=XPos.RIGHT, new_y=YPos.TOP)
    pdf.ln(row_h)


def _render_section(pdf: FPDF, doc: FormattedDocument, section: FormattedSection) -> None:
    row_h = round(section.font_size * ROW_HEIGHT_FACTOR, 2)
    bottom = pdf.h - pdf.b_margin

    # Keep the section title with its column header and first row.
    if pdf.get_y() + SECTION_ROW_HEIGHT + 2 * row_h > bottom:
        pdf.add_page()
    _apply_style(pdf, doc.section_style)
    pdf.cell(0, SECTION_ROW_HEIGHT, section.title, fill=True, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(1)

    pdf.set_draw_color(*PALETTE["border"])
    pdf.set_line_width(0.2)
    _header_row(pdf, doc, section, row_h)

    if section.empty_marker:
        _apply_style(pdf, doc.marker_style, section.font_size)
        pdf.cell(section.table_width, row_h, section.empty_marker, border=1, align="C",
                 new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    for row in section.body:
        if pdf.get_y() + row_h > bottom:
            pdf.add_page()
            _header_row(pdf, doc, section, row_h)
        _apply_style(pdf, doc.body_style, section.font_size)
        for text, width, align in zip(row, section.widths, section.aligns):
            pdf.cell(width, row_h, text, border=1, align=align, new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.ln(row_h)
    pdf.set_text_color(0, 0, 0)
    pdf.ln(6)


def build_pdf(doc: FormattedDocument, as_of: date, title: str = DEFAULT_REPORT_TITLE) -> ReportPDF:
    """
    Draw the formatted document with fpdf. The creation date is pinned to
    ``as_of`` so the same document on the same day gives the same bytes.
    """
    pdf = ReportPDF(doc.orientation, doc.page.format, title, f"{as_of.isoformat()} | {doc.filter_summary}")
    pdf.set_creation_date(datetime.combine(as_of, time.min, tzinfo=timezone.utc))
    pdf.set_title(pdf_safe_text(title))
    pdf.set_left_margin(doc.page.margin)
    pdf.set_right_margin(doc.page.margin)
    pdf.set_auto_page_break(auto=True, margin=16)
    pdf.add_page()

    _render_cover(pdf, doc, title, as_of)
    for section in doc.sections:
        _render_section(pdf, doc, section)
    return pdf


def render_pdf(doc: FormattedDocument, as_of: date, title: str = DEFAULT_REPORT_TITLE) -> bytes:
    return bytes(build_pdf(doc, as_of, title=title).output())


def _stage(path: Path, data: bytes) -> str:
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
    except OSError:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise
    return tmp


def _manifest(doc: FormattedDocument, filename: str, as_of: date, digest: str,
              context: Optional[ReportContext]) -> Dict:
    sections: List[Dict] = [
        {"title": s.title, "rows": len(s.body), "columns": list(s.header)} for s in doc.sections
    ]
    return {
        "filename": filename,
        "as_of": as_of.isoformat(),
        "run_id": context.run_id if context else None,
        "issued_at": context.issued_at if context else None,
        "filters": context.filters.as_dict() if context else None,
        "filter_summary": doc.filter_summary,
        "sections": sections,
        "sha256": digest,
    }


def manifest_path_for(target: Path) -> Path:
    """``Report_2024-03-31.pdf`` -> ``Report_2024-03-31.json``; other names get ``.json`` appended."""
    if target.suffix.lower() == ".pdf":
        return target.with_name(target.name[: -len(target.suffix)] + ".json")
    return target.with_name(target.name + ".json")


def _restore(path: Path, previous: Optional[bytes]) -> None:
    """Put back what ``path`` held before this run touched it."""
    if previous is None:
        with contextlib.suppress(OSError):
            path.unlink()
        return
    with contextlib.suppress(OSError):
        os.replace(_stage(path, previous), path)


def export(
    doc: FormattedDocument,
    name_template: str,
    as_of: date,
    destination: Union[str, Path],
    context: Optional[ReportContext] = None,
    write_manifest: bool = True,
) -> ExportArtifact:
    """
    Render ``doc`` and publish it as ``destination/<name>``. The bytes are
    written to temp files beside the targets and moved into place. The
    manifest goes first and the PDF last, so the PDF move is the only step
    that replaces a prior artifact; if it fails the prior manifest is put
    back and nothing from this run stays visible.
    """
    filename = render_filename(name_template, as_of)
    title = context.title if context else DEFAULT_REPORT_TITLE
    pdf_bytes = render_pdf(doc, as_of, title=title)
    digest = hashlib.sha256(pdf_bytes).hexdigest()

    destination = Path(destination)
    target = destination / filename
    manifest_path = manifest_path_for(target) if write_manifest else None

    staged: List[str] = []
    manifest_published = False
    previous_manifest: Optional[bytes] = None
    try:
        destination.mkdir(parents=True, exist_ok=True)
        staged.append(_stage(target, pdf_bytes))
        if manifest_path is not None:
            payload = _manifest(doc, filename, as_of, digest, context)
            staged.append(_stage(manifest_path, json.dumps(payload, indent=2, default=str).encode("utf-8")))
            if manifest_path.exists():
                previous_manifest = manifest_path.read_bytes()
            os.replace(staged[1], manifest_path)
            manifest_published = True
        os.replace(staged[0], target)
    except OSError as exc:
        for tmp in staged:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
        if manifest_published:
            _restore(manifest_path, previous_manifest)
        raise ExportError(f"Could not write {target}: {exc}") from exc

    logger.info("Exported %s (%d bytes)", target, len(pdf_bytes))
    return ExportArtifact(
        path=target,
        filename=filename,
        as_of=as_of,
        size_bytes=len(pdf_bytes),
        sha256=digest,
        manifest_path=manifest_path,
    )
