# src/export/renderers/docx_renderer.py — v1
"""Word (.docx) quotation renderer using python-docx.

Layout: centered title, generation timestamp, summary section, a
five-column material table with a shaded header row, and a bordered
total-cost banner.
"""

from __future__ import annotations

import io
from datetime import datetime, timezone

from mediaquote.core.models import Material, QuotationResult
from mediaquote.export import formatting as fmt
from mediaquote.export.base_renderer import FILENAME_STEM, BaseReportRenderer

DOCX_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)

_TITLE_COLOR = "2E86AB"
_HEADING_COLOR = "1B4F72"
_HEADER_FILL = "E8E8E8"
# Column widths in twips: item, description, quantity, unit price, total.
_COLUMN_WIDTHS = (800, 3500, 1000, 1200, 1200)


class DocxReportRenderer(BaseReportRenderer):
    """Render a quotation as an Office Open XML document."""

    @property
    def format_name(self) -> str:
        return "docx"

    @property
    def file_extension(self) -> str:
        return ".docx"

    @property
    def content_type(self) -> str:
        return DOCX_CONTENT_TYPE

    def filename(self, now: datetime) -> str:
        day = now.astimezone(timezone.utc).date().isoformat()
        return f"{FILENAME_STEM}-{day}{self.file_extension}"

    def render(self, result: QuotationResult) -> bytes:
        try:
            import docx
        except ImportError as e:
            raise ImportError(
                "python-docx package required for DOCX export: "
                "pip install python-docx"
            ) from e

        document = docx.Document()
        props = document.core_properties
        props.author = "Construction Quotation System"
        props.title = "Construction Material Quotation"
        props.comments = (
            "Professional construction material cost analysis and quotation"
        )

        self._add_title(document)
        self._add_generated(document, result.timestamp)
        self._add_heading(document, fmt.SUMMARY_HEADING)
        summary = document.add_paragraph(result.video_summary)
        _space(summary, after=20)
        self._add_heading(document, fmt.MATERIALS_HEADING)
        self._add_materials_table(document, result.materials)
        self._add_total_banner(document, result.total_cost)

        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _add_title(self, document) -> None:
        from docx.enum.text import WD_ALIGN_PARAGRAPH

        paragraph = document.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        _run(paragraph, fmt.TITLE, bold=True, size=16, color=_TITLE_COLOR)
        _space(paragraph, after=20)

    def _add_generated(self, document, timestamp: datetime) -> None:
        paragraph = document.add_paragraph()
        _run(paragraph, "Generated: ", bold=True)
        _run(paragraph, fmt.timestamp(timestamp))
        _space(paragraph, after=5)

    def _add_heading(self, document, text: str) -> None:
        heading = document.add_heading(level=2)
        _run(heading, text, bold=True, size=12, color=_HEADING_COLOR)
        _space(heading, before=15, after=10)

    def _add_materials_table(self, document, materials: list[Material]) -> None:
        from docx.enum.text import WD_ALIGN_PARAGRAPH

        center = WD_ALIGN_PARAGRAPH.CENTER
        table = document.add_table(rows=1, cols=len(fmt.TABLE_HEADERS))
        table.style = "Table Grid"

        for cell, header, width in zip(table.rows[0].cells, fmt.TABLE_HEADERS, _COLUMN_WIDTHS):
            _set_width(cell, width)
            _shade(cell, _HEADER_FILL)
            paragraph = cell.paragraphs[0]
            paragraph.alignment = center
            _run(paragraph, header, bold=True, size=11, color="000000")

        for index, material in enumerate(materials, start=1):
            cells = table.add_row().cells
            for cell, width in zip(cells, _COLUMN_WIDTHS):
                _set_width(cell, width)

            item = cells[0].paragraphs[0]
            item.alignment = center
            _run(item, f"{index}.", bold=True, size=10)

            _run(cells[1].paragraphs[0], material.name, bold=True, size=10)
            _run(cells[1].add_paragraph(), material.description, size=9)

            for cell, text, bold in (
                (cells[2], fmt.quantity(material.quantity, material.unit), False),
                (cells[3], fmt.money(material.unit_price), False),
                (cells[4], fmt.money(material.total_price), True),
            ):
                paragraph = cell.paragraphs[0]
                paragraph.alignment = center
                _run(paragraph, text, bold=bold, size=10)

    def _add_total_banner(self, document, total_cost: float) -> None:
        from docx.enum.text import WD_ALIGN_PARAGRAPH

        paragraph = document.add_paragraph()
        # pBdr must precede spacing and jc inside pPr.
        _border(paragraph, ("top", "bottom"), color=_TITLE_COLOR)
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        _run(paragraph, fmt.total_banner(total_cost), bold=True, size=14, color=_HEADING_COLOR)
        _space(paragraph, before=20, after=20)


# ------------------------------------------------------------------
# python-docx helpers
# ------------------------------------------------------------------


def _run(paragraph, text: str, bold: bool = False, size: float | None = None,
         color: str | None = None):
    from docx.shared import Pt, RGBColor

    run = paragraph.add_run(text)
    run.bold = bold
    if size is not None:
        run.font.size = Pt(size)
    if color is not None:
        run.font.color.rgb = RGBColor.from_string(color)
    return run


def _space(paragraph, before: float | None = None, after: float | None = None) -> None:
    from docx.shared import Pt

    if before is not None:
        paragraph.paragraph_format.space_before = Pt(before)
    if after is not None:
        paragraph.paragraph_format.space_after = Pt(after)


def _set_width(cell, twips: int) -> None:
    from docx.shared import Twips

    cell.width = Twips(twips)


def _shade(cell, fill: str) -> None:
    from docx.oxml import OxmlElement
    from docx.oxml.ns import qn

    shading = OxmlElement("w:shd")
    shading.set(qn("w:val"), "clear")
    shading.set(qn("w:color"), "auto")
    shading.set(qn("w:fill"), fill)
    cell._tc.get_or_add_tcPr().append(shading)


def _border(paragraph, sides: tuple[str, ...], color: str, size: int = 6) -> None:
    from docx.oxml import OxmlElement
    from docx.oxml.ns import qn

    p_pr = paragraph._p.get_or_add_pPr()
    borders = OxmlElement("w:pBdr")
    for side in sides:
        edge = OxmlElement(f"w:{side}")
        edge.set(qn("w:val"), "single")
        edge.set(qn("w:sz"), str(size))
        edge.set(qn("w:space"), "1")
        edge.set(qn("w:color"), color)
        borders.append(edge)
    p_pr.append(borders)
