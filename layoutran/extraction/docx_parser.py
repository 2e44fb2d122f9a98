"""DOCX reader built on python-docx.

Flow documents carry no page coordinates. Paragraphs get a synthetic y
that only preserves order, and table cells are tagged with an explicit
CellRef instead of being detected geometrically.
"""

from io import BytesIO
from typing import List, Optional, Tuple
import logging

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph

from ..core.models import CellRef, Margins, PositionedRun, SourcePage
from .base import DocumentReader, register_reader

logger = logging.getLogger(__name__)

EMU_PER_POINT = 12700
DEFAULT_SIZE = 12.0
HEADING_SIZE = 16.0

ALIGNMENTS = {
    WD_ALIGN_PARAGRAPH.LEFT: "left",
    WD_ALIGN_PARAGRAPH.CENTER: "center",
    WD_ALIGN_PARAGRAPH.RIGHT: "right",
    WD_ALIGN_PARAGRAPH.JUSTIFY: "justify",
}


def _paragraph_font(para: Paragraph) -> Tuple[str, float, str, bool, bool, bool]:
    """Font of the first run with text, falling back to the paragraph style."""
    style_font = para.style.font if para.style is not None else None
    name = style_font.name if style_font is not None and style_font.name else "Helvetica"
    size = style_font.size.pt if style_font is not None and style_font.size else None
    color = "#000000"
    bold = italic = underline = False

    for run in para.runs:
        if not run.text.strip():
            continue
        if run.font.name:
            name = run.font.name
        if run.font.size:
            size = run.font.size.pt
        if run.font.color is not None and run.font.color.rgb is not None:
            color = f"#{str(run.font.color.rgb).lower()}"
        bold = bool(run.bold)
        italic = bool(run.italic)
        underline = bool(run.underline)
        break

    if size is None:
        style_name = para.style.name if para.style is not None else ""
        size = HEADING_SIZE if style_name.startswith(("Heading", "Title")) else DEFAULT_SIZE
    return name, float(size), color, bold, italic, underline


@register_reader("docx")
class DocxParser(DocumentReader):
    """Extract paragraphs, table cells and inline images from a DOCX file."""

    def __init__(self, line_height: float = 1.2):
        self.line_height = line_height

    def read(self, data: bytes) -> List[SourcePage]:
        doc = Document(BytesIO(data))
        section = doc.sections[0] if doc.sections else None
        width = section.page_width.pt if section is not None and section.page_width else 595.0
        height = section.page_height.pt if section is not None and section.page_height else 842.0
        left = section.left_margin.pt if section is not None and section.left_margin else 72.0
        top = section.top_margin.pt if section is not None and section.top_margin else 72.0
        right = section.right_margin.pt if section is not None and section.right_margin else left
        bottom = section.bottom_margin.pt if section is not None and section.bottom_margin else top

        runs: List[PositionedRun] = []
        cursor = top
        table_count = 0

        for child in doc.element.body.iterchildren():
            if child.tag == qn("w:p"):
                para = Paragraph(child, doc)
                cursor = self._read_paragraph(doc, para, left, width - left - right, cursor, runs)
            elif child.tag == qn("w:tbl"):
                table_id = f"docx-table-{table_count}"
                table_count += 1
                cursor = self._read_table(Table(child, doc), table_id, left, width - left - right, cursor, runs)

        logger.info(f"Read {len(runs)} runs and {table_count} tables from DOCX")
        return [SourcePage(index=0, width=width, height=height, runs=runs, has_geometry=False,
                           margins=Margins(top=top, right=right, bottom=bottom, left=left))]

    def _read_paragraph(self, doc, para: Paragraph, x: float, width: float,
                        y: float, runs: List[PositionedRun],
                        cell: Optional[CellRef] = None) -> float:
        name, size, color, bold, italic, underline = _paragraph_font(para)
        alignment = ALIGNMENTS.get(para.alignment, "left")
        line = size * self.line_height

        for blob, img_width, img_height in self._inline_images(doc, para):
            runs.append(PositionedRun(
                text="", x=x, y=y, width=img_width, height=img_height,
                kind="image", image_data=blob
            ))
            y += img_height

        if para.text.strip() or cell is not None:
            runs.append(PositionedRun(
                text=para.text,
                x=x, y=y, width=width, height=line,
                font=name, size=size, color=color,
                bold=bold, italic=italic, underline=underline,
                alignment=alignment,
                cell=cell
            ))
            y += line
        return y

    def _read_table(self, table: Table, table_id: str, x: float, width: float,
                    y: float, runs: List[PositionedRun]) -> float:
        for r, row in enumerate(table.rows):
            cells = row.cells
            col_width = width / max(1, len(cells))
            row_bottom = y
            previous = None
            for c, cell in enumerate(cells):
                ref = CellRef(table_id=table_id, row=r, col=c)
                # Horizontally merged cells repeat the same element
                if previous is not None and cell._tc is previous:
                    runs.append(PositionedRun(text="", x=x + c * col_width, y=y,
                                              width=col_width, height=0, cell=ref))
                    continue
                previous = cell._tc
                text = "\n".join(p.text for p in cell.paragraphs)
                first = cell.paragraphs[0] if cell.paragraphs else None
                if first is not None:
                    name, size, color, bold, italic, underline = _paragraph_font(first)
                    alignment = ALIGNMENTS.get(first.alignment, "left")
                else:
                    name, size, color, bold, italic, underline = "Helvetica", DEFAULT_SIZE, "#000000", False, False, False
                    alignment = "left"
                height = size * self.line_height * max(1, len(cell.paragraphs))
                runs.append(PositionedRun(
                    text=text,
                    x=x + c * col_width, y=y, width=col_width, height=height,
                    font=name, size=size, color=color,
                    bold=bold, italic=italic, underline=underline,
                    alignment=alignment,
                    cell=ref
                ))
                row_bottom = max(row_bottom, y + height)
            y = row_bottom
        return y

    def _inline_images(self, doc, para: Paragraph) -> List[Tuple[bytes, float, float]]:
        images = []
        for drawing in para._p.xpath(".//w:drawing"):
            blips = drawing.xpath(".//a:blip/@r:embed")
            if not blips:
                continue
            part = doc.part.related_parts.get(blips[0])
            if part is None:
                continue
            extents = drawing.xpath(".//wp:extent")
            img_width = img_height = 0.0
            if extents:
                img_width = int(extents[0].get("cx", 0)) / EMU_PER_POINT
                img_height = int(extents[0].get("cy", 0)) / EMU_PER_POINT
            images.append((part.blob, img_width, img_height))
        return images
