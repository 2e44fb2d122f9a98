"""DOCX writer built on python-docx.

Word lays out text itself, so placements only decide page breaks and
sizes. Right-to-left paragraphs, runs and tables are marked with the
OOXML bidi properties; isolate characters in translated text are kept.
"""

from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional
import logging
import zipfile

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor

from ..core.config import RenderConfig
from ..core.models import (
    Block, Direction, ImageBlock, Layout, Style, TableBlock, TextBlock, UNKNOWN_LANGUAGE,
    natural_direction
)
from .base import DocumentWriter, effective_direction, register_writer
from .font_resolver import FontResolver
from .pagination import Placement

logger = logging.getLogger(__name__)

FIXED_TIMESTAMP = datetime(2000, 1, 1)
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}

# Elements that must follow the inserted one, in schema order
PPR_AFTER_BIDI = (
    "w:adjustRightInd", "w:snapToGrid", "w:spacing", "w:ind", "w:contextualSpacing",
    "w:mirrorIndents", "w:suppressOverlap", "w:jc", "w:textDirection", "w:textAlignment",
    "w:textboxTightWrap", "w:outlineLvl", "w:divId", "w:cnfStyle", "w:rPr",
    "w:sectPr", "w:pPrChange",
)
SECTPR_AFTER_BIDI = ("w:rtlGutter", "w:docGrid", "w:printerSettings", "w:sectPrChange")
TBLPR_AFTER_BIDI = (
    "w:tblStyleRowBandSize", "w:tblStyleColBandSize", "w:tblW", "w:jc", "w:tblCellSpacing",
    "w:tblInd", "w:tblBorders", "w:shd", "w:tblLayout", "w:tblCellMar", "w:tblLook",
)


def _set_flag(parent, tag: str, successors=()) -> None:
    if parent.find(qn(tag)) is not None:
        return
    element = OxmlElement(tag)
    parent.insert_element_before(element, *successors)


def _rgb(color: str) -> Optional[RGBColor]:
    try:
        return RGBColor.from_string((color or "").lstrip("#").upper())
    except ValueError:
        return None


@register_writer("docx")
class DocxRenderer(DocumentWriter):
    """Write blocks as paragraphs, tables and pictures in render order."""

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()

    def write(self, layout: Layout, placements: List[Placement], direction: Direction) -> bytes:
        blocks: Dict[str, Block] = {b.id: b for b in layout.blocks}
        doc = Document()
        self._setup_section(doc, layout, direction)

        current_page = 0
        for placement in placements:
            if placement.page > current_page:
                for _ in range(placement.page - current_page):
                    doc.add_page_break()
                current_page = placement.page

            block = blocks[placement.block_id]
            if isinstance(block, TextBlock):
                self._add_text(doc, block, direction)
            elif isinstance(block, ImageBlock):
                self._add_image(doc, block, placement)
            elif isinstance(block, TableBlock):
                self._add_table(doc, block, placement)

        props = doc.core_properties
        props.author = "layoutran"
        props.created = FIXED_TIMESTAMP
        props.modified = FIXED_TIMESTAMP
        props.last_printed = FIXED_TIMESTAMP
        props.revision = 1

        buffer = BytesIO()
        doc.save(buffer)
        return _normalize_zip(buffer.getvalue())

    def _setup_section(self, doc, layout: Layout, direction: Direction) -> None:
        section = doc.sections[0]
        section.orientation = WD_ORIENT.LANDSCAPE if layout.orientation == "landscape" else WD_ORIENT.PORTRAIT
        section.page_width = Pt(layout.page_size.width)
        section.page_height = Pt(layout.page_size.height)
        section.top_margin = Pt(layout.margins.top)
        section.bottom_margin = Pt(layout.margins.bottom)
        section.left_margin = Pt(layout.margins.left)
        section.right_margin = Pt(layout.margins.right)
        if direction == Direction.RTL:
            _set_flag(section._sectPr, "w:bidi", SECTPR_AFTER_BIDI)

    def _format_paragraph(self, paragraph, text: str, style: Style, rtl: bool) -> None:
        paragraph.alignment = ALIGNMENTS.get(style.alignment, WD_ALIGN_PARAGRAPH.LEFT)
        if rtl:
            _set_flag(paragraph._p.get_or_add_pPr(), "w:bidi", PPR_AFTER_BIDI)

        run = paragraph.add_run(text)
        font = run.font
        name = FontResolver.docx_family(style)
        font.name = name
        font.size = Pt(style.size)
        font.bold = style.bold
        font.italic = style.italic
        font.underline = style.underline
        color = _rgb(style.color)
        if color is not None:
            font.color.rgb = color
        if rtl:
            font.rtl = True
            font.cs_bold = style.bold
            font.cs_italic = style.italic
            run._r.get_or_add_rPr().get_or_add_rFonts().set(qn("w:cs"), name)

    def _add_text(self, doc, block: TextBlock, document: Direction) -> None:
        direction = effective_direction(block)
        if block.language in (None, UNKNOWN_LANGUAGE) and block.direction == Direction.MIXED:
            direction = document
        self._format_paragraph(doc.add_paragraph(), block.text, block.style,
                               direction == Direction.RTL)

    def _add_image(self, doc, block: ImageBlock, placement: Placement) -> None:
        if not block.image_data:
            logger.debug(f"Image {block.id} has no data, skipping")
            return
        doc.add_picture(BytesIO(block.image_data), width=Pt(placement.width),
                        height=Pt(placement.height))

    def _add_table(self, doc, table: TableBlock, placement: Placement) -> None:
        _, cols = table.shape
        row_end = placement.row_end if placement.row_end is not None else len(table.rows)
        rows = table.rows[placement.row_start:row_end]
        if cols == 0 or not rows:
            return

        grid = doc.add_table(rows=len(rows), cols=cols)
        grid.style = "Table Grid"
        if table.style.direction == Direction.RTL:
            # Word mirrors the columns itself; cells stay in logical order
            _set_flag(grid._tbl.tblPr, "w:bidiVisual", TBLPR_AFTER_BIDI)

        for r, row in enumerate(rows):
            out_row = grid.rows[r]
            _set_flag(out_row._tr.get_or_add_trPr(), "w:cantSplit")
            for c, cell in enumerate(row):
                if cell.language not in (None, UNKNOWN_LANGUAGE):
                    rtl = natural_direction(cell.language) == Direction.RTL
                else:
                    rtl = cell.direction == Direction.RTL
                paragraph = out_row.cells[c].paragraphs[0]
                self._format_paragraph(paragraph, cell.content, cell.style, rtl)


def _normalize_zip(data: bytes) -> bytes:
    """Rewrite the package with fixed entry timestamps so equal input gives equal bytes."""
    source = zipfile.ZipFile(BytesIO(data))
    out = BytesIO()
    with zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as target:
        for info in source.infolist():
            entry = zipfile.ZipInfo(info.filename, date_time=ZIP_EPOCH)
            entry.compress_type = zipfile.ZIP_DEFLATED
            entry.external_attr = info.external_attr
            target.writestr(entry, source.read(info.filename))
    source.close()
    return out.getvalue()
