"""PDF writer built on PyMuPDF."""

import html
import logging
from typing import Dict, List, Optional

import fitz  # PyMuPDF

from ..core.config import RenderConfig
from ..core.models import (
    Block, Direction, ImageBlock, Layout, Style, TableBlock, TextBlock, UNKNOWN_LANGUAGE,
    natural_direction
)
from ..translation.postprocess import strip_isolates
from .base import DocumentWriter, effective_direction, register_writer
from .font_resolver import FontResolver
from .pagination import Placement, page_count

logger = logging.getLogger(__name__)

# Fixed metadata keeps output bytes reproducible
FIXED_DATE = "D:20000101000000Z"
CELL_PADDING = 2.0


@register_writer("pdf")
class PDFRenderer(DocumentWriter):
    """
    Draw every block at its placement on fresh pages.

    Text goes through ``insert_htmlbox`` so that right-to-left paragraphs
    are shaped and ordered by MuPDF; direction is expressed with the
    ``dir`` attribute instead of embedded control characters.
    """

    def __init__(self, config: Optional[RenderConfig] = None,
                 font_resolver: Optional[FontResolver] = None):
        self.config = config or RenderConfig()
        self.fonts = font_resolver or FontResolver()

    def write(self, layout: Layout, placements: List[Placement], direction: Direction) -> bytes:
        blocks: Dict[str, Block] = {b.id: b for b in layout.blocks}
        doc = fitz.open()
        try:
            for _ in range(page_count(placements, layout.page_count)):
                doc.new_page(width=layout.page_size.width, height=layout.page_size.height)

            for placement in placements:
                block = blocks[placement.block_id]
                page = doc[placement.page]
                if isinstance(block, TextBlock):
                    self._draw_text(page, block, placement, direction)
                elif isinstance(block, ImageBlock):
                    self._draw_image(page, block, placement)
                elif isinstance(block, TableBlock):
                    self._draw_table(page, block, placement)

            doc.set_metadata({
                "producer": "layoutran",
                "creator": "layoutran",
                "title": "",
                "author": "",
                "subject": "",
                "keywords": "",
                "creationDate": FIXED_DATE,
                "modDate": FIXED_DATE,
            })
            return doc.tobytes(garbage=3, deflate=True, no_new_id=True)
        finally:
            doc.close()

    def _html(self, text: str, style: Style, dir_attr: str, font_face: Optional[str]) -> str:
        body = html.escape(strip_isolates(text)).replace("\n", "<br/>")
        family = f"{font_face}, {FontResolver.css_family(style)}" if font_face else FontResolver.css_family(style)
        css = [
            f"font-family: {family}",
            f"font-size: {style.size:.2f}px",
            f"color: {style.color}",
            f"text-align: {style.alignment}",
            f"line-height: {self.config.line_height}",
            "margin: 0",
        ]
        if style.bold:
            css.append("font-weight: bold")
        if style.italic:
            css.append("font-style: italic")
        if style.underline:
            css.append("text-decoration: underline")
        return f'<p dir="{dir_attr}" style="{"; ".join(css)}">{body}</p>'

    def _insert_html(self, page, rect: fitz.Rect, text: str, style: Style,
                     dir_attr: str, language: Optional[str], block_id: str) -> None:
        if not text.strip() or rect.is_empty:
            return
        font_file = self.fonts.get_font_for_language(language)
        css = None
        archive = None
        face = None
        if font_file is not None:
            face = "scriptfont"
            css = f"@font-face {{font-family: {face}; src: url({font_file.name});}}"
            archive = fitz.Archive(str(font_file.parent))

        scale_low = 0 if self.config.shrink_to_fit else 1
        spare, _ = page.insert_htmlbox(rect, self._html(text, style, dir_attr, face),
                                       css=css, archive=archive, scale_low=scale_low)
        if spare < 0:
            logger.warning(f"Text of {block_id} does not fit its box")

    def _dir_for(self, block: TextBlock, document: Direction) -> str:
        if block.language in (None, UNKNOWN_LANGUAGE) and block.direction == Direction.MIXED:
            return document.value
        return effective_direction(block).value

    def _draw_text(self, page, block: TextBlock, placement: Placement, document: Direction) -> None:
        rect = fitz.Rect(placement.x, placement.y,
                         placement.x + placement.width, placement.y + placement.height)
        self._insert_html(page, rect, block.text, block.style,
                          self._dir_for(block, document), block.language, block.id)

    def _draw_image(self, page, block: ImageBlock, placement: Placement) -> None:
        if not block.image_data:
            logger.debug(f"Image {block.id} has no data, skipping")
            return
        rect = fitz.Rect(placement.x, placement.y,
                         placement.x + placement.width, placement.y + placement.height)
        page.insert_image(rect, stream=block.image_data)

    def _cell_dir(self, cell) -> str:
        if cell.language not in (None, UNKNOWN_LANGUAGE):
            return natural_direction(cell.language).value
        return Direction.RTL.value if cell.direction == Direction.RTL else Direction.LTR.value

    def _draw_table(self, page, table: TableBlock, placement: Placement) -> None:
        _, cols = table.shape
        if cols == 0:
            return
        col_width = placement.width / cols
        rtl = table.style.direction == Direction.RTL
        border = table.style.border_width or self.config.table_border_width

        y = placement.y
        for offset, height in enumerate(placement.row_heights):
            row = table.rows[placement.row_start + offset]
            for c, cell in enumerate(row):
                # Right-to-left tables read from the right edge
                slot = cols - 1 - c if rtl else c
                x0 = placement.x + slot * col_width
                rect = fitz.Rect(x0, y, x0 + col_width, y + height)
                page.draw_rect(rect, color=(0, 0, 0), width=border)
                inner = fitz.Rect(rect.x0 + CELL_PADDING, rect.y0 + CELL_PADDING,
                                  rect.x1 - CELL_PADDING, rect.y1 - CELL_PADDING)
                dir_attr = self._cell_dir(cell)
                self._insert_html(page, inner, cell.content, cell.style, dir_attr,
                                  cell.language, f"{table.id}:{placement.row_start + offset}:{c}")
            y += height
