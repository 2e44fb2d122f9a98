"""PDF reader built on PyMuPDF."""

from typing import List, Dict, Any
import logging

import fitz  # PyMuPDF

from ..core.models import PositionedRun, SourcePage
from .base import DocumentReader, register_reader

logger = logging.getLogger(__name__)

# PyMuPDF span flag bits
FLAG_ITALIC = 2
FLAG_BOLD = 16


def color_to_hex(color: Any) -> str:
    """Convert a PyMuPDF sRGB integer (or float triple) to #rrggbb."""
    if isinstance(color, (tuple, list)) and len(color) >= 3:
        r, g, b = (max(0, min(255, int(round(c * 255)))) for c in color[:3])
        return f"#{r:02x}{g:02x}{b:02x}"
    try:
        value = int(color)
    except (TypeError, ValueError):
        return "#000000"
    return f"#{(value >> 16) & 255:02x}{(value >> 8) & 255:02x}{value & 255:02x}"


@register_reader("pdf")
class PDFParser(DocumentReader):
    """
    Extract positioned spans and images from a PDF.

    Every non-empty span becomes one run; merging runs into blocks is the
    extractor's job.
    """

    def read(self, data: bytes) -> List[SourcePage]:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            pages = []
            for page_num in range(len(doc)):
                page = doc[page_num]
                runs = self._page_runs(page.get_text("dict"), page_num)
                pages.append(SourcePage(
                    index=page_num,
                    width=page.rect.width,
                    height=page.rect.height,
                    runs=runs
                ))
            logger.info(f"Read {sum(len(p.runs) for p in pages)} runs from {len(pages)} PDF pages")
            return pages
        finally:
            doc.close()

    def _page_runs(self, text_dict: Dict[str, Any], page_num: int) -> List[PositionedRun]:
        runs = []
        for block_dict in text_dict.get("blocks", []):
            bbox = block_dict.get("bbox", (0, 0, 0, 0))

            if block_dict.get("type") == 1:
                runs.append(PositionedRun(
                    text="",
                    x=bbox[0],
                    y=bbox[1],
                    width=bbox[2] - bbox[0],
                    height=bbox[3] - bbox[1],
                    page_index=page_num,
                    kind="image",
                    image_data=block_dict.get("image") or b""
                ))
                continue

            for line in block_dict.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text.strip():
                        continue
                    x0, y0, x1, y1 = span.get("bbox", bbox)
                    flags = span.get("flags", 0)
                    runs.append(PositionedRun(
                        text=text,
                        x=x0,
                        y=y0,
                        width=x1 - x0,
                        height=y1 - y0,
                        font=span.get("font", "Helvetica"),
                        size=round(span.get("size", 12.0), 2),
                        color=color_to_hex(span.get("color", 0)),
                        bold=bool(flags & FLAG_BOLD),
                        italic=bool(flags & FLAG_ITALIC),
                        page_index=page_num
                    ))
        return runs

    def render_page_images(self, data: bytes, dpi: int = 300) -> List[bytes]:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            return [doc[i].get_pixmap(dpi=dpi).tobytes("png") for i in range(len(doc))]
        finally:
            doc.close()
