"""Writers and regeneration. Importing this package registers every writer."""

from .base import (
    DocumentWriter, available_writers, document_direction, effective_direction,
    get_writer, register_writer, render_order
)
from .pagination import Placement, estimate_text_height, page_count, paginate
from .font_resolver import FontResolver
from .pdf_renderer import PDFRenderer
from .docx_renderer import DocxRenderer
from .json_renderer import JsonRenderer
from .regenerator import DocumentRegenerator

__all__ = [
    "DocumentWriter",
    "available_writers",
    "document_direction",
    "effective_direction",
    "get_writer",
    "register_writer",
    "render_order",
    "Placement",
    "estimate_text_height",
    "page_count",
    "paginate",
    "FontResolver",
    "PDFRenderer",
    "DocxRenderer",
    "JsonRenderer",
    "DocumentRegenerator",
]
