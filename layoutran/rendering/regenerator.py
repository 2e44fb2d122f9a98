"""
Layout-faithful regeneration.

Takes a translated Layout, orders its blocks, decides the document
direction, paginates and hands the result to the writer registered for
the requested format.
"""

from typing import Optional
import asyncio
import logging

from ..core.config import RenderConfig, SUPPORTED_TARGET_FORMATS
from ..core.exceptions import GenerationError, LayoutranError
from ..core.models import Layout, TextBlock
from .base import document_direction, get_writer, render_order
from .pagination import page_count, paginate

logger = logging.getLogger(__name__)


class DocumentRegenerator:
    """Render a Layout to PDF, DOCX or JSON bytes."""

    def __init__(self, config: Optional[RenderConfig] = None, row_tolerance: float = 5.0):
        self.config = config or RenderConfig()
        self.row_tolerance = row_tolerance

    async def generate(self, layout: Layout, target_format: str) -> bytes:
        """
        Produce the output document.

        The layout is read, never modified.

        Raises:
            GenerationError: unsupported format or writer failure
        """
        target_format = (target_format or "").lower().lstrip(".")
        if target_format not in SUPPORTED_TARGET_FORMATS:
            raise GenerationError(f"Unsupported target format: {target_format}",
                                  target_format=target_format)
        try:
            writer = get_writer(target_format, config=self.config)
        except KeyError:
            raise GenerationError(f"No writer registered for {target_format}",
                                  target_format=target_format)

        blocks = render_order(layout, self.row_tolerance)
        direction = document_direction(b for b in blocks if isinstance(b, TextBlock))
        placements = paginate(blocks, layout.page_size, layout.margins, self.config)
        logger.info(f"Rendering {len(blocks)} blocks to {target_format} on "
                    f"{page_count(placements, layout.page_count)} pages ({direction.value})")

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, writer.write, layout, placements, direction)
        except LayoutranError:
            raise
        except Exception as e:
            raise GenerationError(f"Failed to write {target_format}: {e}",
                                  target_format=target_format, original_error=e)
