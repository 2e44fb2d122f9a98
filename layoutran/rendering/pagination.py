"""
Pagination of render-ordered blocks.

Translated text is usually longer than its source, so blocks are given an
estimated height and pushed to a fresh page when they no longer fit in
the usable area. Tables break between rows, never inside one.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import math

from ..core.config import RenderConfig
from ..core.models import Block, Margins, PageSize, TableBlock, TextBlock


@dataclass(frozen=True)
class Placement:
    """Where one block (or one run of table rows) lands in the output."""
    block_id: str
    page: int
    x: float
    y: float
    width: float
    height: float
    row_start: int = 0
    row_end: Optional[int] = None
    row_heights: Tuple[float, ...] = ()

    @property
    def bottom(self) -> float:
        return self.y + self.height


def estimate_text_height(
    text: str,
    width: float,
    size: float,
    line_height: float = 1.2,
    char_width_ratio: float = 0.5
) -> float:
    """Height of text wrapped into a box of the given width."""
    chars_per_line = max(1, int(width // max(size * char_width_ratio, 0.1)))
    lines = 0
    for paragraph in (text or "").split("\n"):
        lines += max(1, math.ceil(len(paragraph) / chars_per_line))
    return lines * size * line_height


def table_row_heights(table: TableBlock, config: RenderConfig) -> List[float]:
    """Estimated height of each row of a closed table."""
    rows, cols = table.shape
    if rows == 0:
        return []
    col_width = table.position.width / max(1, cols)
    floor = table.position.height / rows
    heights = []
    for row in table.rows:
        needed = max(
            (estimate_text_height(cell.content, col_width, cell.style.size,
                                  config.line_height, config.char_width_ratio)
             for cell in row),
            default=0.0
        )
        heights.append(max(floor, needed))
    return heights


def block_height(block: Block, config: RenderConfig) -> float:
    if isinstance(block, TextBlock):
        estimate = estimate_text_height(block.text, block.position.width, block.style.size,
                                        config.line_height, config.char_width_ratio)
        return max(block.position.height, estimate)
    if isinstance(block, TableBlock):
        return sum(table_row_heights(block, config))
    return block.position.height


def paginate(
    blocks: Sequence[Block],
    page_size: PageSize,
    margins: Margins,
    config: Optional[RenderConfig] = None
) -> List[Placement]:
    """
    Assign every block an output page and vertical position.

    Blocks keep their source page unless an earlier overflow pushed that
    page's content down. A block that would cross the bottom margin starts
    a new page at the top margin; content below it on the same source page
    moves with it. A block taller than the usable height is placed anyway.
    """
    config = config or RenderConfig()
    top = margins.top
    bottom = page_size.height - margins.bottom

    placements: List[Placement] = []
    added_pages = 0
    source_page: Optional[int] = None
    out_page = 0
    shift = 0.0

    for block in blocks:
        if block.page_index != source_page:
            source_page = block.page_index
            out_page = max(out_page, source_page + added_pages)
            shift = 0.0

        x, width = block.position.x, block.position.width
        y = max(top, block.position.y - shift) if shift else block.position.y

        if isinstance(block, TableBlock):
            heights = table_row_heights(block, config)
            chunk_start, chunk_y, cursor = 0, y, y
            moved = False
            for r, height in enumerate(heights):
                if cursor + height > bottom and cursor > top:
                    if r > chunk_start:
                        placements.append(Placement(block.id, out_page, x, chunk_y, width,
                                                    cursor - chunk_y, chunk_start, r,
                                                    tuple(heights[chunk_start:r])))
                    out_page += 1
                    added_pages += 1
                    moved = True
                    chunk_start, chunk_y, cursor = r, top, top
                cursor += height
            placements.append(Placement(block.id, out_page, x, chunk_y, width, cursor - chunk_y,
                                        chunk_start, len(heights), tuple(heights[chunk_start:])))
            if moved:
                shift = block.position.y + sum(heights) - cursor
            continue

        height = block_height(block, config)
        if y + height > bottom and y > top:
            out_page += 1
            added_pages += 1
            shift = block.position.y - top
            y = top
        placements.append(Placement(block.id, out_page, x, y, width, height))

    return placements


def page_count(placements: Sequence[Placement], minimum: int = 1) -> int:
    return max([minimum] + [p.page + 1 for p in placements])
