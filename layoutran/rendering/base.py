"""Writer interface, render order and document direction."""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Type
import logging

from ..core.models import Block, Direction, Layout, TextBlock, UNKNOWN_LANGUAGE, natural_direction
from ..extraction.layout import block_locator, sort_reading_order
from .pagination import Placement

logger = logging.getLogger(__name__)


class DocumentWriter(ABC):
    """Render a paginated layout to the bytes of one output format."""

    format_name: str = ""

    @abstractmethod
    def write(self, layout: Layout, placements: List[Placement], direction: Direction) -> bytes:
        """
        Produce the output document.

        Args:
            layout: Translated layout (read-only)
            placements: Output page and box of every block, in render order
            direction: Overall document direction

        Returns:
            Complete file contents
        """
        pass


_WRITERS: Dict[str, Type[DocumentWriter]] = {}


def register_writer(format_name: str):
    """Class decorator adding a writer to the registry."""
    def decorator(cls: Type[DocumentWriter]) -> Type[DocumentWriter]:
        cls.format_name = format_name
        _WRITERS[format_name] = cls
        return cls
    return decorator


def get_writer(format_name: str, **kwargs) -> DocumentWriter:
    """
    Instantiate the writer for a format; keyword arguments go to its constructor.

    Raises:
        KeyError: no writer is registered for the format
    """
    return _WRITERS[format_name](**kwargs)


def available_writers() -> List[str]:
    return sorted(_WRITERS)


def render_order(layout: Layout, row_tolerance: float = 5.0) -> List[Block]:
    """Blocks sorted by page, row and column; ``layout.blocks`` is untouched."""
    return sort_reading_order(list(layout.blocks), row_tolerance, block_locator)


def effective_direction(block: TextBlock) -> Direction:
    """Direction a block's text reads in: its language's, else the stored one."""
    if block.language and block.language != UNKNOWN_LANGUAGE:
        return natural_direction(block.language)
    return block.direction


def document_direction(blocks: Iterable[TextBlock]) -> Direction:
    """Majority vote over text blocks; ties and empty documents are LTR."""
    rtl = ltr = 0
    for block in blocks:
        if not block.text.strip():
            continue
        direction = effective_direction(block)
        if direction == Direction.RTL:
            rtl += 1
        elif direction == Direction.LTR:
            ltr += 1
    return Direction.RTL if rtl > ltr else Direction.LTR
