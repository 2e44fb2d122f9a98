"""Heuristic block classification."""

import re

from ..core.models import BlockKind
from ..masking.engine import BULLET_GLYPHS

NUMBERED_PATTERN = re.compile(r"^\d+\.")
BULLET_PATTERN = re.compile(r"^[" + BULLET_GLYPHS + r"]")


def classify_block(
    text: str,
    font_size: float,
    heading_size: float = 14.0,
    label_max_length: int = 50,
    is_ocr: bool = False
) -> BlockKind:
    """Classify a block from its text and font size.

    OCR output carries no trustworthy font metrics, so it gets its own kind.
    """
    if is_ocr:
        return BlockKind.OCR

    stripped = (text or "").strip()

    if font_size > heading_size:
        return BlockKind.HEADING
    if BULLET_PATTERN.match(stripped):
        return BlockKind.BULLET
    if NUMBERED_PATTERN.match(stripped):
        return BlockKind.NUMBERED
    if len(stripped) < label_max_length and ":" in stripped:
        return BlockKind.LABEL
    return BlockKind.PARAGRAPH
