"""Post-processing of translated text by block kind, plus bidi isolation."""

import re
from typing import Optional, Tuple

from ..core.models import BlockKind, Direction, natural_direction
from ..masking.engine import BULLET_GLYPHS

# Unicode directional isolates
LRI = "\u2066"
RLI = "\u2067"
PDI = "\u2069"

BULLET_PREFIX = re.compile(r"^\s*([" + BULLET_GLYPHS + r"\-\*–])\s*")
NUMBER_PREFIX = re.compile(r"^\s*(\d+[.)])\s*")
ISOLATES = re.compile(r"[\u2066-\u2069]")


def capitalize_first(text: str) -> str:
    """Upper-case the first letter, leaving any leading marks alone."""
    for i, ch in enumerate(text):
        if ch.isalpha():
            return text[:i] + ch.upper() + text[i + 1:]
        if not ch.isspace() and ch not in "\"'([{«“":
            break
    return text


def _reprefix(source: str, translated: str, pattern: re.Pattern) -> str:
    match = pattern.match(source)
    if match is None:
        return translated
    marker = match.group(1)
    if translated.lstrip().startswith(marker):
        return translated
    return f"{marker} {translated.lstrip()}"


def postprocess_by_kind(kind: BlockKind, source: str, translated: str) -> str:
    """
    Repair a translation according to the block kind.

    Headings get their first letter capitalised; bullets and numbered
    items get the source marker back if the provider dropped it.
    """
    if kind == BlockKind.HEADING:
        return capitalize_first(translated)
    if kind == BlockKind.BULLET:
        return _reprefix(source, translated, BULLET_PREFIX)
    if kind == BlockKind.NUMBERED:
        return _reprefix(source, translated, NUMBER_PREFIX)
    return translated


def strip_isolates(text: str) -> str:
    return ISOLATES.sub("", text or "")


def apply_direction(
    text: str,
    source_direction: Direction,
    target_language: Optional[str]
) -> Tuple[str, Direction]:
    """
    Isolate translated text whose source ran in the other direction.

    Returns the (possibly wrapped) text and the resulting direction:
    ``mixed`` when wrapped, the target's natural direction otherwise.
    """
    target_direction = natural_direction(target_language)
    if source_direction in (Direction.LTR, Direction.RTL) and source_direction != target_direction:
        opener = RLI if target_direction == Direction.RTL else LRI
        return f"{opener}{strip_isolates(text)}{PDI}", Direction.MIXED
    return text, target_direction
