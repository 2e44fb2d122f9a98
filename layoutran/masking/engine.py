"""
Token protection for translation.

Numbers, markup-like tags, list-marker prefixes and hard whitespace are
swapped for opaque placeholders before text reaches a translation provider
and swapped back afterwards. Restoration is by token index, so a provider
may move tokens around freely, but a lost or duplicated required token
fails the block instead of emitting corrupted text.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Pattern
import logging

from layoutran.core.exceptions import PlaceholderMismatchError

logger = logging.getLogger(__name__)

TOKEN_TYPES = ("NUM", "TAG", "LIST", "WS")

BULLET_GLYPHS = "•●○◦▪▫■□‣⁃∙"


@dataclass
class MaskPattern:
    """Definition of a masking pattern."""
    name: str
    pattern: Pattern[str]
    priority: int = 0  # Higher priority patterns win overlaps
    required: bool = True  # Must survive translation


@dataclass
class MaskingConfig:
    """Configuration for the masking engine."""
    mask_numbers: bool = True
    mask_tags: bool = True
    mask_list_markers: bool = True
    mask_whitespace: bool = True
    collapse_spaces: bool = True

    # Validation settings
    strict_validation: bool = True  # Raise if required tokens can't be restored
    tolerant_unmasking: bool = True  # Accept "[ NUM ] 0 [/ NUM ]" variants


@dataclass
class MaskInfo:
    """One protected substring."""
    original: str
    placeholder: str
    mask_type: str
    index: int
    required: bool = True


@dataclass
class MaskedText:
    """Text with placeholders and the originals needed to restore it."""
    text: str
    masks: List[MaskInfo] = field(default_factory=list)

    @property
    def has_masks(self) -> bool:
        return len(self.masks) > 0


def make_placeholder(mask_type: str, index: int) -> str:
    return f"[{mask_type}]{index}[/{mask_type}]"


class MaskingEngine:
    """Substitute and restore non-prose tokens."""

    _EXACT = re.compile(r"\[(NUM|TAG|LIST|WS)\](\d+)\[/\1\]")
    _TOLERANT = re.compile(r"\[\s*(NUM|TAG|LIST|WS)\s*\]\s*(\d+)\s*\[\s*/\s*(NUM|TAG|LIST|WS)\s*\]",
                           re.IGNORECASE)
    _FRAGMENT = re.compile(r"\[\s*/?\s*(?:NUM|TAG|LIST|WS)\s*\]", re.IGNORECASE)

    def __init__(self, config: Optional[MaskingConfig] = None):
        self.config = config or MaskingConfig()
        self.patterns = self._initialize_patterns()

    def _initialize_patterns(self) -> List[MaskPattern]:
        patterns = []

        if self.config.mask_list_markers:
            patterns.append(MaskPattern(
                name="LIST",
                pattern=re.compile(
                    r"^[ ]*(?:[" + BULLET_GLYPHS + r"\-\*–]|\d{1,3}[.)])[ ]+",
                    re.MULTILINE
                ),
                priority=100,
                required=False
            ))

        if self.config.mask_tags:
            patterns.append(MaskPattern(
                name="TAG",
                pattern=re.compile(r"</?[A-Za-z][^<>\n]*>|&[a-zA-Z]+;|&#\d+;"),
                priority=90
            ))

        if self.config.mask_numbers:
            patterns.append(MaskPattern(
                name="NUM",
                pattern=re.compile(r"\d+(?:[.,:/]\d+)*"),
                priority=80
            ))

        if self.config.mask_whitespace:
            patterns.append(MaskPattern(
                name="WS",
                pattern=re.compile(r"[\t\r\n]+"),
                priority=70,
                required=False
            ))

        return sorted(patterns, key=lambda p: p.priority, reverse=True)

    def mask(self, text: str) -> MaskedText:
        """Replace protected substrings with indexed placeholders."""
        if not text:
            return MaskedText(text=text or "")

        matches: List[Tuple[int, int, MaskPattern]] = []
        for pattern_def in self.patterns:
            for match in pattern_def.pattern.finditer(text):
                start, end = match.span()
                if start == end:
                    continue
                matches.append((start, end, pattern_def))

        # Higher priority first, then earlier; drop anything overlapping an accepted match
        matches.sort(key=lambda m: (-m[2].priority, m[0]))
        accepted: List[Tuple[int, int, MaskPattern]] = []
        for start, end, pattern_def in matches:
            if any(start < a_end and end > a_start for a_start, a_end, _ in accepted):
                continue
            accepted.append((start, end, pattern_def))
        accepted.sort(key=lambda m: m[0])

        pieces = []
        masks = []
        cursor = 0
        for index, (start, end, pattern_def) in enumerate(accepted):
            pieces.append(self._normalize(text[cursor:start]))
            placeholder = make_placeholder(pattern_def.name, index)
            masks.append(MaskInfo(
                original=text[start:end],
                placeholder=placeholder,
                mask_type=pattern_def.name,
                index=index,
                required=pattern_def.required
            ))
            pieces.append(placeholder)
            cursor = end
        pieces.append(self._normalize(text[cursor:]))

        return MaskedText(text="".join(pieces), masks=masks)

    def _normalize(self, segment: str) -> str:
        if self.config.collapse_spaces:
            return re.sub(r" {2,}", " ", segment)
        return segment

    def unmask(self, translated: str, masks: List[MaskInfo]) -> str:
        """
        Restore placeholders in a translation.

        Raises:
            PlaceholderMismatchError: a required token is missing, a token
                appears twice, an unknown token appears, or a placeholder
                fragment is left behind (strict validation only)
        """
        if not masks and not self._FRAGMENT.search(translated or ""):
            return translated

        by_index: Dict[int, MaskInfo] = {m.index: m for m in masks}
        seen: Dict[int, int] = {}
        unexpected: List[str] = []

        def replace(match: re.Match) -> str:
            opening = match.group(1).upper()
            index = int(match.group(2))
            closing = match.group(3).upper() if match.lastindex and match.lastindex >= 3 else opening
            mask = by_index.get(index)
            if mask is None or mask.mask_type != opening or closing != opening:
                unexpected.append(match.group(0))
                return match.group(0)
            seen[index] = seen.get(index, 0) + 1
            if seen[index] > 1:
                unexpected.append(match.group(0))
            return mask.original

        regex = self._TOLERANT if self.config.tolerant_unmasking else self._EXACT
        restored = regex.sub(replace, translated)

        leftovers = self._FRAGMENT.findall(restored)
        unexpected.extend(leftovers)
        missing = [m.placeholder for m in masks if m.required and m.index not in seen]

        if missing or unexpected:
            message = (f"Placeholder restoration mismatch: "
                       f"{len(missing)} missing, {len(unexpected)} unexpected")
            if self.config.strict_validation:
                raise PlaceholderMismatchError(message, missing=missing, unexpected=unexpected)
            logger.warning(message)

        return restored

    def get_statistics(self, masked: MaskedText) -> Dict[str, int]:
        """Count masks by type."""
        counts = {name: 0 for name in TOKEN_TYPES}
        for mask in masked.masks:
            counts[mask.mask_type] += 1
        return counts
