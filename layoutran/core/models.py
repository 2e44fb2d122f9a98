"""
Core data models for layoutran.

This module defines the block model shared by every pipeline stage:
text and image blocks (a tagged union), table grids, and the page layout
that holds them in reading order. Raw reader output (positioned runs)
lives here too so that extraction heuristics and readers agree on one type.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Dict, Optional, Any, Iterator, Tuple, Union, ClassVar
import base64
import json


UNKNOWN_LANGUAGE = "unknown"

# Languages written right-to-left
RTL_LANGUAGES = frozenset({"he", "iw", "ar", "fa", "ur", "yi", "ps", "sd"})


class ContentType(str, Enum):
    """Tag of a content block."""
    TEXT = "text"
    IMAGE = "image"


class BlockKind(str, Enum):
    """Structural classification of a text block."""
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    BULLET = "bullet"
    NUMBERED = "numbered"
    LABEL = "label"
    OCR = "ocr"


class Direction(str, Enum):
    """Text direction of a block or cell."""
    LTR = "ltr"
    RTL = "rtl"
    MIXED = "mixed"


def natural_direction(language: Optional[str]) -> Direction:
    """Return the direction a language is written in."""
    if language and language.lower().split("-")[0] in RTL_LANGUAGES:
        return Direction.RTL
    return Direction.LTR


def compute_needs_translation(
    language: Optional[str],
    target_language: Optional[str],
    failed: bool = False
) -> bool:
    """Derive the translation flag from a detected language."""
    if failed or not language or language == UNKNOWN_LANGUAGE:
        return False
    if not target_language:
        return False
    return language.lower() != target_language.lower()


@dataclass
class Position:
    """Page-relative box of a block."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def union(self, other: Position) -> Position:
        """Smallest box containing both boxes."""
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        x1 = max(self.right, other.right)
        y1 = max(self.bottom, other.bottom)
        return Position(x=x0, y=y0, width=x1 - x0, height=y1 - y0)


@dataclass
class Style:
    """Font and paragraph attributes of a block or cell."""
    font: str = "Helvetica"
    size: float = 12.0
    color: str = "#000000"
    alignment: str = "left"  # left, center, right, justify
    bold: bool = False
    italic: bool = False
    underline: bool = False


@dataclass
class PageSize:
    width: float = 595.0
    height: float = 842.0


@dataclass
class Margins:
    top: float = 72.0
    right: float = 72.0
    bottom: float = 72.0
    left: float = 72.0


@dataclass
class Column:
    x: float
    width: float


@dataclass
class TextBlock:
    """
    One unit of text content.

    ``needs_translation`` is never set directly once a language is known:
    it is recomputed by :meth:`update_language` from the language and the
    target language.
    """
    content_type: ClassVar[ContentType] = ContentType.TEXT

    id: str
    text: str
    position: Position
    style: Style = field(default_factory=Style)
    kind: BlockKind = BlockKind.PARAGRAPH
    language: Optional[str] = None
    direction: Direction = Direction.LTR
    needs_translation: bool = False
    page_index: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def translation_failed(self) -> bool:
        return bool(self.metadata.get("translation_failed"))

    def update_language(self, language: Optional[str], target_language: Optional[str]) -> TextBlock:
        """Set the language and recompute the translation flag."""
        self.language = language
        self.needs_translation = compute_needs_translation(
            language, target_language, self.translation_failed
        )
        return self

    def mark_failed(self, reason: str) -> None:
        """Flag a failed translation; the block is never retried."""
        self.metadata["translation_failed"] = True
        self.metadata["failure_reason"] = reason
        self.needs_translation = False


@dataclass
class ImageBlock:
    """Image content placed at a fixed position; never translated."""
    content_type: ClassVar[ContentType] = ContentType.IMAGE

    id: str
    position: Position
    image_data: bytes = b""
    page_index: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def needs_translation(self) -> bool:
        return False


ContentBlock = Union[TextBlock, ImageBlock]


@dataclass
class TableCell:
    """One grid cell; its content may change, its place in the grid may not."""
    content: str = ""
    style: Style = field(default_factory=Style)
    needs_translation: bool = False
    language: Optional[str] = None
    direction: Direction = Direction.LTR
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def translation_failed(self) -> bool:
        return bool(self.metadata.get("translation_failed"))

    def update_language(self, language: Optional[str], target_language: Optional[str]) -> TableCell:
        self.language = language
        self.needs_translation = compute_needs_translation(
            language, target_language, self.translation_failed
        )
        return self

    def mark_failed(self, reason: str) -> None:
        self.metadata["translation_failed"] = True
        self.metadata["failure_reason"] = reason
        self.needs_translation = False


@dataclass
class TableStyle:
    direction: Direction = Direction.LTR
    border_width: float = 0.5


class TableClosedError(RuntimeError):
    """Raised when a closed table's shape would change."""


@dataclass
class TableBlock:
    """
    Grid container.

    Rows are appended while the table is open. :meth:`close` pads rows to a
    rectangle, freezes the row and column count and computes the table
    direction by majority vote over its cells.
    """
    id: str
    position: Position
    rows: List[List[TableCell]] = field(default_factory=list)
    style: TableStyle = field(default_factory=TableStyle)
    page_index: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    closed: bool = False

    def add_row(self, cells: List[TableCell]) -> None:
        if self.closed:
            raise TableClosedError(f"Table {self.id} is closed")
        self.rows.append(list(cells))

    def close(self) -> TableBlock:
        if self.closed:
            return self
        width = max((len(row) for row in self.rows), default=0)
        frozen = []
        for row in self.rows:
            padding = [TableCell(style=row[-1].style if row else Style())
                       for _ in range(width - len(row))]
            frozen.append(tuple(list(row) + padding))
        self.rows = tuple(frozen)
        self.style.direction = self._vote_direction()
        self.closed = True
        return self

    def _vote_direction(self) -> Direction:
        rtl = ltr = 0
        for _, _, cell in self.cells():
            if not cell.content.strip():
                continue
            if cell.direction == Direction.RTL:
                rtl += 1
            else:
                ltr += 1
        return Direction.RTL if rtl > ltr else Direction.LTR

    @property
    def shape(self) -> Tuple[int, int]:
        return len(self.rows), (len(self.rows[0]) if self.rows else 0)

    def cells(self) -> Iterator[Tuple[int, int, TableCell]]:
        for r, row in enumerate(self.rows):
            for c, cell in enumerate(row):
                yield r, c, cell

    def cell(self, row: int, col: int) -> TableCell:
        return self.rows[row][col]


Block = Union[TextBlock, ImageBlock, TableBlock]


@dataclass
class Layout:
    """Structural description of one document: geometry plus ordered blocks."""
    page_size: PageSize = field(default_factory=PageSize)
    margins: Margins = field(default_factory=Margins)
    orientation: str = "portrait"
    columns: List[Column] = field(default_factory=list)
    blocks: List[Block] = field(default_factory=list)
    page_count: int = 1
    source_format: Optional[str] = None
    target_language: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def text_blocks(self) -> List[TextBlock]:
        return [b for b in self.blocks if isinstance(b, TextBlock)]

    @property
    def image_blocks(self) -> List[ImageBlock]:
        return [b for b in self.blocks if isinstance(b, ImageBlock)]

    @property
    def tables(self) -> List[TableBlock]:
        return [b for b in self.blocks if isinstance(b, TableBlock)]

    def get_block(self, block_id: str) -> Optional[Block]:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def retarget(self, target_language: str) -> None:
        """Recompute every translation flag against a new target language."""
        self.target_language = target_language
        for block in self.blocks:
            if isinstance(block, TextBlock):
                block.update_language(block.language, target_language)
            elif isinstance(block, TableBlock):
                for _, _, cell in block.cells():
                    cell.update_language(cell.language, target_language)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "page_size": asdict(self.page_size),
            "margins": asdict(self.margins),
            "orientation": self.orientation,
            "columns": [asdict(c) for c in self.columns],
            "page_count": self.page_count,
            "source_format": self.source_format,
            "target_language": self.target_language,
            "metadata": self.metadata,
            "blocks": [_block_to_dict(b) for b in self.blocks],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False,
                          sort_keys=True, default=str)


def _block_to_dict(block: Block) -> Dict[str, Any]:
    if isinstance(block, TextBlock):
        data = asdict(block)
        data["content_type"] = ContentType.TEXT.value
        data["kind"] = block.kind.value
        data["direction"] = block.direction.value
        return data
    if isinstance(block, ImageBlock):
        return {
            "content_type": ContentType.IMAGE.value,
            "id": block.id,
            "position": asdict(block.position),
            "image_data": base64.b64encode(block.image_data).decode("ascii"),
            "page_index": block.page_index,
            "metadata": block.metadata,
        }
    if isinstance(block, TableBlock):
        rows = []
        for row in block.rows:
            cells = []
            for cell in row:
                data = asdict(cell)
                data["direction"] = cell.direction.value
                cells.append(data)
            rows.append(cells)
        return {
            "content_type": "table",
            "id": block.id,
            "position": asdict(block.position),
            "rows": rows,
            "style": {"direction": block.style.direction.value,
                      "border_width": block.style.border_width},
            "page_index": block.page_index,
            "metadata": block.metadata,
        }
    raise TypeError(f"Unknown block type: {type(block).__name__}")


@dataclass(frozen=True)
class CellRef:
    """Explicit table position supplied by a flow-document reader."""
    table_id: str
    row: int
    col: int


@dataclass(frozen=True)
class PositionedRun:
    """One positioned string of text (or an image) as emitted by a reader."""
    text: str
    x: float
    y: float
    width: float
    height: float
    font: str = "Helvetica"
    size: float = 12.0
    color: str = "#000000"
    bold: bool = False
    italic: bool = False
    underline: bool = False
    alignment: str = "left"
    page_index: int = 0
    kind: str = "text"  # text, image
    image_data: Optional[bytes] = None
    cell: Optional[CellRef] = None
    is_ocr: bool = False
    confidence: float = 1.0

    @property
    def is_image(self) -> bool:
        return self.kind == "image"

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def position(self) -> Position:
        return Position(x=self.x, y=self.y, width=self.width, height=self.height)

    @property
    def style(self) -> Style:
        return Style(font=self.font, size=self.size, color=self.color,
                     alignment=self.alignment, bold=self.bold,
                     italic=self.italic, underline=self.underline)


@dataclass
class SourcePage:
    """Runs of one page (or section) of a source document."""
    index: int
    width: float
    height: float
    runs: List[PositionedRun] = field(default_factory=list)
    has_geometry: bool = True
    margins: Optional[Margins] = None  # declared by flow documents

    @property
    def text_runs(self) -> List[PositionedRun]:
        return [r for r in self.runs if not r.is_image and r.text.strip()]
