"""
Structural extraction: raw document bytes to a Layout.

Readers supply positioned runs; this module orders them, tags table
regions, merges the rest into text blocks, classifies them, detects
language and direction, and derives page geometry.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Sequence, Tuple
import asyncio
import logging

from ..core.config import ExtractionConfig, SUPPORTED_SOURCE_FORMATS
from ..core.exceptions import ExtractionError, LayoutranError
from ..core.models import (
    Block, ImageBlock, Layout, PageSize, PositionedRun, SourcePage,
    TableBlock, TableCell, TextBlock
)
from .base import DocumentReader, get_reader
from .classifier import classify_block
from .language import detect_language, is_rtl_text
from .layout import (
    compute_margins, detect_columns, detect_orientation,
    detect_table_regions, sort_reading_order, table_tags
)
from .ocr import OcrHandle

logger = logging.getLogger(__name__)

CellTag = Tuple[str, int, int]


class StructuralExtractor:
    """Build a Layout from a source document."""

    def __init__(
        self,
        config: Optional[ExtractionConfig] = None,
        ocr: Optional[OcrHandle] = None,
        readers: Optional[Dict[str, DocumentReader]] = None
    ):
        """
        Args:
            config: Geometry thresholds and language mapping
            ocr: OCR fallback for pages without a text layer
            readers: Reader overrides by format (registry readers otherwise)
        """
        self.config = config or ExtractionConfig()
        self.ocr = ocr
        self.readers = dict(readers or {})

    def _reader_for(self, source_format: str) -> DocumentReader:
        if source_format in self.readers:
            return self.readers[source_format]
        if source_format not in SUPPORTED_SOURCE_FORMATS:
            raise ExtractionError(f"Unsupported source format: {source_format}",
                                  source_format=source_format)
        try:
            return get_reader(source_format)
        except KeyError:
            raise ExtractionError(f"No reader registered for {source_format}",
                                  source_format=source_format)

    async def extract(self, data: bytes, source_format: str) -> Layout:
        """
        Extract the layout of a document.

        Raises:
            ExtractionError: the reader failed, the format is unsupported, or
                the document has no content and no OCR fallback is configured
        """
        source_format = (source_format or "").lower().lstrip(".")
        reader = self._reader_for(source_format)
        loop = asyncio.get_running_loop()

        try:
            pages = await loop.run_in_executor(None, reader.read, data)
        except LayoutranError:
            raise
        except Exception as e:
            raise ExtractionError(f"Failed to read {source_format} document: {e}",
                                  source_format=source_format, original_error=e)

        if not any(page.runs for page in pages) and self.ocr is None:
            raise ExtractionError("Document produced no content runs",
                                  source_format=source_format)

        if self.ocr is not None:
            pages = await self._apply_ocr(reader, data, pages, source_format)

        try:
            layout = self.build_layout(pages, source_format)
        except LayoutranError:
            raise
        except Exception as e:
            raise ExtractionError(f"Failed to build layout: {e}",
                                  source_format=source_format, original_error=e)

        logger.info(
            f"Extracted {len(layout.text_blocks)} text blocks, {len(layout.tables)} tables, "
            f"{len(layout.image_blocks)} images from {layout.page_count} pages"
        )
        return layout

    async def _apply_ocr(self, reader: DocumentReader, data: bytes,
                         pages: List[SourcePage], source_format: str) -> List[SourcePage]:
        missing = [p for p in pages if p.has_geometry and not p.text_runs]
        if not missing:
            return pages

        loop = asyncio.get_running_loop()
        try:
            images = await loop.run_in_executor(None, reader.render_page_images, data)
            async with self.ocr.session() as engine:
                for page in missing:
                    if page.index >= len(images):
                        continue
                    runs = await loop.run_in_executor(None, engine.recognize, images[page.index], page.index)
                    page.runs = [r for r in page.runs if r.is_image] + list(runs)
                    logger.info(f"OCR recognised {len(runs)} lines on page {page.index}")
        except LayoutranError:
            raise
        except Exception as e:
            raise ExtractionError(f"OCR fallback failed: {e}", source_format=source_format,
                                  page=missing[0].index, original_error=e)
        return pages

    def build_layout(self, pages: Sequence[SourcePage], source_format: Optional[str] = None) -> Layout:
        """Assemble blocks and geometry from reader pages."""
        cfg = self.config
        page_size = PageSize(pages[0].width, pages[0].height) if pages else PageSize()

        runs: List[PositionedRun] = []
        flow = set()
        for page in pages:
            runs.extend(r for r in page.runs if r.is_image or r.text.strip() or r.cell is not None)
            if not page.has_geometry:
                flow.add(page.index)
        ordered = sort_reading_order(runs, cfg.row_tolerance)

        tags = self._tag_tables(ordered, flow)
        blocks = self._assemble(ordered, tags)

        boxes = [b.position for b in blocks]
        declared = next((p.margins for p in pages if p.margins is not None), None)
        margins = declared or compute_margins(boxes, page_size, cfg.default_margin)
        left_edges = [b.position.x for b in blocks if isinstance(b, TextBlock)]
        columns = detect_columns(left_edges, page_size.width, margins.right,
                                 cfg.min_column_gap, cfg.column_gutter)

        return Layout(
            page_size=page_size,
            margins=margins,
            orientation=detect_orientation(page_size),
            columns=columns,
            blocks=blocks,
            page_count=max(1, len(pages)),
            source_format=source_format,
            target_language=cfg.target_language,
        )

    def _tag_tables(self, ordered: List[PositionedRun], flow: set) -> Dict[int, CellTag]:
        tags: Dict[int, CellTag] = {}

        # Flow documents carry explicit cell markers
        for index, run in enumerate(ordered):
            if run.cell is not None:
                tags[index] = (run.cell.table_id, run.cell.row, run.cell.col)

        geometric = [i for i, r in enumerate(ordered)
                     if not r.is_image and r.cell is None and r.page_index not in flow]
        regions = detect_table_regions([ordered[i] for i in geometric], self.config)
        for local, tag in table_tags(regions).items():
            tags[geometric[local]] = tag
        return tags

    def _assemble(self, ordered: List[PositionedRun], tags: Dict[int, CellTag]) -> List[Block]:
        blocks: List[Block] = []
        tables: Dict[str, TableBlock] = {}
        cells: Dict[str, Dict[Tuple[int, int], List[PositionedRun]]] = {}
        pending: List[PositionedRun] = []

        def flush() -> None:
            if pending:
                blocks.append(self._text_block(f"block-{len(blocks)}", pending))
                pending.clear()

        for index, run in enumerate(ordered):
            if run.is_image:
                flush()
                blocks.append(ImageBlock(
                    id=f"image-{len(blocks)}",
                    position=run.position,
                    image_data=run.image_data or b"",
                    page_index=run.page_index,
                    metadata={"source_page": run.page_index}
                ))
                continue

            tag = tags.get(index)
            if tag is not None:
                flush()
                table_id, row, col = tag
                if table_id not in tables:
                    tables[table_id] = TableBlock(id=table_id, position=run.position,
                                                  page_index=run.page_index,
                                                  metadata={"source_page": run.page_index})
                    cells[table_id] = {}
                    blocks.append(tables[table_id])
                else:
                    tables[table_id].position = tables[table_id].position.union(run.position)
                cells[table_id].setdefault((row, col), []).append(run)
                continue

            if pending and not self._continues(pending, run):
                flush()
            pending.append(run)
        flush()

        for table_id, table in tables.items():
            self._fill_table(table, cells[table_id])
        return blocks

    def _continues(self, pending: List[PositionedRun], run: PositionedRun) -> bool:
        first = pending[0]
        return (run.page_index == first.page_index and
                run.font == first.font and
                run.size == first.size and
                run.is_ocr == first.is_ocr and
                abs(run.y - first.y) <= self.config.row_tolerance)

    def _text_block(self, block_id: str, runs: List[PositionedRun]) -> TextBlock:
        cfg = self.config
        text = _join_runs(runs)
        first = runs[0]
        position = first.position
        for run in runs[1:]:
            position = position.union(run.position)
        is_ocr = any(r.is_ocr for r in runs)

        metadata = {"source_page": first.page_index, "original_font": first.font}
        if is_ocr:
            metadata["ocr_confidence"] = round(min(r.confidence for r in runs), 3)

        language, direction = detect_language(text, cfg.script_languages)
        block = TextBlock(
            id=block_id,
            text=text,
            position=position,
            style=first.style,
            kind=classify_block(text, first.size, cfg.heading_size,
                                cfg.label_max_length, is_ocr=is_ocr),
            direction=direction,
            page_index=first.page_index,
            metadata=metadata
        )
        return block.update_language(language, cfg.target_language)

    def _fill_table(self, table: TableBlock, grid: Dict[Tuple[int, int], List[PositionedRun]]) -> None:
        cfg = self.config
        row_count = max(r for r, _ in grid) + 1
        for r in range(row_count):
            width = max((c + 1 for rr, c in grid if rr == r), default=0)
            row = []
            for c in range(width):
                runs = grid.get((r, c))
                if not runs:
                    row.append(TableCell())
                    continue
                text = _join_runs(runs)
                language, direction = detect_language(text, cfg.script_languages)
                cell = TableCell(content=text, style=runs[0].style, direction=direction)
                row.append(cell.update_language(language, cfg.target_language))
            table.add_row(row)
        table.close()


def _join_runs(runs: Sequence[PositionedRun]) -> str:
    """Concatenate runs of one line, inserting a space across visible gaps.

    Runs of right-to-left text are read from the right edge.
    """
    rtl = is_rtl_text(" ".join(r.text for r in runs))
    ordered = sorted(runs, key=lambda r: r.x, reverse=rtl)
    parts = [ordered[0].text]
    for prev, run in zip(ordered, ordered[1:]):
        gap = prev.x - run.right if rtl else run.x - prev.right
        if gap > prev.size * 0.15 and not parts[-1].endswith(" ") and not run.text.startswith(" "):
            parts.append(" ")
        parts.append(run.text)
    return "".join(parts).strip()
