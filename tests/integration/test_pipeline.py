"""End-to-end pipeline tests with an in-memory reader and backend."""

import json
import zipfile
from io import BytesIO

import fitz
import pytest
from docx import Document

from layoutran import DocumentPipeline, PipelineConfig
from layoutran.core.exceptions import ExtractionError, GenerationError
from layoutran.core.models import BlockKind, Direction, SourcePage, TableBlock, TextBlock
from layoutran.translation.postprocess import LRI, PDI
from layoutran.utils.cache import TranslationCache

from conftest import FakeBackend, FakeReader, make_run

GLOSSARY = {
    "כותרת ראשית": "main title",
    "שם": "Name",
    "ערך": "Value",
    "חדר": "Room",
    "מחיר": "Price",
}


def _backend():
    return FakeBackend(lambda text, target: GLOSSARY.get(text, text))


def _pipeline(reader, backend=None, cache=None, **config):
    return DocumentPipeline(PipelineConfig(**config), backend=backend or _backend(),
                            cache=cache, readers={"pdf": reader})


@pytest.mark.asyncio
async def test_hebrew_heading_and_table_to_english(rtl_reader):
    backend = _backend()
    async with _pipeline(rtl_reader, backend) as pipeline:
        result = await pipeline.run(b"", "pdf", "en", "json")

    heading, table = result.layout.blocks
    assert isinstance(heading, TextBlock)
    assert heading.kind == BlockKind.HEADING
    assert heading.text == f"{LRI}Main title{PDI}"
    assert heading.direction == Direction.MIXED
    assert heading.language == "en"
    assert not heading.needs_translation
    assert heading.metadata["source_text"] == "כותרת ראשית"

    assert isinstance(table, TableBlock)
    assert table.shape == (2, 2)
    assert [c.content for _, _, c in table.cells()] == [
        f"{LRI}Name{PDI}", f"{LRI}Value{PDI}", f"{LRI}Room{PDI}", f"{LRI}Price{PDI}"
    ]
    assert table.style.direction == Direction.RTL

    assert backend.calls == 5
    assert result.stats["translated"] == 5
    assert result.failed_blocks == 0
    assert not backend.closed

    data = json.loads(result.output.decode("utf-8"))
    assert [b["id"] for b in data["blocks"]] == ["block-0", "table-0"]


@pytest.mark.asyncio
async def test_translated_layout_is_not_translated_again(rtl_reader):
    backend = _backend()
    async with _pipeline(rtl_reader, backend) as pipeline:
        layout = await pipeline.extract(b"", "pdf")
        await pipeline.translate(layout, "en")
        calls = backend.calls
        snapshot = layout.to_dict()

        await pipeline.translate(layout, "en")

    assert backend.calls == calls
    assert layout.to_dict() == snapshot


@pytest.mark.asyncio
@pytest.mark.parametrize("target_format", ["pdf", "docx", "json"])
async def test_second_run_uses_cache_and_is_byte_identical(rtl_reader, target_format):
    backend = _backend()
    cache = TranslationCache()
    async with _pipeline(rtl_reader, backend, cache=cache) as pipeline:
        first = await pipeline.run(b"", "pdf", "en", target_format)
        calls = backend.calls
        second = await pipeline.run(b"", "pdf", "en", target_format)

    assert calls == 5
    assert backend.calls == calls
    assert second.stats["provider_calls"] == 0
    assert second.stats["cache_hits"] == 5
    assert first.output == second.output


@pytest.mark.asyncio
async def test_pdf_output_has_translated_text(rtl_reader):
    async with _pipeline(rtl_reader) as pipeline:
        result = await pipeline.run(b"", "pdf", "en", "pdf")

    doc = fitz.open(stream=result.output, filetype="pdf")
    text = doc[0].get_text()
    doc.close()
    assert "Main title" in text
    assert "Price" in text


@pytest.mark.asyncio
async def test_docx_output_keeps_table_grid(rtl_reader):
    async with _pipeline(rtl_reader) as pipeline:
        result = await pipeline.run(b"", "pdf", "en", "docx")

    doc = Document(BytesIO(result.output))
    assert len(doc.tables) == 1
    grid = doc.tables[0]
    assert [[cell.text for cell in row.cells] for row in grid.rows] == [
        [f"{LRI}Name{PDI}", f"{LRI}Value{PDI}"],
        [f"{LRI}Room{PDI}", f"{LRI}Price{PDI}"],
    ]
    xml = zipfile.ZipFile(BytesIO(result.output)).read("word/document.xml").decode("utf-8")
    assert "w:bidiVisual" in xml


@pytest.mark.asyncio
async def test_failed_provider_keeps_source_text(rtl_reader):
    backend = FakeBackend(errors=[ValueError("boom")] * 30)
    config = PipelineConfig()
    config.translation.retry_delay = 0.0

    async with DocumentPipeline(config, backend=backend, readers={"pdf": rtl_reader}) as pipeline:
        result = await pipeline.run(b"", "pdf", "en", "json")

    heading = result.layout.blocks[0]
    assert heading.text == "כותרת ראשית"
    assert heading.translation_failed
    assert not heading.needs_translation
    assert result.failed_blocks == 5


@pytest.mark.asyncio
async def test_empty_document_fails_extraction():
    reader = FakeReader([SourcePage(index=0, width=595, height=842)])
    async with _pipeline(reader) as pipeline:
        with pytest.raises(ExtractionError):
            await pipeline.run(b"", "pdf", "en", "pdf")


@pytest.mark.asyncio
async def test_unsupported_output_format(rtl_reader):
    async with _pipeline(rtl_reader) as pipeline:
        with pytest.raises(GenerationError):
            await pipeline.run(b"", "pdf", "en", "odt")


@pytest.mark.asyncio
async def test_run_file_writes_next_to_input(tmp_path, rtl_reader):
    source = tmp_path / "report.pdf"
    source.write_bytes(b"%PDF-1.7 placeholder")

    async with _pipeline(rtl_reader) as pipeline:
        result = await pipeline.run_file(source, target_language="en", target_format="json")

    output = tmp_path / "report_en.json"
    assert output.exists()
    assert output.read_bytes() == result.output


def test_run_sync_with_real_pdf(tmp_path):
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 100), "Hello world", fontsize=12)
    data = doc.tobytes()
    doc.close()

    backend = FakeBackend()
    pipeline = DocumentPipeline(PipelineConfig(target_lang="fr"), backend=backend)
    result = pipeline.run_sync(data, "pdf", target_format="json")

    block = result.layout.text_blocks[0]
    assert block.text == "fr:Hello world"
    assert block.language == "fr"
    assert backend.calls == 1
    # Injected backends are not closed by the pipeline
    assert not backend.closed


class TrackingCache(TranslationCache):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.closed = False

    def close(self) -> None:
        self.closed = True
        super().close()


@pytest.mark.asyncio
async def test_shared_cache_outlives_the_pipeline(rtl_reader):
    cache = TrackingCache()
    async with _pipeline(rtl_reader, cache=cache) as pipeline:
        await pipeline.run(b"", "pdf", "en", "json")

    assert not cache.closed
    backend = _backend()
    async with _pipeline(rtl_reader, backend, cache=cache) as pipeline:
        result = await pipeline.run(b"", "pdf", "en", "json")
    assert backend.calls == 0
    assert result.stats["cache_hits"] == 5


@pytest.mark.asyncio
async def test_owned_cache_is_closed(rtl_reader, monkeypatch):
    monkeypatch.setattr("layoutran.core.pipeline.TranslationCache", TrackingCache)
    async with _pipeline(rtl_reader) as pipeline:
        await pipeline.run(b"", "pdf", "en", "json")

    assert isinstance(pipeline.cache, TrackingCache)
    assert pipeline.cache.closed
