"""
Document pipeline for layoutran.

Ties the three stages together: structural extraction, translation
orchestration and layout-faithful regeneration. Each stage can be run on
its own; :meth:`DocumentPipeline.run` chains them for one document.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
import asyncio
import logging
import time

from layoutran.core.config import PipelineConfig
from layoutran.core.exceptions import ConfigurationError
from layoutran.core.models import Layout
from layoutran.extraction import DocumentReader, OcrHandle, StructuralExtractor
from layoutran.rendering import DocumentRegenerator
from layoutran.translation import TranslationOrchestrator
from layoutran.translation.backends import create_backend
from layoutran.translation.base import TranslationBackend
from layoutran.utils.cache import TranslationCache

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Output of one pipeline run."""
    output: bytes
    layout: Layout
    output_format: str
    stats: Dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def failed_blocks(self) -> int:
        return self.stats.get("degraded", 0)


class DocumentPipeline:
    """
    Extract, translate and regenerate documents.

    The backend, cache and OCR handle are owned by the pipeline unless they
    are passed in; :meth:`close` releases what the pipeline owns.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        backend: Optional[TranslationBackend] = None,
        cache: Optional[TranslationCache] = None,
        ocr: Optional[OcrHandle] = None,
        readers: Optional[Dict[str, DocumentReader]] = None
    ):
        """
        Args:
            config: Pipeline configuration (validated here)
            backend: Translation provider; built from ``config.translation.backend`` if omitted
            cache: Translation cache shared across documents
            ocr: OCR fallback; a Tesseract handle is created when ``enable_ocr`` is set
            readers: Reader overrides by source format

        Raises:
            ConfigurationError: the configuration has issues
        """
        self.config = config or PipelineConfig()
        issues = self.config.validate()
        if issues:
            raise ConfigurationError(f"Invalid configuration: {'; '.join(issues)}")

        tcfg = self.config.translation
        self._owns_backend = backend is None
        self.backend = backend or create_backend(tcfg.backend, api_key=tcfg.api_key,
                                                 endpoint=tcfg.endpoint)

        self._owns_ocr = ocr is None and self.config.enable_ocr
        if ocr is None and self.config.enable_ocr:
            ocr = OcrHandle.tesseract(self.config.ocr_languages)
        self.ocr = ocr

        self._owns_cache = cache is None and tcfg.enable_cache
        if cache is None and tcfg.enable_cache:
            cache = TranslationCache(cache_dir=tcfg.cache_dir, ttl=tcfg.cache_ttl)
        self.cache = cache

        self.extractor = StructuralExtractor(self.config.extraction, ocr=self.ocr, readers=readers)
        self.orchestrator = TranslationOrchestrator(self.backend, tcfg, cache=self.cache)
        self.regenerator = DocumentRegenerator(self.config.rendering,
                                               row_tolerance=self.config.extraction.row_tolerance)

    async def extract(self, data: bytes, source_format: str) -> Layout:
        return await self.extractor.extract(data, source_format)

    async def translate(self, layout: Layout, target_language: Optional[str] = None) -> Layout:
        return await self.orchestrator.translate(layout, target_language or self.config.target_lang)

    async def generate(self, layout: Layout, target_format: Optional[str] = None) -> bytes:
        return await self.regenerator.generate(layout, target_format or self.config.output_format)

    async def run(
        self,
        data: bytes,
        source_format: str,
        target_language: Optional[str] = None,
        target_format: Optional[str] = None
    ) -> PipelineResult:
        """
        Run all three stages on one document.

        Raises:
            ExtractionError: the source could not be read
            GenerationError: the output could not be written
        """
        start = time.time()
        target_format = target_format or self.config.output_format

        layout = await self.extract(data, source_format)
        layout = await self.translate(layout, target_language)
        output = await self.generate(layout, target_format)

        duration = time.time() - start
        stats = self.orchestrator.get_stats()
        logger.info(f"Pipeline finished in {duration:.2f}s: {stats['translated']} translated, "
                    f"{stats['degraded']} degraded, {len(output)} bytes of {target_format}")
        return PipelineResult(output=output, layout=layout, output_format=target_format,
                              stats=stats, duration=duration)

    async def run_file(
        self,
        input_path: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
        target_language: Optional[str] = None,
        target_format: Optional[str] = None
    ) -> PipelineResult:
        """Read a file, run the pipeline and write the output next to it unless a path is given."""
        input_path = Path(input_path)
        target_format = target_format or self.config.output_format
        result = await self.run(input_path.read_bytes(), input_path.suffix,
                                target_language, target_format)
        if output_path is None:
            lang = target_language or self.config.target_lang
            output_path = input_path.with_name(f"{input_path.stem}_{lang}.{target_format}")
        Path(output_path).write_bytes(result.output)
        logger.info(f"Wrote {output_path}")
        return result

    def run_sync(self, data: bytes, source_format: str,
                 target_language: Optional[str] = None,
                 target_format: Optional[str] = None) -> PipelineResult:
        """Blocking wrapper around :meth:`run` that also releases owned resources."""
        async def _run() -> PipelineResult:
            try:
                return await self.run(data, source_format, target_language, target_format)
            finally:
                await self.aclose()

        return asyncio.run(_run())

    async def aclose(self) -> None:
        if self._owns_backend:
            await self.backend.close()
        if self._owns_ocr and self.ocr is not None:
            self.ocr.close()
        if self._owns_cache and self.cache is not None:
            self.cache.close()

    async def __aenter__(self) -> DocumentPipeline:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
