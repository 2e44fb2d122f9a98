"""
layoutran: layout-faithful document translation

Extracts the layout of a PDF or DOCX document into a block model,
translates its text while protecting numbers, tags, list markers and
table geometry, and regenerates the document with the same layout.

Usage:
    from layoutran import DocumentPipeline, PipelineConfig

    config = PipelineConfig(target_lang="en", output_format="docx")
    pipeline = DocumentPipeline(config)
    result = pipeline.run_sync(data, "pdf")
"""

__version__ = "1.0.0"
__author__ = "layoutran contributors"
__license__ = "MIT"

from layoutran.core.models import (
    BlockKind,
    Direction,
    ImageBlock,
    Layout,
    TableBlock,
    TableCell,
    TextBlock,
)
from layoutran.core.config import PipelineConfig
from layoutran.core.exceptions import (
    LayoutranError,
    ExtractionError,
    GenerationError,
    RateLimitExceeded,
    TranslationProviderError,
)
from layoutran.core.pipeline import DocumentPipeline, PipelineResult

__all__ = [
    "__version__",
    "BlockKind",
    "Direction",
    "ImageBlock",
    "Layout",
    "TableBlock",
    "TableCell",
    "TextBlock",
    "PipelineConfig",
    "LayoutranError",
    "ExtractionError",
    "GenerationError",
    "RateLimitExceeded",
    "TranslationProviderError",
    "DocumentPipeline",
    "PipelineResult",
]
