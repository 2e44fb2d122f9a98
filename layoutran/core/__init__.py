"""Core block model, errors and configuration.

The pipeline facade lives in :mod:`layoutran.core.pipeline` and is not
imported here, since the stage packages depend on this one.
"""

from .models import (
    BlockKind, Column, ContentType, Direction, ImageBlock, Layout, Margins,
    PageSize, Position, Style, TableBlock, TableCell, TextBlock
)
from .exceptions import (
    LayoutranError, ExtractionError, RateLimitExceeded, TranslationProviderError,
    PlaceholderMismatchError, GenerationError, ConfigurationError, CacheError
)
from .config import ExtractionConfig, TranslationConfig, RenderConfig, PipelineConfig

__all__ = [
    'BlockKind', 'Column', 'ContentType', 'Direction', 'ImageBlock', 'Layout',
    'Margins', 'PageSize', 'Position', 'Style', 'TableBlock', 'TableCell', 'TextBlock',
    'LayoutranError', 'ExtractionError', 'RateLimitExceeded', 'TranslationProviderError',
    'PlaceholderMismatchError', 'GenerationError', 'ConfigurationError', 'CacheError',
    'ExtractionConfig', 'TranslationConfig', 'RenderConfig', 'PipelineConfig',
]
