"""Configuration for the extraction, translation and rendering stages."""

from __future__ import annotations
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Dict, List, Optional, Any

from layoutran.masking.engine import MaskingConfig


SUPPORTED_SOURCE_FORMATS = ["pdf", "docx"]
SUPPORTED_TARGET_FORMATS = ["pdf", "docx", "json"]


@dataclass
class ExtractionConfig:
    """Geometry thresholds used by the structural extractor.

    The defaults were tuned on scanned office documents; treat them as
    starting points, not constants.
    """
    row_tolerance: float = 5.0       # same visual line if y differs by less
    gap_tolerance: float = 5.0       # max spread of inter-run gaps in a table row
    min_cell_gap: float = 10.0       # narrower gaps are word spacing, not cells
    min_table_rows: int = 2
    size_jump: float = 2.0           # font size change that closes a table region
    heading_size: float = 14.0
    label_max_length: int = 50
    min_column_gap: float = 100.0
    column_gutter: float = 20.0
    default_margin: float = 72.0
    target_language: str = "en"
    # Majority script -> language code
    script_languages: Dict[str, str] = field(default_factory=lambda: {
        "hebrew": "he",
        "arabic": "ar",
        "latin": "en",
        "cyrillic": "ru",
    })

    def validate(self) -> List[str]:
        issues = []
        for name in ("row_tolerance", "gap_tolerance", "min_cell_gap",
                     "size_jump", "heading_size", "min_column_gap",
                     "column_gutter", "default_margin"):
            if getattr(self, name) < 0:
                issues.append(f"{name} must be non-negative")
        if self.min_table_rows < 1:
            issues.append("min_table_rows must be at least 1")
        return issues


@dataclass
class TranslationConfig:
    """Batching, retry, rate limiting and cache settings."""
    backend: str = "free"
    api_key: Optional[str] = None
    endpoint: Optional[str] = None  # LibreTranslate URL
    batch_size: int = 10
    max_attempts: int = 3
    retry_delay: float = 1.0        # delay before attempt n is retry_delay * (n - 1)
    batch_delay: float = 0.0        # stagger between batch dispatches
    rate_limit_capacity: int = 100
    rate_limit_per_minute: float = 100.0
    rate_limit_timeout: float = 30.0  # longest wait for a token before the item is retried later
    min_call_interval: float = 0.0
    enable_cache: bool = True
    cache_dir: Optional[Path] = None  # None = in-memory cache
    cache_ttl: Optional[int] = 604800
    masking: MaskingConfig = field(default_factory=MaskingConfig)

    def validate(self) -> List[str]:
        issues = []
        if self.batch_size < 1:
            issues.append("batch_size must be at least 1")
        if self.max_attempts < 1:
            issues.append("max_attempts must be at least 1")
        if self.retry_delay < 0 or self.batch_delay < 0 or self.min_call_interval < 0:
            issues.append("delays must be non-negative")
        if self.rate_limit_capacity < 1:
            issues.append("rate_limit_capacity must be at least 1")
        if self.rate_limit_per_minute <= 0:
            issues.append("rate_limit_per_minute must be positive")
        if self.rate_limit_timeout < 0:
            issues.append("rate_limit_timeout must be non-negative")
        return issues


@dataclass
class RenderConfig:
    """Writer settings."""
    line_height: float = 1.2
    char_width_ratio: float = 0.5  # average glyph width as a fraction of font size
    table_border_width: float = 0.5
    shrink_to_fit: bool = True

    def validate(self) -> List[str]:
        issues = []
        if self.line_height <= 0:
            issues.append("line_height must be positive")
        if self.char_width_ratio <= 0:
            issues.append("char_width_ratio must be positive")
        return issues


@dataclass
class PipelineConfig:
    """Complete configuration for a document pipeline run."""
    target_lang: str = "en"
    output_format: str = "pdf"
    enable_ocr: bool = False
    ocr_languages: str = "heb+eng"
    log_level: str = "INFO"
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    rendering: RenderConfig = field(default_factory=RenderConfig)

    def validate(self) -> List[str]:
        """Validate configuration and return any issues."""
        issues = []
        if self.output_format not in SUPPORTED_TARGET_FORMATS:
            issues.append(
                f"output_format must be one of {', '.join(SUPPORTED_TARGET_FORMATS)}"
            )
        if not self.target_lang:
            issues.append("target_lang is required")
        issues.extend(self.extraction.validate())
        issues.extend(self.translation.validate())
        issues.extend(self.rendering.validate())
        return issues

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        cache_dir = data["translation"].get("cache_dir")
        if cache_dir is not None:
            data["translation"]["cache_dir"] = str(cache_dir)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PipelineConfig:
        """Build a config from a (possibly partial) nested dictionary."""
        data = dict(data or {})
        translation = dict(data.pop("translation", None) or {})
        masking = translation.pop("masking", None) or {}
        if translation.get("cache_dir"):
            translation["cache_dir"] = Path(translation["cache_dir"])

        config = cls(**_known(cls, data))
        config.extraction = ExtractionConfig(**_known(ExtractionConfig, data.get("extraction") or {}))
        config.translation = TranslationConfig(**_known(TranslationConfig, translation))
        config.translation.masking = MaskingConfig(**_known(MaskingConfig, masking))
        config.rendering = RenderConfig(**_known(RenderConfig, data.get("rendering") or {}))
        if "target_language" not in (data.get("extraction") or {}):
            config.extraction.target_language = config.target_lang
        return config


_NESTED = {"extraction", "translation", "rendering", "masking"}


def _known(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names and k not in _NESTED}
