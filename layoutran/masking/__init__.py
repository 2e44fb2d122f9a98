"""Token protection for translation."""

from .engine import MaskingEngine, MaskingConfig, MaskedText, MaskInfo

__all__ = ['MaskingEngine', 'MaskingConfig', 'MaskedText', 'MaskInfo']
