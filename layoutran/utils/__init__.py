"""Utility functions and helpers."""

from .logger import setup_logger, get_logger
from .cache import TranslationCache
from .rate_limiter import TokenBucket, CallSpacer
from .config_loader import load_config, load_pipeline_config, save_config

__all__ = [
    'setup_logger',
    'get_logger',
    'TranslationCache',
    'TokenBucket',
    'CallSpacer',
    'load_config',
    'load_pipeline_config',
    'save_config'
]
