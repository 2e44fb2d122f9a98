"""Translation orchestration and providers."""

from .base import TranslationBackend, TranslationRequest, TranslationResponse
from .results import Translated, Degraded, Outcome
from .orchestrator import TranslationOrchestrator
from .backends import create_backend, available_backends

__all__ = [
    'TranslationBackend',
    'TranslationRequest',
    'TranslationResponse',
    'Translated',
    'Degraded',
    'Outcome',
    'TranslationOrchestrator',
    'create_backend',
    'available_backends',
]
