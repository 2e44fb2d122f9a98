"""
Base translation backend interface.
All translation providers must inherit from TranslationBackend.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional
from dataclasses import dataclass, field


@dataclass
class TranslationRequest:
    """Request for translation of one masked text."""
    text: str
    source_lang: str
    target_lang: str
    block_id: Optional[str] = None


@dataclass
class TranslationResponse:
    """Response from translation backend."""
    translation: str
    backend: str
    model: Optional[str] = None
    latency: float = 0.0
    metadata: Dict = field(default_factory=dict)


class TranslationBackend(ABC):
    """
    Abstract base class for translation backends.

    Implementations raise RateLimitExceeded when the provider throttles
    and TranslationProviderError for every other failure.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key
        self.model = model
        self.name = self.__class__.__name__

    @abstractmethod
    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        """
        Translate text asynchronously.

        Args:
            request: Translation request with text and language pair

        Returns:
            TranslationResponse with the translated text
        """
        pass

    @abstractmethod
    def translate_sync(self, request: TranslationRequest) -> TranslationResponse:
        """
        Translate text synchronously.

        Args:
            request: Translation request with text and language pair

        Returns:
            TranslationResponse with the translated text
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass

    def is_available(self) -> bool:
        """Check if backend is available and configured."""
        return self.api_key is not None

    def get_info(self) -> Dict:
        """Get backend information."""
        return {
            "name": self.name,
            "model": self.model,
            "available": self.is_available()
        }


def source_language_code(language: Optional[str]) -> str:
    """Provider-facing source language; undetected text is auto-detected."""
    if not language or language == "unknown":
        return "auto"
    return language
