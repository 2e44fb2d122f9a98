"""Free translation backend (Google Translate via deep-translator)."""

import asyncio
import time
from typing import Optional

from deep_translator import GoogleTranslator
from deep_translator.exceptions import TooManyRequests

from ...core.exceptions import RateLimitExceeded, TranslationProviderError
from ..base import TranslationBackend, TranslationRequest, TranslationResponse, source_language_code

# Google rejects texts above this length
MAX_CHARS = 4500


class FreeBackend(TranslationBackend):
    """Free translation backend using deep-translator."""

    LANG_CODES = {
        "en": "en", "english": "en",
        "he": "iw", "hebrew": "iw",
        "ar": "ar", "arabic": "ar",
        "ru": "ru", "russian": "ru",
        "fr": "fr", "french": "fr",
        "es": "es", "spanish": "es",
        "de": "de", "german": "de",
        "zh": "zh-CN", "chinese": "zh-CN",
    }

    def __init__(self, api_key: Optional[str] = None, model: str = "google"):
        super().__init__(api_key, model)

    def _normalize_lang(self, lang: str) -> str:
        """Normalize language code."""
        lang = lang.lower().strip()
        return self.LANG_CODES.get(lang, lang)

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        """Translate asynchronously (runs the blocking client in an executor)."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.translate_sync, request)

    def translate_sync(self, request: TranslationRequest) -> TranslationResponse:
        start_time = time.time()

        source_lang = self._normalize_lang(source_language_code(request.source_lang))
        target_lang = self._normalize_lang(request.target_lang)

        try:
            translator = GoogleTranslator(source=source_lang, target=target_lang)
            text = request.text
            if len(text) > MAX_CHARS:
                translation = " ".join(translator.translate(chunk) for chunk in _split(text, MAX_CHARS))
            else:
                translation = translator.translate(text)
        except TooManyRequests as e:
            raise RateLimitExceeded(f"Google Translate throttled: {e}", retry_after=60.0, provider="free")
        except Exception as e:
            raise TranslationProviderError("free", str(e), retryable=True, original_error=e)

        if translation is None:
            raise TranslationProviderError("free", "Empty translation", retryable=True)

        return TranslationResponse(
            translation=translation,
            backend="free",
            model=self.model,
            latency=time.time() - start_time,
        )

    def is_available(self) -> bool:
        """Free backend is always available."""
        return True


def _split(text: str, limit: int):
    """Split long text on sentence boundaries into chunks under limit."""
    chunk = ""
    for sentence in text.split(". "):
        if chunk and len(chunk) + len(sentence) + 2 > limit:
            yield chunk.rstrip()
            chunk = ""
        chunk += sentence + ". "
    if chunk:
        yield chunk[:-2]
