"""LibreTranslate backend (free, no-key by default, endpoint configurable)."""

import asyncio
import os
import time
from typing import Any, Dict, Optional

import aiohttp
import requests

from ...core.exceptions import RateLimitExceeded, TranslationProviderError
from ..base import TranslationBackend, TranslationRequest, TranslationResponse, source_language_code

DEFAULT_ENDPOINT = "https://libretranslate.de"


class LibreTranslateBackend(TranslationBackend):
    """LibreTranslate HTTP backend."""

    def __init__(self, api_key: Optional[str] = None, model: str = "libre",
                 endpoint: Optional[str] = None, timeout: float = 15.0):
        super().__init__(api_key, model)
        self.endpoint = endpoint or os.getenv("LIBRETRANSLATE_URL", DEFAULT_ENDPOINT)
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def url(self) -> str:
        return f"{self.endpoint.rstrip('/')}/translate"

    def _payload(self, request: TranslationRequest) -> Dict[str, Any]:
        payload = {
            "q": request.text,
            "source": source_language_code(request.source_lang),
            "target": request.target_lang,
            "format": "text",
        }
        if self.api_key:
            payload["api_key"] = self.api_key
        return payload

    def _response(self, data: Dict[str, Any], start: float) -> TranslationResponse:
        translation = data.get("translatedText")
        if translation is None:
            raise TranslationProviderError("libre", f"Malformed response: {str(data)[:200]}")
        return TranslationResponse(
            translation=translation,
            backend="libre",
            model=self.model,
            latency=time.time() - start,
            metadata={"endpoint": self.endpoint},
        )

    def translate_sync(self, request: TranslationRequest) -> TranslationResponse:
        start = time.time()
        try:
            resp = requests.post(self.url, json=self._payload(request), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TranslationProviderError("libre", f"Request failed: {e}", original_error=e)

        if resp.status_code == 429:
            raise RateLimitExceeded("LibreTranslate throttled", provider="libre",
                                    retry_after=_retry_after(resp.headers))
        if resp.status_code >= 400:
            raise TranslationProviderError("libre", f"HTTP {resp.status_code}: {resp.text[:200]}",
                                           retryable=resp.status_code >= 500)
        try:
            data = resp.json()
        except ValueError as e:
            raise TranslationProviderError("libre", f"Invalid JSON response: {resp.text[:200]}",
                                           original_error=e)
        return self._response(data, start)

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        start = time.time()
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))

        try:
            async with self._session.post(self.url, json=self._payload(request)) as resp:
                if resp.status == 429:
                    raise RateLimitExceeded("LibreTranslate throttled", provider="libre",
                                            retry_after=_retry_after(resp.headers))
                if resp.status >= 400:
                    body = await resp.text()
                    raise TranslationProviderError("libre", f"HTTP {resp.status}: {body[:200]}",
                                                   retryable=resp.status >= 500)
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TranslationProviderError("libre", f"Request failed: {e}", original_error=e)
        except ValueError as e:
            raise TranslationProviderError("libre", f"Invalid JSON response: {e}", original_error=e)
        return self._response(data, start)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def is_available(self) -> bool:
        return bool(self.endpoint)


def _retry_after(headers) -> float:
    try:
        return float(headers.get("Retry-After", 1.0))
    except (TypeError, ValueError):
        return 1.0
