"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from typing import Callable, List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from layoutran.core.config import ExtractionConfig, TranslationConfig
from layoutran.core.exceptions import TranslationProviderError
from layoutran.core.models import (
    Direction, Layout, Position, PositionedRun, SourcePage, Style, TableBlock, TableCell, TextBlock
)
from layoutran.extraction.base import DocumentReader
from layoutran.translation.base import TranslationBackend, TranslationRequest, TranslationResponse


def make_run(text: str, x: float, y: float, width: float = 60.0, size: float = 12.0,
             page: int = 0, font: str = "Helvetica", **kwargs) -> PositionedRun:
    return PositionedRun(text=text, x=x, y=y, width=width, height=size * 1.2,
                         font=font, size=size, page_index=page, **kwargs)


class FakeBackend(TranslationBackend):
    """Deterministic backend that records every request."""

    def __init__(self, translate_fn: Optional[Callable[[str, str], str]] = None,
                 errors: Optional[List[Exception]] = None):
        super().__init__(api_key="fake", model="fake-1")
        self.name = "fake"
        self.translate_fn = translate_fn or (lambda text, target: f"{target}:{text}")
        self.errors = list(errors or [])
        self.requests: List[TranslationRequest] = []
        self.closed = False

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        return self.translate_sync(request)

    def translate_sync(self, request: TranslationRequest) -> TranslationResponse:
        self.requests.append(request)
        if self.errors:
            raise self.errors.pop(0)
        return TranslationResponse(
            translation=self.translate_fn(request.text, request.target_lang),
            backend=self.name
        )

    async def close(self) -> None:
        self.closed = True


class FailingBackend(FakeBackend):
    """Backend that fails every call."""

    def __init__(self, retryable: bool = True):
        super().__init__()
        self.retryable = retryable

    def translate_sync(self, request: TranslationRequest) -> TranslationResponse:
        self.requests.append(request)
        raise TranslationProviderError(self.name, "service unavailable", retryable=self.retryable)


class FakeReader(DocumentReader):
    """Reader returning prepared pages regardless of input bytes."""

    def __init__(self, pages: List[SourcePage], images: Optional[List[bytes]] = None):
        self.pages = pages
        self.images = images or []

    def read(self, data: bytes) -> List[SourcePage]:
        return self.pages

    def render_page_images(self, data: bytes, dpi: int = 300) -> List[bytes]:
        return self.images


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fast_translation_config():
    """Translation config without delays or disk cache."""
    return TranslationConfig(retry_delay=0.0, batch_delay=0.0, enable_cache=True)


@pytest.fixture
def extraction_config():
    return ExtractionConfig(target_language="en")


@pytest.fixture
def rtl_page():
    """One page: a Hebrew heading above a 2x2 Hebrew table."""
    return SourcePage(index=0, width=595.0, height=842.0, runs=[
        make_run("כותרת ראשית", 72, 72, width=150, size=18),
        make_run("שם", 72, 120),
        make_run("ערך", 300, 120),
        make_run("חדר", 72, 140),
        make_run("מחיר", 300, 140),
    ])


@pytest.fixture
def rtl_reader(rtl_page):
    return FakeReader([rtl_page])


@pytest.fixture
def sample_layout():
    """Layout with an English paragraph, a Hebrew heading and a Hebrew table."""
    table = TableBlock(id="table-0", position=Position(72, 200, 300, 40))
    table.add_row([TableCell(content="שם", direction=Direction.RTL).update_language("he", "en"),
                   TableCell(content="ערך", direction=Direction.RTL).update_language("he", "en")])
    table.add_row([TableCell(content="חדר", direction=Direction.RTL).update_language("he", "en"),
                   TableCell(content="204", direction=Direction.LTR).update_language("unknown", "en")])
    table.close()
    blocks = [
        TextBlock(id="block-0", text="כותרת", position=Position(72, 72, 200, 22),
                  style=Style(size=18), direction=Direction.RTL).update_language("he", "en"),
        TextBlock(id="block-1", text="Already English", position=Position(72, 120, 200, 14),
                  direction=Direction.LTR).update_language("en", "en"),
        table,
    ]
    return Layout(blocks=blocks, target_language="en", source_format="pdf")
