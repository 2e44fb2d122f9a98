"""
OCR fallback for pages without a text layer.

The engine is wrapped in an explicitly owned handle: it is created on the
first acquisition, used inside ``async with handle.session()`` scopes (one
at a time) and released by ``close()``.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from io import BytesIO
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple
import asyncio
import logging

from ..core.models import PositionedRun

logger = logging.getLogger(__name__)

try:
    import pytesseract
    from PIL import Image
    HAS_TESSERACT = True
except ImportError:
    HAS_TESSERACT = False


class OcrEngine(ABC):
    """Recognise text in a rendered page image."""

    @abstractmethod
    def recognize(self, image_data: bytes, page_index: int = 0, dpi: int = 300) -> List[PositionedRun]:
        """Return one run per recognised line, in page points."""
        pass

    def terminate(self) -> None:
        """Release engine resources."""
        pass


class TesseractOcrEngine(OcrEngine):
    """pytesseract engine; languages use tesseract's ``heb+eng`` syntax."""

    def __init__(self, languages: str = "heb+eng", min_confidence: float = 0.0):
        if not HAS_TESSERACT:
            raise ImportError("pytesseract not installed. Run: pip install pytesseract")
        self.languages = languages
        self.min_confidence = min_confidence

    def recognize(self, image_data: bytes, page_index: int = 0, dpi: int = 300) -> List[PositionedRun]:
        image = Image.open(BytesIO(image_data))
        data = pytesseract.image_to_data(image, lang=self.languages,
                                         output_type=pytesseract.Output.DICT)
        return lines_from_tesseract(data, page_index, 72.0 / dpi, self.min_confidence)


def lines_from_tesseract(
    data: Dict[str, list],
    page_index: int,
    scale: float,
    min_confidence: float = 0.0
) -> List[PositionedRun]:
    """Merge tesseract word boxes into line runs scaled to points."""
    lines: Dict[Tuple[int, int, int], List[int]] = {}
    for i, word in enumerate(data.get("text", [])):
        if not str(word).strip():
            continue
        conf = float(data["conf"][i])
        if conf < min_confidence:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(i)

    runs = []
    for key in sorted(lines):
        members = lines[key]
        x0 = min(data["left"][i] for i in members)
        y0 = min(data["top"][i] for i in members)
        x1 = max(data["left"][i] + data["width"][i] for i in members)
        y1 = max(data["top"][i] + data["height"][i] for i in members)
        confidences = [float(data["conf"][i]) for i in members]
        height = (y1 - y0) * scale
        runs.append(PositionedRun(
            text=" ".join(str(data["text"][i]).strip() for i in members),
            x=x0 * scale,
            y=y0 * scale,
            width=(x1 - x0) * scale,
            height=height,
            size=round(height, 1) or 12.0,
            page_index=page_index,
            is_ocr=True,
            confidence=sum(confidences) / len(confidences) / 100.0
        ))
    return runs


class OcrHandle:
    """Owned, lazily initialised OCR engine."""

    def __init__(self, factory: Callable[[], OcrEngine]):
        self._factory = factory
        self._engine: Optional[OcrEngine] = None
        self._lock = asyncio.Lock()
        self._closed = False

    @classmethod
    def tesseract(cls, languages: str = "heb+eng") -> OcrHandle:
        return cls(lambda: TesseractOcrEngine(languages))

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[OcrEngine]:
        """Acquire the engine for one recognition scope."""
        if self._closed:
            raise RuntimeError("OCR handle is closed")
        async with self._lock:
            if self._engine is None:
                logger.info("Initializing OCR engine")
                self._engine = self._factory()
            yield self._engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.terminate()
            logger.info("OCR engine released")
        self._engine = None
        self._closed = True
