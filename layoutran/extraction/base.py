"""Format reader interface and registry."""

from abc import ABC, abstractmethod
from typing import Dict, List, Type
import logging

from ..core.models import SourcePage

logger = logging.getLogger(__name__)


class DocumentReader(ABC):
    """Turn raw document bytes into positioned runs, page by page."""

    format_name: str = ""

    @abstractmethod
    def read(self, data: bytes) -> List[SourcePage]:
        """
        Parse a document.

        Args:
            data: Raw file bytes

        Returns:
            One SourcePage per page (or section for flow documents)
        """
        pass

    def render_page_images(self, data: bytes, dpi: int = 300) -> List[bytes]:
        """Render every page to PNG bytes for OCR; empty if unsupported."""
        return []


_READERS: Dict[str, Type[DocumentReader]] = {}


def register_reader(format_name: str):
    """Class decorator adding a reader to the registry."""
    def decorator(cls: Type[DocumentReader]) -> Type[DocumentReader]:
        cls.format_name = format_name
        _READERS[format_name.lower()] = cls
        return cls
    return decorator


def get_reader(format_name: str) -> DocumentReader:
    """Instantiate the reader for a format.

    Raises:
        KeyError: no reader is registered for the format
    """
    key = (format_name or "").lower().lstrip(".")
    if key not in _READERS:
        raise KeyError(format_name)
    return _READERS[key]()


def available_readers() -> List[str]:
    return sorted(_READERS)
