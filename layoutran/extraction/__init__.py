"""Document extraction module."""

from .base import DocumentReader, get_reader, register_reader, available_readers
from .pdf_parser import PDFParser
from .docx_parser import DocxParser
from .ocr import OcrEngine, OcrHandle, TesseractOcrEngine
from .extractor import StructuralExtractor

__all__ = [
    'DocumentReader', 'get_reader', 'register_reader', 'available_readers',
    'PDFParser', 'DocxParser',
    'OcrEngine', 'OcrHandle', 'TesseractOcrEngine',
    'StructuralExtractor',
]
