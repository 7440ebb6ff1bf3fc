"""
Quality-triggered OCR fallback.

This module decides when native text extraction cannot be trusted and,
if so, re-reads the document through a text recognition engine:
- TextQualityAssessor: independent OR-signals for poor extraction
- OCRFallbackCoordinator: serial page-by-page recognition
- EnginePool: single-consumer lease of a RecognitionEngine
- TesseractEngine: the default engine (pytesseract)

Example:
    >>> from einkdoc.ocr import TextQualityAssessor
    >>> report = TextQualityAssessor().assess(text, page_count=3)
    >>> report.should_fallback
    True
"""

from einkdoc.ocr.engine import (
    EnginePool,
    RecognitionEngine,
    RecognitionResult,
    TesseractEngine,
    is_tesseract_available,
)
from einkdoc.ocr.fallback import OCRFallbackCoordinator, OCRRunResult
from einkdoc.ocr.quality import TextQualityAssessor, is_suspicious_char

__all__ = [
    # Quality
    "TextQualityAssessor",
    "is_suspicious_char",
    # Fallback
    "OCRFallbackCoordinator",
    "OCRRunResult",
    # Engines
    "RecognitionEngine",
    "RecognitionResult",
    "TesseractEngine",
    "EnginePool",
    "is_tesseract_available",
]
