"""
einkdoc: Convert documents into layouts optimized for E Ink readers.

This library converts PDF, DOCX, Markdown, CSV, Excel, PowerPoint and
EPUB documents into a new PDF or EPUB sized for an E Ink device, with
device-specific page size, font, margins, contrast and image handling.
Scanned or garbled PDFs fall back to OCR when native text is poor.

Example:
    >>> import einkdoc
    >>> result = einkdoc.convert("paper.pdf")
    >>> result.extraction_method
    <ExtractionMethod.NATIVE: 'native'>
    >>> result.save("paper_eink.pdf")

    >>> # Presets and overrides
    >>> config = einkdoc.ConversionConfig.from_preset("large_print", output_format="epub")
    >>> einkdoc.convert("novel.docx", config).save("novel.epub")
"""

from einkdoc.config import ConversionConfig, Margins, OCRConfig
from einkdoc.convert import (
    convert,
    convert_batch,
    detect_format,
    supported_formats,
)
from einkdoc.exceptions import (
    ConfigurationError,
    ConversionCancelled,
    EinkDocError,
    EmptyInputError,
    ExtractionError,
    NoContentError,
    RecognitionError,
    UnsupportedFormatError,
)
from einkdoc.models import (
    ConversionResult,
    ExtractedImage,
    ExtractionMethod,
    GlyphRun,
    LayoutLine,
    OutputPage,
    PageGeometry,
    PageText,
    ParsedDocument,
    QualityReport,
    Verdict,
)
from einkdoc.ocr.engine import EnginePool, RecognitionResult, TesseractEngine
from einkdoc.progress import CancellationToken, OCRProgress

__version__ = "0.1.0"
__all__ = [
    # Main API
    "convert",
    "convert_batch",
    "detect_format",
    "supported_formats",
    # Configuration
    "ConversionConfig",
    "Margins",
    "OCRConfig",
    # Results
    "ConversionResult",
    "ParsedDocument",
    "ExtractionMethod",
    "QualityReport",
    "Verdict",
    # Layout
    "GlyphRun",
    "PageText",
    "ExtractedImage",
    "LayoutLine",
    "OutputPage",
    "PageGeometry",
    # OCR
    "EnginePool",
    "TesseractEngine",
    "RecognitionResult",
    "OCRProgress",
    "CancellationToken",
    # Exceptions
    "EinkDocError",
    "UnsupportedFormatError",
    "EmptyInputError",
    "ExtractionError",
    "RecognitionError",
    "NoContentError",
    "ConversionCancelled",
    "ConfigurationError",
]


# Public API functions are imported from einkdoc.convert:
# - convert(source, config, *, extension, engine_pool, progress, cancel_token) -> ConversionResult
# - convert_batch(sources, config, ...) -> Iterator[(source, result | Exception)]
# - detect_format(name_or_ext, data) -> str
# - supported_formats() -> list[str]
