"""
Document conversion orchestrator.

This module provides the main `convert()` function that turns a source
document into E Ink optimized output by wiring together:
- PDFReader + GlyphLineAssembler (native PDF text)
- TextQualityAssessor + OCRFallbackCoordinator (OCR fallback)
- Format adapters (DOCX, Markdown, CSV, Excel, PowerPoint, EPUB)
- TextNormalizer (cleanup)
- PageFlowEngine + writers (output)

Each document runs serially. Per-page failures degrade that page and are
recorded in the processing log; whole-document failures propagate.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Union

from einkdoc.config import ConversionConfig
from einkdoc.exceptions import (
    ConversionCancelled,
    EmptyInputError,
    ExtractionError,
    NoContentError,
    UnsupportedFormatError,
)
from einkdoc.layout.assembler import GlyphLineAssembler
from einkdoc.layout.flow import PageFlowEngine
from einkdoc.models import (
    ConversionResult,
    ExtractedImage,
    ExtractionMethod,
    GlyphRun,
    ParsedDocument,
)
from einkdoc.normalizers.text_normalizer import TextNormalizer
from einkdoc.ocr.engine import EnginePool, TesseractEngine, is_tesseract_available
from einkdoc.ocr.fallback import OCRFallbackCoordinator
from einkdoc.ocr.quality import TextQualityAssessor
from einkdoc.progress import CancellationToken, ProgressCallback
from einkdoc.readers.adapters import read_document
from einkdoc.readers.pdf_reader import PageSource, PDFReader
from einkdoc.writers.epub_writer import render_epub
from einkdoc.writers.images import apply_image_policy
from einkdoc.writers.pdf_writer import render_pdf

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, bytearray, BinaryIO]

EXTENSION_MAP = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".doc": "docx",
    ".md": "markdown",
    ".markdown": "markdown",
    ".csv": "csv",
    ".xlsx": "xlsx",
    ".xls": "xlsx",
    ".pptx": "pptx",
    ".ppt": "pptx",
    ".epub": "epub",
}

PDF_MAGIC = b"%PDF"

DEFAULT_TITLE = "Converted Document"
DEFAULT_AUTHOR = "Unknown"


def default_engine_pool(keep_alive: bool = False) -> EnginePool | None:
    """A Tesseract pool, or None when Tesseract is not installed."""
    if not is_tesseract_available():
        return None
    return EnginePool(TesseractEngine, keep_alive=keep_alive)


# ═══════════════════════════════════════════════════════════════════════════════
# Conversion Pipeline
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class ConversionContext:
    """Context accumulated during one document's conversion."""

    config: ConversionConfig
    source_format: str
    title: str | None = None
    author: str | None = None
    processing_log: list[str] = field(default_factory=list)

    document: ParsedDocument | None = None
    text: str = ""
    images: list[ExtractedImage] = field(default_factory=list)


class ConversionPipeline:
    """
    Runs one document through extraction, cleanup, layout and rendering.

    The recognition engine is optional: without one, a document whose
    native text is poor is still converted and flagged as degraded.
    """

    def __init__(
        self,
        config: ConversionConfig | None = None,
        *,
        engine_pool: EnginePool | None = None,
        progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.config = config or ConversionConfig()
        self.engine_pool = engine_pool
        self.progress = progress
        self.cancel_token = cancel_token

        self.assembler = GlyphLineAssembler()
        self.assessor = TextQualityAssessor()
        self.normalizer = TextNormalizer()

    def run(self, data: bytes, fmt: str, title: str | None = None) -> ConversionResult:
        """
        Convert document bytes of a known format.

        Raises:
            NoContentError: If no text survives extraction and cleanup.
            ExtractionError: If the document cannot be opened at all.
            ConversionCancelled: If the cancel token fires.
        """
        ctx = ConversionContext(config=self.config, source_format=fmt, title=title)
        ctx.processing_log.append(f"Starting {fmt} conversion ({len(data)} bytes)")

        # Step 1: Extract text and images
        if fmt == "pdf":
            ctx.document = self._extract_pdf(ctx, data)
        else:
            ctx.document = read_document(data, fmt)
            ctx.processing_log.append(
                f"Adapter extracted {len(ctx.document.content_text)} chars, "
                f"{len(ctx.document.images)} images"
            )
        self._check_cancelled()

        # Step 2: Normalize
        ctx.text = self.normalizer.normalize(ctx.document.content_text)
        ctx.processing_log.append(f"Normalized text: {len(ctx.text)} chars")
        if not ctx.text.strip():
            raise NoContentError("No extractable content in document")

        # Step 3: Images
        self._apply_image_policy(ctx)

        # Step 4: Layout and render
        return self._render(ctx)

    # -------------------------------------------------------------------------
    # PDF extraction
    # -------------------------------------------------------------------------

    def _extract_pdf(self, ctx: ConversionContext, data: bytes) -> ParsedDocument:
        with PDFReader().open(data) as source:
            meta = source.metadata
            ctx.title = meta["title"] or ctx.title
            ctx.author = meta["author"]

            page_runs: list[list[GlyphRun]] = []
            images: list[ExtractedImage] = []
            for page in source.pages:
                self._check_cancelled()
                page_runs.append(self._page_runs(ctx, page))
                images.extend(self._page_images(ctx, page))

            text, page_texts = self.assembler.assemble_document(page_runs)
            ctx.processing_log.append(
                f"Native extraction: {len(text)} chars from {source.page_count} pages, "
                f"{len(images)} images"
            )

            quality = self.assessor.assess(text, source.page_count, page_texts)
            document = ParsedDocument(
                source_format="pdf",
                content_text=text,
                images=images,
                page_count=source.page_count,
                quality=quality,
            )

            if quality.should_fallback:
                reasons = "; ".join(quality.reasons)
                logger.info("Native text quality is poor (%s)", reasons)
                ctx.processing_log.append(f"Quality poor: {reasons}")
                self._ocr_fallback(ctx, document, source.pages)
            else:
                ctx.processing_log.append("Quality good: keeping native text")

        return document

    def _page_runs(self, ctx: ConversionContext, page: PageSource) -> list[GlyphRun]:
        try:
            return page.get_text_runs()
        except ExtractionError as e:
            logger.warning("Text extraction failed on page %d: %s", page.page_number, e)
            ctx.processing_log.append(f"Page {page.page_number}: text extraction failed: {e}")
            return []

    def _page_images(self, ctx: ConversionContext, page: PageSource) -> list[ExtractedImage]:
        try:
            return page.get_images()
        except ExtractionError as e:
            logger.warning("Image extraction failed on page %d: %s", page.page_number, e)
            ctx.processing_log.append(f"Page {page.page_number}: image extraction failed: {e}")
            return []

    def _ocr_fallback(
        self,
        ctx: ConversionContext,
        document: ParsedDocument,
        pages: Sequence[PageSource],
    ) -> None:
        """Replace the native text wholesale with OCR output, if possible."""
        ocr_config = self.config.ocr
        if not ocr_config.enabled:
            document.degraded = True
            ctx.processing_log.append("OCR disabled: keeping poor native text (degraded)")
            return

        pool = self.engine_pool or default_engine_pool()
        if pool is None:
            logger.warning("No recognition engine available; keeping native text")
            document.degraded = True
            ctx.processing_log.append("No OCR engine: keeping poor native text (degraded)")
            return

        coordinator = OCRFallbackCoordinator(
            pool,
            language=ocr_config.language,
            quality=ocr_config.quality,
            scale=ocr_config.render_scale,
            progress=self.progress,
            cancel_token=self.cancel_token,
        )
        result = coordinator.run(pages)

        for page_number in result.failed_pages:
            ctx.processing_log.append(f"Page {page_number}: OCR failed")

        if not result.text.strip():
            logger.warning("OCR produced no text; keeping native text")
            document.degraded = True
            ctx.processing_log.append("OCR produced no text: keeping native text (degraded)")
            return

        document.content_text = result.text
        document.extraction_method = ExtractionMethod.OCR
        ctx.processing_log.append(
            f"OCR replaced text: {len(result.text)} chars from {len(pages)} pages "
            f"(confidence {result.mean_confidence:.2f})"
        )

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _apply_image_policy(self, ctx: ConversionContext) -> None:
        policy = self.config.image_policy
        for image in ctx.document.images:
            try:
                converted = apply_image_policy(image, policy)
            except ExtractionError as e:
                logger.warning("Dropping image %s: %s", image.name, e)
                ctx.processing_log.append(f"Image {image.name} dropped: {e}")
                continue
            if converted is not None:
                ctx.images.append(converted)
        ctx.processing_log.append(
            f"Images: {len(ctx.images)} of {len(ctx.document.images)} kept ({policy})"
        )

    def _render(self, ctx: ConversionContext) -> ConversionResult:
        config = self.config
        title = ctx.title or DEFAULT_TITLE
        author = ctx.author or DEFAULT_AUTHOR

        if config.output_format == "epub":
            pages = []
            output = render_epub(ctx.text, ctx.images, config, title=title, author=author)
        else:
            pages = PageFlowEngine.from_config(config).flow(ctx.text, ctx.images)
            output = render_pdf(pages, config, title=title, author=author)

        ctx.processing_log.append(
            f"Rendered {config.output_format}: {len(output)} bytes, {len(pages)} pages"
        )
        document = ctx.document
        return ConversionResult(
            output=output,
            output_format=config.output_format,
            source_format=ctx.source_format,
            text=ctx.text,
            pages=pages,
            extraction_method=document.extraction_method,
            quality=document.quality,
            degraded=document.degraded,
            processing_log=ctx.processing_log,
        )

    def _check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


def _read_source(source: Source) -> tuple[bytes, str | None]:
    """Raw bytes and, when known, a file name for format detection."""
    if isinstance(source, (bytes, bytearray)):
        return bytes(source), None
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {path}")
        return path.read_bytes(), path.name
    name = getattr(source, "name", None)
    return source.read(), Path(name).name if isinstance(name, str) else None


def convert(
    source: Source,
    config: ConversionConfig | None = None,
    *,
    extension: str | None = None,
    engine_pool: EnginePool | None = None,
    progress: ProgressCallback | None = None,
    cancel_token: CancellationToken | None = None,
) -> ConversionResult:
    """
    Convert a document into E Ink optimized PDF or EPUB.

    This is the main entry point for einkdoc. It handles:
    - Format detection (extension, then magic bytes)
    - Native PDF text reconstruction with quality-triggered OCR
    - Adapters for DOCX, Markdown, CSV, Excel, PowerPoint and EPUB
    - Normalization, re-flow and rendering

    Args:
        source: Path, bytes, or binary file-like object
        config: Conversion configuration (uses defaults if None)
        extension: Format hint such as "pdf" or ".docx", for sources
            without a file name
        engine_pool: Recognition engine pool; Tesseract is used if None
        progress: Called with OCRProgress during OCR
        cancel_token: Checked between pages and OCR calls

    Returns:
        ConversionResult with the rendered output and diagnostics

    Raises:
        FileNotFoundError: If a source path doesn't exist
        EmptyInputError: If the source is empty or only whitespace
        UnsupportedFormatError: If the format is not supported
        ExtractionError: If the document cannot be read
        NoContentError: If no text could be extracted
        ConversionCancelled: If cancelled

    Example:
        >>> result = convert("scan.pdf")
        >>> result.extraction_method
        <ExtractionMethod.OCR: 'ocr'>
        >>> result.save("scan_eink.pdf")
    """
    config = config or ConversionConfig()
    data, name = _read_source(source)

    if not data or not data.strip():
        raise EmptyInputError(f"Empty input: {name or 'source'}")

    fmt = detect_format(extension or name or "", data=data)
    logger.info("Converting %s as %s -> %s", name or "<bytes>", fmt, config.output_format)

    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    pipeline = ConversionPipeline(
        config, engine_pool=engine_pool, progress=progress, cancel_token=cancel_token
    )
    return pipeline.run(data, fmt, title=Path(name).stem if name else None)


def convert_batch(
    sources: Iterable[Source],
    config: ConversionConfig | None = None,
    *,
    engine_pool: EnginePool | None = None,
    progress: ProgressCallback | None = None,
    cancel_token: CancellationToken | None = None,
) -> Iterator[tuple[Source, ConversionResult | Exception]]:
    """
    Convert multiple documents one at a time.

    All documents share one recognition engine, kept alive between
    documents and terminated when the batch ends. A failing document
    never stops the others.

    Yields:
        (source, result) tuples where result is ConversionResult or Exception

    Raises:
        ConversionCancelled: If the cancel token fires.
    """
    config = config or ConversionConfig()
    owns_pool = engine_pool is None
    pool = default_engine_pool(keep_alive=True) if owns_pool else engine_pool

    try:
        for source in sources:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                result = convert(
                    source,
                    config,
                    engine_pool=pool,
                    progress=progress,
                    cancel_token=cancel_token,
                )
                yield (source, result)
            except ConversionCancelled:
                raise
            except Exception as e:
                logger.warning("Conversion failed for %s: %s", _describe(source), e)
                yield (source, e)
    finally:
        if owns_pool and pool is not None:
            pool.terminate()


def _describe(source: Source) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return repr(source)


def detect_format(name_or_ext: str | Path, data: bytes | None = None) -> str:
    """
    Detect document format from file extension and magic bytes.

    Args:
        name_or_ext: File name, path, or bare extension ("pdf", ".docx")
        data: Optional document bytes for magic-byte detection

    Returns:
        Format string: "pdf", "docx", "markdown", "csv", "xlsx", "pptx", "epub"

    Raises:
        UnsupportedFormatError: If format cannot be detected or isn't supported
    """
    text = str(name_or_ext).strip().lower()
    ext = Path(text).suffix or (f".{text.lstrip('.')}" if text else "")

    if ext in EXTENSION_MAP:
        return EXTENSION_MAP[ext]

    # Try magic bytes for PDF
    header = data[:8] if data is not None else b""
    if not header and text:
        try:
            with open(name_or_ext, "rb") as f:
                header = f.read(8)
        except OSError:
            header = b""
    if header.startswith(PDF_MAGIC):
        return "pdf"

    raise UnsupportedFormatError(f"Cannot detect format for: {name_or_ext}")


def supported_formats() -> list[str]:
    """Return list of supported input formats."""
    return sorted(set(EXTENSION_MAP.values()))
