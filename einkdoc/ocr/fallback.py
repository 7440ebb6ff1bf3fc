"""
Quality-triggered OCR fallback.

When native extraction is judged untrustworthy the whole document is
re-read from rendered page images. The coordinator is strictly serial:
one page is rendered, recognized and appended before the next begins,
and a failure on one page only costs that page.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from einkdoc.config import MIN_RENDER_SCALE
from einkdoc.exceptions import ConfigurationError, ExtractionError, RecognitionError
from einkdoc.models import PAGE_SEPARATOR, PageText
from einkdoc.ocr.engine import EnginePool
from einkdoc.progress import CancellationToken, OCRProgress, ProgressCallback

if TYPE_CHECKING:
    from einkdoc.readers.pdf_reader import PageSource

logger = logging.getLogger(__name__)


@dataclass
class OCRRunResult:
    """Replacement DocumentText produced by an OCR run."""

    text: str
    page_texts: list[PageText] = field(default_factory=list)
    failed_pages: list[int] = field(default_factory=list)
    mean_confidence: float = 0.0


class OCRFallbackCoordinator:
    """
    Re-reads pages through a recognition engine, one page at a time.

    The engine is leased once for the whole run, so it is reused across
    pages and released when the run ends, fails or is cancelled.

    Example:
        >>> pool = EnginePool(TesseractEngine)
        >>> with OCRFallbackCoordinator(pool, language="eng") as coordinator:
        ...     result = coordinator.run(pages)
        >>> result.failed_pages
        []
    """

    def __init__(
        self,
        pool: EnginePool,
        *,
        language: str = "eng",
        quality: str = "balanced",
        scale: float = 2.0,
        progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        if scale < MIN_RENDER_SCALE:
            raise ConfigurationError(f"scale must be >= {MIN_RENDER_SCALE}, got {scale}")
        self.pool = pool
        self.language = language
        self.quality = quality
        self.scale = scale
        self.progress = progress
        self.cancel_token = cancel_token

    def run(self, pages: Sequence[PageSource]) -> OCRRunResult:
        """
        Recognize every page in order.

        Raises:
            ConversionCancelled: If the cancel token fires between pages.
        """
        total = len(pages)
        page_texts: list[PageText] = []
        failed: list[int] = []
        confidences: list[float] = []

        logger.info("Running OCR on %d pages", total)

        with self.pool.lease() as engine:
            for index, page in enumerate(pages, start=1):
                self._check_cancelled()
                self._report(index, total, "rendering")

                try:
                    image = page.render_to_raster(self.scale)
                    self._check_cancelled()
                    self._report(index, total, "recognizing")
                    result = engine.recognize(
                        image,
                        self.language,
                        self.quality,
                        progress=self._sub_progress(index, total),
                    )
                except (RecognitionError, ExtractionError) as e:
                    logger.warning("OCR failed on page %d: %s", page.page_number, e)
                    failed.append(page.page_number)
                    page_texts.append(PageText(page_number=page.page_number, text=""))
                    self._report(index, total, "failed", 1.0)
                    continue

                text = result.text.strip()
                page_texts.append(PageText(page_number=page.page_number, text=text))
                confidences.append(result.confidence)
                logger.debug(
                    "Page %d: %d chars, confidence %.2f",
                    page.page_number,
                    len(text),
                    result.confidence,
                )
                self._report(index, total, "done", 1.0)

        return OCRRunResult(
            text=PAGE_SEPARATOR.join(p.text for p in page_texts),
            page_texts=page_texts,
            failed_pages=failed,
            mean_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
        )

    def close(self) -> None:
        """Terminate the pool's engine."""
        self.pool.terminate()

    def __enter__(self) -> OCRFallbackCoordinator:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def _report(self, page: int, total: int, stage: str, sub_progress: float = 0.0) -> None:
        if self.progress is not None:
            self.progress(OCRProgress(page, total, stage, sub_progress))

    def _sub_progress(self, page: int, total: int):
        if self.progress is None:
            return None
        return lambda fraction: self._report(page, total, "recognizing", fraction)
