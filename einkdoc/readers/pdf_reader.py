"""
PDF page source using PyMuPDF (fitz).

The pipeline only sees the PageSource protocol: positioned glyph runs,
embedded images, and a raster rendering for OCR. This module is the one
place that knows PyMuPDF's API, and it translates every library error
into ExtractionError so a bad page degrades instead of aborting.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import fitz  # PyMuPDF
from PIL import Image

from einkdoc.exceptions import ExtractionError
from einkdoc.models import ExtractedImage, GlyphRun

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

# Images smaller than this in either dimension are rules and ornaments
MIN_IMAGE_DIMENSION = 16


class PageSource(Protocol):
    """One source page as the pipeline sees it."""

    page_number: int  # 1-based

    def get_text_runs(self) -> list[GlyphRun]: ...

    def get_images(self) -> list[ExtractedImage]: ...

    def render_to_raster(self, scale: float) -> Image.Image: ...


class FitzPageSource:
    """PageSource backed by a PyMuPDF page.

    Glyph run coordinates are converted from PyMuPDF's top-down space to
    PDF user space, so a larger ``y`` is higher on the page.
    """

    def __init__(self, doc: fitz.Document, index: int):
        self._doc = doc
        self._index = index
        self.page_number = index + 1

    @property
    def _page(self) -> fitz.Page:
        return self._doc[self._index]

    def get_text_runs(self) -> list[GlyphRun]:
        try:
            page = self._page
            height = page.rect.height
            page_dict = page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)
        except Exception as e:
            raise ExtractionError(f"text extraction failed on page {self.page_number}: {e}") from e

        runs = []
        for block in page_dict.get("blocks", []):
            # Skip image blocks
            if block.get("type") != 0:
                continue

            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text:
                        continue
                    x0, y0, x1, y1 = span.get("bbox", (0, 0, 0, 0))
                    _, baseline = span.get("origin", (x0, y1))
                    runs.append(
                        GlyphRun(
                            text=text,
                            x=x0,
                            y=height - baseline,
                            width=x1 - x0,
                            font_size=span.get("size", 0.0),
                            height=y1 - y0,
                        )
                    )

        logger.debug("Page %d: %d glyph runs", self.page_number, len(runs))
        return runs

    def get_images(self) -> list[ExtractedImage]:
        try:
            page_images = self._page.get_images(full=True)
        except Exception as e:
            raise ExtractionError(f"image discovery failed on page {self.page_number}: {e}") from e

        images = []
        seen = set()
        for info in page_images:
            xref = info[0]
            if xref in seen:
                continue
            seen.add(xref)

            try:
                extracted = self._doc.extract_image(xref)
            except Exception as e:
                logger.warning("Skipping image xref %d on page %d: %s", xref, self.page_number, e)
                continue
            if not extracted:
                continue

            width, height = extracted.get("width", 0), extracted.get("height", 0)
            if width < MIN_IMAGE_DIMENSION or height < MIN_IMAGE_DIMENSION:
                continue

            images.append(
                ExtractedImage(
                    page_number=self.page_number,
                    data=extracted["image"],
                    width=width,
                    height=height,
                    name=f"page{self.page_number}_img{xref}",
                    ext=extracted.get("ext", "png"),
                )
            )
        return images

    def render_to_raster(self, scale: float) -> Image.Image:
        try:
            mat = fitz.Matrix(scale, scale)
            pix = self._page.get_pixmap(matrix=mat, alpha=False)
        except Exception as e:
            raise ExtractionError(f"rendering failed on page {self.page_number}: {e}") from e
        return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)


class PDFSource:
    """An open PDF and its pages. Use as a context manager."""

    def __init__(self, doc: fitz.Document):
        self._doc = doc
        self.pages = [FitzPageSource(doc, i) for i in range(len(doc))]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def metadata(self) -> dict[str, str | None]:
        meta = self._doc.metadata or {}
        return {"title": meta.get("title") or None, "author": meta.get("author") or None}

    def __iter__(self) -> Iterator[FitzPageSource]:
        return iter(self.pages)

    def __len__(self) -> int:
        return len(self.pages)

    def close(self) -> None:
        self._doc.close()

    def __enter__(self) -> PDFSource:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class PDFReader:
    """Opens PDFs with PyMuPDF.

    Usage:
        with PDFReader().open(data) as source:
            for page in source:
                runs = page.get_text_runs()
    """

    def open(self, data: bytes) -> PDFSource:
        """Open PDF bytes.

        Raises:
            ExtractionError: If the bytes are not a readable PDF.
        """
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise ExtractionError(f"Failed to open PDF: {e}") from e

        if doc.needs_pass:
            doc.close()
            raise ExtractionError("PDF is encrypted")

        logger.debug("Opened PDF with %d pages", len(doc))
        return PDFSource(doc)
