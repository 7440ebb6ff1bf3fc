"""
Re-flow of normalized text and images into fixed-size output pages.

The engine works in PDF points with a top-down vertical cursor. Text is
wrapped with measured widths, so wrapping respects the active font and
size rather than a character count.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import replace
from typing import Protocol

from einkdoc.config import MM_TO_PT, ConversionConfig
from einkdoc.exceptions import NoContentError
from einkdoc.models import (
    ExtractedImage,
    ImagePlacement,
    LayoutLine,
    OutputPage,
    PageGeometry,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# PyMuPDF base-14 font names per family. Glyphs missing from these faces
# come from MuPDF's built-in Noto fallback fonts.
FONT_NAMES = {
    "serif": "tiro",
    "sans-serif": "helv",
    "monospace": "cour",
}

# Fixed image footprint
IMAGE_MAX_HEIGHT_MM = 80.0
IMAGE_SPACING_MM = 10.0

# Source pixels (96 dpi) to points
IMAGE_SCALE = 0.75

HYPHEN = "-"


# =============================================================================
# MEASUREMENT
# =============================================================================


class TextMeasurer(Protocol):
    """Rendered width of a string in the active font and size."""

    def measure(self, text: str) -> float: ...


class FitzTextMeasurer:
    """
    TextMeasurer using the same fitz.Font the PDF writer draws with.

    Characters outside the base font are measured with the fallback glyph
    MuPDF substitutes when drawing, so wrap widths match the output.
    """

    def __init__(self, fontname: str = "tiro", fontsize: float = 12):
        import fitz

        self.fontname = fontname
        self.fontsize = fontsize
        self.font = fitz.Font(fontname)

    def measure(self, text: str) -> float:
        return self.font.text_length(text, fontsize=self.fontsize)


# =============================================================================
# FLOW ENGINE
# =============================================================================


class PageFlowEngine:
    """
    Wraps text into lines and packs lines and images into OutputPages.

    Attributes:
        geometry: Output page size and margins in points.
        measurer: Width oracle for the active font.
        line_height: Vertical advance per text line.
        image_max_height: Cap on a placed image's height.
        image_spacing: Gap after each placed image.

    Example:
        >>> engine = PageFlowEngine.from_config(ConversionConfig())
        >>> pages = engine.flow("First paragraph.\\n\\nSecond paragraph.")
        >>> len(pages)
        1
    """

    def __init__(
        self,
        geometry: PageGeometry,
        measurer: TextMeasurer,
        *,
        font_size: float = 12,
        line_spacing: float = 1.2,
        paragraph_spacing: float = 0.8,
        image_max_height: float = IMAGE_MAX_HEIGHT_MM * MM_TO_PT,
        image_spacing: float = IMAGE_SPACING_MM * MM_TO_PT,
        image_scale: float = IMAGE_SCALE,
    ):
        self.geometry = geometry
        self.measurer = measurer
        self.font_size = font_size
        self.line_height = font_size * line_spacing
        self.paragraph_gap = self.line_height * paragraph_spacing
        self.image_max_height = image_max_height
        self.image_spacing = image_spacing
        self.image_scale = image_scale

    @classmethod
    def from_config(cls, config: ConversionConfig) -> PageFlowEngine:
        """Engine for the config's page profile, margins and typography."""
        return cls(
            PageGeometry.from_config(config),
            FitzTextMeasurer(FONT_NAMES[config.font_family], config.font_size),
            font_size=config.font_size,
            line_spacing=config.line_spacing,
            paragraph_spacing=config.paragraph_spacing,
        )

    # -------------------------------------------------------------------------
    # Wrapping
    # -------------------------------------------------------------------------

    def wrap(self, text: str) -> list[LayoutLine]:
        """
        Word-wrap text to the content width.

        Paragraphs are separated by blank LayoutLines; blank source lines
        inside a paragraph become blank LayoutLines too.
        """
        out: list[LayoutLine] = []
        paragraphs = [p for p in text.split("\n\n") if p.strip()]

        for index, paragraph in enumerate(paragraphs):
            for source_line in paragraph.split("\n"):
                words = source_line.split()
                if not words:
                    out.append(LayoutLine("", is_blank=True))
                    continue
                out.extend(LayoutLine(content) for content in self._wrap_words(words))

            if index < len(paragraphs) - 1:
                out.append(LayoutLine("", is_blank=True))

        return out

    def _wrap_words(self, words: Sequence[str]) -> list[str]:
        width = self.geometry.content_width
        lines: list[str] = []
        current = ""

        for word in words:
            candidate = f"{current} {word}" if current else word
            if self.measurer.measure(candidate) <= width:
                current = candidate
                continue

            if current:
                lines.append(current)
            pieces = self.break_long_word(word)
            lines.extend(pieces[:-1])
            current = pieces[-1]

        if current:
            lines.append(current)
        return lines

    def break_long_word(self, word: str) -> list[str]:
        """
        Split a word wider than the content width into hyphenated pieces.

        A word that fits is returned whole, however long it looks.
        """
        width = self.geometry.content_width
        if self.measurer.measure(word) <= width:
            return [word]

        pieces: list[str] = []
        current = ""
        for char in word:
            if current and self.measurer.measure(current + char + HYPHEN) > width:
                pieces.append(current + HYPHEN)
                current = char
            else:
                current += char
        pieces.append(current)
        return pieces

    # -------------------------------------------------------------------------
    # Pagination
    # -------------------------------------------------------------------------

    def image_size(self, image: ExtractedImage) -> tuple[float, float]:
        """
        Rendered (width, height): fits the content width, capped height.

        An image with no pixels in either dimension renders as (0, 0).
        """
        if image.width <= 0 or image.height <= 0:
            return 0.0, 0.0
        max_height = min(self.image_max_height, self.geometry.content_height)
        width = min(self.geometry.content_width, image.width * self.image_scale)
        height = width / image.aspect_ratio
        if height > max_height:
            height = max_height
            width = height * image.aspect_ratio
        return width, height

    def paginate(
        self, lines: Sequence[LayoutLine], images: Sequence[ExtractedImage] = ()
    ) -> list[OutputPage]:
        """
        Pack lines and images into pages.

        Returns:
            OutputPages with every text line's ``y`` set to the top of its
            line box.
        """
        geometry = self.geometry
        pages = [OutputPage(number=1, geometry=geometry)]
        cursor = geometry.margin_top
        pending = [image for image in images if image.width > 0 and image.height > 0]
        capacity = math.floor(geometry.content_height / self.image_max_height)

        def new_page() -> None:
            nonlocal cursor
            pages.append(OutputPage(number=len(pages) + 1, geometry=geometry))
            cursor = geometry.margin_top

        def place_image(image: ExtractedImage) -> None:
            nonlocal cursor
            width, height = self.image_size(image)
            if cursor + height > geometry.content_bottom and cursor > geometry.margin_top:
                logger.debug(
                    "Image from page %d deferred: %.1f needed, %.1f left",
                    image.page_number,
                    height,
                    geometry.content_bottom - cursor,
                )
                new_page()
            pages[-1].images.append(
                ImagePlacement(image, x=geometry.margin_left, y=cursor, width=width, height=height)
            )
            cursor += height + self.image_spacing

        for line in lines:
            if line.is_blank:
                cursor += self.paragraph_gap
                continue

            if cursor + self.line_height > geometry.content_bottom:
                if pending and capacity:
                    batch, pending = pending[:capacity], pending[capacity:]
                    for image in batch:
                        place_image(image)
                if cursor + self.line_height > geometry.content_bottom:
                    new_page()

            pages[-1].lines.append(replace(line, y=cursor))
            cursor += self.line_height

        for image in pending:
            place_image(image)

        logger.debug(
            "Paginated %d lines and %d images into %d pages", len(lines), len(images), len(pages)
        )
        return pages

    def flow(self, text: str, images: Sequence[ExtractedImage] = ()) -> list[OutputPage]:
        """
        Wrap and paginate a whole document.

        Raises:
            NoContentError: If the text is empty or only whitespace.
        """
        if not text.strip():
            raise NoContentError("No extractable content in document")
        return self.paginate(self.wrap(text), images)
