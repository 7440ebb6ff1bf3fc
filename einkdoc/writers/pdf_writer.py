"""
PDF output using PyMuPDF.

Draws each OutputPage as one PDF page of the configured size. Text goes
through a TextWriter with the family's fitz.Font. Characters the base face
lacks are drawn from MuPDF's fallback fonts and read back as the same
Unicode. The contrast level picks the text colour.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import fitz  # PyMuPDF

from einkdoc.config import ConversionConfig
from einkdoc.layout.flow import FONT_NAMES
from einkdoc.models import OutputPage

logger = logging.getLogger(__name__)

# Baseline offset below the top of a line box, as a fraction of font size
BASELINE_RATIO = 0.8


def render_pdf(
    pages: Sequence[OutputPage],
    config: ConversionConfig,
    *,
    title: str | None = None,
    author: str | None = None,
) -> bytes:
    """
    Serialize paginated output to PDF bytes.

    Args:
        pages: Pages from PageFlowEngine.
        config: Supplies font family, size and contrast.
        title: Optional document title for the PDF metadata.
        author: Optional author for the PDF metadata.
    """
    font = fitz.Font(FONT_NAMES[config.font_family])
    color = tuple(c / 255 for c in config.text_color)
    baseline = config.font_size * BASELINE_RATIO

    doc = fitz.open()
    try:
        for output_page in pages:
            geometry = output_page.geometry
            page = doc.new_page(width=geometry.width, height=geometry.height)

            text_lines = [
                line for line in output_page.lines if not line.is_blank and line.y is not None
            ]
            if text_lines:
                writer = fitz.TextWriter(page.rect, color=color)
                for line in text_lines:
                    writer.append(
                        fitz.Point(geometry.margin_left, line.y + baseline),
                        line.content,
                        font=font,
                        fontsize=config.font_size,
                    )
                writer.write_text(page)

            for placement in output_page.images:
                rect = fitz.Rect(
                    placement.x,
                    placement.y,
                    placement.x + placement.width,
                    placement.y + placement.height,
                )
                try:
                    page.insert_image(rect, stream=placement.image.data)
                except Exception as e:
                    logger.warning(
                        "Failed to insert image %s on page %d: %s",
                        placement.image.name,
                        output_page.number,
                        e,
                    )

        doc.set_metadata(
            {
                "title": title or "",
                "author": author or "",
                "producer": "einkdoc",
            }
        )
        data = doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()

    logger.debug("Rendered %d pages, %d bytes", len(pages), len(data))
    return data
