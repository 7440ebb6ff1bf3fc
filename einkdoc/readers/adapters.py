"""
Format adapters for non-PDF inputs.

Each adapter turns raw bytes into a ParsedDocument: plain text with
paragraphs separated by blank lines, plus any embedded images. These
formats carry their text explicitly, so there is no layout
reconstruction and no OCR decision to make.
"""

from __future__ import annotations

import csv
import io
import logging
import tempfile
from collections.abc import Callable
from pathlib import Path

from PIL import Image

from einkdoc.exceptions import ExtractionError, UnsupportedFormatError
from einkdoc.models import PAGE_SEPARATOR, ExtractedImage, ParsedDocument

logger = logging.getLogger(__name__)

# Separator between cells in tabular output
CELL_SEPARATOR = " | "
HEADER_RULE = "---"


# =============================================================================
# HELPERS
# =============================================================================


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _image_from_bytes(data: bytes, page_number: int, name: str | None) -> ExtractedImage | None:
    """Wrap encoded image bytes, or None if Pillow cannot read them."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            ext = (img.format or "png").lower()
    except Exception as e:
        logger.warning("Skipping unreadable image %s: %s", name, e)
        return None
    return ExtractedImage(
        page_number=page_number, data=data, width=width, height=height, name=name, ext=ext
    )


def _rows_to_text(rows: list[list[str]]) -> str:
    """Header row, a rule, then the remaining rows."""
    rows = [row for row in rows if any(cell.strip() for cell in row)]
    if not rows:
        return ""
    lines = [CELL_SEPARATOR.join(cell.strip() for cell in rows[0]), HEADER_RULE]
    lines.extend(CELL_SEPARATOR.join(cell.strip() for cell in row) for row in rows[1:])
    return "\n".join(lines)


# =============================================================================
# ADAPTERS
# =============================================================================


def read_docx(data: bytes) -> ParsedDocument:
    """Word documents: paragraphs, then table rows."""
    from docx import Document

    try:
        doc = Document(io.BytesIO(data))
    except Exception as e:
        raise ExtractionError(f"Failed to read DOCX: {e}") from e

    parts = [para.text for para in doc.paragraphs if para.text.strip()]

    for table in doc.tables:
        rows = [[cell.text for cell in row.cells] for row in table.rows]
        table_text = _rows_to_text(rows)
        if table_text:
            parts.append(table_text)

    images = []
    for rel in doc.part.rels.values():
        if rel.is_external or "image" not in rel.reltype:
            continue
        image = _image_from_bytes(rel.target_part.blob, 1, Path(rel.target_ref).name)
        if image is not None:
            images.append(image)

    return ParsedDocument(
        source_format="docx", content_text=PAGE_SEPARATOR.join(parts), images=images
    )


def read_markdown(data: bytes) -> ParsedDocument:
    """Markdown rendered to HTML, then flattened block by block."""
    import markdown
    from bs4 import BeautifulSoup

    html = markdown.markdown(_decode(data), extensions=["tables"])
    soup = BeautifulSoup(html, "html.parser")

    blocks = []
    for element in soup.find_all(recursive=False):
        if element.name == "ul":
            text = "\n".join(f"• {li.get_text(' ', strip=True)}" for li in element.find_all("li"))
        elif element.name == "ol":
            text = "\n".join(
                f"{i}. {li.get_text(' ', strip=True)}"
                for i, li in enumerate(element.find_all("li"), start=1)
            )
        elif element.name == "table":
            rows = [
                [cell.get_text(" ", strip=True) for cell in tr.find_all(["th", "td"])]
                for tr in element.find_all("tr")
            ]
            text = _rows_to_text(rows)
        else:
            text = element.get_text().strip()
        if text:
            blocks.append(text)

    return ParsedDocument(source_format="markdown", content_text=PAGE_SEPARATOR.join(blocks))


def read_csv(data: bytes) -> ParsedDocument:
    """Comma-separated values as a pipe-separated table."""
    try:
        rows = list(csv.reader(io.StringIO(_decode(data))))
    except csv.Error as e:
        raise ExtractionError(f"Failed to read CSV: {e}") from e
    return ParsedDocument(source_format="csv", content_text=_rows_to_text(rows))


def read_xlsx(data: bytes) -> ParsedDocument:
    """Excel workbooks: one table per sheet under a sheet header."""
    import openpyxl

    try:
        workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ExtractionError(f"Failed to read Excel workbook: {e}") from e

    try:
        parts = []
        for sheet in workbook.worksheets:
            rows = [
                ["" if value is None else str(value) for value in row]
                for row in sheet.iter_rows(values_only=True)
            ]
            table_text = _rows_to_text(rows)
            if table_text:
                parts.append(f"=== {sheet.title} ===\n{table_text}")
    finally:
        workbook.close()

    return ParsedDocument(
        source_format="xlsx",
        content_text=PAGE_SEPARATOR.join(parts),
        page_count=len(parts) or None,
    )


def read_pptx(data: bytes) -> ParsedDocument:
    """PowerPoint: the text of each slide as one paragraph."""
    from pptx import Presentation
    from pptx.enum.shapes import MSO_SHAPE_TYPE

    try:
        prs = Presentation(io.BytesIO(data))
    except Exception as e:
        raise ExtractionError(f"Failed to read PPTX: {e}") from e

    parts = []
    images = []
    for number, slide in enumerate(prs.slides, start=1):
        texts = []
        for shape in slide.shapes:
            if shape.has_text_frame and shape.text_frame.text.strip():
                texts.append(shape.text_frame.text.strip())
            elif shape.shape_type == MSO_SHAPE_TYPE.PICTURE:
                image = _image_from_bytes(shape.image.blob, number, shape.name)
                if image is not None:
                    images.append(image)
        if texts:
            parts.append("\n".join(texts))

    return ParsedDocument(
        source_format="pptx",
        content_text=PAGE_SEPARATOR.join(parts),
        images=images,
        page_count=len(prs.slides),
    )


def _html_to_text(content: bytes) -> str:
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(content, "html.parser")
    for tag in soup(["script", "style", "nav"]):
        tag.decompose()

    blocks = [
        element.get_text(" ", strip=True)
        for element in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6", "p", "li"])
    ]
    blocks = [b for b in blocks if b]
    if blocks:
        return "\n".join(blocks)
    return soup.get_text(" ", strip=True)


def read_epub(data: bytes) -> ParsedDocument:
    """EPUB: one paragraph block per content document, in spine order."""
    import ebooklib
    from ebooklib import epub

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "input.epub"
        path.write_bytes(data)
        try:
            book = epub.read_epub(str(path))
        except Exception as e:
            raise ExtractionError(f"Failed to read EPUB: {e}") from e

    documents = [book.get_item_with_id(idref) for idref, _ in book.spine]
    documents = [item for item in documents if item is not None]
    if not documents:
        documents = list(book.get_items_of_type(ebooklib.ITEM_DOCUMENT))

    parts = []
    for item in documents:
        if item.get_type() != ebooklib.ITEM_DOCUMENT:
            continue
        text = _html_to_text(item.get_content())
        if text:
            parts.append(text)

    images = []
    for item in book.get_items_of_type(ebooklib.ITEM_IMAGE):
        image = _image_from_bytes(item.get_content(), 1, Path(item.get_name()).name)
        if image is not None:
            images.append(image)

    return ParsedDocument(
        source_format="epub",
        content_text=PAGE_SEPARATOR.join(parts),
        images=images,
        page_count=len(parts) or None,
    )


ADAPTERS: dict[str, Callable[[bytes], ParsedDocument]] = {
    "docx": read_docx,
    "markdown": read_markdown,
    "csv": read_csv,
    "xlsx": read_xlsx,
    "pptx": read_pptx,
    "epub": read_epub,
}


def read_document(data: bytes, fmt: str) -> ParsedDocument:
    """
    Parse a non-PDF document.

    Args:
        data: Raw document bytes.
        fmt: Format name as returned by ``detect_format``.

    Raises:
        UnsupportedFormatError: If no adapter handles ``fmt``.
        ExtractionError: If the document is corrupt.
    """
    adapter = ADAPTERS.get(fmt)
    if adapter is None:
        raise UnsupportedFormatError(f"No adapter for format: {fmt}")

    logger.debug("Reading %s document (%d bytes)", fmt, len(data))
    parsed = adapter(data)
    logger.debug("Extracted %d chars, %d images", len(parsed.content_text), len(parsed.images))
    return parsed
