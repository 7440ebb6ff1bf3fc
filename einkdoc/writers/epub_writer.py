"""
EPUB output using ebooklib.

EPUB reflows on the device, so the text is not paginated. It is turned
into HTML fragments (headings and paragraphs) and packaged as a single
chapter with an E Ink stylesheet and the converted images.
"""

from __future__ import annotations

import html
import logging
import tempfile
import uuid
from collections.abc import Sequence
from pathlib import Path

from einkdoc.config import ConversionConfig
from einkdoc.models import ExtractedImage

logger = logging.getLogger(__name__)

# A paragraph shorter than this, capitalised and without closing
# punctuation, is treated as a heading
MAX_HEADING_CHARS = 60
HEADING_PUNCTUATION = ".!?,;:"

CSS_FONT_FAMILIES = {
    "serif": "Georgia, 'Times New Roman', serif",
    "sans-serif": "Helvetica, Arial, sans-serif",
    "monospace": "'Courier New', monospace",
}

IMAGE_MEDIA_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
}

STYLESHEET = """body {{
    font-family: {font_family};
    font-size: {font_size}pt;
    line-height: {line_height};
    color: {color};
    margin: 0;
}}

h1, h2, h3 {{
    font-weight: bold;
    margin-top: 1em;
    margin-bottom: 0.5em;
    page-break-after: avoid;
}}

h1 {{ font-size: 1.8em; }}
h2 {{ font-size: 1.5em; }}
h3 {{ font-size: 1.3em; }}

p {{
    margin: 0.5em 0;
    text-align: justify;
    orphans: 2;
    widows: 2;
}}

img {{
    max-width: 100%;
    height: auto;
    display: block;
    margin: 1em auto;
    page-break-inside: avoid;
}}
"""


def heading_level(paragraph: str) -> int | None:
    """Heading level 1-3 by length, or None for body text."""
    text = paragraph.strip()
    if (
        not text
        or "\n" in text
        or len(text) >= MAX_HEADING_CHARS
        or text[-1] in HEADING_PUNCTUATION
        or not text[0].isupper()
    ):
        return None
    if len(text) < 20:
        return 1
    if len(text) < 40:
        return 2
    return 3


def to_html_fragments(text: str) -> str:
    """
    Convert DocumentText into escaped HTML headings and paragraphs.

    Example:
        >>> to_html_fragments("Introduction\\n\\nFirst line\\nsecond line.")
        '<h1>Introduction</h1>\\n<p>First line<br/>second line.</p>\\n'
    """
    fragments = []
    for paragraph in text.split("\n\n"):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        level = heading_level(paragraph)
        if level is not None:
            fragments.append(f"<h{level}>{html.escape(paragraph)}</h{level}>\n")
        else:
            body = "<br/>".join(html.escape(line) for line in paragraph.split("\n"))
            fragments.append(f"<p>{body}</p>\n")
    return "".join(fragments)


def _stylesheet(config: ConversionConfig) -> str:
    return STYLESHEET.format(
        font_family=CSS_FONT_FAMILIES[config.font_family],
        font_size=config.font_size,
        line_height=config.line_spacing,
        color="#{:02x}{:02x}{:02x}".format(*config.text_color),
    )


def render_epub(
    text: str,
    images: Sequence[ExtractedImage],
    config: ConversionConfig,
    title: str = "Converted Document",
    author: str = "Unknown",
) -> bytes:
    """
    Package text and images as an EPUB.

    Returns:
        The EPUB file as bytes.
    """
    from ebooklib import epub

    book = epub.EpubBook()
    book.set_identifier(f"urn:uuid:{uuid.uuid4()}")
    book.set_title(title)
    book.set_language("en")
    book.add_author(author)

    css = epub.EpubItem(
        uid="style",
        file_name="style/eink.css",
        media_type="text/css",
        content=_stylesheet(config),
    )
    book.add_item(css)

    figures = []
    for index, image in enumerate(images, start=1):
        ext = image.ext.lower()
        media_type = IMAGE_MEDIA_TYPES.get(ext)
        if media_type is None:
            logger.warning("Skipping image %s with unsupported type %s", image.name, ext)
            continue
        file_name = f"images/image{index}.{ext}"
        book.add_item(
            epub.EpubItem(
                uid=f"image{index}", file_name=file_name, media_type=media_type, content=image.data
            )
        )
        figures.append(f'<figure><img src="{file_name}" alt="Image {index}"/></figure>\n')

    chapter = epub.EpubHtml(title=title, file_name="content.xhtml", lang="en")
    chapter.content = to_html_fragments(text) + "".join(figures)
    chapter.add_item(css)
    book.add_item(chapter)

    book.toc = [epub.Link("content.xhtml", title, "content")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "output.epub"
        epub.write_epub(str(path), book)
        data = path.read_bytes()

    logger.debug("Rendered EPUB with %d images, %d bytes", len(figures), len(data))
    return data
