"""
Output writers.

- images: E Ink image policies (Pillow)
- pdf_writer: paginated PDF (PyMuPDF)
- epub_writer: reflowable EPUB (ebooklib)
"""

from einkdoc.writers.epub_writer import render_epub, to_html_fragments
from einkdoc.writers.images import apply_image_policy
from einkdoc.writers.pdf_writer import render_pdf

__all__ = [
    "apply_image_policy",
    "render_pdf",
    "render_epub",
    "to_html_fragments",
]
