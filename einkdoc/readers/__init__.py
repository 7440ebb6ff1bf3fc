"""Document reading module.

PDFs are read page by page through the PageSource protocol (PyMuPDF);
other formats go through the adapters in ``einkdoc.readers.adapters``.
"""

from einkdoc.readers.adapters import ADAPTERS, read_document
from einkdoc.readers.pdf_reader import (
    FitzPageSource,
    PageSource,
    PDFReader,
    PDFSource,
)

__all__ = [
    # PDF
    "PDFReader",
    "PDFSource",
    "PageSource",
    "FitzPageSource",
    # Other formats
    "ADAPTERS",
    "read_document",
]
