"""
Pytest configuration and fixtures for einkdoc tests.

PDFs are generated on the fly with PyMuPDF. OCR runs against an
in-process FakeEngine; the system Tesseract is never used.
"""

from __future__ import annotations

import importlib
import io

import fitz
import pytest
from PIL import Image

from einkdoc.exceptions import ExtractionError, RecognitionError
from einkdoc.ocr.engine import EnginePool, RecognitionResult

# The package re-exports the convert() function under the module's name
convert_module = importlib.import_module("einkdoc.convert")

DENSE_TEXT = ("The quick brown fox jumps over the lazy dog. " * 45).strip()


# =============================================================================
# Fakes
# =============================================================================


class FakeEngine:
    """RecognitionEngine that returns canned text and records its calls."""

    def __init__(self, texts=None, fail_on=(), confidence=0.9):
        self.texts = list(texts or [])
        self.fail_on = set(fail_on)
        self.confidence = confidence
        self.calls = 0
        self.languages: list[str] = []
        self.terminated = False

    def recognize(self, image, language, quality, progress=None):
        self.calls += 1
        self.languages.append(language)
        if self.calls in self.fail_on:
            raise RecognitionError(f"engine failed on call {self.calls}")
        if progress is not None:
            progress(0.5)
        if self.calls <= len(self.texts):
            text = self.texts[self.calls - 1]
        else:
            text = f"Recognized text for page {self.calls}."
        return RecognitionResult(text=text, confidence=self.confidence)

    def terminate(self):
        self.terminated = True


class FakePage:
    """PageSource with fixed runs and images and a blank raster."""

    def __init__(self, page_number, runs=(), images=(), fail_render=False):
        self.page_number = page_number
        self.runs = list(runs)
        self.images = list(images)
        self.fail_render = fail_render
        self.render_scales: list[float] = []

    def get_text_runs(self):
        return list(self.runs)

    def get_images(self):
        return list(self.images)

    def render_to_raster(self, scale):
        self.render_scales.append(scale)
        if self.fail_render:
            raise ExtractionError(f"cannot render page {self.page_number}")
        return Image.new("RGB", (int(10 * scale), int(10 * scale)), "white")


class EngineFactory:
    """Counts how many engines a pool creates."""

    def __init__(self, **engine_kwargs):
        self.engine_kwargs = engine_kwargs
        self.engines: list[FakeEngine] = []

    def __call__(self):
        engine = FakeEngine(**self.engine_kwargs)
        self.engines.append(engine)
        return engine


# =============================================================================
# Builders
# =============================================================================


def png_bytes(width: int, height: int, color="red") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def build_pdf(pages, images=None, *, title=None) -> bytes:
    """
    Build a PDF with one A4 page per text.

    Args:
        pages: Text for each page ("" for a page without a text layer).
        images: Optional {page_number: [(width, height), ...]} to embed.
        title: Optional metadata title.
    """
    images = images or {}
    doc = fitz.open()
    try:
        for number, text in enumerate(pages, start=1):
            page = doc.new_page(width=595, height=842)
            if text:
                page.insert_textbox(fitz.Rect(50, 50, 545, 792), text, fontsize=10, fontname="helv")
            for index, (width, height) in enumerate(images.get(number, [])):
                top = 600 + index * 10
                page.insert_image(
                    fitz.Rect(100, top, 100 + width, top + height),
                    stream=png_bytes(width, height),
                )
        if title:
            doc.set_metadata({"title": title})
        return doc.tobytes()
    finally:
        doc.close()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _no_system_tesseract(monkeypatch):
    """Tests never reach a real Tesseract binary through the default pool."""
    monkeypatch.setattr(convert_module, "default_engine_pool", lambda keep_alive=False: None)


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def engine_pool(fake_engine) -> EnginePool:
    """Pool handing out the shared fake_engine."""
    return EnginePool(lambda: fake_engine)


@pytest.fixture
def dense_pdf() -> bytes:
    """Two pages of clean native text."""
    return build_pdf([DENSE_TEXT, DENSE_TEXT])


@pytest.fixture
def scanned_pdf() -> bytes:
    """Dense first page, then two near-empty 'scanned' pages with images."""
    return build_pdf(
        [DENSE_TEXT, "Fig. 2", "Fig. 3"],
        images={2: [(200, 100)], 3: [(200, 100)]},
    )


@pytest.fixture
def sample_config():
    """Return a sample ConversionConfig for testing."""
    from einkdoc import ConversionConfig

    return ConversionConfig()
