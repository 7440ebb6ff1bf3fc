"""
Unit tests for recognition engines and the engine pool.

Tesseract itself is never invoked; pytesseract calls are monkeypatched.
"""

import pytesseract
import pytest
from conftest import EngineFactory
from PIL import Image

from einkdoc.exceptions import RecognitionError
from einkdoc.ocr.engine import (
    EnginePool,
    TesseractEngine,
    _text_from_data,
    is_tesseract_available,
)


def tesseract_data(words):
    """Build image_to_data DICT output from (text, block, par, line, conf) tuples."""
    return {
        "text": [w[0] for w in words],
        "block_num": [w[1] for w in words],
        "par_num": [w[2] for w in words],
        "line_num": [w[3] for w in words],
        "conf": [w[4] for w in words],
    }


@pytest.fixture
def blank_image():
    return Image.new("RGB", (20, 20), "white")


# =============================================================================
# EnginePool
# =============================================================================


class TestEnginePool:
    """Test lease lifecycle."""

    def test_engine_created_lazily(self):
        factory = EngineFactory()
        pool = EnginePool(factory)

        assert factory.engines == []
        assert not pool.has_engine

        with pool.lease() as engine:
            assert engine is factory.engines[0]
            assert pool.leased

        assert not pool.leased

    def test_terminated_after_lease(self):
        factory = EngineFactory()
        pool = EnginePool(factory)

        with pool.lease():
            pass

        assert factory.engines[0].terminated
        assert not pool.has_engine

    def test_concurrent_lease_rejected(self):
        pool = EnginePool(EngineFactory())

        with pool.lease():
            with pytest.raises(RuntimeError, match="already leased"):
                with pool.lease():
                    pass

    def test_keep_alive_reuses_engine(self):
        factory = EngineFactory()
        pool = EnginePool(factory, keep_alive=True)

        with pool.lease() as first:
            pass
        with pool.lease() as second:
            pass

        assert first is second
        assert len(factory.engines) == 1
        assert not first.terminated

        pool.terminate()
        assert first.terminated
        assert not pool.has_engine

    def test_exception_terminates_even_with_keep_alive(self):
        factory = EngineFactory()
        pool = EnginePool(factory, keep_alive=True)

        with pytest.raises(ValueError):
            with pool.lease():
                raise ValueError("boom")

        assert factory.engines[0].terminated
        assert not pool.leased

    def test_new_engine_after_termination(self):
        factory = EngineFactory()
        pool = EnginePool(factory)

        with pool.lease():
            pass
        with pool.lease():
            pass

        assert len(factory.engines) == 2

    def test_terminate_without_engine(self):
        EnginePool(EngineFactory()).terminate()


# =============================================================================
# Tesseract
# =============================================================================


class TestTextFromData:
    """Test rebuilding lines and paragraphs from word boxes."""

    def test_lines_and_paragraphs(self):
        data = tesseract_data(
            [
                ("", 1, 0, 0, -1),
                ("Hello", 1, 1, 1, 90),
                ("world", 1, 1, 1, 80),
                ("again", 1, 1, 2, 70),
                ("New", 2, 1, 1, 60),
                ("  ", 2, 1, 1, -1),
                ("paragraph", 2, 1, 1, 100),
            ]
        )
        text, confidence = _text_from_data(data)

        assert text == "Hello world\nagain\n\nNew paragraph"
        assert confidence == pytest.approx(0.8)

    def test_empty(self):
        assert _text_from_data(tesseract_data([])) == ("", 0.0)


class TestTesseractEngine:
    """Test the pytesseract-backed engine."""

    def test_recognize(self, monkeypatch, blank_image):
        calls = []

        def fake_image_to_data(image, lang, config, output_type):
            calls.append((lang, config))
            return tesseract_data([("Scanned", 1, 1, 1, 95), ("page", 1, 1, 1, 85)])

        monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
        progress = []
        result = TesseractEngine().recognize(blank_image, "deu", "accurate", progress.append)

        assert result.text == "Scanned page"
        assert result.confidence == pytest.approx(0.9)
        assert calls == [("deu", "--oem 1 --psm 3")]
        assert progress == [1.0]

    def test_library_failure_becomes_recognition_error(self, monkeypatch, blank_image):
        def broken(*args, **kwargs):
            raise pytesseract.TesseractError(1, "bad language")

        monkeypatch.setattr(pytesseract, "image_to_data", broken)

        with pytest.raises(RecognitionError, match="Tesseract failed"):
            TesseractEngine().recognize(blank_image, "xxx", "fast")

    def test_unknown_quality(self, blank_image):
        with pytest.raises(RecognitionError, match="unknown quality"):
            TesseractEngine().recognize(blank_image, "eng", "perfect")

    def test_terminated_engine_refuses_work(self, blank_image):
        engine = TesseractEngine()
        engine.terminate()

        with pytest.raises(RecognitionError, match="terminated"):
            engine.recognize(blank_image, "eng", "fast")

    def test_unavailable(self, monkeypatch):
        def missing():
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", missing)
        assert is_tesseract_available() is False

    def test_available(self, monkeypatch):
        monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
        assert is_tesseract_available() is True
