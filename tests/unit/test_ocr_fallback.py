"""
Unit tests for the serial OCR fallback coordinator.
"""

import pytest
from conftest import EngineFactory, FakeEngine, FakePage

from einkdoc.exceptions import ConfigurationError, ConversionCancelled
from einkdoc.ocr.engine import EnginePool
from einkdoc.ocr.fallback import OCRFallbackCoordinator
from einkdoc.progress import CancellationToken


def make_pages(count, **kwargs):
    return [FakePage(number, **kwargs) for number in range(1, count + 1)]


class TestRun:
    """Test page-by-page recognition."""

    def test_pages_in_order(self, engine_pool, fake_engine):
        coordinator = OCRFallbackCoordinator(engine_pool)
        result = coordinator.run(make_pages(3))

        assert fake_engine.calls == 3
        assert [p.page_number for p in result.page_texts] == [1, 2, 3]
        assert result.text == (
            "Recognized text for page 1.\n\n"
            "Recognized text for page 2.\n\n"
            "Recognized text for page 3."
        )
        assert result.failed_pages == []
        assert result.mean_confidence == pytest.approx(0.9)

    def test_text_is_stripped(self):
        engine = FakeEngine(texts=["  padded \n"])
        coordinator = OCRFallbackCoordinator(EnginePool(lambda: engine))

        assert coordinator.run(make_pages(1)).text == "padded"

    def test_language_and_scale_passed_through(self, engine_pool, fake_engine):
        pages = make_pages(2)
        coordinator = OCRFallbackCoordinator(engine_pool, language="deu", scale=3.0)
        coordinator.run(pages)

        assert fake_engine.languages == ["deu", "deu"]
        assert [p.render_scales for p in pages] == [[3.0], [3.0]]

    def test_engine_leased_once_and_released(self):
        factory = EngineFactory()
        pool = EnginePool(factory)
        OCRFallbackCoordinator(pool).run(make_pages(3))

        assert len(factory.engines) == 1
        assert factory.engines[0].calls == 3
        assert factory.engines[0].terminated
        assert not pool.has_engine

    def test_keep_alive_pool_survives_run(self):
        factory = EngineFactory()
        pool = EnginePool(factory, keep_alive=True)
        coordinator = OCRFallbackCoordinator(pool)
        coordinator.run(make_pages(1))
        coordinator.run(make_pages(1))

        assert len(factory.engines) == 1
        assert not factory.engines[0].terminated

        coordinator.close()
        assert factory.engines[0].terminated

    def test_context_manager_terminates(self):
        factory = EngineFactory()
        with OCRFallbackCoordinator(EnginePool(factory, keep_alive=True)) as coordinator:
            coordinator.run(make_pages(1))

        assert factory.engines[0].terminated


class TestPageFailures:
    """A failing page costs only that page."""

    def test_recognition_error_continues(self, caplog):
        engine = FakeEngine(texts=["one", "two", "three"], fail_on={2})
        coordinator = OCRFallbackCoordinator(EnginePool(lambda: engine))

        with caplog.at_level("WARNING"):
            result = coordinator.run(make_pages(3))

        assert engine.calls == 3
        assert result.failed_pages == [2]
        assert [p.text for p in result.page_texts] == ["one", "", "three"]
        assert result.text == "one\n\n\n\nthree"
        assert "OCR failed on page 2" in caplog.text

    def test_render_error_continues(self, engine_pool, fake_engine):
        pages = [FakePage(1), FakePage(2, fail_render=True), FakePage(3)]
        result = OCRFallbackCoordinator(engine_pool).run(pages)

        assert result.failed_pages == [2]
        assert fake_engine.calls == 2

    def test_all_pages_fail(self):
        engine = FakeEngine(fail_on={1, 2})
        result = OCRFallbackCoordinator(EnginePool(lambda: engine)).run(make_pages(2))

        assert result.failed_pages == [1, 2]
        assert result.text.strip() == ""
        assert result.mean_confidence == 0.0


class TestProgressAndCancellation:
    """Test progress callbacks and cooperative cancellation."""

    def test_progress_stages(self, engine_pool):
        events = []
        OCRFallbackCoordinator(engine_pool, progress=events.append).run(make_pages(2))

        assert [(e.current_page, e.stage, e.sub_progress) for e in events] == [
            (1, "rendering", 0.0),
            (1, "recognizing", 0.0),
            (1, "recognizing", 0.5),
            (1, "done", 1.0),
            (2, "rendering", 0.0),
            (2, "recognizing", 0.0),
            (2, "recognizing", 0.5),
            (2, "done", 1.0),
        ]
        assert all(e.total_pages == 2 for e in events)
        assert events[-1].overall == 1.0

    def test_failed_stage_reported(self):
        engine = FakeEngine(fail_on={1})
        events = []
        OCRFallbackCoordinator(EnginePool(lambda: engine), progress=events.append).run(
            make_pages(1)
        )

        assert events[-1].stage == "failed"

    def test_cancel_before_run(self):
        factory = EngineFactory()
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ConversionCancelled):
            OCRFallbackCoordinator(EnginePool(factory), cancel_token=token).run(make_pages(2))

        assert factory.engines[0].calls == 0
        assert factory.engines[0].terminated

    def test_cancel_between_pages_terminates_engine(self):
        factory = EngineFactory()
        pool = EnginePool(factory, keep_alive=True)
        token = CancellationToken()

        def cancel_after_first(progress):
            if progress.stage == "done":
                token.cancel()

        coordinator = OCRFallbackCoordinator(
            pool, progress=cancel_after_first, cancel_token=token
        )
        with pytest.raises(ConversionCancelled):
            coordinator.run(make_pages(3))

        assert factory.engines[0].calls == 1
        assert factory.engines[0].terminated
        assert not pool.leased

    def test_scale_below_minimum(self, engine_pool):
        with pytest.raises(ConfigurationError):
            OCRFallbackCoordinator(engine_pool, scale=1.0)
