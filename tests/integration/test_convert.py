"""
Integration tests for the convert() orchestrator.

These tests build real PDFs and office documents in memory and run them
end to end. OCR goes through an in-process FakeEngine.
"""

import io
import zipfile

import fitz
import pytest
from conftest import EngineFactory, FakeEngine, build_pdf, convert_module

from einkdoc import (
    CancellationToken,
    ConversionCancelled,
    ConversionConfig,
    ConversionResult,
    EmptyInputError,
    EnginePool,
    ExtractionMethod,
    NoContentError,
    OCRConfig,
    UnsupportedFormatError,
    Verdict,
    convert,
    convert_batch,
    detect_format,
    supported_formats,
)


def reopen(result):
    return fitz.open(stream=result.output, filetype="pdf")


# =============================================================================
# OCR fallback
# =============================================================================


class TestOCRFallback:
    """Poor native text is replaced by recognized text."""

    def test_scanned_pages_trigger_ocr(self, scanned_pdf, engine_pool, fake_engine):
        """A dense first page cannot hide two image-only pages."""
        result = convert(scanned_pdf, engine_pool=engine_pool)

        assert fake_engine.calls == 3
        assert result.extraction_method == ExtractionMethod.OCR
        assert result.quality.verdict == Verdict.POOR
        assert not result.degraded
        assert result.text == (
            "Recognized text for page 1.\n\n"
            "Recognized text for page 2.\n\n"
            "Recognized text for page 3."
        )

    def test_engine_released_after_conversion(self, scanned_pdf, engine_pool, fake_engine):
        convert(scanned_pdf, engine_pool=engine_pool)

        assert fake_engine.terminated
        assert not engine_pool.has_engine

    def test_ocr_language_from_config(self, scanned_pdf, engine_pool, fake_engine):
        config = ConversionConfig(ocr=OCRConfig(language="fra"))
        convert(scanned_pdf, config, engine_pool=engine_pool)

        assert fake_engine.languages == ["fra"] * 3

    def test_good_text_stays_native(self, dense_pdf, engine_pool, fake_engine):
        result = convert(dense_pdf, engine_pool=engine_pool)

        assert fake_engine.calls == 0
        assert result.extraction_method == ExtractionMethod.NATIVE
        assert result.quality.verdict == Verdict.GOOD
        assert "quick brown fox" in result.text

    def test_failed_page_is_logged(self, scanned_pdf):
        engine = FakeEngine(fail_on={2})
        result = convert(scanned_pdf, engine_pool=EnginePool(lambda: engine))

        assert result.extraction_method == ExtractionMethod.OCR
        assert "Page 2: OCR failed" in result.processing_log
        assert "page 1" in result.text
        assert "page 3" in result.text

    def test_progress_reported(self, scanned_pdf, engine_pool):
        events = []
        convert(scanned_pdf, engine_pool=engine_pool, progress=events.append)

        assert {e.current_page for e in events} == {1, 2, 3}
        assert events[-1].stage == "done"
        assert events[-1].overall == 1.0


class TestDegraded:
    """Poor text is kept and flagged when OCR cannot replace it."""

    def test_no_engine_available(self, scanned_pdf):
        result = convert(scanned_pdf)

        assert result.degraded
        assert result.extraction_method == ExtractionMethod.NATIVE
        assert "Fig. 2" in result.text
        assert any("No OCR engine" in line for line in result.processing_log)

    def test_ocr_disabled(self, scanned_pdf, engine_pool, fake_engine):
        config = ConversionConfig(ocr=OCRConfig(enabled=False))
        result = convert(scanned_pdf, config, engine_pool=engine_pool)

        assert fake_engine.calls == 0
        assert result.degraded

    def test_empty_ocr_output_keeps_native_text(self, scanned_pdf):
        engine = FakeEngine(texts=["", "  ", ""])
        result = convert(scanned_pdf, engine_pool=EnginePool(lambda: engine))

        assert result.degraded
        assert result.extraction_method == ExtractionMethod.NATIVE
        assert "quick brown fox" in result.text

    def test_blank_pdf_has_no_content(self):
        engine = FakeEngine(texts=["", ""])
        with pytest.raises(NoContentError):
            convert(build_pdf(["", ""]), engine_pool=EnginePool(lambda: engine))

    def test_blank_pdf_without_engine(self):
        with pytest.raises(NoContentError):
            convert(build_pdf([""]))


# =============================================================================
# Input handling
# =============================================================================


class TestInputs:
    """Test sources, empty input and format detection."""

    @pytest.mark.parametrize("data", [b"", b"   \n\t  "])
    def test_empty_input_rejected_before_parsing(self, monkeypatch, data):
        class ExplodingReader:
            def open(self, data):
                raise AssertionError("parser must not run on empty input")

        monkeypatch.setattr(convert_module, "PDFReader", ExplodingReader)

        with pytest.raises(EmptyInputError):
            convert(data, extension="pdf")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.docx"
        path.write_bytes(b"")

        with pytest.raises(EmptyInputError):
            convert(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            convert(tmp_path / "missing.pdf")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "file.xyz"
        path.write_text("some content")

        with pytest.raises(UnsupportedFormatError):
            convert(path)

    def test_file_like_source(self, dense_pdf):
        """Without a name the PDF is found by its magic bytes."""
        result = convert(io.BytesIO(dense_pdf))
        assert result.source_format == "pdf"

    def test_title_from_file_name(self, tmp_path, dense_pdf):
        path = tmp_path / "my_paper.pdf"
        path.write_bytes(dense_pdf)

        with reopen(convert(path)) as doc:
            assert doc.metadata["title"] == "my_paper"

    def test_title_from_pdf_metadata(self, tmp_path):
        path = tmp_path / "file.pdf"
        path.write_bytes(build_pdf(["Some text " * 20], title="Real Title"))

        with reopen(convert(path)) as doc:
            assert doc.metadata["title"] == "Real Title"

    def test_csv_bytes_with_extension(self):
        result = convert(b"name,qty\napples,3\n", extension=".csv")

        assert result.source_format == "csv"
        assert "name | qty" in result.text
        assert result.page_count == 1

    def test_markdown_to_epub(self):
        config = ConversionConfig(output_format="epub")
        result = convert(b"# Title\n\nBody text here.", config, extension="md")

        assert result.output_format == "epub"
        assert result.pages == []
        with zipfile.ZipFile(io.BytesIO(result.output)) as archive:
            assert archive.read("mimetype") == b"application/epub+zip"


class TestDetectFormat:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("paper.PDF", "pdf"),
            ("pdf", "pdf"),
            (".docx", "docx"),
            ("notes.md", "markdown"),
            ("data.csv", "csv"),
            ("sheet.xlsx", "xlsx"),
            ("deck.pptx", "pptx"),
            ("book.epub", "epub"),
        ],
    )
    def test_extensions(self, name, expected):
        assert detect_format(name) == expected

    def test_magic_bytes(self):
        assert detect_format("download", data=b"%PDF-1.7\n...") == "pdf"

    def test_unknown(self):
        with pytest.raises(UnsupportedFormatError, match="Cannot detect format"):
            detect_format("archive.tar", data=b"\x00\x01")

    def test_supported_formats(self):
        assert supported_formats() == ["csv", "docx", "epub", "markdown", "pdf", "pptx", "xlsx"]


# =============================================================================
# Output
# =============================================================================


class TestOutput:
    def test_pdf_output_pages(self, dense_pdf):
        result = convert(dense_pdf)

        assert result.output_format == "pdf"
        assert result.page_count > 1
        with reopen(result) as doc:
            assert len(doc) == result.page_count
            assert "quick brown fox" in doc[0].get_text()

    def test_images_follow_policy(self, scanned_pdf, engine_pool):
        kept = convert(scanned_pdf, engine_pool=engine_pool)
        omitted = convert(
            scanned_pdf, ConversionConfig(image_policy="omit"), engine_pool=engine_pool
        )

        assert sum(len(p.images) for p in kept.pages) == 2
        assert sum(len(p.images) for p in omitted.pages) == 0

    def test_save(self, tmp_path, dense_pdf):
        path = tmp_path / "out.pdf"
        convert(dense_pdf).save(path)

        assert path.read_bytes().startswith(b"%PDF")

    def test_processing_log(self, dense_pdf):
        log = convert(dense_pdf).processing_log

        assert log[0].startswith("Starting pdf conversion")
        assert "Quality good: keeping native text" in log
        assert log[-1].startswith("Rendered pdf")


# =============================================================================
# Cancellation and batches
# =============================================================================


class TestCancellation:
    def test_cancel_before_start(self, scanned_pdf, engine_pool, fake_engine):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ConversionCancelled):
            convert(scanned_pdf, engine_pool=engine_pool, cancel_token=token)
        assert fake_engine.calls == 0

    def test_cancel_during_ocr(self, scanned_pdf, engine_pool, fake_engine):
        token = CancellationToken()

        def cancel_after_first_page(progress):
            if progress.stage == "done":
                token.cancel()

        with pytest.raises(ConversionCancelled):
            convert(
                scanned_pdf,
                engine_pool=engine_pool,
                progress=cancel_after_first_page,
                cancel_token=token,
            )

        assert fake_engine.calls == 1
        assert fake_engine.terminated


class TestConvertBatch:
    def test_failure_does_not_stop_batch(self, tmp_path, dense_pdf):
        good = tmp_path / "good.pdf"
        good.write_bytes(dense_pdf)
        notes = tmp_path / "notes.md"
        notes.write_text("# Notes\n\nSome text.")
        missing = tmp_path / "missing.pdf"

        results = list(convert_batch([good, missing, notes]))

        assert [source for source, _ in results] == [good, missing, notes]
        assert isinstance(results[0][1], ConversionResult)
        assert isinstance(results[1][1], FileNotFoundError)
        assert isinstance(results[2][1], ConversionResult)

    def test_engine_shared_and_terminated(self, monkeypatch, scanned_pdf):
        factory = EngineFactory()
        pools = []

        def pool_factory(keep_alive=False):
            pool = EnginePool(factory, keep_alive=keep_alive)
            pools.append(pool)
            return pool

        monkeypatch.setattr(convert_module, "default_engine_pool", pool_factory)

        batch = convert_batch([scanned_pdf, b"", scanned_pdf])
        first = next(batch)
        assert first[1].extraction_method == ExtractionMethod.OCR
        assert not factory.engines[0].terminated

        rest = list(batch)
        assert isinstance(rest[0][1], EmptyInputError)
        assert rest[1][1].extraction_method == ExtractionMethod.OCR

        assert len(pools) == 1
        assert len(factory.engines) == 1
        assert factory.engines[0].calls == 6
        assert factory.engines[0].terminated

    def test_caller_pool_left_alive(self, scanned_pdf):
        factory = EngineFactory()
        pool = EnginePool(factory, keep_alive=True)

        list(convert_batch([scanned_pdf], engine_pool=pool))

        assert pool.has_engine
        assert not factory.engines[0].terminated
        pool.terminate()

    def test_cancelled_batch_raises(self, dense_pdf):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ConversionCancelled):
            list(convert_batch([dense_pdf], cancel_token=token))
