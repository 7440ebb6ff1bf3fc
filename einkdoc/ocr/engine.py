"""
Text recognition engines and the single-consumer engine pool.

The pipeline never talks to an OCR library directly. It leases a
RecognitionEngine from an EnginePool, so tests and callers can inject
any engine that satisfies the protocol.

Recognition engines are CPU-heavy and hold large models in memory, so
the pool hands out at most one lease at a time and terminates the engine
when the lease ends (or when the batch that kept it alive finishes).
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Protocol

from PIL import Image

from einkdoc.exceptions import RecognitionError

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Tesseract configs per quality profile. LSTM-only (--oem 1) is slower but
# more accurate on degraded scans.
TESSERACT_CONFIGS = {
    "fast": "--oem 3 --psm 3",
    "balanced": "--oem 3 --psm 3",
    "accurate": "--oem 1 --psm 3",
}


# =============================================================================
# DATA STRUCTURES
# =============================================================================


@dataclass(frozen=True)
class RecognitionResult:
    """Text recognized on one page image."""

    text: str
    confidence: float  # 0.0-1.0


SubProgressCallback = Callable[[float], None]


class RecognitionEngine(Protocol):
    """Anything that can turn a page image into text."""

    def recognize(
        self,
        image: Image.Image,
        language: str,
        quality: str,
        progress: SubProgressCallback | None = None,
    ) -> RecognitionResult: ...

    def terminate(self) -> None: ...


# =============================================================================
# TESSERACT
# =============================================================================


def is_tesseract_available() -> bool:
    """Check if Tesseract is installed and usable."""
    try:
        import pytesseract

        pytesseract.get_tesseract_version()
        return True
    except ImportError:
        logger.debug("pytesseract not installed")
        return False
    except pytesseract.TesseractNotFoundError:
        logger.debug("Tesseract binary not found")
        return False


class TesseractEngine:
    """
    RecognitionEngine backed by the Tesseract binary via pytesseract.

    Tesseract runs as a subprocess per call, so there is no model to
    unload; ``terminate`` only marks the engine unusable.

    Example:
        >>> engine = TesseractEngine()
        >>> result = engine.recognize(page_image, "eng", "balanced")
        >>> result.confidence
        0.91
    """

    def __init__(self) -> None:
        self._terminated = False

    def recognize(
        self,
        image: Image.Image,
        language: str,
        quality: str,
        progress: SubProgressCallback | None = None,
    ) -> RecognitionResult:
        if self._terminated:
            raise RecognitionError("engine has been terminated")
        config = TESSERACT_CONFIGS.get(quality)
        if config is None:
            raise RecognitionError(f"unknown quality profile {quality!r}")

        try:
            import pytesseract

            data = pytesseract.image_to_data(
                image, lang=language, config=config, output_type=pytesseract.Output.DICT
            )
        except Exception as e:
            raise RecognitionError(f"Tesseract failed: {e}") from e

        text, confidence = _text_from_data(data)
        if progress is not None:
            progress(1.0)
        return RecognitionResult(text=text, confidence=confidence)

    def terminate(self) -> None:
        self._terminated = True


def _text_from_data(data: dict) -> tuple[str, float]:
    """
    Rebuild line structure from Tesseract's word-level output.

    Words are grouped by (block, paragraph, line); paragraphs are separated
    by a blank line.

    Returns:
        Tuple of (text, mean confidence of words with a positive score).
    """
    lines: OrderedDict[tuple[int, int, int], list[str]] = OrderedDict()
    confidences = []

    for i, word in enumerate(data["text"]):
        if not word or not word.strip():
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word.strip())
        conf = float(data["conf"][i])
        if conf > 0:  # -1 means no confidence
            confidences.append(conf / 100.0)

    parts: list[str] = []
    prev_par = None
    for (block, par, _line), words in lines.items():
        if prev_par is not None:
            parts.append("\n\n" if (block, par) != prev_par else "\n")
        parts.append(" ".join(words))
        prev_par = (block, par)

    avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return "".join(parts), avg_confidence


# =============================================================================
# ENGINE POOL
# =============================================================================


class EnginePool:
    """
    Holds at most one RecognitionEngine for a single consumer.

    The engine is created lazily on the first lease. With ``keep_alive``
    the engine survives between leases (batch runs) until ``terminate``
    is called; otherwise it is terminated when each lease ends. A lease
    that exits with an exception always terminates the engine.

    Example:
        >>> pool = EnginePool(TesseractEngine)
        >>> with pool.lease() as engine:
        ...     result = engine.recognize(image, "eng", "fast")
    """

    def __init__(
        self,
        factory: Callable[[], RecognitionEngine],
        keep_alive: bool = False,
    ):
        self._factory = factory
        self.keep_alive = keep_alive
        self._engine: RecognitionEngine | None = None
        self._leased = False

    @property
    def leased(self) -> bool:
        return self._leased

    @property
    def has_engine(self) -> bool:
        """Whether an engine instance is currently alive."""
        return self._engine is not None

    @contextmanager
    def lease(self) -> Iterator[RecognitionEngine]:
        """Acquire the engine for exclusive, serial use."""
        if self._leased:
            raise RuntimeError("recognition engine is already leased")
        self._leased = True
        try:
            if self._engine is None:
                logger.debug("Creating recognition engine")
                self._engine = self._factory()
            yield self._engine
        except BaseException:
            self.terminate()
            raise
        else:
            if not self.keep_alive:
                self.terminate()
        finally:
            self._leased = False

    def terminate(self) -> None:
        """Release the engine, if one is alive."""
        engine, self._engine = self._engine, None
        if engine is not None:
            logger.debug("Terminating recognition engine")
            engine.terminate()
