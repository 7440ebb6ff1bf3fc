"""
Progress reporting and cooperative cancellation.

Long stages (OCR) report per-page progress through a plain callback.
Cancellation is cooperative: the pipeline checks a CancellationToken
between pages and before each OCR call, never mid-line.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass

from einkdoc.exceptions import ConversionCancelled


@dataclass(frozen=True)
class OCRProgress:
    """Progress of the OCR fallback.

    ``sub_progress`` is the engine's own 0.0-1.0 progress on the current
    page, when it exposes one.
    """

    current_page: int
    total_pages: int
    stage: str  # "rendering", "recognizing", "done", "failed"
    sub_progress: float = 0.0

    @property
    def overall(self) -> float:
        """Overall fraction complete across all pages."""
        if self.total_pages <= 0:
            return 1.0
        return min(1.0, (self.current_page - 1 + self.sub_progress) / self.total_pages)


ProgressCallback = Callable[[OCRProgress], None]


class CancellationToken:
    """Thread-safe cancellation flag shared between caller and pipeline.

    Example:
        >>> token = CancellationToken()
        >>> # from a UI thread
        >>> token.cancel()
        >>> # inside the pipeline
        >>> token.raise_if_cancelled()
        ConversionCancelled: conversion cancelled
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ConversionCancelled("conversion cancelled")
