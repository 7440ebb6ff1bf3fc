"""
Extraction quality scoring for the OCR fallback decision.

Native text extraction is fast but fails in a few distinct ways:
scanned pages with no text layer, broken font encodings that produce
replacement or private-use characters, shattered ligatures and letter
spacing that turn words into single characters, and substituted fonts
that produce short garbage tokens. Each failure has its own signal and
any single signal is enough to trigger OCR.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from einkdoc.models import PageText, QualityReport, Verdict

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MIN_CHARS_PER_PAGE = 50
MAX_SUSPICIOUS_RATIO = 0.05
MAX_SINGLE_CHAR_RATIO = 0.3
MIN_AVG_WORD_LENGTH = 2.0
MAX_SPARSE_PAGE_RATIO = 0.5

REPLACEMENT_CHAR = "\ufffd"

# Private Use Area ranges
PUA_RANGES = (
    (0xE000, 0xF8FF),
    (0xF0000, 0xFFFFD),
    (0x100000, 0x10FFFD),
)

# Control characters (C0 and C1) and the Specials block
CONTROL_RANGES = (
    (0x0000, 0x001F),
    (0x007F, 0x009F),
    (0xFFF0, 0xFFFF),
)

ALLOWED_CONTROLS = frozenset("\t\n\r")


def is_suspicious_char(char: str) -> bool:
    """Whether a character signals broken extraction."""
    if char == REPLACEMENT_CHAR:
        return True
    if char in ALLOWED_CONTROLS:
        return False
    code = ord(char)
    for start, end in PUA_RANGES:
        if start <= code <= end:
            return True
    for start, end in CONTROL_RANGES:
        if start <= code <= end:
            return True
    return False


# =============================================================================
# ASSESSOR
# =============================================================================


class TextQualityAssessor:
    """
    Scores DocumentText and decides whether to fall back to OCR.

    Example:
        >>> assessor = TextQualityAssessor()
        >>> report = assessor.assess("x" * 50, page_count=5)
        >>> report.should_fallback
        True
        >>> report.reasons
        ('avg chars/page 10.0 < 50',)
    """

    def __init__(
        self,
        min_chars_per_page: int = MIN_CHARS_PER_PAGE,
        max_suspicious_ratio: float = MAX_SUSPICIOUS_RATIO,
        max_single_char_ratio: float = MAX_SINGLE_CHAR_RATIO,
        min_avg_word_length: float = MIN_AVG_WORD_LENGTH,
        max_sparse_page_ratio: float = MAX_SPARSE_PAGE_RATIO,
    ):
        self.min_chars_per_page = min_chars_per_page
        self.max_suspicious_ratio = max_suspicious_ratio
        self.max_single_char_ratio = max_single_char_ratio
        self.min_avg_word_length = min_avg_word_length
        self.max_sparse_page_ratio = max_sparse_page_ratio

    def assess(
        self,
        text: str,
        page_count: int,
        page_texts: Sequence[PageText] | None = None,
    ) -> QualityReport:
        """
        Compute quality metrics for a document.

        Args:
            text: The whole DocumentText.
            page_count: Number of source pages (values below 1 count as 1).
            page_texts: Optional per-page texts; enables the sparse-page signal.

        Returns:
            QualityReport with the fallback decision and its reasons.
        """
        pages = max(page_count, 1)
        char_count = sum(1 for c in text if not c.isspace())
        avg_chars_per_page = char_count / pages

        words = text.split()
        word_count = len(words)
        avg_word_length = sum(len(w) for w in words) / word_count if word_count else 0.0
        single_char_ratio = (
            sum(1 for w in words if len(w) == 1) / word_count if word_count else 0.0
        )

        suspicious = sum(1 for c in text if is_suspicious_char(c))
        suspicious_ratio = suspicious / len(text) if text else 0.0

        sparse_ratio = 0.0
        if page_texts:
            sparse = sum(
                1
                for p in page_texts
                if sum(1 for c in p.text if not c.isspace()) < self.min_chars_per_page
            )
            sparse_ratio = sparse / len(page_texts)

        reasons: list[str] = []
        if avg_chars_per_page < self.min_chars_per_page:
            reasons.append(f"avg chars/page {avg_chars_per_page:.1f} < {self.min_chars_per_page}")
        if suspicious_ratio > self.max_suspicious_ratio:
            reasons.append(
                f"suspicious char ratio {suspicious_ratio:.3f} > {self.max_suspicious_ratio}"
            )
        if single_char_ratio > self.max_single_char_ratio:
            reasons.append(
                f"single-char word ratio {single_char_ratio:.2f} > {self.max_single_char_ratio}"
            )
        if word_count and avg_word_length < self.min_avg_word_length:
            reasons.append(
                f"avg word length {avg_word_length:.2f} < {self.min_avg_word_length}"
            )
        if sparse_ratio > self.max_sparse_page_ratio:
            reasons.append(
                f"sparse page ratio {sparse_ratio:.2f} > {self.max_sparse_page_ratio}"
            )

        should_fallback = bool(reasons)
        report = QualityReport(
            avg_chars_per_page=avg_chars_per_page,
            avg_word_length=avg_word_length,
            suspicious_char_ratio=suspicious_ratio,
            single_char_word_ratio=single_char_ratio,
            sparse_page_ratio=sparse_ratio,
            should_fallback=should_fallback,
            verdict=Verdict.POOR if should_fallback else Verdict.GOOD,
            reasons=tuple(reasons),
        )

        logger.debug(
            "Quality: %.1f chars/page, avg word %.2f, suspicious %.3f, single-char %.2f -> %s",
            avg_chars_per_page,
            avg_word_length,
            suspicious_ratio,
            single_char_ratio,
            report.verdict.value,
        )
        return report
