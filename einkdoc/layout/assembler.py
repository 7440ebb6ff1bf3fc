"""
Reading-order reconstruction from positioned glyph runs.

PDF text layers store glyphs in paint order, not reading order. This
module clusters runs into lines by baseline, orders lines top to bottom
and runs left to right, and decides where spaces, line breaks and
paragraph breaks belong.

All tolerances scale with font size so that small footnote text is not
merged into one line and large headings are not split into several.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from einkdoc.models import PAGE_SEPARATOR, GlyphRun, Line, PageText

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Runs whose baselines differ by less than this fraction of the font size
# share a line
LINE_TOLERANCE_RATIO = 0.4

# A vertical gap above this multiple of the font size starts a paragraph.
# Single-spaced text sits near 1.2, one-and-a-half spacing near 1.5.
PARAGRAPH_GAP_RATIO = 1.8

# Horizontal gap (PDF units) between runs that implies a word boundary
WORD_GAP = 2.0

# Punctuation that is followed by a space before a word
SPACE_AFTER_PUNCTUATION = frozenset(",;:)]}.!?")

_NUMBER_SPLIT = re.compile(r"\d[.,]$")


# =============================================================================
# ASSEMBLER
# =============================================================================


class GlyphLineAssembler:
    """
    Groups a page's glyph runs into lines and paragraphs.

    Expects PDF user-space coordinates (larger y is higher on the page).

    Attributes:
        line_tolerance: Baseline tolerance as a fraction of font size.
        paragraph_gap: Line gap, in font sizes, that marks a paragraph.
        word_gap: Horizontal gap that always inserts a space.

    Example:
        >>> assembler = GlyphLineAssembler()
        >>> runs = [
        ...     GlyphRun("World", x=103, y=700, width=30, font_size=12),
        ...     GlyphRun("Hello", x=70, y=700, width=30, font_size=12),
        ... ]
        >>> assembler.assemble_page(runs)
        'Hello World'
    """

    def __init__(
        self,
        line_tolerance: float = LINE_TOLERANCE_RATIO,
        paragraph_gap: float = PARAGRAPH_GAP_RATIO,
        word_gap: float = WORD_GAP,
    ):
        self.line_tolerance = line_tolerance
        self.paragraph_gap = paragraph_gap
        self.word_gap = word_gap

    def group_lines(self, runs: Iterable[GlyphRun]) -> list[Line]:
        """
        Cluster runs into lines ordered top to bottom.

        The input is sorted first, so the result does not depend on the
        order the page reported its runs in.
        """
        ordered = sorted(
            (run for run in runs if run.text),
            key=lambda r: (-r.y, r.x, r.text),
        )

        lines: list[Line] = []
        for run in ordered:
            if lines:
                current = lines[-1]
                tolerance = self.line_tolerance * max(run.size, current.font_size)
                if abs(run.y - current.y) <= tolerance:
                    current.items.append(run)
                    current.font_size = max(current.font_size, run.size)
                    continue
            lines.append(Line(y=run.y, font_size=run.size, items=[run]))

        for line in lines:
            line.items.sort(key=lambda r: (r.x, r.text))

        return lines

    def join_line(self, line: Line) -> str:
        """Concatenate a line's runs, inserting single spaces at word breaks."""
        text = ""
        prev: GlyphRun | None = None
        pending_space = False

        for run in line.items:
            piece = run.text.strip()
            if not piece:
                # Explicit space glyphs only request a separator
                pending_space = bool(text)
                prev = run
                continue

            if text and (
                pending_space
                or run.text[0].isspace()
                or (prev is not None and prev.text[-1].isspace())
                or self._needs_space(text, prev, run, piece)
            ):
                text += " "
            text += piece
            prev = run
            pending_space = False

        return text

    def _needs_space(
        self, text: str, prev: GlyphRun | None, run: GlyphRun, piece: str
    ) -> bool:
        if prev is not None and run.x - prev.x_end > self.word_gap:
            return True

        last_char = text[-1]
        first_char = piece[0]

        # Producers that omit space glyphs leave words touching
        if last_char.isalnum() and first_char.isalnum():
            return True

        if last_char in SPACE_AFTER_PUNCTUATION and first_char.isalnum():
            # "3." + "14" is a number split across runs
            return not (first_char.isdigit() and _NUMBER_SPLIT.search(text))

        return False

    def assemble_page(self, runs: Iterable[GlyphRun]) -> str:
        """
        Flatten one page's runs into reading-order text.

        Returns:
            Lines separated by a newline, paragraphs by a blank line.
            An empty string for a page without runs.
        """
        lines = self.group_lines(runs)
        parts: list[str] = []
        prev: Line | None = None

        for line in lines:
            text = self.join_line(line)
            if not text:
                continue
            if prev is not None:
                gap = prev.y - line.y
                font_size = (prev.font_size + line.font_size) / 2
                parts.append("\n\n" if gap > self.paragraph_gap * font_size else "\n")
            parts.append(text)
            prev = line

        return "".join(parts)

    def assemble_document(
        self, page_runs: Sequence[Iterable[GlyphRun]]
    ) -> tuple[str, list[PageText]]:
        """
        Assemble every page and join them into one DocumentText.

        Returns:
            Tuple of (document text, per-page texts).
        """
        pages = [
            PageText(page_number=i + 1, text=self.assemble_page(runs))
            for i, runs in enumerate(page_runs)
        ]
        text = PAGE_SEPARATOR.join(p.text for p in pages if p.text)
        logger.debug("Assembled %d pages, %d chars", len(pages), len(text))
        return text, pages
