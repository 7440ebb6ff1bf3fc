"""
Data models for einkdoc.

These models cover the whole pipeline, from positioned glyph runs read
off a PDF page to the fixed-size output pages handed to a writer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from einkdoc.config import MM_TO_PT, ConversionConfig

DEFAULT_FONT_SIZE = 12.0

# Separator between pages (and paragraphs) in DocumentText
PAGE_SEPARATOR = "\n\n"


# ═══════════════════════════════════════════════════════════════════════════════
# Extraction
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GlyphRun:
    """One positioned text fragment from a page's text layer.

    Coordinates are in PDF user space: ``y`` is the baseline and grows
    upwards, so a larger ``y`` is higher on the page.
    """

    text: str
    x: float
    y: float
    width: float
    font_size: float = 0.0
    height: float = 0.0

    @property
    def size(self) -> float:
        """Effective glyph size used for tolerances."""
        return self.font_size or self.height or DEFAULT_FONT_SIZE

    @property
    def x_end(self) -> float:
        """Right edge of the run."""
        return self.x + self.width


@dataclass
class Line:
    """Glyph runs sharing one inferred baseline band, ordered left to right."""

    y: float
    font_size: float
    items: list[GlyphRun] = field(default_factory=list)


@dataclass(frozen=True)
class PageText:
    """One page's flattened reading-order text."""

    page_number: int  # 1-based
    text: str


@dataclass(frozen=True)
class ExtractedImage:
    """An image pulled out of the source document."""

    page_number: int
    data: bytes  # encoded image (PNG/JPEG)
    width: int  # pixels
    height: int  # pixels
    name: str | None = None
    ext: str = "png"

    @property
    def aspect_ratio(self) -> float:
        """Width divided by height."""
        return self.width / self.height if self.height else 1.0


class ExtractionMethod(Enum):
    """Which source produced the DocumentText."""

    NATIVE = "native"
    OCR = "ocr"


# ═══════════════════════════════════════════════════════════════════════════════
# Quality
# ═══════════════════════════════════════════════════════════════════════════════


class Verdict(Enum):
    """Overall extraction quality verdict."""

    GOOD = "good"
    POOR = "poor"


@dataclass(frozen=True)
class QualityReport:
    """Text quality metrics and the OCR fallback decision."""

    avg_chars_per_page: float
    avg_word_length: float
    suspicious_char_ratio: float
    single_char_word_ratio: float
    sparse_page_ratio: float
    should_fallback: bool
    verdict: Verdict
    reasons: tuple[str, ...] = ()


# ═══════════════════════════════════════════════════════════════════════════════
# Layout
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PageGeometry:
    """Output page size and margins, all in the same unit (PDF points)."""

    width: float
    height: float
    margin_top: float
    margin_bottom: float
    margin_left: float
    margin_right: float

    @property
    def content_width(self) -> float:
        return self.width - self.margin_left - self.margin_right

    @property
    def content_height(self) -> float:
        return self.height - self.margin_top - self.margin_bottom

    @property
    def content_bottom(self) -> float:
        """Lowest y (top-down) the content may reach."""
        return self.height - self.margin_bottom

    @classmethod
    def from_config(cls, config: ConversionConfig) -> PageGeometry:
        """Geometry in points for the config's page profile and margins."""
        width_mm, height_mm = config.page_size_mm
        m = config.margins
        return cls(
            width=width_mm * MM_TO_PT,
            height=height_mm * MM_TO_PT,
            margin_top=m.top * MM_TO_PT,
            margin_bottom=m.bottom * MM_TO_PT,
            margin_left=m.left * MM_TO_PT,
            margin_right=m.right * MM_TO_PT,
        )


@dataclass(frozen=True)
class LayoutLine:
    """A wrapped output line; ``y`` (top of line box) is set when paginated."""

    content: str
    is_blank: bool = False
    y: float | None = None


@dataclass(frozen=True)
class ImagePlacement:
    """An image positioned on an output page (top-down coordinates)."""

    image: ExtractedImage
    x: float
    y: float
    width: float
    height: float


@dataclass
class OutputPage:
    """One fixed-size output page with its text lines and images."""

    number: int  # 1-based
    geometry: PageGeometry
    lines: list[LayoutLine] = field(default_factory=list)
    images: list[ImagePlacement] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines and not self.images


# ═══════════════════════════════════════════════════════════════════════════════
# Documents
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class ParsedDocument:
    """Text and images extracted from a source document.

    This is the contract every format adapter fulfils, and what the PDF
    extraction stage produces once the OCR decision is made.
    """

    source_format: str
    content_text: str
    images: list[ExtractedImage] = field(default_factory=list)
    page_count: int | None = None
    extraction_method: ExtractionMethod = ExtractionMethod.NATIVE
    quality: QualityReport | None = None
    degraded: bool = False


@dataclass
class ConversionResult:
    """
    The main output type for users.

    Example:
        >>> result = einkdoc.convert("book.pdf")
        >>> result.extraction_method
        <ExtractionMethod.NATIVE: 'native'>
        >>> result.save("book_eink.pdf")
    """

    output: bytes
    output_format: str
    source_format: str
    text: str
    pages: list[OutputPage] = field(default_factory=list)
    extraction_method: ExtractionMethod = ExtractionMethod.NATIVE
    quality: QualityReport | None = None
    degraded: bool = False
    processing_log: list[str] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        """Number of output pages (0 for EPUB, which reflows on device)."""
        return len(self.pages)

    def save(self, path: str | Path) -> None:
        """Write the rendered output to ``path``."""
        Path(path).write_bytes(self.output)
