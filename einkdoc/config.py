"""
Configuration for einkdoc document conversion.

Output geometry is expressed in millimetres, matching how E Ink device
sheets and the presets describe pages. The layout engine converts to PDF
points internally.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Literal

from einkdoc.exceptions import ConfigurationError

MM_TO_PT = 72.0 / 25.4

# Portrait page sizes in millimetres (width, height)
PAGE_PROFILES: dict[str, tuple[float, float]] = {
    "device": (107.8, 195.6),  # reMarkable Paper Pro Move, 7.3" E Ink
    "a4": (210.0, 297.0),
    "letter": (215.9, 279.4),
}

# Text colour per contrast level (RGB 0-255)
CONTRAST_COLORS: dict[str, tuple[int, int, int]] = {
    "low": (60, 60, 60),
    "medium": (30, 30, 30),
    "high": (0, 0, 0),
}

VALID_CONTRASTS = ("low", "medium", "high")
VALID_IMAGE_POLICIES = ("original", "grayscale", "blackwhite", "omit")
VALID_FONT_FAMILIES = ("serif", "sans-serif", "monospace")
VALID_OUTPUT_FORMATS = ("pdf", "epub")
VALID_OCR_QUALITIES = ("fast", "balanced", "accurate")

MIN_FONT_SIZE = 6
MAX_FONT_SIZE = 32

# Minimum rasterisation multiplier for OCR input
MIN_RENDER_SCALE = 2.0


@dataclass
class Margins:
    """Page margins in millimetres."""

    top: float = 10.0
    bottom: float = 10.0
    left: float = 10.0
    right: float = 10.0

    def __post_init__(self):
        for name in ("top", "bottom", "left", "right"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"margin {name} must be >= 0, got {getattr(self, name)}")


@dataclass
class OCRConfig:
    """
    Configuration for quality-triggered OCR fallback.

    OCR only runs when the text quality assessment says native
    extraction is untrustworthy and an engine is available.

    Example:
        >>> config = ConversionConfig(
        ...     ocr=OCRConfig(language="deu", quality="accurate")
        ... )
    """

    # Master switch for the fallback path
    enabled: bool = True

    # Tesseract language code, e.g. "eng", "deu", "chi_sim"
    language: str = "eng"
    quality: Literal["fast", "balanced", "accurate"] = "balanced"

    # Rasterisation multiplier relative to 72 dpi
    render_scale: float = 2.0

    def __post_init__(self):
        """Validate configuration."""
        if self.quality not in VALID_OCR_QUALITIES:
            raise ConfigurationError(
                f"quality must be one of {VALID_OCR_QUALITIES}, got {self.quality!r}"
            )
        if self.render_scale < MIN_RENDER_SCALE:
            raise ConfigurationError(
                f"render_scale must be >= {MIN_RENDER_SCALE}, got {self.render_scale}"
            )
        if not self.language:
            raise ConfigurationError("language must not be empty")


@dataclass
class ConversionConfig:
    """
    Configuration for document conversion.

    All options have sensible defaults for the device profile. Create a
    config only if you need to customize behavior, or start from a preset.

    Example:
        >>> config = ConversionConfig(font_size=14, contrast="high")
        >>> result = einkdoc.convert("book.pdf", config)
        >>> config = ConversionConfig.from_preset("article", output_format="epub")
    """

    # Page geometry
    page_profile: Literal["device", "a4", "letter"] = "device"
    margins: Margins = field(default_factory=Margins)

    # Typography
    font_size: int = 12
    font_family: Literal["serif", "sans-serif", "monospace"] = "serif"
    line_spacing: float = 1.2  # multiple of font size
    paragraph_spacing: float = 0.8  # blank-line gap as fraction of line height

    # E Ink rendering
    contrast: Literal["low", "medium", "high"] = "medium"
    image_policy: Literal["original", "grayscale", "blackwhite", "omit"] = "grayscale"

    output_format: Literal["pdf", "epub"] = "pdf"

    ocr: OCRConfig = field(default_factory=OCRConfig)

    def __post_init__(self):
        """Validate configuration."""
        if self.page_profile not in PAGE_PROFILES:
            raise ConfigurationError(
                f"page_profile must be one of {tuple(PAGE_PROFILES)}, got {self.page_profile!r}"
            )
        if self.contrast not in VALID_CONTRASTS:
            raise ConfigurationError(
                f"contrast must be one of {VALID_CONTRASTS}, got {self.contrast!r}"
            )
        if self.image_policy not in VALID_IMAGE_POLICIES:
            raise ConfigurationError(
                f"image_policy must be one of {VALID_IMAGE_POLICIES}, got {self.image_policy!r}"
            )
        if self.font_family not in VALID_FONT_FAMILIES:
            raise ConfigurationError(
                f"font_family must be one of {VALID_FONT_FAMILIES}, got {self.font_family!r}"
            )
        if self.output_format not in VALID_OUTPUT_FORMATS:
            raise ConfigurationError(
                f"output_format must be one of {VALID_OUTPUT_FORMATS}, "
                f"got {self.output_format!r}"
            )
        if not MIN_FONT_SIZE <= self.font_size <= MAX_FONT_SIZE:
            raise ConfigurationError(
                f"font_size must be between {MIN_FONT_SIZE} and {MAX_FONT_SIZE}, "
                f"got {self.font_size}"
            )
        if self.line_spacing <= 0:
            raise ConfigurationError(f"line_spacing must be > 0, got {self.line_spacing}")
        if self.paragraph_spacing < 0:
            raise ConfigurationError(
                f"paragraph_spacing must be >= 0, got {self.paragraph_spacing}"
            )

        width, height = self.page_size_mm
        if self.margins.left + self.margins.right >= width:
            raise ConfigurationError("horizontal margins leave no room for content")
        if self.margins.top + self.margins.bottom >= height:
            raise ConfigurationError("vertical margins leave no room for content")

    @property
    def page_size_mm(self) -> tuple[float, float]:
        """Page (width, height) in millimetres for the selected profile."""
        return PAGE_PROFILES[self.page_profile]

    @property
    def text_color(self) -> tuple[int, int, int]:
        """RGB text colour for the contrast level."""
        return CONTRAST_COLORS[self.contrast]

    @classmethod
    def from_preset(cls, name: str, **overrides) -> ConversionConfig:
        """Build a config from a named preset, with keyword overrides."""
        if name not in PRESETS:
            raise ConfigurationError(f"unknown preset {name!r}; choose from {sorted(PRESETS)}")
        return replace(copy.deepcopy(PRESETS[name]), **overrides)


PRESETS: dict[str, ConversionConfig] = {
    "book": ConversionConfig(
        font_size=12,
        line_spacing=1.5,
        margins=Margins(top=15, bottom=15, left=12, right=12),
    ),
    "article": ConversionConfig(
        font_size=11,
        contrast="high",
        line_spacing=1.15,
        margins=Margins(top=12, bottom=12, left=10, right=10),
    ),
    "technical": ConversionConfig(
        font_size=10,
        font_family="monospace",
        contrast="high",
        line_spacing=1.0,
        paragraph_spacing=0.5,
        margins=Margins(top=10, bottom=10, left=8, right=8),
    ),
    "spreadsheet": ConversionConfig(
        font_size=8,
        font_family="sans-serif",
        contrast="high",
        line_spacing=1.0,
        paragraph_spacing=0.3,
        image_policy="omit",
        margins=Margins(top=8, bottom=8, left=6, right=6),
    ),
    "presentation": ConversionConfig(
        font_size=14,
        font_family="sans-serif",
        line_spacing=1.5,
        paragraph_spacing=1.2,
        image_policy="blackwhite",
    ),
    "large_print": ConversionConfig(
        font_size=16,
        contrast="high",
        line_spacing=1.5,
        margins=Margins(top=20, bottom=20, left=15, right=15),
    ),
}
