"""
Text layout: reading-order reconstruction and output re-flow.

- GlyphLineAssembler: positioned glyph runs -> reading-order page text
- PageFlowEngine: normalized text and images -> fixed-size OutputPages
"""

from einkdoc.layout.assembler import GlyphLineAssembler
from einkdoc.layout.flow import (
    FONT_NAMES,
    FitzTextMeasurer,
    PageFlowEngine,
    TextMeasurer,
)

__all__ = [
    "GlyphLineAssembler",
    "PageFlowEngine",
    "TextMeasurer",
    "FitzTextMeasurer",
    "FONT_NAMES",
]
