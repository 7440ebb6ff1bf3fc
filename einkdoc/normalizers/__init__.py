"""
Normalizers for cleaning extracted DocumentText.

TextNormalizer runs four passes in order: sanitize, ligature-split
repair, structure preservation and blank-line clamping. The individual
passes are exported for callers that only need one of them.
"""

from einkdoc.normalizers.text_normalizer import (
    TextNormalizer,
    clamp_blank_lines,
    is_heading,
    is_list_item,
    preserve_structure,
    repair_ligature_splits,
    sanitize,
)

__all__ = [
    "TextNormalizer",
    # Passes
    "sanitize",
    "repair_ligature_splits",
    "preserve_structure",
    "clamp_blank_lines",
    # Line classification
    "is_list_item",
    "is_heading",
]
