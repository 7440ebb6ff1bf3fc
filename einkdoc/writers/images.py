"""
E Ink image policies (Pillow).

E Ink panels show 16 grey levels at best, so colour is wasted and low
contrast images wash out. Images are converted before layout so that
both writers embed the same bytes.
"""

from __future__ import annotations

import io
import logging
from dataclasses import replace

from PIL import Image, ImageEnhance

from einkdoc.exceptions import ExtractionError
from einkdoc.models import ExtractedImage

logger = logging.getLogger(__name__)

BLACKWHITE_CONTRAST = 1.5


def _to_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def apply_image_policy(
    image: ExtractedImage, policy: str, *, dither: bool = True
) -> ExtractedImage | None:
    """
    Convert an image for E Ink display.

    Args:
        image: The extracted image.
        policy: "original", "grayscale", "blackwhite" or "omit".
        dither: Floyd-Steinberg dithering for "blackwhite"; plain
            thresholding at mid-grey otherwise.

    Returns:
        The converted image, or None when the policy omits images.

    Raises:
        ExtractionError: If the image bytes cannot be decoded.
    """
    if policy == "omit":
        return None
    if policy == "original":
        return image
    if policy not in ("grayscale", "blackwhite"):
        raise ValueError(f"Unknown image policy: {policy}")

    try:
        with Image.open(io.BytesIO(image.data)) as img:
            gray = img.convert("L")
    except Exception as e:
        raise ExtractionError(f"Cannot decode image {image.name}: {e}") from e

    if policy == "blackwhite":
        gray = ImageEnhance.Contrast(gray).enhance(BLACKWHITE_CONTRAST)
        mode = Image.Dither.FLOYDSTEINBERG if dither else Image.Dither.NONE
        gray = gray.convert("1", dither=mode)

    logger.debug("Applied %s policy to %s", policy, image.name)
    return replace(image, data=_to_png(gray), ext="png")
