#!/usr/bin/env python3
"""
Basic einkdoc Usage Example

This example demonstrates the core workflow:
1. Convert a document with default settings
2. Start from a preset and override options
3. Inspect the OCR decision and processing log
4. Report OCR progress and cancel a conversion
5. Convert a batch sharing one recognition engine
"""

import threading
from pathlib import Path

from einkdoc import (
    CancellationToken,
    ConversionCancelled,
    ConversionConfig,
    ExtractionMethod,
    Margins,
    OCRConfig,
    convert,
)


def main():
    # ─────────────────────────────────────────────────────────────────────────
    # 1. Basic Conversion
    # ─────────────────────────────────────────────────────────────────────────

    # Device profile (107.8 x 195.6 mm), 12pt serif, grayscale images, PDF out
    result = convert("path/to/document.pdf")
    result.save("output/document_eink.pdf")

    print(f"Converted {result.source_format} -> {result.output_format}")
    print(f"  Output pages: {result.page_count}")
    print(f"  Text length: {len(result.text):,} characters")

    # ─────────────────────────────────────────────────────────────────────────
    # 2. Presets and Custom Configuration
    # ─────────────────────────────────────────────────────────────────────────

    # A preset with overrides
    config = ConversionConfig.from_preset("large_print", output_format="epub")
    convert("path/to/novel.docx", config).save("output/novel.epub")

    # Everything spelled out
    config = ConversionConfig(
        page_profile="a4",
        margins=Margins(top=15, bottom=15, left=12, right=12),
        font_size=11,
        font_family="sans-serif",
        contrast="high",  # pure black text
        image_policy="blackwhite",  # dithered 1-bit images
        ocr=OCRConfig(language="deu", quality="accurate"),
    )
    convert("path/to/slides.pptx", config).save("output/slides_eink.pdf")

    # ─────────────────────────────────────────────────────────────────────────
    # 3. OCR Decision
    # ─────────────────────────────────────────────────────────────────────────

    result = convert("path/to/scan.pdf")

    if result.extraction_method == ExtractionMethod.OCR:
        print("Native text was poor; recognized text was used instead")
        for reason in result.quality.reasons:
            print(f"  - {reason}")
    elif result.degraded:
        # Poor text, but OCR was disabled or Tesseract is not installed
        print("Output built from poor native text")

    for line in result.processing_log:
        print(f"  {line}")


def progress_and_cancel_example():
    """Show OCR progress and cancel from another thread."""
    token = CancellationToken()

    def on_progress(progress):
        print(f"OCR page {progress.current_page}/{progress.total_pages}: {progress.stage}")

    # Cancel after 30 seconds
    timer = threading.Timer(30.0, token.cancel)
    timer.start()
    try:
        result = convert("path/to/long_scan.pdf", progress=on_progress, cancel_token=token)
        result.save("output/long_scan_eink.pdf")
    except ConversionCancelled:
        print("Conversion cancelled")
    finally:
        timer.cancel()


def batch_conversion_example():
    """Convert multiple documents, one at a time."""
    from einkdoc import convert_batch

    sources = sorted(Path("documents/").iterdir())
    config = ConversionConfig.from_preset("article")

    # One recognition engine is shared by the whole batch
    for source, outcome in convert_batch(sources, config):
        if isinstance(outcome, Exception):
            print(f"{source.name}: FAILED ({outcome})")
            continue
        outcome.save(f"output/{source.stem}_eink.{outcome.output_format}")
        print(f"{source.name}: {outcome.page_count} pages")


if __name__ == "__main__":
    # Note: These examples use placeholder paths.
    # Replace with actual document paths to run.
    print("einkdoc Usage Examples")
    print("=" * 50)
    print("\nSee the code for detailed examples of:")
    print("  - Basic conversion")
    print("  - Presets and custom configuration")
    print("  - OCR fallback diagnostics")
    print("  - Progress and cancellation")
    print("  - Batch processing")
