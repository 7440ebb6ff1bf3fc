"""
Command-line interface for einkdoc.

Usage:
    # Convert with defaults (device profile, PDF output)
    einkdoc book.pdf

    # Start from a preset and override options
    einkdoc notes.docx --preset large_print --format epub -o notes.epub

    # Skip OCR fallback for a scanned document
    einkdoc scan.pdf --no-ocr --contrast high
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from einkdoc.config import (
    PAGE_PROFILES,
    PRESETS,
    VALID_CONTRASTS,
    VALID_IMAGE_POLICIES,
    VALID_OUTPUT_FORMATS,
    ConversionConfig,
)
from einkdoc.convert import convert
from einkdoc.exceptions import EinkDocError
from einkdoc.progress import OCRProgress


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="einkdoc",
        description="Convert documents into E Ink optimized PDF or EPUB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("input", type=Path, help="Source document")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Output path (default: <input>_eink.<format>)",
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), help="Start from a preset")
    parser.add_argument("--format", choices=VALID_OUTPUT_FORMATS, help="Output format")
    parser.add_argument("--page-profile", choices=sorted(PAGE_PROFILES), help="Page size")
    parser.add_argument("--font-size", type=int, help="Font size in points")
    parser.add_argument("--contrast", choices=VALID_CONTRASTS, help="Text contrast")
    parser.add_argument("--image-policy", choices=VALID_IMAGE_POLICIES, help="Image handling")
    parser.add_argument(
        "--no-ocr",
        action="store_true",
        help="Never fall back to OCR, even for poor native text",
    )
    parser.add_argument("--ocr-language", help="Tesseract language code (default: eng)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> ConversionConfig:
    """Preset (or defaults) with the command-line overrides applied."""
    config = ConversionConfig.from_preset(args.preset) if args.preset else ConversionConfig()

    overrides = {
        "output_format": args.format,
        "page_profile": args.page_profile,
        "font_size": args.font_size,
        "contrast": args.contrast,
        "image_policy": args.image_policy,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}

    ocr = config.ocr
    if args.no_ocr:
        ocr = replace(ocr, enabled=False)
    if args.ocr_language:
        ocr = replace(ocr, language=args.ocr_language)

    return replace(config, ocr=ocr, **overrides)


def _print_progress(progress: OCRProgress) -> None:
    finished = progress.current_page == progress.total_pages and progress.stage in ("done", "failed")
    print(
        f"\rOCR page {progress.current_page}/{progress.total_pages} "
        f"({progress.overall:.0%})",
        end="\n" if finished else "",
        file=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
        result = convert(args.input, config, progress=_print_progress)
    except (EinkDocError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output = args.output or args.input.with_name(
        f"{args.input.stem}_eink.{result.output_format}"
    )
    result.save(output)

    summary = f"Wrote {output} ({result.extraction_method.value} text"
    if result.pages:
        summary += f", {result.page_count} pages"
    if result.degraded:
        summary += ", degraded"
    print(summary + ")")
    return 0


if __name__ == "__main__":
    sys.exit(main())
