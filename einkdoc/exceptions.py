"""
Exception classes for einkdoc.

All einkdoc exceptions inherit from EinkDocError,
making it easy to catch all library errors.

Whole-document failures (unsupported format, empty input, nothing
extracted) propagate to the caller. Per-page failures (ExtractionError,
RecognitionError) are caught by the pipeline, logged, and the page
contributes an empty result.

Example:
    >>> try:
    ...     result = einkdoc.convert("file.xyz")
    ... except einkdoc.UnsupportedFormatError as e:
    ...     print(f"Format not supported: {e}")
    ... except einkdoc.EinkDocError as e:
    ...     print(f"einkdoc error: {e}")
"""


class EinkDocError(Exception):
    """
    Base exception for all einkdoc errors.

    Catch this to handle any einkdoc-specific error.
    """

    pass


class UnsupportedFormatError(EinkDocError):
    """
    Raised when the document format is not supported.

    Example:
        >>> einkdoc.convert("file.xyz")
        UnsupportedFormatError: Unsupported file type: 'xyz'
    """

    pass


class EmptyInputError(EinkDocError):
    """Raised for zero-byte or whitespace-only input, before any parsing."""

    pass


class ExtractionError(EinkDocError):
    """
    Raised when text or image extraction fails.

    For a single PDF page this is non-fatal: the pipeline logs it and the
    page contributes an empty string. For a whole file (corrupt PDF, broken
    DOCX) it propagates.
    """

    pass


class RecognitionError(EinkDocError):
    """
    Raised when the OCR engine fails on a page.

    Non-fatal inside the OCR fallback: the page contributes an empty string.
    """

    pass


class NoContentError(EinkDocError):
    """
    Raised when no text is left after extraction and all fallbacks.

    Surfaced instead of writing a blank output document.
    """

    pass


class ConversionCancelled(EinkDocError):
    """Raised when a CancellationToken is triggered mid-conversion."""

    pass


class ConfigurationError(EinkDocError, ValueError):
    """
    Raised for invalid configuration.

    Example:
        >>> ConversionConfig(contrast="extreme")
        ConfigurationError: contrast must be one of ('low', 'medium', 'high')
    """

    pass
