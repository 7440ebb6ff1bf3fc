"""
Text normalization for extracted DocumentText.

Fixes known corruption patterns without touching intentional structure.
Passes run in a fixed order because each assumes the artifacts handled
by the previous ones are gone:

1. Sanitize: control and zero-width characters, line endings, ligature
   code points, repeated spaces.
2. Ligature-split repair: "e ffi cient" -> "efficient". Only the
   enumerated f-ligatures are repaired. General merging of single
   letters corrupts initials and short words and is not done.
3. Structure preservation: list items and ALL-CAPS headings are
   separated from the preceding paragraph by a blank line.
4. Blank-line clamping.

normalize() is idempotent.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# C0/C1 controls except \t and \n (\r is normalized before this runs)
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B-\x1F\x7F-\x9F]")

# Zero-width and invisible characters, including the soft hyphen
INVISIBLE_CHARS = re.compile(r"[\u200B-\u200D\u2060\uFEFF\u00AD]")

# Alphabetic presentation forms (U+FB00-U+FB06)
LIGATURE_CODEPOINTS = {
    "\ufb00": "ff",
    "\ufb01": "fi",
    "\ufb02": "fl",
    "\ufb03": "ffi",
    "\ufb04": "ffl",
    "\ufb05": "st",
    "\ufb06": "st",
}

MULTIPLE_SPACES = re.compile(r" {2,}")
TRAILING_SPACES = re.compile(r"[ \t]+$", re.MULTILINE)

# Letter-split ligatures: "f f i", "f i", "f l", "f f"
SPLIT_THREE = re.compile(r"(?<!\S)([Ff]) f ([il])(?!\S)")
SPLIT_TWO = re.compile(r"(?<!\S)([Ff]) ([fil])(?!\S)")

# An isolated ligature cluster, optionally followed by closing punctuation
CLUSTER_TOKEN = re.compile(r"^([Ff](?:fi|fl|f|i|l))([.,;:!?'\")\]]*)$")

# Words that stand on their own; a cluster never merges into one
STANDALONE_WORDS = frozenset(
    """
    a an the of to in is it its and or for on at by as be with from into
    this that these those his her their our my your we he she they you i
    was were are has have had not no all so but if than then when which
    who can will would may must should also only more most some any each
    """.split()
)

# Longest left fragment a cluster with a right fragment attaches to
MAX_LEFT_FRAGMENT = 2

CLOSING_PUNCTUATION = ".,;:!?'\")]"

# List and heading markers
NUMBERED_ITEM = re.compile(r"^\s*(?:\d{1,3}|[a-zA-Z]|[ivx]{1,6}|[IVX]{1,6})[.)]\s+\S")
BULLET_ITEM = re.compile(r"^\s*[•·▪◦‣●○■□\-*–—]\s+\S")
MAX_HEADING_LENGTH = 80
MIN_HEADING_LETTERS = 3

EXCESS_BLANK_LINES = re.compile(r"\n{4,}")


# =============================================================================
# PASSES
# =============================================================================


def sanitize(text: str) -> str:
    """Pass 1: remove encoding artifacts and normalize whitespace."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = CONTROL_CHARS.sub("", text)
    text = INVISIBLE_CHARS.sub("", text)
    for ligature, expansion in LIGATURE_CODEPOINTS.items():
        text = text.replace(ligature, expansion)
    text = MULTIPLE_SPACES.sub(" ", text)
    return TRAILING_SPACES.sub("", text)


def _is_fragment(token: str) -> bool:
    return token.lower() not in STANDALONE_WORDS


def _joins_left(token: str, has_right: bool) -> bool:
    if not token or not token[-1].islower() or not _is_fragment(token):
        return False
    return not has_right or (token.isalpha() and len(token) <= MAX_LEFT_FRAGMENT)


def _joins_right(token: str) -> bool:
    return bool(token) and token[0].islower() and _is_fragment(token.rstrip(CLOSING_PUNCTUATION))


def _repair_line(line: str) -> str:
    line = SPLIT_THREE.sub(r"\1f\2", line)
    line = SPLIT_TWO.sub(r"\1\2", line)

    tokens = line.split(" ")
    out: list[str] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        match = CLUSTER_TOKEN.match(token)
        if match is None:
            out.append(token)
            i += 1
            continue

        cluster, trailing = match.groups()
        has_right = not trailing and i + 1 < len(tokens) and _joins_right(tokens[i + 1])
        word = token
        if cluster.islower() and out and _joins_left(out[-1], has_right):
            word = out.pop() + word
        if has_right:
            word += tokens[i + 1]
            i += 1
        out.append(word)
        i += 1

    return " ".join(out)


def repair_ligature_splits(text: str) -> str:
    """
    Pass 2: rebuild words broken apart around f-ligatures.

    Example:
        >>> repair_ligature_splits("the fi rst e ffi cient sta ff.")
        'the first efficient staff.'
    """
    lines = []
    for line in text.split("\n"):
        # Each merge removes a space, so this terminates
        repaired = _repair_line(line)
        while repaired != line:
            line, repaired = repaired, _repair_line(repaired)
        lines.append(repaired)
    return "\n".join(lines)


def is_list_item(line: str) -> bool:
    return bool(NUMBERED_ITEM.match(line) or BULLET_ITEM.match(line))


def is_heading(line: str) -> bool:
    """ALL-CAPS line short enough to be a heading."""
    stripped = line.strip()
    if not stripped or len(stripped) > MAX_HEADING_LENGTH:
        return False
    letters = [c for c in stripped if c.isalpha()]
    return len(letters) >= MIN_HEADING_LETTERS and all(c.isupper() for c in letters)


def preserve_structure(text: str) -> str:
    """Pass 3: put a blank line before list blocks and headings."""
    out: list[str] = []
    for line in text.split("\n"):
        if out and out[-1].strip():
            prev = out[-1]
            if is_list_item(line):
                if not is_list_item(prev):
                    out.append("")
            elif is_heading(line) and not is_heading(prev):
                out.append("")
        out.append(line)
    return "\n".join(out)


def clamp_blank_lines(text: str) -> str:
    """Pass 4: at most two consecutive blank lines."""
    return EXCESS_BLANK_LINES.sub("\n\n\n", text).strip()


# =============================================================================
# NORMALIZER
# =============================================================================


class TextNormalizer:
    """
    Runs the normalization passes over DocumentText.

    Example:
        >>> normalizer = TextNormalizer()
        >>> normalizer.normalize("Intro text\\n1. fi rst item\\n2. second")
        'Intro text\\n\\n1. first item\\n2. second'
    """

    def normalize(self, text: str) -> str:
        original_length = len(text)
        text = sanitize(text)
        text = repair_ligature_splits(text)
        text = preserve_structure(text)
        text = clamp_blank_lines(text)
        logger.debug("Normalized %d -> %d chars", original_length, len(text))
        return text
