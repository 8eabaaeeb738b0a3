"""
minirag - Text Utilities
=========================
Helper functions for text cleaning and length-bounded rendering.

``clean_text`` is used by the ``DocumentIngestor`` before embedding;
``snippet`` and ``trim_to`` shape the citation list and the context
block built by the ``RAGManager``.  Everything here is stateless and
side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata

# Control characters (C0/C1) except \n, \r, \t, plus BOM, zero-width
# chars, soft hyphens and directional marks.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")
_WHITESPACE_RE = re.compile(r"\s+")
_LINE_ENDING_RE = re.compile(r"\r\n|\r|\n")

ELLIPSIS = "…"


def clean_text(text: str) -> str:
    """
    Sanitise raw document text for embedding.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse runs of horizontal whitespace into a single space,
           *preserving* newlines.
        4. Strip leading / trailing whitespace from every line.
        5. Collapse 3+ consecutive blank lines to 2.

    Args:
        text: Raw text read from a source file.

    Returns:
        Cleaned, normalised text.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def collapse_whitespace(text: str) -> str:
    """Fold every whitespace run (newlines included) into one space."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def snippet(text: str, limit: int) -> str:
    """
    Single-line preview of *text* for a citation.

    The stripped text is cut at *limit* characters and an ellipsis is
    appended when anything was dropped.  Whitespace is collapsed so a
    citation never spans more than one line.
    """
    if not text or not text.strip():
        return ""
    stripped = text.strip()
    cut = collapse_whitespace(stripped[:limit])
    return cut + ELLIPSIS if limit < len(stripped) else cut


def trim_to(text: str, limit: int) -> str:
    """
    Bound *text* to *limit* characters for the context block.

    Text that fits is returned stripped, line breaks intact.  Longer
    text is cut, its line endings turned into spaces, and an ellipsis
    appended.
    """
    if not text or not text.strip():
        return ""
    stripped = text.strip()
    if len(stripped) <= limit:
        return stripped
    return _LINE_ENDING_RE.sub(" ", stripped[:limit]) + ELLIPSIS
