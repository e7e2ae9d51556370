"""Text normalization helpers. Pure functions, no I/O."""

import re

TRUNCATION_SUFFIX = "... [truncated]"

_TYPOGRAPHY = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "’": "'",
        "‘": "'",
        "–": "-",
        "—": "-",
    }
)

# Sentence punctuation that sticks to links extracted from prose, ASCII and full-width
_TRAILING_URL_PUNCTUATION = re.compile(r"[)\]}.,;:!?…）］｝。、，；：！？]+$")


def clean_text(value) -> str:
    """Collapse all whitespace (including non-breaking spaces) to single spaces."""
    if not value:
        return ""
    return re.sub(r"\s+", " ", str(value).replace("\u00a0", " ")).strip()


def clean_block(value) -> str:
    """Normalize whitespace in multi-line text while keeping paragraph breaks."""
    if not value:
        return ""
    text = str(value).replace("\u00a0", " ")
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]{2,}", " ", text)
    return text.strip()


def normalize_typography(text: str) -> str:
    """Replace typographic quotes and dashes with their ASCII forms."""
    return text.translate(_TYPOGRAPHY)


def cap_length(text: str, max_chars: int) -> str:
    """Limit text to ``max_chars`` including the truncation marker."""
    if len(text) <= max_chars:
        return text
    if max_chars <= len(TRUNCATION_SUFFIX):
        return text[:max_chars]
    return text[: max_chars - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def normalize_document(text: str, max_chars: int) -> str:
    """Produce the canonical form of a generated document.

    Typography is normalized, trailing whitespace dropped from every line,
    runs of blank lines collapsed and the size capped.
    """
    text = normalize_typography(text.replace("\r\n", "\n"))
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = re.sub(r"\n{3,}", "\n\n", text).strip()
    return cap_length(text, max_chars)


def strip_trailing_punctuation(url) -> str:
    """Remove punctuation glued to the end of a link. Idempotent."""
    if not url:
        return ""
    return _TRAILING_URL_PUNCTUATION.sub("", str(url))
