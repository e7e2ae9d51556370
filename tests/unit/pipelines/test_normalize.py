"""Tests for text normalization helpers."""

import pytest

from live_kb_sync.pipelines.normalize import (
    TRUNCATION_SUFFIX,
    cap_length,
    clean_block,
    clean_text,
    normalize_document,
    normalize_typography,
    strip_trailing_punctuation,
)


class TestCleanText:
    """Test whitespace collapsing."""

    def test_collapses_whitespace_and_nbsp(self):
        assert clean_text("  Obecní úřad \n\t Chomutice  ") == "Obecní úřad Chomutice"

    def test_empty_values(self):
        assert clean_text(None) == ""
        assert clean_text("") == ""

    def test_block_keeps_paragraphs(self):
        text = "První odstavec   \n\n\n\nDruhý odstavec"
        assert clean_block(text) == "První odstavec\n\nDruhý odstavec"


class TestTypography:
    """Test typographic normalization."""

    def test_quotes_and_dashes(self):
        assert normalize_typography("„Obec“ – ‘live’ — “data”") == "\"Obec\" - 'live' - \"data\""

    def test_normalize_document(self):
        text = "Hlavička – test  \r\n\r\n\r\n\r\nTělo  \n"
        assert normalize_document(text, 1000) == "Hlavička - test\n\nTělo"


class TestCapLength:
    """Test size capping."""

    def test_short_text_untouched(self):
        assert cap_length("abc", 3) == "abc"

    def test_long_text_marked(self):
        capped = cap_length("abcdef" * 10, 20)

        assert capped == "abcde" + TRUNCATION_SUFFIX
        assert len(capped) == 20

    @pytest.mark.parametrize("max_chars", [1, 3, len(TRUNCATION_SUFFIX)])
    def test_cap_smaller_than_marker_is_a_plain_cut(self, max_chars):
        assert cap_length("x" * 50, max_chars) == "x" * max_chars

    @pytest.mark.parametrize("max_chars", [16, 100, 999])
    def test_result_never_exceeds_cap(self, max_chars):
        assert len(cap_length("y" * 1000, max_chars)) == max_chars

    def test_document_is_capped(self):
        capped = normalize_document("x" * 50, 20)

        assert capped == "x" * 5 + TRUNCATION_SUFFIX
        assert len(capped) == 20


class TestStripTrailingPunctuation:
    """Test trailing punctuation removal from links."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("https://x/page.html.", "https://x/page.html"),
            ("https://x/page),", "https://x/page"),
            ("https://x/a?b=1!?", "https://x/a?b=1"),
            ("https://x/page。", "https://x/page"),
            ("https://x/page…", "https://x/page"),
            ("https://x/page", "https://x/page"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_strip(self, raw, expected):
        assert strip_trailing_punctuation(raw) == expected

    @pytest.mark.parametrize("raw", ["https://x/page.html.", "https://x/(a)).", "plain"])
    def test_idempotent(self, raw):
        once = strip_trailing_punctuation(raw)
        assert strip_trailing_punctuation(once) == once
