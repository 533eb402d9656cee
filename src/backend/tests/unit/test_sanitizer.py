"""
Unit tests for free-text sanitization.
"""

import pytest

from core.sanitizer import MAX_SANITIZE_PASSES, sanitize_text, strip_markup


class TestSanitizeText:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("  Wi-Fi down  ", "Wi-Fi down"),
            ("Printer <script>alert(1)</script>broken", "Printer broken"),
            ("<b>Bold</b> claim", "Bold claim"),
            ("Fish & chips < 5 EUR", "Fish & chips < 5 EUR"),
            ("&lt;script&gt;alert(1)&lt;/script&gt;Hi", "Hi"),
            ("<img src=x onerror=alert(1)>", ""),
        ],
    )
    def test_sanitize(self, raw, expected):
        assert sanitize_text(raw) == expected

    def test_none_becomes_empty(self):
        assert sanitize_text(None) == ""

    def test_plain_text_is_untouched(self):
        text = "No internet for 2 days in room 4"
        assert sanitize_text(text) == text


class TestHelpers:
    def test_strip_markup_removes_style_bodies(self):
        assert strip_markup("<style>body{}</style>ok") == "ok"

    def test_unsettled_entity_chain_stays_plain_and_short(self):
        raw = "&" + "amp;" * (MAX_SANITIZE_PASSES + 1) + "lt;b&gt; x" + " <" * 36

        cleaned = sanitize_text(raw)

        assert len(cleaned) <= len(raw)
        assert "<" not in cleaned
        assert ">" not in cleaned
