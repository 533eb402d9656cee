"""
Text Sanitization Module

Complaint fields are stored as plain text. Markup (and the content of
``<script>``/``<style>`` elements) is removed before persistence, and anything
rendered into HTML later is escaped at render time.

Uses nh3 library (maintained by Cloudflare) for HTML parsing and cleaning.
"""

import html
from typing import Optional

import nh3

# Repeated passes catch markup that only appears after entity decoding
# (e.g. "&lt;script&gt;" submitted literally).
MAX_SANITIZE_PASSES = 5


def strip_markup(content: str) -> str:
    """
    Remove every HTML tag, comment and script/style body.

    Returns the text with entities escaped, as nh3 emits it.

    Example:
        >>> strip_markup('<b>Hello</b><script>alert("XSS")</script>')
        'Hello'
    """
    if not content:
        return ""

    return nh3.clean(
        content,
        tags=set(),  # No tags allowed
        attributes={},
        strip_comments=True,
    )


def sanitize_text(content: Optional[str]) -> str:
    """
    Sanitize user-submitted free text for storage.

    Trims whitespace, strips markup and decodes entities until the text is
    stable, so what is stored is the readable plain text the user typed,
    minus any markup.

    Example:
        >>> sanitize_text('  Printer <script>alert(1)</script>broken  ')
        'Printer broken'

        >>> sanitize_text('Fish & chips < 5 EUR')
        'Fish & chips < 5 EUR'
    """
    if content is None:
        return ""

    text = content.strip()
    for _ in range(MAX_SANITIZE_PASSES):
        cleaned = html.unescape(strip_markup(text)).strip()
        if cleaned == text:
            return text
        text = cleaned

    # Still changing: drop the angle brackets so no markup can reassemble
    return html.unescape(strip_markup(text)).replace("<", "").replace(">", "").strip()

