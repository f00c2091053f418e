"""
Entity Normalizer

Category names arrive from the catalog and the budget configuration with
escaped characters (``Wound \\u0026 Ostomy``, ``Wound &amp; Ostomy``).
Both sides are decoded to a single canonical key before being compared.
"""

import html
import re
from typing import Optional

_UNICODE_ESCAPE = re.compile(r"\\u([0-9a-fA-F]{4})")


def _decode_once(value: str) -> str:
    value = _UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), value)
    return html.unescape(value)


def decode_entities(value: Optional[str]) -> Optional[str]:
    """
    Decode unicode escapes and HTML entities until the text stops changing.

    Decoding to a fixed point makes the function idempotent:
    ``decode_entities(decode_entities(x)) == decode_entities(x)``.
    Empty and ``None`` values are returned unchanged.
    """
    if not value:
        return value

    # Every substitution shortens the text, so the loop terminates
    current = value
    while True:
        decoded = _decode_once(current)
        if decoded == current:
            return decoded
        current = decoded


def canonical_category(value: Optional[str], default: str = "Uncategorized") -> str:
    """Canonical map key for a category name, falling back to ``default``"""
    decoded = decode_entities(value)
    if decoded is None or not decoded.strip():
        return default
    return decoded.strip()
