"""Character reference decoding shared by the forward and reverse transforms."""

from __future__ import annotations

import re
from typing import Dict

NAMED_REFERENCES: Dict[str, str] = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "apos": "'",
    "nbsp": " ",
    "hellip": "...",
    "mdash": "—",
    "ndash": "–",
    "lsquo": "'",
    "rsquo": "'",
    "ldquo": '"',
    "rdquo": '"',
}

# Typographic code points are normalised to their plain-text equivalents.
NUMERIC_OVERRIDES: Dict[int, str] = {
    8216: "'",
    8217: "'",
    8220: '"',
    8221: '"',
    8211: "–",
    8212: "—",
    8230: "...",
    91: "[",
    93: "]",
    39: "'",
    34: '"',
    160: " ",
}

_REFERENCE = re.compile(r"&(?:#(\d{1,7})|#[xX]([0-9a-fA-F]{1,6})|([a-zA-Z][a-zA-Z0-9]{1,31}));")


def _decode_code_point(code_point: int, original: str) -> str:
    if code_point in NUMERIC_OVERRIDES:
        return NUMERIC_OVERRIDES[code_point]
    if code_point <= 0 or code_point > 0x10FFFF or 0xD800 <= code_point <= 0xDFFF:
        return original
    return chr(code_point)


def _replace(match: re.Match) -> str:
    decimal, hexadecimal, name = match.groups()
    if decimal is not None:
        return _decode_code_point(int(decimal), match.group(0))
    if hexadecimal is not None:
        return _decode_code_point(int(hexadecimal, 16), match.group(0))
    return NAMED_REFERENCES.get(name, match.group(0))


def decode_entities(text: str) -> str:
    """Decode character references until the text reaches a fixed point.

    Double-escaped input such as ``&amp;#8217;`` resolves completely, which
    makes the function idempotent: ``decode(decode(x)) == decode(x)``.
    Unknown named references pass through unchanged.
    """
    previous = None
    while previous != text:
        previous = text
        text = _REFERENCE.sub(_replace, text)
    return text


_TYPOGRAPHY = {
    code_point: replacement
    for code_point, replacement in NUMERIC_OVERRIDES.items()
    if code_point > 127
}


def normalize_typography(text: str) -> str:
    """Apply the typographic normalisation to already-decoded characters."""
    return text.translate(_TYPOGRAPHY)
