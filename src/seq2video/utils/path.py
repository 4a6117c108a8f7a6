"""
Filename parsing utilities for seq2video.

This module turns a single image filename into a printf-style pattern
(for example "img0007.jpg" -> "img%04d.jpg") plus the frame number it carries.
"""

from __future__ import annotations

from ..core.types import ParsedFilename


def _escape(text: str) -> str:
    return text.replace("%", "%%")


def parse_filename(filename: str) -> ParsedFilename:
    """Parse a filename into (pattern, number).

    The first run of consecutive digits, scanning left to right, becomes a
    zero-padded placeholder of the same width. Digits after that run are kept
    as literal characters of the pattern.

    Examples:
        "img0007.jpg" -> ("img%04d.jpg", 7)
        "shot2_0001.png" -> ("shot%01d_0001.png", 2)
        "0042" -> ("%04d", 42)
        "readme.txt" -> invalid

    Args:
        filename (str): Bare filename, without directory.

    Returns:
        ParsedFilename: Parsed result; ``valid`` is False when no digits exist.
    """
    pattern: list[str] = []
    digits: list[str] = []
    number_part: str | None = None

    for c in filename:
        if number_part is None and c.isdigit() and c.isascii():
            digits.append(c)
            continue
        if digits:
            number_part = "".join(digits)
            pattern.append(f"%0{len(number_part)}d")
            digits = []
        pattern.append(_escape(c))

    if digits:
        number_part = "".join(digits)
        pattern.append(f"%0{len(number_part)}d")

    if number_part is None:
        return ParsedFilename(filename=filename, pattern="".join(pattern), number=None)
    return ParsedFilename(
        filename=filename,
        pattern="".join(pattern),
        number=int(number_part),
        width=len(number_part),
    )
