"""Frame checksum appended after the ``*`` delimiter.

The device protocol uses a plain 8-bit additive checksum: the ASCII bytes of
everything before ``*`` are summed modulo 256 and rendered as two uppercase
hex digits.  Characters outside ASCII count as ``?``.
"""

from __future__ import annotations


def checksum(text: str) -> str:
    """Return the two-digit hex checksum of *text*."""
    return f"{sum(text.encode('ascii', errors='replace')) & 0xFF:02X}"


def seal(text: str) -> str:
    """Return *text* followed by ``*`` and its checksum."""
    return f"{text}*{checksum(text)}"
