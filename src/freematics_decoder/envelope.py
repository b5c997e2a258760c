"""Split a plaintext frame into its device id and body.

Frame layout::

    <id>#<body>*<checksum>

The checksum is not verified.  Frames without both delimiters, with an empty
id, or with ``*`` ahead of ``#`` are not ours and yield ``None``.
"""

from __future__ import annotations

import logging
from typing import Optional

from freematics_decoder.models import Envelope

logger = logging.getLogger(__name__)


def parse_envelope(text: str) -> Optional[Envelope]:
    """Return the :class:`Envelope` of *text*, or ``None`` when malformed."""
    start = text.find("#")
    end = text.find("*")

    if start <= 0 or end <= 0 or end < start:
        logger.debug("Dropping frame without a valid envelope: %r", text[:64])
        return None

    return Envelope(id=text[:start], body=text[start + 1:end])
