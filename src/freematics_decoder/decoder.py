"""Frame decoding pipeline.

Dispatch::

    raw frame
      │
      ├─ "ChaCha" prefix, bad payload → FrameDecodeError
      ├─ no valid <id>#...* envelope  → None
      ├─ body starts with "EV"        → ack sent, None
      └─ otherwise                    → list[PositionRecord] | None
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from freematics_decoder.checksum import checksum as default_checksum
from freematics_decoder.cipher import DEFAULT_KEY, DEFAULT_MARKER, unwrap
from freematics_decoder.envelope import parse_envelope
from freematics_decoder.event import decode_event
from freematics_decoder.models import PositionRecord
from freematics_decoder.position import decode_position
from freematics_decoder.session import AckTransport, DeviceSessions

logger = logging.getLogger(__name__)

EVENT_PREFIX = "EV"


class FrameDecoder:
    """Stateless decoder: one frame in, at most one result out.

    Parameters
    ----------
    sessions:
        Device registry and last-known-location store.
    transport:
        Where event acknowledgements are sent.  Without one, events are
        decoded but never acknowledged.
    key:
        32-byte ChaCha20 key for encrypted frames.
    marker:
        Prefix that flags an encrypted frame.
    checksum:
        Checksum function applied to acknowledgement frames.
    """

    def __init__(
        self,
        sessions: DeviceSessions,
        transport: Optional[AckTransport] = None,
        key: bytes = DEFAULT_KEY,
        marker: str = DEFAULT_MARKER,
        checksum: Callable[[str], str] = default_checksum,
    ) -> None:
        self._sessions = sessions
        self._transport = transport
        self._key = key
        self._marker = marker
        self._checksum = checksum

    def decode(
        self, frame: str, channel: Any = None, address: Any = None
    ) -> Optional[list[PositionRecord]]:
        """Decode a single frame.

        Raises
        ------
        FrameDecodeError
            If the frame is encrypted and cannot be decrypted.
        """
        text = unwrap(frame, key=self._key, marker=self._marker)

        envelope = parse_envelope(text)
        if envelope is None:
            return None

        if envelope.body.startswith(EVENT_PREFIX):
            return decode_event(
                envelope.body,
                self._sessions,
                self._transport,
                channel=channel,
                address=address,
                checksum=self._checksum,
            )

        return decode_position(
            envelope.id,
            envelope.body,
            self._sessions,
            channel=channel,
            address=address,
        )
