"""Serialize decoder output into NDJSON lines.

Three record shapes share one stream:

* ``position``: one per decoded :class:`PositionRecord`
* ``ack``: one per acknowledgement frame sent back to a device
* ``malformed``: one per frame that raised ``FrameDecodeError``
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Optional

import orjson

from freematics_decoder.cipher import FrameDecodeError
from freematics_decoder.models import MalformedFrame, PositionRecord

# Maximum bytes of raw frame preserved in malformed records.
MAX_RAW_PAYLOAD_BYTES = 4096


class Transformer:
    """Decoder output → serialized NDJSON bytes."""

    def __init__(self, instance_id: str = "", source_name: Optional[str] = None) -> None:
        self._instance_id = instance_id
        self.source_name = source_name

    def _source(self) -> dict:
        return {"instance_id": self._instance_id, "input": self.source_name}

    def transform(self, record: PositionRecord) -> bytes:
        """Convert a :class:`PositionRecord` into a newline-terminated NDJSON line.

        ``time`` is rendered as ISO-8601 by ``orjson``; attributes keep their
        insertion order.
        """
        obj = asdict(record)
        obj["event_type"] = "position"
        obj["received_at"] = datetime.now(timezone.utc).isoformat()
        obj["source"] = self._source()
        return orjson.dumps(obj, option=orjson.OPT_APPEND_NEWLINE)

    def transform_ack(self, address: Any, text: str) -> bytes:
        """Serialize an acknowledgement sent to *address*."""
        obj = {
            "event_type": "ack",
            "received_at": datetime.now(timezone.utc).isoformat(),
            "address": None if address is None else str(address),
            "frame": text,
            "source": self._source(),
        }
        return orjson.dumps(obj, option=orjson.OPT_APPEND_NEWLINE)

    def malformed(self, raw: str, exc: FrameDecodeError) -> MalformedFrame:
        """Build a :class:`MalformedFrame` with truncation handling."""
        now = datetime.now(timezone.utc).isoformat()
        encoded = raw.encode("utf-8")
        truncated = len(encoded) > MAX_RAW_PAYLOAD_BYTES
        if truncated:
            raw = encoded[:MAX_RAW_PAYLOAD_BYTES].decode("utf-8", errors="ignore")

        return MalformedFrame(
            event_type="malformed",
            timestamp=now,
            received_at=now,
            error={
                "code": exc.code,
                "message": str(exc),
                "raw_payload": raw,
                "raw_payload_truncated": truncated,
            },
            source=self._source(),
        )

    def transform_malformed(self, malformed: MalformedFrame) -> bytes:
        """Serialize a :class:`MalformedFrame` to NDJSON bytes."""
        return orjson.dumps(asdict(malformed), option=orjson.OPT_APPEND_NEWLINE)
