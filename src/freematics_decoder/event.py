"""Decode ``EV`` bodies and acknowledge them.

An event body is a comma-separated list of ``KEY=value`` tokens::

    EV=1,TS=100,ID=abc

Recognized keys are ``ID``/``VIN`` (device identity, first one wins),
``EV`` (event code) and ``TS`` (device timestamp, kept as text).  When all
three resolve and a channel is available, the decoder sends::

    1#EV=<event>,RX=1,TS=<timestamp>*<checksum>

No telemetry record is produced.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from freematics_decoder.checksum import checksum as default_checksum
from freematics_decoder.models import EventRecord
from freematics_decoder.session import AckTransport, DeviceSessions

logger = logging.getLogger(__name__)

IDENTITY_KEYS = ("ID", "VIN")


def scan_event(
    body: str,
    sessions: DeviceSessions,
    channel: Any = None,
    address: Any = None,
) -> EventRecord:
    """Scan *body* into an :class:`EventRecord`.

    Identity is resolved through *sessions* at most once: later ``ID`` or
    ``VIN`` tokens are ignored even when the first one was unknown.  Tokens
    without a value are skipped.
    """
    record = EventRecord()
    identity_seen = False

    for pair in body.split(","):
        key, sep, value = pair.partition("=")
        if not sep or not value:
            continue
        if key in IDENTITY_KEYS:
            if not identity_seen:
                identity_seen = True
                record.device = sessions.resolve(channel, address, value)
        elif key == "EV":
            record.event = value
        elif key == "TS":
            record.time = value

    return record


def build_ack(event: str, time: str, checksum: Callable[[str], str] = default_checksum) -> str:
    """Return the sealed acknowledgement frame for *event* at *time*."""
    message = f"1#EV={event},RX=1,TS={time}"
    return f"{message}*{checksum(message)}"


def decode_event(
    body: str,
    sessions: DeviceSessions,
    transport: Optional[AckTransport],
    channel: Any = None,
    address: Any = None,
    checksum: Callable[[str], str] = default_checksum,
) -> None:
    """Scan an event body and send its acknowledgement when possible."""
    record = scan_event(body, sessions, channel, address)

    if channel is None or transport is None or not record.is_complete:
        logger.debug(
            "Not acknowledging event %s (device=%s, ts=%s, channel=%s)",
            record.event,
            record.device.unique_id if record.device else None,
            record.time,
            channel,
        )
        return None

    ack = build_ack(record.event, record.time, checksum)
    transport.send(channel, address, ack)
    logger.debug("Acknowledged event %s from %s", record.event, record.device.unique_id)
    return None
