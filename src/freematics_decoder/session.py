"""In-memory device registry, last-known-location store and ack transports.

The decoder never owns shared state; everything that outlives one frame
lives here.  :class:`DeviceSessions` keeps two dicts:

* ``unique_id → DeviceHandle`` for identity resolution (ID or VIN tokens)
* ``device_id → PositionRecord`` holding each device's last valid fix

Neither is persisted; on restart every device begins without a last fix.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, Optional

from freematics_decoder.models import DeviceHandle, PositionRecord

logger = logging.getLogger(__name__)


class DeviceSessions:
    """Identity registry plus last-known-location store.

    Parameters
    ----------
    known_ids:
        Unique ids (device id or VIN) accepted from the start.
    auto_register:
        When true, unknown ids are registered on first sight instead of
        being rejected.
    """

    def __init__(self, known_ids: Iterable[str] = (), auto_register: bool = False) -> None:
        self._auto_register = auto_register
        self._devices: dict[str, DeviceHandle] = {}
        self._last: dict[str, PositionRecord] = {}
        for unique_id in known_ids:
            self.register(unique_id)

    def register(self, unique_id: str, device_id: Optional[str] = None) -> DeviceHandle:
        """Add *unique_id* to the registry and return its handle."""
        handle = DeviceHandle(device_id=device_id or unique_id, unique_id=unique_id)
        self._devices[unique_id] = handle
        return handle

    def resolve(self, channel: Any, address: Any, unique_id: str) -> Optional[DeviceHandle]:
        """Return the handle registered for *unique_id*, or ``None``."""
        handle = self._devices.get(unique_id)
        if handle is None and self._auto_register and unique_id:
            logger.info("Registering new device %s (from %s)", unique_id, address)
            handle = self.register(unique_id)
        if handle is None:
            logger.debug("Unknown device %r from %s", unique_id, address)
        return handle

    def fill_last_location(
        self, record: PositionRecord, reference: Optional[PositionRecord] = None
    ) -> None:
        """Copy the last known fix into a *record* that lacks its own.

        *reference* overrides the stored fix when given.  The record is
        marked ``outdated`` either way.
        """
        record.outdated = True
        record.valid = False
        last = reference or self._last.get(record.device_id)
        if last is None:
            return
        record.latitude = last.latitude
        record.longitude = last.longitude
        record.altitude = last.altitude
        record.speed = last.speed
        record.course = last.course

    def update_last_location(self, record: PositionRecord) -> None:
        """Remember *record* if it carries a valid fix."""
        if record.valid and not record.outdated:
            self._last[record.device_id] = replace(record, attributes=dict(record.attributes))

    def last_location(self, device_id: str) -> Optional[PositionRecord]:
        return self._last.get(device_id)


class AckTransport:
    """Outbound channel for acknowledgement frames.

    Subclasses implement :meth:`send`; sending is fire-and-forget.
    """

    def send(self, channel: Any, address: Any, text: str) -> None:
        raise NotImplementedError


class CollectingTransport(AckTransport):
    """Keep every sent frame in :attr:`sent` as ``(channel, address, text)``."""

    def __init__(self) -> None:
        self.sent: list[tuple[Any, Any, str]] = []

    def send(self, channel: Any, address: Any, text: str) -> None:
        logger.debug("Ack to %s: %s", address, text)
        self.sent.append((channel, address, text))
