"""Dataclass models for decoded Freematics frames.

Output records are designed to be serializable via ``dataclasses.asdict()``
followed by ``orjson.dumps()``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

PROTOCOL = "freematics"

# Attribute keys stored in ``PositionRecord.attributes``.
KEY_SATELLITES = "sat"
KEY_HDOP = "hdop"
KEY_ACCELERATION = "acceleration"
KEY_BATTERY = "battery"
KEY_RSSI = "rssi"
KEY_DEVICE_TEMP = "deviceTemp"
KEY_ENGINE_LOAD = "engineLoad"
KEY_COOLANT_TEMP = "coolantTemp"
KEY_RPM = "rpm"
KEY_OBD_SPEED = "obdSpeed"
KEY_THROTTLE = "throttle"

# Unrecognized field codes land in ``io<decimal code>``.
PREFIX_IO = "io"


@dataclass(frozen=True)
class Envelope:
    """The ``<id>#<body>*`` structure inside a plaintext frame."""

    id: str
    body: str


@dataclass(frozen=True)
class DeviceHandle:
    """A device known to the session registry."""

    device_id: str
    unique_id: str


@dataclass
class EventRecord:
    """Identity, event code and raw timestamp scanned from an ``EV`` body."""

    device: Optional[DeviceHandle] = None
    event: Optional[str] = None
    time: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.device is not None and self.event is not None and self.time is not None


@dataclass
class PositionRecord:
    """One normalized telemetry sample.

    ``speed`` is in knots.  ``outdated`` is set when the coordinates were
    copied from the device's last known fix rather than reported in the
    frame.
    """

    device_id: str = ""
    protocol: str = PROTOCOL
    time: Optional[datetime] = None
    valid: bool = False
    outdated: bool = False
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0
    speed: float = 0.0
    course: float = 0.0
    attributes: dict[str, Any] = field(default_factory=dict)

    def set(self, key: str, value: Any) -> None:
        """Store an attribute value under *key*."""
        self.attributes[key] = value


@dataclass
class MalformedFrame:
    """Wrapper for frames that fail to decode.

    These are never silently dropped; they appear in the NDJSON output
    alongside position records so operators can monitor data quality.
    """

    event_type: str = "malformed"
    timestamp: str = ""
    received_at: str = ""
    error: Optional[dict] = field(default_factory=dict)
    source: Optional[dict] = field(default_factory=dict)
