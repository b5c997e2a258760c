"""Decode position bodies into one or more :class:`PositionRecord` objects.

A position body is a comma-separated list of ``<hexkey>=<value>`` (or
``<hexkey>:<value>``) tokens.  Key ``0`` starts a new record::

    0=1,10=12345678,11=010223,A=-33.85,B=151.21,D=100,0=2,...

Record scanning is a two-state machine::

    EMPTY ── 0 ──→ ACCUMULATING ── 0 ──→ finalize, ACCUMULATING
      │                  │
      └─ other → skip    └─ end of body → finalize

Tokens with a non-hex key, no separator, an empty value or a value that
fails conversion are skipped individually; they never abort the body.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from freematics_decoder.dates import DateAccumulator
from freematics_decoder.models import (
    KEY_ACCELERATION,
    KEY_BATTERY,
    KEY_COOLANT_TEMP,
    KEY_DEVICE_TEMP,
    KEY_ENGINE_LOAD,
    KEY_HDOP,
    KEY_OBD_SPEED,
    KEY_RPM,
    KEY_RSSI,
    KEY_SATELLITES,
    KEY_THROTTLE,
    PREFIX_IO,
    PositionRecord,
)
from freematics_decoder.session import DeviceSessions
from freematics_decoder.units import knots_from_kph

logger = logging.getLogger(__name__)

RECORD_BOUNDARY = 0x0

_SEPARATOR_RE = re.compile(r"[=:]")
_HEX_KEY_RE = re.compile(r"[+-]?[0-9A-Fa-f]+")


class FieldTarget(enum.Enum):
    """Where a converted field value is written."""

    POSITION = "position"
    ATTRIBUTE = "attribute"
    TIME = "time"
    DATE = "date"


@dataclass(frozen=True)
class Field:
    target: FieldTarget
    name: str
    convert: Callable[[str], Any]
    marks_fix: bool = False


def parse_time_digits(value: str) -> tuple[int, int, int, int]:
    """``hhmmsscc`` → ``(hour, minute, second, millisecond)``.

    Values are left-padded with zeros and cut to their last eight digits;
    the final two digits are hundredths of a second.
    """
    value = ("0" * 8 + value)[-8:]
    return int(value[0:2]), int(value[2:4]), int(value[4:6]), int(value[6:]) * 10


def parse_date_digits(value: str) -> tuple[int, int, int]:
    """``ddmmyy`` → ``(day, month, year)`` from the last six zero-padded digits."""
    value = ("0" * 6 + value)[-6:]
    return int(value[0:2]), int(value[2:4]), int(value[4:])


FIELDS: dict[int, Field] = {
    0xA: Field(FieldTarget.POSITION, "latitude", float, marks_fix=True),
    0xB: Field(FieldTarget.POSITION, "longitude", float, marks_fix=True),
    0xC: Field(FieldTarget.POSITION, "altitude", float),
    0xD: Field(FieldTarget.POSITION, "speed", lambda v: knots_from_kph(float(v))),
    0xE: Field(FieldTarget.POSITION, "course", int),
    0xF: Field(FieldTarget.ATTRIBUTE, KEY_SATELLITES, int),
    0x10: Field(FieldTarget.TIME, "time", parse_time_digits),
    0x11: Field(FieldTarget.DATE, "date", parse_date_digits),
    0x12: Field(FieldTarget.ATTRIBUTE, KEY_HDOP, int),
    0x20: Field(FieldTarget.ATTRIBUTE, KEY_ACCELERATION, str),
    0x24: Field(FieldTarget.ATTRIBUTE, KEY_BATTERY, lambda v: int(v) * 0.01),
    0x81: Field(FieldTarget.ATTRIBUTE, KEY_RSSI, int),
    0x82: Field(FieldTarget.ATTRIBUTE, KEY_DEVICE_TEMP, lambda v: int(v) * 0.1),
    0x104: Field(FieldTarget.ATTRIBUTE, KEY_ENGINE_LOAD, int),
    0x105: Field(FieldTarget.ATTRIBUTE, KEY_COOLANT_TEMP, int),
    0x10C: Field(FieldTarget.ATTRIBUTE, KEY_RPM, int),
    0x10D: Field(FieldTarget.ATTRIBUTE, KEY_OBD_SPEED, lambda v: knots_from_kph(int(v))),
    0x111: Field(FieldTarget.ATTRIBUTE, KEY_THROTTLE, int),
}


def split_token(pair: str) -> Optional[tuple[int, str]]:
    """Split *pair* on its first ``=`` or ``:`` and parse the hex key.

    Returns ``None`` for tokens without a separator, with an empty value or
    with a key that is not plain hex digits (no ``0x`` prefix or whitespace).
    """
    parts = _SEPARATOR_RE.split(pair, maxsplit=1)
    if len(parts) != 2 or not parts[1]:
        return None
    if not _HEX_KEY_RE.fullmatch(parts[0]):
        return None
    return int(parts[0], 16), parts[1]


class ScanState(enum.Enum):
    """Record scanner states."""

    EMPTY = "EMPTY"
    ACCUMULATING = "ACCUMULATING"


class RecordScanner:
    """Accumulate tokens into records for one device.

    Parameters
    ----------
    device_id:
        Device the records belong to.
    sessions:
        Supplies the last known fix for records without their own.
    """

    def __init__(self, device_id: str, sessions: DeviceSessions) -> None:
        self._device_id = device_id
        self._sessions = sessions
        self._state = ScanState.EMPTY
        self._record: Optional[PositionRecord] = None
        self._dates: Optional[DateAccumulator] = None
        self.records: list[PositionRecord] = []

    @property
    def state(self) -> ScanState:
        return self._state

    def feed(self, key: int, value: str) -> None:
        """Apply one parsed token."""
        if key == RECORD_BOUNDARY:
            self._finalize()
            self._start()
            return

        if self._state is ScanState.EMPTY:
            return  # no record to attach to yet

        try:
            self._apply(key, value)
        except ValueError as exc:
            logger.debug("Skipping field %#x=%r: %s", key, value, exc)

    def finish(self) -> list[PositionRecord]:
        """Finalize the record in progress and return all records."""
        self._finalize()
        return self.records

    # ── internal ────────────────────────────────────────────────────

    def _start(self) -> None:
        self._record = PositionRecord(device_id=self._device_id)
        self._dates = DateAccumulator()
        self._state = ScanState.ACCUMULATING

    def _finalize(self) -> None:
        if self._state is not ScanState.ACCUMULATING:
            return
        record = self._record
        if not record.valid:
            self._sessions.fill_last_location(record)
        record.time = self._dates.resolve()
        self.records.append(record)
        self._record = None
        self._dates = None
        self._state = ScanState.EMPTY

    def _apply(self, key: int, value: str) -> None:
        field = FIELDS.get(key)
        if field is None:
            self._record.set(f"{PREFIX_IO}{key}", value)
            return

        converted = field.convert(value)
        if field.target is FieldTarget.POSITION:
            setattr(self._record, field.name, converted)
        elif field.target is FieldTarget.ATTRIBUTE:
            self._record.set(field.name, converted)
        elif field.target is FieldTarget.TIME:
            self._dates.set_time(*converted)
        elif field.target is FieldTarget.DATE:
            self._dates.set_date_reverse(*converted)

        if field.marks_fix:
            self._record.valid = True


def decode_position(
    device_id: str,
    body: str,
    sessions: DeviceSessions,
    channel: Any = None,
    address: Any = None,
) -> Optional[list[PositionRecord]]:
    """Decode the body of a position frame sent under *device_id*.

    Returns
    -------
    list[PositionRecord]
        Records in the order their boundary tokens appear in *body*.
    None
        When the device is unknown or the body holds no record.
    """
    device = sessions.resolve(channel, address, device_id)
    if device is None:
        return None

    scanner = RecordScanner(device.device_id, sessions)
    for pair in body.split(","):
        token = split_token(pair)
        if token is None:
            logger.debug("Skipping token %r", pair)
            continue
        scanner.feed(*token)

    records = scanner.finish()
    return records or None
