"""Accumulate date and time fields that arrive in separate tokens.

Position bodies carry the date (``ddmmyy``) and the time of day
(``hhmmsscc``) under different keys, in either order, and either may be
missing.  :class:`DateAccumulator` starts from a seed (the wall-clock time
when the record was started) and overwrites whichever components arrive.
Components that never arrive keep the seed's values.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


class DateAccumulator:
    """Mutable calendar fields resolved into one UTC ``datetime``.

    Out-of-range fields roll over instead of raising, so a day of 32 in
    January resolves to the 1st of February.
    """

    def __init__(self, seed: Optional[datetime] = None) -> None:
        seed = seed or datetime.now(timezone.utc)
        if seed.tzinfo is not None:
            seed = seed.astimezone(timezone.utc)
        self.year = seed.year
        self.month = seed.month
        self.day = seed.day
        self.hour = seed.hour
        self.minute = seed.minute
        self.second = seed.second
        self.millisecond = seed.microsecond // 1000

    def set_date(self, year: int, month: int, day: int) -> "DateAccumulator":
        """Set the calendar date; two-digit years are taken as 20xx."""
        self.year = year + 2000 if year < 100 else year
        self.month = month
        self.day = day
        return self

    def set_date_reverse(self, day: int, month: int, year: int) -> "DateAccumulator":
        return self.set_date(year, month, day)

    def set_time(
        self, hour: int, minute: int, second: int, millisecond: int = 0
    ) -> "DateAccumulator":
        self.hour = hour
        self.minute = minute
        self.second = second
        self.millisecond = millisecond
        return self

    def resolve(self) -> datetime:
        """Combine the current fields into an absolute UTC timestamp."""
        year = self.year + (self.month - 1) // 12
        month = (self.month - 1) % 12 + 1
        return datetime(year, month, 1, tzinfo=timezone.utc) + timedelta(
            days=self.day - 1,
            hours=self.hour,
            minutes=self.minute,
            seconds=self.second,
            milliseconds=self.millisecond,
        )
