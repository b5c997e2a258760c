"""Record filtering by device identity and fix validity.

Filter chain (evaluated in order)::

    1. ``drop_invalid`` AND record has no valid fix          → drop
    2. ``device_id`` in ``drop_device_ids``                  → drop
    3. ``keep_device_ids`` non-empty AND ``device_id`` not in → drop
    4. Otherwise                                              → pass
"""

from __future__ import annotations

import logging
from typing import Optional

from freematics_decoder.config import FilterConfig
from freematics_decoder.models import PositionRecord

logger = logging.getLogger(__name__)


class RecordFilter:
    """Stateless filter that decides whether a position record passes through."""

    def __init__(self, config: FilterConfig) -> None:
        self._drop_invalid = config.drop_invalid
        self._drop_device_ids: set[str] = set(config.drop_device_ids)
        self._keep_device_ids: set[str] = set(config.keep_device_ids)

    def apply(self, record: PositionRecord) -> Optional[PositionRecord]:
        """Return *record* if it passes all filters, else ``None``."""
        device_id = record.device_id

        if self._drop_invalid and not record.valid:
            logger.debug("Filtered record for %s: no valid fix", device_id)
            return None

        if device_id in self._drop_device_ids:
            logger.debug("Filtered record for %s: in drop_device_ids", device_id)
            return None

        if self._keep_device_ids and device_id not in self._keep_device_ids:
            logger.debug("Filtered record for %s: not in keep_device_ids", device_id)
            return None

        return record
