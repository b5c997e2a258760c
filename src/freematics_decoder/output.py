"""Output sinks for decoded NDJSON lines.

StdoutSink
    Writes raw bytes to ``sys.stdout.buffer``.

FileSink
    Appends to ``{prefix}-{instance_id}-{timestamp}.ndjson.active`` and, once
    the file is old or large enough, closes it and renames it to
    ``.ndjson`` before opening the next one.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)


class StdoutSink:
    """Write NDJSON bytes directly to stdout."""

    def write(self, data: bytes) -> None:
        try:
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
        except BrokenPipeError:
            logger.warning("stdout broken, consumer likely exited")
            raise

    def close(self) -> None:
        """No-op for stdout."""


class FileSink:
    """Rotating NDJSON file writer.

    Parameters
    ----------
    output_dir:
        Directory for output files, created when missing.
    prefix:
        Filename prefix (e.g. ``"positions"``).
    instance_id:
        Decoder instance identifier included in the filename.
    rotation_seconds:
        Rotate once the active file is this many seconds old.
    rotation_bytes:
        Rotate once the active file holds at least this many bytes.
    flush_every_n:
        Flush after this many lines.
    """

    def __init__(
        self,
        output_dir: str,
        prefix: str = "positions",
        instance_id: str = "decoder-01",
        rotation_seconds: int = 600,
        rotation_bytes: int = 52428800,
        flush_every_n: int = 50,
    ) -> None:
        self._dir = Path(output_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._prefix = prefix
        self._instance_id = instance_id
        self._rotation_seconds = rotation_seconds
        self._rotation_bytes = rotation_bytes
        self._flush_every_n = flush_every_n

        self._fh: Optional[BinaryIO] = None
        self._path: Optional[Path] = None
        self._size = 0
        self._pending = 0
        self._opened_at = 0.0
        self._sequence = 0

        self._open()

    def write(self, data: bytes) -> None:
        """Append *data*, rotating first when a threshold has been reached."""
        if (
            self._size >= self._rotation_bytes
            or time.monotonic() - self._opened_at >= self._rotation_seconds
        ):
            self._finish()
            self._open()

        self._fh.write(data)
        self._size += len(data)
        self._pending += 1
        if self._pending >= self._flush_every_n:
            self._fh.flush()
            self._pending = 0

    def close(self) -> None:
        """Flush and rename the active file."""
        if self._fh is not None and not self._fh.closed:
            self._finish()

    def _open(self) -> None:
        ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        self._sequence += 1
        name = f"{self._prefix}-{self._instance_id}-{ts}-{self._sequence:04d}.ndjson.active"
        self._path = self._dir / name
        self._fh = open(self._path, "ab")
        self._size = 0
        self._pending = 0
        self._opened_at = time.monotonic()
        logger.info("Opened output file %s", self._path.name)

    def _finish(self) -> None:
        self._fh.flush()
        os.fsync(self._fh.fileno())
        self._fh.close()
        final = self._path.with_suffix("")  # strip ".active"
        os.rename(self._path, final)
        logger.info("Closed %s (%d bytes)", final.name, self._size)
