"""Logging filter that keeps the cipher key and other secrets out of logs.

The resolved configuration is scanned at startup for string values whose
*keys* match ``logging.redact_patterns`` (shell-style globs, case
insensitive).  :class:`SecretRedactingFilter` then replaces those values with
``[REDACTED]`` in every log record's message and arguments.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Any, Iterable


REDACTED = "[REDACTED]"


class SecretRedactingFilter(logging.Filter):
    """A :class:`logging.Filter` that scrubs secret values from log output."""

    def __init__(self, secret_values: Iterable[str] | None = None) -> None:
        super().__init__()
        self._secrets: list[str] = []
        for value in secret_values or []:
            self.add_secret(value)

    def add_secret(self, value: str) -> None:
        # single characters would redact half of every message
        if value and len(value) > 1 and value not in self._secrets:
            self._secrets.append(value)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        record.msg = self._redact(record.msg)
        if isinstance(record.args, dict):
            record.args = {k: self._redact(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._redact(a) for a in record.args)
        return True

    def _redact(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        for secret in self._secrets:
            value = value.replace(secret, REDACTED)
        return value


def collect_secret_values(config: Any, patterns: list[str] | None = None) -> list[str]:
    """Return string values in *config* whose keys match any of *patterns*.

    *config* may be a nested structure of dicts, lists and tuples, such as
    the result of ``dataclasses.asdict(AppConfig(...))``.
    """
    found: list[str] = []
    if not patterns:
        return found

    lowered = [p.lower() for p in patterns]
    stack = [config]
    while stack:
        obj = stack.pop()
        if isinstance(obj, dict):
            for key, val in obj.items():
                if isinstance(val, str) and any(fnmatch.fnmatch(key.lower(), p) for p in lowered):
                    found.append(val)
                else:
                    stack.append(val)
        elif isinstance(obj, (list, tuple)):
            stack.extend(obj)
    return found
