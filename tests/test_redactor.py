"""Tests for the redactor module."""

import logging
from dataclasses import asdict

from freematics_decoder.config import AppConfig
from freematics_decoder.redactor import REDACTED, SecretRedactingFilter, collect_secret_values


def _record(msg: str, args: tuple = ()) -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


def test_cipher_key_collected_from_config() -> None:
    values = collect_secret_values(asdict(AppConfig()), ["*key*"])
    assert "e3dbac1bc7d0dab7b6acdfd9a9be8a5e" in values


def test_non_matching_keys_ignored() -> None:
    assert collect_secret_values({"instance_id": "x1", "nested": [{"token": "t0k"}]},
                                 ["*token*"]) == ["t0k"]
    assert collect_secret_values({"api_key": "abc"}, None) == []


def test_pattern_case_insensitive() -> None:
    assert collect_secret_values({"API_KEY": "abc"}, ["*key*"]) == ["abc"]


def test_message_and_args_redacted() -> None:
    flt = SecretRedactingFilter(["hunter22"])
    record = _record("key=hunter22 user=%s", ("hunter22",))
    assert flt.filter(record) is True
    assert record.getMessage() == f"key={REDACTED} user={REDACTED}"


def test_short_values_ignored() -> None:
    flt = SecretRedactingFilter(["", "x"])
    record = _record("x marks the spot")
    flt.filter(record)
    assert record.getMessage() == "x marks the spot"


def test_non_string_args_untouched() -> None:
    flt = SecretRedactingFilter(["secret"])
    record = _record("%d frames", (5,))
    flt.filter(record)
    assert record.getMessage() == "5 frames"
