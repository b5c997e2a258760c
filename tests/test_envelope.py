"""Tests for the envelope module."""

import pytest

from freematics_decoder.envelope import parse_envelope
from freematics_decoder.models import Envelope


def test_valid_envelope() -> None:
    """Id before ``#``, body between ``#`` and ``*``."""
    assert parse_envelope("GT3000#0=1,A=1.5*3C") == Envelope(id="GT3000", body="0=1,A=1.5")


def test_checksum_is_ignored() -> None:
    assert parse_envelope("abc#EV=1*ZZ").body == "EV=1"


def test_empty_body() -> None:
    assert parse_envelope("abc#*00") == Envelope(id="abc", body="")


@pytest.mark.parametrize(
    "text",
    [
        "",
        "no delimiters",
        "#0=1*00",          # empty id
        "abc#0=1",          # no end delimiter
        "abc0=1*00",        # no start delimiter
        "abc*0=1#00",       # end before start
        "*abc#0=1",         # end at index 0
    ],
)
def test_malformed_envelopes(text: str) -> None:
    """Malformed frames yield None rather than raising."""
    assert parse_envelope(text) is None


def test_first_delimiters_win() -> None:
    assert parse_envelope("a#b#c*d*e") == Envelope(id="a", body="b#c")
