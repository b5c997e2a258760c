"""Tests for the cipher module."""

import base64

import pytest

from freematics_decoder.cipher import (
    DEFAULT_KEY,
    NONCE_LEN,
    FrameDecodeError,
    encrypt_frame,
    load_key,
    unwrap,
)

PLAINTEXT = "GT3000#0=1,A=-33.86,B=151.21,D=100*5F"
NONCE = bytes(range(NONCE_LEN))


def test_plain_frame_passes_through() -> None:
    """Frames without the marker are returned unchanged."""
    assert unwrap(PLAINTEXT) == PLAINTEXT


def test_round_trip() -> None:
    """Encrypting with a known nonce and unwrapping restores the plaintext."""
    frame = encrypt_frame(PLAINTEXT, nonce=NONCE)
    assert frame.startswith("ChaCha")
    assert unwrap(frame) == PLAINTEXT


@pytest.mark.parametrize("plaintext", ["a", "ab", "abc", "1#EV=1,TS=2*00"])
def test_round_trip_any_padding(plaintext: str) -> None:
    """Payload lengths needing zero, one or two padding chars all decode."""
    assert unwrap(encrypt_frame(plaintext, nonce=NONCE)) == plaintext


def test_random_nonce_differs() -> None:
    """Without an explicit nonce every frame is encrypted differently."""
    assert encrypt_frame(PLAINTEXT) != encrypt_frame(PLAINTEXT)


def test_trailing_equals_tail_is_dropped() -> None:
    """A ``=``-bearing tail after the payload is stripped before decoding."""
    frame = encrypt_frame("abcd", nonce=NONCE)  # 16 bytes → "==" padding
    assert frame.endswith("==")
    assert unwrap(frame + "=x") == "abcd"


def test_keystream_starts_at_block_zero() -> None:
    """All-zero key and nonce reproduce the RFC 7539 block-0 keystream."""
    frame = encrypt_frame("\x00" * 16, key=bytes(32), nonce=bytes(NONCE_LEN))
    data = base64.b64decode(frame[len("ChaCha"):])
    assert data[NONCE_LEN:] == bytes.fromhex("76b8e0ada0f13d90405d6ae55386bd28")


def test_custom_marker() -> None:
    frame = encrypt_frame(PLAINTEXT, marker="XX", nonce=NONCE)
    assert unwrap(frame, marker="XX") == PLAINTEXT
    assert unwrap(frame) == frame


def test_invalid_base64() -> None:
    """Characters outside the base64 alphabet → bad_encoding."""
    with pytest.raises(FrameDecodeError) as info:
        unwrap("ChaCha!!!!notbase64")
    assert info.value.code == "bad_encoding"


def test_truncated_payload() -> None:
    """Fewer bytes than a nonce → truncated."""
    frame = "ChaCha" + base64.b64encode(b"12345").decode()
    with pytest.raises(FrameDecodeError) as info:
        unwrap(frame)
    assert info.value.code == "truncated"


def test_decode_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        unwrap("ChaCha#")


def test_wrong_key_yields_different_text() -> None:
    """A different key decrypts without error but not to the plaintext."""
    frame = encrypt_frame(PLAINTEXT, nonce=NONCE)
    assert unwrap(frame, key=b"0" * 32) != PLAINTEXT


def test_load_key_length() -> None:
    assert load_key(DEFAULT_KEY.decode()) == DEFAULT_KEY
    with pytest.raises(ValueError):
        load_key("too-short")


def test_bad_nonce_length() -> None:
    with pytest.raises(ValueError):
        encrypt_frame(PLAINTEXT, nonce=b"\x00" * 8)
