"""ChaCha20 transport envelope used by devices with encryption enabled.

Frame format::

    "ChaCha" + base64(
        [12 bytes: nonce]
        [N bytes:  ciphertext]       ← ChaCha20, block counter 0
    )

The key is a fixed 32-byte ASCII string shared with the device firmware.
Devices sometimes append ``=``-bearing tails after the base64 payload; the
unwrapper drops trailing characters until no ``=`` is left past the first
position, then restores the padding itself.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "ChaCha"
DEFAULT_KEY = b"e3dbac1bc7d0dab7b6acdfd9a9be8a5e"
KEY_LEN = 32
NONCE_LEN = 12


class FrameDecodeError(ValueError):
    """Raised when an encrypted frame cannot be unwrapped.

    ``code`` is one of ``bad_encoding``, ``truncated`` or ``cipher_error``.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


def load_key(value: str | bytes) -> bytes:
    """Return *value* as a 32-byte key, raising ``ValueError`` otherwise."""
    key = value.encode("ascii") if isinstance(value, str) else bytes(value)
    if len(key) != KEY_LEN:
        raise ValueError(f"Cipher key must be exactly {KEY_LEN} bytes, got {len(key)}")
    return key


def is_encrypted(frame: str, marker: str = DEFAULT_MARKER) -> bool:
    return frame.startswith(marker)


def unwrap(frame: str, key: bytes = DEFAULT_KEY, marker: str = DEFAULT_MARKER) -> str:
    """Return the plaintext of *frame*.

    Frames without the *marker* prefix are returned unchanged.

    Raises
    ------
    FrameDecodeError
        If the payload is not valid base64, is shorter than a nonce, or the
        cipher rejects it.
    """
    if not is_encrypted(frame, marker):
        return frame

    payload = _strip_tail(frame[len(marker):])
    try:
        data = base64.b64decode(payload + "=" * (-len(payload) % 4), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise FrameDecodeError("bad_encoding", f"Invalid base64 payload: {exc}") from exc

    if len(data) < NONCE_LEN:
        raise FrameDecodeError(
            "truncated",
            f"Encrypted payload is {len(data)} bytes, shorter than the {NONCE_LEN}-byte nonce",
        )

    nonce, ciphertext = data[:NONCE_LEN], data[NONCE_LEN:]
    try:
        plaintext = _chacha20(key, nonce).decryptor().update(ciphertext)
    except ValueError as exc:
        raise FrameDecodeError("cipher_error", f"ChaCha20 decryption failed: {exc}") from exc

    logger.debug("Decrypted %d-byte frame payload", len(ciphertext))
    return plaintext.decode("utf-8", errors="replace")


def encrypt_frame(
    plaintext: str,
    key: bytes = DEFAULT_KEY,
    marker: str = DEFAULT_MARKER,
    nonce: Optional[bytes] = None,
) -> str:
    """Wrap *plaintext* the way an encrypting device would.

    A random nonce is drawn from ``os.urandom`` when *nonce* is not given.
    """
    nonce = os.urandom(NONCE_LEN) if nonce is None else nonce
    if len(nonce) != NONCE_LEN:
        raise ValueError(f"Nonce must be exactly {NONCE_LEN} bytes, got {len(nonce)}")
    ciphertext = _chacha20(key, nonce).encryptor().update(plaintext.encode("utf-8"))
    return marker + base64.b64encode(nonce + ciphertext).decode("ascii")


# ── internal helpers ────────────────────────────────────────────────

def _strip_tail(payload: str) -> str:
    """Drop trailing characters while an ``=`` remains past index 0."""
    while payload.find("=") > 0:
        payload = payload[:-1]
    return payload


def _chacha20(key: bytes, nonce: bytes) -> Cipher:
    # cryptography takes a 16-byte nonce: 32-bit little-endian counter + 96-bit nonce.
    full_nonce = (0).to_bytes(4, "little") + nonce
    return Cipher(algorithms.ChaCha20(key, full_nonce), mode=None)
