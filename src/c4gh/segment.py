"""Body segments: fixed-capacity chunks, each sealed with ChaCha20-Poly1305."""

import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .parameters import EncryptionParameters
from .types import (
    CIPHER_DIFF,
    NONCE_SIZE,
    SEGMENT_SIZE,
    AuthenticationError,
    FormatError,
)

_NONCE_MODULUS = 1 << (8 * NONCE_SIZE)


class NonceSequence:
    """
    Nonces for the segments of one stream.

    Starts at a random 96-bit value and counts up, so no two segments
    sealed under the same session key share a nonce.
    """

    def __init__(self, start: Optional[bytes] = None) -> None:
        if start is None:
            start = os.urandom(NONCE_SIZE)
        if len(start) != NONCE_SIZE:
            raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(start)}")
        self._next = int.from_bytes(start, "little")
        self._issued = 0

    def __iter__(self) -> "NonceSequence":
        return self

    def __next__(self) -> bytes:
        if self._issued >= _NONCE_MODULUS:
            raise OverflowError("Nonce space exhausted for this session key")
        nonce = self._next.to_bytes(NONCE_SIZE, "little")
        self._next = (self._next + 1) % _NONCE_MODULUS
        self._issued += 1
        return nonce


class SegmentBuffer:
    """Fixed-capacity plaintext buffer owned by a single writer."""

    def __init__(self, capacity: int = SEGMENT_SIZE) -> None:
        self._data = bytearray(capacity)
        self._size = 0

    @property
    def capacity(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return self._size

    def is_full(self) -> bool:
        return self._size == len(self._data)

    def fill(self, data: memoryview) -> int:
        """Copy as much of ``data`` as fits; return the number of bytes taken."""
        count = min(len(data), len(self._data) - self._size)
        self._data[self._size : self._size + count] = data[:count]
        self._size += count
        return count

    def take(self) -> bytes:
        """Hand over the buffered bytes as an independent copy and empty the buffer."""
        chunk = bytes(self._data[: self._size])
        self._size = 0
        return chunk


def encrypt_segment(chunk: bytes, parameters: EncryptionParameters, nonce: bytes) -> bytes:
    """
    Seal one plaintext chunk.

    Args:
        chunk: Plaintext, at most SEGMENT_SIZE bytes
        parameters: Session key and cipher
        nonce: 12-byte nonce, unique for this session key

    Returns:
        nonce || ciphertext || tag
    """
    if len(chunk) > SEGMENT_SIZE:
        raise ValueError(f"Segment too large: {len(chunk)} bytes (max {SEGMENT_SIZE})")
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    return nonce + ChaCha20Poly1305(parameters.session_key).encrypt(nonce, bytes(chunk), None)


def decrypt_segment(data: bytes, parameters: EncryptionParameters) -> bytes:
    """
    Open one sealed segment.

    Raises:
        FormatError: If the segment is too short to hold a nonce and tag
        AuthenticationError: If the tag does not verify
    """
    if len(data) < CIPHER_DIFF:
        raise FormatError(f"Truncated segment: {len(data)} bytes (minimum {CIPHER_DIFF})")
    if len(data) > SEGMENT_SIZE + CIPHER_DIFF:
        raise FormatError(f"Segment too large: {len(data)} bytes")

    nonce = bytes(data[:NONCE_SIZE])
    try:
        return ChaCha20Poly1305(parameters.session_key).decrypt(nonce, bytes(data[NONCE_SIZE:]), None)
    except InvalidTag as e:
        raise AuthenticationError("Segment authentication failed") from e
