"""Data encryption parameters: the session key and its cipher."""

from dataclasses import dataclass, field
from typing import Callable

from .keys import generate_session_key
from .types import (
    ENCRYPTION_METHOD_SIZE,
    PACKET_TYPE_SIZE,
    SESSION_KEY_SIZE,
    DataEncryptionMethod,
    FormatError,
    PacketType,
    SecurityError,
    UnsupportedMethodError,
)

PARAMETERS_PAYLOAD_SIZE = PACKET_TYPE_SIZE + ENCRYPTION_METHOD_SIZE + SESSION_KEY_SIZE


@dataclass(frozen=True)
class EncryptionParameters:
    """How the body segments of one container are encrypted."""

    session_key: bytes = field(repr=False)
    method: DataEncryptionMethod = DataEncryptionMethod.CHACHA20_IETF_POLY1305

    def __post_init__(self) -> None:
        if len(self.session_key) != SESSION_KEY_SIZE:
            raise SecurityError(
                f"Session key must be {SESSION_KEY_SIZE} bytes, got {len(self.session_key)}"
            )
        try:
            method = DataEncryptionMethod(self.method)
        except ValueError:
            raise UnsupportedMethodError("data encryption method", self.method) from None
        object.__setattr__(self, "method", method)

    @classmethod
    def generate(
        cls, session_key_factory: Callable[[], bytes] = generate_session_key
    ) -> "EncryptionParameters":
        """Create parameters around a freshly generated session key."""
        return cls(session_key=bytes(session_key_factory()))

    def to_bytes(self) -> bytes:
        """
        Encode as the plaintext of a header packet.

        Format (40 bytes):
            [0..3]   packet type (0, little-endian)
            [4..7]   data encryption method (little-endian)
            [8..39]  session key
        """
        return (
            PacketType.DATA_ENCRYPTION_PARAMETERS.to_bytes(PACKET_TYPE_SIZE, "little")
            + int(self.method).to_bytes(ENCRYPTION_METHOD_SIZE, "little")
            + self.session_key
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "EncryptionParameters":
        """
        Decode from the plaintext of a header packet.

        Raises:
            FormatError: If the payload has the wrong type or length
            UnsupportedMethodError: If the cipher is unknown
        """
        packet_type = int.from_bytes(data[:PACKET_TYPE_SIZE], "little")
        if packet_type != PacketType.DATA_ENCRYPTION_PARAMETERS:
            raise FormatError(f"Not a data encryption packet: type {packet_type}")

        if len(data) != PARAMETERS_PAYLOAD_SIZE:
            raise FormatError(
                f"Encryption parameters must be {PARAMETERS_PAYLOAD_SIZE} bytes, got {len(data)}"
            )

        offset = PACKET_TYPE_SIZE
        method = int.from_bytes(data[offset : offset + ENCRYPTION_METHOD_SIZE], "little")
        offset += ENCRYPTION_METHOD_SIZE

        try:
            method = DataEncryptionMethod(method)
        except ValueError:
            raise UnsupportedMethodError("data encryption method", method) from None

        return cls(session_key=bytes(data[offset:]), method=method)
