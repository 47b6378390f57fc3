"""Crypt4GH header: sealed packets that carry the session key to readers."""

import io
import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .keys import (
    PrivateKeyLike,
    PublicKeyLike,
    derive_shared_key,
    public_key_to_bytes,
    to_private_key,
    to_public_key,
)
from .parameters import EncryptionParameters
from .types import (
    EDIT_LENGTH_SIZE,
    ENCRYPTION_METHOD_SIZE,
    MAGIC,
    MAGIC_SIZE,
    MAX_PACKET_SIZE,
    MIN_PACKET_SIZE,
    NONCE_SIZE,
    PACKET_COUNT_SIZE,
    PACKET_LENGTH_SIZE,
    PACKET_TYPE_SIZE,
    PUBLIC_KEY_SIZE,
    VERSION,
    VERSION_SIZE,
    AuthenticationError,
    Crypt4GHError,
    FormatError,
    HeaderEncryptionMethod,
    PacketType,
    SecurityError,
    UnsupportedMethodError,
)

LOG = logging.getLogger(__name__)

Recipients = Union[PublicKeyLike, Sequence[PublicKeyLike]]


def _read_exact(source: BinaryIO, size: int, what: str) -> bytes:
    """Read exactly ``size`` bytes or fail with a FormatError."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = source.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    data = b"".join(chunks)
    if len(data) != size:
        raise FormatError(f"Truncated {what}: expected {size} bytes, got {len(data)}")
    return data


def _recipient_list(recipients: Recipients) -> List[PublicKeyLike]:
    if isinstance(recipients, (bytes, bytearray, memoryview)) or not isinstance(recipients, Sequence):
        return [recipients]
    if not recipients:
        raise ValueError("At least one recipient is required")
    return list(recipients)


def packet_type_of(plaintext: bytes) -> PacketType:
    """Identify what an opened header packet carries."""
    if len(plaintext) < PACKET_TYPE_SIZE:
        raise FormatError(f"Header packet payload too short: {len(plaintext)} bytes")
    value = int.from_bytes(plaintext[:PACKET_TYPE_SIZE], "little")
    try:
        return PacketType(value)
    except ValueError:
        raise UnsupportedMethodError("header packet type", value) from None


@dataclass(frozen=True)
class DataEditList:
    """
    Alternating skip/keep lengths applied to the decrypted body.

    The first length is skipped, the second kept, and so on. With an odd
    number of lengths everything after the last skip is kept; with an even
    number everything after the last keep is discarded.
    """

    lengths: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "lengths", tuple(int(n) for n in self.lengths))
        for n in self.lengths:
            if n < 0 or n >= 1 << (8 * EDIT_LENGTH_SIZE):
                raise ValueError(f"Edit list length out of range: {n}")

    def to_bytes(self) -> bytes:
        """
        Encode as the plaintext of a header packet.

        Format:
            [0..3]   packet type (1, little-endian)
            [4..7]   number of lengths (little-endian)
            [8..]    lengths, 8 bytes each (little-endian)
        """
        return (
            PacketType.DATA_EDIT_LIST.to_bytes(PACKET_TYPE_SIZE, "little")
            + len(self.lengths).to_bytes(4, "little")
            + b"".join(n.to_bytes(EDIT_LENGTH_SIZE, "little") for n in self.lengths)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DataEditList":
        """Decode from the plaintext of a header packet."""
        if packet_type_of(data) != PacketType.DATA_EDIT_LIST:
            raise FormatError("Not a data edit list packet")
        if len(data) < PACKET_TYPE_SIZE + 4:
            raise FormatError("Edit list packet too short")

        offset = PACKET_TYPE_SIZE
        count = int.from_bytes(data[offset : offset + 4], "little")
        offset += 4

        expected = offset + count * EDIT_LENGTH_SIZE
        if len(data) != expected:
            raise FormatError(
                f"Edit list of {count} lengths must be {expected} bytes, got {len(data)}"
            )

        lengths = tuple(
            int.from_bytes(data[i : i + EDIT_LENGTH_SIZE], "little")
            for i in range(offset, expected, EDIT_LENGTH_SIZE)
        )
        return cls(lengths=lengths)


@dataclass(frozen=True)
class HeaderPacket:
    """One sealed envelope addressed to one reader."""

    writer_public_key: bytes  # 32 bytes
    nonce: bytes  # 12 bytes
    encrypted_payload: bytes  # plaintext + 16-byte tag
    encryption_method: HeaderEncryptionMethod = HeaderEncryptionMethod.X25519_CHACHA20_IETF_POLY1305

    @classmethod
    def seal(
        cls,
        plaintext: bytes,
        writer_private_key: PrivateKeyLike,
        reader_public_key: PublicKeyLike,
    ) -> "HeaderPacket":
        """
        Seal a packet payload for one reader.

        Args:
            plaintext: Packet payload (encryption parameters or edit list)
            writer_private_key: Writer's X25519 private key
            reader_public_key: Reader's X25519 public key

        Returns:
            The sealed HeaderPacket

        Raises:
            SecurityError: If key exchange fails or a key is malformed
        """
        writer_private = to_private_key(writer_private_key)
        reader_public = to_public_key(reader_public_key)

        shared_key = derive_shared_key(writer_private, reader_public, writer_side=True)
        nonce = os.urandom(NONCE_SIZE)
        encrypted_payload = ChaCha20Poly1305(shared_key).encrypt(nonce, plaintext, None)

        return cls(
            writer_public_key=public_key_to_bytes(writer_private.public_key()),
            nonce=nonce,
            encrypted_payload=encrypted_payload,
        )

    def open(self, reader_private_key: PrivateKeyLike) -> bytes:
        """
        Recover the packet payload with the reader's private key.

        Raises:
            AuthenticationError: If the packet was not sealed for this key or was tampered with
            SecurityError: If the embedded writer key is unusable
        """
        reader_private = to_private_key(reader_private_key)
        writer_public = to_public_key(self.writer_public_key)

        shared_key = derive_shared_key(reader_private, writer_public, writer_side=False)
        try:
            return ChaCha20Poly1305(shared_key).decrypt(self.nonce, self.encrypted_payload, None)
        except InvalidTag as e:
            raise AuthenticationError("Header packet authentication failed") from e

    def to_bytes(self) -> bytes:
        """
        Encode the packet including its length prefix.

        Format:
            [0..3]    packet length, this field included (little-endian)
            [4..7]    encryption method (little-endian)
            [8..39]   writer public key
            [40..51]  nonce
            [52..]    encrypted payload + 16-byte tag
        """
        body = (
            int(self.encryption_method).to_bytes(ENCRYPTION_METHOD_SIZE, "little")
            + self.writer_public_key
            + self.nonce
            + self.encrypted_payload
        )
        return (PACKET_LENGTH_SIZE + len(body)).to_bytes(PACKET_LENGTH_SIZE, "little") + body

    @classmethod
    def from_bytes(cls, data: bytes) -> "HeaderPacket":
        """
        Decode a packet including its length prefix.

        Raises:
            FormatError: If the length prefix is inconsistent
            UnsupportedMethodError: If the encryption method is unknown
        """
        if len(data) < MIN_PACKET_SIZE:
            raise FormatError(f"Header packet too short: {len(data)} bytes (minimum {MIN_PACKET_SIZE})")

        length = int.from_bytes(data[:PACKET_LENGTH_SIZE], "little")
        if length != len(data):
            raise FormatError(f"Header packet length mismatch: declared {length}, got {len(data)}")

        offset = PACKET_LENGTH_SIZE
        method = int.from_bytes(data[offset : offset + ENCRYPTION_METHOD_SIZE], "little")
        offset += ENCRYPTION_METHOD_SIZE

        try:
            method = HeaderEncryptionMethod(method)
        except ValueError:
            raise UnsupportedMethodError("header encryption method", method) from None

        writer_public_key = bytes(data[offset : offset + PUBLIC_KEY_SIZE])
        offset += PUBLIC_KEY_SIZE

        nonce = bytes(data[offset : offset + NONCE_SIZE])
        offset += NONCE_SIZE

        return cls(
            writer_public_key=writer_public_key,
            nonce=nonce,
            encrypted_payload=bytes(data[offset:]),
            encryption_method=method,
        )


@dataclass(frozen=True)
class DecryptedHeader:
    """Everything a reader could open from a header."""

    parameters: Tuple[EncryptionParameters, ...]
    edit_list: Optional[DataEditList] = None


@dataclass(frozen=True)
class Header:
    """Magic, version and the ordered list of sealed packets."""

    packets: Tuple[HeaderPacket, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "packets", tuple(self.packets))
        if not self.packets:
            raise FormatError("Header must contain at least one packet")

    @property
    def packet_count(self) -> int:
        return len(self.packets)

    @classmethod
    def build(
        cls,
        parameters: EncryptionParameters,
        writer_private_key: PrivateKeyLike,
        recipients: Recipients,
        edit_list: Optional[DataEditList] = None,
    ) -> "Header":
        """
        Seal the parameters (and an optional edit list) for every recipient.

        Args:
            parameters: Session key and cipher for the body
            writer_private_key: Writer's X25519 private key
            recipients: One public key or a sequence of them
            edit_list: Optional edit list sealed alongside the parameters

        Returns:
            A Header with one or two packets per recipient, in recipient order
        """
        packets = []
        for reader_public_key in _recipient_list(recipients):
            packets.append(HeaderPacket.seal(parameters.to_bytes(), writer_private_key, reader_public_key))
            if edit_list is not None:
                packets.append(HeaderPacket.seal(edit_list.to_bytes(), writer_private_key, reader_public_key))
        return cls(packets=tuple(packets))

    def to_bytes(self) -> bytes:
        """Encode magic, version, packet count and every packet in order."""
        return (
            MAGIC
            + VERSION.to_bytes(VERSION_SIZE, "little")
            + self.packet_count.to_bytes(PACKET_COUNT_SIZE, "little")
            + b"".join(packet.to_bytes() for packet in self.packets)
        )

    @classmethod
    def parse(cls, source: BinaryIO) -> "Header":
        """
        Read a header from the start of a binary stream.

        Leaves the stream positioned at the first body segment. No private
        key is needed.

        Raises:
            FormatError: If magic, version or packet framing is invalid
        """
        magic = _read_exact(source, MAGIC_SIZE, "magic")
        if magic != MAGIC:
            raise FormatError(f"Not a Crypt4GH container: bad magic {magic!r}")

        version = int.from_bytes(_read_exact(source, VERSION_SIZE, "version"), "little")
        if version != VERSION:
            raise FormatError(f"Unsupported version: {version}")

        count = int.from_bytes(_read_exact(source, PACKET_COUNT_SIZE, "packet count"), "little")
        if count == 0:
            raise FormatError("Header declares no packets")

        packets = []
        for index in range(count):
            prefix = _read_exact(source, PACKET_LENGTH_SIZE, f"length of packet {index}")
            length = int.from_bytes(prefix, "little")
            if length < MIN_PACKET_SIZE:
                raise FormatError(f"Header packet {index} too short: {length} bytes")
            if length > MAX_PACKET_SIZE:
                raise FormatError(
                    f"Header packet {index} too large: {length} bytes (max {MAX_PACKET_SIZE})"
                )
            body = _read_exact(source, length - PACKET_LENGTH_SIZE, f"packet {index}")
            packets.append(HeaderPacket.from_bytes(prefix + body))

        LOG.debug("Parsed header with %d packet(s)", count)
        return cls(packets=tuple(packets))

    @classmethod
    def from_bytes(cls, data: bytes) -> "Header":
        """Decode a header that occupies exactly ``data``."""
        source = io.BytesIO(data)
        header = cls.parse(source)
        if source.tell() != len(data):
            raise FormatError(f"Trailing data after header: {len(data) - source.tell()} bytes")
        return header

    def _open_all(
        self, reader_private_key: PrivateKeyLike
    ) -> Tuple[List[Tuple[int, bytes]], Optional[Crypt4GHError]]:
        """
        Try every packet with this key.

        Returns:
            (index, payload) for each packet that opened, and the error from
            the last packet that did not
        """
        reader_private = to_private_key(reader_private_key)
        opened = []
        last_error = None
        for index, packet in enumerate(self.packets):
            try:
                opened.append((index, packet.open(reader_private)))
            except (AuthenticationError, SecurityError) as e:
                LOG.debug("Header packet %d not readable with this key: %s", index, e)
                last_error = e
        return opened, last_error

    def resolve(self, reader_private_key: PrivateKeyLike) -> EncryptionParameters:
        """
        Find the encryption parameters addressed to this reader.

        Every packet is tried in header order and the first data encryption
        packet that opens wins.

        Raises:
            SecurityError: If no packet opens with this key
        """
        opened, last_error = self._open_all(reader_private_key)
        for index, payload in opened:
            if packet_type_of(payload) == PacketType.DATA_ENCRYPTION_PARAMETERS:
                LOG.debug("Resolved encryption parameters from header packet %d", index)
                return EncryptionParameters.from_bytes(payload)
        raise SecurityError("No usable header packet for this private key") from last_error

    def decrypt(self, reader_private_key: PrivateKeyLike) -> DecryptedHeader:
        """
        Open every packet readable with this key.

        Raises:
            SecurityError: If no encryption parameters are readable
            FormatError: If more than one edit list is readable
        """
        parameters = []
        edit_list = None
        opened, last_error = self._open_all(reader_private_key)
        for _, payload in opened:
            packet_type = packet_type_of(payload)
            if packet_type == PacketType.DATA_ENCRYPTION_PARAMETERS:
                parameters.append(EncryptionParameters.from_bytes(payload))
            elif packet_type == PacketType.DATA_EDIT_LIST:
                if edit_list is not None:
                    raise FormatError("Only one edit list is allowed per reader")
                edit_list = DataEditList.from_bytes(payload)

        if not parameters:
            raise SecurityError("No usable header packet for this private key") from last_error
        return DecryptedHeader(parameters=tuple(parameters), edit_list=edit_list)

    def reencrypt(
        self,
        reader_private_key: PrivateKeyLike,
        writer_private_key: PrivateKeyLike,
        recipients: Recipients,
        trim: bool = False,
    ) -> "Header":
        """
        Re-seal the packets readable by one key for a new set of recipients.

        Packets that do not open with ``reader_private_key`` are kept
        verbatim unless ``trim`` is set.

        Raises:
            SecurityError: If no packet opens with this key
        """
        recipient_keys = _recipient_list(recipients)
        packets = []
        opened = 0
        opened_packets, last_error = self._open_all(reader_private_key)
        readable = dict(opened_packets)

        for index, packet in enumerate(self.packets):
            payload = readable.get(index)
            if payload is None:
                if not trim:
                    packets.append(packet)
                continue
            opened += 1
            for reader_public_key in recipient_keys:
                packets.append(HeaderPacket.seal(payload, writer_private_key, reader_public_key))

        if not opened:
            raise SecurityError("No usable header packet for this private key") from last_error
        LOG.debug("Re-encrypted %d packet(s) for %d recipient(s)", opened, len(recipient_keys))
        return Header(packets=tuple(packets))
