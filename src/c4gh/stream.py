"""
Streaming adapters over binary file objects.

Crypt4GHWriter encrypts everything written to it into a sink;
Crypt4GHReader decrypts a container from a source on demand. Both hold
at most one segment of plaintext in memory.
"""

import io
import logging
from typing import BinaryIO, Callable, Optional, Sequence

from .header import DataEditList, Header, Recipients
from .keys import PrivateKeyLike, generate_session_key
from .parameters import EncryptionParameters
from .segment import NonceSequence, SegmentBuffer, decrypt_segment, encrypt_segment
from .types import CIPHER_SEGMENT_SIZE, AuthenticationError

LOG = logging.getLogger(__name__)


class Crypt4GHWriter(io.RawIOBase):
    """
    Encrypting writer.

    The header is written to the sink as soon as the writer is created.
    Plaintext is sealed one full segment at a time; ``flush()`` and
    ``close()`` seal whatever is left as the final, shorter segment. Only
    the last segment of a container may be short, so once ``flush()`` has
    sealed a partial segment the container is complete and further writes
    are refused.

    Example usage:
        ```python
        with open("data.c4gh", "wb") as sink:
            with Crypt4GHWriter(sink, my_private_key, their_public_key) as writer:
                writer.write(payload)
        ```
    """

    def __init__(
        self,
        sink: BinaryIO,
        writer_private_key: PrivateKeyLike,
        recipients: Recipients,
        *,
        edit_list: Optional[DataEditList] = None,
        session_key_factory: Callable[[], bytes] = generate_session_key,
        nonce_start: Optional[bytes] = None,
        close_sink: bool = True,
    ) -> None:
        super().__init__()
        self._sink = sink
        self._close_sink = False
        self._nonces = NonceSequence(nonce_start)
        self._buffer = SegmentBuffer()
        self._segments = 0
        self._failed = False
        self._finalized = False

        self._parameters = EncryptionParameters.generate(session_key_factory)
        self._header = Header.build(self._parameters, writer_private_key, recipients, edit_list)
        sink.write(self._header.to_bytes())
        LOG.debug("Wrote header with %d packet(s)", self._header.packet_count)

        # the sink is only ours to close once the header is out
        self._close_sink = close_sink

    @property
    def header(self) -> Header:
        """The header written at the start of the container."""
        return self._header

    @property
    def segments_written(self) -> int:
        return self._segments

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        if self._failed:
            raise ValueError("Writer stopped after a previous failure")

        view = memoryview(b).cast("B")
        if self._finalized and len(view):
            raise ValueError("Container already finalized by flush()")
        offset = 0
        while offset < len(view):
            offset += self._buffer.fill(view[offset:])
            if self._buffer.is_full():
                self._seal_buffer()
        return len(view)

    def _seal_buffer(self) -> None:
        chunk = self._buffer.take()
        try:
            self._sink.write(encrypt_segment(chunk, self._parameters, next(self._nonces)))
        except Exception:
            self._failed = True
            raise
        self._segments += 1

    def flush(self) -> None:
        """Seal pending plaintext as the final segment and flush the sink."""
        if self.closed:
            return
        if len(self._buffer) and not self._failed:
            self._seal_buffer()
            self._finalized = True
        self._sink.flush()

    def close(self) -> None:
        if self.closed:
            return
        try:
            super().close()
            LOG.debug("Closed writer after %d segment(s)", self._segments)
        finally:
            if self._close_sink:
                self._sink.close()


class _EditCursor:
    """Applies a DataEditList to consecutive plaintext chunks."""

    def __init__(self, edit_list: DataEditList) -> None:
        self._lengths = edit_list.lengths
        self._index = 0
        self._keep = False
        self._remaining = self._lengths[0] if self._lengths else 0
        self._skip_empty()

    def _skip_empty(self) -> None:
        while self._index < len(self._lengths) and self._remaining == 0:
            self._index += 1
            self._keep = not self._keep
            if self._index < len(self._lengths):
                self._remaining = self._lengths[self._index]

    @property
    def done(self) -> bool:
        """True once nothing further can be kept."""
        return self._index >= len(self._lengths) and len(self._lengths) % 2 == 0

    def apply(self, chunk: bytes) -> bytes:
        kept = []
        pos = 0
        while pos < len(chunk) and not self.done:
            if self._index >= len(self._lengths):
                # odd list: everything after the last skip is kept
                kept.append(chunk[pos:])
                break
            count = min(self._remaining, len(chunk) - pos)
            if self._keep:
                kept.append(chunk[pos : pos + count])
            pos += count
            self._remaining -= count
            self._skip_empty()
        return b"".join(kept)


class Crypt4GHReader(io.RawIOBase):
    """
    Decrypting reader.

    The header is parsed and the encryption parameters resolved in the
    constructor, so a wrong key fails before any body byte is read.
    Segments are then decrypted one at a time as the caller reads.
    """

    def __init__(
        self,
        source: BinaryIO,
        reader_private_key: PrivateKeyLike,
        *,
        close_source: bool = True,
    ) -> None:
        super().__init__()
        self._source = source
        self._close_source = False
        self._pending = memoryview(b"")
        self._segments = 0
        self._eof = False

        self._header = Header.parse(source)
        decrypted = self._header.decrypt(reader_private_key)
        self._parameters: Sequence[EncryptionParameters] = decrypted.parameters
        self._edit_list = decrypted.edit_list
        self._cursor = _EditCursor(decrypted.edit_list) if decrypted.edit_list else None

        self._close_source = close_source

    @property
    def header(self) -> Header:
        return self._header

    @property
    def edit_list(self) -> Optional[DataEditList]:
        return self._edit_list

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file.")

        view = memoryview(b).cast("B")
        if not len(view):
            return 0

        while not self._pending and not self._eof:
            self._next_segment()

        count = min(len(view), len(self._pending))
        view[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count

    def _read_segment(self) -> bytes:
        chunks = []
        remaining = CIPHER_SEGMENT_SIZE
        while remaining > 0:
            chunk = self._source.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def _decrypt(self, data: bytes) -> bytes:
        error = None
        for parameters in self._parameters:
            try:
                return decrypt_segment(data, parameters)
            except AuthenticationError as e:
                error = e
        raise AuthenticationError(f"Segment {self._segments} authentication failed") from error

    def _next_segment(self) -> None:
        data = self._read_segment()
        if not data:
            self._eof = True
            LOG.debug("Reached end of container after %d segment(s)", self._segments)
            return

        plaintext = self._decrypt(data)
        self._segments += 1
        if self._cursor is not None:
            plaintext = self._cursor.apply(plaintext)
            if self._cursor.done:
                self._eof = True
        self._pending = memoryview(plaintext)

    def close(self) -> None:
        if self.closed:
            return
        try:
            super().close()
        finally:
            if self._close_source:
                self._source.close()
