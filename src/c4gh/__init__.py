"""
c4gh - Streaming Crypt4GH containers

Python implementation of the Crypt4GH v1 container format using
X25519 + ChaCha20-Poly1305.
"""

from .keys import (
    generate_keypair,
    derive_keypair_from_seed,
    generate_session_key,
    public_key_to_bytes,
    private_key_to_bytes,
)
from .parameters import EncryptionParameters
from .header import DataEditList, DecryptedHeader, Header, HeaderPacket
from .segment import NonceSequence, SegmentBuffer, encrypt_segment, decrypt_segment
from .stream import Crypt4GHReader, Crypt4GHWriter
from .files import FileConfig, encrypt_file, decrypt_file, reencrypt_file
from .types import (
    MAGIC,
    VERSION,
    SEGMENT_SIZE,
    CIPHER_SEGMENT_SIZE,
    HeaderEncryptionMethod,
    DataEncryptionMethod,
    PacketType,
    Crypt4GHError,
    FormatError,
    UnsupportedMethodError,
    SecurityError,
    AuthenticationError,
)

__version__ = "0.1.0"

__all__ = [
    # Keys
    "generate_keypair",
    "derive_keypair_from_seed",
    "generate_session_key",
    "public_key_to_bytes",
    "private_key_to_bytes",
    # Parameters
    "EncryptionParameters",
    # Header
    "DataEditList",
    "DecryptedHeader",
    "Header",
    "HeaderPacket",
    # Segments
    "NonceSequence",
    "SegmentBuffer",
    "encrypt_segment",
    "decrypt_segment",
    # Streams
    "Crypt4GHReader",
    "Crypt4GHWriter",
    # Files
    "FileConfig",
    "encrypt_file",
    "decrypt_file",
    "reencrypt_file",
    # Constants
    "MAGIC",
    "VERSION",
    "SEGMENT_SIZE",
    "CIPHER_SEGMENT_SIZE",
    "HeaderEncryptionMethod",
    "DataEncryptionMethod",
    "PacketType",
    # Errors
    "Crypt4GHError",
    "FormatError",
    "UnsupportedMethodError",
    "SecurityError",
    "AuthenticationError",
]
