"""Type definitions and wire constants for the Crypt4GH container format."""

from enum import IntEnum


# Container framing
MAGIC = b"crypt4gh"
VERSION = 1
MAGIC_SIZE = 8
VERSION_SIZE = 4
PACKET_COUNT_SIZE = 4
PACKET_LENGTH_SIZE = 4
ENCRYPTION_METHOD_SIZE = 4
PACKET_TYPE_SIZE = 4

# Key and AEAD sizes
PUBLIC_KEY_SIZE = 32
PRIVATE_KEY_SIZE = 32
SESSION_KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16

# Body segments
SEGMENT_SIZE = 65536
CIPHER_SEGMENT_SIZE = NONCE_SIZE + SEGMENT_SIZE + TAG_SIZE
CIPHER_DIFF = NONCE_SIZE + TAG_SIZE

# Header packet layout: length | method | writer key | nonce | payload + tag
PACKET_PREFIX_SIZE = (
    PACKET_LENGTH_SIZE + ENCRYPTION_METHOD_SIZE + PUBLIC_KEY_SIZE + NONCE_SIZE
)
MIN_PACKET_SIZE = PACKET_PREFIX_SIZE + TAG_SIZE

# Upper bound on a single header packet; edit lists are the only variable part
MAX_PACKET_SIZE = 1 << 20

# Edit list lengths are 8-byte unsigned integers
EDIT_LENGTH_SIZE = 8


class HeaderEncryptionMethod(IntEnum):
    """Key-exchange + AEAD combination used to seal a header packet."""

    X25519_CHACHA20_IETF_POLY1305 = 0


class DataEncryptionMethod(IntEnum):
    """Symmetric cipher used for the body segments."""

    CHACHA20_IETF_POLY1305 = 0


class PacketType(IntEnum):
    """Kind of plaintext carried inside a header packet."""

    DATA_ENCRYPTION_PARAMETERS = 0
    DATA_EDIT_LIST = 1


# Exception types
class Crypt4GHError(Exception):
    """Base exception for Crypt4GH errors."""
    pass


class FormatError(Crypt4GHError):
    """Malformed container: bad magic, version, lengths or truncation."""
    pass


class UnsupportedMethodError(FormatError):
    """Unknown encryption method or packet type identifier."""

    def __init__(self, kind: str, value: int) -> None:
        self.kind = kind
        self.value = value
        super().__init__(f"Unsupported {kind}: {value}")


class SecurityError(Crypt4GHError):
    """Key material is unusable or no header packet could be opened."""
    pass


class AuthenticationError(Crypt4GHError):
    """AEAD tag verification failed."""
    pass
