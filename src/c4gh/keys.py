"""Key material handling for Crypt4GH.

Keys cross the library boundary either as ``cryptography`` X25519 key
objects or as raw 32-byte buffers. Everything here normalizes to key
objects and back; PEM handling is left to callers.
"""

import os
from typing import Tuple, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from .types import (
    PRIVATE_KEY_SIZE,
    PUBLIC_KEY_SIZE,
    SESSION_KEY_SIZE,
    SecurityError,
)

PrivateKeyLike = Union[X25519PrivateKey, bytes]
PublicKeyLike = Union[X25519PublicKey, bytes]

# Seed derivation constants
KEY_DERIVATION_SALT = b"crypt4gh-seed-v1"
KEY_DERIVATION_INFO = b"x25519-key"


def generate_keypair() -> Tuple[X25519PrivateKey, X25519PublicKey]:
    """
    Generate a random X25519 key pair.

    Returns:
        Tuple of (private_key, public_key)
    """
    private_key = X25519PrivateKey.generate()
    return private_key, private_key.public_key()


def derive_keypair_from_seed(seed: bytes) -> Tuple[X25519PrivateKey, X25519PublicKey]:
    """
    Derive an X25519 key pair from a 32-byte seed using HKDF-SHA256.

    Args:
        seed: 32-byte seed

    Returns:
        Tuple of (private_key, public_key)
    """
    if len(seed) != 32:
        raise ValueError(f"Seed must be 32 bytes, got {len(seed)}")

    hkdf = HKDF(
        algorithm=SHA256(),
        length=PRIVATE_KEY_SIZE,
        salt=KEY_DERIVATION_SALT,
        info=KEY_DERIVATION_INFO,
    )
    private_key = X25519PrivateKey.from_private_bytes(hkdf.derive(seed))
    return private_key, private_key.public_key()


def generate_session_key() -> bytes:
    """Generate a fresh random session key for one container."""
    return os.urandom(SESSION_KEY_SIZE)


def to_private_key(key: PrivateKeyLike) -> X25519PrivateKey:
    """Accept a private key object or its raw 32 bytes."""
    if isinstance(key, X25519PrivateKey):
        return key
    key = bytes(key)
    if len(key) != PRIVATE_KEY_SIZE:
        raise SecurityError(
            f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(key)}"
        )
    return X25519PrivateKey.from_private_bytes(key)


def to_public_key(key: PublicKeyLike) -> X25519PublicKey:
    """Accept a public key object or its raw 32 bytes."""
    if isinstance(key, X25519PublicKey):
        return key
    key = bytes(key)
    if len(key) != PUBLIC_KEY_SIZE:
        raise SecurityError(
            f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(key)}"
        )
    return X25519PublicKey.from_public_bytes(key)


def public_key_to_bytes(public_key: PublicKeyLike) -> bytes:
    """Convert an X25519 public key to raw bytes."""
    return to_public_key(public_key).public_bytes(Encoding.Raw, PublicFormat.Raw)


def private_key_to_bytes(private_key: PrivateKeyLike) -> bytes:
    """Convert an X25519 private key to raw bytes."""
    return to_private_key(private_key).private_bytes(
        Encoding.Raw, PrivateFormat.Raw, NoEncryption()
    )


def x25519_ecdh(private_key: X25519PrivateKey, public_key: X25519PublicKey) -> bytes:
    """
    Perform X25519 ECDH key exchange.

    Raises:
        SecurityError: If the peer key is a low-order point
    """
    try:
        return private_key.exchange(public_key)
    except ValueError as e:
        raise SecurityError(f"Key exchange failed: {e}") from e


def derive_shared_key(
    private_key: X25519PrivateKey,
    peer_public_key: X25519PublicKey,
    writer_side: bool,
) -> bytes:
    """
    Derive the symmetric key that seals a header packet.

    Follows the libsodium ``crypto_kx`` convention with the reader as client
    and the writer as server: ``BLAKE2b-512(dh || reader_pk || writer_pk)``,
    first 32 bytes. Both sides arrive at the same key.

    Args:
        private_key: Our private key
        peer_public_key: The other party's public key
        writer_side: True when called by the writer of the container

    Returns:
        32-byte shared key
    """
    shared_secret = x25519_ecdh(private_key, peer_public_key)
    own_pub = public_key_to_bytes(private_key.public_key())
    peer_pub = public_key_to_bytes(peer_public_key)

    if writer_side:
        reader_pub, writer_pub = peer_pub, own_pub
    else:
        reader_pub, writer_pub = own_pub, peer_pub

    digest = hashes.Hash(hashes.BLAKE2b(64))
    digest.update(shared_secret + reader_pub + writer_pub)
    return digest.finalize()[:SESSION_KEY_SIZE]
