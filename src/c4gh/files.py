"""
File-level helpers around the streaming adapters.

These are convenience wrappers for pipelines that work with paths. They
own the one policy decision the streams leave to callers: whether a
partially written destination is removed when encryption or decryption
fails.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from .header import Header, Recipients
from .keys import PrivateKeyLike
from .stream import Crypt4GHReader, Crypt4GHWriter
from .types import SEGMENT_SIZE, Crypt4GHError

LOG = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass
class FileConfig:
    """Configuration for the file helpers."""

    chunk_size: int = SEGMENT_SIZE
    """Copy buffer size in bytes."""

    overwrite: bool = False
    """Replace an existing destination instead of raising FileExistsError."""

    remove_partial: bool = True
    """Delete the destination when a Crypt4GH error interrupts the operation."""


def _run(
    src: PathLike,
    dst: PathLike,
    config: Optional[FileConfig],
    operation: Callable[[BinaryIO, BinaryIO, FileConfig], None],
) -> Path:
    config = config or FileConfig()
    dst_path = Path(dst)
    if dst_path.exists() and not config.overwrite:
        raise FileExistsError(f"Destination already exists: {dst_path}")

    try:
        with open(src, "rb") as fin, open(dst_path, "wb") as fout:
            operation(fin, fout, config)
    except Crypt4GHError as e:
        if config.remove_partial:
            LOG.info("Removing partial output %s after error: %s", dst_path, e)
            dst_path.unlink(missing_ok=True)
        raise
    return dst_path


def encrypt_file(
    src: PathLike,
    dst: PathLike,
    writer_private_key: PrivateKeyLike,
    recipients: Recipients,
    config: Optional[FileConfig] = None,
) -> Path:
    """
    Encrypt a file into a Crypt4GH container.

    Args:
        src: Plaintext file
        dst: Container to create
        writer_private_key: Writer's X25519 private key
        recipients: One public key or a sequence of them
        config: Optional FileConfig

    Returns:
        Path of the written container
    """

    def operation(fin: BinaryIO, fout: BinaryIO, config: FileConfig) -> None:
        with Crypt4GHWriter(fout, writer_private_key, recipients, close_sink=False) as writer:
            shutil.copyfileobj(fin, writer, config.chunk_size)

    LOG.info("Encrypting %s -> %s", src, dst)
    return _run(src, dst, config, operation)


def decrypt_file(
    src: PathLike,
    dst: PathLike,
    reader_private_key: PrivateKeyLike,
    config: Optional[FileConfig] = None,
) -> Path:
    """
    Decrypt a Crypt4GH container into a plaintext file.

    Returns:
        Path of the written plaintext
    """

    def operation(fin: BinaryIO, fout: BinaryIO, config: FileConfig) -> None:
        with Crypt4GHReader(fin, reader_private_key, close_source=False) as reader:
            shutil.copyfileobj(reader, fout, config.chunk_size)

    LOG.info("Decrypting %s -> %s", src, dst)
    return _run(src, dst, config, operation)


def reencrypt_file(
    src: PathLike,
    dst: PathLike,
    reader_private_key: PrivateKeyLike,
    writer_private_key: PrivateKeyLike,
    recipients: Recipients,
    trim: bool = False,
    config: Optional[FileConfig] = None,
) -> Path:
    """
    Re-seal a container's header for new recipients.

    Only the header is rewritten; the body segments are copied unchanged.

    Returns:
        Path of the written container
    """

    def operation(fin: BinaryIO, fout: BinaryIO, config: FileConfig) -> None:
        header = Header.parse(fin)
        new_header = header.reencrypt(reader_private_key, writer_private_key, recipients, trim=trim)
        fout.write(new_header.to_bytes())
        shutil.copyfileobj(fin, fout, config.chunk_size)

    LOG.info("Re-encrypting header of %s -> %s", src, dst)
    return _run(src, dst, config, operation)
