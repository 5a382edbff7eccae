"""
Digest helpers.

All digests are SHA-256 rendered as lowercase hexadecimal without a prefix,
matching what build tooling records in a payload's *_hash fields.
"""

import hashlib
from pathlib import Path
from typing import Union

from .errors import IoError

CHUNK_SIZE = 65536


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Union[str, Path]) -> str:
    """
    Compute the SHA-256 hex digest of a file, streaming it in chunks.

    Raises:
        IoError: If the file cannot be read
    """
    p = Path(path)
    h = hashlib.sha256()
    try:
        with p.open("rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                h.update(chunk)
    except OSError as e:
        raise IoError(f"Failed to read file: {p}: {e.strerror or e}", path=p) from e
    return h.hexdigest()
