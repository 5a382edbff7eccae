"""
Build Proof Signing

Uses Ed25519 (RFC 8032) via PyNaCl. The private key file holds the raw
32-byte seed; the public key is derived from it and embedded in the proof.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from nacl.signing import SigningKey, VerifyKey

from .canonicalization import canonicalize_payload
from .config import FORMAT_VERSION
from .errors import IoError, KeyFormatError, SerializationError
from .logging_config import audit_log
from .models import Payload, Proof
from .payload import build_payload

logger = logging.getLogger(__name__)

PRIVATE_KEY_BYTES = 32

PathLike = Union[str, Path]


def signing_key_from_bytes(raw: bytes) -> SigningKey:
    """
    Build a signing key from a raw Ed25519 seed.

    Raises:
        KeyFormatError: If the seed is not exactly 32 bytes
    """
    if len(raw) != PRIVATE_KEY_BYTES:
        raise KeyFormatError(
            f"Private key must be exactly {PRIVATE_KEY_BYTES} bytes, got {len(raw)}",
            {"expected": PRIVATE_KEY_BYTES, "actual": len(raw)}
        )
    return SigningKey(raw)


def load_signing_key(path: PathLike) -> SigningKey:
    """
    Load a raw Ed25519 private key file.

    Raises:
        IoError: If the file cannot be read
        KeyFormatError: If the file is not exactly 32 bytes
    """
    p = Path(path)
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise IoError(f"Failed to read private key file: {p}: {e.strerror or e}", path=p) from e
    try:
        return signing_key_from_bytes(raw)
    except KeyFormatError as e:
        e.details["path"] = str(p)
        raise


def public_key_hex(key: Union[SigningKey, VerifyKey]) -> str:
    """Return the canonical textual encoding of a verify key."""
    if isinstance(key, SigningKey):
        key = key.verify_key
    return bytes(key).hex()


def sign_payload(signing_key: SigningKey, payload: Payload) -> Proof:
    """
    Sign a payload and assemble the proof.

    The detached signature covers canonicalize_payload(payload).
    """
    message = canonicalize_payload(payload)
    signature = signing_key.sign(message).signature
    return Proof(
        payload=payload,
        signature=signature.hex(),
        public_key=public_key_hex(signing_key),
        format_version=FORMAT_VERSION,
    )


def proof_to_json(proof: Proof) -> str:
    """Render a proof document as pretty-printed JSON."""
    try:
        return json.dumps(proof.to_document(), indent=2, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize proof: {e}") from e


def write_proof(proof: Proof, path: PathLike) -> Path:
    """
    Atomically write a proof document.

    Writes to a temp file in the destination directory, then renames it
    over the target. On failure the temp file is removed and the target is
    left untouched.

    Raises:
        SerializationError: If the document cannot be encoded
        IoError: If the file cannot be written
    """
    p = Path(path)
    try:
        content = proof_to_json(proof).encode("utf-8")
    except UnicodeEncodeError as e:
        raise SerializationError(f"Failed to serialize proof: {e}") from e

    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=p.parent,
            prefix=".buildproof-",
            suffix=".tmp",
        )
    except OSError as e:
        raise IoError(f"Failed to write proof file: {p}: {e.strerror or e}", path=p) from e

    closed = False
    try:
        os.fchmod(fd, 0o644)
        view = memoryview(content)
        while view:
            view = view[os.write(fd, view):]
        os.fsync(fd)
        os.close(fd)
        closed = True
        os.replace(tmp_path, p)
    except OSError as e:
        if not closed:
            os.close(fd)
        Path(tmp_path).unlink(missing_ok=True)
        raise IoError(f"Failed to write proof file: {p}: {e.strerror or e}", path=p) from e

    logger.debug("Wrote proof document %s (%d bytes)", p, len(content))
    return p


def sign_build(
    private_key: PathLike,
    out: PathLike,
    commit: str,
    flake_lock_hash: str,
    artifact_tar_hash: str,
    build_command: str,
    drv_hash: Optional[str] = None,
    build_log_hash: Optional[str] = None,
) -> Proof:
    """
    Sign the facts of a build and write the proof document.

    Args:
        private_key: Path to the raw 32-byte Ed25519 private key
        out: Output path for the proof document
        commit: Source revision identifier
        flake_lock_hash: Digest of the lock file at build time
        artifact_tar_hash: Digest of the produced artifact
        build_command: The exact command that was run
        drv_hash: Optional derivation digest
        build_log_hash: Optional build log digest

    Returns:
        The Proof that was written

    Raises:
        IoError, KeyFormatError, PayloadValidationError, SerializationError
    """
    signing_key = load_signing_key(private_key)
    payload = build_payload(
        commit=commit,
        flake_lock_hash=flake_lock_hash,
        build_command=build_command,
        artifact_tar_hash=artifact_tar_hash,
        drv_hash=drv_hash,
        build_log_hash=build_log_hash,
    )
    proof = sign_payload(signing_key, payload)
    written = write_proof(proof, out)

    audit_log.proof_signed(
        out_path=str(written),
        commit=payload.commit,
        artifact_tar_hash=payload.artifact_tar_hash,
        public_key=proof.public_key,
    )
    return proof


def generate_signing_key() -> SigningKey:
    """Generate a fresh Ed25519 signing key."""
    return SigningKey.generate()


def write_private_key(signing_key: SigningKey, path: PathLike) -> Path:
    """
    Write a raw private key seed with owner-only permissions.

    Raises:
        IoError: If the file cannot be written
    """
    p = Path(path)
    try:
        fd = os.open(str(p), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(bytes(signing_key))
    except OSError as e:
        raise IoError(f"Failed to write private key file: {p}: {e.strerror or e}", path=p) from e
    return p
