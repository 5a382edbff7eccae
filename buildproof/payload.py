"""
Payload builder.

Assembles attested build facts with the build time and a fresh random nonce.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from .errors import PayloadValidationError
from .models import Payload

NONCE_BYTES = 16
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Format a time as a fixed-width RFC3339 UTC string."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(s: str) -> datetime:
    """Parse a payload timestamp back into an aware UTC datetime."""
    return datetime.strptime(s, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def generate_nonce(length: int = NONCE_BYTES) -> str:
    """Generate a cryptographically secure random nonce (hex encoded)."""
    return secrets.token_hex(length)


def build_payload(
    commit: str,
    flake_lock_hash: str,
    build_command: str,
    artifact_tar_hash: str,
    drv_hash: Optional[str] = None,
    build_log_hash: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Payload:
    """
    Build a Payload for the given build facts.

    Args:
        commit: Source revision identifier
        flake_lock_hash: Digest of the lock file at build time
        build_command: The exact command that was run
        artifact_tar_hash: Digest of the produced artifact
        drv_hash: Optional digest of the derivation
        build_log_hash: Optional digest of the build log
        now: Build time (default: current UTC time)

    Returns:
        Immutable Payload with timestamp and nonce filled in

    Raises:
        PayloadValidationError: If a required fact is missing or empty
    """
    try:
        return Payload(
            commit=commit,
            flake_lock_hash=flake_lock_hash,
            build_command=build_command,
            artifact_tar_hash=artifact_tar_hash,
            drv_hash=drv_hash,
            build_log_hash=build_log_hash,
            timestamp=utc_timestamp(now),
            nonce=generate_nonce(),
        )
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise PayloadValidationError(
            f"Invalid build facts: {', '.join(fields)}",
            {"fields": fields},
        ) from e
