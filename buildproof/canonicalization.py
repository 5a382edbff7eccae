"""
Canonical Payload Encoding

Signing and verification both run the payload through canonicalize_payload();
the signature covers exactly these bytes.

Rules:
- Keys emitted in the fixed PAYLOAD_FIELDS order (never sorted)
- No whitespace between tokens (compact form)
- UTF-8 encoding, no BOM, non-ASCII characters emitted as-is
- Unset optional fields omitted entirely; empty strings emitted as ""

Changing PAYLOAD_FIELDS in any way requires a new proof format version.
"""

import json
from typing import Any, Dict

from .errors import SerializationError
from .models import Payload

PAYLOAD_FIELDS = (
    "commit",
    "flake_lock_hash",
    "build_command",
    "artifact_tar_hash",
    "drv_hash",
    "build_log_hash",
    "timestamp",
    "nonce",
)

OPTIONAL_PAYLOAD_FIELDS = frozenset({"drv_hash", "build_log_hash"})


def payload_fields(payload: Payload) -> Dict[str, Any]:
    """Return the payload as an ordered dict, omitting unset optional fields."""
    fields = {}
    for name in PAYLOAD_FIELDS:
        value = getattr(payload, name)
        if value is None and name in OPTIONAL_PAYLOAD_FIELDS:
            continue
        fields[name] = value
    return fields


def canonicalize_payload(payload: Payload) -> bytes:
    """
    Convert a payload to its canonical byte encoding.

    Returns:
        UTF-8 encoded bytes of compact, field-ordered JSON
    """
    try:
        text = json.dumps(payload_fields(payload), separators=(",", ":"), ensure_ascii=False)
        return text.encode("utf-8")
    except (TypeError, ValueError, UnicodeEncodeError) as e:
        raise SerializationError(f"Failed to serialize payload: {e}") from e


def canonicalize_payload_str(payload: Payload) -> str:
    """Return the canonical encoding as a string."""
    return canonicalize_payload(payload).decode("utf-8")
