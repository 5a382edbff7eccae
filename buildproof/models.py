"""
Data model for build attestations.

Payload holds the attested build facts; Proof is the persisted, signed unit.
Both are frozen once constructed.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from .config import FORMAT_VERSION

PUBLIC_KEY_HEX_LENGTH = 64
SIGNATURE_HEX_LENGTH = 128


class Payload(BaseModel):
    """The attested facts of a single build, prior to signing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    commit: StrictStr = Field(min_length=1)
    flake_lock_hash: StrictStr = Field(min_length=1)
    build_command: StrictStr = Field(min_length=1)
    artifact_tar_hash: StrictStr = Field(min_length=1)
    drv_hash: Optional[StrictStr] = None
    build_log_hash: Optional[StrictStr] = None
    timestamp: StrictStr = Field(min_length=1)
    nonce: StrictStr = Field(min_length=1)


class Proof(BaseModel):
    """
    A signed attestation document.

    Lengths and encodings of `signature` and `public_key` are checked by the
    verifier's signature stage rather than here, so that a proof with a bad
    signature field is reported as a signature failure, not a parse failure.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    payload: Payload
    signature: StrictStr
    public_key: StrictStr
    format_version: StrictInt = Field(default=FORMAT_VERSION, ge=0)

    def to_document(self) -> dict:
        """Return the JSON-ready document with absent optional fields omitted."""
        return {
            "payload": self.payload.model_dump(exclude_none=True),
            "signature": self.signature,
            "public_key": self.public_key,
            "format_version": self.format_version,
        }
