"""
Error taxonomy for build attestation.

Every failure in signing or verification surfaces as a subclass of
BuildProofError. Verification failures additionally record the pipeline
stage that rejected the proof.
"""

from typing import Any, Dict, Optional


class BuildProofError(Exception):
    """Base class for all attestation errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class KeyFormatError(BuildProofError):
    """Raised when a key has the wrong length or encoding."""


class IoError(BuildProofError):
    """Raised when a key, proof, lock or trusted-keys file cannot be read or written."""

    def __init__(self, message: str, path: Any = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if path is not None:
            details.setdefault("path", str(path))
        self.path = path
        super().__init__(message, details)


class PayloadValidationError(BuildProofError):
    """Raised when build facts cannot form a valid payload."""


class SerializationError(BuildProofError):
    """Raised when a payload or proof document cannot be encoded."""


class VerificationError(BuildProofError):
    """Base class for failures raised by a verifier pipeline stage."""

    stage = "verification"


class MalformedProofError(VerificationError):
    stage = "parse"


class UnsupportedVersionError(VerificationError):
    stage = "format"


class SignatureInvalidError(VerificationError):
    stage = "signature"


class UntrustedKeyError(VerificationError):
    stage = "trusted_key"


class CommitMismatchError(VerificationError):
    stage = "commit"


class LockHashMismatchError(VerificationError):
    stage = "lock_file"
