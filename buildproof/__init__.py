"""
buildproof: Reproducible Build Attestation

Version: 0.1.0
License: Apache 2.0

Binds a reproducible build's output to the exact source state and build
process that produced it. The signer emits a self-describing, Ed25519-signed
proof document; the verifier checks its authenticity and cross-checks it
against the local checkout.

Usage:
    from buildproof import sign_build, verify_proof

    proof = sign_build(
        private_key="signing.key",
        out="proof.json",
        commit="abc123",
        flake_lock_hash="...",
        artifact_tar_hash="...",
        build_command="nix build .#default",
    )

    result = verify_proof(
        "proof.json",
        expected_commit="abc123",
        lock_file="flake.lock",
        trusted_keys="trusted_keys.txt",
    )
    if not result.accepted:
        print(result.failed_stage, result.reason)
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Data model
from .models import Payload, Proof

# Errors
from .errors import (
    BuildProofError,
    KeyFormatError,
    IoError,
    PayloadValidationError,
    SerializationError,
    VerificationError,
    MalformedProofError,
    UnsupportedVersionError,
    SignatureInvalidError,
    UntrustedKeyError,
    CommitMismatchError,
    LockHashMismatchError,
)

# Payload construction and canonical encoding
from .payload import build_payload, generate_nonce, utc_timestamp, parse_timestamp
from .canonicalization import canonicalize_payload, canonicalize_payload_str, PAYLOAD_FIELDS
from .hashing import sha256_hex, sha256_file

# Signing
from .signing import (
    sign_build,
    sign_payload,
    write_proof,
    load_signing_key,
    signing_key_from_bytes,
    public_key_hex,
    generate_signing_key,
)

# Trust
from .trust import TrustedKeySet

# Verification
from .verifier import (
    ProofVerifier,
    VerificationOptions,
    VerificationResult,
    VerificationOutcome,
    Stage,
    StageStatus,
    StageResult,
    verify_proof,
    verify_proof_signature,
)


__all__ = [
    "__version__",

    # Model
    "Payload",
    "Proof",

    # Errors
    "BuildProofError",
    "KeyFormatError",
    "IoError",
    "PayloadValidationError",
    "SerializationError",
    "VerificationError",
    "MalformedProofError",
    "UnsupportedVersionError",
    "SignatureInvalidError",
    "UntrustedKeyError",
    "CommitMismatchError",
    "LockHashMismatchError",

    # Payload
    "build_payload",
    "generate_nonce",
    "utc_timestamp",
    "parse_timestamp",
    "canonicalize_payload",
    "canonicalize_payload_str",
    "PAYLOAD_FIELDS",
    "sha256_hex",
    "sha256_file",

    # Signing
    "sign_build",
    "sign_payload",
    "write_proof",
    "load_signing_key",
    "signing_key_from_bytes",
    "public_key_hex",
    "generate_signing_key",

    # Trust
    "TrustedKeySet",

    # Verification
    "ProofVerifier",
    "VerificationOptions",
    "VerificationResult",
    "VerificationOutcome",
    "Stage",
    "StageStatus",
    "StageResult",
    "verify_proof",
    "verify_proof_signature",
]
