"""
Build Proof Verification Pipeline

Checks a proof document's authenticity, then cross-checks it against
locally observable facts. Stages run in a fixed order and the first
failure halts the pipeline:

    parse -> format -> signature -> trusted_key -> commit -> lock_file

Semantic checks (trust, commit, lock file) never run against a payload
whose signature has not verified.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from nacl.exceptions import CryptoError
from nacl.signing import VerifyKey
from pydantic import ValidationError

from . import config
from .canonicalization import canonicalize_payload
from .errors import (
    BuildProofError,
    CommitMismatchError,
    IoError,
    LockHashMismatchError,
    MalformedProofError,
    SerializationError,
    SignatureInvalidError,
    UnsupportedVersionError,
    UntrustedKeyError,
    VerificationError,
)
from .hashing import sha256_file
from .logging_config import audit_log
from .models import PUBLIC_KEY_HEX_LENGTH, SIGNATURE_HEX_LENGTH, Proof
from .trust import TrustedKeySet

logger = logging.getLogger(__name__)

LOWER_HEX_PATTERN = re.compile(r'^[0-9a-f]*$')

PathLike = Union[str, Path]


class Stage(str, Enum):
    """Verifier pipeline stages, in execution order."""
    PARSE = "parse"
    FORMAT = "format"
    SIGNATURE = "signature"
    TRUSTED_KEY = "trusted_key"
    COMMIT = "commit"
    LOCK_FILE = "lock_file"


class StageStatus(str, Enum):
    PASSED = "passed"
    SKIPPED = "skipped"
    WARNING = "warning"
    FAILED = "failed"


class VerificationOutcome(str, Enum):
    """
    ACCEPTED: every mandatory stage passed; optional stages passed, were
              skipped, or degraded to a warning
    REJECTED: a stage failed; the first failure is carried in the result
    """
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class StageResult:
    """Outcome of a single pipeline stage."""
    stage: Stage
    status: StageStatus
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage.value, "status": self.status.value, "message": self.message}


@dataclass
class VerificationResult:
    """Terminal state of a verification run."""
    outcome: VerificationOutcome
    stages: List[StageResult] = field(default_factory=list)
    proof: Optional[Proof] = None
    error: Optional[BuildProofError] = None
    failed_stage: Optional[Stage] = None

    @property
    def accepted(self) -> bool:
        return self.outcome == VerificationOutcome.ACCEPTED

    @property
    def warnings(self) -> List[str]:
        return [s.message for s in self.stages if s.status == StageStatus.WARNING]

    @property
    def reason(self) -> Optional[str]:
        return self.error.message if self.error is not None else None

    def raise_for_outcome(self) -> None:
        """Re-raise the error that rejected the proof, if any."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "reason": self.reason,
            "warnings": self.warnings,
            "stages": [s.to_dict() for s in self.stages],
        }


@dataclass
class VerificationOptions:
    """
    Caller-supplied inputs for the optional stages.

    expected_commit is taken as given; resolving an ambient value (such as
    a CI environment variable) is the caller's job.

    trusted_keys: when None, the trusted-key stage is skipped and any
    validly signed proof is accepted regardless of signer. This permissive
    default is intentional; callers that need trust enforcement must always
    supply a key source.
    """
    expected_commit: Optional[str] = None
    lock_file: Optional[PathLike] = None
    trusted_keys: Optional[Union[TrustedKeySet, PathLike]] = None
    skip_commit_check: bool = False
    skip_flake_lock_check: bool = False
    max_proof_bytes: int = config.MAX_PROOF_BYTES


class _StageFailed(Exception):
    """Internal signal that carries a stage failure out of the pipeline."""

    def __init__(self, stage: Stage, error: BuildProofError):
        self.stage = stage
        self.error = error
        super().__init__(error.message)


def read_proof_bytes(path: PathLike, max_bytes: int = config.MAX_PROOF_BYTES) -> bytes:
    """
    Read a proof document, refusing anything larger than max_bytes.

    Raises:
        IoError: If the file cannot be read
        MalformedProofError: If the file exceeds max_bytes
    """
    p = Path(path)
    try:
        with p.open("rb") as f:
            data = f.read(max_bytes + 1)
    except OSError as e:
        raise IoError(f"Failed to read proof file: {p}: {e.strerror or e}", path=p) from e
    if len(data) > max_bytes:
        raise MalformedProofError(
            f"Proof file exceeds maximum size of {max_bytes} bytes: {p}",
            {"path": str(p), "max_bytes": max_bytes}
        )
    return data


def parse_proof_document(data: bytes) -> Dict[str, Any]:
    """
    Decode a proof document into a JSON object with an integer format_version.

    The payload is not schema-checked here; see load_proof().

    Raises:
        MalformedProofError: If the bytes are not a JSON object with a
            non-negative integer format_version
    """
    try:
        document = json.loads(data.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise MalformedProofError(f"Proof is not valid UTF-8: {e}") from e
    except (ValueError, RecursionError) as e:
        raise MalformedProofError(f"Failed to parse proof JSON: {e}") from e

    if not isinstance(document, dict):
        raise MalformedProofError("Proof document must be a JSON object")

    version = document.get("format_version")
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        raise MalformedProofError(
            "Proof document must carry a non-negative integer format_version",
            {"format_version": version}
        )
    return document


def load_proof(document: Dict[str, Any]) -> Proof:
    """
    Validate a decoded document against the Proof schema.

    Explicit nulls for optional payload fields are treated as absent.

    Raises:
        MalformedProofError: If the document does not match the schema
    """
    try:
        return Proof.model_validate(document)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise MalformedProofError(
            f"Proof document does not match format version {document.get('format_version')}: "
            + "; ".join(problems),
            {"errors": problems}
        ) from e


def _decode_fixed_hex(value: str, name: str, hex_length: int) -> bytes:
    """Decode lowercase hex of an exact length, before any cryptography runs."""
    if len(value) != hex_length:
        raise SignatureInvalidError(
            f"{name} must be {hex_length // 2} bytes ({hex_length} hex characters), "
            f"got {len(value)} characters",
            {"field": name, "expected": hex_length, "actual": len(value)}
        )
    if not LOWER_HEX_PATTERN.match(value):
        raise SignatureInvalidError(
            f"{name} must be lowercase hexadecimal",
            {"field": name}
        )
    return bytes.fromhex(value)


def verify_proof_signature(proof: Proof) -> None:
    """
    Verify the detached signature over the canonical payload encoding.

    Raises:
        SignatureInvalidError: On bad lengths, bad encoding, or mismatch
    """
    public_key = _decode_fixed_hex(proof.public_key, "public_key", PUBLIC_KEY_HEX_LENGTH)
    signature = _decode_fixed_hex(proof.signature, "signature", SIGNATURE_HEX_LENGTH)

    try:
        message = canonicalize_payload(proof.payload)
    except SerializationError as e:
        raise SignatureInvalidError(f"Cannot re-serialize payload: {e.message}") from e

    try:
        VerifyKey(public_key).verify(message, signature)
    except CryptoError as e:
        raise SignatureInvalidError("Signature verification failed") from e


class ProofVerifier:
    """
    Runs the verification pipeline over one proof document.

    Each completed stage is reported to the optional on_stage callback as it
    finishes, so a caller can print progress live.
    """

    def __init__(
        self,
        options: Optional[VerificationOptions] = None,
        on_stage: Optional[Callable[[StageResult], None]] = None
    ):
        self.options = options or VerificationOptions()
        self.on_stage = on_stage

    def verify_file(self, path: PathLike) -> VerificationResult:
        """Verify the proof document stored at path."""
        logger.debug("Verifying proof document %s", path)
        stages: List[StageResult] = []
        max_bytes = self.options.max_proof_bytes
        try:
            data = self._run_stage(stages, Stage.PARSE, lambda: read_proof_bytes(path, max_bytes), report=False)
        except _StageFailed as failure:
            return self._reject(stages, failure, None)
        return self._verify(data, stages)

    def verify_bytes(self, data: bytes) -> VerificationResult:
        """Verify an in-memory proof document."""
        stages: List[StageResult] = []
        if len(data) > self.options.max_proof_bytes:
            error = MalformedProofError(
                f"Proof exceeds maximum size of {self.options.max_proof_bytes} bytes",
                {"max_bytes": self.options.max_proof_bytes}
            )
            return self._reject(stages, self._fail(stages, Stage.PARSE, error), None)
        return self._verify(data, stages)

    def _verify(self, data: bytes, stages: List[StageResult]) -> VerificationResult:
        opts = self.options
        proof: Optional[Proof] = None

        try:
            # Stage 1: parse
            document = self._run_stage(stages, Stage.PARSE, lambda: parse_proof_document(data), report=False)
            version = document["format_version"]
            if version in config.SUPPORTED_FORMAT_VERSIONS:
                proof = self._run_stage(stages, Stage.PARSE, lambda: load_proof(document), report=False)
            self._record(stages, Stage.PARSE, StageStatus.PASSED, f"format_version {version}")

            # Stage 2: format
            self._run_stage(stages, Stage.FORMAT, lambda: self._check_format(version),
                            message=f"version {version} supported")

            # Stage 3: signature
            self._run_stage(stages, Stage.SIGNATURE, lambda: verify_proof_signature(proof),
                            message="signature valid")

            # Stage 4: trusted key
            if opts.trusted_keys is None:
                self._record(stages, Stage.TRUSTED_KEY, StageStatus.SKIPPED,
                             "no trusted-keys source supplied; any signing key accepted")
            else:
                self._run_stage(stages, Stage.TRUSTED_KEY, lambda: self._check_trusted_key(proof),
                                message="public key is trusted")

            # Stage 5: commit
            if opts.skip_commit_check:
                self._record(stages, Stage.COMMIT, StageStatus.SKIPPED, "commit check skipped")
            elif not opts.expected_commit:
                self._record(stages, Stage.COMMIT, StageStatus.WARNING,
                             f"no expected commit provided (set {config.COMMIT_ENV_VAR} "
                             "or pass an expected commit); commit not checked")
            else:
                self._run_stage(stages, Stage.COMMIT, lambda: self._check_commit(proof),
                                message=f"commit {proof.payload.commit} matches")

            # Stage 6: lock file
            lock_file = Path(opts.lock_file if opts.lock_file is not None else config.DEFAULT_LOCK_FILE)
            if opts.skip_flake_lock_check:
                self._record(stages, Stage.LOCK_FILE, StageStatus.SKIPPED, "lock file check skipped")
            elif not lock_file.exists():
                self._record(stages, Stage.LOCK_FILE, StageStatus.WARNING,
                             f"lock file not found at {lock_file}; lock hash not checked")
            else:
                self._run_stage(stages, Stage.LOCK_FILE, lambda: self._check_lock_file(proof, lock_file),
                                message=f"{lock_file} hash matches")

        except _StageFailed as failure:
            return self._reject(stages, failure, proof)

        result = VerificationResult(
            outcome=VerificationOutcome.ACCEPTED,
            stages=stages,
            proof=proof,
        )
        audit_log.verification_result(outcome=result.outcome.value, warnings=result.warnings)
        return result

    # ------------------------------------------------------------
    # Stage checks
    # ------------------------------------------------------------

    def _check_format(self, version: int) -> None:
        if version not in config.SUPPORTED_FORMAT_VERSIONS:
            raise UnsupportedVersionError(
                f"Unsupported proof format version: {version}",
                {"format_version": version, "supported": sorted(config.SUPPORTED_FORMAT_VERSIONS)}
            )

    def _check_trusted_key(self, proof: Proof) -> None:
        trusted = self.options.trusted_keys
        if not isinstance(trusted, TrustedKeySet):
            trusted = TrustedKeySet.from_file(trusted)
        if proof.public_key not in trusted:
            audit_log.security_event("untrusted_signing_key", severity="high", public_key=proof.public_key)
            raise UntrustedKeyError(
                "Public key not in trusted keys list",
                {"public_key": proof.public_key, "trusted_key_count": len(trusted)}
            )

    def _check_commit(self, proof: Proof) -> None:
        expected = self.options.expected_commit
        if proof.payload.commit != expected:
            raise CommitMismatchError(
                f"Commit mismatch: expected {expected}, got {proof.payload.commit}",
                {"expected": expected, "actual": proof.payload.commit}
            )

    def _check_lock_file(self, proof: Proof, lock_file: Path) -> None:
        computed = sha256_file(lock_file)
        if computed != proof.payload.flake_lock_hash:
            raise LockHashMismatchError(
                f"{lock_file.name} hash mismatch: expected {proof.payload.flake_lock_hash}, "
                f"computed {computed}",
                {"path": str(lock_file), "expected": proof.payload.flake_lock_hash, "computed": computed}
            )

    # ------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------

    def _record(self, stages: List[StageResult], stage: Stage, status: StageStatus, message: str = "") -> StageResult:
        result = StageResult(stage=stage, status=status, message=message)
        stages.append(result)
        audit_log.verification_stage(stage.value, status.value, message)
        if self.on_stage is not None:
            self.on_stage(result)
        return result

    def _fail(self, stages: List[StageResult], stage: Stage, error: BuildProofError) -> _StageFailed:
        self._record(stages, stage, StageStatus.FAILED, error.message)
        return _StageFailed(stage, error)

    def _run_stage(
        self,
        stages: List[StageResult],
        stage: Stage,
        check: Callable[[], Any],
        message: str = "",
        report: bool = True
    ) -> Any:
        """Run one check; record PASSED unless report is False, or FAILED on error."""
        try:
            value = check()
        except (VerificationError, IoError) as e:
            raise self._fail(stages, stage, e) from e
        if report:
            self._record(stages, stage, StageStatus.PASSED, message)
        return value

    def _reject(self, stages: List[StageResult], failure: _StageFailed, proof: Optional[Proof]) -> VerificationResult:
        result = VerificationResult(
            outcome=VerificationOutcome.REJECTED,
            stages=stages,
            proof=proof,
            error=failure.error,
            failed_stage=failure.stage,
        )
        audit_log.verification_result(
            outcome=result.outcome.value,
            failed_stage=failure.stage.value,
            reason=failure.error.message,
            warnings=result.warnings,
        )
        return result


def verify_proof(
    path: PathLike,
    expected_commit: Optional[str] = None,
    lock_file: Optional[PathLike] = None,
    trusted_keys: Optional[Union[TrustedKeySet, PathLike]] = None,
    skip_commit_check: bool = False,
    skip_flake_lock_check: bool = False,
    on_stage: Optional[Callable[[StageResult], None]] = None
) -> VerificationResult:
    """
    Convenience function to verify a proof document on disk.

    Returns:
        VerificationResult; ACCEPTED, or REJECTED with the first failing
        stage and its error
    """
    options = VerificationOptions(
        expected_commit=expected_commit,
        lock_file=lock_file,
        trusted_keys=trusted_keys,
        skip_commit_check=skip_commit_check,
        skip_flake_lock_check=skip_flake_lock_check,
    )
    return ProofVerifier(options, on_stage=on_stage).verify_file(path)
