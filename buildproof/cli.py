#!/usr/bin/env python3
"""
buildproof Command Line Interface

Usage:
    build-signer --commit <sha> --flake-lock-hash <hex> --artifact-tar-hash <hex>
                 --build-command <cmd> --private-key <file> --out <file>
    build-verifier <proof.json> [--expected-commit <sha>] [--flake-lock <file>]
                   [--trusted-keys <file>] [--skip-commit-check] [--skip-flake-lock-check]

    buildproof sign|verify|keygen|pubkey|hash ...
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import config
from .errors import BuildProofError
from .logging_config import configure_logging, set_run_id

STAGE_LABELS = {
    "parse": "📋 Parsing proof",
    "format": "📄 Checking format version",
    "signature": "🔐 Verifying signature",
    "trusted_key": "🔑 Checking trusted keys",
    "commit": "📝 Verifying commit SHA",
    "lock_file": "🔒 Verifying lock file hash",
}

STATUS_MARKS = {
    "passed": "✓",
    "skipped": "-",
    "warning": "⚠️ ",
    "failed": "✗",
}


def _fail(error: BuildProofError, where: str) -> int:
    print(f"✗ {where}: {error.message}", file=sys.stderr)
    return 1


def cmd_sign(args) -> int:
    """Sign build facts and write a proof document."""
    from .signing import sign_build

    try:
        proof = sign_build(
            private_key=args.private_key,
            out=args.out,
            commit=args.commit,
            flake_lock_hash=args.flake_lock_hash,
            artifact_tar_hash=args.artifact_tar_hash,
            build_command=args.build_command,
            drv_hash=args.drv_hash,
            build_log_hash=args.build_log_hash,
        )
    except BuildProofError as e:
        return _fail(e, type(e).__name__)

    print(f"✓ Proof generated successfully: {args.out}")
    print(f"  Commit: {proof.payload.commit}")
    print(f"  Artifact hash: {proof.payload.artifact_tar_hash}")
    print(f"  Public key: {proof.public_key}")
    return 0


def _print_stage(result) -> None:
    label = STAGE_LABELS.get(result.stage.value, result.stage.value)
    mark = STATUS_MARKS[result.status.value]
    line = f"{label}... {mark}"
    if result.message and result.status.value != "passed":
        line += f" {result.message}"
    stream = sys.stderr if result.status.value == "failed" else sys.stdout
    print(line, file=stream)


def cmd_verify(args) -> int:
    """Verify a proof document."""
    from .verifier import ProofVerifier, VerificationOptions

    # The ambient commit is resolved here, never inside the pipeline.
    expected_commit = args.expected_commit
    if expected_commit is None:
        expected_commit = config.ambient_expected_commit()

    options = VerificationOptions(
        expected_commit=expected_commit,
        lock_file=args.flake_lock,
        trusted_keys=args.trusted_keys,
        skip_commit_check=args.skip_commit_check,
        skip_flake_lock_check=args.skip_flake_lock_check,
    )

    print(f"📋 Verifying build proof {args.proof_file}...")
    result = ProofVerifier(options, on_stage=_print_stage).verify_file(args.proof_file)

    if not result.accepted:
        print(f"\n✗ Verification failed at stage '{result.failed_stage.value}' "
              f"({type(result.error).__name__}): {result.reason}", file=sys.stderr)
        return 1

    payload = result.proof.payload
    print("\n✅ Verification successful!")
    print(f"  Commit: {payload.commit}")
    print(f"  Artifact hash: {payload.artifact_tar_hash}")
    print(f"  Build command: {payload.build_command}")
    print(f"  Timestamp: {payload.timestamp}")
    print(f"  Public key: {result.proof.public_key}")
    for warning in result.warnings:
        print(f"  ⚠️  {warning}")
    return 0


def cmd_keygen(args) -> int:
    """Generate an Ed25519 signing key."""
    from .signing import generate_signing_key, public_key_hex, write_private_key

    out = Path(args.out)
    if out.exists() and not args.force:
        print(f"✗ Refusing to overwrite existing key file: {out} (use --force)", file=sys.stderr)
        return 1

    signing_key = generate_signing_key()
    try:
        write_private_key(signing_key, out)
        if args.public_out:
            Path(args.public_out).write_text(public_key_hex(signing_key) + "\n", encoding="utf-8")
    except BuildProofError as e:
        return _fail(e, "keygen")
    except OSError as e:
        print(f"✗ keygen: failed to write public key file: {args.public_out}: {e.strerror or e}",
              file=sys.stderr)
        return 1

    print(f"Private key saved to: {out}", file=sys.stderr)
    print(public_key_hex(signing_key))
    return 0


def cmd_pubkey(args) -> int:
    """Print the public key for a private key file."""
    from .signing import load_signing_key, public_key_hex

    try:
        signing_key = load_signing_key(args.private_key)
    except BuildProofError as e:
        return _fail(e, type(e).__name__)
    print(public_key_hex(signing_key))
    return 0


def cmd_hash(args) -> int:
    """Print the SHA-256 digest of a file."""
    from .hashing import sha256_file

    try:
        print(sha256_file(args.file))
    except BuildProofError as e:
        return _fail(e, "hash")
    return 0


# ============================================================
# Parsers
# ============================================================

def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level (default: %(default)s)")
    parser.add_argument("--log-json", action="store_true", default=config.LOG_JSON,
                        help="Emit structured JSON logs on stderr")


def _add_sign_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--commit", required=True, help="Git commit SHA")
    parser.add_argument("--flake-lock-hash", required=True, help="SHA256 hash of flake.lock")
    parser.add_argument("--artifact-tar-hash", required=True,
                        help="SHA256 hash of the deterministic artifact tarball")
    parser.add_argument("--build-command", required=True, help="Build command that was executed")
    parser.add_argument("--drv-hash", help="Nix derivation hash")
    parser.add_argument("--build-log-hash", help="SHA256 hash of build log")
    parser.add_argument("--private-key", required=True, help="Path to Ed25519 private key file (32 bytes)")
    parser.add_argument("--out", required=True, help="Output path for proof.json")
    _add_logging_args(parser)


def _add_verify_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("proof_file", help="Path to proof.json file")
    parser.add_argument("--expected-commit",
                        help=f"Expected git commit SHA (default: ${config.COMMIT_ENV_VAR})")
    parser.add_argument("--flake-lock", default=config.DEFAULT_LOCK_FILE,
                        help="Path to flake.lock to verify hash (default: %(default)s)")
    parser.add_argument("--trusted-keys",
                        help="File of trusted public keys, one hex key per line; "
                             "if omitted, any signing key is accepted")
    parser.add_argument("--skip-commit-check", action="store_true", help="Skip commit verification")
    parser.add_argument("--skip-flake-lock-check", action="store_true",
                        help="Skip flake.lock hash verification")
    _add_logging_args(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="buildproof",
        description="Sign and verify reproducible build attestations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  buildproof keygen -o signing.key
  buildproof sign --commit abc123 --flake-lock-hash <hex> --artifact-tar-hash <hex> \\
                  --build-command "nix build" --private-key signing.key --out proof.json
  buildproof verify proof.json --trusted-keys trusted_keys.txt
  buildproof hash flake.lock
        """
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    _add_sign_args(subparsers.add_parser("sign", help="Sign build facts"))
    _add_verify_args(subparsers.add_parser("verify", help="Verify a proof document"))

    keygen_parser = subparsers.add_parser("keygen", help="Generate an Ed25519 signing key")
    keygen_parser.add_argument("-o", "--out", required=True, help="Output file for the raw private key")
    keygen_parser.add_argument("-p", "--public-out", help="Also write the hex public key to this file")
    keygen_parser.add_argument("-f", "--force", action="store_true", help="Overwrite an existing key file")
    _add_logging_args(keygen_parser)

    pubkey_parser = subparsers.add_parser("pubkey", help="Print the public key of a private key file")
    pubkey_parser.add_argument("--private-key", required=True, help="Path to Ed25519 private key file")
    _add_logging_args(pubkey_parser)

    hash_parser = subparsers.add_parser("hash", help="Print the SHA-256 digest of a file")
    hash_parser.add_argument("file", help="File to hash")
    _add_logging_args(hash_parser)

    return parser


COMMANDS = {
    "sign": cmd_sign,
    "verify": cmd_verify,
    "keygen": cmd_keygen,
    "pubkey": cmd_pubkey,
    "hash": cmd_hash,
}


def _run(command: str, args) -> int:
    configure_logging(level=args.log_level, json_format=args.log_json)
    set_run_id()
    return COMMANDS[command](args)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2
    return _run(args.command, args)


def signer_main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="build-signer", description="Sign Nix build artifacts for verification")
    _add_sign_args(parser)
    return _run("sign", parser.parse_args(argv))


def verifier_main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="build-verifier", description="Verify signed Nix build artifacts")
    _add_verify_args(parser)
    return _run("verify", parser.parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
