import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from nacl.signing import SigningKey

from buildproof import Payload, sign_payload, write_proof

# Fixed seed so public keys are stable across runs
KNOWN_SEED = bytes(range(32))
OTHER_SEED = bytes(range(32, 64))

SCENARIO_FACTS = {
    "commit": "abc123",
    "flake_lock_hash": "deadbeef",
    "artifact_tar_hash": "cafebabe",
    "build_command": "build all",
}


def make_payload(**overrides) -> Payload:
    fields = dict(SCENARIO_FACTS)
    fields.update({
        "timestamp": "2026-01-14T12:00:00Z",
        "nonce": "00112233445566778899aabbccddeeff",
    })
    fields.update(overrides)
    return Payload(**fields)


@pytest.fixture
def signing_key() -> SigningKey:
    return SigningKey(KNOWN_SEED)


@pytest.fixture
def other_signing_key() -> SigningKey:
    return SigningKey(OTHER_SEED)


@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    p = tmp_path / "signing.key"
    p.write_bytes(KNOWN_SEED)
    return p


@pytest.fixture
def proof_file(tmp_path: Path, signing_key: SigningKey) -> Path:
    """A proof signed over the scenario facts."""
    out = tmp_path / "proof.json"
    write_proof(sign_payload(signing_key, make_payload()), out)
    return out


def load_document(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def save_document(document: dict, path: Path) -> Path:
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return path


FIXED_NOW = datetime(2026, 1, 14, 12, 0, 0, tzinfo=timezone.utc)
