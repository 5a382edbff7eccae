import re
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from buildproof import (
    Payload,
    PayloadValidationError,
    build_payload,
    generate_nonce,
    parse_timestamp,
    utc_timestamp,
)

from conftest import FIXED_NOW, SCENARIO_FACTS, make_payload

TIMESTAMP_RE = re.compile(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$')


def test_nonce_is_128_bit_hex():
    nonce = generate_nonce()
    assert len(nonce) == 32
    assert re.fullmatch(r'[0-9a-f]{32}', nonce)


def test_nonces_unique_within_same_tick():
    payloads = [build_payload(**SCENARIO_FACTS, now=FIXED_NOW) for _ in range(50)]
    assert len({p.timestamp for p in payloads}) == 1
    assert len({p.nonce for p in payloads}) == 50


def test_timestamp_format_fixed_width():
    ts = utc_timestamp()
    assert TIMESTAMP_RE.match(ts)
    assert len(ts) == 20


def test_timestamp_uses_real_calendar():
    # Leap day and end-of-year dates that a days/365 approximation gets wrong
    assert utc_timestamp(datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc)) == "2024-02-29T23:59:59Z"
    assert utc_timestamp(datetime(2025, 12, 31, 0, 0, 0, tzinfo=timezone.utc)) == "2025-12-31T00:00:00Z"


def test_timestamp_converts_to_utc():
    plus_two = timezone(timedelta(hours=2))
    assert utc_timestamp(datetime(2026, 1, 14, 14, 0, 0, tzinfo=plus_two)) == "2026-01-14T12:00:00Z"


def test_timestamp_round_trips_and_sorts():
    earlier = utc_timestamp(FIXED_NOW)
    later = utc_timestamp(FIXED_NOW + timedelta(seconds=1))
    assert earlier < later
    assert parse_timestamp(earlier) == FIXED_NOW


def test_build_payload_fields():
    payload = build_payload(**SCENARIO_FACTS, drv_hash="drv", now=FIXED_NOW)
    assert payload.commit == "abc123"
    assert payload.flake_lock_hash == "deadbeef"
    assert payload.artifact_tar_hash == "cafebabe"
    assert payload.build_command == "build all"
    assert payload.drv_hash == "drv"
    assert payload.build_log_hash is None
    assert payload.timestamp == "2026-01-14T12:00:00Z"


@pytest.mark.parametrize("field", ["commit", "flake_lock_hash", "build_command", "artifact_tar_hash"])
def test_build_payload_rejects_empty_required_fact(field):
    facts = dict(SCENARIO_FACTS, **{field: ""})
    with pytest.raises(PayloadValidationError) as exc:
        build_payload(**facts)
    assert field in exc.value.details["fields"]


def test_payload_is_immutable():
    payload = make_payload()
    with pytest.raises(ValidationError):
        payload.commit = "other"


def test_payload_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        Payload(**make_payload().model_dump(), extra_field="x")


def test_payload_rejects_non_string_values():
    fields = make_payload().model_dump()
    fields["commit"] = 123
    with pytest.raises(ValidationError):
        Payload(**fields)
