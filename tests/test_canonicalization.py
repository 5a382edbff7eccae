"""
Canonical payload encoding vectors.

The signature covers these bytes, so any drift here breaks every existing
proof.
"""

import json
import unittest

from buildproof import PAYLOAD_FIELDS, Payload, canonicalize_payload, canonicalize_payload_str
from buildproof.errors import SerializationError

from conftest import make_payload


class TestCanonicalEncoding(unittest.TestCase):

    def test_known_vector(self):
        """Compact JSON, fixed field order, optional fields omitted."""
        expected = (
            '{"commit":"abc123","flake_lock_hash":"deadbeef","build_command":"build all",'
            '"artifact_tar_hash":"cafebabe","timestamp":"2026-01-14T12:00:00Z",'
            '"nonce":"00112233445566778899aabbccddeeff"}'
        )
        self.assertEqual(canonicalize_payload_str(make_payload()), expected)

    def test_optional_fields_in_position(self):
        payload = make_payload(drv_hash="d1", build_log_hash="l1")
        keys = list(json.loads(canonicalize_payload(payload)).keys())
        self.assertEqual(keys, list(PAYLOAD_FIELDS))

    def test_field_order_is_not_sorted(self):
        keys = list(json.loads(canonicalize_payload(make_payload())).keys())
        self.assertNotEqual(keys, sorted(keys))
        self.assertEqual(keys[0], "commit")
        self.assertEqual(keys[-1], "nonce")

    def test_identical_payloads_identical_bytes(self):
        a = make_payload(drv_hash="d1")
        b = make_payload(drv_hash="d1")
        self.assertEqual(canonicalize_payload(a), canonicalize_payload(b))

    def test_nonce_difference_changes_bytes(self):
        a = make_payload(nonce="aa" * 16)
        b = make_payload(nonce="bb" * 16)
        self.assertNotEqual(canonicalize_payload(a), canonicalize_payload(b))

    def test_every_field_change_changes_bytes(self):
        base = canonicalize_payload(make_payload(drv_hash="d1", build_log_hash="l1"))
        for name in PAYLOAD_FIELDS:
            with self.subTest(field=name):
                changed = make_payload(**{"drv_hash": "d1", "build_log_hash": "l1", name: "other-value"})
                self.assertNotEqual(canonicalize_payload(changed), base)

    def test_absent_optional_differs_from_empty(self):
        absent = canonicalize_payload(make_payload())
        empty = canonicalize_payload(make_payload(drv_hash=""))
        self.assertNotEqual(absent, empty)
        self.assertNotIn(b"drv_hash", absent)
        self.assertIn(b'"drv_hash":""', empty)

    def test_optional_fields_not_interchangeable(self):
        drv = canonicalize_payload(make_payload(drv_hash="x"))
        log = canonicalize_payload(make_payload(build_log_hash="x"))
        self.assertNotEqual(drv, log)

    def test_no_null_emitted(self):
        self.assertNotIn(b"null", canonicalize_payload(make_payload()))

    def test_non_ascii_emitted_as_utf8(self):
        payload = make_payload(build_command="nix build .#café")
        encoded = canonicalize_payload(payload)
        self.assertIn("café".encode("utf-8"), encoded)
        self.assertNotIn(b"\\u00e9", encoded)

    def test_escaping_keeps_fields_apart(self):
        """A quote inside a value cannot forge another field."""
        tricky = make_payload(build_command='x","drv_hash":"forged')
        plain = make_payload(build_command="x", drv_hash="forged")
        self.assertNotEqual(canonicalize_payload(tricky), canonicalize_payload(plain))

    def test_unencodable_value_raises(self):
        fields = make_payload().model_dump()
        fields["build_command"] = "bad \ud800 surrogate"
        payload = Payload.model_construct(**fields)
        with self.assertRaises(SerializationError):
            canonicalize_payload(payload)


if __name__ == "__main__":
    unittest.main()
