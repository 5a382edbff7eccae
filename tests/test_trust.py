from pathlib import Path

import pytest

from buildproof import IoError, TrustedKeySet, public_key_hex


def test_comments_and_blank_lines_ignored(signing_key):
    key = public_key_hex(signing_key)
    text = f"# release signing keys\n\n   {key}   \n# {'0' * 64}\n"
    trusted = TrustedKeySet.from_text(text)
    assert len(trusted) == 1
    assert key in trusted
    assert "0" * 64 not in trusted


def test_membership_is_exact(signing_key):
    key = public_key_hex(signing_key)
    trusted = TrustedKeySet([key])
    assert key.upper() not in trusted
    assert key[:-1] not in trusted
    assert key + " " not in trusted


def test_from_file(tmp_path: Path, signing_key, other_signing_key):
    p = tmp_path / "trusted_keys.txt"
    p.write_text(public_key_hex(signing_key) + "\n" + public_key_hex(other_signing_key) + "\n",
                 encoding="utf-8")
    trusted = TrustedKeySet.from_file(p)
    assert len(trusted) == 2
    assert list(trusted) == sorted([public_key_hex(signing_key), public_key_hex(other_signing_key)])


def test_malformed_entry_kept_and_warned(caplog):
    with caplog.at_level("WARNING", logger="buildproof.trust"):
        trusted = TrustedKeySet.from_text("not-a-key\n", source="keys.txt")
    assert "not-a-key" in trusted
    assert "keys.txt:1" in caplog.text


def test_missing_file_raises_io_error(tmp_path: Path):
    with pytest.raises(IoError):
        TrustedKeySet.from_file(tmp_path / "nope.txt")


def test_empty_set_trusts_nothing(signing_key):
    trusted = TrustedKeySet.from_text("# nothing here\n")
    assert len(trusted) == 0
    assert public_key_hex(signing_key) not in trusted
