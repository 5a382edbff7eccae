"""
Trusted key set.

A plain-text allow-list of verification keys: one lowercase-hex public key
per line, blank lines and lines starting with '#' ignored. Membership is an
exact match on the canonical textual encoding.
"""

import logging
import re
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, Union

from .errors import IoError

logger = logging.getLogger(__name__)

PUBLIC_KEY_PATTERN = re.compile(r'^[0-9a-f]{64}$')


class TrustedKeySet:
    """An immutable set of trusted public keys."""

    def __init__(self, keys: Iterable[str] = ()):
        self._keys: FrozenSet[str] = frozenset(keys)

    @classmethod
    def from_lines(cls, lines: Iterable[str], source: str = "<memory>") -> "TrustedKeySet":
        """Parse trusted keys from text lines."""
        keys = []
        for lineno, line in enumerate(lines, start=1):
            entry = line.strip()
            if not entry or entry.startswith("#"):
                continue
            if not PUBLIC_KEY_PATTERN.match(entry):
                # Kept as-is; it can never match a well-formed proof key.
                logger.warning("%s:%d: entry is not a 64-character lowercase hex key", source, lineno)
            keys.append(entry)
        return cls(keys)

    @classmethod
    def from_text(cls, text: str, source: str = "<memory>") -> "TrustedKeySet":
        return cls.from_lines(text.splitlines(), source=source)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TrustedKeySet":
        """
        Load trusted keys from a file.

        Raises:
            IoError: If the file cannot be read or decoded
        """
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            reason = getattr(e, "strerror", None) or e
            raise IoError(f"Failed to read trusted keys file: {p}: {reason}", path=p) from e
        key_set = cls.from_text(text, source=str(p))
        logger.debug("Loaded %d trusted keys from %s", len(key_set), p)
        return key_set

    def __contains__(self, public_key: object) -> bool:
        return public_key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._keys))

    def __repr__(self) -> str:
        return f"TrustedKeySet({len(self._keys)} keys)"
