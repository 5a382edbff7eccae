"""
Configuration module for buildproof.

Centralizes configuration with environment variable support. Values are read
once at import time; the CLI resolves anything ambient (such as the current
commit) before handing it to the signer or verifier.
"""

import os
from typing import Optional

# ============================================================
# Environment Configuration
# ============================================================

# Proof format versions this verifier understands
FORMAT_VERSION = 1
SUPPORTED_FORMAT_VERSIONS = frozenset({FORMAT_VERSION})

# Upper bound on proof document size read by the verifier (bytes)
MAX_PROOF_BYTES = int(os.getenv("BUILDPROOF_MAX_PROOF_BYTES", str(1024 * 1024)))

# Lock file checked by the verifier, relative to the working directory
DEFAULT_LOCK_FILE = os.getenv("BUILDPROOF_LOCK_FILE", "flake.lock")

# Environment variable holding the ambient "current commit"
COMMIT_ENV_VAR = os.getenv("BUILDPROOF_COMMIT_ENV", "GITHUB_SHA")

# Logging
LOG_LEVEL = os.getenv("BUILDPROOF_LOG_LEVEL", "WARNING")
LOG_JSON = os.getenv("BUILDPROOF_LOG_JSON", "").lower() in ("1", "true", "yes")


# ============================================================
# Ambient lookups
# ============================================================

def ambient_expected_commit() -> Optional[str]:
    """
    Return the ambient environment's notion of the current commit.

    Empty values are treated as unset.
    """
    value = os.environ.get(COMMIT_ENV_VAR, "").strip()
    return value or None

