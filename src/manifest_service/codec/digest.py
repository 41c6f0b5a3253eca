"""Content digest helpers (sha256 only)."""
from __future__ import annotations

import hashlib
import re

_DIGEST_RE = re.compile(r"^sha256:[a-f0-9]{64}$")

__all__ = ["digest_from_bytes", "validate_digest", "is_digest"]


def digest_from_bytes(data: bytes) -> str:
    """Return the ``sha256:<hex>`` digest of ``data``."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def is_digest(value: str) -> bool:
    return bool(value) and bool(_DIGEST_RE.match(value))


def validate_digest(value: str) -> str:
    """
    Check that ``value`` is a well-formed sha256 digest.

    Raises:
        ValueError: If the digest is malformed
    """
    if not isinstance(value, str) or not _DIGEST_RE.match(value):
        raise ValueError(f"Invalid digest format: {value!r}")
    return value
