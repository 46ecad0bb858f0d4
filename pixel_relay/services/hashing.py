"""SHA-256 hashing of user-matching PII before it leaves the process."""

import hashlib


def hash_pii(value: str | None) -> str | None:
    """Return the SHA-256 hex digest of the lowercased, trimmed value, or None."""
    if not value:
        return None
    normalized = value.strip().lower()
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
