"""Deterministic content digests used to skip redundant recomputation."""

import hashlib

# Hex characters kept from the SHA-256 digest.
HASH_LENGTH = 32


def content_hash(text: str) -> str:
    """Return a stable hex digest of *text*."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:HASH_LENGTH]
