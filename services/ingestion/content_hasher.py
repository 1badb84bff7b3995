from __future__ import annotations
import hashlib


def compute_content_hash(content: bytes) -> str:
    """SHA-256 hex digest of the raw upload, used as the deduplication key."""
    if content is None:
        raise ValueError("content is required to compute a hash")

    return hashlib.sha256(content).hexdigest()
