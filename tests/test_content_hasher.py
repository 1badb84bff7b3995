import hashlib
import pytest
from services.ingestion.content_hasher import compute_content_hash


def test_hash_is_sha256_hex():
    content = b"%PDF-1.4 menu"
    assert compute_content_hash(content) == hashlib.sha256(content).hexdigest()
    assert len(compute_content_hash(content)) == 64


def test_hash_depends_only_on_bytes():
    assert compute_content_hash(b"a") == compute_content_hash(b"a")
    assert compute_content_hash(b"a") != compute_content_hash(b"b")


def test_none_is_rejected():
    with pytest.raises(ValueError):
        compute_content_hash(None)
