"""Tests for content hashing and file-set fingerprints."""

from scenelab.services.hashing import content_hash, fileset_fingerprint, hash_text

EMPTY_RAW_CID = "bafkreihdwdcefgh4dqkjv67uzcmw7ojee6xedzdetojuzjevtenxquvyku"


def test_empty_content_matches_known_cid():
    assert content_hash(b"") == EMPTY_RAW_CID


def test_hash_is_cidv1_raw_base32():
    cid = hash_text("export function main() {}")
    assert cid.startswith("bafkrei")
    assert len(cid) == 59
    assert cid == cid.lower()


def test_identical_bytes_hash_identically():
    assert hash_text("same") == content_hash("same".encode("utf-8"))
    assert hash_text("same") != hash_text("Same")


def test_fingerprint_ignores_key_order():
    a = {"scene.json": "{}", "src/index.ts": "x"}
    b = {"src/index.ts": "x", "scene.json": "{}"}
    assert fileset_fingerprint(a) == fileset_fingerprint(b)


def test_fingerprint_distinguishes_missing_from_empty_build():
    files = {"scene.json": "{}"}
    assert fileset_fingerprint(files, None) != fileset_fingerprint(files, {})


def test_fingerprint_changes_with_content():
    assert fileset_fingerprint({"a": "1"}) != fileset_fingerprint({"a": "2"})
    assert fileset_fingerprint({"a": "1"}) != fileset_fingerprint({"b": "1"})
