"""Content hashing for content-addressed export.

Hashes are IPFS CIDv1 identifiers over the raw bytes: raw codec, sha2-256
multihash, base32 multibase. Identical bytes always produce the same id.
"""

import base64
import hashlib
from typing import Mapping

CID_VERSION = 0x01
RAW_CODEC = 0x55
SHA2_256 = 0x12
SHA2_256_LENGTH = 0x20
BASE32_PREFIX = "b"


def content_hash(data: bytes) -> str:
    """Return the CIDv1 (``bafkrei...``) of a byte sequence."""
    digest = hashlib.sha256(data).digest()
    cid = bytes([CID_VERSION, RAW_CODEC, SHA2_256, SHA2_256_LENGTH]) + digest
    encoded = base64.b32encode(cid).decode("ascii").lower().rstrip("=")
    return BASE32_PREFIX + encoded


def hash_text(text: str) -> str:
    """Hash the UTF-8 bytes of a text file."""
    return content_hash(text.encode("utf-8"))


def fileset_fingerprint(*filesets: Mapping[str, str] | None) -> str:
    """Order-independent fingerprint of one or more file sets.

    Used as the cache key for exports; ``None`` (no built files) and an
    empty mapping fingerprint differently.
    """
    hasher = hashlib.sha256()
    for files in filesets:
        if files is None:
            hasher.update(b"\x00none\x00")
            continue
        hasher.update(b"\x00set\x00")
        for path in sorted(files):
            hasher.update(path.encode("utf-8"))
            hasher.update(b"\x00")
            hasher.update(hashlib.sha256(files[path].encode("utf-8")).digest())
    return hasher.hexdigest()
