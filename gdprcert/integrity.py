"""
SHA-512 integrity hash over a canonical string.
"""
import hashlib
import re

from gdprcert.config import HASH_HEX_LENGTH
from gdprcert.errors import EncodingError

_HASH_RE = re.compile(r"[0-9a-fA-F]{%d}" % HASH_HEX_LENGTH)


def compute_integrity_hash(canonical):
    """
    Hash the UTF-8 bytes of `canonical` with SHA-512.

    Returns 128 lowercase hex characters.  No key and no salt: the nonce
    inside the record already makes every certificate unique.
    """
    if not isinstance(canonical, str):
        raise EncodingError(f"Canonical form must be text, got {type(canonical).__name__}")
    try:
        data = canonical.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"Canonical form is not representable as UTF-8: {e.reason}")

    return hashlib.sha512(data).hexdigest()


def is_integrity_hash(value):
    """True if value looks like a SHA-512 hex digest (either case)."""
    return isinstance(value, str) and _HASH_RE.fullmatch(value) is not None
