"""
Certificate verification: recompute the integrity hash and compare.
"""
import hmac

from gdprcert.canonical import canonicalize, parse_canonical
from gdprcert.integrity import compute_integrity_hash, is_integrity_hash
from gdprcert.record import record_from_mapping


def verify_certificate(record, expected_hash):
    """
    Return True iff the record hashes to `expected_hash`.

    Hex case is not significant.  An expected hash that is not a 128-char
    hex string never matches.  Raises MalformedRecordError when the record
    is missing fields, so a broken record is never reported as a plain
    mismatch.
    """
    record = record_from_mapping(record)
    computed = compute_integrity_hash(canonicalize(record))

    if not is_integrity_hash(expected_hash):
        return False

    return hmac.compare_digest(computed, expected_hash.lower())


def verify_canonical(canonical, expected_hash):
    """Verify a certificate handed over as its canonical JSON string."""
    return verify_certificate(parse_canonical(canonical), expected_hash)
