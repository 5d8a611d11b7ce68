"""
Canonical JSON form of a certificate record.

The canonical string is the hash input, so it must be byte-identical
wherever it is produced: keys in code-point order, no whitespace between
tokens, standard JSON string escaping, non-ASCII characters left as-is.
"""
import json

from gdprcert.errors import MalformedRecordError
from gdprcert.record import CANONICAL_FIELDS, record_from_mapping


def canonicalize(record):
    """
    Serialize a record (CertificateRecord or plain mapping) to its canonical
    JSON string.

    Raises MalformedRecordError if a mapping is missing fields.
    """
    record = record_from_mapping(record)

    ordered = {}
    for name in CANONICAL_FIELDS:
        ordered[name] = getattr(record, name)

    return json.dumps(ordered, ensure_ascii=False, separators=(",", ":"))


def _reject_duplicate_keys(pairs):
    obj = {}
    for key, value in pairs:
        if key in obj:
            raise MalformedRecordError(f"Duplicate field '{key}' in canonical JSON")
        obj[key] = value
    return obj


def parse_canonical(text):
    """
    Parse a canonical string (e.g. read back from a QR payload) into a record.

    The text only has to be valid JSON holding the seven fields; key order
    and spacing are not checked because the verifier re-canonicalizes.
    """
    if not isinstance(text, str):
        raise MalformedRecordError("Canonical form must be a string")
    try:
        data = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
    except ValueError as e:
        raise MalformedRecordError(f"Canonical form is not valid JSON: {e}")

    return record_from_mapping(data)
