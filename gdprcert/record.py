"""
Certificate records and the assembler that builds them.

A record holds exactly seven fields.  It lives only for the duration of one
generation or verification request; the personal fields (user, exam) are
never persisted.
"""
import secrets
import time
from dataclasses import dataclass, asdict

from gdprcert.config import SCHEME_VERSION, ISSUER, INTEGRITY_ALGORITHM, NONCE_BYTES
from gdprcert.errors import ValidationError, MalformedRecordError


# Field names in code-point order.  This is the canonical key order.
CANONICAL_FIELDS = (
    "exam",
    "integrity",
    "issuer",
    "nonce",
    "timestamp",
    "user",
    "version",
)

_TEXT_FIELDS = ("exam", "integrity", "issuer", "nonce", "user", "version")

# Characters removed when trimming user input.  Same set as
# String.prototype.trim: keeps \x1c-\x1f and \x85, removes U+FEFF.
TRIM_CHARS = (
    "\t\n\v\f\r \u00a0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000\ufeff"
)


@dataclass(frozen=True)
class CertificateRecord:
    user: str
    exam: str
    timestamp: int
    nonce: str
    version: str = SCHEME_VERSION
    issuer: str = ISSUER
    integrity: str = INTEGRITY_ALGORITHM

    def __post_init__(self):
        missing = [name for name in CANONICAL_FIELDS if getattr(self, name) is None]
        if missing:
            raise MalformedRecordError(f"Certificate record is missing fields: {', '.join(missing)}")

        for name in _TEXT_FIELDS:
            if not isinstance(getattr(self, name), str):
                raise MalformedRecordError(f"Field '{name}' must be a string")

        if not _is_int(self.timestamp):
            raise MalformedRecordError("Field 'timestamp' must be an integer millisecond count")

    def to_dict(self):
        return asdict(self)


def _is_int(value):
    # bool is an int subclass but would serialize as true/false
    return isinstance(value, int) and not isinstance(value, bool)


def record_from_mapping(data):
    """
    Rebuild a record from untrusted data (a decoded QR payload, a JSON body).

    Every one of the seven fields must be present with the right type, and
    no other keys are allowed.  Values are taken as-is: nothing is trimmed,
    since verification must hash exactly what was issued.

    Raises MalformedRecordError otherwise.
    """
    if isinstance(data, CertificateRecord):
        return data
    if not hasattr(data, "keys"):
        raise MalformedRecordError(
            f"Certificate record must be an object, got {type(data).__name__}"
        )

    missing = [f for f in CANONICAL_FIELDS if f not in data or data[f] is None]
    if missing:
        raise MalformedRecordError(f"Certificate record is missing fields: {', '.join(missing)}")

    extra = sorted(str(k) for k in data.keys() if k not in CANONICAL_FIELDS)
    if extra:
        raise MalformedRecordError(f"Certificate record has unknown fields: {', '.join(extra)}")

    # field types are checked by CertificateRecord itself
    return CertificateRecord(**{name: data[name] for name in CANONICAL_FIELDS})


# ─────────────────────────────────────────────────────────────
# Injectable sources of time and randomness
# ─────────────────────────────────────────────────────────────

def now_ms():
    """Current time in whole milliseconds since the epoch."""
    return int(time.time() * 1000)


def secure_nonce():
    """16 bytes from the OS CSPRNG, hex encoded."""
    return secrets.token_hex(NONCE_BYTES)


def assemble_certificate(user, exam, timestamp=None, nonce=None,
                         clock=now_ms, nonce_source=secure_nonce):
    """
    Build the record that gets canonicalized and hashed.

    user, exam:    required, trimmed before use
    timestamp:     integer ms since epoch; clock() when omitted
    nonce:         hex string; nonce_source() when omitted
    clock:         callable returning integer ms (tests pass a fixed one)
    nonce_source:  callable returning a nonce string (tests pass a fixed one)

    Raises ValidationError when user or exam is empty after trimming, or
    when an explicit timestamp/nonce has the wrong type.
    """
    if not isinstance(user, str) or not user.strip(TRIM_CHARS):
        raise ValidationError("User name is required")
    if not isinstance(exam, str) or not exam.strip(TRIM_CHARS):
        raise ValidationError("Exam name is required")

    if timestamp is None:
        timestamp = clock()
    if not _is_int(timestamp):
        raise ValidationError("Timestamp must be an integer millisecond count")

    if nonce is None:
        nonce = nonce_source()
    if not isinstance(nonce, str) or not nonce:
        raise ValidationError("Nonce must be a non-empty string")

    return CertificateRecord(
        user=user.strip(TRIM_CHARS),
        exam=exam.strip(TRIM_CHARS),
        timestamp=timestamp,
        nonce=nonce,
    )
