"""
Cryptographic utilities for certificate bookkeeping.

None of these values carry personal data; they are derived from the
integrity hash, the timestamp or fresh randomness and are what gets stored.
"""
import hashlib
import hmac
import re
import secrets

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(number):
    if number == 0:
        return "0"
    sign = "-" if number < 0 else ""
    number = abs(number)
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36_DIGITS[rem])
    return sign + "".join(reversed(digits))


def generate_certificate_id(integrity_hash, timestamp):
    """
    Build a human-readable certificate ID from the hash and timestamp.

    Format: CERT-AAAA-BBBB-CCCC-<base36 timestamp>-<4 char checksum>
    """
    hash_part = integrity_hash[:16].upper()
    time_part = _to_base36(timestamp).upper()
    checksum = hashlib.md5(f"{integrity_hash}{timestamp}".encode()).hexdigest()[:4].upper()

    return f"CERT-{hash_part[0:4]}-{hash_part[4:8]}-{hash_part[8:12]}-{time_part}-{checksum}"


def generate_serial_number():
    """12 random bytes, uppercase hex."""
    return secrets.token_hex(12).upper()


def generate_verification_code():
    """6 random bytes, uppercase hex."""
    return secrets.token_hex(6).upper()


def sign_certificate(certificate_id, integrity_hash, timestamp, secret_key):
    """
    HMAC-SHA512 over "<id>:<hash>:<timestamp>".

    Binds the stored bookkeeping row to the hash so a row edited in the
    database no longer verifies.
    """
    message = f"{certificate_id}:{integrity_hash}:{timestamp}"
    return hmac.new(secret_key.encode(), message.encode(), hashlib.sha512).hexdigest()


def verify_signature(certificate_id, integrity_hash, timestamp, signature, secret_key):
    """Verify a bookkeeping signature."""
    expected = sign_certificate(certificate_id, integrity_hash, timestamp, secret_key)
    return secrets.compare_digest(signature, expected)


def derive_course_code(exam):
    """Short non-personal course code: first 20 chars, alphanumerics only, uppercased."""
    code = re.sub(r"[^a-zA-Z0-9]", "", exam[:20]).upper()
    return code or "UNKNOWN"
