"""
GDPR-compliant certificate fingerprinting.

Certificates are committed to by a SHA-512 hash over a canonical JSON form;
only the hash is ever stored.
"""
from gdprcert.canonical import canonicalize, parse_canonical
from gdprcert.errors import CertificateError, ValidationError, MalformedRecordError, EncodingError
from gdprcert.integrity import compute_integrity_hash
from gdprcert.record import CertificateRecord, assemble_certificate, record_from_mapping
from gdprcert.verifier import verify_certificate, verify_canonical

__all__ = [
    "CertificateRecord",
    "assemble_certificate",
    "record_from_mapping",
    "canonicalize",
    "parse_canonical",
    "compute_integrity_hash",
    "verify_certificate",
    "verify_canonical",
    "CertificateError",
    "ValidationError",
    "MalformedRecordError",
    "EncodingError",
]
