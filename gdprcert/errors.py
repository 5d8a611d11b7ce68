"""
Errors raised by the certificate core.
"""


class CertificateError(Exception):
    """Base class for all certificate errors."""


class ValidationError(CertificateError, ValueError):
    """User-supplied fields are missing or empty at assembly time."""


class MalformedRecordError(CertificateError):
    """A record handed in for verification is missing or has bad fields."""


class EncodingError(CertificateError):
    """Canonical text cannot be encoded as UTF-8."""
