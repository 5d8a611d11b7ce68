"""
Issuance pipeline: assemble → canonicalize → hash → bookkeeping.

The personal fields only ever live in the IssuedCertificate handed back to
the caller.  StoredCertificate is the part that may be persisted.
"""
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone

from gdprcert.canonical import canonicalize
from gdprcert.crypto_utils import (
    generate_certificate_id,
    generate_serial_number,
    generate_verification_code,
    sign_certificate,
    derive_course_code,
)
from gdprcert.integrity import compute_integrity_hash
from gdprcert.record import CertificateRecord, assemble_certificate, now_ms, secure_nonce


STATUS_ACTIVE = "ACTIVE"
STATUS_REVOKED = "REVOKED"
STATUS_SUSPENDED = "SUSPENDED"
STATUSES = (STATUS_ACTIVE, STATUS_REVOKED, STATUS_SUSPENDED)


@dataclass(frozen=True)
class StoredCertificate:
    """Non-personal bookkeeping row for one certificate."""
    certificate_hash: str
    certificate_id: str
    course_code: str
    issue_date: str
    issued_at: int
    serial_number: str
    verification_code: str
    digital_signature: str
    request_id: str
    status: str = STATUS_ACTIVE

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class IssuedCertificate:
    record: CertificateRecord
    canonical: str
    stored: StoredCertificate

    @property
    def integrity_hash(self):
        return self.stored.certificate_hash

    @property
    def certificate_id(self):
        return self.stored.certificate_id

    def holder_payload(self):
        """
        What the holder keeps (and what a QR code would carry) so the
        certificate can be re-verified later.
        """
        return {
            "certificateId": self.stored.certificate_id,
            "certificate": self.record.to_dict(),
            "hash": self.stored.certificate_hash,
        }


def _issue_date(timestamp):
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def issue_certificate(user, exam, secret_key, request_id=None, timestamp=None, nonce=None,
                      clock=now_ms, nonce_source=secure_nonce):
    """
    Run the full generation pipeline for one certificate.

    Raises ValidationError for empty user/exam.
    """
    record = assemble_certificate(
        user, exam,
        timestamp=timestamp,
        nonce=nonce,
        clock=clock,
        nonce_source=nonce_source,
    )
    canonical = canonicalize(record)
    integrity_hash = compute_integrity_hash(canonical)

    certificate_id = generate_certificate_id(integrity_hash, record.timestamp)

    stored = StoredCertificate(
        certificate_hash=integrity_hash,
        certificate_id=certificate_id,
        course_code=derive_course_code(record.exam),
        issue_date=_issue_date(record.timestamp),
        issued_at=record.timestamp,
        serial_number=generate_serial_number(),
        verification_code=generate_verification_code(),
        digital_signature=sign_certificate(certificate_id, integrity_hash, record.timestamp, secret_key),
        request_id=request_id or str(uuid.uuid4()),
    )

    return IssuedCertificate(record=record, canonical=canonical, stored=stored)
