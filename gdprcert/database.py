"""
Database for storing issued certificate hashes.

Only the integrity hash and non-personal bookkeeping are stored.  There is
no column for the holder's name or the exam name.
"""
import hashlib
import json
import logging
import sqlite3
from datetime import datetime, timezone

from gdprcert.config import DB_PATH
from gdprcert.issuance import STATUS_ACTIVE, STATUS_REVOKED

logger = logging.getLogger(__name__)


EVENT_TYPES = (
    "CERTIFICATE_GENERATED",
    "CERTIFICATE_VERIFIED",
    "CERTIFICATE_REVOKED",
    "VERIFICATION_FAILED",
    "TAMPER_DETECTED",
    "SYSTEM_ERROR",
)

SEVERITIES = ("INFO", "WARNING", "ERROR", "CRITICAL")

_CERT_COLUMNS = (
    "certificate_hash, certificate_id, course_code, issue_date, issued_at, "
    "serial_number, verification_code, digital_signature, status, request_id, "
    "verification_count, last_verified, created_at"
)


def _now():
    return datetime.now(timezone.utc).isoformat()


def init_db(db_path=DB_PATH):
    """Initialize the certificate database."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS certificate_hashes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            certificate_hash TEXT UNIQUE NOT NULL CHECK (length(certificate_hash) = 128),
            certificate_id TEXT UNIQUE NOT NULL CHECK (certificate_id LIKE 'CERT-%'),
            course_code TEXT NOT NULL,
            issue_date TEXT NOT NULL,
            issued_at INTEGER NOT NULL,
            serial_number TEXT NOT NULL,
            verification_code TEXT NOT NULL,
            digital_signature TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'ACTIVE'
                CHECK (status IN ('ACTIVE', 'REVOKED', 'SUSPENDED')),
            request_id TEXT NOT NULL,
            verification_count INTEGER NOT NULL DEFAULT 0,
            last_verified TEXT,
            created_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            event_type TEXT NOT NULL,
            event_description TEXT NOT NULL,
            certificate_id TEXT,
            ip_hash TEXT,
            user_agent_hash TEXT,
            severity TEXT NOT NULL DEFAULT 'INFO',
            additional_data TEXT,
            timestamp TEXT NOT NULL
        )
    """)

    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_status_created ON certificate_hashes(status, created_at)"
    )
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp)")

    conn.commit()
    conn.close()


def store_certificate(stored, db_path=DB_PATH):
    """
    Store a StoredCertificate.

    Raises sqlite3.IntegrityError if the hash or ID already exists.
    """
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("""
            INSERT INTO certificate_hashes (
                certificate_hash, certificate_id, course_code, issue_date, issued_at,
                serial_number, verification_code, digital_signature, status,
                request_id, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            stored.certificate_hash,
            stored.certificate_id,
            stored.course_code,
            stored.issue_date,
            stored.issued_at,
            stored.serial_number,
            stored.verification_code,
            stored.digital_signature,
            stored.status,
            stored.request_id,
            _now(),
        ))
        conn.commit()
    finally:
        conn.close()


def _row_to_dict(row):
    return {
        "certificate_hash": row[0],
        "certificate_id": row[1],
        "course_code": row[2],
        "issue_date": row[3],
        "issued_at": row[4],
        "serial_number": row[5],
        "verification_code": row[6],
        "digital_signature": row[7],
        "status": row[8],
        "request_id": row[9],
        "verification_count": row[10],
        "last_verified": row[11],
        "created_at": row[12],
    }


def _fetch_one(query, params, db_path):
    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(query, params).fetchone()
    finally:
        conn.close()
    return _row_to_dict(row) if row else None


def get_certificate_by_id(certificate_id, db_path=DB_PATH, active_only=True):
    """Retrieve a certificate row by ID (ACTIVE rows only unless active_only=False)."""
    query = f"SELECT {_CERT_COLUMNS} FROM certificate_hashes WHERE certificate_id = ?"
    params = (certificate_id,)
    if active_only:
        query += " AND status = ?"
        params += (STATUS_ACTIVE,)
    return _fetch_one(query, params, db_path)


def get_certificate_by_hash(certificate_hash, db_path=DB_PATH):
    """Retrieve an ACTIVE certificate row by its integrity hash."""
    return _fetch_one(
        f"SELECT {_CERT_COLUMNS} FROM certificate_hashes WHERE certificate_hash = ? AND status = ?",
        (certificate_hash.lower(), STATUS_ACTIVE),
        db_path,
    )


def record_verification(certificate_id, db_path=DB_PATH):
    """Bump the anonymous verification counter for a certificate."""
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("""
            UPDATE certificate_hashes
            SET verification_count = verification_count + 1, last_verified = ?
            WHERE certificate_id = ?
        """, (_now(), certificate_id))
        conn.commit()
    finally:
        conn.close()


def revoke_certificate(certificate_id, db_path=DB_PATH):
    """Mark a certificate REVOKED.  Returns False if no ACTIVE row matched."""
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.execute(
            "UPDATE certificate_hashes SET status = ? WHERE certificate_id = ? AND status = ?",
            (STATUS_REVOKED, certificate_id, STATUS_ACTIVE),
        )
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def _sha256(value):
    return hashlib.sha256(value.encode()).hexdigest() if value else None


def log_event(event_type, description, certificate_id=None, additional_data=None,
              severity="INFO", ip_address=None, user_agent=None, db_path=DB_PATH):
    """
    Append an audit event.  Client IP and user agent are stored only as
    SHA-256 hashes.

    Audit failures are logged and do not abort the request being audited.
    """
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown audit event type '{event_type}'")
    if severity not in SEVERITIES:
        raise ValueError(f"Unknown severity '{severity}'")

    try:
        conn = sqlite3.connect(db_path)
        try:
            conn.execute("""
                INSERT INTO audit_log (
                    event_type, event_description, certificate_id, ip_hash,
                    user_agent_hash, severity, additional_data, timestamp
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                event_type,
                description,
                certificate_id,
                _sha256(ip_address),
                _sha256(user_agent),
                severity,
                json.dumps(additional_data or {}),
                _now(),
            ))
            conn.commit()
        finally:
            conn.close()
    except sqlite3.Error:
        logger.exception("Failed to write audit event %s", event_type)


def get_audit_events(certificate_id=None, db_path=DB_PATH):
    """Return audit events, newest first, optionally for one certificate."""
    query = ("SELECT event_type, event_description, certificate_id, ip_hash, user_agent_hash, "
             "severity, additional_data, timestamp FROM audit_log")
    params = ()
    if certificate_id:
        query += " WHERE certificate_id = ?"
        params = (certificate_id,)
    query += " ORDER BY id DESC"

    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute(query, params).fetchall()
    finally:
        conn.close()

    return [
        {
            "event_type": r[0],
            "description": r[1],
            "certificate_id": r[2],
            "ip_hash": r[3],
            "user_agent_hash": r[4],
            "severity": r[5],
            "additional_data": json.loads(r[6]) if r[6] else {},
            "timestamp": r[7],
        }
        for r in rows
    ]


def health_check(db_path=DB_PATH):
    """Row counts for the health endpoint."""
    conn = sqlite3.connect(db_path)
    try:
        cert_count = conn.execute("SELECT COUNT(*) FROM certificate_hashes").fetchone()[0]
        active_count = conn.execute(
            "SELECT COUNT(*) FROM certificate_hashes WHERE status = ?", (STATUS_ACTIVE,)
        ).fetchone()[0]
        audit_count = conn.execute("SELECT COUNT(*) FROM audit_log").fetchone()[0]
    finally:
        conn.close()

    return {
        "certificate_hash_count": cert_count,
        "active_certificate_count": active_count,
        "audit_event_count": audit_count,
    }
