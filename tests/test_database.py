import sqlite3

import pytest

from gdprcert.database import (
    init_db,
    store_certificate,
    get_certificate_by_id,
    get_certificate_by_hash,
    record_verification,
    revoke_certificate,
    log_event,
    get_audit_events,
    health_check,
)
from gdprcert.issuance import issue_certificate


@pytest.fixture
def db(db_path):
    init_db(db_path)
    return db_path


@pytest.fixture
def issued():
    return issue_certificate("John Doe", "Web Development", "test-secret")


def test_init_db_is_idempotent(db):
    init_db(db)
    assert health_check(db)["certificate_hash_count"] == 0


def test_schema_has_no_personal_columns(db):
    conn = sqlite3.connect(db)
    columns = [row[1] for row in conn.execute("PRAGMA table_info(certificate_hashes)")]
    conn.close()
    for personal in ("name", "user", "exam", "course", "recipient_name", "course_name"):
        assert personal not in columns


def test_store_and_lookup(db, issued):
    store_certificate(issued.stored, db)

    by_id = get_certificate_by_id(issued.certificate_id, db)
    by_hash = get_certificate_by_hash(issued.integrity_hash.upper(), db)

    assert by_id == by_hash
    assert by_id["certificate_hash"] == issued.integrity_hash
    assert by_id["status"] == "ACTIVE"
    assert by_id["verification_count"] == 0
    assert by_id["issued_at"] == issued.record.timestamp


def test_nothing_personal_in_database_file(db, issued):
    store_certificate(issued.stored, db)
    with open(db, "rb") as f:
        raw = f.read()
    assert b"John Doe" not in raw
    assert b"Web Development" not in raw


def test_duplicate_hash_is_rejected(db, issued):
    store_certificate(issued.stored, db)
    with pytest.raises(sqlite3.IntegrityError):
        store_certificate(issued.stored, db)


def test_unknown_certificate(db):
    assert get_certificate_by_id("CERT-NOPE", db) is None
    assert get_certificate_by_hash("0" * 128, db) is None


def test_record_verification(db, issued):
    store_certificate(issued.stored, db)
    record_verification(issued.certificate_id, db)
    record_verification(issued.certificate_id, db)

    row = get_certificate_by_id(issued.certificate_id, db)
    assert row["verification_count"] == 2
    assert row["last_verified"] is not None


def test_revoke_hides_certificate(db, issued):
    store_certificate(issued.stored, db)

    assert revoke_certificate(issued.certificate_id, db) is True
    assert revoke_certificate(issued.certificate_id, db) is False

    assert get_certificate_by_id(issued.certificate_id, db) is None
    assert get_certificate_by_hash(issued.integrity_hash, db) is None
    assert get_certificate_by_id(issued.certificate_id, db, active_only=False)["status"] == "REVOKED"
    assert health_check(db)["active_certificate_count"] == 0


def test_log_event_hashes_client_identifiers(db):
    log_event("CERTIFICATE_VERIFIED", "verified", certificate_id="CERT-1",
              additional_data={"courseCode": "WEB"}, ip_address="10.0.0.1",
              user_agent="pytest", db_path=db)

    events = get_audit_events("CERT-1", db)
    assert len(events) == 1
    event = events[0]
    assert event["ip_hash"] != "10.0.0.1" and len(event["ip_hash"]) == 64
    assert len(event["user_agent_hash"]) == 64
    assert event["additional_data"] == {"courseCode": "WEB"}
    assert health_check(db)["audit_event_count"] == 1


def test_log_event_rejects_unknown_type(db):
    with pytest.raises(ValueError):
        log_event("SOMETHING_ELSE", "nope", db_path=db)
