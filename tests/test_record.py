import dataclasses

import pytest

from gdprcert.errors import ValidationError, MalformedRecordError
from gdprcert.record import (
    CANONICAL_FIELDS,
    CertificateRecord,
    assemble_certificate,
    record_from_mapping,
    secure_nonce,
)

from conftest import JOHN_NONCE, JOHN_TIMESTAMP


# ───────────────────────────────────────────────
# Assembler
# ───────────────────────────────────────────────
def test_assemble_fills_all_seven_fields():
    record = assemble_certificate("John Doe", "Web Development",
                                  timestamp=JOHN_TIMESTAMP, nonce=JOHN_NONCE)
    assert record.to_dict() == {
        "user": "John Doe",
        "exam": "Web Development",
        "timestamp": JOHN_TIMESTAMP,
        "nonce": JOHN_NONCE,
        "version": "4.0",
        "issuer": "GDPR-Compliant Certificate System",
        "integrity": "SHA-512",
    }


def test_assemble_trims_user_and_exam():
    record = assemble_certificate("  John Doe\t", "Web Development \n",
                                  timestamp=JOHN_TIMESTAMP, nonce=JOHN_NONCE)
    assert record.user == "John Doe"
    assert record.exam == "Web Development"


def test_assemble_trims_javascript_whitespace_only():
    record = assemble_certificate("\ufeffJohn\u00a0", "\x1fExam\x1f", timestamp=1, nonce="n")
    assert record.user == "John"
    # \x1f is not whitespace for String.prototype.trim
    assert record.exam == "\x1fExam\x1f"


@pytest.mark.parametrize("user, exam", [
    ("", "Web Development"),
    ("   ", "Web Development"),
    ("John Doe", ""),
    ("John Doe", " \t\n"),
    (None, "Web Development"),
    ("John Doe", 42),
])
def test_assemble_rejects_empty_fields(user, exam):
    with pytest.raises(ValidationError):
        assemble_certificate(user, exam)


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        assemble_certificate("", "Web Development")


def test_assemble_uses_injected_clock_and_nonce_source():
    record = assemble_certificate("John Doe", "Web Development",
                                  clock=lambda: 42, nonce_source=lambda: "fixed")
    assert record.timestamp == 42
    assert record.nonce == "fixed"


def test_assemble_keeps_zero_timestamp():
    record = assemble_certificate("John Doe", "Web Development",
                                  timestamp=0, nonce=JOHN_NONCE, clock=lambda: 999)
    assert record.timestamp == 0


def test_assemble_default_timestamp_is_integer_ms():
    record = assemble_certificate("John Doe", "Web Development", nonce=JOHN_NONCE)
    assert isinstance(record.timestamp, int)
    assert record.timestamp > 1_600_000_000_000


@pytest.mark.parametrize("timestamp", [1700000000000.0, "1700000000000", True])
def test_assemble_rejects_non_integer_timestamp(timestamp):
    with pytest.raises(ValidationError):
        assemble_certificate("John Doe", "Web Development", timestamp=timestamp, nonce=JOHN_NONCE)


@pytest.mark.parametrize("nonce", ["", 1234])
def test_assemble_rejects_bad_nonce(nonce):
    with pytest.raises(ValidationError):
        assemble_certificate("John Doe", "Web Development", timestamp=1, nonce=nonce)


def test_secure_nonce_is_32_hex_chars():
    nonce = secure_nonce()
    assert len(nonce) == 32
    int(nonce, 16)
    assert nonce != secure_nonce()


def test_record_is_immutable():
    record = assemble_certificate("John Doe", "Web Development", timestamp=1, nonce="n")
    with pytest.raises(dataclasses.FrozenInstanceError):
        record.user = "Jane Doe"


# ───────────────────────────────────────────────
# Rebuilding records from untrusted data
# ───────────────────────────────────────────────
def test_canonical_fields_are_sorted():
    assert list(CANONICAL_FIELDS) == sorted(CANONICAL_FIELDS)
    assert set(CANONICAL_FIELDS) == {f.name for f in dataclasses.fields(CertificateRecord)}


def test_record_from_mapping_round_trip(john_fields):
    record = record_from_mapping(john_fields)
    assert record.to_dict() == john_fields


def test_record_from_mapping_does_not_trim(john_fields):
    john_fields["user"] = " John Doe "
    assert record_from_mapping(john_fields).user == " John Doe "


@pytest.mark.parametrize("field", CANONICAL_FIELDS)
def test_record_from_mapping_missing_field(john_fields, field):
    del john_fields[field]
    with pytest.raises(MalformedRecordError, match=field):
        record_from_mapping(john_fields)


def test_record_from_mapping_none_value(john_fields):
    john_fields["nonce"] = None
    with pytest.raises(MalformedRecordError):
        record_from_mapping(john_fields)


def test_record_from_mapping_unknown_field(john_fields):
    john_fields["email"] = "john@example.org"
    with pytest.raises(MalformedRecordError, match="email"):
        record_from_mapping(john_fields)


def test_record_from_mapping_wrong_types(john_fields):
    bad = dict(john_fields, timestamp="1700000000000")
    with pytest.raises(MalformedRecordError):
        record_from_mapping(bad)

    bad = dict(john_fields, user=["John", "Doe"])
    with pytest.raises(MalformedRecordError):
        record_from_mapping(bad)


@pytest.mark.parametrize("field, value", [
    ("user", None),
    ("exam", 42),
    ("nonce", b"aabbccdd"),
    ("version", 4.0),
    ("timestamp", 1700000000000.0),
    ("timestamp", "1700000000000"),
    ("timestamp", False),
])
def test_record_constructor_checks_types(john_fields, field, value):
    john_fields[field] = value
    with pytest.raises(MalformedRecordError, match=field):
        CertificateRecord(**john_fields)


def test_record_from_mapping_rejects_non_mapping():
    with pytest.raises(MalformedRecordError):
        record_from_mapping(["John Doe"])
