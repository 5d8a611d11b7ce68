import pytest

from app import create_app


JOHN_NONCE = "aabbccdd00112233aabbccdd00112233"
JOHN_TIMESTAMP = 1700000000000
JOHN_CANONICAL = (
    '{"exam":"Web Development","integrity":"SHA-512",'
    '"issuer":"GDPR-Compliant Certificate System",'
    '"nonce":"aabbccdd00112233aabbccdd00112233","timestamp":1700000000000,'
    '"user":"John Doe","version":"4.0"}'
)
JOHN_HASH = (
    "cd88538a94c2b3b015ead3c97d23f1e249611e61520a650ccf661097fefb16f9"
    "08cc2c9ffb3f0e915a7498ec2236013e4164ee7e913a6a957f81cf6c312796e8"
)


@pytest.fixture
def john_fields():
    return {
        "exam": "Web Development",
        "integrity": "SHA-512",
        "issuer": "GDPR-Compliant Certificate System",
        "nonce": JOHN_NONCE,
        "timestamp": JOHN_TIMESTAMP,
        "user": "John Doe",
        "version": "4.0",
    }


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "certificates.db")


@pytest.fixture
def app(db_path):
    return create_app({
        "TESTING": True,
        "CERT_DB_PATH": db_path,
        "CERT_SECRET_KEY": "test-secret",
        "BASE_URL": "https://certs.example.org",
    })


@pytest.fixture
def client(app):
    return app.test_client()
