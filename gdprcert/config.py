"""
Configuration for the certificate service.

Scheme constants are fixed per scheme version.  Deployment settings come
from environment variables.
"""
import os


# ── Scheme 4.0 constants (part of every canonical record) ──
SCHEME_VERSION = "4.0"
ISSUER = "GDPR-Compliant Certificate System"
INTEGRITY_ALGORITHM = "SHA-512"

# 16 random bytes → 32 hex characters
NONCE_BYTES = 16

# SHA-512 rendered as hex
HASH_HEX_LENGTH = 128


# ── Deployment settings ──
# Secret key for signing certificate bookkeeping (in production, use environment variable)
SECRET_KEY = os.environ.get("CERT_SECRET_KEY", "change-this-in-production-use-env-var")

# Base URL for verification links encoded in QR codes
BASE_URL = os.environ.get("BASE_URL", "http://localhost:5001")

DB_PATH = os.environ.get("CERT_DB_PATH", "certificates.db")

PORT = int(os.environ.get("PORT", "5001"))
