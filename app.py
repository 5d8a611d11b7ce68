import logging
import re
import threading
import time
import uuid
from io import BytesIO

import click
from flask import Flask, request, send_file, jsonify

from gdprcert import config
from gdprcert.crypto_utils import verify_signature
from gdprcert.database import (
    init_db,
    store_certificate,
    get_certificate_by_id,
    get_certificate_by_hash,
    record_verification,
    revoke_certificate,
    log_event,
    health_check,
)
from gdprcert.errors import ValidationError, MalformedRecordError, EncodingError
from gdprcert.issuance import issue_certificate
from gdprcert.qr_generator import generate_qr_code, qr_to_bytes, verification_url
from gdprcert.record import TRIM_CHARS
from gdprcert.verifier import verify_certificate, verify_canonical

logger = logging.getLogger(__name__)


# Request-level rules for the generation form
USER_RE = re.compile(r"^[a-zA-Z\s\-\.\']+$", re.ASCII)
USER_LENGTH = (2, 100)
EXAM_LENGTH = (5, 200)


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────
def _request_data():
    """JSON body if there is one, otherwise form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _validate_generation_fields(user, exam):
    """
    Reject obviously bad form input before it reaches the assembler.

    Raises ValidationError with a message suitable for the client.
    """
    if not isinstance(user, str) or not isinstance(exam, str):
        raise ValidationError("Both 'user' and 'exam' are required.")

    user, exam = user.strip(TRIM_CHARS), exam.strip(TRIM_CHARS)

    if not USER_LENGTH[0] <= len(user) <= USER_LENGTH[1]:
        raise ValidationError(
            f"User name must be {USER_LENGTH[0]}-{USER_LENGTH[1]} characters long."
        )
    if not USER_RE.match(user):
        raise ValidationError("Invalid user name format.")
    if not EXAM_LENGTH[0] <= len(exam) <= EXAM_LENGTH[1]:
        raise ValidationError(
            f"Exam name must be {EXAM_LENGTH[0]}-{EXAM_LENGTH[1]} characters long."
        )


def _certificate_details(row):
    """Non-personal fields safe to return from a verification."""
    return {
        "certificateId": row["certificate_id"],
        "courseCode": row["course_code"],
        "issueDate": row["issue_date"],
        "serialNumber": row["serial_number"],
        "status": row["status"],
        "verificationCount": row["verification_count"],
        "gdprCompliant": True,
    }


def _client():
    return {
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


# ─────────────────────────────────────────────────────────────
# App factory
# ─────────────────────────────────────────────────────────────
def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_mapping(
        CERT_SECRET_KEY=config.SECRET_KEY,
        CERT_DB_PATH=config.DB_PATH,
        BASE_URL=config.BASE_URL,
    )
    if overrides:
        app.config.update(overrides)

    db_path = app.config["CERT_DB_PATH"]
    init_db(db_path)

    # System statistics - NO PERSONAL DATA
    stats = {
        "certificates_generated": 0,
        "verifications_performed": 0,
        "successful_verifications": 0,
        "tamper_detected": 0,
        "start_time": time.time(),
    }
    # handlers run on several threads under app.run()
    stats_lock = threading.Lock()

    def bump(key):
        with stats_lock:
            stats[key] += 1

    # ─────────────────────────────────────────────────────────
    # Routes
    # ─────────────────────────────────────────────────────────

    @app.route("/")
    def index():
        return jsonify({
            "message": "GDPR-Compliant Certificate System API",
            "version": config.SCHEME_VERSION,
            "endpoints": {
                "POST /api/generate": "Generate a certificate (only its hash is stored)",
                "POST /api/verify": "Verify a certificate record or canonical string against its hash",
                "GET /api/verify/<certificate_id>": "Look up a certificate by ID",
                "GET /api/qr/<certificate_id>": "QR code for the verification link",
                "GET /api/stats": "System statistics (no personal data)",
                "GET /health": "Health check",
            },
        })

    @app.route("/api/generate", methods=["POST"])
    def generate():
        """
        Generate one certificate.

        The response carries the holder's fields back exactly once; the
        database only receives the hash and bookkeeping.
        """
        try:
            data = _request_data()
            user, exam = data.get("user"), data.get("exam")
            _validate_generation_fields(user, exam)

            issued = issue_certificate(user, exam, app.config["CERT_SECRET_KEY"])
            store_certificate(issued.stored, db_path)

            bump("certificates_generated")
            logger.info("Certificate %s generated (hash %s...)",
                        issued.certificate_id, issued.integrity_hash[:16])
            log_event(
                "CERTIFICATE_GENERATED",
                f"Certificate {issued.certificate_id} generated",
                certificate_id=issued.certificate_id,
                additional_data={"courseCode": issued.stored.course_code},
                db_path=db_path,
                **_client(),
            )

            body = issued.holder_payload()
            body.update({
                "canonical": issued.canonical,
                "serialNumber": issued.stored.serial_number,
                "verificationCode": issued.stored.verification_code,
                "issueDate": issued.stored.issue_date,
                "verificationUrl": verification_url(app.config["BASE_URL"], issued.certificate_id),
                "requestId": issued.stored.request_id,
            })

            response = jsonify(body)
            response.status_code = 201
            response.headers["X-Certificate-ID"] = issued.certificate_id
            response.headers["X-GDPR-Compliant"] = "true"
            response.headers["X-Personal-Data-Retained"] = "false"
            return response

        except ValueError as ve:
            return jsonify({"error": str(ve)}), 400
        except Exception as e:
            logger.exception("Certificate generation failed")
            log_event("SYSTEM_ERROR", f"Certificate generation failed: {type(e).__name__}",
                      severity="ERROR", db_path=db_path)
            return jsonify({"error": f"Certificate generation failed: {e}"}), 500

    @app.route("/api/verify", methods=["POST"])
    def verify_api():
        """
        Verify a certificate the holder presents.

        Body: {"certificate": {...seven fields...}, "hash": "..."}
          or: {"canonical": "<canonical json>", "hash": "..."}
        """
        verification_id = str(uuid.uuid4())
        bump("verifications_performed")

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"valid": False, "error": "JSON body required",
                            "verificationId": verification_id}), 400

        expected_hash = data.get("hash")
        if not expected_hash:
            return jsonify({"valid": False, "error": "'hash' is required",
                            "verificationId": verification_id}), 400

        try:
            if "certificate" in data:
                matches = verify_certificate(data["certificate"], expected_hash)
            elif "canonical" in data:
                matches = verify_canonical(data["canonical"], expected_hash)
            else:
                return jsonify({"valid": False,
                                "error": "Provide either 'certificate' or 'canonical'",
                                "verificationId": verification_id}), 400
        except (MalformedRecordError, EncodingError) as e:
            log_event("VERIFICATION_FAILED", f"Malformed verification request: {e}",
                      severity="WARNING", db_path=db_path, **_client())
            return jsonify({"valid": False, "error": str(e),
                            "verificationId": verification_id}), 400

        try:
            if not matches:
                bump("tamper_detected")
                logger.warning("Hash mismatch on verification %s", verification_id)
                log_event("TAMPER_DETECTED", "Hash mismatch - certificate may be tampered",
                          severity="WARNING", db_path=db_path, **_client())
                return jsonify({
                    "valid": False,
                    "message": "Hash mismatch - certificate may be tampered",
                    "verificationId": verification_id,
                })

            row = get_certificate_by_hash(expected_hash, db_path)
            if not row:
                log_event("VERIFICATION_FAILED", "Hash not found or revoked",
                          severity="INFO", db_path=db_path, **_client())
                return jsonify({
                    "valid": False,
                    "message": "Certificate not found in database or has been revoked",
                    "verificationId": verification_id,
                })

            signature_ok = verify_signature(
                row["certificate_id"], row["certificate_hash"], row["issued_at"],
                row["digital_signature"], app.config["CERT_SECRET_KEY"],
            )
            if not signature_ok:
                bump("tamper_detected")
                log_event("TAMPER_DETECTED",
                          f"Stored record for {row['certificate_id']} failed signature check",
                          certificate_id=row["certificate_id"], severity="CRITICAL",
                          db_path=db_path, **_client())
                return jsonify({
                    "valid": False,
                    "message": "Stored certificate record failed its signature check",
                    "verificationId": verification_id,
                })

            record_verification(row["certificate_id"], db_path)
            row["verification_count"] += 1
            bump("successful_verifications")
            log_event("CERTIFICATE_VERIFIED", f"Certificate {row['certificate_id']} verified",
                      certificate_id=row["certificate_id"], db_path=db_path, **_client())

            return jsonify({
                "valid": True,
                "message": "Certificate verified successfully",
                "certificateDetails": _certificate_details(row),
                "securityInfo": {
                    "verificationMethod": "HASH_VERIFICATION",
                    "personalDataAccessed": False,
                },
                "verificationId": verification_id,
            })

        except Exception as e:
            logger.exception("Verification %s failed", verification_id)
            return jsonify({"error": f"Verification failed: {e}",
                            "verificationId": verification_id}), 500

    @app.route("/api/verify/<certificate_id>")
    def verify_by_id(certificate_id):
        """Look up a certificate by ID.  Only ACTIVE certificates are found."""
        bump("verifications_performed")
        row = get_certificate_by_id(certificate_id, db_path)

        if not row:
            return jsonify({
                "valid": False,
                "certificateId": certificate_id,
                "message": "Certificate not found or has been revoked",
            }), 404

        record_verification(certificate_id, db_path)
        row["verification_count"] += 1
        bump("successful_verifications")

        return jsonify({
            "valid": True,
            "message": "Certificate found via database lookup",
            "certificateDetails": _certificate_details(row),
            "securityInfo": {
                "verificationMethod": "ID_LOOKUP",
                "personalDataAccessed": False,
            },
        })

    @app.route("/api/qr/<certificate_id>")
    def qr_code(certificate_id):
        """PNG QR code pointing at the verification link."""
        row = get_certificate_by_id(certificate_id, db_path, active_only=False)
        if not row:
            return jsonify({"error": "Certificate not found"}), 404

        url = verification_url(app.config["BASE_URL"], certificate_id)
        png = qr_to_bytes(generate_qr_code(url, size_pixels=200))
        return send_file(BytesIO(png), mimetype="image/png",
                         download_name=f"{certificate_id}.png")

    @app.route("/api/stats")
    def stats_api():
        with stats_lock:
            snapshot = dict(stats)

        uptime_hours = (time.time() - snapshot["start_time"]) / 3600
        performed = snapshot["verifications_performed"]
        success_rate = (snapshot["successful_verifications"] / performed * 100) if performed else 100.0

        return jsonify({
            "statistics": {
                "certificatesGenerated": snapshot["certificates_generated"],
                "verificationsPerformed": performed,
                "successfulVerifications": snapshot["successful_verifications"],
                "tamperDetected": snapshot["tamper_detected"],
                "successRate": f"{success_rate:.2f}%",
                "uptimeHours": f"{uptime_hours:.2f}",
                "personalDataStored": False,
            }
        })

    @app.route("/health")
    def health():
        try:
            counts = health_check(db_path)
        except Exception as e:
            logger.exception("Health check failed")
            return jsonify({"status": "error", "error": str(e)}), 503

        body = {"status": "healthy", "integrity": config.INTEGRITY_ALGORITHM}
        body.update(counts)
        return jsonify(body)

    # ─────────────────────────────────────────────────────────
    # CLI
    # ─────────────────────────────────────────────────────────

    @app.cli.command("revoke")
    @click.argument("certificate_id")
    def revoke_command(certificate_id):
        """Revoke an ACTIVE certificate by ID."""
        if revoke_certificate(certificate_id, db_path):
            log_event("CERTIFICATE_REVOKED", f"Certificate {certificate_id} revoked",
                      certificate_id=certificate_id, db_path=db_path)
            click.echo(f"Revoked {certificate_id}")
        else:
            raise click.ClickException(f"No active certificate {certificate_id}")

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    create_app().run(host="0.0.0.0", port=config.PORT, debug=True)
