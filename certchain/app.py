"""
Flask JSON API for the certificate service.

Run the development server with the `certchain` console script or
`python -m certchain.app`; the module uses package-relative imports, so
running the file directly does not work.
"""

import logging
from io import BytesIO

from cryptography.fernet import InvalidToken
from flask import Blueprint, Flask, current_app, jsonify, request, send_file, url_for
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .crypto_utils import decrypt, decrypt_event, encrypt, encrypt_event, get_cipher, secret_matches, sha256_hash
from .database import db, AuditLog, Issuer
from .errors import (
    AlreadyRevokedError,
    AuthenticationError,
    CertChainError,
    ConflictError,
    ExhaustedError,
    ForbiddenError,
    LedgerUnavailableError,
    NotFoundError,
    ValidationError,
)
from .ledger import InMemoryLedger, SqlLedger
from .policy import SameIssuerPolicy
from .render import certificate_pdf, qr_data_url, qr_png
from .service import RecordService, VerificationStatus

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

# first match wins, so subclasses come before their bases
ERROR_STATUS = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (AlreadyRevokedError, 409),
    (ConflictError, 409),
    (ExhaustedError, 503),
    (LedgerUnavailableError, 503),
)

VERIFY_MESSAGES = {
    VerificationStatus.VALID: "Certificate is authentic and verified on the ledger",
    VerificationStatus.NOT_FOUND: "Certificate not found on the ledger",
    VerificationStatus.REVOKED: "Certificate has been revoked",
    VerificationStatus.TAMPERED: "Certificate data does not match its anchored hash",
}


# ---------------- APP FACTORY ----------------
def create_app(overrides=None, ledger=None, policy=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    missing = [key for key in Config.REQUIRED if not app.config.get(key)]
    if missing:
        raise RuntimeError(f"missing configuration: {', '.join(missing)}")

    CORS(app)

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        options.setdefault("connect_args", {}).setdefault("timeout", app.config["LEDGER_TIMEOUT"])
    db.init_app(app)

    master_key = app.config["MASTER_KEY"]
    if isinstance(master_key, str):
        master_key = master_key.encode()
    cipher = get_cipher(master_key)

    if ledger is None:
        ledger = build_ledger(app.config)
    if policy is None:
        policy = SameIssuerPolicy(app.config["ADMIN_ISSUERS"])
    service = RecordService(ledger, policy, max_attempts=app.config["ID_MAX_ATTEMPTS"])
    app.extensions["certchain"] = {"service": service, "cipher": cipher}

    with app.app_context():
        db.create_all()
        ensure_issuer_exists(app.config["ISSUER_NAME"], app.config["ISSUER_SECRET"], cipher)

    app.register_blueprint(api)
    app.register_error_handler(CertChainError, handle_error)
    app.register_error_handler(SQLAlchemyError, handle_database_error)
    return app


def build_ledger(config):
    backend = config["LEDGER_BACKEND"]
    if backend == "memory":
        return InMemoryLedger(timeout=config["LEDGER_TIMEOUT"])
    if backend == "sql":
        return SqlLedger()
    raise RuntimeError(f"unknown LEDGER_BACKEND {backend!r}")


# ---------------- ISSUERS ----------------
def ensure_issuer_exists(name, secret, cipher):
    secret_hash = sha256_hash(secret)
    issuer = Issuer.query.filter_by(secret_hash=secret_hash).first()
    if issuer is None:
        db.session.add(Issuer(encrypted_name=encrypt(name, cipher), secret_hash=secret_hash))
        db.session.commit()
    elif _stored_name(issuer, cipher) != name:
        issuer.encrypted_name = encrypt(name, cipher)
        db.session.commit()


def _stored_name(issuer, cipher):
    try:
        return decrypt(issuer.encrypted_name, cipher)
    except InvalidToken:
        return None


def authenticate_issuer():
    """Resolve the presented issuer key to the issuer's principal name."""
    key = request.headers.get("X-Issuer-Key")
    if not key:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            key = body.get("issuerKey")
    if not key:
        raise AuthenticationError("issuer key required")

    for issuer in Issuer.query.all():
        if secret_matches(key, issuer.secret_hash):
            return decrypt(issuer.encrypted_name, _cipher())
    raise AuthenticationError("unauthorized issuer")


# ---------------- HELPERS ----------------
def _service():
    return current_app.extensions["certchain"]["service"]


def _cipher():
    return current_app.extensions["certchain"]["cipher"]


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


def verification_url(cert_id):
    base = current_app.config.get("FRONTEND_URL")
    if base:
        return f"{base.rstrip('/')}/verify?id={cert_id}"
    return url_for("api.verify", cert_id=cert_id, _external=True)


def record_event(action, cert_id, principal, **details):
    """Append an encrypted audit event; returns False if it could not be stored.

    Called after the ledger write has already succeeded, so a failure here
    must not turn into an error response for that write.
    """
    event = {"action": action, "certificateId": cert_id, "principal": principal}
    event.update(details)
    db.session.add(AuditLog(encrypted_event=encrypt_event(event, _cipher())))
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("audit write failed for %s %s", action, cert_id)
        return False
    return True


def handle_error(exc):
    status = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    payload = {"error": str(exc), "code": type(exc).__name__}
    if isinstance(exc, ValidationError) and exc.missing:
        payload["missing"] = exc.missing

    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.path, exc)
    return jsonify(payload), status


def handle_database_error(exc):
    db.session.rollback()
    logger.error("%s %s database error: %s", request.method, request.path, exc)
    return jsonify(error="database unavailable", code=type(exc).__name__), 503


# ---------------- ROUTES ----------------
@api.route("/health")
def health():
    return jsonify(
        status="active",
        message="Certificate Validator API is running",
        ledger=_service().ledger.name,
    )


@api.route("/certificates/issue", methods=["POST"])
def issue():
    issuer = authenticate_issuer()
    receipt = _service().issue(_json_body(), issuer)
    url = verification_url(receipt.cert_id)
    audited = record_event("issue", receipt.cert_id, issuer, hash=receipt.hash, reference=receipt.reference)
    logger.info("issued %s for %s", receipt.cert_id, issuer)

    return jsonify(
        success=True,
        message="Certificate issued successfully",
        data={
            "certificateId": receipt.cert_id,
            "hash": receipt.hash,
            "transactionHash": receipt.reference,
            "blockNumber": receipt.block_number,
            "verificationUrl": url,
            "qrCode": qr_data_url(url),
            "audited": audited,
        },
    ), 201


@api.route("/certificates/verify/<cert_id>")
def verify(cert_id):
    result = _service().verify(cert_id)
    payload = {
        "valid": result.valid,
        "status": result.status.value,
        "message": VERIFY_MESSAGES[result.status],
        "certificateId": cert_id,
    }
    if result.record is not None:
        payload["data"] = result.record.to_dict()
    if result.status == VerificationStatus.TAMPERED:
        payload["recomputedHash"] = result.recomputed_hash
        logger.warning("integrity mismatch for %s", cert_id)

    status = 404 if result.status == VerificationStatus.NOT_FOUND else 200
    return jsonify(payload), status


@api.route("/certificates")
def list_certificates():
    service = _service()
    entries = service.records()
    return jsonify(
        success=True,
        data=[entry.to_dict() for entry in entries],
        stats={
            "total": len(entries),
            "uniqueStudents": len({entry.record.fields.student_id for entry in entries}),
            "blocks": service.ledger.height(),
        },
    )


@api.route("/certificates/<cert_id>")
def certificate_detail(cert_id):
    record = _service().lookup(cert_id)
    return jsonify(success=True, data=record.to_dict())


@api.route("/certificates/revoke/<cert_id>", methods=["POST"])
def revoke(cert_id):
    requester = authenticate_issuer()
    ack = _service().revoke(cert_id, requester)
    audited = record_event("revoke", cert_id, requester, reference=ack.reference)
    logger.info("revoked %s by %s", cert_id, requester)

    return jsonify(
        success=True,
        message="Certificate revoked successfully",
        transactionHash=ack.reference,
        blockNumber=ack.block_number,
        audited=audited,
    )


@api.route("/certificates/<cert_id>/download")
def download_certificate(cert_id):
    record = _service().lookup(cert_id)
    pdf = certificate_pdf(record, verification_url(cert_id))
    return send_file(
        BytesIO(pdf),
        as_attachment=True,
        download_name=f"certificate-{cert_id}.pdf",
        mimetype="application/pdf",
    )


@api.route("/certificates/<cert_id>/qr")
def qr_code(cert_id):
    return send_file(BytesIO(qr_png(verification_url(cert_id))), mimetype="image/png")


@api.route("/audit")
def audit_log():
    authenticate_issuer()
    cipher = _cipher()
    events = []
    for entry in AuditLog.query.order_by(AuditLog.timestamp.desc()).all():
        event = decrypt_event(entry.encrypted_event, cipher)
        if event is not None:
            event["timestamp"] = entry.timestamp.isoformat()
            events.append(event)
    return jsonify(events=events)


def main():
    logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    application = create_app()
    application.run(port=application.config["PORT"], debug=False)


if __name__ == "__main__":
    main()
