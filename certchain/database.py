import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def uid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class Issuer(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    encrypted_name = db.Column(db.LargeBinary, nullable=False)
    secret_hash = db.Column(db.String(64), unique=True, nullable=False)


class AuditLog(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=uid)
    encrypted_event = db.Column(db.LargeBinary, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), default=utcnow)


class CertificateRow(db.Model):
    __tablename__ = "certificate_record"

    id = db.Column(db.String(36), primary_key=True, default=uid)
    cert_id = db.Column(db.String(100), unique=True, nullable=False)

    student_id = db.Column(db.Text, nullable=False)
    student_name = db.Column(db.Text, nullable=False)
    degree = db.Column(db.Text, nullable=False)
    institution = db.Column(db.Text, nullable=False)
    grade = db.Column(db.Text, nullable=False)
    issue_date = db.Column(db.Text, nullable=False)

    cert_hash = db.Column(db.String(64), nullable=False)
    issuer = db.Column(db.String(150), nullable=False)
    issued_at = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="ACTIVE")

    issue_tx = db.Column(db.String(36), nullable=False)
    revoke_tx = db.Column(db.String(36))
