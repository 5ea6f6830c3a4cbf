"""
Record Service: issues, verifies and revokes anchored certificates.

The service keeps no state between calls. Every read goes to the injected
ledger, and every failure is raised as a typed exception from
``certchain.errors`` for the caller to map onto its transport. A record's
life is ``{} -issue-> ACTIVE -revoke-> REVOKED``; verify never changes it.
"""

import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .canonical import hash_fields
from .errors import (
    AlreadyRevokedError,
    ConflictError,
    ExhaustedError,
    ForbiddenError,
    InvalidFieldError,
    NotFoundError,
    ValidationError,
)
from .models import CertificateFields, CertificateRecord, RecordStatus

DEFAULT_MAX_ATTEMPTS = 5


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TimestampIdGenerator:
    """Ids of the form ``CERT-<epoch millis>-<random suffix>``.

    The suffix is drawn from 36 symbols with ``secrets``; collisions are
    still possible and are resolved by the ledger refusing duplicates.
    """

    ALPHABET = string.ascii_uppercase + string.digits

    def __init__(self, clock=None, prefix="CERT", suffix_length=9):
        self.clock = clock or SystemClock()
        self.prefix = prefix
        self.suffix_length = suffix_length

    def generate(self) -> str:
        millis = int(self.clock.now().timestamp() * 1000)
        suffix = "".join(secrets.choice(self.ALPHABET) for _ in range(self.suffix_length))
        return f"{self.prefix}-{millis}-{suffix}"


class VerificationStatus(str, Enum):
    VALID = "VALID"
    NOT_FOUND = "NOT_FOUND"
    REVOKED = "REVOKED"
    TAMPERED = "TAMPERED"


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    record: Optional[CertificateRecord] = None
    recomputed_hash: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.status == VerificationStatus.VALID


@dataclass(frozen=True)
class IssueReceipt:
    cert_id: str
    hash: str
    reference: str
    block_number: Optional[int] = None


@dataclass(frozen=True)
class RevokeAck:
    cert_id: str
    reference: str
    block_number: Optional[int] = None


class RecordService:
    def __init__(self, ledger, policy, clock=None, id_generator=None,
                 max_attempts=DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.ledger = ledger
        self.policy = policy
        self.clock = clock or SystemClock()
        self.id_generator = id_generator or TimestampIdGenerator(self.clock)
        self.max_attempts = max_attempts

    # ---------------- ISSUE ----------------
    def issue(self, fields, issuer) -> IssueReceipt:
        """Anchor a new certificate and return its id and hash.

        ``fields`` is a CertificateFields or a mapping with camelCase or
        snake_case keys. A ledger ConflictError on the generated id causes a
        fresh id to be drawn, up to ``max_attempts`` ids in total.
        LedgerUnavailableError is not retried.
        """
        if not isinstance(fields, CertificateFields):
            fields = CertificateFields.from_mapping(fields)

        missing = fields.missing()
        if missing:
            raise ValidationError(f"missing required fields: {', '.join(missing)}", missing=missing)
        if not isinstance(issuer, str) or not issuer.strip():
            raise ValidationError("issuer is required", missing=["issuer"])

        cert_hash = hash_fields(fields)
        timestamp = self.clock.now()

        for _ in range(self.max_attempts):
            cert_id = self.id_generator.generate()
            try:
                ack = self.ledger.put(cert_id, fields, cert_hash, issuer, timestamp)
            except ConflictError:
                continue
            return IssueReceipt(cert_id, cert_hash, ack.reference, ack.block_number)

        raise ExhaustedError(f"no free certificate id after {self.max_attempts} attempts")

    # ---------------- VERIFY ----------------
    def verify(self, cert_id) -> VerificationResult:
        try:
            record = self.ledger.get(cert_id)
        except NotFoundError:
            return VerificationResult(VerificationStatus.NOT_FOUND)

        if record.status == RecordStatus.REVOKED:
            return VerificationResult(VerificationStatus.REVOKED, record)

        try:
            recomputed = hash_fields(record.fields)
        except InvalidFieldError:
            return VerificationResult(VerificationStatus.TAMPERED, record)

        if recomputed != record.hash:
            return VerificationResult(VerificationStatus.TAMPERED, record, recomputed)
        return VerificationResult(VerificationStatus.VALID, record, recomputed)

    # ---------------- REVOKE ----------------
    def revoke(self, cert_id, requester) -> RevokeAck:
        record = self.ledger.get(cert_id)
        if record.status == RecordStatus.REVOKED:
            raise AlreadyRevokedError(f"{cert_id} is already revoked")
        if not self.policy.can_revoke(requester, record):
            raise ForbiddenError(f"{requester!r} may not revoke {cert_id}")

        try:
            ack = self.ledger.set_status(cert_id, RecordStatus.REVOKED)
        except ConflictError as exc:
            # another caller revoked it between our read and the swap
            raise AlreadyRevokedError(f"{cert_id} is already revoked") from exc
        return RevokeAck(cert_id, ack.reference, ack.block_number)

    def lookup(self, cert_id) -> CertificateRecord:
        return self.ledger.get(cert_id)

    def records(self):
        return self.ledger.records()
