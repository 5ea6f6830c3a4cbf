"""
Ledgers anchor certificate records.

Every ledger offers the same three operations: an atomic put-if-absent, a
read, and a compare-and-swap status transition. The Record Service only ever
talks to this interface, so a chain-backed store and a plain database are
interchangeable.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import timezone

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError

from .crypto_utils import digest_json
from .database import db, uid, CertificateRow
from .errors import ConflictError, LedgerUnavailableError, NotFoundError
from .models import FIELD_KEYS, Ack, CertificateFields, CertificateRecord, LedgerEntry, RecordStatus

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


class Ledger(ABC):
    name = "abstract"

    @abstractmethod
    def put(self, cert_id, fields, cert_hash, issuer, timestamp) -> Ack:
        """Store a new ACTIVE record; ConflictError if cert_id is taken."""

    @abstractmethod
    def get(self, cert_id) -> CertificateRecord:
        """Return the stored record; NotFoundError if absent."""

    @abstractmethod
    def set_status(self, cert_id, status) -> Ack:
        """Move an ACTIVE record to status; ConflictError if it is not ACTIVE."""

    @abstractmethod
    def records(self):
        """Return a LedgerEntry per stored record, oldest issue first."""

    @abstractmethod
    def height(self) -> int:
        """Number of writes (issues and status changes) applied so far."""


def _check_transition(cert_id, status):
    if status != RecordStatus.REVOKED:
        raise ConflictError(f"{cert_id}: status can only change from ACTIVE to REVOKED")


# ---------------- IN-MEMORY CHAIN ----------------
class InMemoryLedger(Ledger):
    """Process-local ledger keeping a hash-linked list of blocks.

    Each write appends a block whose hash covers the previous block's hash,
    imitating the transaction receipts of a chain. The lock is acquired with
    ``timeout`` seconds; failing to get it raises LedgerUnavailableError.
    """

    name = "memory"

    def __init__(self, timeout=None):
        self.timeout = timeout
        self._lock = threading.Lock()
        self._records = {}
        self._issue_blocks = {}
        self.blocks = []

    @contextmanager
    def _locked(self):
        acquired = self._lock.acquire(timeout=-1 if self.timeout is None else self.timeout)
        if not acquired:
            raise LedgerUnavailableError("ledger lock timed out")
        try:
            yield
        finally:
            self._lock.release()

    def _append_block(self, action, record) -> Ack:
        block = {
            "index": len(self.blocks) + 1,
            "timestamp": time.time(),
            "action": action,
            "certificateId": record.cert_id,
            "hash": record.hash,
            "status": record.status.value,
            "previousHash": self.blocks[-1]["blockHash"] if self.blocks else GENESIS_HASH,
        }
        block["blockHash"] = digest_json(block)
        self.blocks.append(block)
        return Ack(reference=block["blockHash"], block_number=block["index"])

    def put(self, cert_id, fields, cert_hash, issuer, timestamp):
        with self._locked():
            if cert_id in self._records:
                raise ConflictError(f"{cert_id} already exists")
            record = CertificateRecord(
                cert_id=cert_id,
                fields=fields,
                hash=cert_hash,
                status=RecordStatus.ACTIVE,
                issued_at=timestamp,
                issuer=issuer,
            )
            self._records[cert_id] = record
            ack = self._append_block("issue", record)
            self._issue_blocks[cert_id] = ack.block_number
            return ack

    def get(self, cert_id):
        with self._locked():
            record = self._records.get(cert_id)
        if record is None:
            raise NotFoundError(f"{cert_id} not found")
        return record

    def set_status(self, cert_id, status):
        with self._locked():
            record = self._records.get(cert_id)
            if record is None:
                raise NotFoundError(f"{cert_id} not found")
            if record.status != RecordStatus.ACTIVE:
                raise ConflictError(f"{cert_id} is already {record.status.value}")
            _check_transition(cert_id, status)
            record = replace(record, status=status)
            self._records[cert_id] = record
            return self._append_block("revoke", record)

    def records(self):
        with self._locked():
            return [
                LedgerEntry(record, self._issue_blocks[cert_id])
                for cert_id, record in self._records.items()
            ]

    def height(self):
        with self._locked():
            return len(self.blocks)

    def __len__(self):
        return len(self._records)


# ---------------- SQL ----------------
def _row_to_record(row) -> CertificateRecord:
    issued_at = row.issued_at
    if issued_at.tzinfo is None:
        # SQLite drops the offset; values are always written in UTC
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return CertificateRecord(
        cert_id=row.cert_id,
        fields=CertificateFields(**{attr: getattr(row, attr) for attr, _ in FIELD_KEYS}),
        hash=row.cert_hash,
        status=RecordStatus(row.status),
        issued_at=issued_at,
        issuer=row.issuer,
    )


class SqlLedger(Ledger):
    """Ledger stored in the ``certificate_record`` table.

    Put-if-absent comes from the unique ``cert_id`` column and the status
    swap from a conditional UPDATE. Operational database errors roll the
    session back and surface as LedgerUnavailableError.
    """

    name = "sql"

    def _unavailable(self, exc):
        db.session.rollback()
        logger.error("ledger database error: %s", exc)
        return LedgerUnavailableError("ledger database unavailable")

    def put(self, cert_id, fields, cert_hash, issuer, timestamp):
        tx = uid()
        row = CertificateRow(
            cert_id=cert_id,
            cert_hash=cert_hash,
            issuer=issuer,
            issued_at=timestamp,
            status=RecordStatus.ACTIVE.value,
            issue_tx=tx,
            **{attr: getattr(fields, attr) for attr, _ in FIELD_KEYS},
        )
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError(f"{cert_id} already exists") from exc
        except OperationalError as exc:
            raise self._unavailable(exc) from exc
        logger.debug("stored %s (tx %s)", cert_id, tx)
        return Ack(reference=tx)

    def get(self, cert_id):
        try:
            row = CertificateRow.query.filter_by(cert_id=cert_id).first()
        except OperationalError as exc:
            raise self._unavailable(exc) from exc
        if row is None:
            raise NotFoundError(f"{cert_id} not found")
        return _row_to_record(row)

    def set_status(self, cert_id, status):
        _check_transition(cert_id, status)
        tx = uid()
        try:
            updated = (
                CertificateRow.query
                .filter_by(cert_id=cert_id, status=RecordStatus.ACTIVE.value)
                .update({"status": status.value, "revoke_tx": tx}, synchronize_session=False)
            )
            if updated:
                db.session.commit()
            else:
                db.session.rollback()
                exists = db.session.query(CertificateRow.id).filter_by(cert_id=cert_id).first()
        except OperationalError as exc:
            raise self._unavailable(exc) from exc

        if not updated:
            if exists is None:
                raise NotFoundError(f"{cert_id} not found")
            raise ConflictError(f"{cert_id} is not ACTIVE")
        logger.debug("%s -> %s (tx %s)", cert_id, status.value, tx)
        return Ack(reference=tx)

    def records(self):
        try:
            rows = CertificateRow.query.order_by(CertificateRow.issued_at, CertificateRow.cert_id).all()
        except OperationalError as exc:
            raise self._unavailable(exc) from exc
        return [LedgerEntry(_row_to_record(row)) for row in rows]

    def height(self):
        try:
            issued = db.session.query(func.count(CertificateRow.id)).scalar()
            revoked = (
                db.session.query(func.count(CertificateRow.id))
                .filter(CertificateRow.revoke_tx.isnot(None))
                .scalar()
            )
        except OperationalError as exc:
            raise self._unavailable(exc) from exc
        return issued + revoked
