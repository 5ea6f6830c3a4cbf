from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

# (attribute, wire key) in canonical order
FIELD_KEYS = (
    ("student_id", "studentId"),
    ("student_name", "studentName"),
    ("degree", "degree"),
    ("institution", "institution"),
    ("grade", "grade"),
    ("issue_date", "issueDate"),
)


class RecordStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"


@dataclass(frozen=True)
class CertificateFields:
    student_id: str
    student_name: str
    degree: str
    institution: str
    grade: str
    issue_date: str

    @classmethod
    def from_mapping(cls, data):
        """Build from camelCase wire keys or snake_case keys.

        Absent keys become empty strings so that validation can report
        every missing field at once. Unknown keys are ignored.
        """
        values = {}
        for attr, wire in FIELD_KEYS:
            value = data.get(wire, data.get(attr, ""))
            values[attr] = "" if value is None else value
        return cls(**values)

    def to_dict(self):
        return {wire: getattr(self, attr) for attr, wire in FIELD_KEYS}

    def missing(self):
        # non-string values are rejected later by the canonicalizer
        return [
            wire for attr, wire in FIELD_KEYS
            if getattr(self, attr) == ""
        ]


@dataclass(frozen=True)
class CertificateRecord:
    cert_id: str
    fields: CertificateFields
    hash: str
    status: RecordStatus
    issued_at: datetime
    issuer: str

    @property
    def is_active(self) -> bool:
        return self.status == RecordStatus.ACTIVE

    def to_dict(self):
        data = {"certificateId": self.cert_id}
        data.update(self.fields.to_dict())
        data.update({
            "hash": self.hash,
            "status": self.status.value,
            "issuedAt": self.issued_at.isoformat(),
            "issuer": self.issuer,
            "isValid": self.is_active,
        })
        return data


@dataclass(frozen=True)
class LedgerEntry:
    record: CertificateRecord
    block_number: Optional[int] = None

    def to_dict(self):
        data = self.record.to_dict()
        data["blockNumber"] = self.block_number
        return data


@dataclass(frozen=True)
class Ack:
    reference: str
    block_number: Optional[int] = None
