from .canonical import canonicalize, hash_fields
from .errors import (
    AlreadyRevokedError,
    AuthenticationError,
    CertChainError,
    ConflictError,
    ExhaustedError,
    ForbiddenError,
    InvalidFieldError,
    LedgerUnavailableError,
    NotFoundError,
    ValidationError,
)
from .ledger import InMemoryLedger, Ledger, SqlLedger
from .models import Ack, CertificateFields, CertificateRecord, LedgerEntry, RecordStatus
from .policy import AuthPolicy, SameIssuerPolicy
from .service import (
    IssueReceipt,
    RecordService,
    RevokeAck,
    SystemClock,
    TimestampIdGenerator,
    VerificationResult,
    VerificationStatus,
)

__version__ = "0.1.0"
