class CertChainError(Exception):
    """Base class for every error the certificate service raises."""


class ValidationError(CertChainError):
    def __init__(self, message, missing=None):
        super().__init__(message)
        self.missing = list(missing or [])


class InvalidFieldError(ValidationError):
    """A field value cannot be canonically encoded."""


class ConflictError(CertChainError):
    """The ledger refused a write because of the record's current state."""


class ExhaustedError(CertChainError):
    """No unused certificate id was found within the allowed attempts."""


class NotFoundError(CertChainError):
    pass


class AlreadyRevokedError(CertChainError):
    pass


class ForbiddenError(CertChainError):
    pass


class LedgerUnavailableError(CertChainError):
    """The ledger could not be reached or timed out."""


class AuthenticationError(CertChainError):
    pass
