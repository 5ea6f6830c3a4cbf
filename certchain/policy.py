class AuthPolicy:
    """Decides whether a principal may revoke a record."""

    def can_revoke(self, requester, record) -> bool:
        raise NotImplementedError


class SameIssuerPolicy(AuthPolicy):
    """Only the issuing principal, or one of ``admins``, may revoke."""

    def __init__(self, admins=()):
        self.admins = frozenset(admins)

    def can_revoke(self, requester, record):
        if not requester:
            return False
        return requester == record.issuer or requester in self.admins
