from datetime import datetime, timezone

import pytest

from certchain.app import create_app
from certchain.ledger import InMemoryLedger
from certchain.policy import SameIssuerPolicy
from certchain.service import RecordService

ISSUER_KEY = "test-issuer-secret"
ISSUER_NAME = "Tech U Registrar"

SAMPLE_FIELDS = {
    "studentId": "S1",
    "studentName": "Ana",
    "degree": "BSc CS",
    "institution": "Tech U",
    "grade": "A",
    "issueDate": "2024-01-01",
}


class FixedClock:
    def __init__(self, when):
        self.when = when

    def now(self):
        return self.when


class SequenceIds:
    """Id generator handing out a scripted sequence."""

    def __init__(self, ids):
        self.ids = list(ids)
        self.calls = 0

    def generate(self):
        self.calls += 1
        return self.ids.pop(0)


def app_config(**extra):
    config = {
        "TESTING": True,
        "MASTER_KEY": "test-master-key",
        "ISSUER_SECRET": ISSUER_KEY,
        "ISSUER_NAME": ISSUER_NAME,
        "ADMIN_ISSUERS": (),
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "LEDGER_BACKEND": "memory",
        "FRONTEND_URL": None,
    }
    config.update(extra)
    return config


@pytest.fixture
def sample_fields():
    return dict(SAMPLE_FIELDS)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def id_sequence():
    return SequenceIds


@pytest.fixture
def ledger():
    return InMemoryLedger(timeout=1)


@pytest.fixture
def service(ledger, clock):
    return RecordService(ledger, SameIssuerPolicy(admins=["registrar"]), clock=clock)


@pytest.fixture
def make_app():
    return lambda ledger=None, **extra: create_app(app_config(**extra), ledger=ledger)


@pytest.fixture(params=["memory", "sql"])
def app(request):
    return create_app(app_config(LEDGER_BACKEND=request.param))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def issuer_headers():
    return {"X-Issuer-Key": ISSUER_KEY}
