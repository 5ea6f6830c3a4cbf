import os

from dotenv import load_dotenv

load_dotenv()


def _list(value):
    return tuple(item.strip() for item in (value or "").split(",") if item.strip())


class Config:
    MASTER_KEY = os.getenv("MASTER_KEY")
    ISSUER_SECRET = os.getenv("ISSUER_SECRET")
    ISSUER_NAME = os.getenv("ISSUER_NAME", "Certificate Authority")
    ADMIN_ISSUERS = _list(os.getenv("ADMIN_ISSUERS"))

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///certchain.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LEDGER_BACKEND = os.getenv("LEDGER_BACKEND", "sql")
    LEDGER_TIMEOUT = float(os.getenv("LEDGER_TIMEOUT", "5"))
    ID_MAX_ATTEMPTS = int(os.getenv("ID_MAX_ATTEMPTS", "5"))

    FRONTEND_URL = os.getenv("FRONTEND_URL")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    PORT = int(os.getenv("PORT", "8080"))

    REQUIRED = ("MASTER_KEY", "ISSUER_SECRET")
