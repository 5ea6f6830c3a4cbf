import base64
import hashlib
import hmac
import json

from cryptography.fernet import Fernet, InvalidToken


# ---------- HASHING ----------
def sha256_hash(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def digest_json(payload: dict) -> str:
    """SHA-256 over sorted-key JSON, used to link ledger blocks."""
    return sha256_hash(json.dumps(payload, sort_keys=True, separators=(",", ":")))


# ---------- ISSUER SECRETS ----------
def secret_matches(secret: str, expected_hash: str) -> bool:
    return hmac.compare_digest(sha256_hash(secret), expected_hash)


# ---------- SYMMETRIC ENCRYPTION ----------
def get_cipher(master_key: bytes) -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(master_key).digest())
    return Fernet(key)


def encrypt(text: str, cipher: Fernet) -> bytes:
    return cipher.encrypt(text.encode("utf-8"))


def decrypt(token: bytes, cipher: Fernet) -> str:
    if isinstance(token, str):
        token = token.encode("ascii")
    return cipher.decrypt(token).decode("utf-8")


def encrypt_event(event: dict, cipher: Fernet) -> bytes:
    return encrypt(json.dumps(event, sort_keys=True), cipher)


def decrypt_event(token: bytes, cipher: Fernet):
    """Return the decoded event, or None when the token was sealed with another key."""
    try:
        return json.loads(decrypt(token, cipher))
    except InvalidToken:
        return None
