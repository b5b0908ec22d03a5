import base64
import hashlib
import hmac
import os

from cryptography.fernet import Fernet, InvalidToken


def generate_salt() -> str:
    return base64.urlsafe_b64encode(os.urandom(16)).decode("utf-8")


def _salt_bytes(salt: str) -> bytes:
    return base64.urlsafe_b64decode(salt.encode("utf-8"))


def hash_password(password: str, salt: str) -> str:
    derived = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        _salt_bytes(salt),
        200_000,
    )
    return base64.urlsafe_b64encode(derived).decode("utf-8")


def verify_password(password: str, salt: str, expected_hash: str) -> bool:
    current = hash_password(password, salt)
    return hmac.compare_digest(current, expected_hash)


def build_fernet(secret: str, salt: str) -> Fernet:
    """Per-owner payload key derived from the app secret and the owner's salt."""
    key_material = hashlib.pbkdf2_hmac(
        "sha256",
        secret.encode("utf-8"),
        _salt_bytes(salt),
        250_000,
        dklen=32,
    )
    key = base64.urlsafe_b64encode(key_material)
    return Fernet(key)


def _token_fernet(secret: str) -> Fernet:
    digest = hashlib.sha256(f"remember-me:{secret}".encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def issue_remember_token(secret: str, uid: str, issued_at: int | None = None) -> str:
    fernet = _token_fernet(secret)
    if issued_at is None:
        return fernet.encrypt(uid.encode("utf-8")).decode("utf-8")
    return fernet.encrypt_at_time(uid.encode("utf-8"), issued_at).decode("utf-8")


def read_remember_token(secret: str, token: str, max_age_seconds: int) -> str | None:
    """Owner uid carried by the token, or None if it is forged or expired."""
    try:
        return _token_fernet(secret).decrypt(token.encode("utf-8"), ttl=max_age_seconds).decode("utf-8")
    except InvalidToken:
        return None
