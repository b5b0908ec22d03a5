"""Account sign-in, registration and the optional remember-me cache.

The cache only ever holds a signed, expiring token that names the owner.
Passwords are never written anywhere except as a salted PBKDF2 hash.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from glicemia.db import DB_PATH, create_user, get_user_by_email, get_user_by_id, init_db
from glicemia.errors import AuthError
from glicemia.security import (
    generate_salt,
    hash_password,
    issue_remember_token,
    read_remember_token,
    verify_password,
)
from glicemia.validation import validate_email, validate_password

logger = logging.getLogger(__name__)

REMEMBER_ME_SECONDS = 30 * 24 * 60 * 60


@dataclass(frozen=True)
class Owner:
    uid: str
    email: str


class CredentialCache(Protocol):
    def load(self) -> str | None: ...

    def save(self, token: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryCredentialCache:
    def __init__(self) -> None:
        self.token: str | None = None

    def load(self) -> str | None:
        return self.token

    def save(self, token: str) -> None:
        self.token = token

    def clear(self) -> None:
        self.token = None


class FileCredentialCache:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> str | None:
        if not self.path.exists():
            return None
        token = self.path.read_text(encoding="utf-8").strip()
        return token or None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token, encoding="utf-8")
        self.path.chmod(0o600)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthGate:
    def __init__(
        self,
        db_path: Path = DB_PATH,
        secret: str = "",
        credential_cache: CredentialCache | None = None,
        remember_seconds: int = REMEMBER_ME_SECONDS,
    ) -> None:
        self.db_path = db_path
        self._secret = secret
        self.credential_cache = credential_cache
        self.remember_seconds = remember_seconds
        self._owner: Owner | None = None
        init_db(db_path)

    @classmethod
    def from_environment(cls, env, credential_cache: CredentialCache | None = None) -> "AuthGate":
        return cls(
            db_path=env.db_path,
            secret=env.app_secret,
            credential_cache=credential_cache,
            remember_seconds=env.remember_me_seconds,
        )

    @property
    def current_owner(self) -> Owner | None:
        return self._owner

    def sign_in(self, email: str, password: str, remember: bool = False) -> Owner:
        email = _normalize_email(email)
        valid, _ = validate_email(email)
        if not valid:
            raise AuthError("invalid-email")

        try:
            user = get_user_by_email(email, self.db_path)
        except sqlite3.Error as exc:
            logger.exception("Sign-in lookup failed")
            raise AuthError("unknown") from exc
        if user is None:
            raise AuthError("user-not-found")
        if user["disabled"]:
            raise AuthError("user-disabled")
        if not verify_password(password, user["password_salt"], user["password_hash"]):
            logger.info("Wrong password for owner %s", user["uid"])
            raise AuthError("wrong-password")

        self._owner = Owner(uid=user["uid"], email=user["email"])
        if self.credential_cache is not None:
            if remember:
                self.credential_cache.save(issue_remember_token(self._secret, self._owner.uid))
            else:
                self.credential_cache.clear()
        logger.info("Owner %s signed in", self._owner.uid)
        return self._owner

    def create_account(self, email: str, password: str) -> Owner:
        """Register a new account and sign it in."""
        email = _normalize_email(email)
        valid, _ = validate_email(email)
        if not valid:
            raise AuthError("invalid-email")
        valid, _ = validate_password(password)
        if not valid:
            raise AuthError("weak-password")

        uid = uuid4().hex
        salt = generate_salt()
        try:
            if get_user_by_email(email, self.db_path) is not None:
                raise AuthError("email-already-in-use")
            create_user(uid, email, salt, hash_password(password, salt), generate_salt(), self.db_path)
        except sqlite3.IntegrityError as exc:
            raise AuthError("email-already-in-use") from exc
        except sqlite3.Error as exc:
            logger.exception("Account creation failed")
            raise AuthError("unknown") from exc

        self._owner = Owner(uid=uid, email=email)
        logger.info("Created account %s", uid)
        return self._owner

    def sign_out(self) -> None:
        if self._owner is not None:
            logger.info("Owner %s signed out", self._owner.uid)
        self._owner = None
        if self.credential_cache is not None:
            self.credential_cache.clear()

    def restore(self, bootstrap_token: str | None = None) -> Owner | None:
        """Resume a session from the host's bootstrap token or the remember-me cache."""
        if self._owner is not None:
            return self._owner

        if bootstrap_token:
            owner = self._owner_from_token(bootstrap_token)
            if owner is not None:
                self._owner = owner
                return owner
            logger.warning("Bootstrap token rejected")

        if self.credential_cache is None:
            return None
        cached = self.credential_cache.load()
        if not cached:
            return None
        owner = self._owner_from_token(cached)
        if owner is None:
            logger.warning("Remembered session is expired or invalid; clearing it")
            self.credential_cache.clear()
            return None
        self._owner = owner
        logger.info("Owner %s restored from remembered session", owner.uid)
        return owner

    def _owner_from_token(self, token: str) -> Owner | None:
        uid = read_remember_token(self._secret, token, self.remember_seconds)
        if uid is None:
            return None
        try:
            user = get_user_by_id(uid, self.db_path)
        except sqlite3.Error:
            logger.exception("Session lookup failed")
            return None
        if user is None or user["disabled"]:
            return None
        return Owner(uid=user["uid"], email=user["email"])
