import time
from pathlib import Path

import pytest
from conftest import SECRET, disable_user

from glicemia.auth import AuthGate, FileCredentialCache, InMemoryCredentialCache
from glicemia.errors import AuthError
from glicemia.security import issue_remember_token


def _gate(db_path: Path, cache=None, **kwargs) -> AuthGate:
    return AuthGate(db_path=db_path, secret=SECRET, credential_cache=cache, **kwargs)


def _error_code(action) -> str:
    with pytest.raises(AuthError) as excinfo:
        action()
    assert excinfo.value.message
    return excinfo.value.code


def test_create_account_signs_in(db_path):
    gate = _gate(db_path)

    owner = gate.create_account(" Maria@Example.com ", "segredo1")

    assert gate.current_owner == owner
    assert owner.email == "maria@example.com"
    assert owner.uid


def test_sign_in_and_out(db_path):
    created = _gate(db_path).create_account("maria@example.com", "segredo1")
    gate = _gate(db_path)

    owner = gate.sign_in("MARIA@example.com", "segredo1")
    assert owner == created

    gate.sign_out()
    assert gate.current_owner is None


def test_account_errors(db_path):
    gate = _gate(db_path)
    gate.create_account("maria@example.com", "segredo1")

    assert _error_code(lambda: gate.create_account("maria", "segredo1")) == "invalid-email"
    assert _error_code(lambda: gate.create_account("joao@example.com", "123")) == "weak-password"
    assert _error_code(lambda: gate.create_account("maria@example.com", "outra-senha")) == "email-already-in-use"


def test_sign_in_errors(db_path):
    gate = _gate(db_path)
    owner = gate.create_account("maria@example.com", "segredo1")
    gate.sign_out()

    assert _error_code(lambda: gate.sign_in("not-an-email", "segredo1")) == "invalid-email"
    assert _error_code(lambda: gate.sign_in("joao@example.com", "segredo1")) == "user-not-found"
    assert _error_code(lambda: gate.sign_in("maria@example.com", "errada")) == "wrong-password"

    disable_user(db_path, owner.uid)
    assert _error_code(lambda: gate.sign_in("maria@example.com", "segredo1")) == "user-disabled"
    assert gate.current_owner is None


def test_unknown_code_maps_to_generic_message():
    error = AuthError("auth/something-new")

    assert error.code == "unknown"
    assert "desconhecido" in error.message


def test_remember_me_stores_a_token_not_the_password(db_path):
    cache = InMemoryCredentialCache()
    owner = _gate(db_path).create_account("maria@example.com", "segredo1")

    _gate(db_path, cache).sign_in("maria@example.com", "segredo1", remember=True)

    assert cache.token
    assert "segredo1" not in cache.token
    assert "maria" not in cache.token
    assert _gate(db_path, cache).restore() == owner


def test_sign_in_without_remember_clears_cache(db_path):
    cache = InMemoryCredentialCache()
    _gate(db_path).create_account("maria@example.com", "segredo1")
    _gate(db_path, cache).sign_in("maria@example.com", "segredo1", remember=True)

    _gate(db_path, cache).sign_in("maria@example.com", "segredo1", remember=False)

    assert cache.load() is None


def test_sign_out_forgets_remembered_session(db_path):
    cache = InMemoryCredentialCache()
    _gate(db_path).create_account("maria@example.com", "segredo1")
    gate = _gate(db_path, cache)
    gate.sign_in("maria@example.com", "segredo1", remember=True)

    gate.sign_out()

    assert cache.load() is None
    assert _gate(db_path, cache).restore() is None


def test_tampered_or_expired_token_is_discarded(db_path):
    owner = _gate(db_path).create_account("maria@example.com", "segredo1")

    tampered = InMemoryCredentialCache()
    tampered.save("not-a-token")
    assert _gate(db_path, tampered).restore() is None
    assert tampered.load() is None

    expired = InMemoryCredentialCache()
    expired.save(issue_remember_token(SECRET, owner.uid, issued_at=int(time.time()) - 3600))
    assert _gate(db_path, expired, remember_seconds=60).restore() is None
    assert expired.load() is None

    foreign = InMemoryCredentialCache()
    foreign.save(issue_remember_token("other-secret", owner.uid))
    assert _gate(db_path, foreign).restore() is None


def test_disabled_account_cannot_be_restored(db_path):
    cache = InMemoryCredentialCache()
    owner = _gate(db_path).create_account("maria@example.com", "segredo1")
    _gate(db_path, cache).sign_in("maria@example.com", "segredo1", remember=True)

    disable_user(db_path, owner.uid)

    assert _gate(db_path, cache).restore() is None


def test_restore_from_bootstrap_token(db_path):
    creator = _gate(db_path)
    owner = creator.create_account("maria@example.com", "segredo1")
    token = issue_remember_token(SECRET, owner.uid)

    gate = _gate(db_path)

    assert gate.restore(bootstrap_token="garbage") is None
    assert gate.restore(bootstrap_token=token) == owner
    assert gate.current_owner == owner


def test_file_credential_cache(tmp_path):
    cache = FileCredentialCache(tmp_path / "session" / "token")
    assert cache.load() is None

    cache.save("abc")
    assert cache.load() == "abc"

    cache.clear()
    assert cache.load() is None
    cache.clear()
