from datetime import date, datetime, time
from pathlib import Path
from uuid import uuid4

import pytest

from glicemia.db import create_user, get_connection, init_db
from glicemia.models import ReadingRecord
from glicemia.security import generate_salt
from glicemia.store import DocumentStore

SECRET = "test-secret"


def add_owner(db_path: Path, email: str | None = None) -> str:
    uid = uuid4().hex
    init_db(db_path)
    create_user(uid, email or f"{uid}@example.com", generate_salt(), "unused-hash", generate_salt(), db_path)
    return uid


def disable_user(db_path: Path, uid: str) -> None:
    with get_connection(db_path) as conn:
        conn.execute("UPDATE users SET disabled = 1 WHERE uid = ?", (uid,))


def make_record(value: str, when: datetime | None = None) -> ReadingRecord:
    when = when or datetime(2024, 3, 5, 8, 30)
    return ReadingRecord(
        id=uuid4().hex,
        glycemia_value=value,
        calendar_date=when.date(),
        clock_time=when.time(),
        observed_at=when,
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "app.db"


@pytest.fixture
def store(db_path: Path) -> DocumentStore:
    return DocumentStore(db_path=db_path, app_id="test-app", secret=SECRET)


@pytest.fixture
def owner(db_path: Path, store: DocumentStore) -> str:
    return add_owner(db_path)


@pytest.fixture
def day() -> date:
    return date(2024, 3, 5)


@pytest.fixture
def morning() -> time:
    return time(8, 30)
