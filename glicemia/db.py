import sqlite3
from datetime import datetime, timezone
from pathlib import Path

DB_PATH = Path("data/app.db")


def get_connection(db_path: Path = DB_PATH) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Path = DB_PATH) -> None:
    with get_connection(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                uid TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                password_salt TEXT NOT NULL,
                password_hash TEXT NOT NULL,
                data_salt TEXT NOT NULL,
                disabled INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                id TEXT PRIMARY KEY,
                app_id TEXT NOT NULL,
                owner TEXT NOT NULL,
                observed_at TEXT NOT NULL,
                payload_encrypted TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS records_scope_time ON records(app_id, owner, observed_at)"
        )


def get_user_by_email(email: str, db_path: Path = DB_PATH) -> dict | None:
    with get_connection(db_path) as conn:
        row = conn.execute(
            """
            SELECT uid, email, password_salt, password_hash, data_salt, disabled, created_at
            FROM users WHERE email = ?
            """,
            (email,),
        ).fetchone()
    return dict(row) if row else None


def get_user_by_id(uid: str, db_path: Path = DB_PATH) -> dict | None:
    with get_connection(db_path) as conn:
        row = conn.execute(
            """
            SELECT uid, email, password_salt, password_hash, data_salt, disabled, created_at
            FROM users WHERE uid = ?
            """,
            (uid,),
        ).fetchone()
    return dict(row) if row else None


def create_user(
    uid: str,
    email: str,
    password_salt: str,
    password_hash: str,
    data_salt: str,
    db_path: Path = DB_PATH,
) -> None:
    now = datetime.now(timezone.utc).isoformat()
    with get_connection(db_path) as conn:
        conn.execute(
            """
            INSERT INTO users(uid, email, password_salt, password_hash, data_salt, disabled, created_at)
            VALUES (?, ?, ?, ?, ?, 0, ?)
            """,
            (uid, email, password_salt, password_hash, data_salt, now),
        )


def insert_record(
    record_id: str,
    app_id: str,
    owner: str,
    observed_at: str,
    payload_encrypted: str,
    db_path: Path = DB_PATH,
) -> None:
    now = datetime.now(timezone.utc).isoformat()
    with get_connection(db_path) as conn:
        conn.execute(
            """
            INSERT INTO records(id, app_id, owner, observed_at, payload_encrypted, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (record_id, app_id, owner, observed_at, payload_encrypted, now),
        )


def load_records(
    app_id: str,
    owner: str,
    start: str,
    end: str,
    limit: int,
    db_path: Path = DB_PATH,
) -> list[dict]:
    """Rows of one owner partition with ``start <= observed_at <= end``, newest first."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """
            SELECT id, owner, observed_at, payload_encrypted
            FROM records
            WHERE app_id = ? AND owner = ? AND observed_at >= ? AND observed_at <= ?
            ORDER BY observed_at DESC, created_at DESC
            LIMIT ?
            """,
            (app_id, owner, start, end, limit),
        ).fetchall()
    return [dict(row) for row in rows]
