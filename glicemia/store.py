"""Owner-partitioned document store with live query subscriptions.

Documents are kept in SQLite with their payload encrypted per owner. A
subscription re-runs its query whenever the owner's partition is written
and hands the full matching set to its callback when that set changed.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

from cryptography.fernet import Fernet, InvalidToken

from glicemia.db import DB_PATH, get_user_by_id, init_db, insert_record, load_records
from glicemia.errors import SubscriptionError, WriteError
from glicemia.models import Window
from glicemia.security import build_fernet

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


@dataclass(frozen=True)
class Document:
    id: str
    fields: dict[str, Any] = field(hash=False)
    timestamp: datetime


@dataclass(frozen=True)
class HistoryQuery:
    owner: str
    window: Window
    limit: int = DEFAULT_LIMIT


SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[SubscriptionError], None]


class Subscription:
    """Live result set of one query; ``close()`` stops all further deliveries."""

    def __init__(
        self,
        store: "DocumentStore",
        query: HistoryQuery,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> None:
        self.query = query
        self._store = store
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._lock = threading.RLock()
        self._closed = False
        self._last_ids: tuple[str, ...] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        # waits for an in-flight delivery, so nothing arrives after this returns
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._store._discard(self)
        logger.debug("Subscription closed for owner %s", self.query.owner)

    def refresh(self) -> None:
        failed = False
        with self._lock:
            if self._closed:
                return
            try:
                documents = self._store._run_query(self.query)
            except SubscriptionError as error:
                logger.warning("Subscription for owner %s failed: %s", self.query.owner, error.code)
                self._closed = True
                failed = True
                self._on_error(error)
            else:
                ids = tuple(doc.id for doc in documents)
                if ids != self._last_ids:
                    self._last_ids = ids
                    self._on_snapshot(documents)
        if failed:
            self._store._discard(self)


class DocumentStore:
    def __init__(self, db_path: Path = DB_PATH, app_id: str = "default-app-id", secret: str = "") -> None:
        self.db_path = db_path
        self.app_id = app_id
        self._secret = secret
        self._lock = threading.RLock()
        self._subscriptions: weakref.WeakSet[Subscription] = weakref.WeakSet()
        self._fernets: dict[str, Fernet] = {}
        init_db(db_path)

    @classmethod
    def from_environment(cls, env) -> "DocumentStore":
        return cls(db_path=env.db_path, app_id=env.app_id, secret=env.app_secret)

    def _owner_fernet(self, owner: str) -> Fernet | None:
        with self._lock:
            cached = self._fernets.get(owner)
        if cached is not None:
            return cached
        user = get_user_by_id(owner, self.db_path)
        if user is None:
            return None
        fernet = build_fernet(self._secret, user["data_salt"])
        with self._lock:
            self._fernets[owner] = fernet
        return fernet

    def create_document(self, owner: str, fields: dict[str, Any], timestamp: datetime) -> str:
        """Store one document in the owner's partition and return its new id."""
        try:
            fernet = self._owner_fernet(owner)
        except sqlite3.Error as exc:
            logger.exception("Could not resolve owner %s", owner)
            raise WriteError() from exc
        if fernet is None:
            raise WriteError("Sem permissão para salvar registros para esta conta.")

        doc_id = uuid4().hex
        encrypted = fernet.encrypt(json.dumps(fields, ensure_ascii=False).encode("utf-8")).decode("utf-8")
        try:
            insert_record(
                doc_id,
                self.app_id,
                owner,
                timestamp.isoformat(timespec="seconds"),
                encrypted,
                db_path=self.db_path,
            )
        except sqlite3.Error as exc:
            logger.exception("Could not store document for owner %s", owner)
            raise WriteError() from exc

        logger.info("Stored document %s for owner %s", doc_id, owner)
        self._notify(owner)
        return doc_id

    def subscribe(self, query: HistoryQuery, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Subscription:
        """Open a live query; the first snapshot (or error) is delivered before this returns."""
        subscription = Subscription(self, query, on_snapshot, on_error)
        with self._lock:
            self._subscriptions.add(subscription)
        logger.debug(
            "Subscription opened for owner %s (%s .. %s, limit %d)",
            query.owner,
            query.window.start,
            query.window.end,
            query.limit,
        )
        subscription.refresh()
        return subscription

    def active_subscriptions(self, owner: str | None = None) -> list[Subscription]:
        with self._lock:
            return [
                sub
                for sub in self._subscriptions
                if not sub.closed and (owner is None or sub.query.owner == owner)
            ]

    def _discard(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)

    def _notify(self, owner: str) -> None:
        for subscription in self.active_subscriptions(owner):
            subscription.refresh()

    def _run_query(self, query: HistoryQuery) -> list[Document]:
        try:
            fernet = self._owner_fernet(query.owner)
            if fernet is None:
                raise SubscriptionError("permission-denied")
            rows = load_records(
                self.app_id,
                query.owner,
                query.window.start.isoformat(timespec="seconds"),
                query.window.end.isoformat(timespec="seconds"),
                query.limit,
                db_path=self.db_path,
            )
        except sqlite3.Error as exc:
            raise SubscriptionError("unavailable") from exc

        documents: list[Document] = []
        for row in rows:
            try:
                decrypted = fernet.decrypt(row["payload_encrypted"].encode("utf-8"))
            except InvalidToken as exc:
                raise SubscriptionError("data-loss") from exc
            documents.append(
                Document(
                    id=row["id"],
                    fields=json.loads(decrypted.decode("utf-8")),
                    timestamp=datetime.fromisoformat(row["observed_at"]),
                )
            )
        return documents
