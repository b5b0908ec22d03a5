from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum

from glicemia.analytics import StatisticsSummary, summarize
from glicemia.errors import InvalidRange, SubscriptionError
from glicemia.models import ReadingRecord, Window
from glicemia.store import DEFAULT_LIMIT, Document, DocumentStore, HistoryQuery, Subscription
from glicemia.validation import parse_calendar_date

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59)


def window_for(start_date: date | str, end_date: date | str) -> Window:
    """Inclusive window from the start of ``start_date`` to 23:59:59 of ``end_date``."""
    try:
        start_day = parse_calendar_date(start_date)
        end_day = parse_calendar_date(end_date)
    except (TypeError, ValueError) as exc:
        raise InvalidRange("Data do filtro inválida.") from exc
    if start_day > end_day:
        raise InvalidRange("A data inicial deve ser anterior ou igual à data final.")
    return Window(datetime.combine(start_day, time.min), datetime.combine(end_day, END_OF_DAY))


class ViewStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class HistoryState:
    status: ViewStatus
    records: tuple[ReadingRecord, ...] = ()
    error: SubscriptionError | None = None


class LiveHistoryView:
    """Keeps at most one live subscription for the current owner and window."""

    def __init__(self, store: DocumentStore, limit: int = DEFAULT_LIMIT) -> None:
        self.store = store
        self.limit = limit
        self._lock = threading.RLock()
        self._subscription: Subscription | None = None
        self._scope: tuple[str, Window] | None = None
        self._generation = 0
        self._state = HistoryState(ViewStatus.IDLE)

    @property
    def state(self) -> HistoryState:
        with self._lock:
            return self._state

    @property
    def records(self) -> tuple[ReadingRecord, ...]:
        return self.state.records

    @property
    def summary(self) -> StatisticsSummary:
        return summarize(self.records)

    def show(self, owner: str | None, window: Window) -> None:
        """Point the view at ``owner`` and ``window``, re-subscribing only if either changed."""
        if owner is None:
            self.close()
            return

        scope = (owner, window)
        with self._lock:
            if scope == self._scope:
                return
            previous = self._subscription
            self._generation += 1
            generation = self._generation
            self._scope = scope
            self._subscription = None
            self._state = HistoryState(ViewStatus.LOADING)
        if previous is not None:
            previous.close()

        subscription = self.store.subscribe(
            HistoryQuery(owner=owner, window=window, limit=self.limit),
            on_snapshot=lambda documents: self._on_snapshot(generation, documents),
            on_error=lambda error: self._on_error(generation, error),
        )
        with self._lock:
            if generation == self._generation:
                self._subscription = subscription
                return
        # superseded by a concurrent show()/close() while subscribing
        subscription.close()

    def close(self) -> None:
        with self._lock:
            previous = self._subscription
            self._generation += 1
            self._subscription = None
            self._scope = None
            self._state = HistoryState(ViewStatus.IDLE)
        if previous is not None:
            previous.close()

    def _on_snapshot(self, generation: int, documents: list[Document]) -> None:
        records = tuple(ReadingRecord.from_document(doc.id, doc.fields, doc.timestamp) for doc in documents)
        with self._lock:
            if generation != self._generation:
                return
            self._state = HistoryState(ViewStatus.READY, records)

    def _on_error(self, generation: int, error: SubscriptionError) -> None:
        with self._lock:
            if generation != self._generation:
                return
            logger.error("History subscription stopped: %s", error.code)
            self._state = HistoryState(ViewStatus.ERROR, error=error)
