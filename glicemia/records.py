from __future__ import annotations

import logging
from datetime import date, time
from typing import Sequence

import pandas as pd

from glicemia.analytics import classify
from glicemia.models import ReadingRecord
from glicemia.store import DocumentStore
from glicemia.validation import combine_observed_at, parse_glucose_text, validate_glucose_value

logger = logging.getLogger(__name__)

TABLE_COLUMNS = ["Glicemia", "Data", "Hora", "Status"]


class RecordWriter:
    """Validates one reading and writes it into the owner's partition."""

    def __init__(self, store: DocumentStore, owner: str) -> None:
        self.store = store
        self.owner = owner

    def save(self, raw_value: str, calendar_date: date | str, clock_time: time | str) -> str:
        """Return the new record id.

        Raises InvalidValue for a non-numeric or non-positive value and
        InvalidDateTime when date and time do not form a valid instant;
        nothing is written in either case.
        """
        validate_glucose_value(raw_value)
        observed_at = combine_observed_at(calendar_date, clock_time)

        record = ReadingRecord(
            id="",
            glycemia_value=str(raw_value).strip(),
            calendar_date=observed_at.date(),
            clock_time=observed_at.time(),
            observed_at=observed_at,
        )
        record_id = self.store.create_document(self.owner, record.to_fields(), observed_at)
        logger.info("Saved reading %s observed at %s", record_id, observed_at.isoformat(timespec="minutes"))
        return record_id


def to_dataframe(records: Sequence[ReadingRecord]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame(columns=TABLE_COLUMNS)
    rows = []
    for record in records:
        value = parse_glucose_text(record.glycemia_value)
        rows.append(
            {
                "Glicemia": f"{record.glycemia_value} mg/dL",
                "Data": record.display_date,
                "Hora": record.display_time,
                "Status": classify(value).value if value is not None else "",
            }
        )
    return pd.DataFrame(rows, columns=TABLE_COLUMNS)
