"""Typed records for glucose readings and history windows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Mapping

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
DISPLAY_TIME_FORMAT = "%H:%M"


@dataclass(frozen=True)
class ReadingRecord:
    """One glucose observation as stored for its owner."""

    id: str
    glycemia_value: str
    calendar_date: date
    clock_time: time
    observed_at: datetime

    @property
    def display_date(self) -> str:
        return self.calendar_date.strftime(DISPLAY_DATE_FORMAT)

    @property
    def display_time(self) -> str:
        return self.clock_time.strftime(DISPLAY_TIME_FORMAT)

    def to_fields(self) -> dict[str, str]:
        return {
            "glicemia": self.glycemia_value,
            "data": self.display_date,
            "hora": self.display_time,
        }

    @classmethod
    def from_document(cls, doc_id: str, fields: Mapping[str, Any], timestamp: datetime) -> "ReadingRecord":
        # date/time are always rebuilt from the indexed timestamp so they cannot drift from it
        return cls(
            id=doc_id,
            glycemia_value=str(fields.get("glicemia", "")),
            calendar_date=timestamp.date(),
            clock_time=timestamp.time().replace(second=0, microsecond=0),
            observed_at=timestamp,
        )


@dataclass(frozen=True)
class Window:
    """Inclusive [start, end] range of observation instants."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end
