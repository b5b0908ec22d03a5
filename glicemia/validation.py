from __future__ import annotations

import math
import re
from datetime import date, datetime, time

from glicemia.errors import AUTH_MESSAGES, InvalidDateTime, InvalidValue
from glicemia.models import DISPLAY_DATE_FORMAT

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_PASSWORD_LENGTH = 6


def validate_email(email: str) -> tuple[bool, str]:
    if not _EMAIL_RE.match(email.strip()):
        return False, AUTH_MESSAGES["invalid-email"]
    return True, ""


def validate_password(password: str) -> tuple[bool, str]:
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, AUTH_MESSAGES["weak-password"]
    return True, ""


def parse_glucose_text(raw: object) -> float | None:
    """Return the reading as a finite float, or None when it is not numeric.

    Accepts numbers and text; a comma works as decimal separator.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip().replace(",", ".")
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def validate_glucose_value(raw: object) -> float:
    value = parse_glucose_text(raw)
    if value is None or value <= 0:
        raise InvalidValue()
    return value


def parse_calendar_date(value: date | str) -> date:
    """Accept a ``date``, ``YYYY-MM-DD`` or ``DD/MM/YYYY``; raise ValueError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.strptime(text, DISPLAY_DATE_FORMAT).date()


def parse_clock_time(value: time | str) -> time:
    if isinstance(value, time):
        parsed = value
    else:
        parsed = time.fromisoformat(str(value).strip())
    return parsed.replace(second=0, microsecond=0, tzinfo=None)


def combine_observed_at(calendar_date: date | str, clock_time: time | str) -> datetime:
    try:
        return datetime.combine(parse_calendar_date(calendar_date), parse_clock_time(clock_time))
    except (TypeError, ValueError) as exc:
        raise InvalidDateTime() from exc
