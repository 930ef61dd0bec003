"""
Trade Matcher Utility Functions

Pure helpers for money rounding, lenient date/time parsing, durations and
persistence keys.
"""

import math
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

CENT = Decimal("0.01")

# Broker export formats seen in the wild, tried in order.
DATE_FORMATS = (
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%d-%b-%Y",
    "%b %d, %Y",
)

TIME_FORMATS = (
    "%H:%M:%S",
    "%H:%M",
    "%H:%M:%S.%f",
    "%I:%M:%S %p",
    "%I:%M %p",
)


def round2(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Any:
    """
    Convert a numeric input to Decimal without binary float drift.

    Floats go through their shortest repr, so 0.1 becomes Decimal("0.1").
    Values that are not numbers are returned untouched for pydantic to reject.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, (int, str)):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation:
            return value
    return value


def parse_trade_date(value: Any) -> Optional[date]:
    """
    Parse an execution date leniently.

    Args:
        value: date, datetime, or string in one of DATE_FORMATS / ISO 8601

    Returns:
        Calendar date, or None if the value is empty or unparsable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    cleaned = value.strip()
    if not cleaned:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        return None


def parse_trade_time(value: Any) -> Optional[time]:
    """
    Parse an execution time-of-day leniently.

    Args:
        value: time, datetime, or string in one of TIME_FORMATS

    Returns:
        Time of day, or None if the value is empty or unparsable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        return None

    cleaned = value.strip()
    if not cleaned:
        return None

    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(cleaned.upper(), fmt).time()
        except ValueError:
            continue
    return None


def compute_duration_minutes(
    opening_date: Optional[date],
    opening_time: Optional[time],
    closing_date: Optional[date],
    closing_time: Optional[time],
) -> Optional[int]:
    """
    Whole minutes from the opening instant to the closing instant.

    Negative when the closing leg happened first (a short that was covered).
    Half minutes round up.

    Returns:
        Minutes, or None unless both legs carry a date and a time of day
    """
    if None in (opening_date, opening_time, closing_date, closing_time):
        return None

    opened = datetime.combine(opening_date, opening_time)
    closed = datetime.combine(closing_date, closing_time)
    seconds = (closed - opened).total_seconds()
    return math.floor(seconds / 60 + 0.5)


def round_trip_key(user_id: str, round_trip) -> Tuple[str, str, Optional[str], Optional[str]]:
    """Upsert key for a matched round trip: (user, instrument, buy id, sell id)."""
    return (
        user_id,
        round_trip.instrument_id,
        round_trip.buy_execution_id,
        round_trip.sell_execution_id,
    )


def open_lot_key(user_id: str, open_lot) -> Tuple[str, str, Optional[str]]:
    """Upsert key for an open lot: (user, instrument, execution id)."""
    return (user_id, open_lot.instrument_id, open_lot.execution_id)


def keep_last_by_key(rows: Dict[Tuple, Any], key: Tuple, row: Any) -> None:
    """Store `row` under an upsert key so a later row replaces an earlier one.

    Keys with a missing execution id never collide (PostgreSQL treats NULLs
    as distinct), so each such row gets a slot of its own.
    """
    if None in key[2:]:
        rows[(len(rows),) + key] = row
    else:
        rows[key] = row
