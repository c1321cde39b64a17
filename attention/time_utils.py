"""
Timestamp helpers.

All timestamps are stored as ISO 8601 UTC with millisecond precision and a
Z suffix (YYYY-MM-DDTHH:MM:SS.sssZ), so stored values sort as strings.
"""

import logging
from datetime import UTC, date, datetime, time

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(dt: datetime) -> str:
    """Aware or naive-UTC datetime -> canonical stored form."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value) -> datetime | None:
    """ISO-8601 string, date or datetime -> aware UTC datetime, or None.

    Naive values are taken as UTC; a bare date is midnight UTC. Anything
    unparseable returns None rather than raising.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable timestamp %r", value)
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
