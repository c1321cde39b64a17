"""
Log formatters for the engine.

The fields that identify what a log line is about (work item, source,
owner, priority config) are lifted out of ``extra=`` and written as
first-class fields, so a guard refusal or a skipped record can be found
by id. Anything else passed through ``extra=`` lands under "extra".
"""

import json
import logging
import sys
from datetime import UTC, datetime

from attention.time_utils import format_timestamp

from .context import get_request_id

PROMOTED_FIELDS = ("work_item_id", "source_type", "source_id", "created_by", "config")

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "tags"}


def _promoted(record: logging.LogRecord) -> dict:
    return {key: getattr(record, key) for key in PROMOTED_FIELDS if getattr(record, key, None) is not None}


def _other_extras(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and key not in PROMOTED_FIELDS
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": format_timestamp(datetime.fromtimestamp(record.created, UTC)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id
        entry.update(_promoted(record))
        extras = _other_extras(record)
        if extras:
            entry["extra"] = extras
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """One line per record; request id and promoted fields as a bracketed tag list."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s %(tags)s%(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        tags = [f"{key}={value}" for key, value in _promoted(record).items()]
        request_id = get_request_id()
        if request_id:
            tags.insert(0, request_id)
        record.tags = f"[{' '.join(tags)}] " if tags else ""
        return super().format(record)


def configure_logging(level: str | int = "INFO", json_format: bool | None = None) -> None:
    """Replace the root handlers with one stderr handler. JSON unless stderr is a terminal."""
    if json_format is None:
        json_format = not sys.stderr.isatty()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else HumanFormatter())
    logging.basicConfig(level=level.upper() if isinstance(level, str) else level, handlers=[handler], force=True)
