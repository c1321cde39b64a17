"""
Entity link and item extract registries.

Both tables are keyed by natural unique tuples enforced by the schema, so
writing the same key twice updates the existing row. That is what makes
linking safe to retry.

Every method takes an optional ``session`` so callers can run it inside
their own transaction.
"""

import logging
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from typing import Protocol

from attention.state_store import RecordStore, Session
from attention.time_utils import format_timestamp, utc_now
from attention.triage.models import EntityLink, ItemExtract, LinkReason

logger = logging.getLogger(__name__)

_LINK_KEY = ("source_type", "source_id", "target_type", "target_id", "created_by")
_EXTRACT_KEY = ("created_by", "source_type", "source_id", "extract_type")

SUMMARY_EXTRACT = "summary"


class _Registry:
    def __init__(self, store: RecordStore):
        self.store = store

    @contextmanager
    def _session(self, session: Session | None) -> Generator[Session, None, None]:
        if session is not None:
            yield session
        else:
            with self.store.session() as s:
                yield s


class EntityLinkRegistry(_Registry):
    def link(
        self,
        created_by: str,
        source_type: str,
        source_id: str,
        target_type: str,
        target_id: str,
        link_reason: LinkReason | str = LinkReason.MANUAL,
        confidence: float | None = None,
        now: datetime | None = None,
        session: Session | None = None,
    ) -> EntityLink:
        """Create or update the link for this exact key and return it."""
        stamp = format_timestamp(now or utc_now())
        reason = LinkReason(link_reason).value
        if confidence is not None and not 0.0 <= confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {confidence!r}")
        row = {
            "id": uuid.uuid4().hex,
            "created_by": created_by,
            "source_type": source_type,
            "source_id": source_id,
            "target_type": target_type,
            "target_id": target_id,
            "link_reason": reason,
            "confidence": confidence,
            "created_at": stamp,
            "updated_at": stamp,
        }
        with self._session(session) as s:
            s.upsert(
                "entity_links",
                row,
                conflict_columns=_LINK_KEY,
                update_columns=("link_reason", "confidence", "updated_at"),
            )
            stored = s.find_one("entity_links", {k: row[k] for k in _LINK_KEY})
        logger.debug(
            "Linked %s/%s -> %s/%s (%s)", source_type, source_id, target_type, target_id, reason
        )
        return EntityLink.from_row(stored)

    def exists(
        self, source_type: str, source_id: str, created_by: str, session: Session | None = None
    ) -> bool:
        with self._session(session) as s:
            return (
                s.count(
                    "entity_links",
                    "created_by = ? AND source_type = ? AND source_id = ?",
                    [created_by, source_type, source_id],
                )
                > 0
            )

    def list_for(
        self, source_type: str, source_id: str, created_by: str, session: Session | None = None
    ) -> list[EntityLink]:
        with self._session(session) as s:
            rows = s.query(
                "SELECT * FROM entity_links "
                "WHERE created_by = ? AND source_type = ? AND source_id = ? "
                "ORDER BY COALESCE(confidence, 1.0) DESC, created_at, id",
                [created_by, source_type, source_id],
            )
        return [EntityLink.from_row(row) for row in rows]

    def primary_link(
        self, source_type: str, source_id: str, created_by: str, session: Session | None = None
    ) -> EntityLink | None:
        """Most confident link; manual links count as certain."""
        links = self.list_for(source_type, source_id, created_by, session)
        return links[0] if links else None


class ExtractLookup(Protocol):
    """The one question the trust guard asks about extracts."""

    def has_extract(
        self, source_type: str, source_id: str, created_by: str, session: Session | None = None
    ) -> bool: ...


class ExtractRegistry(_Registry):
    def upsert(
        self,
        created_by: str,
        source_type: str,
        source_id: str,
        extract_type: str,
        content: dict,
        now: datetime | None = None,
        session: Session | None = None,
    ) -> ItemExtract:
        if not extract_type:
            raise ValueError("extract_type is required")
        stamp = format_timestamp(now or utc_now())
        row = {
            "id": uuid.uuid4().hex,
            "created_by": created_by,
            "source_type": source_type,
            "source_id": source_id,
            "extract_type": extract_type,
            "content": content or {},
            "created_at": stamp,
            "updated_at": stamp,
        }
        with self._session(session) as s:
            s.upsert(
                "item_extracts",
                row,
                conflict_columns=_EXTRACT_KEY,
                update_columns=("content", "updated_at"),
            )
            stored = s.find_one("item_extracts", {k: row[k] for k in _EXTRACT_KEY})
        return ItemExtract.from_row(stored)

    def has_extract(
        self, source_type: str, source_id: str, created_by: str, session: Session | None = None
    ) -> bool:
        with self._session(session) as s:
            return (
                s.count(
                    "item_extracts",
                    "created_by = ? AND source_type = ? AND source_id = ?",
                    [created_by, source_type, source_id],
                )
                > 0
            )

    def list_for(
        self, source_type: str, source_id: str, created_by: str, session: Session | None = None
    ) -> list[ItemExtract]:
        with self._session(session) as s:
            rows = s.find(
                "item_extracts",
                {"created_by": created_by, "source_type": source_type, "source_id": source_id},
                order_by="extract_type",
            )
        return [ItemExtract.from_row(row) for row in rows]

    def one_liner(
        self, source_type: str, source_id: str, created_by: str, session: Session | None = None
    ) -> str | None:
        """The summary extract's one-line gist, if enrichment produced one."""
        with self._session(session) as s:
            row = s.find_one(
                "item_extracts",
                {
                    "created_by": created_by,
                    "source_type": source_type,
                    "source_id": source_id,
                    "extract_type": SUMMARY_EXTRACT,
                },
            )
        if not row or not isinstance(row.get("content"), dict):
            return None
        return row["content"].get("one_liner") or row["content"].get("summary")
