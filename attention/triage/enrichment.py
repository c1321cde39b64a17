"""
Deterministic enrichment.

Runs when a work item is first observed: carries direct foreign keys over
as entity links, matches e-mail domains against known companies, and
assigns reason codes and a base triage priority. Nothing here calls out to
a model; AI enrichment lands separately as item_extracts rows.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from attention.priority import calculators as calc
from attention.priority.config import V1_CONFIG, PriorityConfig
from attention.priority.types import SourceType
from attention.state_store import Session
from attention.triage.links import SUMMARY_EXTRACT
from attention.triage.models import LinkReason, ReasonCode

logger = logging.getLogger(__name__)

GENERIC_EMAIL_DOMAINS = frozenset(
    {
        "gmail.com",
        "googlemail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "icloud.com",
        "aol.com",
        "protonmail.com",
        "mail.com",
        "live.com",
        "msn.com",
    }
)

DIRECT_LINK_CONFIDENCE = 1.0
INBOX_DOMAIN_CONFIDENCE = 0.9
CALENDAR_DOMAIN_CONFIDENCE = 0.85

SOURCE_PRIORITY = {
    SourceType.INBOX: 5,
    SourceType.COMMITMENT: 4,
    SourceType.CALENDAR_EVENT: 3,
    SourceType.TASK: 2,
}

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")


def normalize_domain(value: str | None) -> str | None:
    """'https://www.Acme.io/about' -> 'acme.io'; e-mail addresses keep the host part."""
    if not value:
        return None
    domain = value.strip().lower()
    if "@" in domain:
        domain = domain.rsplit("@", 1)[1]
    domain = _SCHEME_RE.sub("", domain)
    domain = domain.split("/", 1)[0].split("?", 1)[0].split(":", 1)[0]
    if domain.startswith("www."):
        domain = domain[4:]
    return domain or None


@dataclass(frozen=True)
class ProposedLink:
    target_type: str
    target_id: str
    link_reason: LinkReason
    confidence: float


@dataclass
class EnrichmentResult:
    priority: int
    reason_codes: list[str] = field(default_factory=list)
    links: list[ProposedLink] = field(default_factory=list)

    def add_reason(self, code: ReasonCode) -> None:
        if code.value not in self.reason_codes:
            self.reason_codes.append(code.value)


class DomainIndex:
    """primary_domain -> company, for one owner's portfolio and pipeline."""

    def __init__(self, session: Session, created_by: str):
        self._by_domain: dict[str, tuple[str, str]] = {}
        # Pipeline first so a portfolio company with the same domain wins
        for table, target_type in (("pipeline_companies", "pipeline_company"), ("companies", "company")):
            for row in session.find(table, {"created_by": created_by}):
                domain = normalize_domain(row.get("primary_domain"))
                if domain:
                    self._by_domain[domain] = (target_type, row["id"])

    def match(self, addresses: Iterable[str | None]) -> tuple[str, str] | None:
        for address in addresses:
            domain = normalize_domain(address)
            if not domain or domain in GENERIC_EMAIL_DOMAINS:
                continue
            hit = self._by_domain.get(domain)
            if hit:
                return hit
        return None


def _link_direct(result: EnrichmentResult, target_type: str, target_id: str | None) -> bool:
    if not target_id:
        return False
    result.links.append(ProposedLink(target_type, target_id, LinkReason.DIRECT_LINK, DIRECT_LINK_CONFIDENCE))
    return True


def _is_stale(value, now: datetime, threshold_days: int) -> bool:
    days = calc.days_since(value, now)
    return days is not None and days >= threshold_days


def _enrich_inbox(record, session, created_by, now, config) -> EnrichmentResult:
    result = EnrichmentResult(priority=SOURCE_PRIORITY[SourceType.INBOX])
    if not _link_direct(result, "company", record.get("related_company_id")):
        hit = DomainIndex(session, created_by).match([record.get("from_email")])
        if hit:
            result.links.append(ProposedLink(hit[0], hit[1], LinkReason.DOMAIN_MATCH, INBOX_DOMAIN_CONFIDENCE))
        else:
            result.add_reason(ReasonCode.UNLINKED_COMPANY)
    has_summary = session.count(
        "item_extracts",
        "created_by = ? AND source_type = ? AND source_id = ? AND extract_type = ?",
        [created_by, SourceType.INBOX.value, record["id"], SUMMARY_EXTRACT],
    )
    if not has_summary:
        result.add_reason(ReasonCode.MISSING_SUMMARY)
    return result


def _attendee_emails(attendees) -> list[str]:
    emails = []
    for attendee in attendees if isinstance(attendees, list) else []:
        if isinstance(attendee, dict):
            emails.append(attendee.get("email"))
        elif isinstance(attendee, str):
            emails.append(attendee)
    return emails


def _enrich_calendar(record, session, created_by, now, config) -> EnrichmentResult:
    result = EnrichmentResult(priority=SOURCE_PRIORITY[SourceType.CALENDAR_EVENT])
    if not _link_direct(result, "company", record.get("company_id")):
        hit = DomainIndex(session, created_by).match(_attendee_emails(record.get("attendees")))
        if hit:
            result.links.append(ProposedLink(hit[0], hit[1], LinkReason.DOMAIN_MATCH, CALENDAR_DOMAIN_CONFIDENCE))
        else:
            result.add_reason(ReasonCode.UNLINKED_COMPANY)
    return result


def _enrich_task(record, session, created_by, now, config) -> EnrichmentResult:
    result = EnrichmentResult(priority=SOURCE_PRIORITY[SourceType.TASK])
    linked_project = _link_direct(result, "project", record.get("project_id"))
    linked_company = _link_direct(result, "company", record.get("company_id"))
    if not (linked_project or linked_company):
        result.add_reason(ReasonCode.UNLINKED_COMPANY)
    if _is_stale(record.get("last_touched_at") or record.get("created_at"), now, config.task_stale_threshold):
        result.add_reason(ReasonCode.STALE)
    return result


def _enrich_commitment(record, session, created_by, now, config) -> EnrichmentResult:
    result = EnrichmentResult(priority=SOURCE_PRIORITY[SourceType.COMMITMENT])
    if not _link_direct(result, "company", record.get("company_id")):
        result.add_reason(ReasonCode.UNLINKED_COMPANY)
    if not record.get("task_id"):
        result.add_reason(ReasonCode.NO_NEXT_ACTION)
    return result


def _enrich_reading(record, session, created_by, now, config) -> EnrichmentResult:
    result = EnrichmentResult(priority=1)
    if not _link_direct(result, "project", record.get("project_id")):
        result.add_reason(ReasonCode.UNLINKED_COMPANY)
    return result


def _enrich_portfolio(record, session, created_by, now, config) -> EnrichmentResult:
    result = EnrichmentResult(priority=1)
    if calc.days_since(record.get("last_interaction_at"), now) is None or _is_stale(
        record.get("last_interaction_at"), now, config.company_stale_threshold
    ):
        result.add_reason(ReasonCode.STALE)
    return result


def _enrich_pipeline(record, session, created_by, now, config) -> EnrichmentResult:
    result = EnrichmentResult(priority=1)
    if _is_stale(record.get("last_contacted_at"), now, config.company_stale_threshold):
        result.add_reason(ReasonCode.STALE)
    if not record.get("next_steps"):
        result.add_reason(ReasonCode.NO_NEXT_ACTION)
    return result


def _enrich_nonnegotiable(record, session, created_by, now, config) -> EnrichmentResult:
    return EnrichmentResult(priority=1)


def _enrich_project(record, session, created_by, now, config) -> EnrichmentResult:
    result = EnrichmentResult(priority=1)
    if _is_stale(record.get("last_touched_at"), now, config.task_stale_threshold):
        result.add_reason(ReasonCode.STALE)
    return result


Enricher = Callable[[dict, Session, str, datetime, PriorityConfig], EnrichmentResult]

ENRICHERS: dict[SourceType, Enricher] = {
    SourceType.TASK: _enrich_task,
    SourceType.INBOX: _enrich_inbox,
    SourceType.CALENDAR_EVENT: _enrich_calendar,
    SourceType.COMMITMENT: _enrich_commitment,
    SourceType.PORTFOLIO_COMPANY: _enrich_portfolio,
    SourceType.PIPELINE_COMPANY: _enrich_pipeline,
    SourceType.READING_ITEM: _enrich_reading,
    SourceType.NONNEGOTIABLE: _enrich_nonnegotiable,
    SourceType.PROJECT: _enrich_project,
}

_missing = set(SourceType) - set(ENRICHERS)
if _missing:
    raise ImportError(f"No enricher for source type(s): {sorted(m.value for m in _missing)}")


def enrich(
    source_type: SourceType,
    record: dict,
    session: Session,
    created_by: str,
    now: datetime,
    config: PriorityConfig = V1_CONFIG,
) -> EnrichmentResult:
    result = ENRICHERS[source_type](record, session, created_by, now, config)
    logger.debug(
        "Enriched %s/%s: reasons=%s links=%d",
        source_type.value,
        record.get("id"),
        result.reason_codes,
        len(result.links),
    )
    return result
