"""
Deterministic enrichment: links, reason codes and base priority per source.
"""

from datetime import timedelta

import pytest

from attention.priority.types import SourceType
from attention.triage.enrichment import DomainIndex, normalize_domain
from tests.fixtures import fixture_db as fx
from tests.fixtures.fixture_db import NOW, USER, seed, ts


def links_of(machine, source_type, source_id):
    return [
        (link.target_type, link.target_id, link.link_reason, link.confidence)
        for link in machine.links.list_for(source_type, source_id, USER)
    ]


class TestNormalizeDomain:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("ana@Acme.io", "acme.io"),
            ("https://www.acme.io/about", "acme.io"),
            ("acme.io:443", "acme.io"),
            ("  WWW.Globex.com ", "globex.com"),
            ("", None),
            (None, None),
        ],
    )
    def test_forms(self, raw, expected):
        assert normalize_domain(raw) == expected


class TestDomainIndex:
    def test_generic_domains_never_match(self, store):
        seed(store, "companies", fx.company(primary_domain="gmail.com"))
        with store.session() as s:
            assert DomainIndex(s, USER).match(["someone@gmail.com"]) is None

    def test_portfolio_wins_over_pipeline(self, store):
        seed(store, "companies", fx.company(primary_domain="shared.io"))
        seed(store, "pipeline_companies", fx.pipeline_company(primary_domain="https://shared.io"))
        with store.session() as s:
            assert DomainIndex(s, USER).match(["x@shared.io"]) == ("company", "company-1")


class TestSourceEnrichment:
    def test_inbox_direct_company(self, store, machine):
        seed(store, "inbox_items", fx.inbox_item(related_company_id="company-9", from_email="a@b.com"))
        item = machine.ensure_work_item(SourceType.INBOX, "inbox-1", USER, NOW)
        assert links_of(machine, "inbox", "inbox-1") == [("company", "company-9", "direct_link", 1.0)]
        assert item.reason_codes == ["missing_summary"]

    def test_inbox_with_existing_summary(self, store, machine):
        seed(store, "inbox_items", fx.inbox_item(from_email="x@gmail.com"))
        machine.extracts.upsert(USER, "inbox", "inbox-1", "summary", {"one_liner": "hi"}, now=NOW)
        item = machine.ensure_work_item(SourceType.INBOX, "inbox-1", USER, NOW)
        assert item.reason_codes == ["unlinked_company"]

    def test_calendar_attendee_matches_pipeline(self, store, machine):
        seed(store, "pipeline_companies", fx.pipeline_company())
        seed(store, "calendar_events", fx.calendar_event(attendees=[{"email": "me@gmail.com"}, "ceo@globex.com"]))
        item = machine.ensure_work_item(SourceType.CALENDAR_EVENT, "event-1", USER, NOW)
        assert links_of(machine, "calendar_event", "event-1") == [
            ("pipeline_company", "pipe-1", "domain_match", 0.85)
        ]
        assert item.priority == 3
        assert item.reason_codes == []

    def test_calendar_without_match(self, store, machine):
        seed(store, "calendar_events", fx.calendar_event())
        item = machine.ensure_work_item(SourceType.CALENDAR_EVENT, "event-1", USER, NOW)
        assert item.reason_codes == ["unlinked_company"]

    def test_task_links_project_and_company(self, store, machine):
        seed(store, "tasks", fx.task(project_id="project-1", company_id="company-1", last_touched_at=ts(-timedelta(days=1))))
        item = machine.ensure_work_item(SourceType.TASK, "task-1", USER, NOW)
        assert {(t, i) for t, i, _, _ in links_of(machine, "task", "task-1")} == {
            ("project", "project-1"),
            ("company", "company-1"),
        }
        assert item.reason_codes == []
        assert item.priority == 2

    def test_stale_unlinked_task(self, store, machine):
        seed(store, "tasks", fx.task(last_touched_at=ts(-timedelta(days=7))))
        item = machine.ensure_work_item(SourceType.TASK, "task-1", USER, NOW)
        assert item.reason_codes == ["unlinked_company", "stale"]

    def test_commitment_with_company_and_task(self, store, machine):
        seed(store, "commitments", fx.commitment(company_id="company-1", task_id="task-1"))
        item = machine.ensure_work_item(SourceType.COMMITMENT, "commit-1", USER, NOW)
        assert item.reason_codes == []
        assert item.priority == 4

    def test_reading_item(self, store, machine):
        seed(store, "reading_items", fx.reading_item())
        item = machine.ensure_work_item(SourceType.READING_ITEM, "read-1", USER, NOW)
        assert item.reason_codes == ["unlinked_company"]
        assert item.priority == 1

    def test_pipeline_company_without_next_steps(self, store, machine):
        seed(store, "pipeline_companies", fx.pipeline_company(last_contacted_at=ts(-timedelta(days=20))))
        item = machine.ensure_work_item(SourceType.PIPELINE_COMPANY, "pipe-1", USER, NOW)
        assert item.reason_codes == ["stale", "no_next_action"]

    def test_portfolio_company_never_contacted_is_stale(self, store, machine):
        seed(store, "companies", fx.company(last_interaction_at=None))
        item = machine.ensure_work_item(SourceType.PORTFOLIO_COMPANY, "company-1", USER, NOW)
        assert item.reason_codes == ["stale"]

    def test_nonnegotiable_has_nothing_to_flag(self, store, machine):
        seed(store, "nonnegotiables", fx.nonnegotiable())
        item = machine.ensure_work_item(SourceType.NONNEGOTIABLE, "nn-1", USER, NOW)
        assert item.reason_codes == []
