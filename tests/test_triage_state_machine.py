"""
Triage state machine tests: observation, transitions and the trust guard.

The guard is the invariant that matters: an item never reaches trusted
without an entity link, an extract, an explicit no-action decision or a
resolved commitment.
"""

import threading
from datetime import timedelta

import pytest

from attention.errors import SourceNotFoundError, TrustGuardViolation, WorkItemNotFoundError
from attention.priority.types import SourceType
from attention.state_store import RecordStore
from attention.triage import TriageStateMachine, WorkItemStatus
from tests.fixtures import fixture_db as fx
from tests.fixtures.fixture_db import NOW, OTHER_USER, USER, seed


@pytest.fixture
def acme(store):
    seed(store, "companies", fx.company())
    return "company-1"


@pytest.fixture
def unlinked_inbox(store, machine):
    """An inbox item from a generic domain: nothing links it anywhere."""
    seed(store, "inbox_items", fx.inbox_item(id="cold", from_email="someone@gmail.com"))
    return machine.ensure_work_item(SourceType.INBOX, "cold", USER, NOW)


class TestEnsureWorkItem:
    def test_new_item_lands_in_needs_review(self, unlinked_inbox):
        assert unlinked_inbox.status is WorkItemStatus.NEEDS_REVIEW
        assert unlinked_inbox.priority == 5
        assert unlinked_inbox.reason_codes == ["unlinked_company", "missing_summary"]

    def test_second_observation_returns_same_item(self, machine, unlinked_inbox):
        again = machine.ensure_work_item("inbox", "cold", USER, NOW + timedelta(hours=1))
        assert again.id == unlinked_inbox.id
        assert again.created_at == unlinked_inbox.created_at

    def test_domain_match_links_company(self, store, machine, acme):
        seed(store, "inbox_items", fx.inbox_item())
        item = machine.ensure_work_item(SourceType.INBOX, "inbox-1", USER, NOW)

        links = machine.links.list_for("inbox", "inbox-1", USER)
        assert [(l.target_type, l.target_id, l.link_reason) for l in links] == [
            ("company", acme, "domain_match")
        ]
        assert links[0].confidence == 0.9
        assert "unlinked_company" not in item.reason_codes

    def test_unknown_source_record(self, machine):
        with pytest.raises(SourceNotFoundError):
            machine.ensure_work_item(SourceType.TASK, "ghost", USER, NOW)

    def test_source_owned_by_someone_else(self, store, machine):
        seed(store, "tasks", fx.task(id="theirs", created_by=OTHER_USER))
        with pytest.raises(SourceNotFoundError):
            machine.ensure_work_item(SourceType.TASK, "theirs", USER, NOW)

    def test_unknown_work_item(self, machine):
        with pytest.raises(WorkItemNotFoundError):
            machine.get_work_item("nope")

    def test_find_work_item(self, machine, unlinked_inbox):
        assert machine.find_work_item("inbox", "cold", USER).id == unlinked_inbox.id
        assert machine.find_work_item("inbox", "cold", OTHER_USER) is None


class TestTrustGuard:
    def test_trust_without_evidence_is_refused(self, machine, unlinked_inbox):
        with pytest.raises(TrustGuardViolation) as exc:
            machine.mark_trusted(unlinked_inbox.id, NOW)

        assert exc.value.missing_conditions == ["entity_link", "item_extract", "ignored"]
        assert str(exc.value).startswith("Cannot mark as trusted")
        stored = machine.get_work_item(unlinked_inbox.id)
        assert stored.status is WorkItemStatus.NEEDS_REVIEW
        assert stored.trusted_at is None

    def test_link_then_trust(self, machine, unlinked_inbox, acme):
        machine.link_entity(unlinked_inbox.id, "company", acme, now=NOW)
        trusted = machine.mark_trusted(unlinked_inbox.id, NOW)

        assert trusted.status is WorkItemStatus.TRUSTED
        assert trusted.trusted_at is not None
        assert trusted.reviewed_at == trusted.trusted_at

    def test_no_action_then_trust(self, machine, unlinked_inbox):
        ignored = machine.no_action(unlinked_inbox.id, NOW)
        assert ignored.status is WorkItemStatus.IGNORED

        trusted = machine.mark_trusted(unlinked_inbox.id, NOW)
        assert trusted.status is WorkItemStatus.TRUSTED

    def test_extract_then_trust(self, machine, unlinked_inbox):
        machine.record_extract(unlinked_inbox.id, "action_items", {"items": ["reply"]}, NOW)
        assert machine.mark_trusted(unlinked_inbox.id, NOW).status is WorkItemStatus.TRUSTED

    def test_extract_lookup_is_injectable(self, store, unlinked_inbox):
        class AlwaysSummarized:
            def has_extract(self, source_type, source_id, created_by, session=None):
                return True

        machine = TriageStateMachine(store, extract_lookup=AlwaysSummarized())
        assert machine.mark_trusted(unlinked_inbox.id, NOW).status is WorkItemStatus.TRUSTED

    def test_commitment_lists_resolution_as_an_option(self, store, machine):
        seed(store, "commitments", fx.commitment())
        item = machine.ensure_work_item(SourceType.COMMITMENT, "commit-1", USER, NOW)
        with pytest.raises(TrustGuardViolation) as exc:
            machine.mark_trusted(item.id, NOW)
        assert exc.value.missing_conditions[-1] == "commitment_resolved"


class TestTransitions:
    def test_snooze_reads_back_as_needs_review_once_elapsed(self, machine, unlinked_inbox):
        snoozed = machine.snooze(unlinked_inbox.id, NOW + timedelta(hours=1), now=NOW)

        assert snoozed.status is WorkItemStatus.SNOOZED
        assert snoozed.effective_status(NOW + timedelta(minutes=30)) is WorkItemStatus.SNOOZED
        assert snoozed.effective_status(NOW + timedelta(hours=2)) is WorkItemStatus.NEEDS_REVIEW
        assert snoozed.to_dict(NOW + timedelta(hours=2))["status"] == "needs_review"
        assert snoozed.to_dict(NOW + timedelta(hours=2))["stored_status"] == "snoozed"

    def test_snooze_accepts_iso_strings(self, machine, unlinked_inbox):
        snoozed = machine.snooze(unlinked_inbox.id, "2026-03-11T09:00:00Z", now=NOW)
        assert snoozed.snooze_until == "2026-03-11T09:00:00.000Z"

    def test_snooze_rejects_garbage(self, machine, unlinked_inbox):
        with pytest.raises(ValueError):
            machine.snooze(unlinked_inbox.id, "after lunch", now=NOW)

    def test_link_is_idempotent(self, store, machine, unlinked_inbox, acme):
        machine.link_entity(unlinked_inbox.id, "company", acme, confidence=0.5, now=NOW)
        link = machine.link_entity(unlinked_inbox.id, "company", acme, confidence=0.8, now=NOW)

        assert store.count("entity_links") == 1
        assert link.confidence == 0.8
        item = machine.get_work_item(unlinked_inbox.id)
        assert item.reason_codes == ["missing_summary"]

    def test_link_validates_input(self, machine, unlinked_inbox):
        with pytest.raises(ValueError):
            machine.link_entity(unlinked_inbox.id, "company", "", now=NOW)
        with pytest.raises(ValueError):
            machine.link_entity(unlinked_inbox.id, "company", "c", confidence=1.5, now=NOW)
        with pytest.raises(ValueError):
            machine.link_entity(unlinked_inbox.id, "company", "c", link_reason="hunch", now=NOW)

    def test_summary_extract_drops_missing_summary(self, machine, unlinked_inbox):
        extract = machine.record_extract(unlinked_inbox.id, "summary", {"one_liner": "Wants a call"}, NOW)

        assert extract.content == {"one_liner": "Wants a call"}
        item = machine.get_work_item(unlinked_inbox.id)
        assert item.reason_codes == ["unlinked_company"]
        assert machine.extracts.one_liner("inbox", "cold", USER) == "Wants a call"

    def test_extract_upsert_replaces_content(self, store, machine, unlinked_inbox):
        machine.record_extract(unlinked_inbox.id, "summary", {"one_liner": "v1"}, NOW)
        machine.record_extract(unlinked_inbox.id, "summary", {"one_liner": "v2"}, NOW)
        assert store.count("item_extracts") == 1
        assert machine.extracts.one_liner("inbox", "cold", USER) == "v2"


class TestGuardSatisfyingActions:
    def test_create_task_from_commitment(self, store, machine):
        seed(store, "commitments", fx.commitment())
        item = machine.ensure_work_item(SourceType.COMMITMENT, "commit-1", USER, NOW)
        assert "no_next_action" in item.reason_codes

        task = machine.create_task_from_suggestion(item.id, "  Draft intro email ", priority="high", now=NOW)

        assert task["title"] == "Draft intro email"
        assert task["source"] == "triage:commitment"
        assert store.get("tasks", task["id"])["priority"] == "high"
        assert store.get("commitments", "commit-1")["task_id"] == task["id"]
        links = machine.links.list_for("commitment", "commit-1", USER)
        assert [(l.target_type, l.link_reason) for l in links] == [("task", "task_created")]
        refreshed = machine.get_work_item(item.id)
        assert "no_next_action" not in refreshed.reason_codes
        assert machine.mark_trusted(item.id, NOW).status is WorkItemStatus.TRUSTED

    def test_create_task_validates(self, machine, unlinked_inbox):
        with pytest.raises(ValueError):
            machine.create_task_from_suggestion(unlinked_inbox.id, "   ", now=NOW)
        with pytest.raises(ValueError):
            machine.create_task_from_suggestion(unlinked_inbox.id, "Reply", priority="critical", now=NOW)

    def test_note_takes_primary_link_as_context(self, store, machine, acme):
        seed(store, "inbox_items", fx.inbox_item())
        item = machine.ensure_work_item(SourceType.INBOX, "inbox-1", USER, NOW)

        note = machine.save_as_note(item.id, "Asked about pro-rata", title="Call notes", now=NOW)

        assert (note["context_type"], note["context_id"]) == ("company", acme)
        assert store.get("notes", note["id"])["content"] == "Asked about pro-rata"
        after = machine.get_work_item(item.id)
        assert after.status is item.status
        assert after.reason_codes == item.reason_codes

    def test_note_requires_content(self, machine, unlinked_inbox):
        with pytest.raises(ValueError):
            machine.save_as_note(unlinked_inbox.id, "", now=NOW)


class TestStaleReason:
    @pytest.fixture
    def stale_task(self, store, machine):
        seed(store, "tasks", fx.task(id="old", last_touched_at=fx.ts(-timedelta(days=10))))
        item = machine.ensure_work_item(SourceType.TASK, "old", USER, NOW)
        assert item.reason_codes == ["unlinked_company", "stale"]
        return item

    def test_link_clears_stale(self, machine, stale_task, acme):
        machine.link_entity(stale_task.id, "company", acme, now=NOW)
        assert machine.get_work_item(stale_task.id).reason_codes == []

    def test_note_clears_stale(self, machine, stale_task):
        machine.save_as_note(stale_task.id, "Still waiting on legal", now=NOW)
        assert machine.get_work_item(stale_task.id).reason_codes == ["unlinked_company"]

    def test_extract_clears_stale(self, machine, stale_task):
        machine.record_extract(stale_task.id, "entities", {"people": []}, NOW)
        assert machine.get_work_item(stale_task.id).reason_codes == ["unlinked_company"]


class TestClearance:
    def test_unclearable_item_names_what_is_missing(self, machine, unlinked_inbox):
        info = machine.clearance(unlinked_inbox.id, NOW)
        assert info["clearable"] is False
        assert info["missing_conditions"] == ["entity_link", "item_extract", "ignored"]
        assert info["reason_codes"] == ["unlinked_company", "missing_summary"]

    def test_clearable_item(self, machine, unlinked_inbox, acme):
        machine.link_entity(unlinked_inbox.id, "company", acme, now=NOW)
        info = machine.clearance(unlinked_inbox.id, NOW)
        assert info["clearable"] is True
        assert info["satisfied_conditions"] == ["entity_link"]
        assert info["missing_conditions"] == []
        assert info["links"][0]["target_id"] == acme


def race(*calls):
    """Run each call on its own thread, released together. Returns result or exception per call."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def run(index, call):
        barrier.wait()
        try:
            outcomes[index] = call()
        except Exception as e:
            outcomes[index] = e

    threads = [threading.Thread(target=run, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


class TestConcurrentWriters:
    """Separate machines over one database file, as separate API workers would be."""

    @pytest.fixture
    def machines(self, store):
        return [TriageStateMachine(RecordStore(store.db_path, converge=False)) for _ in range(2)]

    @pytest.fixture
    def cold_items(self, store, machine):
        items = []
        for n in range(8):
            seed(store, "inbox_items", fx.inbox_item(id=f"cold-{n}", from_email=f"someone{n}@gmail.com"))
            items.append(machine.ensure_work_item(SourceType.INBOX, f"cold-{n}", USER, NOW))
        return items

    def test_trust_racing_no_action_never_skips_the_guard(self, machine, machines, cold_items):
        first, second = machines
        for item in cold_items:
            trusted, ignored = race(
                lambda: first.mark_trusted(item.id, NOW),
                lambda: second.no_action(item.id, NOW),
            )
            assert not isinstance(ignored, Exception)
            final = machine.get_work_item(item.id)
            if isinstance(trusted, Exception):
                assert isinstance(trusted, TrustGuardViolation)
                assert final.status is WorkItemStatus.IGNORED
            else:
                # only reachable when no_action committed first
                assert final.status is WorkItemStatus.TRUSTED
                assert final.reviewed_at is not None

    def test_concurrent_trust_without_evidence_is_refused_twice(self, machine, machines, cold_items):
        first, second = machines
        for item in cold_items:
            outcomes = race(
                lambda: first.mark_trusted(item.id, NOW),
                lambda: second.mark_trusted(item.id, NOW),
            )
            assert all(isinstance(outcome, TrustGuardViolation) for outcome in outcomes)
            assert machine.get_work_item(item.id).status is WorkItemStatus.NEEDS_REVIEW

    def test_concurrent_trust_after_link_both_succeed(self, machine, machines, cold_items, acme):
        first, second = machines
        item = cold_items[0]
        machine.link_entity(item.id, "company", acme, now=NOW)

        outcomes = race(
            lambda: first.mark_trusted(item.id, NOW),
            lambda: second.mark_trusted(item.id, NOW),
        )

        assert [outcome.status for outcome in outcomes] == [WorkItemStatus.TRUSTED] * 2
        assert machine.get_work_item(item.id).status is WorkItemStatus.TRUSTED
