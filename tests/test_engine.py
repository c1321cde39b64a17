"""
Queue builder tests: in-memory records and the store-backed service.
"""

from datetime import timedelta

import pytest

from attention.priority.config import V1_CONFIG, V2_CONFIG
from attention.priority.engine import PriorityService, SourceReader, build_priority_queue
from attention.priority.types import SourceType
from tests.fixtures import fixture_db as fx
from tests.fixtures.fixture_db import NOW, OTHER_USER, USER, seed, ts


class TestBuildPriorityQueue:
    def test_ranks_across_sources(self):
        queue = build_priority_queue(
            {
                SourceType.TASK: [fx.task(scheduled_for=ts(), priority="high")],
                SourceType.INBOX: [fx.inbox_item()],
                SourceType.CALENDAR_EVENT: [fx.calendar_event()],
            },
            V1_CONFIG,
            NOW,
        )
        assert [item.id for item in queue.items] == ["inbox-inbox-1", "task-task-1", "calendar_event-event-1"]
        assert queue.items[0].is_top_priority

    def test_malformed_record_is_skipped_not_fatal(self):
        queue = build_priority_queue(
            {"task": [{"title": "no id"}, fx.task(id="ok")]},
            V1_CONFIG,
            NOW,
        )
        assert [item.source_id for item in queue.items] == ["ok"]
        assert queue.skipped == {"task-None": "missing id"}

    def test_odd_field_types_still_score(self):
        queue = build_priority_queue(
            {
                SourceType.TASK: [fx.task(id="numeric-priority", priority=2)],
                SourceType.COMMITMENT: [fx.commitment(urgency=1, due_at=ts())],
                SourceType.PORTFOLIO_COMPANY: [fx.company(open_task_count="several", status=1)],
                SourceType.NONNEGOTIABLE: [fx.nonnegotiable(frequency=7)],
                SourceType.PROJECT: [fx.project(health=3)],
            },
            V1_CONFIG,
            NOW,
        )
        assert queue.skipped == {}
        assert {item.source_id for item in queue.all_items} == {
            "numeric-priority",
            "commit-1",
            "company-1",
            "nn-1",
            "project-1",
        }

    def test_unreadable_record_is_skipped_not_fatal(self):
        queue = build_priority_queue(
            {SourceType.TASK: [fx.task(id="bad", effort_minutes="lots"), fx.task(id="good", scheduled_for=ts())]},
            V1_CONFIG,
            NOW,
            available_minutes=60,
        )
        assert [item.source_id for item in queue.all_items] == ["good"]
        assert queue.skipped["task-bad"].startswith("unreadable record")

    def test_excluded_records_are_reported(self):
        queue = build_priority_queue(
            {
                SourceType.TASK: [fx.task(id="done", status="completed"), fx.task(id="open")],
                SourceType.INBOX: [fx.inbox_item(snoozed_until=ts(timedelta(days=1)))],
            },
            V1_CONFIG,
            NOW,
        )
        assert queue.excluded == {"task-done": "completed", "inbox-inbox-1": "snoozed"}
        assert queue.total_count == 1

    def test_top_flag_agrees_between_items_and_all_items(self):
        queue = build_priority_queue(
            {SourceType.TASK: [fx.task(id="later"), fx.task(id="now", scheduled_for=ts(), priority="high")]},
            V1_CONFIG,
            NOW,
        )
        top = [item.source_id for item in queue.all_items if item.is_top_priority]
        assert top == ["now"] == [queue.items[0].source_id]
        assert queue.to_dict(include_all=True)["all_items"][1]["isTopPriority"] is True

    def test_empty_sources(self):
        queue = build_priority_queue({}, V1_CONFIG, NOW)
        assert queue.items == []
        assert queue.debug_stats()["avg_score"] == 0.0

    def test_to_dict(self):
        queue = build_priority_queue({SourceType.TASK: [fx.task()]}, V1_CONFIG, NOW)
        data = queue.to_dict(include_all=True)
        assert data["config"] == "v1"
        assert data["stats"]["selected_count"] == 1
        assert data["items"][0]["isTopPriority"] is True
        assert len(data["all_items"]) == 1

    def test_same_inputs_same_queue(self):
        records = {SourceType.TASK: [fx.task(id=str(n), priority="medium") for n in range(12)]}
        first = build_priority_queue(records, V2_CONFIG, NOW)
        second = build_priority_queue(records, V2_CONFIG, NOW)
        assert [i.id for i in first.items] == [i.id for i in second.items]
        assert len(first.items) == 4  # v2 per-source cap


class TestSourceReader:
    def test_reads_are_scoped_to_owner(self, store):
        seed(store, "tasks", fx.task(id="mine"), fx.task(id="theirs", created_by=OTHER_USER))
        rows = SourceReader(store).read(SourceType.TASK, USER)
        assert [r["id"] for r in rows] == ["mine"]

    def test_task_rows_carry_project_and_company_names(self, store):
        seed(store, "projects", fx.project(color="#f00"))
        seed(store, "companies", fx.company())
        seed(store, "tasks", fx.task(project_id="project-1", company_id="company-1"))
        row = SourceReader(store).read(SourceType.TASK, USER)[0]
        assert row["project_name"] == "Fund III"
        assert row["project_color"] == "#f00"
        assert row["company_name"] == "Acme"

    def test_calendar_attendees_decode(self, store):
        seed(store, "calendar_events", fx.calendar_event(attendees=[{"email": "a@acme.io"}, {"email": "b@x.com"}]))
        row = SourceReader(store).read(SourceType.CALENDAR_EVENT, USER)[0]
        assert row["attendees"] == [{"email": "a@acme.io"}, {"email": "b@x.com"}]


class TestPriorityService:
    @pytest.fixture
    def seeded(self, store):
        seed(store, "companies", fx.company(last_interaction_at=ts(-timedelta(days=40))))
        seed(store, "tasks", fx.task(scheduled_for=ts(), priority="high", company_id="company-1"))
        seed(store, "inbox_items", fx.inbox_item(related_company_id="company-1"))
        seed(
            store,
            "calendar_events",
            fx.calendar_event(attendees=[{"email": "a@acme.io"}, {"email": "b@acme.io"}]),
            fx.calendar_event(id="later", start_time=ts(timedelta(days=5))),
        )
        seed(
            store,
            "commitments",
            fx.commitment(direction="owed_to_me", expected_by=ts(timedelta(days=5)), urgency="when_possible"),
            fx.commitment(id="done", status="completed"),
        )
        seed(store, "tasks", fx.task(id="other-user", created_by=OTHER_USER, priority="high"))
        return store

    def test_build_queue(self, seeded):
        queue = PriorityService(seeded).build_queue(USER, V1_CONFIG, now=NOW)

        ids = [item.id for item in queue.items]
        assert ids[0] == "inbox-inbox-1"
        assert "task-other-user" not in ids
        assert queue.excluded["calendar_event-later"] == "outside upcoming window"
        assert queue.excluded["commitment-done"] == "commitment completed"
        inbox = queue.items[0]
        assert inbox.company_name == "Acme"

    def test_restrict_sources(self, seeded):
        queue = PriorityService(seeded).build_queue(USER, V1_CONFIG, now=NOW, source_types=[SourceType.TASK])
        assert {item.source_type for item in queue.items} == {SourceType.TASK}

    def test_available_minutes_reaches_tasks(self, seeded):
        queue = PriorityService(seeded).build_queue(USER, V2_CONFIG, now=NOW, available_minutes=60)
        task = next(item for item in queue.all_items if item.source_type is SourceType.TASK)
        assert task.effort_score == 0.3  # no effort estimate on the record
