"""
Exclusion rules and the ranking / selection policy.
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from attention.priority.config import DEFAULT_CONFIG, V1_CONFIG, V2_CONFIG
from attention.priority.rules import (
    exclusion_reason,
    rank_items,
    score_summary,
    select_top_items,
    source_distribution,
    validate_priority_item,
)
from attention.priority.types import PriorityItem, PrioritySignal, SourceType
from tests.fixtures import fixture_db as fx
from tests.fixtures.fixture_db import NOW, ts


def make_item(source_id: str, score: float, source_type: SourceType = SourceType.TASK) -> PriorityItem:
    return PriorityItem(
        id=f"{source_type.value}-{source_id}",
        source_type=source_type,
        source_id=source_id,
        title=source_id,
        urgency_score=score,
        importance_score=score,
        recency_score=0.5,
        commitment_score=0.0,
        priority_score=score,
        reasoning="r",
        signals=[PrioritySignal("urgency", score, "u"), PrioritySignal("importance", score, "i")],
    )


class TestExclusionRules:
    def test_active_snooze_excludes_any_source(self):
        record = fx.inbox_item(snoozed_until=ts(timedelta(hours=1)))
        assert exclusion_reason(SourceType.INBOX, record, V1_CONFIG, NOW) == "snoozed"

    def test_elapsed_snooze_keeps(self):
        record = fx.task(snoozed_until=ts(-timedelta(minutes=1)))
        assert exclusion_reason(SourceType.TASK, record, V1_CONFIG, NOW) is None

    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    def test_closed_tasks(self, status):
        assert exclusion_reason(SourceType.TASK, fx.task(status=status), V1_CONFIG, NOW) == "completed"

    def test_inbox_deleted_and_resolved(self):
        assert exclusion_reason(SourceType.INBOX, fx.inbox_item(is_deleted=1), V1_CONFIG, NOW) == "deleted"
        assert exclusion_reason(SourceType.INBOX, fx.inbox_item(is_resolved=1), V1_CONFIG, NOW) == "resolved"

    def test_calendar_already_started(self):
        record = fx.calendar_event(start_time=ts(-timedelta(minutes=5)))
        assert exclusion_reason(SourceType.CALENDAR_EVENT, record, V1_CONFIG, NOW) == "already started"

    def test_calendar_window_edge_is_inclusive(self):
        at_edge = fx.calendar_event(start_time=ts(timedelta(hours=48)))
        beyond = fx.calendar_event(start_time=ts(timedelta(hours=49)))
        assert exclusion_reason(SourceType.CALENDAR_EVENT, at_edge, V1_CONFIG, NOW) is None
        assert exclusion_reason(SourceType.CALENDAR_EVENT, beyond, V1_CONFIG, NOW) == "outside upcoming window"

    @pytest.mark.parametrize("status,expected", [("open", None), ("waiting_on", None), ("completed", "commitment completed")])
    def test_commitment_status(self, status, expected):
        record = fx.commitment(status=status)
        assert exclusion_reason(SourceType.COMMITMENT, record, V1_CONFIG, NOW) == expected

    def test_company_and_pipeline_and_project(self):
        assert exclusion_reason(SourceType.PORTFOLIO_COMPANY, fx.company(status="archived"), V1_CONFIG, NOW)
        assert exclusion_reason(SourceType.PIPELINE_COMPANY, fx.pipeline_company(status="passed"), V1_CONFIG, NOW)
        assert exclusion_reason(SourceType.PROJECT, fx.project(status="completed"), V1_CONFIG, NOW)
        assert exclusion_reason(SourceType.PROJECT, fx.project(), V1_CONFIG, NOW) is None

    def test_inactive_nonnegotiable(self):
        record = fx.nonnegotiable(is_active=0)
        assert exclusion_reason(SourceType.NONNEGOTIABLE, record, V1_CONFIG, NOW) == "inactive"

    def test_read_reading_items_stay(self):
        record = fx.reading_item(is_read=1)
        assert exclusion_reason(SourceType.READING_ITEM, record, V1_CONFIG, NOW) is None


class TestRanking:
    def test_descending_by_score(self):
        ranked = rank_items([make_item("a", 0.2), make_item("b", 0.9), make_item("c", 0.5)])
        assert [i.source_id for i in ranked] == ["b", "c", "a"]

    def test_ties_keep_input_order(self):
        ranked = rank_items([make_item("first", 0.5), make_item("second", 0.5), make_item("third", 0.5)])
        assert [i.source_id for i in ranked] == ["first", "second", "third"]


class TestSelection:
    def test_v1_takes_top_eight(self):
        items = [make_item(str(n), n / 10) for n in range(10)]
        selected = select_top_items(items, V1_CONFIG)
        assert len(selected) == 8
        assert selected[0].source_id == "9"

    def test_floor_drops_low_scores(self):
        selected = select_top_items([make_item("low", 0.19), make_item("ok", 0.2)], V2_CONFIG)
        assert [i.source_id for i in selected] == ["ok"]

    def test_overdue_or_imminent_items_still_need_the_score(self):
        overdue = replace(make_item("overdue", 0.1), is_overdue=True, due_at=ts(-timedelta(days=2)))
        meeting = replace(make_item("standup", 0.1, SourceType.CALENDAR_EVENT), due_at=ts(timedelta(minutes=30)))
        selected = select_top_items([overdue, meeting, make_item("ok", 0.5)], V2_CONFIG)
        assert [i.source_id for i in selected] == ["ok"]

    def test_per_source_cap_skips_then_continues(self):
        items = [make_item(f"t{n}", 0.9 - n / 100) for n in range(5)]
        items.append(make_item("inbox", 0.5, SourceType.INBOX))
        selected = select_top_items(items, DEFAULT_CONFIG)

        assert [i.source_id for i in selected] == ["t0", "t1", "t2", "inbox"]

    def test_only_the_first_item_is_top_priority(self):
        items = [make_item("a", 0.8), make_item("b", 0.7)]
        selected = select_top_items(items, V1_CONFIG)
        assert [i.is_top_priority for i in selected] == [True, False]

    def test_inputs_are_not_mutated(self):
        item = make_item("a", 0.8)
        select_top_items([item], V1_CONFIG)
        assert item.is_top_priority is False

    def test_empty(self):
        assert select_top_items([], V1_CONFIG) == []


class TestStats:
    def test_distribution_and_summary(self):
        items = [make_item("a", 0.2), make_item("b", 0.6), make_item("c", 0.4, SourceType.INBOX)]
        assert source_distribution(items) == {"inbox": 1, "task": 2}
        summary = score_summary(items)
        assert summary["min"] == 0.2
        assert summary["max"] == 0.6
        assert summary["avg"] == pytest.approx(0.4)

    def test_summary_of_nothing(self):
        assert score_summary([]) == {"avg": 0.0, "min": 0.0, "max": 0.0}

    def test_validate_flags_out_of_range(self):
        item = make_item("a", 0.5)
        item.priority_score = 1.5
        problems = validate_priority_item(item)
        assert any("priority_score" in p for p in problems)

    def test_validate_accepts_well_formed(self):
        assert validate_priority_item(make_item("a", 0.5)) == []
