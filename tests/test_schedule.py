"""Tests for schedule parsing, reconciliation and skipped-day resolution."""
import json
from datetime import date

import pytest

from schema.study_plans import SubTask, Task
from service.schedule import ScheduleService
from util.enum import PlanStatus
from tests.conftest import make_schedule


def _task(i, day, completed=False, **extra):
    return Task(id=f"old-{i}", date=day, task=f"Old task {i}", completed=completed, **extra)


def test_parse_well_formed_schedule():
    items = make_schedule("2024-01-01", 5)
    tasks = ScheduleService.parse_schedule(json.dumps(items), "plan-1")

    assert len(tasks) == 5
    assert [t.date for t in tasks] == [i["date"] for i in items]
    assert [t.task for t in tasks] == [i["task"] for i in items]
    assert all(t.completed is False and t.quiz_attempted is False for t in tasks)
    assert all(t.sub_tasks == [] and t.quiz_score is None and t.notes is None for t in tasks)
    assert len({t.id for t in tasks}) == 5


def test_parse_keeps_search_hints():
    raw = json.dumps([{
        "date": "2024-03-01", "task": "Vectors",
        "youtubeSearchQuery": "vectors intro", "referenceSearchQuery": "vectors notes",
    }])
    task = ScheduleService.parse_schedule(raw, "p")[0]
    assert task.youtube_search_query == "vectors intro"
    assert task.reference_search_query == "vectors notes"


def test_parse_id_layout():
    raw = json.dumps([{"date": "2024-01-01", "task": "A"}, {"date": "2024-01-01", "task": "B"}])
    first, second = ScheduleService.parse_schedule(raw, "plan-9")

    assert first.id.startswith("task-plan-9-1704067200000-0-")
    assert second.id.startswith("task-plan-9-1704067200000-1-")
    assert first.id != second.id


def test_parse_preserves_order_and_duplicates():
    raw = json.dumps([
        {"date": "2024-01-03", "task": "C"},
        {"date": "2024-01-01", "task": "A"},
        {"date": "2024-01-03", "task": "C"},
    ])
    tasks = ScheduleService.parse_schedule(raw, "p")
    assert [t.date for t in tasks] == ["2024-01-03", "2024-01-01", "2024-01-03"]


@pytest.mark.parametrize("raw", [
    "not json",
    "{}",
    '[{"date":"2024-01-01"}]',
    "",
    '[{"date": "2024-01-01", "task": 5}]',
    '[{"date": "2024-01-01", "task": "ok"}, "oops"]',
    '[{"date": "2024-01-01", "task": "ok"}, {"task": "no date"}]',
    'null',
])
def test_parse_malformed_returns_empty(raw):
    assert ScheduleService.parse_schedule(raw, "p") == []


def test_parse_tolerates_invalid_calendar_date():
    tasks = ScheduleService.parse_schedule('[{"date": "someday", "task": "Read"}]', "p")
    assert len(tasks) == 1
    assert "-NaN-0-" in tasks[0].id


def test_parse_ignores_non_text_search_hints():
    raw = json.dumps([{"date": "2024-01-01", "task": "A", "youtubeSearchQuery": 12}])
    assert ScheduleService.parse_schedule(raw, "p")[0].youtube_search_query is None


def test_parse_twice_gives_fresh_ids():
    raw = json.dumps(make_schedule("2024-02-01", 4))
    first = ScheduleService.parse_schedule(raw, "plan-1")
    second = ScheduleService.parse_schedule(raw, "plan-1")

    assert [(t.date, t.task) for t in first] == [(t.date, t.task) for t in second]
    assert {t.id for t in first}.isdisjoint({t.id for t in second})


def test_reconcile_equal_length_keeps_progress():
    prior = [
        _task(0, "2024-01-01", completed=True, quiz_score=80, quiz_attempted=True,
              sub_tasks=[SubTask(id="s1", text="Read chapter", completed=True)]),
        _task(1, "2024-01-02"),
        _task(2, "2024-01-03", completed=True, notes="tricky"),
    ]
    new = ScheduleService.parse_schedule(json.dumps(make_schedule("2024-01-05", 3, "Fresh")), "p")

    merged = ScheduleService.reconcile(new, prior)

    for i in range(3):
        assert merged[i].completed == prior[i].completed
        assert merged[i].task == new[i].task
        assert merged[i].date == new[i].date
        assert merged[i].id == prior[i].id
        assert merged[i].youtube_search_query == new[i].youtube_search_query
    assert merged[0].quiz_score == 80 and merged[0].quiz_attempted is True
    assert merged[0].sub_tasks[0].text == "Read chapter"
    assert merged[2].notes == "tricky"


def test_reconcile_length_mismatch_resets():
    prior = [_task(i, f"2024-01-{i + 1:02d}", completed=i % 2 == 0) for i in range(10)]
    new = ScheduleService.parse_schedule(json.dumps(make_schedule("2024-01-01", 7)), "p")

    merged = ScheduleService.reconcile(new, prior)

    assert len(merged) == 7
    assert all(t.completed is False for t in merged)
    assert [t.id for t in merged] == [t.id for t in new]


def test_reconcile_is_pure():
    prior = [_task(0, "2024-01-01", completed=True)]
    new = ScheduleService.parse_schedule(json.dumps(make_schedule("2024-01-02", 1)), "p")
    new_snapshot = [t.model_dump() for t in new]

    first = ScheduleService.reconcile(new, prior)
    second = ScheduleService.reconcile(new, prior)

    assert [t.model_dump() for t in first] == [t.model_dump() for t in second]
    assert [t.model_dump() for t in new] == new_snapshot
    assert prior[0].task == "Old task 0"


def test_reconcile_without_prior_tasks():
    new = ScheduleService.parse_schedule(json.dumps(make_schedule("2024-01-02", 2)), "p")
    assert ScheduleService.reconcile(new, []) == new


def test_skipped_days_behind():
    tasks = [
        _task(0, "2024-01-01", completed=True),
        _task(1, "2024-01-02"),
        _task(2, "2024-01-03"),
    ]
    status = ScheduleService.resolve_skipped_days(tasks, date(2024, 1, 5))
    assert status.behind is True
    assert status.days_behind == 3


def test_skipped_days_all_completed():
    tasks = [_task(i, f"2024-01-0{i + 1}", completed=True) for i in range(3)]
    assert ScheduleService.resolve_skipped_days(tasks, date(2024, 1, 5)).behind is False


def test_skipped_days_on_track_when_earliest_is_today():
    tasks = [_task(0, "2024-01-01", completed=True), _task(1, "2024-01-05")]
    status = ScheduleService.resolve_skipped_days(tasks, date(2024, 1, 5))
    assert status.behind is False
    assert status.days_behind == 0


def test_skipped_days_uses_earliest_date_not_list_order():
    tasks = [_task(0, "2024-01-04"), _task(1, "2024-01-02")]
    assert ScheduleService.resolve_skipped_days(tasks, date(2024, 1, 5)).days_behind == 3


def test_skipped_days_ignores_invalid_dates():
    tasks = [_task(0, "not-a-date"), _task(1, "2024-01-04")]
    status = ScheduleService.resolve_skipped_days(tasks, date(2024, 1, 5))
    assert status.behind is True
    assert status.days_behind == 1


def test_skipped_days_empty_plan():
    assert ScheduleService.resolve_skipped_days([], date(2024, 1, 5)).behind is False


def test_count_progress():
    tasks = [_task(i, "2024-01-01", completed=i < 4) for i in range(5)]
    progress = ScheduleService.count_progress(tasks)
    assert (progress.completed, progress.total) == (4, 5)
    assert progress.rate == pytest.approx(0.8)
    assert ScheduleService.count_progress([]).rate == 0.0


@pytest.mark.parametrize("done, expected", [
    ([True] * 10, "Consistent high completion throughout the plan."),
    ([True] * 5 + [True, True, True, True, False], "Strong start with high completion, with a decrease in the latter half."),
    ([True, True, True, True, False] + [True] * 5, "Good overall completion, with some variability."),
    ([True, True, True, False, False] * 2, "Moderate completion with some consistency."),
    ([True] * 5 + [True, False, False, False, False], "Started strong, but completion declined in the second half."),
    ([True, False, False, True, False] + [True] * 5, "Finished stronger than the start, showing improvement."),
    ([True] + [False] * 9, "Low overall completion, indicating sporadic effort."),
    ([False] * 4, "No tasks were completed."),
])
def test_analyze_task_patterns(done, expected):
    tasks = [_task(i, "2024-01-01", completed=c) for i, c in enumerate(done)]
    analysis = ScheduleService.analyze_task_patterns(tasks)
    assert analysis.consistency_summary == expected
    assert analysis.completed_tasks == sum(done)


def test_analyze_task_patterns_empty():
    analysis = ScheduleService.analyze_task_patterns([])
    assert analysis.total_tasks == 0
    assert analysis.completion_rate == 0.0


@pytest.mark.parametrize("current, target, allowed", [
    (PlanStatus.active, PlanStatus.completed, True),
    (PlanStatus.active, PlanStatus.archived, True),
    (PlanStatus.completed, PlanStatus.archived, True),
    (PlanStatus.completed, PlanStatus.active, False),
    (PlanStatus.archived, PlanStatus.active, False),
    (PlanStatus.archived, PlanStatus.completed, False),
    (PlanStatus.active, PlanStatus.active, False),
])
def test_plan_transitions(current, target, allowed):
    assert ScheduleService.can_transition(current, target) is allowed


def test_parse_subject_priorities():
    parsed = ScheduleService.parse_subject_priorities("History, Physics (2), Math (1), Art")
    assert parsed == [("Math", 1), ("Physics", 2), ("History", None), ("Art", None)]
