import logging
import math
import re
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from schema.study_plans import (
    RawScheduleItem, Task, ScheduleStatus, TaskProgress, TaskPatternAnalysis,
)
from util.enum import PlanStatus
from util.gen import generate_random_suffix

logger = logging.getLogger(__name__)

_schedule_adapter = TypeAdapter(List[RawScheduleItem])

_SUBJECT_PRIORITY = re.compile(r"^(?P<name>.*?)\s*\((?P<priority>\d+)\)\s*$")

# Allowed plan status moves; archived is terminal
PLAN_TRANSITIONS = {
    PlanStatus.active: {PlanStatus.completed, PlanStatus.archived},
    PlanStatus.completed: {PlanStatus.archived},
    PlanStatus.archived: set(),
}


def to_calendar_date(value: str) -> Optional[date]:
    """Parse a task date, returning None when it is not a valid calendar date."""
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def _date_timestamp(value: str) -> str:
    parsed = to_calendar_date(value)
    if parsed is None:
        return "NaN"
    midnight = datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
    return str(int(midnight.timestamp() * 1000))


class ScheduleService:
    @staticmethod
    def parse_schedule(raw: str, plan_id: str) -> List[Task]:
        """Parse generator output into a fresh task list.

        The whole payload is rejected when it is not a JSON array of objects
        carrying string ``date`` and ``task`` fields; an empty list is the
        only failure signal.
        """
        if not raw or not isinstance(raw, str):
            return []
        try:
            items = _schedule_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Discarding malformed schedule for plan %s: %s", plan_id, e.errors()[0].get("msg")
            )
            return []

        return [
            Task(
                id=f"task-{plan_id}-{_date_timestamp(item.date)}-{index}-{generate_random_suffix()}",
                date=item.date,
                task=item.task,
                youtube_search_query=item.youtubeSearchQuery,
                reference_search_query=item.referenceSearchQuery,
            )
            for index, item in enumerate(items)
        ]

    @staticmethod
    def reconcile(new_tasks: List[Task], prior_tasks: List[Task]) -> List[Task]:
        """Carry user progress from prior tasks onto newly generated ones.

        Only same-length lists are merged, position by position. Any other
        shape is a structural re-plan and the new tasks are returned as-is.
        """
        if not prior_tasks or len(new_tasks) != len(prior_tasks):
            return [task.model_copy(deep=True) for task in new_tasks]

        return [
            new.model_copy(
                update={
                    "id": prior.id,
                    "completed": prior.completed,
                    "sub_tasks": [sub.model_copy() for sub in prior.sub_tasks],
                    "quiz_score": prior.quiz_score,
                    "quiz_attempted": prior.quiz_attempted,
                    "notes": prior.notes,
                },
                deep=True,
            )
            for new, prior in zip(new_tasks, prior_tasks)
        ]

    @staticmethod
    def earliest_pending_task(tasks: List[Task]) -> Optional[Task]:
        """Earliest incomplete task by date; tasks with invalid dates are ignored."""
        pending = [
            (task_date, index, t)
            for index, t in enumerate(tasks)
            if not t.completed and (task_date := to_calendar_date(t.date)) is not None
        ]
        if not pending:
            return None
        return min(pending, key=lambda p: (p[0], p[1]))[2]

    @staticmethod
    def resolve_skipped_days(tasks: List[Task], today: date) -> ScheduleStatus:
        earliest = ScheduleService.earliest_pending_task(tasks)
        if earliest is None:
            return ScheduleStatus(behind=False)

        earliest_date = to_calendar_date(earliest.date)
        if earliest_date >= today:
            return ScheduleStatus(behind=False)
        return ScheduleStatus(behind=True, days_behind=max(1, (today - earliest_date).days))

    @staticmethod
    def count_progress(tasks: List[Task]) -> TaskProgress:
        total = len(tasks)
        completed = sum(1 for t in tasks if t.completed)
        return TaskProgress(
            completed=completed, total=total, rate=completed / total if total else 0.0
        )

    @staticmethod
    def analyze_task_patterns(tasks: List[Task]) -> TaskPatternAnalysis:
        """Summarise completion consistency by comparing both halves of the plan."""
        progress = ScheduleService.count_progress(tasks)
        if progress.total == 0:
            return TaskPatternAnalysis(
                completion_rate=0.0,
                consistency_summary="No tasks to analyze for consistency.",
                total_tasks=0,
                completed_tasks=0,
            )

        middle = math.ceil(progress.total / 2)
        first_rate = ScheduleService.count_progress(tasks[:middle]).rate
        second_rate = ScheduleService.count_progress(tasks[middle:]).rate
        rate = progress.rate

        if rate > 0.8:
            if first_rate > 0.8 and second_rate > 0.8:
                summary = "Consistent high completion throughout the plan."
            elif first_rate > 0.8:
                summary = "Strong start with high completion, with a decrease in the latter half."
            else:
                summary = "Good overall completion, with some variability."
        elif rate > 0.5:
            if first_rate > second_rate + 0.2:
                summary = "Started strong, but completion declined in the second half."
            elif second_rate > first_rate + 0.2:
                summary = "Finished stronger than the start, showing improvement."
            else:
                summary = "Moderate completion with some consistency."
        elif rate > 0:
            summary = "Low overall completion, indicating sporadic effort."
        else:
            summary = "No tasks were completed."

        return TaskPatternAnalysis(
            completion_rate=rate,
            consistency_summary=summary,
            total_tasks=progress.total,
            completed_tasks=progress.completed,
        )

    @staticmethod
    def can_transition(current: PlanStatus, target: PlanStatus) -> bool:
        return target in PLAN_TRANSITIONS.get(current, set())

    @staticmethod
    def parse_subject_priorities(subjects: str) -> List[Tuple[str, Optional[int]]]:
        """Split ``"Math (1), Physics (2)"`` into ordered (name, priority) pairs.

        Subjects without a priority keep their input order after the
        prioritised ones.
        """
        parsed = []
        for position, chunk in enumerate(subjects.split(",")):
            chunk = chunk.strip()
            if not chunk:
                continue
            match = _SUBJECT_PRIORITY.match(chunk)
            if match and match.group("name"):
                parsed.append((position, match.group("name"), int(match.group("priority"))))
            else:
                parsed.append((position, chunk, None))

        parsed.sort(key=lambda s: (s[2] is None, s[2] if s[2] is not None else 0, s[0]))
        return [(name, priority) for _, name, priority in parsed]
