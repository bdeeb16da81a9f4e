"""Tests for the language-model planner client."""
import json
from datetime import date

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

import error
from schema.study_plans import PlanParameters, Task, TaskPatternAnalysis
from service.planner import PlannerAI, split_schedule_response, strip_code_fence
from service.schedule import ScheduleService
from tests.conftest import make_schedule, schedule_reply


def _planner(*responses):
    return PlannerAI(llm=FakeListChatModel(responses=list(responses)))


def _params(**overrides):
    values = dict(subjects="Math (1), Physics (2)", daily_study_hours=2, study_duration_days=3,
                  start_date=date(2024, 1, 1))
    values.update(overrides)
    return PlanParameters(**values)


def test_strip_code_fence():
    assert strip_code_fence('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'
    assert strip_code_fence("  plain text ") == "plain text"


def test_split_schedule_object_with_summary():
    items = make_schedule("2024-01-01", 2)
    generated = split_schedule_response(schedule_reply(items, summary="Two days of math."))
    assert json.loads(generated.schedule_text) == items
    assert generated.summary == "Two days of math."


def test_split_revised_schedule_key():
    items = make_schedule("2024-01-01", 1)
    generated = split_schedule_response(schedule_reply(items, key="revisedSchedule"))
    assert json.loads(generated.schedule_text) == items


def test_split_bare_array_passes_through():
    raw = json.dumps(make_schedule("2024-01-01", 2))
    generated = split_schedule_response(f"```json\n{raw}\n```")
    assert generated.schedule_text == raw
    assert generated.summary is None


def test_split_garbage_passes_through():
    generated = split_schedule_response("Sorry, I cannot help with that.")
    assert generated.schedule_text == "Sorry, I cannot help with that."
    assert ScheduleService.parse_schedule(generated.schedule_text, "p") == []


def test_generate_schedule_feeds_parser():
    items = make_schedule("2024-01-01", 3)
    generated = _planner(schedule_reply(items)).generate_schedule(_params())
    tasks = ScheduleService.parse_schedule(generated.schedule_text, "plan-1")
    assert [t.task for t in tasks] == [i["task"] for i in items]


def test_replan_returns_summary():
    items = make_schedule("2024-01-05", 2)
    prior = [Task(id="t1", date="2024-01-01", task="Algebra", completed=True)]
    generated = _planner(schedule_reply(items, "Compressed into two days.", "revisedSchedule")).replan(
        _params(), prior, skipped_days=1, remaining_days=2, start_date=date(2024, 1, 5)
    )
    assert generated.summary == "Compressed into two days."
    assert len(json.loads(generated.schedule_text)) == 2


def test_model_failure_raises_generation_error():
    planner = _planner()  # no scripted replies, every call fails
    with pytest.raises(error.AIGenerationError):
        planner.generate_schedule(_params())


def _analysis(rate=0.9, completed=9, total=10):
    return TaskPatternAnalysis(
        completion_rate=rate, consistency_summary="Consistent high completion throughout the plan.",
        total_tasks=total, completed_tasks=completed,
    )


def test_reflection_uses_local_completion_rate():
    reply = json.dumps({
        "overallCompletionRate": 0.2,
        "mainReflection": "Great effort.",
        "consistencyObservation": "Steady.",
        "suggestionForNextPlan": "Keep going.",
    })
    reflection = _planner(reply).generate_reflection(_params(), [], _analysis())
    assert reflection.main_reflection == "Great effort."
    assert reflection.overall_completion_rate == 0.9


def test_reflection_falls_back_on_bad_output():
    reflection = _planner("I think you did well!").generate_reflection(_params(), [], _analysis())
    assert reflection.overall_completion_rate == 0.9
    assert reflection.consistency_observation == "Consistent high completion throughout the plan."
    assert "9 of 10" in reflection.main_reflection


def test_generate_task_quiz():
    reply = json.dumps([
        {"id": "q1", "questionText": "2 + 2?", "options": ["3", "4", "5"], "correctOptionIndex": 1},
        {"id": "q2", "questionText": "3 * 3?", "options": ["6", "9", "12"], "correctOptionIndex": 1},
        {"id": "q3", "questionText": "10 / 2?", "options": ["5", "2", "20"], "correctOptionIndex": 0},
    ])
    questions = _planner(reply).generate_task_quiz("Arithmetic drills", "Math")
    assert [q.id for q in questions] == ["q1", "q2", "q3"]
    assert questions[0].options[questions[0].correct_option_index] == "4"


def _question(index, options=("a", "b", "c"), answer=0):
    return {"id": f"q{index}", "questionText": f"Question {index}?", "options": list(options),
            "correctOptionIndex": answer}


def _quiz(*questions):
    return json.dumps(list(questions))


@pytest.mark.parametrize("reply", [
    "no quiz today",
    "[]",
    _quiz(_question(1), _question(2)),
    _quiz(*(_question(i) for i in range(1, 7))),
    _quiz(_question(1), _question(2), _question(3, answer=5)),
    _quiz(_question(1), _question(2), _question(3, options=("yes", "no"))),
    _quiz(_question(1), _question(2), _question(3, options=("a", "b", "c", "d", "e", "f"))),
], ids=["not-json", "empty", "too-few-questions", "too-many-questions", "answer-out-of-range",
        "two-options", "six-options"])
def test_generate_task_quiz_rejects_invalid_output(reply):
    with pytest.raises(error.AIGenerationError):
        _planner(reply).generate_task_quiz("Arithmetic", "Math")
