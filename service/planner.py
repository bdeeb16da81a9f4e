import json
import logging
import re
from datetime import date
from typing import Annotated, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import PromptTemplate
from langchain_groq import ChatGroq
from pydantic import Field, TypeAdapter, ValidationError

import error
from config.setting import settings
from schema.ai import GeneratedSchedule, QuizQuestion
from schema.study_plans import PlanParameters, PlanReflectionOut, Task, TaskPatternAnalysis
from service.schedule import ScheduleService

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*(?P<body>.*?)\s*```$", re.DOTALL)

_quiz_adapter = TypeAdapter(Annotated[List[QuizQuestion], Field(min_length=3, max_length=5)])

SCHEDULE_TEMPLATE = """You are an expert study planner. Build a day-by-day study schedule.

Subjects (highest priority first): {subjects}
Daily study hours: {daily_hours}
Duration: {duration_days} days, starting {start_date}
Topic details or syllabus: {subject_details}

Rules:
- Produce exactly one entry per day from the start date, in date order.
- Each task must be concrete and fit within the daily study hours.
- Give higher-priority subjects more sessions.

Respond with JSON only, no commentary, in this shape:
{{"schedule": [{{"date": "YYYY-MM-DD", "task": "...", "youtubeSearchQuery": "...", "referenceSearchQuery": "..."}}],
 "summary": "one or two sentences describing the plan"}}
"""

REPLAN_TEMPLATE = """You are an adaptive study planner. The student fell behind and needs a revised schedule.

Subjects: {subjects}
Daily study hours: {daily_hours}
Days skipped: {skipped_days}
Days available for the revised plan: {remaining_days}, starting {start_date}

Current schedule (completed tasks are already done and must not be repeated):
{tasks}

Redistribute all incomplete work across the available days, keeping the
original topic order and priorities. Keep completed tasks on their original
dates so the history is preserved.

Respond with JSON only, no commentary, in this shape:
{{"revisedSchedule": [{{"date": "YYYY-MM-DD", "task": "...", "youtubeSearchQuery": "...", "referenceSearchQuery": "..."}}],
 "summary": "one or two sentences explaining what changed"}}
"""

REFLECTION_TEMPLATE = """You are a friendly and insightful study coach. The student has just finished a study plan.

Subjects: {subjects}
Planned daily study hours: {daily_hours}
Planned duration: {duration_days} days
Completed tasks: {completed_tasks} of {total_tasks} ({completion_percent}%)
Consistency: {consistency_summary}

Tasks:
{tasks}

Respond with JSON only, in this shape:
{{"overallCompletionRate": {completion_rate}, "mainReflection": "2-3 sentences",
 "consistencyObservation": "1-2 sentences", "suggestionForNextPlan": "1-2 sentences"}}
"""

QUIZ_TEMPLATE = """You are a quiz generator for students.

Study task: {task_text}
Subject context: {subject_context}

Write 3 to 5 multiple-choice questions about this task, each with 3 to 5
options and exactly one correct answer given as a 0-based index.

Respond with a JSON array only:
[{{"id": "q1", "questionText": "...", "options": ["...", "..."], "correctOptionIndex": 0}}]
"""


def strip_code_fence(text: str) -> str:
    text = (text or "").strip()
    match = _FENCE.match(text)
    return match.group("body") if match else text


def split_schedule_response(text: str) -> GeneratedSchedule:
    """Separate the schedule array from an optional summary in model output.

    Output that is not a JSON object is passed through untouched; deciding
    whether it is a usable schedule belongs to the schedule parser.
    """
    body = strip_code_fence(text)
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return GeneratedSchedule(schedule_text=body)

    if isinstance(payload, dict):
        schedule = payload.get("schedule", payload.get("revisedSchedule"))
        summary = payload.get("summary")
        if isinstance(schedule, str):
            schedule_text = schedule
        elif schedule is not None:
            schedule_text = json.dumps(schedule)
        else:
            schedule_text = body
        return GeneratedSchedule(
            schedule_text=schedule_text, summary=summary if isinstance(summary, str) else None
        )
    return GeneratedSchedule(schedule_text=body)


def format_tasks(tasks: List[Task]) -> str:
    return "\n".join(
        f"- {t.date}: {t.task} [{'completed' if t.completed else 'pending'}]" for t in tasks
    ) or "- (no tasks)"


class PlannerAI:
    """Language-model client for schedule generation, re-planning, reflections and quizzes."""

    def __init__(self, llm: Optional[BaseChatModel] = None):
        self.llm = llm or ChatGroq(
            model=settings.GROQ_MODEL,
            temperature=settings.GROQ_TEMPERATURE,
            max_retries=2,
            api_key=settings.GROQ_API_KEY,
        )
        self.schedule_chain = self._chain(SCHEDULE_TEMPLATE)
        self.replan_chain = self._chain(REPLAN_TEMPLATE)
        self.reflection_chain = self._chain(REFLECTION_TEMPLATE)
        self.quiz_chain = self._chain(QUIZ_TEMPLATE)

    def _chain(self, template: str):
        return PromptTemplate.from_template(template) | self.llm | StrOutputParser()

    def _invoke(self, chain, variables: dict, purpose: str) -> str:
        try:
            return chain.invoke(variables)
        except Exception as e:
            logger.error("Language model call for %s failed: %s", purpose, e)
            raise error.AIGenerationError(f"Could not reach the planning service for {purpose}")

    @staticmethod
    def _subjects_line(parameters: PlanParameters) -> str:
        return ", ".join(
            f"{name} (priority {priority})" if priority is not None else name
            for name, priority in ScheduleService.parse_subject_priorities(parameters.subjects)
        )

    def generate_schedule(self, parameters: PlanParameters) -> GeneratedSchedule:
        start = parameters.start_date or date.today()
        text = self._invoke(
            self.schedule_chain,
            {
                "subjects": self._subjects_line(parameters),
                "daily_hours": parameters.daily_study_hours,
                "duration_days": parameters.study_duration_days,
                "start_date": start.isoformat(),
                "subject_details": parameters.subject_details or "None provided",
            },
            "schedule generation",
        )
        return split_schedule_response(text)

    def replan(
        self,
        parameters: PlanParameters,
        tasks: List[Task],
        skipped_days: int,
        remaining_days: int,
        start_date: Optional[date] = None,
    ) -> GeneratedSchedule:
        text = self._invoke(
            self.replan_chain,
            {
                "subjects": self._subjects_line(parameters),
                "daily_hours": parameters.daily_study_hours,
                "skipped_days": skipped_days,
                "remaining_days": remaining_days,
                "start_date": (start_date or date.today()).isoformat(),
                "tasks": format_tasks(tasks),
            },
            "re-planning",
        )
        return split_schedule_response(text)

    def generate_reflection(
        self, parameters: PlanParameters, tasks: List[Task], analysis: TaskPatternAnalysis
    ) -> PlanReflectionOut:
        """Ask the model for a reflection, falling back to the local analysis."""
        try:
            text = self._invoke(
                self.reflection_chain,
                {
                    "subjects": parameters.subjects,
                    "daily_hours": parameters.daily_study_hours,
                    "duration_days": parameters.study_duration_days,
                    "completed_tasks": analysis.completed_tasks,
                    "total_tasks": analysis.total_tasks,
                    "completion_rate": round(analysis.completion_rate, 2),
                    "completion_percent": round(analysis.completion_rate * 100),
                    "consistency_summary": analysis.consistency_summary,
                    "tasks": format_tasks(tasks),
                },
                "plan reflection",
            )
            reflection = PlanReflectionOut.model_validate_json(strip_code_fence(text))
        except (error.AIGenerationError, ValidationError) as e:
            logger.warning("Using fallback reflection: %s", e)
            return self.fallback_reflection(analysis)

        # The local count is authoritative for the completion rate
        return reflection.model_copy(update={"overall_completion_rate": analysis.completion_rate})

    @staticmethod
    def fallback_reflection(analysis: TaskPatternAnalysis) -> PlanReflectionOut:
        if analysis.total_tasks == 0:
            main = "This plan had no tasks to reflect on yet."
        else:
            main = (
                f"You completed {analysis.completed_tasks} of {analysis.total_tasks} tasks. "
                "Every finished session moves you closer to your goal."
            )
        if analysis.completion_rate >= 0.8:
            suggestion = "Keep the same daily rhythm and consider a slightly more ambitious next plan."
        else:
            suggestion = "Try fewer daily hours or a longer duration so the next plan fits your routine."
        return PlanReflectionOut(
            overall_completion_rate=analysis.completion_rate,
            main_reflection=main,
            consistency_observation=analysis.consistency_summary,
            suggestion_for_next_plan=suggestion,
        )

    def generate_task_quiz(self, task_text: str, subject_context: str) -> List[QuizQuestion]:
        text = self._invoke(
            self.quiz_chain,
            {"task_text": task_text, "subject_context": subject_context},
            "quiz generation",
        )
        try:
            questions = _quiz_adapter.validate_json(strip_code_fence(text))
        except ValidationError as e:
            logger.warning("Discarding malformed quiz: %s", e.errors()[0].get("msg"))
            raise error.AIGenerationError("Quiz generation returned an invalid quiz, please try again")
        return questions


def get_planner() -> PlannerAI:
    return PlannerAI()
