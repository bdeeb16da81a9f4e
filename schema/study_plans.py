from pydantic import BaseModel, Field, EmailStr, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import date, datetime
from util.enum import PlanStatus


class CamelModel(BaseModel):
    """Base for payloads exchanged in camelCase with the frontend."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class PlanParameters(CamelModel):
    subjects: str = Field(min_length=1)  # e.g. "Math (1), Physics (2)"
    daily_study_hours: float = Field(gt=0)
    study_duration_days: int = Field(gt=0)
    subject_details: Optional[str] = None
    start_date: Optional[date] = None


class SubTask(CamelModel):
    id: str
    text: str
    completed: bool = False


class Task(CamelModel):
    id: str
    date: str  # YYYY-MM-DD
    task: str
    completed: bool = False
    youtube_search_query: Optional[str] = None
    reference_search_query: Optional[str] = None
    sub_tasks: List[SubTask] = Field(default_factory=list)
    quiz_score: Optional[int] = Field(default=None, ge=0, le=100)
    quiz_attempted: bool = False
    notes: Optional[str] = None


class RawScheduleItem(BaseModel):
    """One element of the schedule text produced by the plan generator."""

    date: str = Field(strict=True)
    task: str = Field(strict=True)
    youtubeSearchQuery: Optional[str] = None
    referenceSearchQuery: Optional[str] = None

    @field_validator("youtubeSearchQuery", "referenceSearchQuery", mode="before")
    @classmethod
    def drop_non_text_hints(cls, value):
        # Search hints are optional decoration; a malformed one is ignored
        return value if isinstance(value, str) else None


class ScheduleStatus(CamelModel):
    behind: bool
    days_behind: int = 0


class TaskProgress(CamelModel):
    completed: int
    total: int
    rate: float


class TaskPatternAnalysis(CamelModel):
    completion_rate: float
    consistency_summary: str
    total_tasks: int
    completed_tasks: int


class PlanReflectionOut(CamelModel):
    overall_completion_rate: float = Field(ge=0, le=1)
    main_reflection: str
    consistency_observation: str
    suggestion_for_next_plan: str


class NotifyIn(CamelModel):
    email: EmailStr
    name: str


class StudyPlanCreateIn(PlanParameters):
    notify: Optional[NotifyIn] = None


class StudyPlanOut(CamelModel):
    id: str
    user_id: str
    plan_details: PlanParameters
    tasks: List[Task]
    status: PlanStatus
    schedule_string: str = ""
    summary: Optional[str] = None
    completion_date: Optional[datetime] = None
    reflection: Optional[PlanReflectionOut] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScheduleUpdateIn(CamelModel):
    schedule_text: str


class ReplanIn(CamelModel):
    skipped_days: Optional[int] = Field(default=None, ge=0)
    remaining_days: Optional[int] = Field(default=None, ge=1)


class TaskUpdateIn(CamelModel):
    completed: Optional[bool] = None
    notes: Optional[str] = None
    quiz_score: Optional[int] = Field(default=None, ge=0, le=100)
    quiz_attempted: Optional[bool] = None

    @field_validator("completed", "quiz_attempted")
    @classmethod
    def flags_not_null(cls, value):
        # Omit a flag to leave it unchanged; only notes and quiz score can be cleared
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class SubTaskIn(CamelModel):
    text: str = Field(min_length=1)


class SubTaskUpdateIn(CamelModel):
    text: Optional[str] = Field(default=None, min_length=1)
    completed: Optional[bool] = None

    @field_validator("text", "completed")
    @classmethod
    def fields_not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class PlanCompleteIn(CamelModel):
    notify: Optional[NotifyIn] = None


class ProgressOut(TaskProgress):
    consistency_summary: str


class ReminderOut(CamelModel):
    sent: bool
    reason: str


class StudyAnalyticsOut(CamelModel):
    total_plans: int
    active_plans: int
    completed_plans: int
    archived_plans: int
    total_tasks: int
    completed_tasks: int
    average_quiz_score: Optional[float] = None
