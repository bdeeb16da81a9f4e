from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Date, DateTime, Text, ForeignKey, JSON, Enum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from typing import List, Optional
from core.setup import Base
from core.db import CreateDBSession
from schema.study_plans import Task, PlanParameters
from util.enum import PlanStatus


class StudyPlan(Base):
    """A user's study plan: parameters, ordered tasks and lifecycle status."""
    __tablename__ = "study_plans"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    schedule_string = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    subjects = Column(Text, nullable=False)
    daily_study_hours = Column(Float, nullable=False)
    study_duration_days = Column(Integer, nullable=False)
    subject_details = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    status = Column(Enum(PlanStatus), nullable=False, default=PlanStatus.active)
    completion_date = Column(DateTime(timezone=True), nullable=True)
    reflection = Column(JSON, nullable=True)
    last_reminder_sent = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    tasks = relationship(
        "ScheduleTask",
        back_populates="study_plan",
        cascade="all, delete-orphan",
        order_by="ScheduleTask.position",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<StudyPlan {self.id} ({self.status.value if self.status else None})>"

    @property
    def parameters(self) -> PlanParameters:
        return PlanParameters(
            subjects=self.subjects,
            daily_study_hours=self.daily_study_hours,
            study_duration_days=self.study_duration_days,
            subject_details=self.subject_details,
            start_date=self.start_date,
        )

    def task_list(self) -> List[Task]:
        return [Task.model_validate(t) for t in self.tasks]

    def save(self) -> "StudyPlan":
        with CreateDBSession() as db:
            db.add(self)
            db.commit()
            db.refresh(self)
            return StudyPlan.get_plan(self.id)

    def update(self, **kwargs) -> "StudyPlan":
        for key, value in kwargs.items():
            setattr(self, key, value)
        return self.save()

    def delete(self) -> bool:
        with CreateDBSession() as db:
            plan = db.get(StudyPlan, self.id)
            if plan:
                db.delete(plan)
                db.commit()
            return True

    @staticmethod
    def create(
        plan_id: str, user_id: str, parameters: PlanParameters, tasks: List[Task],
        schedule_string: str, summary: Optional[str] = None,
    ) -> "StudyPlan":
        plan = StudyPlan(
            id=plan_id,
            user_id=user_id,
            schedule_string=schedule_string,
            summary=summary,
            status=PlanStatus.active,
            **parameters.model_dump(),
        )
        plan.tasks = [ScheduleTask.from_schema(t, position=i) for i, t in enumerate(tasks)]
        return plan.save()

    @staticmethod
    def get_plan(plan_id: str) -> Optional["StudyPlan"]:
        with CreateDBSession() as db:
            return db.query(StudyPlan).filter(StudyPlan.id == plan_id).first()

    @staticmethod
    def get_user_plans(user_id: str) -> List["StudyPlan"]:
        with CreateDBSession() as db:
            return (
                db.query(StudyPlan)
                .filter(StudyPlan.user_id == user_id)
                .order_by(StudyPlan.updated_at.desc(), StudyPlan.created_at.desc())
                .all()
            )

    @staticmethod
    def replace_tasks(plan_id: str, tasks: List[Task], **fields) -> "StudyPlan":
        """Swap a plan's task list (and optionally plan columns) in one transaction."""
        with CreateDBSession() as db:
            plan = db.query(StudyPlan).filter(StudyPlan.id == plan_id).one()
            plan.tasks.clear()
            db.flush()
            plan.tasks.extend(
                ScheduleTask.from_schema(t, position=i) for i, t in enumerate(tasks)
            )
            for key, value in fields.items():
                setattr(plan, key, value)
            plan.updated_at = func.now()
            db.commit()
        return StudyPlan.get_plan(plan_id)


class ScheduleTask(Base):
    """One dated study session within a plan."""
    __tablename__ = "schedule_tasks"

    id = Column(String(255), primary_key=True)
    plan_id = Column(
        String(64), ForeignKey("study_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    date = Column(String(32), nullable=False)
    task = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    youtube_search_query = Column(Text, nullable=True)
    reference_search_query = Column(Text, nullable=True)
    quiz_score = Column(Integer, nullable=True)
    quiz_attempted = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    study_plan = relationship("StudyPlan", back_populates="tasks")
    sub_tasks = relationship(
        "SubTask",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="SubTask.position",
        lazy="selectin",
    )

    @staticmethod
    def from_schema(task: Task, position: int) -> "ScheduleTask":
        return ScheduleTask(
            id=task.id,
            position=position,
            date=task.date,
            task=task.task,
            completed=task.completed,
            youtube_search_query=task.youtube_search_query,
            reference_search_query=task.reference_search_query,
            quiz_score=task.quiz_score,
            quiz_attempted=task.quiz_attempted,
            notes=task.notes,
            sub_tasks=[
                SubTask(id=s.id, text=s.text, completed=s.completed, position=i)
                for i, s in enumerate(task.sub_tasks)
            ],
        )

    def save(self) -> "ScheduleTask":
        with CreateDBSession() as db:
            db.add(self)
            db.commit()
            db.refresh(self)
            return ScheduleTask.get_task(self.plan_id, self.id)

    def update(self, **kwargs) -> "ScheduleTask":
        for key, value in kwargs.items():
            setattr(self, key, value)
        return self.save()

    @staticmethod
    def get_task(plan_id: str, task_id: str) -> Optional["ScheduleTask"]:
        with CreateDBSession() as db:
            return (
                db.query(ScheduleTask)
                .filter(ScheduleTask.plan_id == plan_id, ScheduleTask.id == task_id)
                .first()
            )


class SubTask(Base):
    """A user-authored breakdown step of a task."""
    __tablename__ = "sub_tasks"

    id = Column(String(255), primary_key=True)
    task_id = Column(
        String(255), ForeignKey("schedule_tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    text = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)

    task = relationship("ScheduleTask", back_populates="sub_tasks")

    def save(self) -> "SubTask":
        with CreateDBSession() as db:
            db.add(self)
            db.commit()
            db.refresh(self)
            return self

    def update(self, **kwargs) -> "SubTask":
        for key, value in kwargs.items():
            setattr(self, key, value)
        return self.save()

    def delete(self) -> bool:
        with CreateDBSession() as db:
            sub_task = db.get(SubTask, self.id)
            if sub_task:
                db.delete(sub_task)
                db.commit()
            return True

    @staticmethod
    def get_sub_task(task_id: str, sub_task_id: str) -> Optional["SubTask"]:
        with CreateDBSession() as db:
            return (
                db.query(SubTask)
                .filter(SubTask.task_id == task_id, SubTask.id == sub_task_id)
                .first()
            )
