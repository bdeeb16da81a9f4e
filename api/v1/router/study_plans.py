from datetime import date
from typing import Annotated, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from controller.study_plans import StudyPlanController
from schema import SuccessOut
from schema.ai import TaskQuizOut
from schema.study_plans import (
    PlanParameters, StudyPlanCreateIn, StudyPlanOut, ScheduleUpdateIn, ReplanIn, Task,
    TaskUpdateIn, SubTaskIn, SubTaskUpdateIn, ScheduleStatus, ProgressOut, PlanCompleteIn,
    PlanReflectionOut, NotifyIn, ReminderOut, StudyAnalyticsOut,
)
from service.email import MailService
from service.planner import PlannerAI, get_planner
from util.enum import NotificationEvent

router = APIRouter(tags=["Study Plans"])

UserId = Annotated[str, Query(min_length=1, description="Owner of the study plans")]


@router.post("/study-plans", response_model=StudyPlanOut, status_code=201)
def create_study_plan(
    data: StudyPlanCreateIn,
    background_tasks: BackgroundTasks,
    user_id: UserId,
    planner: PlannerAI = Depends(get_planner),
):
    """
    Generate and store a new study plan
    - Asks the planning service for a day-by-day schedule
    - Fails with 502 when the schedule cannot be parsed
    - Optionally emails the user once the plan exists
    """
    parameters = PlanParameters(**data.model_dump(exclude={"notify"}))
    plan = StudyPlanController.create_plan(user_id, parameters, planner)
    if data.notify:
        background_tasks.add_task(
            MailService.notify,
            NotificationEvent.plan_created,
            data.notify.email,
            StudyPlanController.notification_content(plan, data.notify.name),
        )
    return plan


@router.get("/study-plans", response_model=List[StudyPlanOut])
def get_user_study_plans(user_id: UserId):
    return StudyPlanController.get_user_study_plans(user_id)


@router.get("/study-plans/analytics", response_model=StudyAnalyticsOut)
def get_study_analytics(user_id: UserId):
    return StudyPlanController.get_analytics(user_id)


@router.get("/study-plans/{plan_id}", response_model=StudyPlanOut)
def get_study_plan_by_id(plan_id: str, user_id: UserId):
    return StudyPlanController.get_study_plan_by_id(user_id, plan_id)


@router.put("/study-plans/{plan_id}", response_model=StudyPlanOut)
def modify_study_plan(
    plan_id: str,
    data: PlanParameters,
    user_id: UserId,
    planner: PlannerAI = Depends(get_planner),
):
    """Regenerate an active plan from new parameters."""
    return StudyPlanController.modify_plan(user_id, plan_id, data, planner)


@router.delete("/study-plans/{plan_id}", response_model=SuccessOut)
def delete_study_plan(plan_id: str, user_id: UserId):
    return StudyPlanController.delete_study_plan(user_id, plan_id)


@router.put("/study-plans/{plan_id}/schedule", response_model=StudyPlanOut)
def update_schedule(plan_id: str, data: ScheduleUpdateIn, user_id: UserId):
    """Replace the schedule with edited schedule text, keeping progress when the shape matches."""
    return StudyPlanController.update_schedule(user_id, plan_id, data.schedule_text)


@router.post("/study-plans/{plan_id}/replan", response_model=StudyPlanOut)
def replan_study_plan(
    plan_id: str,
    data: ReplanIn,
    user_id: UserId,
    today: Optional[date] = None,
    planner: PlannerAI = Depends(get_planner),
):
    """
    Adaptive re-planning
    - skipped_days defaults to how far the plan is behind
    - remaining_days defaults to the plan duration minus skipped days
    """
    return StudyPlanController.replan(user_id, plan_id, data, planner, today=today)


@router.get("/study-plans/{plan_id}/status", response_model=ScheduleStatus)
def get_schedule_status(plan_id: str, user_id: UserId, today: Optional[date] = None):
    return StudyPlanController.get_schedule_status(user_id, plan_id, today)


@router.get("/study-plans/{plan_id}/progress", response_model=ProgressOut)
def get_plan_progress(plan_id: str, user_id: UserId):
    return StudyPlanController.get_progress(user_id, plan_id)


@router.post("/study-plans/{plan_id}/complete", response_model=StudyPlanOut)
def complete_study_plan(
    plan_id: str,
    background_tasks: BackgroundTasks,
    user_id: UserId,
    data: Optional[PlanCompleteIn] = None,
    planner: PlannerAI = Depends(get_planner),
):
    plan = StudyPlanController.complete_plan(user_id, plan_id, planner)
    if data and data.notify:
        background_tasks.add_task(
            MailService.notify,
            NotificationEvent.plan_completed,
            data.notify.email,
            StudyPlanController.notification_content(plan, data.notify.name),
        )
    return plan


@router.post("/study-plans/{plan_id}/archive", response_model=StudyPlanOut)
def archive_study_plan(plan_id: str, user_id: UserId):
    return StudyPlanController.archive_plan(user_id, plan_id)


@router.get("/study-plans/{plan_id}/reflection", response_model=PlanReflectionOut)
def get_plan_reflection(
    plan_id: str, user_id: UserId, planner: PlannerAI = Depends(get_planner)
):
    return StudyPlanController.get_reflection(user_id, plan_id, planner)


@router.post("/study-plans/{plan_id}/reminders/missed-day", response_model=ReminderOut)
def send_missed_day_reminder(
    plan_id: str,
    data: NotifyIn,
    background_tasks: BackgroundTasks,
    user_id: UserId,
    today: Optional[date] = None,
):
    """Email a reminder when the plan is behind, at most once per delivered day."""
    today = today or date.today()
    result, content = StudyPlanController.check_missed_day(user_id, plan_id, today)
    if content:
        background_tasks.add_task(
            StudyPlanController.deliver_missed_day_reminder,
            plan_id,
            data.email,
            {**content, "name": data.name},
            today,
        )
    return result


@router.patch("/study-plans/{plan_id}/tasks/{task_id}", response_model=Task)
def update_task(plan_id: str, task_id: str, data: TaskUpdateIn, user_id: UserId):
    """Record completion, notes or a quiz score for a task."""
    return StudyPlanController.update_task(user_id, plan_id, task_id, data)


@router.post("/study-plans/{plan_id}/tasks/{task_id}/quiz", response_model=TaskQuizOut)
def generate_task_quiz(
    plan_id: str, task_id: str, user_id: UserId, planner: PlannerAI = Depends(get_planner)
):
    return StudyPlanController.generate_task_quiz(user_id, plan_id, task_id, planner)


@router.post("/study-plans/{plan_id}/tasks/{task_id}/subtasks", response_model=Task, status_code=201)
def add_sub_task(plan_id: str, task_id: str, data: SubTaskIn, user_id: UserId):
    return StudyPlanController.add_sub_task(user_id, plan_id, task_id, data)


@router.patch("/study-plans/{plan_id}/tasks/{task_id}/subtasks/{sub_task_id}", response_model=Task)
def update_sub_task(
    plan_id: str, task_id: str, sub_task_id: str, data: SubTaskUpdateIn, user_id: UserId
):
    return StudyPlanController.update_sub_task(user_id, plan_id, task_id, sub_task_id, data)


@router.delete("/study-plans/{plan_id}/tasks/{task_id}/subtasks/{sub_task_id}", response_model=Task)
def delete_sub_task(plan_id: str, task_id: str, sub_task_id: str, user_id: UserId):
    return StudyPlanController.delete_sub_task(user_id, plan_id, task_id, sub_task_id)
