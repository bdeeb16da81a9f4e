import logging
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

import error
from config.setting import settings
from model.study_plans import StudyPlan, ScheduleTask, SubTask
from schema import SuccessOut
from schema.ai import TaskQuizOut
from schema.study_plans import (
    PlanParameters, StudyPlanOut, Task, ReplanIn, TaskUpdateIn, SubTaskIn, SubTaskUpdateIn,
    ScheduleStatus, ProgressOut, PlanReflectionOut, ReminderOut, StudyAnalyticsOut,
)
from service.email import MailService
from service.planner import PlannerAI
from service.redis import Redis
from service.schedule import ScheduleService
from util.enum import NotificationEvent, PlanStatus
from util.gen import generate_plan_id, generate_sub_task_id
from util.serialize import serialize_data

logger = logging.getLogger(__name__)

redis_instance = Redis()

EMPTY_SCHEDULE = "Plan generation produced no usable schedule, please try again"


def _plans_cache_key(user_id: str) -> str:
    return f"user_study_plans:{user_id}"


class StudyPlanController:
    @staticmethod
    def _map_plan(plan: StudyPlan) -> StudyPlanOut:
        """Centralized mapper from the ORM plan to the response model."""
        return StudyPlanOut(
            id=plan.id,
            user_id=plan.user_id,
            plan_details=plan.parameters,
            tasks=plan.task_list(),
            status=plan.status,
            schedule_string=plan.schedule_string or "",
            summary=plan.summary,
            completion_date=plan.completion_date,
            reflection=plan.reflection,
            created_at=plan.created_at,
            updated_at=plan.updated_at,
        )

    @staticmethod
    def _invalidate(user_id: str) -> None:
        redis_instance.delete(_plans_cache_key(user_id))

    @staticmethod
    def _get_owned_plan(user_id: str, plan_id: str) -> StudyPlan:
        plan = StudyPlan.get_plan(plan_id)
        if not plan:
            raise error.ResourceNotFoundError("Study plan not found")
        if plan.user_id != user_id:
            raise error.AuthorizationError("Not authorized to access this plan")
        return plan

    @staticmethod
    def _require_status(plan: StudyPlan, *allowed: PlanStatus) -> None:
        if plan.status not in allowed:
            raise error.InvalidRequestError(
                f"This action is not available for a plan that is {plan.status.value}", 409
            )

    @staticmethod
    def _get_owned_task(user_id: str, plan_id: str, task_id: str) -> Tuple[StudyPlan, ScheduleTask]:
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        task = ScheduleTask.get_task(plan_id, task_id)
        if not task:
            raise error.ResourceNotFoundError("Task not found")
        return plan, task

    @staticmethod
    def notification_content(plan: StudyPlanOut, name: str) -> dict:
        progress = ScheduleService.count_progress(plan.tasks)
        return {
            "name": name,
            "subjects": plan.plan_details.subjects,
            "duration_days": plan.plan_details.study_duration_days,
            "daily_hours": plan.plan_details.daily_study_hours,
            "task_count": progress.total,
            "completed": progress.completed,
            "total": progress.total,
            "reflection": plan.reflection.main_reflection if plan.reflection else None,
        }

    @staticmethod
    def create_plan(user_id: str, parameters: PlanParameters, planner: PlannerAI) -> StudyPlanOut:
        plan_id = generate_plan_id()
        generated = planner.generate_schedule(parameters)
        tasks = ScheduleService.parse_schedule(generated.schedule_text, plan_id)
        if not tasks:
            raise error.AIGenerationError(EMPTY_SCHEDULE)

        plan = StudyPlan.create(
            plan_id=plan_id,
            user_id=user_id,
            parameters=parameters,
            tasks=tasks,
            schedule_string=generated.schedule_text,
            summary=generated.summary,
        )
        StudyPlanController._invalidate(user_id)
        logger.info("Created plan %s with %d tasks for user %s", plan_id, len(tasks), user_id)
        return StudyPlanController._map_plan(plan)

    @staticmethod
    def get_user_study_plans(user_id: str) -> List[StudyPlanOut]:
        cache_key = _plans_cache_key(user_id)
        if cached := redis_instance.get_json(cache_key):
            return [StudyPlanOut(**p) for p in cached]

        result = [StudyPlanController._map_plan(p) for p in StudyPlan.get_user_plans(user_id)]
        redis_instance.set_json(
            cache_key,
            [serialize_data(r) for r in result],
            expiry=settings.CACHE_EXPIRE_SECONDS,
        )
        return result

    @staticmethod
    def get_study_plan_by_id(user_id: str, plan_id: str) -> StudyPlanOut:
        return StudyPlanController._map_plan(
            StudyPlanController._get_owned_plan(user_id, plan_id)
        )

    @staticmethod
    def delete_study_plan(user_id: str, plan_id: str) -> SuccessOut:
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        plan.delete()
        StudyPlanController._invalidate(user_id)
        return SuccessOut(message="Study plan deleted successfully")

    @staticmethod
    def modify_plan(
        user_id: str, plan_id: str, parameters: PlanParameters, planner: PlannerAI
    ) -> StudyPlanOut:
        """Regenerate a plan from new parameters, keeping progress when the shape matches."""
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        StudyPlanController._require_status(plan, PlanStatus.active)

        generated = planner.generate_schedule(parameters)
        new_tasks = ScheduleService.parse_schedule(generated.schedule_text, plan_id)
        if not new_tasks:
            raise error.AIGenerationError(EMPTY_SCHEDULE)

        tasks = ScheduleService.reconcile(new_tasks, plan.task_list())
        updated = StudyPlan.replace_tasks(
            plan_id,
            tasks,
            schedule_string=generated.schedule_text,
            summary=generated.summary,
            **parameters.model_dump(),
        )
        StudyPlanController._invalidate(user_id)
        return StudyPlanController._map_plan(updated)

    @staticmethod
    def update_schedule(user_id: str, plan_id: str, schedule_text: str) -> StudyPlanOut:
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        StudyPlanController._require_status(plan, PlanStatus.active)

        new_tasks = ScheduleService.parse_schedule(schedule_text, plan_id)
        if not new_tasks:
            raise error.InvalidRequestError(
                "Schedule must be a JSON array of objects with 'date' and 'task' text", 422
            )

        tasks = ScheduleService.reconcile(new_tasks, plan.task_list())
        updated = StudyPlan.replace_tasks(plan_id, tasks, schedule_string=schedule_text)
        StudyPlanController._invalidate(user_id)
        return StudyPlanController._map_plan(updated)

    @staticmethod
    def replan(
        user_id: str, plan_id: str, data: ReplanIn, planner: PlannerAI,
        today: Optional[date] = None,
    ) -> StudyPlanOut:
        """Regenerate the remaining schedule after the user fell behind."""
        today = today or date.today()
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        StudyPlanController._require_status(plan, PlanStatus.active)

        prior_tasks = plan.task_list()
        if not prior_tasks:
            raise error.InvalidRequestError("This plan doesn't have any tasks to reschedule")

        skipped_days = data.skipped_days
        if skipped_days is None:
            skipped_days = ScheduleService.resolve_skipped_days(prior_tasks, today).days_behind

        remaining_days = data.remaining_days
        if remaining_days is None:
            remaining_days = plan.study_duration_days - skipped_days
        if remaining_days < 1:
            raise error.InvalidRequestError(
                "There isn't enough time left in this plan to reschedule. "
                "Please create a new plan with a longer duration."
            )

        generated = planner.replan(
            plan.parameters, prior_tasks, skipped_days, remaining_days, start_date=today
        )
        new_tasks = ScheduleService.parse_schedule(generated.schedule_text, plan_id)
        if not new_tasks:
            raise error.AIGenerationError(EMPTY_SCHEDULE)

        tasks = ScheduleService.reconcile(new_tasks, prior_tasks)
        updated = StudyPlan.replace_tasks(
            plan_id,
            tasks,
            schedule_string=generated.schedule_text,
            summary=generated.summary,
            study_duration_days=remaining_days,
            start_date=today,
        )
        StudyPlanController._invalidate(user_id)
        logger.info(
            "Re-planned %s: %d skipped days, %d remaining days, %d tasks",
            plan_id, skipped_days, remaining_days, len(tasks),
        )
        return StudyPlanController._map_plan(updated)

    @staticmethod
    def update_task(user_id: str, plan_id: str, task_id: str, data: TaskUpdateIn) -> Task:
        plan, task = StudyPlanController._get_owned_task(user_id, plan_id, task_id)
        StudyPlanController._require_status(plan, PlanStatus.active, PlanStatus.completed)

        fields = data.model_dump(exclude_unset=True)
        if not fields:
            raise error.InvalidRequestError("No task fields to update")
        if fields.get("quiz_score") is not None and "quiz_attempted" not in fields:
            fields["quiz_attempted"] = True

        task = task.update(**fields)
        StudyPlanController._invalidate(user_id)
        return Task.model_validate(task)

    @staticmethod
    def add_sub_task(user_id: str, plan_id: str, task_id: str, data: SubTaskIn) -> Task:
        plan, task = StudyPlanController._get_owned_task(user_id, plan_id, task_id)
        StudyPlanController._require_status(plan, PlanStatus.active)

        SubTask(
            id=generate_sub_task_id(task.id),
            task_id=task.id,
            text=data.text,
            completed=False,
            position=len(task.sub_tasks),
        ).save()
        StudyPlanController._invalidate(user_id)
        return Task.model_validate(ScheduleTask.get_task(plan_id, task_id))

    @staticmethod
    def update_sub_task(
        user_id: str, plan_id: str, task_id: str, sub_task_id: str, data: SubTaskUpdateIn
    ) -> Task:
        plan, task = StudyPlanController._get_owned_task(user_id, plan_id, task_id)
        StudyPlanController._require_status(plan, PlanStatus.active)

        sub_task = SubTask.get_sub_task(task.id, sub_task_id)
        if not sub_task:
            raise error.ResourceNotFoundError("Sub-task not found")
        fields = data.model_dump(exclude_unset=True)
        if not fields:
            raise error.InvalidRequestError("No sub-task fields to update")

        sub_task.update(**fields)
        StudyPlanController._invalidate(user_id)
        return Task.model_validate(ScheduleTask.get_task(plan_id, task_id))

    @staticmethod
    def delete_sub_task(user_id: str, plan_id: str, task_id: str, sub_task_id: str) -> Task:
        plan, task = StudyPlanController._get_owned_task(user_id, plan_id, task_id)
        StudyPlanController._require_status(plan, PlanStatus.active)

        sub_task = SubTask.get_sub_task(task.id, sub_task_id)
        if not sub_task:
            raise error.ResourceNotFoundError("Sub-task not found")
        sub_task.delete()
        StudyPlanController._invalidate(user_id)
        return Task.model_validate(ScheduleTask.get_task(plan_id, task_id))

    @staticmethod
    def get_schedule_status(user_id: str, plan_id: str, today: Optional[date] = None) -> ScheduleStatus:
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        return ScheduleService.resolve_skipped_days(plan.task_list(), today or date.today())

    @staticmethod
    def get_progress(user_id: str, plan_id: str) -> ProgressOut:
        tasks = StudyPlanController._get_owned_plan(user_id, plan_id).task_list()
        progress = ScheduleService.count_progress(tasks)
        analysis = ScheduleService.analyze_task_patterns(tasks)
        return ProgressOut(**progress.model_dump(), consistency_summary=analysis.consistency_summary)

    @staticmethod
    def complete_plan(user_id: str, plan_id: str, planner: PlannerAI) -> StudyPlanOut:
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        if not ScheduleService.can_transition(plan.status, PlanStatus.completed):
            raise error.InvalidRequestError(
                f"A plan that is {plan.status.value} cannot be marked as completed", 409
            )

        tasks = plan.task_list()
        progress = ScheduleService.count_progress(tasks)
        if progress.rate < settings.PLAN_COMPLETION_THRESHOLD:
            raise error.InvalidRequestError(
                f"Complete at least {settings.PLAN_COMPLETION_THRESHOLD:.0%} of tasks before "
                f"finishing the plan ({progress.completed}/{progress.total} done)",
                409,
            )

        analysis = ScheduleService.analyze_task_patterns(tasks)
        reflection = planner.generate_reflection(plan.parameters, tasks, analysis)
        updated = plan.update(
            status=PlanStatus.completed,
            completion_date=datetime.now(timezone.utc),
            reflection=reflection.model_dump(by_alias=True),
        )
        StudyPlanController._invalidate(user_id)
        return StudyPlanController._map_plan(updated)

    @staticmethod
    def archive_plan(user_id: str, plan_id: str) -> StudyPlanOut:
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        if not ScheduleService.can_transition(plan.status, PlanStatus.archived):
            raise error.InvalidRequestError("This plan is already archived", 409)

        updated = plan.update(status=PlanStatus.archived)
        StudyPlanController._invalidate(user_id)
        return StudyPlanController._map_plan(updated)

    @staticmethod
    def get_reflection(user_id: str, plan_id: str, planner: PlannerAI) -> PlanReflectionOut:
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        if plan.reflection:
            return PlanReflectionOut.model_validate(plan.reflection)

        tasks = plan.task_list()
        analysis = ScheduleService.analyze_task_patterns(tasks)
        reflection = planner.generate_reflection(plan.parameters, tasks, analysis)
        if plan.status == PlanStatus.completed:
            plan.update(reflection=reflection.model_dump(by_alias=True))
            StudyPlanController._invalidate(user_id)
        return reflection

    @staticmethod
    def generate_task_quiz(
        user_id: str, plan_id: str, task_id: str, planner: PlannerAI
    ) -> TaskQuizOut:
        plan, task = StudyPlanController._get_owned_task(user_id, plan_id, task_id)
        questions = planner.generate_task_quiz(task.task, plan.subjects)
        return TaskQuizOut(task_id=task.id, questions=questions)

    @staticmethod
    def check_missed_day(
        user_id: str, plan_id: str, today: Optional[date] = None
    ) -> Tuple[ReminderOut, Optional[dict]]:
        """Decide whether a missed-day reminder is due, returning its email content if so."""
        today = today or date.today()
        plan = StudyPlanController._get_owned_plan(user_id, plan_id)
        if plan.status != PlanStatus.active:
            return ReminderOut(sent=False, reason="No active plan found."), None
        if plan.last_reminder_sent == today:
            return ReminderOut(sent=False, reason="Reminder already sent today."), None

        tasks = plan.task_list()
        status = ScheduleService.resolve_skipped_days(tasks, today)
        if not status.behind:
            return ReminderOut(sent=False, reason="User is on track."), None

        missed = ScheduleService.earliest_pending_task(tasks)
        content = {
            "subjects": plan.subjects,
            "days_behind": status.days_behind,
            "missed_task": missed.task,
            "missed_date": missed.date,
        }
        return ReminderOut(sent=True, reason="Reminder email queued."), content

    @staticmethod
    async def deliver_missed_day_reminder(
        plan_id: str, email: str, content: dict, reminder_date: date
    ) -> bool:
        """Send the reminder and record the day only once it was dispatched."""
        sent = await MailService.notify(NotificationEvent.missed_day, email, content)
        if not sent:
            logger.warning("Missed-day reminder for plan %s was not delivered", plan_id)
            return False
        plan = StudyPlan.get_plan(plan_id)
        if plan:
            plan.update(last_reminder_sent=reminder_date)
        return True

    @staticmethod
    def get_analytics(user_id: str) -> StudyAnalyticsOut:
        plans = StudyPlan.get_user_plans(user_id)
        tasks = [t for plan in plans for t in plan.task_list()]
        scores = [t.quiz_score for t in tasks if t.quiz_attempted and t.quiz_score is not None]
        by_status = {status: 0 for status in PlanStatus}
        for plan in plans:
            by_status[plan.status] += 1

        return StudyAnalyticsOut(
            total_plans=len(plans),
            active_plans=by_status[PlanStatus.active],
            completed_plans=by_status[PlanStatus.completed],
            archived_plans=by_status[PlanStatus.archived],
            total_tasks=len(tasks),
            completed_tasks=sum(1 for t in tasks if t.completed),
            average_quiz_score=round(sum(scores) / len(scores), 1) if scores else None,
        )
