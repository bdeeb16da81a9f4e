import enum


class PlanStatus(str, enum.Enum):
    """Lifecycle status of a study plan."""

    active = "active"
    completed = "completed"
    archived = "archived"


class NotificationEvent(str, enum.Enum):
    plan_created = "plan_created"
    plan_completed = "plan_completed"
    missed_day = "missed_day"
