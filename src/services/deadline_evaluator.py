"""Pure deadline classification and alert rendering."""

from datetime import datetime, timedelta

from src.core.config import Constants
from src.domain.task import Task, UrgencyTier, ensure_utc
from src.models.service_models import Alert


NEAR_WINDOW = timedelta(hours=Constants.NEAR_WINDOW_HOURS)
UPCOMING_WINDOW = timedelta(days=Constants.UPCOMING_WINDOW_DAYS)


def classify(deadline: datetime, now: datetime, is_completed: bool) -> UrgencyTier:
    """Classify a deadline relative to ``now``.

    Rules in precedence order:
        1. completed -> NONE
        2. now >= deadline -> OVERDUE
        3. remaining <= 1 day -> NEAR
        4. remaining <= 3 days -> UPCOMING
        5. otherwise -> NONE

    Boundary instants belong to the more severe tier. Naive datetimes are
    treated as UTC, so the function is defined for every pair of instants.
    """
    if is_completed:
        return UrgencyTier.NONE

    remaining = ensure_utc(deadline) - ensure_utc(now)

    if remaining <= timedelta(0):
        return UrgencyTier.OVERDUE
    if remaining <= NEAR_WINDOW:
        return UrgencyTier.NEAR
    if remaining <= UPCOMING_WINDOW:
        return UrgencyTier.UPCOMING
    return UrgencyTier.NONE


def classify_task(task: Task, now: datetime) -> UrgencyTier:
    return classify(task.deadline, now, task.is_completed)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def render_alert(task: Task, tier: UrgencyTier, now: datetime) -> Alert:
    """Build the notification title and body for a task at ``tier``.

    Raises:
        ValueError: If ``tier`` is NONE (nothing to announce)
    """
    remaining = ensure_utc(task.deadline) - ensure_utc(now)

    if tier == UrgencyTier.OVERDUE:
        return Alert(title="⚠️ Deadline passed!", body=f"{task.title} is past its deadline!")

    if tier == UrgencyTier.NEAR:
        hours_left = max(int(remaining.total_seconds() // 3600), 0)
        return Alert(title="🔔 Deadline approaching!", body=f"{task.title} is due in {_plural(hours_left, 'hour')}")

    if tier == UrgencyTier.UPCOMING:
        return Alert(title="📅 Reminder", body=f"{task.title} is due in {_plural(remaining.days, 'day')}")

    msg = f"No alert for tier {tier}"
    raise ValueError(msg)
