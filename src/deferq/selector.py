"""Due-task selection."""

from collections.abc import Iterable
from datetime import datetime

from deferq.models.task import Task


def is_due(task: Task, now: datetime) -> bool:
    """A task is due once its retry time, or failing that its schedule, has passed."""
    if task.next_attempt_at is not None:
        return task.next_attempt_at <= now
    return task.scheduled_at <= now


def filter_due_tasks(tasks: Iterable[Task], now: datetime) -> list[Task]:
    """Return the due tasks in their original order."""
    return [task for task in tasks if is_due(task, now)]
