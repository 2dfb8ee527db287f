"""Aggregate statistics for the dashboard."""
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, time, timedelta
from operator import attrgetter
from typing import Any

from models.priority import Priority
from models.project import Project
from models.status import Status
from models.task import Task
from services.ordering import sorted_by_order

DASHBOARD_LIST_SIZE = 5
CREATED_HISTORY_DAYS = 7


def _week_bounds(today: date) -> tuple[datetime, datetime]:
    """Monday 00:00 to Sunday 23:59:59.999999 of the week containing ``today``."""
    monday = today - timedelta(days=today.weekday())
    start = datetime.combine(monday, time.min)
    end = datetime.combine(monday + timedelta(days=6), time.max)
    return start, end


def _task_summary(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "name": task.name,
        "status": task.status,
        "priority": task.priority,
        "project_name": task.project.name if task.project else None,
        "due_date": task.due_date.isoformat() if task.due_date else None,
    }


def _counts_by_order(entities, counts: Counter) -> list[dict[str, Any]]:
    rows = []
    for entity in sorted_by_order(entities):
        count = counts.get(entity.name, 0)
        if count:
            rows.append(
                {
                    "id": entity.id,
                    "name": entity.name,
                    "value": count,
                    "color": entity.color,
                    "icon_name": entity.icon_name,
                }
            )
    return rows


def build_dashboard(now: datetime | None = None) -> dict[str, Any]:
    """Compute the dashboard figures as of ``now`` (naive UTC)."""
    now = now or datetime.utcnow()
    today = now.date()
    week_start, week_end = _week_bounds(today)

    tasks = Task.query.all()
    statuses = Status.query.all()
    priorities = Priority.query.all()
    projects = Project.query.order_by(Project.name.asc()).all()

    completion = {status.name for status in statuses if status.is_completion_status}
    completed = [task for task in tasks if task.status in completion]
    open_tasks = [task for task in tasks if task.status not in completion]

    overdue = [task for task in open_tasks if task.due_date and task.due_date < now]
    due_today = [task for task in open_tasks if task.due_date and task.due_date.date() == today]
    due_this_week = [
        task
        for task in open_tasks
        if task.due_date
        and task.due_date > now
        and task.due_date.date() != today
        and week_start <= task.due_date <= week_end
    ]

    by_due_date = attrgetter("due_date")
    created_history = []
    for offset in range(CREATED_HISTORY_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        created_history.append(
            {
                "date": day.isoformat(),
                "weekday": day.strftime("%a"),
                "created": sum(
                    1 for task in tasks if task.created_at and task.created_at.date() == day
                ),
            }
        )

    project_counts = Counter(task.project_id for task in tasks if task.project_id is not None)

    return {
        "total_tasks": len(tasks),
        "completed_tasks": len(completed),
        "active_tasks": len(tasks) - len(completed),
        "overdue_count": len(overdue),
        "due_today_count": len(due_today),
        "due_this_week_count": len(due_this_week),
        "overdue_tasks": [
            _task_summary(task) for task in sorted(overdue, key=by_due_date)[:DASHBOARD_LIST_SIZE]
        ],
        "due_soon_tasks": [
            _task_summary(task)
            for task in sorted(due_today + due_this_week, key=by_due_date)[:DASHBOARD_LIST_SIZE]
        ],
        "created_last_7_days": created_history,
        "tasks_by_status": _counts_by_order(statuses, Counter(task.status for task in tasks)),
        "tasks_by_priority": _counts_by_order(priorities, Counter(task.priority for task in tasks)),
        "tasks_by_project": [
            {
                "id": project.id,
                "name": project.name,
                "value": project_counts[project.id],
                "color": project.color,
                "icon_name": project.icon_name,
            }
            for project in projects
            if project_counts[project.id]
        ],
    }
