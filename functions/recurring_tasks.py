"""
Recurring task generation.

A series head is a task with `recurring: {frequency, interval, endDate?}`.
Once a day the next occurrence of every head is computed; when it falls
within the coming day a fresh pending task is created for it and the head's
`recurring.lastGeneratedDueDate` moves forward, so a rerun on the same day
creates nothing new.
"""
import calendar
import datetime as dt
from typing import Any, Dict, Optional, Tuple

from firebase_functions import logger
from google.cloud import firestore as gcf
from google.cloud.firestore import FieldFilter

import config
from jobs import JobSummary
from timeutil import now_utc, to_datetime

RECURRENCE_FREQUENCIES = ["daily", "weekly", "monthly", "yearly"]
GENERATION_LOOKAHEAD = dt.timedelta(days=1)

# Fields that describe one instance's progress rather than the series
INSTANCE_FIELDS = {
    "id", "status", "completedBy", "completedAt", "commentCount", "lastCommentAt",
    "createdAt", "updatedAt", "recurring",
}


def validate_recurrence_pattern(pattern) -> Tuple[bool, Optional[str]]:
    if not isinstance(pattern, dict):
        return False, "Pattern must be an object"

    frequency = str(pattern.get("frequency", "")).lower()
    if frequency not in RECURRENCE_FREQUENCIES:
        return False, f"Invalid frequency. Must be one of: {', '.join(RECURRENCE_FREQUENCIES)}"

    interval = pattern.get("interval", 1)
    if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
        return False, "Interval must be at least 1"

    if pattern.get("endDate") is not None and to_datetime(pattern.get("endDate")) is None:
        return False, "endDate must be a date"
    return True, None


def _add_months(current: dt.datetime, months: int) -> dt.datetime:
    month_index = current.month - 1 + months
    year = current.year + month_index // 12
    month = month_index % 12 + 1
    # Jan 31 + 1 month lands on the last day of February
    day = min(current.day, calendar.monthrange(year, month)[1])
    return current.replace(year=year, month=month, day=day)


def calculate_next_due_date(current: dt.datetime, pattern: Dict[str, Any]) -> dt.datetime:
    frequency = str(pattern.get("frequency", "daily")).lower()
    interval = pattern.get("interval", 1)

    if frequency == "daily":
        return current + dt.timedelta(days=interval)
    if frequency == "weekly":
        return current + dt.timedelta(weeks=interval)
    if frequency == "monthly":
        return _add_months(current, interval)
    if frequency == "yearly":
        return _add_months(current, 12 * interval)
    raise ValueError(f"Unsupported frequency: {frequency}")


def next_occurrence(task: Dict[str, Any], now: dt.datetime) -> Optional[dt.datetime]:
    """The first occurrence after the last generated one that is still ahead of `now`."""
    pattern = task.get("recurring") or {}
    base = to_datetime(pattern.get("lastGeneratedDueDate")) or to_datetime(task.get("dueDate"))
    if base is None:
        return None

    candidate = calculate_next_due_date(base, pattern)
    while candidate <= now:
        candidate = calculate_next_due_date(candidate, pattern)
    return candidate


def build_instance(head_id, head, due):
    instance = {k: v for k, v in head.items() if k not in INSTANCE_FIELDS}
    instance.update({
        "status": "pending",
        "dueDate": due,
        "commentCount": 0,
        "recurrenceSourceId": head_id,
        "createdAt": gcf.SERVER_TIMESTAMP,
        "updatedAt": gcf.SERVER_TIMESTAMP,
    })
    return instance


def generate_recurring_tasks(db, now=None) -> JobSummary:
    now = now or now_utc()
    summary = JobSummary("recurring-tasks")
    try:
        tasks_ref = db.collection(config.TASKS_COLLECTION)
        heads = tasks_ref.where(filter=FieldFilter("recurring.frequency", "in", RECURRENCE_FREQUENCIES)).get()
    except Exception as e:
        return summary.abort(e)

    for doc in heads:
        summary.matched += 1
        head = doc.to_dict() or {}
        try:
            valid, error = validate_recurrence_pattern(head.get("recurring"))
            if not valid:
                logger.warn("Invalid recurrence pattern", taskId=doc.id, error=error)
                summary.skipped += 1
                continue

            due = next_occurrence(head, now)
            end_date = to_datetime(head["recurring"].get("endDate"))
            if due is None or due > now + GENERATION_LOOKAHEAD or (end_date and due > end_date):
                summary.skipped += 1
                continue

            batch = db.batch()
            instance_ref = tasks_ref.document()
            batch.set(instance_ref, build_instance(doc.id, head, due))
            batch.update(doc.reference, {
                "recurring.lastGeneratedDueDate": due,
                "updatedAt": gcf.SERVER_TIMESTAMP,
            })
            batch.commit()
            logger.info("Recurring task instance created", taskId=doc.id, instanceId=instance_ref.id,
                        dueDate=due.isoformat())
            summary.notified += 1
        except Exception as e:
            logger.error("Recurring task generation failed", taskId=doc.id, error=str(e))
            summary.failed += 1

    summary.log()
    return summary
