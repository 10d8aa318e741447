"""
Daily reminder scan.

Finds every open task due by the end of today (local time), including
overdue ones, and reminds its assignee. Each run is a fresh full scan with no
cursor, so a second run on the same day reminds again unless job watermarks
are enabled.
"""
import datetime as dt
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Tuple

from firebase_functions import logger
from google.cloud.firestore import FieldFilter

import config
import fanout
from jobs import JobSummary, claim_job_period
from timeutil import end_of_local_day, hours_until, local_date_key, now_utc, to_datetime

OPEN_STATUSES = ["pending", "in_progress"]


def urgency_bucket(due: dt.datetime, now: dt.datetime) -> Tuple[str, int]:
    """('overdue', 0), ('hours', hours left) within a day, else ('days', days left)."""
    hours = hours_until(due, now)
    if hours <= 0:
        return "overdue", 0
    if hours <= 24:
        return "hours", hours
    return "days", math.ceil(hours / 24)


def find_due_tasks(db, end_of_today: dt.datetime) -> List[Tuple[str, Dict[str, Any]]]:
    query = (
        db.collection(config.TASKS_COLLECTION)
        .where(filter=FieldFilter("status", "in", OPEN_STATUSES))
        .where(filter=FieldFilter("dueDate", "<=", end_of_today))
    )
    return [(doc.id, doc.to_dict() or {}) for doc in query.stream()]


def send_task_reminder(clients, task_id, task, now):
    due = to_datetime(task.get("dueDate"))
    if due is None:
        return fanout.FanoutResult(task.get("assigneeId"), skipped="no_due_date")
    bucket, amount = urgency_bucket(due, now)
    template = fanout.task_reminder_template(task_id, task, bucket, amount)
    return fanout.notify_user(clients, task.get("assigneeId"), template)


def send_daily_reminders(clients, now=None, max_workers=None):
    now = now or now_utc()
    summary = JobSummary("daily-reminders")
    end_of_today = end_of_local_day(now)
    try:
        if not claim_job_period(clients.db, summary.job, local_date_key(now)):
            summary.ran = False
            return summary
        logger.info("Running daily reminders", now=now.isoformat(), endOfToday=end_of_today.isoformat())
        tasks = find_due_tasks(clients.db, end_of_today)
    except Exception as e:
        return summary.abort(e)

    summary.matched = len(tasks)
    if not tasks:
        summary.log()
        return summary

    workers = max(1, min(max_workers or config.REMINDER_FANOUT_WORKERS, len(tasks)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(send_task_reminder, clients, task_id, task, now): task_id
            for task_id, task in tasks
        }
        for future in as_completed(futures):
            task_id = futures[future]
            try:
                result = future.result()
            except Exception as e:
                logger.error("Task reminder failed", taskId=task_id, error=str(e))
                summary.failed += 1
                continue
            if result.notified:
                summary.notified += 1
            else:
                summary.skipped += 1

    summary.log()
    return summary
