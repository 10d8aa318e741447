"""
Per-task reminders.

Tasks may carry `reminders: [{offsetMinutes, method}]`. Each offset becomes a
scheduledReminders document due at `dueDate - offset`; a minutely job sends
the ones whose time has come.
"""
import datetime as dt
from typing import Any, Dict, List, Optional

from firebase_functions import logger
from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore as gcf
from google.cloud.firestore import FieldFilter

import config
import fanout
from jobs import JobSummary
from timeutil import now_utc, to_datetime

REMINDER_METHODS = {"push", "email", "both"}


def build_reminders(task_id: str, task: Dict[str, Any], now: dt.datetime) -> List[Dict[str, Any]]:
    due = to_datetime(task.get("dueDate"))
    if due is None:
        return []

    reminders = []
    for entry in task.get("reminders") or []:
        if not isinstance(entry, dict):
            continue
        offset = entry.get("offsetMinutes")
        if isinstance(offset, bool) or not isinstance(offset, (int, float)) or offset <= 0:
            continue
        reminder_time = due - dt.timedelta(minutes=offset)
        # Only reminders still ahead of us
        if reminder_time <= now:
            continue
        method = entry.get("method") if entry.get("method") in REMINDER_METHODS else "push"
        reminders.append({
            "taskId": task_id,
            "userId": task.get("assigneeId"),
            "taskTitle": task.get("title", ""),
            "dueDate": due,
            "reminderTime": reminder_time,
            "offsetMinutes": offset,
            "method": method,
            "sent": False,
            "retryCount": 0,
            "createdAt": gcf.SERVER_TIMESTAMP,
        })
    return reminders


def schedule_task_reminders(db, task_id: str, task: Dict[str, Any],
                            now: Optional[dt.datetime] = None) -> int:
    reminders = build_reminders(task_id, task, now or now_utc())
    if not reminders:
        return 0

    collection = db.collection(config.SCHEDULED_REMINDERS_COLLECTION)
    batch = db.batch()
    for reminder in reminders:
        batch.set(collection.document(), reminder)
    batch.commit()
    logger.info("Scheduled task reminders", taskId=task_id, count=len(reminders))
    return len(reminders)


def reminders_changed(before: Dict[str, Any], after: Dict[str, Any]) -> bool:
    return (to_datetime(before.get("dueDate")) != to_datetime(after.get("dueDate"))
            or (before.get("reminders") or []) != (after.get("reminders") or []))


def reschedule_task_reminders(db, task_id: str, before: Dict[str, Any], after: Dict[str, Any],
                              now: Optional[dt.datetime] = None) -> Optional[int]:
    """Replace the task's reminders when its due date or offsets changed.

    Returns the number of reminders now scheduled, or None when nothing changed.
    """
    if not reminders_changed(before, after):
        return None

    collection = db.collection(config.SCHEDULED_REMINDERS_COLLECTION)
    existing = collection.where(filter=FieldFilter("taskId", "==", task_id)).stream()

    batch = db.batch()
    for doc in existing:
        batch.delete(doc.reference)
    reminders = build_reminders(task_id, after, now or now_utc())
    for reminder in reminders:
        batch.set(collection.document(), reminder)
    batch.commit()

    logger.info("Rescheduled task reminders", taskId=task_id, count=len(reminders))
    return len(reminders)


def _record_failure(doc, reminder, error):
    retries = (reminder.get("retryCount") or 0) + 1
    update = {
        "retryCount": gcf.Increment(1),
        "lastError": error,
    }
    if retries >= config.MAX_REMINDER_RETRIES:
        # Give up so the reminder stops being selected
        update["sent"] = True
    try:
        doc.reference.update(update)
    except GoogleAPICallError as e:
        logger.error("Could not record reminder failure", reminderId=doc.id, error=str(e))


def process_due_reminders(clients, now=None, limit=None) -> JobSummary:
    now = now or now_utc()
    db = clients.db
    summary = JobSummary("scheduled-reminders")

    try:
        reminders = (
            db.collection(config.SCHEDULED_REMINDERS_COLLECTION)
            .where(filter=FieldFilter("sent", "==", False))
            .where(filter=FieldFilter("reminderTime", "<=", now))
            .limit(limit or config.SCHEDULED_REMINDER_BATCH_SIZE)
            .get()
        )
    except Exception as e:
        return summary.abort(e)

    for doc in reminders:
        summary.matched += 1
        reminder = doc.to_dict() or {}
        try:
            task = fanout.get_document(db, config.TASKS_COLLECTION, reminder.get("taskId"))
            if task is None or task.get("status") == "completed":
                doc.reference.update({"sent": True, "skipped": True, "sentAt": gcf.SERVER_TIMESTAMP})
                summary.skipped += 1
                continue

            result = fanout.notify_user(clients, reminder.get("userId"),
                                        fanout.scheduled_reminder_template(reminder))
            if result.notified:
                doc.reference.update({"sent": True, "sentAt": gcf.SERVER_TIMESTAMP})
                summary.notified += 1
            else:
                _record_failure(doc, reminder, result.skipped or "not delivered")
                summary.failed += 1
        except Exception as e:
            logger.error("Scheduled reminder failed", reminderId=doc.id, taskId=reminder.get("taskId"),
                         error=str(e))
            _record_failure(doc, reminder, str(e))
            summary.failed += 1

    summary.log()
    return summary
