"""
Cloud Functions entry points.

Document triggers for tasks and comments plus the scheduled jobs. Each
decorated function only unpacks its event and hands off to a plain helper
that takes the clients explicitly. Failures are logged and never re-raised,
so the platform does not retry a write that already committed.
"""
from typing import Any, Dict, Optional

from firebase_functions import firestore_fn, logger, options, scheduler_fn

import comment_events
import config
import deadline_notifications
import recurring_tasks
import task_events
import task_reminders
import weekly_summary
from clients import Clients, init_clients
from pipeline import contained

options.set_global_options(region=config.REGION)

_clients: Optional[Clients] = None


def _get_clients() -> Clients:
    global _clients
    if _clients is None:
        _clients = init_clients()
    return _clients


def _snapshot_data(snapshot) -> Optional[Dict[str, Any]]:
    if snapshot is None:
        return None
    return snapshot.to_dict()


# --- Helpers (called by the triggers and directly by tests) ---

def _task_created(event, clients: Clients):
    return task_events.handle_task_created(
        clients, event.params["taskId"], _snapshot_data(event.data), event_id=event.id)


def _task_updated(event, clients: Clients):
    change = event.data
    if change is None:
        return None
    return task_events.handle_task_updated(
        clients, event.params["taskId"], _snapshot_data(change.before), _snapshot_data(change.after),
        event_id=event.id)


def _comment_created(event, clients: Clients):
    return comment_events.handle_comment_created(
        clients, event.params["commentId"], _snapshot_data(event.data), event_id=event.id)


def _comment_deleted(event, clients: Clients):
    return comment_events.handle_comment_deleted(
        clients, event.params["commentId"], _snapshot_data(event.data), event_id=event.id)


# --- Document triggers ---

@firestore_fn.on_document_created(document=f"{config.TASKS_COLLECTION}/{{taskId}}")
@contained("on_task_created")
def on_task_created(event: firestore_fn.Event[firestore_fn.DocumentSnapshot | None]) -> None:
    _task_created(event, _get_clients())


@firestore_fn.on_document_updated(document=f"{config.TASKS_COLLECTION}/{{taskId}}")
@contained("on_task_updated")
def on_task_updated(event: firestore_fn.Event[firestore_fn.Change[firestore_fn.DocumentSnapshot]]) -> None:
    _task_updated(event, _get_clients())


@firestore_fn.on_document_created(document=f"{config.COMMENTS_COLLECTION}/{{commentId}}")
@contained("on_comment_created")
def on_comment_created(event: firestore_fn.Event[firestore_fn.DocumentSnapshot | None]) -> None:
    _comment_created(event, _get_clients())


@firestore_fn.on_document_deleted(document=f"{config.COMMENTS_COLLECTION}/{{commentId}}")
@contained("on_comment_deleted")
def on_comment_deleted(event: firestore_fn.Event[firestore_fn.DocumentSnapshot | None]) -> None:
    _comment_deleted(event, _get_clients())


# --- Scheduled jobs ---

@scheduler_fn.on_schedule(schedule=config.DAILY_REMINDER_SCHEDULE,
                          timezone=scheduler_fn.Timezone(config.SCHEDULE_TIMEZONE),
                          timeout_sec=config.JOB_TIMEOUT_SEC)
@contained("daily_task_reminder")
def daily_task_reminder(event: scheduler_fn.ScheduledEvent) -> None:
    summary = deadline_notifications.send_daily_reminders(_get_clients())
    logger.info("Daily reminder run complete", **summary.as_dict())


@scheduler_fn.on_schedule(schedule=config.WEEKLY_SUMMARY_SCHEDULE,
                          timezone=scheduler_fn.Timezone(config.SCHEDULE_TIMEZONE),
                          timeout_sec=config.JOB_TIMEOUT_SEC)
@contained("weekly_summary_job")
def weekly_summary_job(event: scheduler_fn.ScheduledEvent) -> None:
    summary = weekly_summary.send_weekly_summaries(_get_clients())
    logger.info("Weekly summary run complete", **summary.as_dict())


@scheduler_fn.on_schedule(schedule=config.TASK_REMINDER_SCHEDULE,
                          timezone=scheduler_fn.Timezone(config.SCHEDULE_TIMEZONE),
                          timeout_sec=config.JOB_TIMEOUT_SEC)
@contained("process_scheduled_reminders")
def process_scheduled_reminders(event: scheduler_fn.ScheduledEvent) -> None:
    task_reminders.process_due_reminders(_get_clients())


@scheduler_fn.on_schedule(schedule=config.RECURRING_TASK_SCHEDULE,
                          timezone=scheduler_fn.Timezone(config.SCHEDULE_TIMEZONE),
                          timeout_sec=config.JOB_TIMEOUT_SEC)
@contained("generate_recurring_tasks")
def generate_recurring_tasks(event: scheduler_fn.ScheduledEvent) -> None:
    recurring_tasks.generate_recurring_tasks(_get_clients().db)
