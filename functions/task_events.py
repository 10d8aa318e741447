"""
Task trigger handlers.

Each handler checks its payload, claims the event id, plans the side
effects the change calls for and runs them through the pipeline.
"""
from functools import partial

from firebase_functions import logger

import activity
import fanout
import stats
import task_reminders
from claims import claim_once, event_key
from pipeline import Effect, contained, run_effects
from timeutil import local_date_key, now_utc

COMPLETED = "completed"


def is_completion(before, after):
    return before.get("status") != COMPLETED and after.get("status") == COMPLETED


def is_reopen(before, after):
    return before.get("status") == COMPLETED and after.get("status") != COMPLETED


def plan_task_created(clients, task_id, task, now=None):
    db = clients.db
    creator = task.get("userId")
    assignee = task.get("assigneeId")
    effects = []

    if assignee and assignee != creator:
        effects.append(Effect("notify_assignee", partial(fanout.send_task_assigned, clients, task_id, task)))

    group_id = task.get("groupId")
    if stats.is_shared_group(group_id):
        effects.append(Effect("group_stats", partial(stats.update_group_stats, db, group_id)))

    effects.append(Effect("activity_created", partial(
        activity.log_activity, db, task_id, creator, "created", {"taskTitle": task.get("title")})))

    if task.get("reminders"):
        effects.append(Effect("schedule_reminders", partial(
            task_reminders.schedule_task_reminders, db, task_id, task, now)))
    return effects


def plan_completion(clients, task_id, task, now=None):
    db = clients.db
    creator = task.get("userId")
    completer = task.get("completedBy")
    effects = [
        Effect("user_stats", partial(stats.record_completion, db, completer, local_date_key(now))),
    ]
    if creator != completer:
        effects.append(Effect("notify_creator", partial(fanout.send_task_completed, clients, task_id, task)))
    effects.append(Effect("activity_completed", partial(
        activity.log_activity, db, task_id, completer, "completed", {"taskTitle": task.get("title")})))
    return effects


def plan_task_updated(clients, task_id, before, after, now=None):
    db = clients.db
    effects = []

    if is_completion(before, after):
        effects.extend(plan_completion(clients, task_id, after, now))
    elif is_reopen(before, after):
        effects.append(Effect("activity_reopened", partial(
            activity.log_activity, db, task_id, after.get("updatedBy"), "updated",
            {"taskTitle": after.get("title"), "statusFrom": before.get("status"),
             "statusTo": after.get("status")})))

    if before.get("assigneeId") != after.get("assigneeId") and after.get("assigneeId"):
        effects.append(Effect("notify_new_assignee", partial(
            fanout.send_task_reassigned, clients, task_id, after)))
        effects.append(Effect("activity_reassigned", partial(
            activity.log_activity, db, task_id, after.get("updatedBy"), "updated",
            {"taskTitle": after.get("title"), "assigneeFrom": before.get("assigneeId"),
             "assigneeTo": after.get("assigneeId")})))

    old_group = before.get("groupId")
    new_group = after.get("groupId")
    if stats.is_shared_group(new_group):
        effects.append(Effect("group_stats", partial(stats.update_group_stats, db, new_group)))
    if stats.is_shared_group(old_group) and old_group != new_group:
        effects.append(Effect("previous_group_stats", partial(stats.update_group_stats, db, old_group)))

    if task_reminders.reminders_changed(before, after):
        effects.append(Effect("reschedule_reminders", partial(
            task_reminders.reschedule_task_reminders, db, task_id, before, after, now)))
    return effects


@contained("task created")
def handle_task_created(clients, task_id, task, event_id=None, now=None):
    if not task:
        return None
    if not claim_once(clients.db, event_key("task-created", event_id)):
        return None

    logger.info("Task created", taskId=task_id)
    return run_effects(plan_task_created(clients, task_id, task, now or now_utc()),
                       context=f"task created {task_id}")


@contained("task updated")
def handle_task_updated(clients, task_id, before, after, event_id=None, now=None):
    if not before or not after:
        return None
    if not claim_once(clients.db, event_key("task-updated", event_id)):
        return None

    logger.info("Task updated", taskId=task_id)
    return run_effects(plan_task_updated(clients, task_id, before, after, now or now_utc()),
                       context=f"task updated {task_id}")
