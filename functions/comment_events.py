"""
Comment trigger handlers.

Both handlers recount the task's comments from scratch, so `commentCount`
converges on the live count no matter how events are ordered or repeated.
"""
from functools import partial

from firebase_functions import logger
from google.cloud import firestore as gcf
from google.cloud.firestore import FieldFilter

import activity
import config
import fanout
from claims import claim_once, event_key
from pipeline import Effect, contained, run_effects


def count_comments(db, task_id: str) -> int:
    """Server-side count of the task's comments; no documents are downloaded."""
    query = db.collection(config.COMMENTS_COLLECTION).where(filter=FieldFilter("taskId", "==", task_id))
    result = query.count(alias="comments").get()
    return int(result[0][0].value)


def refresh_comment_count(db, task_id: str, deleted: bool = False) -> int:
    count = count_comments(db, task_id)
    if deleted:
        last_comment_at = gcf.SERVER_TIMESTAMP if count > 0 else None
    else:
        last_comment_at = gcf.SERVER_TIMESTAMP
    db.collection(config.TASKS_COLLECTION).document(task_id).update({
        "commentCount": count,
        "lastCommentAt": last_comment_at,
    })
    logger.debug("Comment count refreshed", taskId=task_id, commentCount=count)
    return count


def plan_comment_created(clients, comment_id, comment, task):
    db = clients.db
    task_id = comment["taskId"]
    comment = {**comment, "id": comment_id}

    effects = [Effect("comment_count", partial(refresh_comment_count, db, task_id))]
    for user_id in fanout.comment_recipients(task, comment):
        effects.append(Effect(f"notify_{user_id}", partial(
            fanout.send_comment, clients, user_id, task_id, task, comment)))
    effects.append(Effect("activity_commented", partial(
        activity.log_activity, db, task_id, comment.get("userId"), "commented",
        {"taskTitle": task.get("title"), "commentId": comment_id})))
    return effects


@contained("comment created")
def handle_comment_created(clients, comment_id, comment, event_id=None):
    if not comment or not comment.get("taskId"):
        return None

    task_id = comment["taskId"]
    task = fanout.get_document(clients.db, config.TASKS_COLLECTION, task_id)
    if task is None:
        logger.debug("Comment on a missing task, ignoring", commentId=comment_id, taskId=task_id)
        return None
    if not claim_once(clients.db, event_key("comment-created", event_id)):
        return None

    return run_effects(plan_comment_created(clients, comment_id, comment, task),
                       context=f"comment created {comment_id}")


@contained("comment deleted")
def handle_comment_deleted(clients, comment_id, comment, event_id=None):
    if not comment or not comment.get("taskId"):
        return None

    task_id = comment["taskId"]
    if fanout.get_document(clients.db, config.TASKS_COLLECTION, task_id) is None:
        return None

    # Recounting is idempotent, so redelivered deletes need no claim
    effects = [Effect("comment_count", partial(refresh_comment_count, clients.db, task_id, True))]
    return run_effects(effects, context=f"comment deleted {comment_id}")
