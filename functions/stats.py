import math
from typing import Any, Dict, Optional

from firebase_functions import logger
from google.api_core.exceptions import FailedPrecondition
from google.cloud import firestore as gcf
from google.cloud.firestore import FieldFilter

import config


class StatsConflictError(Exception):
    """User stats could not be written after repeated concurrent modifications."""


def is_shared_group(group_id: Optional[str]) -> bool:
    return bool(group_id) and group_id != config.PERSONAL_GROUP_ID


def completion_rate(completed: int, total: int) -> int:
    """Percentage rounded half-up; 0 for an empty group."""
    if total <= 0:
        return 0
    return int(math.floor(completed * 100 / total + 0.5))


def update_group_stats(db, group_id: str) -> Dict[str, int]:
    """Recount every task in the group and overwrite its aggregate fields.

    A full recount rather than an increment, so a redelivered event or two
    racing writers still leave the document matching a real scan.
    """
    tasks = db.collection(config.TASKS_COLLECTION).where(
        filter=FieldFilter("groupId", "==", group_id)
    ).stream()

    total = 0
    completed = 0
    for doc in tasks:
        total += 1
        if (doc.to_dict() or {}).get("status") == "completed":
            completed += 1

    group_stats = {
        "totalTasks": total,
        "completedTasks": completed,
        "completionRate": completion_rate(completed, total),
    }
    db.collection(config.GROUPS_COLLECTION).document(group_id).update(
        {**group_stats, "updatedAt": gcf.SERVER_TIMESTAMP}
    )
    logger.info("Group stats updated", groupId=group_id, **group_stats)
    return group_stats


def next_user_stats(stats: Dict[str, Any], today_key: str) -> Dict[str, Any]:
    """Stats after one more completion on `today_key`.

    The streak advances at most once per calendar day.
    """
    updated = dict(stats or {})
    updated["totalTasksCompleted"] = (updated.get("totalTasksCompleted") or 0) + 1
    if updated.get("lastCompletionDate") != today_key:
        updated["currentStreak"] = (updated.get("currentStreak") or 0) + 1
        updated["longestStreak"] = max(updated.get("longestStreak") or 0, updated["currentStreak"])
        updated["lastCompletionDate"] = today_key
    return updated


def record_completion(db, user_id: Optional[str], today_key: str,
                      max_attempts: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """Apply one completion to the user's stats with compare-and-swap.

    The write is conditioned on the document's update_time from the read, and
    retried from a fresh read when another writer got there first.
    """
    if not user_id:
        return None
    attempts = max_attempts or config.USER_STATS_MAX_ATTEMPTS
    ref = db.collection(config.USERS_COLLECTION).document(user_id)

    for attempt in range(1, attempts + 1):
        snapshot = ref.get()
        if not snapshot.exists:
            logger.warn("Completion not recorded, user not found", userId=user_id)
            return None

        stats = next_user_stats((snapshot.to_dict() or {}).get("stats") or {}, today_key)
        try:
            ref.update(
                {"stats": stats, "updatedAt": gcf.SERVER_TIMESTAMP},
                option=db.write_option(last_update_time=snapshot.update_time),
            )
        except FailedPrecondition:
            logger.warn("User stats changed concurrently, retrying", userId=user_id, attempt=attempt)
            continue
        return stats

    raise StatsConflictError(f"Could not update stats for user {user_id} after {attempts} attempts")
