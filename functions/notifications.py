from typing import Any, Dict

from firebase_functions import logger
from google.cloud import firestore as gcf

import config

PRIORITIES = {"low", "medium", "high"}


def add_notification(db, notification: Dict[str, Any]) -> Dict[str, Any]:
    """Persist one in-app Notification for `notification["userId"]`.

    Always created unread with a server timestamp. Empty entries in `data`
    are dropped. Returns the stored fields plus the new document id.
    """
    priority = notification.get("priority") or "medium"
    if priority not in PRIORITIES:
        raise ValueError(f"Unknown notification priority: {priority}")

    data = {k: v for k, v in (notification.get("data") or {}).items() if v is not None}
    notif = {
        "userId": notification.get("userId"),
        "title": notification.get("title"),
        "message": notification.get("message"),
        "type": notification.get("type"),
        "status": "unread",
        "priority": priority,
        "createdAt": gcf.SERVER_TIMESTAMP,
        "data": data,
    }
    notif = {k: v for k, v in notif.items() if v is not None}

    _, ref = db.collection(config.NOTIFICATIONS_COLLECTION).add(notif)
    logger.debug("Notification stored", notificationId=ref.id, userId=notif.get("userId"),
                 type=notif.get("type"))
    return {**notif, "id": ref.id}


def notification_data(task_id=None, group_id=None, action_url=None):
    return {"taskId": task_id, "groupId": group_id, "actionUrl": action_url}
