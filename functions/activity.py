from google.cloud import firestore as gcf

import config

ACTIVITY_ACTIONS = {"created", "completed", "updated", "commented"}


def log_activity(db, task_id, user_id, action, details=None):
    """Append one audit record. Never read back by the pipeline."""
    if action not in ACTIVITY_ACTIONS:
        raise ValueError(f"Unknown activity action: {action}")

    _, ref = db.collection(config.ACTIVITIES_COLLECTION).add({
        "taskId": task_id,
        "userId": user_id,
        "action": action,
        "details": details or {},
        "createdAt": gcf.SERVER_TIMESTAMP,
    })
    return ref.id
