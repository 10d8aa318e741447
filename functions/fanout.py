"""
Notification fanout.

Turns one event into a notification for one recipient: looks the user up,
multicasts a push to every registered device, and always stores the in-app
Notification record, whether or not the push went out.

A user without a document is skipped. A user without device tokens still
gets the in-app record.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from firebase_admin import exceptions as firebase_exceptions
from firebase_functions import logger

import config
import messages
from notifications import add_notification, notification_data
from push import DeliveryResult, PushPayload


@dataclass
class NotificationTemplate:
    type: str
    title: str
    body: str
    priority: str = "medium"
    url: str = "/"
    task_id: Optional[str] = None
    group_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    icon: Optional[str] = None
    badge: Optional[str] = None
    android_channel: Optional[str] = None
    high_priority: bool = False
    apns_category: Optional[str] = None

    def push_payload(self, tokens: List[str]) -> PushPayload:
        data = {
            "type": self.type,
            "taskId": self.task_id,
            "groupId": self.group_id,
            "url": self.url,
            **self.extra,
        }
        return PushPayload(
            title=self.title,
            body=self.body,
            tokens=tokens,
            data=data,
            icon=self.icon,
            badge=self.badge,
            android_channel=self.android_channel,
            high_priority=self.high_priority,
            apns_category=self.apns_category,
        )

    def record(self, user_id: str) -> Dict[str, Any]:
        return {
            "userId": user_id,
            "title": self.title,
            "message": self.body,
            "type": self.type,
            "priority": self.priority,
            "data": notification_data(self.task_id, self.group_id, self.url),
        }


@dataclass
class FanoutResult:
    user_id: Optional[str]
    notification_id: Optional[str] = None
    delivery: Optional[DeliveryResult] = None
    skipped: Optional[str] = None

    @property
    def notified(self) -> bool:
        return self.notification_id is not None


def get_document(db, collection: str, doc_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not doc_id:
        return None
    doc = db.collection(collection).document(doc_id).get()
    return (doc.to_dict() or {}) if doc.exists else None


def get_user(db, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
    return get_document(db, config.USERS_COLLECTION, user_id)


def display_name(db, user_id: Optional[str], locale: Optional[str] = None) -> str:
    user = get_user(db, user_id)
    if user and user.get("displayName"):
        return user["displayName"]
    return messages.someone(locale)


def registered_tokens(user: Dict[str, Any]) -> List[str]:
    """Distinct non-empty device tokens, in registration order."""
    seen = set()
    tokens = []
    for token in user.get("fcmTokens") or []:
        if not token or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def notify_user(clients, user_id: Optional[str], template: NotificationTemplate) -> FanoutResult:
    user = get_user(clients.db, user_id)
    if user is None:
        logger.debug("Notification skipped, recipient not found", userId=user_id, type=template.type)
        return FanoutResult(user_id, skipped="recipient_not_found")

    delivery = None
    tokens = registered_tokens(user)
    if tokens:
        try:
            delivery = clients.push.send_multicast(template.push_payload(tokens))
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            logger.error("Push delivery failed", userId=user_id, type=template.type, error=str(e))
            delivery = DeliveryResult(0, len(tokens))
        else:
            logger.info("Push delivered", userId=user_id, type=template.type,
                        successCount=delivery.success_count, failureCount=delivery.failure_count)
    else:
        logger.debug("No device tokens, storing in-app notification only", userId=user_id)

    stored = add_notification(clients.db, template.record(user_id))
    return FanoutResult(user_id, notification_id=stored["id"], delivery=delivery)


def _task_url(task_id):
    return f"/tasks/{task_id}"


# --- Templates ---

def task_assigned_template(task_id, task, assigner, locale=None):
    title, body = messages.render("task_assigned", locale, assigner=assigner, title=task.get("title", ""))
    return NotificationTemplate("task_assigned", title, body, priority="medium",
                                url=_task_url(task_id), task_id=task_id)


def task_reassigned_template(task_id, task, locale=None):
    title, body = messages.render("task_reassigned", locale, title=task.get("title", ""))
    return NotificationTemplate("task_reassigned", title, body, priority="medium",
                                url=_task_url(task_id), task_id=task_id)


def task_completed_template(task_id, task, completer, locale=None):
    title, body = messages.render("task_completed", locale, completer=completer, title=task.get("title", ""))
    return NotificationTemplate("task_completed", title, body, priority="low",
                                url=_task_url(task_id), task_id=task_id)


def comment_template(task_id, task, comment, recipient_id, locale=None):
    """Mentioned recipients get the `mention` variant: high priority, its own copy and channels."""
    mentioned = recipient_id in (comment.get("mentions") or [])
    kind = "mention" if mentioned else "new_comment"
    author = comment.get("userName") or messages.someone(locale)
    title, body = messages.render(kind, locale, author=author, title=task.get("title", ""))
    return NotificationTemplate(
        kind,
        title,
        body,
        priority="high" if mentioned else "medium",
        url=_task_url(task_id),
        task_id=task_id,
        extra={
            "commentId": comment.get("id"),
            "userId": comment.get("userId"),
            "userName": comment.get("userName"),
        },
        icon=config.NOTIFICATION_ICON,
        badge=config.NOTIFICATION_ICON,
        android_channel="mentions" if mentioned else "comments",
        high_priority=mentioned,
        apns_category="MENTION" if mentioned else "COMMENT",
    )


def task_reminder_template(task_id, task, bucket, amount, locale=None):
    due = messages.due_phrase(bucket, amount, locale)
    title, body = messages.render("task_reminder", locale, title=task.get("title", ""), due=due)
    return NotificationTemplate("task_reminder", title, body, priority="high",
                                url=_task_url(task_id), task_id=task_id,
                                extra={"urgency": bucket})


def scheduled_reminder_template(reminder, locale=None):
    task_id = reminder.get("taskId")
    title, body = messages.render("scheduled_reminder", locale, title=reminder.get("taskTitle", ""),
                                  minutes=reminder.get("offsetMinutes"))
    return NotificationTemplate("task_reminder", title, body, priority="high",
                                url=_task_url(task_id), task_id=task_id,
                                extra={"offsetMinutes": reminder.get("offsetMinutes")})


def weekly_summary_template(group_id, completed_count, locale=None):
    title, body = messages.render("weekly_summary", locale, count=completed_count)
    return NotificationTemplate("weekly_summary", title, body, priority="low",
                                url="/statistics", group_id=group_id)


# --- Event-specific sends ---

def send_task_assigned(clients, task_id, task):
    assigner = display_name(clients.db, task.get("userId"))
    return notify_user(clients, task.get("assigneeId"), task_assigned_template(task_id, task, assigner))


def send_task_reassigned(clients, task_id, task):
    return notify_user(clients, task.get("assigneeId"), task_reassigned_template(task_id, task))


def send_task_completed(clients, task_id, task):
    completer = display_name(clients.db, task.get("completedBy"))
    return notify_user(clients, task.get("userId"), task_completed_template(task_id, task, completer))


def comment_recipients(task: Dict[str, Any], comment: Dict[str, Any]) -> List[str]:
    """Task creator and assignee, without the comment author and without repeats."""
    author = comment.get("userId")
    recipients = []
    for user_id in (task.get("userId"), task.get("assigneeId")):
        if user_id and user_id != author and user_id not in recipients:
            recipients.append(user_id)
    return recipients


def send_comment(clients, user_id, task_id, task, comment):
    return notify_user(clients, user_id, comment_template(task_id, task, comment, user_id))
