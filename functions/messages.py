from typing import Optional, Tuple

import config

DEFAULT_LOCALE = "ko"

# kind -> (title, body template)
MESSAGES = {
    "ko": {
        "task_assigned": ("새 할일이 할당되었습니다", '{assigner}님이 "{title}" 할일을 할당했습니다.'),
        "task_reassigned": ("할일이 재할당되었습니다", '"{title}" 할일이 당신에게 할당되었습니다.'),
        "task_completed": ("할일이 완료되었습니다", '{completer}님이 "{title}" 할일을 완료했습니다.'),
        "new_comment": ("새 댓글이 있습니다", '{author}님이 "{title}" 할일에 댓글을 남겼습니다.'),
        "mention": ("멘션되었습니다", '{author}님이 "{title}" 할일에서 당신을 멘션했습니다.'),
        "task_reminder": ("할일 알림", '"{title}" - {due}'),
        "scheduled_reminder": ("할일 알림", '"{title}" - {minutes}분 후 마감입니다.'),
        "weekly_summary": ("주간 요약", "이번 주에 {count}개의 할일을 완료했습니다! 👏"),
    },
    "en": {
        "task_assigned": ("New task assigned", '{assigner} assigned you "{title}".'),
        "task_reassigned": ("Task reassigned", '"{title}" has been assigned to you.'),
        "task_completed": ("Task completed", '{completer} completed "{title}".'),
        "new_comment": ("New comment", '{author} commented on "{title}".'),
        "mention": ("You were mentioned", '{author} mentioned you on "{title}".'),
        "task_reminder": ("Task reminder", '"{title}" - {due}'),
        "scheduled_reminder": ("Task reminder", '"{title}" - due in {minutes} minutes.'),
        "weekly_summary": ("Weekly summary", "You completed {count} tasks this week! 👏"),
    },
}

DUE_PHRASES = {
    "ko": {
        "overdue": "이미 마감되었습니다",
        "hours": "{n}시간 후 마감",
        "days": "{n}일 후 마감",
    },
    "en": {
        "overdue": "already due",
        "hours": "due in {n} hours",
        "days": "due in {n} days",
    },
}

SOMEONE = {"ko": "누군가", "en": "Someone"}


def resolve_locale(locale: Optional[str] = None) -> str:
    locale = (locale or config.NOTIFICATION_LOCALE or DEFAULT_LOCALE).lower()
    return locale if locale in MESSAGES else DEFAULT_LOCALE


def render(kind: str, locale: Optional[str] = None, **params) -> Tuple[str, str]:
    """Return the (title, body) copy for a notification kind."""
    title, body = MESSAGES[resolve_locale(locale)][kind]
    return title, body.format(**params)


def due_phrase(bucket: str, amount: int = 0, locale: Optional[str] = None) -> str:
    return DUE_PHRASES[resolve_locale(locale)][bucket].format(n=amount)


def someone(locale: Optional[str] = None) -> str:
    return SOMEONE[resolve_locale(locale)]
