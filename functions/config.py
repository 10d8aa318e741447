import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# --- Firebase ---
PROJECT_ID = os.environ.get("FIREBASE_PROJECT_ID", "moonwave-app")
SERVICE_ACCOUNT_PATH = os.environ.get("FIREBASE_SERVICE_ACCOUNT_PATH", "./serviceAccountKey.json")
USE_EMULATOR = _env_bool("FIREBASE_USE_EMULATOR")
REGION = os.environ.get("FUNCTIONS_REGION", "asia-northeast3")

# --- Collections ---
USERS_COLLECTION = "users"
TASKS_COLLECTION = "tasks"
COMMENTS_COLLECTION = "comments"
GROUPS_COLLECTION = "groups"
NOTIFICATIONS_COLLECTION = "notifications"
ACTIVITIES_COLLECTION = "activities"
SCHEDULED_REMINDERS_COLLECTION = "scheduledReminders"
PROCESSED_EVENTS_COLLECTION = "processedEvents"

# Tasks that are not shared with a group carry this groupId
PERSONAL_GROUP_ID = "personal"

# --- Notifications ---
NOTIFICATION_LOCALE = os.environ.get("NOTIFICATION_LOCALE", "ko")
NOTIFICATION_ICON = os.environ.get("NOTIFICATION_ICON", "/moonwave-icon.svg")

# --- Schedules (local time in SCHEDULE_TIMEZONE) ---
SCHEDULE_TIMEZONE = os.environ.get("SCHEDULE_TIMEZONE", "Asia/Seoul")
DAILY_REMINDER_SCHEDULE = os.environ.get("DAILY_REMINDER_SCHEDULE", "0 9 * * *")
WEEKLY_SUMMARY_SCHEDULE = os.environ.get("WEEKLY_SUMMARY_SCHEDULE", "0 18 * * 0")
TASK_REMINDER_SCHEDULE = os.environ.get("TASK_REMINDER_SCHEDULE", "every 1 minutes")
RECURRING_TASK_SCHEDULE = os.environ.get("RECURRING_TASK_SCHEDULE", "0 0 * * *")

# Same jobs for the self-hosted `schedule` daemon
DAILY_REMINDER_TIME = os.environ.get("DAILY_REMINDER_TIME", "09:00")
WEEKLY_SUMMARY_DAY = os.environ.get("WEEKLY_SUMMARY_DAY", "sunday")
WEEKLY_SUMMARY_TIME = os.environ.get("WEEKLY_SUMMARY_TIME", "18:00")
RECURRING_TASK_TIME = os.environ.get("RECURRING_TASK_TIME", "00:00")

# --- Jobs ---
JOB_TIMEOUT_SEC = _env_int("JOB_TIMEOUT_SEC", 540)
REMINDER_FANOUT_WORKERS = _env_int("REMINDER_FANOUT_WORKERS", 16)
SCHEDULED_REMINDER_BATCH_SIZE = _env_int("SCHEDULED_REMINDER_BATCH_SIZE", 50)
MAX_REMINDER_RETRIES = _env_int("MAX_REMINDER_RETRIES", 5)
WEEKLY_SUMMARY_DAYS = _env_int("WEEKLY_SUMMARY_DAYS", 7)
USER_STATS_MAX_ATTEMPTS = _env_int("USER_STATS_MAX_ATTEMPTS", 5)
# processedEvents markers carry expireAt; a Firestore TTL policy on that field deletes them
PROCESSED_EVENT_TTL_DAYS = _env_int("PROCESSED_EVENT_TTL_DAYS", 7)
# Skip a job run when one already ran for the same period
ENFORCE_JOB_WATERMARK = _env_bool("ENFORCE_JOB_WATERMARK")

# --- Ops API ---
OPS_API_TOKEN = os.environ.get("OPS_API_TOKEN", "")
ENABLE_BACKGROUND_SCHEDULER = _env_bool("ENABLE_BACKGROUND_SCHEDULER", True)
