"""
Self-hosted scheduler for the periodic jobs.

The deployed functions use Cloud Scheduler; this runs the same jobs when the
pipeline is hosted outside Cloud Functions, e.g. next to the ops API.

    python scheduler.py --daemon
    python scheduler.py --once --job weekly-summary
"""
import argparse
import threading
import time

import schedule
from firebase_functions import logger

import config
import deadline_notifications
import recurring_tasks
import task_reminders
import weekly_summary
from clients import init_clients

JOBS = {
    "daily-reminders": lambda clients: deadline_notifications.send_daily_reminders(clients),
    "weekly-summary": lambda clients: weekly_summary.send_weekly_summaries(clients),
    "scheduled-reminders": lambda clients: task_reminders.process_due_reminders(clients),
    "recurring-tasks": lambda clients: recurring_tasks.generate_recurring_tasks(clients.db),
}


def run_job(name: str, clients):
    """Run one job by name and return its summary."""
    logger.info("Running job", job=name)
    return JOBS[name](clients)


def safe_run_job(name: str, clients):
    """Wrapper that keeps the scheduler loop alive when a job raises."""
    try:
        return run_job(name, clients)
    except Exception as e:
        logger.error("Scheduled job failed", job=name, error=str(e))
        return None


def register_jobs(clients, scheduler=None):
    scheduler = scheduler or schedule.default_scheduler
    tz = config.SCHEDULE_TIMEZONE

    scheduler.every().day.at(config.DAILY_REMINDER_TIME, tz).do(safe_run_job, "daily-reminders", clients)
    weekly = getattr(scheduler.every(), config.WEEKLY_SUMMARY_DAY.lower())
    weekly.at(config.WEEKLY_SUMMARY_TIME, tz).do(safe_run_job, "weekly-summary", clients)
    scheduler.every().minute.do(safe_run_job, "scheduled-reminders", clients)
    scheduler.every().day.at(config.RECURRING_TASK_TIME, tz).do(safe_run_job, "recurring-tasks", clients)
    return scheduler


def run_scheduler(clients):
    """Run scheduled jobs forever"""
    scheduler = register_jobs(clients)
    logger.info("Scheduler started",
                dailyReminders=config.DAILY_REMINDER_TIME,
                weeklySummary=f"{config.WEEKLY_SUMMARY_DAY} {config.WEEKLY_SUMMARY_TIME}",
                recurringTasks=config.RECURRING_TASK_TIME,
                timezone=config.SCHEDULE_TIMEZONE)
    while True:
        scheduler.run_pending()
        time.sleep(1)


def start_background_scheduler(clients) -> threading.Thread:
    """Start the scheduler in a daemon thread"""
    scheduler_thread = threading.Thread(target=run_scheduler, args=(clients,), daemon=True)
    scheduler_thread.start()
    return scheduler_thread


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run notification pipeline jobs")
    parser.add_argument("--daemon", action="store_true", help="Run as daemon process")
    parser.add_argument("--once", action="store_true", help="Run one job and exit")
    parser.add_argument("--job", choices=sorted(JOBS), default="daily-reminders",
                        help="Job to run with --once")

    args = parser.parse_args()
    clients = init_clients()

    if args.once:
        summary = run_job(args.job, clients)
        print(summary.as_dict())
    else:
        # Default: run as daemon
        run_scheduler(clients)
