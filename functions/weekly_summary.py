import datetime as dt

from firebase_functions import logger
from google.cloud.firestore import FieldFilter

import config
import fanout
from jobs import JobSummary, claim_job_period
from timeutil import local_week_key, now_utc


def count_completed_since(db, group_id, member_id, since):
    query = (
        db.collection(config.TASKS_COLLECTION)
        .where(filter=FieldFilter("groupId", "==", group_id))
        .where(filter=FieldFilter("completedBy", "==", member_id))
        .where(filter=FieldFilter("completedAt", ">=", since))
    )
    return int(query.count(alias="completed").get()[0][0].value)


def summarize_group(clients, group_id, group, since, summary):
    """One summary per member; a failing member does not stop the rest."""
    for member_id in group.get("memberIds") or []:
        summary.matched += 1
        try:
            completed = count_completed_since(clients.db, group_id, member_id, since)
            result = fanout.notify_user(clients, member_id,
                                        fanout.weekly_summary_template(group_id, completed))
        except Exception as e:
            logger.error("Weekly summary failed for member", groupId=group_id, userId=member_id, error=str(e))
            summary.failed += 1
            continue
        if result.notified:
            summary.notified += 1
        else:
            summary.skipped += 1


def send_weekly_summaries(clients, now=None) -> JobSummary:
    now = now or now_utc()
    summary = JobSummary("weekly-summary")
    since = now - dt.timedelta(days=config.WEEKLY_SUMMARY_DAYS)

    try:
        if not claim_job_period(clients.db, summary.job, local_week_key(now)):
            summary.ran = False
            return summary
        logger.info("Running weekly summary", since=since.isoformat())
        groups = clients.db.collection(config.GROUPS_COLLECTION).stream()

        for group_doc in groups:
            try:
                summarize_group(clients, group_doc.id, group_doc.to_dict() or {}, since, summary)
            except Exception as e:
                logger.error("Weekly summary failed for group", groupId=group_doc.id, error=str(e))
                summary.failed += 1
    except Exception as e:
        # The groups stream itself broke; members already summarized stay sent
        return summary.abort(e)

    summary.log()
    return summary
