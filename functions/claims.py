import datetime as dt
from typing import Optional

from firebase_functions import logger
from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore as gcf

import config
from timeutil import now_utc


def claim_once(db, key: Optional[str], kind: str = "event", now=None) -> bool:
    """Create processedEvents/{key}; False if it already existed.

    Used to make redelivered trigger events and repeated job runs no-ops.
    A missing key always claims, since there is nothing to dedupe on.
    Markers expire after PROCESSED_EVENT_TTL_DAYS, well past any redelivery window.
    """
    if not key:
        return True
    expire_at = (now or now_utc()) + dt.timedelta(days=config.PROCESSED_EVENT_TTL_DAYS)
    ref = db.collection(config.PROCESSED_EVENTS_COLLECTION).document(key)
    try:
        ref.create({"kind": kind, "createdAt": gcf.SERVER_TIMESTAMP, "expireAt": expire_at})
    except AlreadyExists:
        logger.info("Already processed, skipping", key=key, kind=kind)
        return False
    return True


def event_key(handler: str, event_id: Optional[str]) -> Optional[str]:
    return f"{handler}-{event_id}" if event_id else None
