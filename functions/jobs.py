from dataclasses import asdict, dataclass
from typing import Dict, Optional

from firebase_functions import logger

import config
from claims import claim_once


@dataclass
class JobSummary:
    job: str
    matched: int = 0
    notified: int = 0
    skipped: int = 0
    failed: int = 0
    ran: bool = True
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)

    def log(self):
        logger.info("Job finished", **self.as_dict())

    def abort(self, error: Exception) -> "JobSummary":
        """Stop the run after a failure outside the per-item loop."""
        self.error = f"{type(error).__name__}: {error}"
        logger.error("Job aborted", **self.as_dict())
        return self


def claim_job_period(db, job: str, period_key: str) -> bool:
    """With watermarks enabled, only the first run per period proceeds."""
    if not config.ENFORCE_JOB_WATERMARK:
        return True
    return claim_once(db, f"job-{job}-{period_key}", kind="job")
