"""
Background processing of publish jobs.

Jobs are claimed one at a time from the ``publish_jobs`` table, so several
worker processes can share the queue. Each job is handed to the
PublicationManager, which talks to the commerce platform and records the
outcome.
"""

import logging
import time
from typing import Optional

from app.models.publish_job import PublishJob
from app.utils.transaction import transactional

logger = logging.getLogger(__name__)


class PublishWorker:
    """Drains the publish job queue."""

    def __init__(self, lifecycle):
        self.jobs = lifecycle.jobs
        self.manager = lifecycle.manager

    def claim(self) -> Optional[PublishJob]:
        with transactional():
            return self.jobs.claim_next()

    def run_job(self, job: PublishJob) -> PublishJob:
        logger.info("Running %s job %s for bundle %s", job.action, job.id, job.draft_id)
        return self.manager.run_job(job)

    def run_once(self) -> int:
        """Process every queued job. Returns the number processed."""
        processed = 0
        while True:
            job = self.claim()
            if job is None:
                break
            self.run_job(job)
            processed += 1

        if processed:
            logger.info("Processed %d publish job(s)", processed)
        return processed

    def run_forever(self, interval: float = 5.0) -> None:
        logger.info("Publish worker started (poll interval %.1fs)", interval)
        while True:
            if not self.run_once():
                time.sleep(interval)
