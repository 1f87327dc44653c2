# app/repositories/job_store.py
from typing import List, Optional

from sqlalchemy import select

from app.extensions import db
from app.domain.exceptions import StateConflictError
from app.models.base import utc_now
from app.models.publish_job import (
    ACTIVE_STATUSES,
    FAILED,
    JOB_ACTIONS,
    QUEUED,
    RUNNING,
    SUCCEEDED,
    PublishJob,
)


class PublishJobStore:
    """
    Queue of publish work keyed by draft id.

    At most one queued or running job exists per draft; enqueueing a second
    one is a state conflict rather than a duplicate remote call.
    """

    def active_for_draft(self, draft_id: str) -> Optional[PublishJob]:
        return db.session.execute(
            select(PublishJob).where(
                PublishJob.draft_id == draft_id,
                PublishJob.status.in_(ACTIVE_STATUSES),
            )
        ).scalar_one_or_none()

    def enqueue(self, *, draft_id: str, publication_id: str, action: str, requested_by: Optional[str]) -> PublishJob:
        if action not in JOB_ACTIONS:
            raise ValueError(f"Unknown publish job action: {action}")

        if self.active_for_draft(draft_id):
            raise StateConflictError("A publish job is already queued for this bundle")

        job = PublishJob()
        job.draft_id = draft_id
        job.publication_id = publication_id
        job.action = action
        job.status = QUEUED
        job.requested_by = requested_by

        db.session.add(job)
        db.session.flush()
        return job

    def get(self, job_id: str) -> Optional[PublishJob]:
        return db.session.get(PublishJob, job_id)

    def claim_next(self) -> Optional[PublishJob]:
        """Lock the oldest queued job and mark it running. Caller commits."""
        job = db.session.execute(
            select(PublishJob)
            .where(PublishJob.status == QUEUED)
            .order_by(PublishJob.created_at.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        ).scalar_one_or_none()

        if job:
            self.start(job)
        return job

    def start(self, job: PublishJob) -> None:
        job.status = RUNNING
        job.started_at = utc_now()
        db.session.flush()

    def finish(self, job: PublishJob, *, error: Optional[str] = None) -> None:
        job.status = FAILED if error else SUCCEEDED
        job.last_error = error
        job.finished_at = utc_now()

    def list_queued(self) -> List[PublishJob]:
        return list(
            db.session.execute(
                select(PublishJob).where(PublishJob.status == QUEUED).order_by(PublishJob.created_at.asc())
            ).scalars()
        )
