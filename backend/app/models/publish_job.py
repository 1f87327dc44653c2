from app.extensions import db
from .base import BaseModel

QUEUED = "queued"
RUNNING = "running"
SUCCEEDED = "succeeded"
FAILED = "failed"

ACTIVE_STATUSES = (QUEUED, RUNNING)

# publish: first listing; update: approved pending_update; resync: maintenance push
JOB_ACTIONS = ("publish", "update", "resync")


class PublishJob(BaseModel):
    __tablename__ = "publish_jobs"

    draft_id = db.Column(
        db.String(36),
        db.ForeignKey("bundle_drafts.id"),
        nullable=False,
        index=True,
    )
    publication_id = db.Column(
        db.String(36),
        db.ForeignKey("bundle_publications.id"),
        nullable=False,
    )

    action = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=QUEUED, index=True)
    requested_by = db.Column(db.String(36), nullable=True)

    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_error = db.Column(db.Text, nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
