from sqlalchemy import event

from app.extensions import db
from .base import BaseModel, utc_now

SYNC_PENDING = "pending"
SYNC_SYNCED = "synced"
SYNC_FAILED = "failed"


class BundlePublication(BaseModel):
    __tablename__ = "bundle_publications"

    draft_id = db.Column(
        db.String(36),
        db.ForeignKey("bundle_drafts.id"),
        nullable=False,
        unique=True,
        index=True,
    )

    remote_product_id = db.Column(db.String(64), nullable=True)
    remote_variant_id = db.Column(db.String(64), nullable=True)

    state = db.Column(db.String(20), nullable=False, default="pending")
    # pending | publishing | published | failed
    published_at = db.Column(db.DateTime(timezone=True), nullable=True)

    synced_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sync_status = db.Column(db.String(20), nullable=False, default=SYNC_PENDING, index=True)
    last_sync_error = db.Column(db.Text, nullable=True)
    sync_error_kind = db.Column(db.String(20), nullable=True)  # transient | rejected
    attempts = db.Column(db.Integer, nullable=False, default=0)

    draft = db.relationship("BundleDraft", back_populates="publication")

    __table_args__ = (
        db.CheckConstraint(
            "sync_status != 'synced' OR last_sync_error IS NULL",
            name="synced_has_no_error",
        ),
    )

    def mark_attempt(self):
        self.state = "publishing"
        self.attempts = (self.attempts or 0) + 1

    def mark_synced(self, *, product_id: str, variant_id: str, first_publish: bool = False):
        now = utc_now()
        self.remote_product_id = product_id
        self.remote_variant_id = variant_id
        self.state = "published"
        if first_publish or self.published_at is None:
            self.published_at = now
        self.synced_at = now
        self.sync_status = SYNC_SYNCED
        self.last_sync_error = None
        self.sync_error_kind = None

    def mark_failed(self, *, error: str, kind: str):
        # a live listing stays published remotely even when an update fails
        self.state = "published" if self.remote_product_id else "failed"
        self.sync_status = SYNC_FAILED
        self.last_sync_error = error
        self.sync_error_kind = kind


@event.listens_for(BundlePublication, "before_delete")
def prevent_publication_delete(mapper, connection, target):
    raise RuntimeError("Bundle publications are kept as an audit trail")
