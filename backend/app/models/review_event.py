from sqlalchemy import event

from app.extensions import db
from .base import BaseModel

SUBMITTED = "submitted"
APPROVED = "approved"
REJECTED = "rejected"
CHANGES_REQUESTED = "changes_requested"

VERDICTS = {APPROVED, REJECTED, CHANGES_REQUESTED}


class ReviewEvent(BaseModel):
    __tablename__ = "bundle_review_events"

    draft_id = db.Column(
        db.String(36),
        db.ForeignKey("bundle_drafts.id"),
        nullable=False,
        index=True,
    )

    round = db.Column(db.Integer, nullable=False)
    event = db.Column(db.String(32), nullable=False)
    # submitted | approved | rejected | changes_requested
    kind = db.Column(db.String(16), nullable=False, default="new")  # new | update

    actor_id = db.Column(db.String(36), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("draft_id", "round", "event", name="uq_review_round_event"),
        db.Index("idx_review_draft_round", "draft_id", "round"),
    )

    @property
    def is_verdict(self) -> bool:
        return self.event in VERDICTS


@event.listens_for(ReviewEvent, "before_update")
@event.listens_for(ReviewEvent, "before_delete")
def prevent_review_mutation(mapper, connection, target):
    raise RuntimeError("Review history is append-only")
