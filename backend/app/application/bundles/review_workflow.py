# app/application/bundles/review_workflow.py
from typing import List, Optional

from sqlalchemy import case, func, select

from app.extensions import db
from app.domain.actors import Actor
from app.domain.exceptions import AuthorizationError, StateConflictError, ValidationError
from app.domain.lifecycle.bundle import (
    DRAFT,
    PENDING_REVIEW,
    PENDING_UPDATE,
    REJECTED,
    REVIEW_PENDING,
    assert_bundle_transition,
)
from app.models.base import utc_now
from app.models.bundle_draft import BundleDraft
from app.models.review_event import (
    APPROVED,
    CHANGES_REQUESTED,
    REJECTED as REJECTED_VERDICT,
    SUBMITTED,
    ReviewEvent,
)
from app.repositories.draft_store import DraftStore
from app.utils.audit import AuditTrail


class ReviewWorkflow:
    """
    Manager-facing gate in front of publication.

    Each review round is opened by a submission and closed by exactly one
    verdict. Rounds are stored as append-only ReviewEvent rows.

    Methods here do not open transactions; callers wrap them.
    """

    def __init__(self, *, drafts: DraftStore, audit: AuditTrail):
        self.drafts = drafts
        self.audit = audit

    # -------------------------------------------------
    # Rounds
    # -------------------------------------------------

    def open_round(self, draft: BundleDraft, *, actor_id: str, kind: str) -> ReviewEvent:
        """Record a submission. The draft must already be in a pending status."""
        if draft.status not in REVIEW_PENDING:
            raise StateConflictError("A review round can only be opened for a pending bundle")

        open_round = self.current_round(draft.id)
        if open_round is not None:
            raise StateConflictError("Bundle already has an open review request")

        event = ReviewEvent()
        event.draft_id = draft.id
        event.round = self._next_round(draft.id)
        event.event = SUBMITTED
        event.kind = kind
        event.actor_id = actor_id

        db.session.add(event)
        db.session.flush()
        return event

    def current_round(self, draft_id: str) -> Optional[ReviewEvent]:
        """The submission event of the open round, or None when every round has a verdict."""
        last_round = self._last_round(draft_id)
        if not last_round:
            return None

        events = db.session.execute(
            select(ReviewEvent).where(
                ReviewEvent.draft_id == draft_id,
                ReviewEvent.round == last_round,
            )
        ).scalars().all()

        if any(event.is_verdict for event in events):
            return None
        return next((event for event in events if event.event == SUBMITTED), None)

    def pending_queue(self) -> List[BundleDraft]:
        """Bundles waiting for a verdict, oldest submission first."""
        return self.drafts.list_by_status(PENDING_REVIEW, PENDING_UPDATE)

    def history(self, draft_id: str) -> List[ReviewEvent]:
        """Newest round first; within a round the submission precedes its verdict."""
        return list(
            db.session.execute(
                select(ReviewEvent)
                .where(ReviewEvent.draft_id == draft_id)
                .order_by(
                    ReviewEvent.round.desc(),
                    case((ReviewEvent.event == SUBMITTED, 0), else_=1),
                )
            ).scalars()
        )

    def _last_round(self, draft_id: str) -> int:
        last = db.session.execute(
            select(func.max(ReviewEvent.round)).where(ReviewEvent.draft_id == draft_id)
        ).scalar()
        return last or 0

    def _next_round(self, draft_id: str) -> int:
        return self._last_round(draft_id) + 1

    def _close_round(self, draft: BundleDraft, reviewer: Actor, verdict: str, notes: Optional[str]) -> ReviewEvent:
        opened = self.current_round(draft.id)
        if opened is None:
            raise StateConflictError("Bundle has no open review round")

        event = ReviewEvent()
        event.draft_id = draft.id
        event.round = opened.round
        event.event = verdict
        event.kind = opened.kind
        event.actor_id = reviewer.user_id
        event.notes = notes

        db.session.add(event)

        draft.reviewed_by = reviewer.user_id
        draft.reviewed_at = utc_now()
        return event

    # -------------------------------------------------
    # Verdicts
    # -------------------------------------------------

    def _assert_reviewable(self, draft: BundleDraft, reviewer: Actor) -> None:
        if not reviewer.is_reviewer:
            raise AuthorizationError("Only managers can review bundles")

        if draft.status not in REVIEW_PENDING:
            raise StateConflictError("Bundle is not pending review or update")

    def approve(self, draft: BundleDraft, reviewer: Actor, notes: Optional[str] = None) -> ReviewEvent:
        """
        Close the round as approved.

        The move to ``publishing`` belongs to the PublicationManager, which
        also queues the sync.
        """
        self._assert_reviewable(draft, reviewer)
        return self._close_round(draft, reviewer, APPROVED, (notes or "").strip() or None)

    def reject(self, draft: BundleDraft, reviewer: Actor, reason: str) -> ReviewEvent:
        return self._send_back(draft, reviewer, reason, REJECTED_VERDICT, "bundle.reject")

    def request_changes(self, draft: BundleDraft, reviewer: Actor, notes: str) -> ReviewEvent:
        return self._send_back(draft, reviewer, notes, CHANGES_REQUESTED, "bundle.request_changes")

    def _send_back(self, draft: BundleDraft, reviewer: Actor, notes: str, verdict: str, action: str) -> ReviewEvent:
        if not reviewer.is_reviewer:
            raise AuthorizationError("Only managers can review bundles")

        notes = (notes or "").strip()
        if not notes:
            raise ValidationError("A reason is required")

        self._assert_reviewable(draft, reviewer)

        # A new bundle goes back to draft; a rejected update keeps its snapshot
        # and remote linkage until it is resubmitted.
        target = DRAFT if draft.status == PENDING_REVIEW else REJECTED
        from_status = draft.status
        assert_bundle_transition(from_status=from_status, to_status=target)

        event = self._close_round(draft, reviewer, verdict, notes)
        draft.status = target
        draft.rejection_reason = notes

        self.audit.record(
            actor_id=reviewer.user_id,
            action=action,
            entity_type="bundle",
            entity_id=draft.id,
            payload={"reason": notes, "from_status": from_status, "round": event.round},
        )
        return event
