# app/application/bundles/publication_manager.py
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app

from app.extensions import db
from app.domain.actors import TRAINER, Actor
from app.domain.exceptions import (
    AuthorizationError,
    StateConflictError,
    ValidationError,
)
from app.domain.invariants.bundle import CADENCES, assert_bundle
from app.domain.lifecycle.bundle import (
    EDITABLE,
    FAILED,
    PENDING_REVIEW,
    PENDING_UPDATE,
    PUBLISHED,
    PUBLISHING,
    REVIEW_PENDING,
    assert_bundle_transition,
)
from app.domain.line_items import PRODUCT, SERVICE, normalize_price, parse_line_items
from app.domain.snapshot import (
    cover_inputs,
    diff_snapshot,
    should_regenerate_cover,
    snapshot_bundle,
)
from app.integrations.commerce.base import (
    TRANSIENT,
    BundleListing,
    CommerceSyncAdapter,
    CommerceSyncError,
    ListingAttributes,
    ListingComponent,
    RemoteListing,
)
from app.integrations.cover_images import CoverImageError
from app.models.base import utc_now
from app.models.bundle_draft import BundleDraft
from app.models.bundle_publication import SYNC_PENDING, BundlePublication
from app.models.publish_job import PublishJob
from app.repositories.draft_store import DraftStore
from app.repositories.job_store import PublishJobStore
from app.repositories.publication_store import PublicationStore
from app.utils.audit import AuditTrail
from app.utils.transaction import transactional
from .review_workflow import ReviewWorkflow

ALLOWED_EDIT_FIELDS = ("title", "description", "price", "cadence", "products", "services", "goals", "image_url")


class PublicationManager:
    """
    Orchestrates a bundle from draft to live listing and keeps it in sync.

    Responsibilities:
    - trainer-side draft creation, edits and submission
    - approval → publish job → remote listing
    - re-syncs of live listings and their sync bookkeeping
    - audit logging of every transition

    Every public method is one unit of work: either all of its changes are
    committed or none are.
    """

    def __init__(
        self,
        *,
        drafts: DraftStore,
        publications: PublicationStore,
        jobs: PublishJobStore,
        reviews: ReviewWorkflow,
        adapter: CommerceSyncAdapter,
        images,
        audit: AuditTrail,
        eager: bool = False,
    ):
        self.drafts = drafts
        self.publications = publications
        self.jobs = jobs
        self.reviews = reviews
        self.adapter = adapter
        self.images = images
        self.audit = audit
        self.eager = eager

    # -------------------------------------------------
    # Guards
    # -------------------------------------------------

    @staticmethod
    def _assert_owner(draft: BundleDraft, actor: Actor) -> None:
        if actor.role != TRAINER or draft.trainer_id != actor.user_id:
            raise AuthorizationError("Only the owning trainer can change this bundle")

    @staticmethod
    def _assert_reviewer(actor: Actor) -> None:
        if not actor.is_reviewer:
            raise AuthorizationError("Only managers can perform this action")

    # -------------------------------------------------
    # Draft content
    # -------------------------------------------------

    def _parse_content(self, data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        """Validate request fields into model values. Unknown keys are ignored."""
        values: Dict[str, Any] = {}

        if "title" in data or not partial:
            title = (data.get("title") or "").strip()
            if not title:
                raise ValidationError("Title is required")
            values["title"] = title

        if "description" in data:
            values["description"] = data.get("description") or None

        if "price" in data:
            values["price"] = normalize_price(data.get("price"))

        if "cadence" in data or not partial:
            cadence = data.get("cadence") or "one_time"
            if cadence not in CADENCES:
                raise ValidationError(f"Unsupported cadence: {cadence}")
            values["cadence"] = cadence

        if "products" in data:
            values["products"] = parse_line_items(data.get("products"), PRODUCT)

        if "services" in data:
            values["services"] = parse_line_items(data.get("services"), SERVICE)

        if "goals" in data:
            goals = data.get("goals") or []
            if not isinstance(goals, list) or not all(isinstance(g, str) and g.strip() for g in goals):
                raise ValidationError("goals must be a list of non-empty strings")
            values["goals"] = [g.strip() for g in goals]

        if "image_url" in data:
            values["image_url"] = data.get("image_url") or None

        return values

    def _generate_cover(self, *, title: str, goals: List[str], products) -> Optional[str]:
        """Best effort: a failed generation leaves the bundle without a new image."""
        if not products:
            return None
        try:
            return self.images.generate(
                title=title,
                goal=goals[0] if goals else None,
                products=cover_inputs(products),
            )
        except CoverImageError as exc:
            current_app.logger.warning("Cover image generation failed for %r: %s", title, exc)
            return None

    def create_draft(self, *, actor: Actor, data: Dict[str, Any]) -> BundleDraft:
        """
        Create a new bundle in DRAFT state owned by the calling trainer.

        A cover image is generated when none is supplied and the bundle has
        products; generation failures do not block creation.
        """
        if actor.role != TRAINER:
            raise AuthorizationError("Only trainers can create bundles")

        values = self._parse_content(data, partial=False)

        if not values.get("image_url"):
            values["image_url"] = self._generate_cover(
                title=values["title"],
                goals=values.get("goals", []),
                products=values.get("products", []),
            )

        with transactional():
            draft = self.drafts.create(
                trainer_id=actor.user_id,
                status="draft",
                products_json=[],
                services_json=[],
                goals_json=[],
                **values,
            )
            assert_bundle(draft)

            self.audit.record(
                actor_id=actor.user_id,
                action="bundle.create",
                entity_type="bundle",
                entity_id=draft.id,
                payload={"title": draft.title, "image_generated": bool(draft.image_url and "image_url" not in data)},
            )

        return draft

    def enter_pending_update(self, draft: BundleDraft, *, actor_id: str) -> None:
        """
        Route a content change of a live bundle back through review.

        Coming from ``published`` the current content is frozen into
        ``published_snapshot`` first; a snapshot retained from an earlier
        rejected or failed round is kept as is. Must run before the change
        is applied.
        """
        if draft.status == PENDING_UPDATE:
            return

        if not draft.has_remote_listing:
            raise StateConflictError("Bundle has no live listing to update")

        assert_bundle_transition(from_status=draft.status, to_status=PENDING_UPDATE)

        if draft.status == PUBLISHED or draft.published_snapshot is None:
            draft.published_snapshot = snapshot_bundle(draft)

        draft.status = PENDING_UPDATE
        draft.submitted_for_review_at = utc_now()
        self.reviews.open_round(draft, actor_id=actor_id, kind="update")

    def edit_draft(self, *, draft_id: str, actor: Actor, data: Dict[str, Any]) -> Tuple[BundleDraft, List[str]]:
        """
        Apply a trainer's content edit.

        Design rules:
        - Only whitelisted fields are mutable
        - No silent no-op updates
        - Editing a published bundle moves it to pending_update
        """
        values = self._parse_content(data, partial=True)
        values = {field: value for field, value in values.items() if field in ALLOWED_EDIT_FIELDS}
        if not values:
            raise ValidationError("No valid fields provided for update")

        # Decide on the cover before taking the row lock; generation is slow
        current = self.drafts.get_or_raise(draft_id)
        self._assert_owner(current, actor)
        if "products" in values and "image_url" not in values:
            if should_regenerate_cover(cover_inputs(current.products), cover_inputs(values["products"])):
                image_url = self._generate_cover(
                    title=values.get("title", current.title),
                    goals=values.get("goals", current.goals),
                    products=values["products"],
                )
                if image_url:
                    values["image_url"] = image_url

        with transactional():
            draft = self.drafts.get_or_raise(draft_id, for_update=True)
            self._assert_owner(draft, actor)

            if draft.status not in EDITABLE:
                raise StateConflictError(f"Bundle cannot be edited while {draft.status}")

            before = snapshot_bundle(draft)
            previous_status = draft.status

            changed = [
                field for field, value in values.items()
                if self._current_value(draft, field) != self._comparable(field, value)
            ]
            if not changed:
                raise ValidationError("No valid fields provided for update")

            if draft.status == PUBLISHED:
                self.enter_pending_update(draft, actor_id=actor.user_id)

            for field in changed:
                setattr(draft, field, values[field])

            assert_bundle(draft)

            self.audit.record(
                actor_id=actor.user_id,
                action="bundle.update",
                entity_type="bundle",
                entity_id=draft.id,
                payload={
                    "fields": changed,
                    "from_status": previous_status,
                    "status": draft.status,
                    "cover_regenerated": "image_url" in changed and "image_url" not in data,
                    "previous_title": before["title"],
                },
            )

        return draft, changed

    @staticmethod
    def _current_value(draft: BundleDraft, field: str):
        if field == "price":
            return draft.price_text
        if field in ("products", "services"):
            return [item.to_dict() for item in getattr(draft, field)]
        return getattr(draft, field)

    @staticmethod
    def _comparable(field: str, value):
        if field in ("products", "services"):
            return [item.to_dict() for item in value]
        return value

    # -------------------------------------------------
    # Review round entry
    # -------------------------------------------------

    def submit_for_review(self, *, draft_id: str, actor: Actor) -> BundleDraft:
        """
        Open a review round. A bundle with a live listing goes to
        pending_update, anything else to pending_review. A second submit
        while a round is open is rejected, never queued.
        """
        with transactional():
            draft = self.drafts.get_or_raise(draft_id, for_update=True)
            self._assert_owner(draft, actor)

            if draft.status in REVIEW_PENDING:
                raise StateConflictError("Bundle already has an open review request")

            target = PENDING_UPDATE if draft.has_remote_listing else PENDING_REVIEW
            assert_bundle_transition(from_status=draft.status, to_status=target)
            assert_bundle(draft, publish=True)

            previous_status = draft.status
            draft.status = target
            draft.submitted_for_review_at = utc_now()
            event = self.reviews.open_round(
                draft,
                actor_id=actor.user_id,
                kind="update" if target == PENDING_UPDATE else "new",
            )

            self.audit.record(
                actor_id=actor.user_id,
                action="bundle.submit_for_review",
                entity_type="bundle",
                entity_id=draft.id,
                payload={"from_status": previous_status, "status": target, "round": event.round},
            )

        return draft

    # -------------------------------------------------
    # Verdicts
    # -------------------------------------------------

    def approve(self, *, draft_id: str, reviewer: Actor, notes: Optional[str] = None) -> PublishJob:
        """
        Approve a pending bundle and queue its sync.

        New bundles get a ``publish`` job; approved updates get an ``update``
        job that reuses the existing remote identifiers.
        """
        with transactional():
            draft = self.drafts.get_or_raise(draft_id, for_update=True)
            is_update = draft.status == PENDING_UPDATE

            event = self.reviews.approve(draft, reviewer, notes)
            assert_bundle(draft, publish=True)

            if is_update and not draft.has_remote_listing:
                raise StateConflictError("Bundle update has no live listing to sync")

            assert_bundle_transition(from_status=draft.status, to_status=PUBLISHING)
            draft.status = PUBLISHING

            publication = self.publications.get_or_create(draft)
            publication.sync_status = SYNC_PENDING
            publication.last_sync_error = None
            publication.sync_error_kind = None

            job = self.jobs.enqueue(
                draft_id=draft.id,
                publication_id=publication.id,
                action="update" if is_update else "publish",
                requested_by=reviewer.user_id,
            )

            payload: Dict[str, Any] = {"round": event.round, "job_id": job.id, "is_update": is_update}
            if is_update:
                payload["changed_fields"] = diff_snapshot(draft.published_snapshot, draft)

            self.audit.record(
                actor_id=reviewer.user_id,
                action="bundle.update_approved" if is_update else "bundle.approved",
                entity_type="bundle",
                entity_id=draft.id,
                payload=payload,
            )

        return self._run_eagerly(job)

    def reject(self, *, draft_id: str, reviewer: Actor, reason: str) -> BundleDraft:
        with transactional():
            draft = self.drafts.get_or_raise(draft_id, for_update=True)
            self.reviews.reject(draft, reviewer, reason)
        return draft

    def request_changes(self, *, draft_id: str, reviewer: Actor, notes: str) -> BundleDraft:
        with transactional():
            draft = self.drafts.get_or_raise(draft_id, for_update=True)
            self.reviews.request_changes(draft, reviewer, notes)
        return draft

    # -------------------------------------------------
    # Manual sync operations
    # -------------------------------------------------

    def retry(self, *, draft_id: str, reviewer: Actor) -> PublishJob:
        """
        Re-run a failed sync. Only transient failures qualify; a payload the
        platform rejected needs the trainer to correct and resubmit.
        """
        self._assert_reviewer(reviewer)

        with transactional():
            draft = self.drafts.get_or_raise(draft_id, for_update=True)
            if draft.status != FAILED:
                raise StateConflictError("Only failed bundles can be retried")

            publication = self.publications.get_by_draft(draft.id)
            if publication is None or publication.sync_error_kind != TRANSIENT:
                raise StateConflictError(
                    "Last failure was not transient; the trainer must correct and resubmit"
                )

            assert_bundle_transition(from_status=draft.status, to_status=PUBLISHING)
            draft.status = PUBLISHING
            publication.sync_status = SYNC_PENDING

            job = self.jobs.enqueue(
                draft_id=draft.id,
                publication_id=publication.id,
                action="update" if draft.has_remote_listing else "publish",
                requested_by=reviewer.user_id,
            )

            self.audit.record(
                actor_id=reviewer.user_id,
                action="bundle.retry",
                entity_type="bundle",
                entity_id=draft.id,
                payload={"job_id": job.id, "previous_error": publication.last_sync_error},
            )

        return self._run_eagerly(job)

    def resync(self, *, draft_id: str, reviewer: Optional[Actor]) -> PublishJob:
        """Push the content of a published bundle again. Draft status does not change."""
        if reviewer is not None:
            self._assert_reviewer(reviewer)

        with transactional():
            job = self._enqueue_resync(draft_id, requested_by=reviewer.user_id if reviewer else None)

        return self._run_eagerly(job)

    def _enqueue_resync(self, draft_id: str, *, requested_by: Optional[str]) -> PublishJob:
        draft = self.drafts.get_or_raise(draft_id, for_update=True)
        if draft.status != PUBLISHED:
            raise StateConflictError("Only published bundles can be re-synced")

        publication = self.publications.get_by_draft(draft.id)
        if publication is None or not publication.remote_product_id:
            raise StateConflictError("Bundle has no live listing")

        publication.sync_status = SYNC_PENDING
        return self.jobs.enqueue(
            draft_id=draft.id,
            publication_id=publication.id,
            action="resync",
            requested_by=requested_by,
        )

    def sync_all(self) -> List[PublishJob]:
        """Queue a re-sync for every published bundle without a job in flight."""
        queued: List[PublishJob] = []
        for draft in self.drafts.list_by_status(PUBLISHED):
            with transactional():
                if self.jobs.active_for_draft(draft.id):
                    continue
                queued.append(self._enqueue_resync(draft.id, requested_by=None))

        with transactional():
            self.audit.record(
                actor_id=None,
                action="bundle.sync_all",
                entity_type="bundle",
                entity_id=None,
                payload={"queued": [job.draft_id for job in queued]},
            )

        current_app.logger.info("Queued %d bundle re-syncs", len(queued))
        return queued

    # -------------------------------------------------
    # Job execution (called by the worker)
    # -------------------------------------------------

    def _run_eagerly(self, job: PublishJob) -> PublishJob:
        if not self.eager:
            return job

        with transactional():
            self.jobs.start(job)
        return self.run_job(job)

    def run_job(self, job: PublishJob) -> PublishJob:
        """
        Process a started job. Anything the adapter layer did not classify is
        recorded as a transient failure so the bundle never stays in publishing.
        """
        try:
            return self.process_job(job)
        except Exception as exc:
            current_app.logger.exception("Publish job %s crashed", job.id)
            db.session.rollback()
            self.record_failure(job, error=f"Unexpected error: {exc}", kind=TRANSIENT)
            return job

    @staticmethod
    def listing_attributes(draft: BundleDraft) -> ListingAttributes:
        return ListingAttributes(
            title=draft.title,
            description=draft.description or "",
            price=draft.price_text or "0.00",
            image_url=draft.image_url,
            status="active",
            components=tuple(
                ListingComponent(remote_ref=item.remote_ref, name=item.name, quantity=item.quantity)
                for item in draft.products
            ),
        )

    @staticmethod
    def snapshot_attributes(snapshot: Dict[str, Any]) -> ListingAttributes:
        """Attributes of the last approved content, for re-syncs while an edit awaits review."""
        return ListingAttributes(
            title=snapshot["title"],
            description=snapshot.get("description") or "",
            price=snapshot.get("price") or "0.00",
            image_url=snapshot.get("image_url"),
            status="active",
            components=tuple(
                ListingComponent(remote_ref=item["remote_ref"], name=item["name"], quantity=item["quantity"])
                for item in snapshot.get("products") or []
            ),
        )

    def process_job(self, job: PublishJob) -> PublishJob:
        """
        Run one claimed job against the commerce platform.

        The adapter call happens outside any transaction; the outcome is then
        written to the draft, the publication and the job in one commit.
        A re-sync never pushes content that is still waiting for review.
        """
        draft = self.drafts.get_or_raise(job.draft_id)
        publication = self.publications.get(job.publication_id)

        if job.action in ("publish", "update") and draft.status != PUBLISHING:
            with transactional():
                self.jobs.finish(job, error=f"Bundle left publishing state ({draft.status}) before the job ran")
            return job

        if job.action == "resync" and draft.status != PUBLISHED:
            if draft.published_snapshot is None:
                with transactional():
                    self.jobs.finish(job, error=f"Bundle is {draft.status} and has no approved content to re-sync")
                return job
            attributes = self.snapshot_attributes(draft.published_snapshot)
        else:
            attributes = self.listing_attributes(draft)

        with transactional():
            publication.mark_attempt()

        try:
            if job.action == "publish":
                remote = self.adapter.publish(
                    BundleListing(draft_id=draft.id, trainer_id=draft.trainer_id, attributes=attributes)
                )
            else:
                self.adapter.resync(publication.remote_product_id, publication.remote_variant_id, attributes)
                remote = RemoteListing(
                    product_id=publication.remote_product_id,
                    variant_id=publication.remote_variant_id,
                )
        except CommerceSyncError as exc:
            self.record_failure(job, error=exc.message, kind=exc.kind)
            return job

        with transactional():
            self._record_success(job, draft, publication, remote)

        return job

    def _record_success(self, job: PublishJob, draft: BundleDraft, publication: BundlePublication,
                        remote: RemoteListing) -> None:
        if job.action == "publish":
            draft.remote_product_id = remote.product_id
            draft.remote_variant_id = remote.variant_id

        if job.action in ("publish", "update"):
            assert_bundle_transition(from_status=draft.status, to_status=PUBLISHED)
            draft.status = PUBLISHED
            draft.published_snapshot = None

        publication.mark_synced(
            product_id=remote.product_id,
            variant_id=remote.variant_id,
            first_publish=job.action == "publish",
        )
        self.jobs.finish(job)

        self.audit.record(
            actor_id=job.requested_by,
            action={
                "publish": "bundle.published",
                "update": "bundle.update_synced",
                "resync": "bundle.resynced",
            }[job.action],
            entity_type="bundle",
            entity_id=draft.id,
            payload={
                "job_id": job.id,
                "remote_product_id": remote.product_id,
                "remote_variant_id": remote.variant_id,
            },
        )
        current_app.logger.info("Bundle %s %s job succeeded (%s)", draft.id, job.action, remote.product_id)

    def record_failure(self, job: PublishJob, *, error: str, kind: str) -> None:
        """
        Persist a failed sync attempt.

        The draft content is left untouched. A failed update keeps its
        snapshot; nothing is rolled back to the previous published state.
        """
        with transactional():
            draft = self.drafts.get_or_raise(job.draft_id)
            publication = self.publications.get(job.publication_id)

            if job.action in ("publish", "update") and draft.status == PUBLISHING:
                assert_bundle_transition(from_status=draft.status, to_status=FAILED)
                draft.status = FAILED

            publication.mark_failed(error=error, kind=kind)
            self.jobs.finish(job, error=error)

            self.audit.record(
                actor_id=job.requested_by,
                action="bundle.sync_failed",
                entity_type="bundle",
                entity_id=draft.id,
                payload={"job_id": job.id, "action": job.action, "error": error, "kind": kind},
            )

        current_app.logger.warning("Bundle %s %s job failed (%s): %s", job.draft_id, job.action, kind, error)

    # -------------------------------------------------
    # Read side
    # -------------------------------------------------

    def remote_details(self, *, draft_id: str) -> Dict[str, Any]:
        """
        Publication view for managers. Remote metadata is display-only: a
        failed fetch is logged and reported as None.
        """
        draft = self.drafts.get_or_raise(draft_id)
        publication = self.publications.get_by_draft(draft.id)

        metadata = None
        checkout_url = None
        if draft.remote_product_id:
            try:
                metadata = self.adapter.fetch_remote_metadata(draft.remote_product_id)
            except CommerceSyncError as exc:
                current_app.logger.warning("Remote metadata unavailable for %s: %s", draft.remote_product_id, exc)
            checkout_url = self.adapter.checkout_url(draft.remote_variant_id)

        pending_changes = None
        if draft.published_snapshot is not None:
            pending_changes = diff_snapshot(draft.published_snapshot, draft)

        return {
            "draft": draft,
            "publication": publication,
            "metadata": metadata,
            "checkout_url": checkout_url,
            "pending_changes": pending_changes,
        }

    def sync_summary(self) -> Dict[str, Any]:
        return self.publications.summary()
