"""
Tests for the Publication Manager
=================================

Draft → review → publish → re-sync, against the in-memory commerce adapter.
"""

import pytest

from app.domain.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from app.integrations.commerce.base import RejectedSyncError, TransientSyncError
from app.integrations.cover_images import CoverImageError
from app.models.audit_log import AuditLog
from app.models.publish_job import PublishJob


def audit_actions(draft_id):
    return [log.action for log in AuditLog.query.filter_by(entity_id=draft_id).order_by(AuditLog.created_at)]


class TestCreateAndEdit:

    def test_create_draft(self, manager, trainer):
        draft = manager.create_draft(actor=trainer, data={
            "title": "  Mobility Kit ",
            "price": "20",
            "cadence": "monthly",
            "goals": ["mobility"],
            "services": [{"remote_ref": "svc-1", "name": "Form check"}],
        })

        assert draft.status == "draft"
        assert draft.trainer_id == trainer.user_id
        assert draft.title == "Mobility Kit"
        assert draft.price_text == "20.00"
        assert draft.services[0].name == "Form check"
        assert draft.remote_product_id is None
        assert audit_actions(draft.id) == ["bundle.create"]

    def test_only_trainers_create(self, manager, reviewer):
        with pytest.raises(AuthorizationError):
            manager.create_draft(actor=reviewer, data={"title": "Nope"})

    def test_title_required(self, manager, trainer):
        with pytest.raises(ValidationError):
            manager.create_draft(actor=trainer, data={"title": "  "})

    def test_unknown_cadence(self, manager, trainer):
        with pytest.raises(ValidationError):
            manager.create_draft(actor=trainer, data={"title": "Kit", "cadence": "daily"})

    def test_cover_generated_from_products(self, manager, lifecycle, trainer, monkeypatch):
        calls = []

        def generate(*, title, goal, products):
            calls.append((title, goal, products))
            return "https://img.example/cover.png"

        monkeypatch.setattr(lifecycle.images, "generate", generate)
        draft = manager.create_draft(actor=trainer, data={
            "title": "Kit",
            "goals": ["strength"],
            "products": [{"remote_ref": "1", "name": "Bands"}],
        })

        assert draft.image_url == "https://img.example/cover.png"
        assert calls == [("Kit", "strength", [("Bands", None)])]

    def test_cover_failure_does_not_block(self, manager, lifecycle, trainer, monkeypatch):
        def generate(**kwargs):
            raise CoverImageError("generator down")

        monkeypatch.setattr(lifecycle.images, "generate", generate)
        draft = manager.create_draft(actor=trainer, data={
            "title": "Kit",
            "products": [{"remote_ref": "1", "name": "Bands"}],
        })
        assert draft.image_url is None

    def test_edit_draft(self, manager, trainer, starter_pack):
        draft, changed = manager.edit_draft(
            draft_id=starter_pack.id,
            actor=trainer,
            data={"title": "Starter Pack v2", "price": "49.99", "owner": "someone-else"},
        )

        assert changed == ["title"]
        assert draft.title == "Starter Pack v2"
        assert draft.status == "draft"

    def test_noop_edit_rejected(self, manager, trainer, starter_pack):
        with pytest.raises(ValidationError, match="No valid fields"):
            manager.edit_draft(draft_id=starter_pack.id, actor=trainer, data={"title": "Starter Pack"})

        with pytest.raises(ValidationError, match="No valid fields"):
            manager.edit_draft(draft_id=starter_pack.id, actor=trainer, data={"unknown": 1})

    def test_edit_by_other_trainer(self, manager, other_trainer, starter_pack):
        with pytest.raises(AuthorizationError):
            manager.edit_draft(draft_id=starter_pack.id, actor=other_trainer, data={"title": "Mine"})

    def test_edit_while_pending_review(self, manager, trainer, starter_pack):
        manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)

        with pytest.raises(StateConflictError):
            manager.edit_draft(draft_id=starter_pack.id, actor=trainer, data={"title": "Sneaky"})

    def test_missing_bundle(self, manager, trainer):
        with pytest.raises(NotFoundError):
            manager.submit_for_review(draft_id="does-not-exist", actor=trainer)


class TestSubmit:

    def test_double_submit_rejected(self, manager, lifecycle, trainer, starter_pack):
        manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)

        with pytest.raises(StateConflictError):
            manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)

        draft = manager.drafts.get_or_raise(starter_pack.id)
        assert draft.status == "pending_review"
        assert draft.submitted_for_review_at is not None
        submissions = [e for e in lifecycle.reviews.history(draft.id) if e.event == "submitted"]
        assert len(submissions) == 1

    def test_submit_requires_price(self, manager, trainer):
        draft = manager.create_draft(actor=trainer, data={
            "title": "Free stuff",
            "products": [{"remote_ref": "1", "name": "Sticker"}],
        })
        with pytest.raises(ValidationError):
            manager.submit_for_review(draft_id=draft.id, actor=trainer)
        assert manager.drafts.get_or_raise(draft.id).status == "draft"

    def test_submit_by_other_trainer(self, manager, other_trainer, starter_pack):
        with pytest.raises(AuthorizationError):
            manager.submit_for_review(draft_id=starter_pack.id, actor=other_trainer)


class TestPublish:

    def test_approve_queues_publish_job(self, manager, adapter, trainer, reviewer, starter_pack):
        manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)
        job = manager.approve(draft_id=starter_pack.id, reviewer=reviewer, notes="Looks good")

        assert job.action == "publish"
        assert job.status == "queued"
        assert adapter.calls == []

        draft = manager.drafts.get_or_raise(starter_pack.id)
        assert draft.status == "publishing"
        assert draft.publication.sync_status == "pending"

    def test_publish_succeeds(self, manager, adapter, published_bundle):
        draft = published_bundle
        assert draft.status == "published"
        assert draft.remote_product_id is not None
        assert draft.remote_variant_id is not None

        publication = draft.publication
        assert publication.sync_status == "synced"
        assert publication.last_sync_error is None
        assert publication.published_at is not None
        assert publication.remote_product_id == draft.remote_product_id

        listing = adapter.listing(draft.remote_product_id)
        assert listing["attributes"]["price"] == "49.99"
        assert list(listing["attributes"]["components"]) == [{"remote_ref": "101", "name": "Shaker", "quantity": 1}]
        assert "bundle.published" in audit_actions(draft.id)

    def test_one_active_job_per_bundle(self, manager, trainer, reviewer, starter_pack):
        manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)
        manager.approve(draft_id=starter_pack.id, reviewer=reviewer)

        with pytest.raises(StateConflictError):
            manager.jobs.enqueue(
                draft_id=starter_pack.id,
                publication_id=starter_pack.publication.id,
                action="publish",
                requested_by=reviewer.user_id,
            )

    def test_rejected_publish_fails(self, manager, adapter, worker, trainer, reviewer, starter_pack):
        adapter.fail_next(RejectedSyncError("price: invalid", status_code=422))
        manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)
        manager.approve(draft_id=starter_pack.id, reviewer=reviewer)
        worker.run_once()

        draft = manager.drafts.get_or_raise(starter_pack.id)
        assert draft.status == "failed"
        assert draft.remote_product_id is None
        assert draft.publication.sync_status == "failed"
        assert draft.publication.sync_error_kind == "rejected"
        assert draft.publication.last_sync_error == "price: invalid"

        # No automatic retry, and a rejected payload is not retryable
        assert PublishJob.query.filter_by(draft_id=draft.id, status="queued").count() == 0
        with pytest.raises(StateConflictError):
            manager.retry(draft_id=draft.id, reviewer=reviewer)

        # The trainer fixes it and goes through review again
        manager.edit_draft(draft_id=draft.id, actor=trainer, data={"price": "45.00"})
        resubmitted = manager.submit_for_review(draft_id=draft.id, actor=trainer)
        assert resubmitted.status == "pending_review"

    def test_transient_failure_retry(self, manager, adapter, worker, trainer, reviewer, starter_pack):
        adapter.fail_next(TransientSyncError("HTTP 503", status_code=503))
        manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)
        manager.approve(draft_id=starter_pack.id, reviewer=reviewer)
        worker.run_once()

        draft = manager.drafts.get_or_raise(starter_pack.id)
        assert draft.status == "failed"
        assert draft.publication.sync_error_kind == "transient"

        job = manager.retry(draft_id=draft.id, reviewer=reviewer)
        assert job.action == "publish"
        assert manager.drafts.get_or_raise(draft.id).status == "publishing"

        worker.run_once()
        draft = manager.drafts.get_or_raise(draft.id)
        assert draft.status == "published"
        assert draft.publication.attempts == 2
        assert draft.publication.last_sync_error is None

    def test_trainer_cannot_retry(self, manager, trainer, starter_pack):
        with pytest.raises(AuthorizationError):
            manager.retry(draft_id=starter_pack.id, reviewer=trainer)


class TestUpdates:

    def test_edit_published_moves_to_pending_update(self, manager, lifecycle, trainer, published_bundle):
        draft, changed = manager.edit_draft(
            draft_id=published_bundle.id,
            actor=trainer,
            data={"description": "Now with a plan"},
        )

        assert changed == ["description"]
        assert draft.status == "pending_update"
        assert draft.published_snapshot["description"] == "Everything for week one"
        assert lifecycle.reviews.current_round(draft.id).kind == "update"

    def test_starter_pack_scenario(self, manager, adapter, worker, trainer, reviewer, starter_pack):
        manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)
        manager.approve(draft_id=starter_pack.id, reviewer=reviewer)
        worker.run_once()

        draft = manager.drafts.get_or_raise(starter_pack.id)
        assert draft.status == "published"
        product_id, variant_id = draft.remote_product_id, draft.remote_variant_id
        assert product_id and variant_id

        draft, _ = manager.edit_draft(draft_id=draft.id, actor=trainer, data={"price": "59.99"})
        assert draft.status == "pending_update"
        assert draft.published_snapshot["price"] == "49.99"

        job = manager.approve(draft_id=draft.id, reviewer=reviewer)
        assert job.action == "update"
        worker.run_once()

        assert adapter.calls[-1] == ("resync", product_id)
        assert adapter.listing(product_id)["attributes"]["price"] == "59.99"

        draft = manager.drafts.get_or_raise(draft.id)
        assert draft.status == "published"
        assert draft.published_snapshot is None
        assert (draft.remote_product_id, draft.remote_variant_id) == (product_id, variant_id)
        assert draft.publication.sync_status == "synced"
        assert len(adapter.listings) == 1

    def test_reject_update_keeps_snapshot(self, manager, trainer, reviewer, published_bundle):
        manager.edit_draft(draft_id=published_bundle.id, actor=trainer, data={"price": "59.99"})
        draft = manager.reject(draft_id=published_bundle.id, reviewer=reviewer, reason="Too expensive")

        assert draft.status == "rejected"
        assert draft.published_snapshot["price"] == "49.99"
        assert draft.remote_product_id is not None

        draft = manager.submit_for_review(draft_id=draft.id, actor=trainer)
        assert draft.status == "pending_update"

    def test_failed_update_keeps_snapshot(self, manager, adapter, worker, trainer, reviewer, published_bundle):
        product_id = published_bundle.remote_product_id
        manager.edit_draft(draft_id=published_bundle.id, actor=trainer, data={"price": "59.99"})
        adapter.fail_next(RejectedSyncError("HTTP 422", status_code=422))
        manager.approve(draft_id=published_bundle.id, reviewer=reviewer)
        worker.run_once()

        draft = manager.drafts.get_or_raise(published_bundle.id)
        assert draft.status == "failed"
        assert draft.price_text == "59.99"
        assert draft.published_snapshot["price"] == "49.99"
        assert draft.publication.state == "published"
        assert draft.publication.sync_status == "failed"
        assert adapter.listing(product_id)["attributes"]["price"] == "49.99"

        resubmitted = manager.submit_for_review(draft_id=draft.id, actor=trainer)
        assert resubmitted.status == "pending_update"


class TestResync:

    def test_round_trip_keeps_remote_refs(self, manager, adapter, worker, reviewer, published_bundle):
        product_id = published_bundle.remote_product_id
        variant_id = published_bundle.remote_variant_id

        manager.resync(draft_id=published_bundle.id, reviewer=reviewer)
        worker.run_once()

        draft = manager.drafts.get_or_raise(published_bundle.id)
        assert draft.status == "published"
        assert (draft.remote_product_id, draft.remote_variant_id) == (product_id, variant_id)
        assert draft.publication.sync_status == "synced"

    def test_resync_is_idempotent(self, manager, adapter, worker, reviewer, published_bundle):
        manager.resync(draft_id=published_bundle.id, reviewer=reviewer)
        worker.run_once()
        first = adapter.listing(published_bundle.remote_product_id)["attributes"]

        manager.resync(draft_id=published_bundle.id, reviewer=reviewer)
        worker.run_once()

        assert adapter.listing(published_bundle.remote_product_id)["attributes"] == first
        assert len(adapter.listings) == 1

    def test_failed_resync_leaves_bundle_published(self, manager, adapter, worker, reviewer, published_bundle):
        adapter.fail_next(TransientSyncError("timeout"))
        manager.resync(draft_id=published_bundle.id, reviewer=reviewer)
        worker.run_once()

        draft = manager.drafts.get_or_raise(published_bundle.id)
        assert draft.status == "published"
        assert draft.publication.sync_status == "failed"
        assert draft.publication.last_sync_error == "timeout"

    def test_queued_resync_pushes_approved_content_after_edit(self, manager, adapter, worker, trainer, reviewer,
                                                              published_bundle):
        manager.resync(draft_id=published_bundle.id, reviewer=reviewer)
        manager.edit_draft(draft_id=published_bundle.id, actor=trainer, data={"price": "59.99", "title": "Starter Pack v2"})

        worker.run_once()

        live = adapter.listing(published_bundle.remote_product_id)["attributes"]
        assert live["price"] == "49.99"
        assert live["title"] == "Starter Pack"

        draft = manager.drafts.get_or_raise(published_bundle.id)
        assert draft.status == "pending_update"
        assert draft.price_text == "59.99"
        assert draft.publication.sync_status == "synced"

    def test_queued_resync_after_component_edit(self, lifecycle, manager, adapter, worker, reviewer, extension,
                                                published_bundle):
        manager.resync(draft_id=published_bundle.id, reviewer=reviewer)
        lifecycle.components.set_quantity(
            remote_product_id=published_bundle.remote_product_id,
            remote_ref="101",
            quantity=5,
            actor=extension,
        )

        worker.run_once()

        listing = adapter.listing(published_bundle.remote_product_id)
        assert [c["quantity"] for c in listing["attributes"]["components"]] == [1]
        assert listing["metadata"]["component_count"] == 1

    def test_resync_requires_published(self, manager, reviewer, starter_pack):
        with pytest.raises(StateConflictError):
            manager.resync(draft_id=starter_pack.id, reviewer=reviewer)

    def test_sync_all(self, manager, worker, published_bundle, starter_pack):
        jobs = manager.sync_all()
        assert [job.draft_id for job in jobs] == [published_bundle.id]
        assert worker.run_once() == 1

    def test_sync_summary(self, manager, published_bundle):
        summary = manager.sync_summary()
        assert summary["synced"] == 1
        assert summary["pending"] == 0
        assert summary["failed"] == 0
        assert summary["last_synced_at"] is not None


class TestRemoteDetails:

    def test_details(self, manager, trainer, published_bundle):
        manager.edit_draft(draft_id=published_bundle.id, actor=trainer, data={"price": "59.99"})
        details = manager.remote_details(draft_id=published_bundle.id)

        assert details["metadata"]["bundle_draft_id"] == published_bundle.id
        assert details["checkout_url"].endswith(f"/cart/{published_bundle.remote_variant_id}:1")
        assert details["pending_changes"] == ["price"]

    def test_metadata_failure_is_swallowed(self, manager, adapter, published_bundle):
        adapter.fail_next(TransientSyncError("HTTP 502"))
        details = manager.remote_details(draft_id=published_bundle.id)

        assert details["metadata"] is None
        assert details["publication"].sync_status == "synced"

    def test_unpublished_bundle(self, manager, starter_pack):
        details = manager.remote_details(draft_id=starter_pack.id)
        assert details["publication"] is None
        assert details["checkout_url"] is None

    def test_non_json_metadata_response_is_swallowed(self, manager, adapter, published_bundle, monkeypatch):
        def html_page(product_id):
            raise TransientSyncError("Shopify returned a non-JSON response", status_code=200)

        monkeypatch.setattr(adapter, "fetch_remote_metadata", html_page)
        details = manager.remote_details(draft_id=published_bundle.id)

        assert details["metadata"] is None
        assert details["checkout_url"] is not None
