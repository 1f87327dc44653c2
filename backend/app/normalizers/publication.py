# app/normalizers/publication.py
from typing import Any, Dict, Optional

from app.models.bundle_publication import BundlePublication
from .bundle import isoformat_or_none, normalize_bundle


def normalize_publication(publication: Optional[BundlePublication]) -> Optional[Dict[str, Any]]:
    if publication is None:
        return None

    return {
        "id": publication.id,
        "draft_id": publication.draft_id,
        "remote_product_id": publication.remote_product_id,
        "remote_variant_id": publication.remote_variant_id,
        "state": publication.state,
        "published_at": isoformat_or_none(publication.published_at),
        "synced_at": isoformat_or_none(publication.synced_at),
        "sync_status": publication.sync_status,
        "last_sync_error": publication.last_sync_error,
        "sync_error_kind": publication.sync_error_kind,
        "attempts": publication.attempts,
    }


def normalize_publish_job(job) -> Dict[str, Any]:
    return {
        "id": job.id,
        "draft_id": job.draft_id,
        "action": job.action,
        "status": job.status,
        "last_error": job.last_error,
        "started_at": isoformat_or_none(job.started_at),
        "finished_at": isoformat_or_none(job.finished_at),
    }


def normalize_remote_details(details: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "bundle": normalize_bundle(details["draft"], reviewer=True),
        "publication": normalize_publication(details["publication"]),
        "remote_metadata": details["metadata"],
        "checkout_url": details["checkout_url"],
        "pending_changes": details["pending_changes"],
    }


def normalize_sync_summary(summary: Dict[str, Any]) -> Dict[str, Any]:
    return dict(summary, last_synced_at=isoformat_or_none(summary.get("last_synced_at")))
