# app/normalizers/bundle.py
from typing import Any, Dict

from app.models.bundle_draft import BundleDraft


def isoformat_or_none(value):
    return value.isoformat() if value else None


def normalize_bundle(draft: BundleDraft, reviewer: bool = False) -> Dict[str, Any]:
    """
    Bundle draft as seen by its trainer, or by a manager when ``reviewer``.

    The frozen snapshot is only shown to reviewers; trainers see the fields
    they are editing.
    """
    data = {
        "id": draft.id,
        "trainer_id": draft.trainer_id,
        "title": draft.title,
        "description": draft.description,
        "price": draft.price_text,
        "cadence": draft.cadence,
        "products": [item.to_dict() for item in draft.products],
        "services": [item.to_dict() for item in draft.services],
        "goals": draft.goals,
        "image_url": draft.image_url,
        "status": draft.status,
        "rejection_reason": draft.rejection_reason,
        "submitted_for_review_at": isoformat_or_none(draft.submitted_for_review_at),
        "reviewed_at": isoformat_or_none(draft.reviewed_at),
        "remote_product_id": draft.remote_product_id,
        "remote_variant_id": draft.remote_variant_id,
        "created_at": isoformat_or_none(draft.created_at),
        "updated_at": isoformat_or_none(draft.updated_at),
    }

    if reviewer:
        data["reviewed_by"] = draft.reviewed_by
        data["published_snapshot"] = draft.published_snapshot

    return data
