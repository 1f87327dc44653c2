# app/normalizers/review.py
from typing import Any, Dict

from app.models.review_event import ReviewEvent


def normalize_review_event(event: ReviewEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "draft_id": event.draft_id,
        "round": event.round,
        "event": event.event,
        "kind": event.kind,
        "actor_id": event.actor_id,
        "notes": event.notes,
        "created_at": event.created_at.isoformat() if event.created_at else None,
    }
