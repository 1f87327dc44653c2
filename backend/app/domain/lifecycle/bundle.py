from typing import Set

from app.domain.exceptions import StateConflictError

DRAFT = "draft"
PENDING_REVIEW = "pending_review"
PENDING_UPDATE = "pending_update"
PUBLISHING = "publishing"
PUBLISHED = "published"
FAILED = "failed"
REJECTED = "rejected"

BUNDLE_STATUSES = (
    DRAFT,
    PENDING_REVIEW,
    PENDING_UPDATE,
    PUBLISHING,
    PUBLISHED,
    FAILED,
    REJECTED,
)

# Statuses holding an open review round
REVIEW_PENDING = frozenset({PENDING_REVIEW, PENDING_UPDATE})

# Statuses in which the owning trainer may change content
EDITABLE = frozenset({DRAFT, REJECTED, FAILED, PUBLISHED, PENDING_UPDATE})

# Explicit allowed state transitions
ALLOWED_BUNDLE_TRANSITIONS: dict[str, Set[str]] = {
    DRAFT: {PENDING_REVIEW},
    REJECTED: {PENDING_REVIEW, PENDING_UPDATE},
    FAILED: {PENDING_REVIEW, PENDING_UPDATE, PUBLISHING},
    PENDING_REVIEW: {PUBLISHING, DRAFT},
    PENDING_UPDATE: {PUBLISHING, REJECTED},
    PUBLISHING: {PUBLISHED, FAILED},
    PUBLISHED: {PENDING_UPDATE},
}


def assert_bundle_transition(*, from_status: str, to_status: str) -> None:
    """
    Guards bundle lifecycle transitions.
    Single source of truth for status changes.
    """
    allowed = ALLOWED_BUNDLE_TRANSITIONS.get(from_status, set())

    if to_status not in allowed:
        raise StateConflictError(
            f"Illegal bundle transition: {from_status} → {to_status}"
        )
