from app.domain.line_items import assert_unique_refs
from app.domain.lifecycle.bundle import BUNDLE_STATUSES
from app.domain.exceptions import InvariantViolation

CADENCES = {"one_time", "weekly", "monthly"}


def assert_bundle(draft, publish=False):
    if draft.status not in BUNDLE_STATUSES:
        raise InvariantViolation(f"Unknown bundle status: {draft.status}")

    if not draft.title or not draft.title.strip():
        raise InvariantViolation("Bundle title is required.")

    if draft.cadence not in CADENCES:
        raise InvariantViolation(f"Unsupported cadence: {draft.cadence}")

    assert_unique_refs(draft.products)
    assert_unique_refs(draft.services)

    if publish:
        if draft.price is None:
            raise InvariantViolation("Cannot publish a bundle without a price.")
        if not draft.products and not draft.services:
            raise InvariantViolation("Cannot publish a bundle without line items.")
