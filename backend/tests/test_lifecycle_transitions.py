"""
Tests for the bundle state machine
==================================
"""

import pytest

from app.domain.exceptions import StateConflictError
from app.domain.lifecycle.bundle import (
    ALLOWED_BUNDLE_TRANSITIONS,
    BUNDLE_STATUSES,
    assert_bundle_transition,
)


class TestBundleTransitions:

    @pytest.mark.parametrize("from_status,to_status", [
        ("draft", "pending_review"),
        ("pending_review", "publishing"),
        ("pending_review", "draft"),
        ("publishing", "published"),
        ("publishing", "failed"),
        ("published", "pending_update"),
        ("pending_update", "publishing"),
        ("pending_update", "rejected"),
        ("rejected", "pending_update"),
        ("failed", "pending_review"),
        ("failed", "publishing"),
    ])
    def test_allowed(self, from_status, to_status):
        assert_bundle_transition(from_status=from_status, to_status=to_status)

    @pytest.mark.parametrize("from_status,to_status", [
        ("draft", "published"),
        ("draft", "publishing"),
        ("pending_review", "pending_update"),
        ("published", "draft"),
        ("publishing", "draft"),
        ("rejected", "published"),
    ])
    def test_rejected(self, from_status, to_status):
        with pytest.raises(StateConflictError):
            assert_bundle_transition(from_status=from_status, to_status=to_status)

    def test_every_target_is_a_defined_status(self):
        for source, targets in ALLOWED_BUNDLE_TRANSITIONS.items():
            assert source in BUNDLE_STATUSES
            assert targets <= set(BUNDLE_STATUSES)
