"""
Bundle Publication Test Fixtures
================================

Shared fixtures: an app on in-memory SQLite, the in-memory commerce
adapter, caller identities and JWT headers.
"""

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from app.application.bundles.lifecycle import get_lifecycle
from app.domain.actors import ADMIN, EXTENSION, MANAGER, TRAINER, Actor
from app.extensions import db
from app.workers.publish_worker import PublishWorker


STARTER_PACK = {
    "title": "Starter Pack",
    "description": "Everything for week one",
    "price": "49.99",
    "products": [{"remote_ref": "101", "name": "Shaker", "quantity": 1}],
}


# ============================================
# APP
# ============================================

@pytest.fixture
def app():
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def lifecycle(app):
    return get_lifecycle()


@pytest.fixture
def manager(lifecycle):
    return lifecycle.manager


@pytest.fixture
def adapter(lifecycle):
    """The InMemoryCommerceAdapter wired in by TestingConfig."""
    return lifecycle.adapter


@pytest.fixture
def worker(lifecycle):
    return PublishWorker(lifecycle)


# ============================================
# ACTORS
# ============================================

@pytest.fixture
def trainer():
    return Actor(user_id="trainer-1", role=TRAINER)


@pytest.fixture
def other_trainer():
    return Actor(user_id="trainer-2", role=TRAINER)


@pytest.fixture
def reviewer():
    return Actor(user_id="manager-1", role=MANAGER)


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=ADMIN)


@pytest.fixture
def extension():
    return Actor(user_id="storefront-ext", role=EXTENSION)


@pytest.fixture
def auth_headers(app):
    """Build an Authorization header for an Actor."""

    def _headers(actor):
        token = create_access_token(identity=actor.user_id, additional_claims={"role": actor.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ============================================
# BUNDLES
# ============================================

@pytest.fixture
def starter_pack(manager, trainer):
    """A fresh Starter Pack draft owned by ``trainer``."""
    return manager.create_draft(actor=trainer, data=dict(STARTER_PACK))


@pytest.fixture
def published_bundle(manager, worker, trainer, reviewer, starter_pack):
    """Starter Pack taken all the way to a live listing."""
    manager.submit_for_review(draft_id=starter_pack.id, actor=trainer)
    manager.approve(draft_id=starter_pack.id, reviewer=reviewer)
    worker.run_once()
    return manager.drafts.get_or_raise(starter_pack.id)
