# app/repositories/publication_store.py
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select

from app.extensions import db
from app.models.bundle_draft import BundleDraft
from app.models.bundle_publication import (
    SYNC_FAILED,
    SYNC_PENDING,
    SYNC_SYNCED,
    BundlePublication,
)


class PublicationStore:
    """Persistence seam for publication records. Records are never deleted."""

    def get(self, publication_id: str) -> Optional[BundlePublication]:
        return db.session.get(BundlePublication, publication_id)

    def get_by_draft(self, draft_id: str) -> Optional[BundlePublication]:
        return db.session.execute(
            select(BundlePublication).where(BundlePublication.draft_id == draft_id)
        ).scalar_one_or_none()

    def get_or_create(self, draft: BundleDraft) -> BundlePublication:
        publication = self.get_by_draft(draft.id)
        if publication:
            return publication

        publication = BundlePublication()
        publication.draft_id = draft.id
        publication.remote_product_id = draft.remote_product_id
        publication.remote_variant_id = draft.remote_variant_id
        publication.state = "pending"
        publication.sync_status = SYNC_PENDING
        publication.attempts = 0

        db.session.add(publication)
        db.session.flush()
        return publication

    def list_by_sync_status(self, sync_status: Optional[str] = None) -> List[BundlePublication]:
        stmt = select(BundlePublication)
        if sync_status:
            stmt = stmt.where(BundlePublication.sync_status == sync_status)
        return list(db.session.execute(stmt.order_by(BundlePublication.created_at.asc())).scalars())

    def summary(self) -> Dict[str, Any]:
        rows = db.session.execute(
            select(BundlePublication.sync_status, func.count(BundlePublication.id))
            .group_by(BundlePublication.sync_status)
        ).all()
        counts = {status: count for status, count in rows}

        last_synced_at = db.session.execute(
            select(func.max(BundlePublication.synced_at))
        ).scalar()

        return {
            "synced": counts.get(SYNC_SYNCED, 0),
            "pending": counts.get(SYNC_PENDING, 0),
            "failed": counts.get(SYNC_FAILED, 0),
            "last_synced_at": last_synced_at,
        }
