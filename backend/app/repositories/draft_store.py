# app/repositories/draft_store.py
from typing import Any, List, Optional

from sqlalchemy import select

from app.extensions import db
from app.domain.exceptions import NotFoundError
from app.models.bundle_draft import BundleDraft


class DraftStore:
    """Persistence seam for bundle drafts."""

    def get(self, draft_id: str, *, for_update: bool = False) -> Optional[BundleDraft]:
        stmt = select(BundleDraft).where(BundleDraft.id == draft_id)
        if for_update:
            stmt = stmt.with_for_update()
        return db.session.execute(stmt).scalar_one_or_none()

    def get_or_raise(self, draft_id: str, *, for_update: bool = False) -> BundleDraft:
        draft = self.get(draft_id, for_update=for_update)
        if not draft:
            raise NotFoundError("Bundle not found")
        return draft

    def get_by_remote_product(self, remote_product_id: str, *, for_update: bool = False) -> BundleDraft:
        stmt = select(BundleDraft).where(BundleDraft.remote_product_id == str(remote_product_id))
        if for_update:
            stmt = stmt.with_for_update()

        draft = db.session.execute(stmt).scalar_one_or_none()
        if not draft:
            raise NotFoundError("Bundle not found")
        return draft

    def create(self, **fields: Any) -> BundleDraft:
        draft = BundleDraft()
        for field, value in fields.items():
            setattr(draft, field, value)

        db.session.add(draft)
        db.session.flush()  # ensures draft.id is available
        return draft

    def update(self, draft: BundleDraft, **fields: Any) -> BundleDraft:
        for field, value in fields.items():
            setattr(draft, field, value)
        db.session.flush()
        return draft

    def list_by_trainer(self, trainer_id: str, status: Optional[str] = None) -> List[BundleDraft]:
        stmt = select(BundleDraft).where(BundleDraft.trainer_id == trainer_id)
        if status:
            stmt = stmt.where(BundleDraft.status == status)
        stmt = stmt.order_by(BundleDraft.created_at.desc())
        return list(db.session.execute(stmt).scalars())

    def list_by_status(self, *statuses: str) -> List[BundleDraft]:
        stmt = (
            select(BundleDraft)
            .where(BundleDraft.status.in_(statuses))
            .order_by(BundleDraft.submitted_for_review_at.asc(), BundleDraft.created_at.asc())
        )
        return list(db.session.execute(stmt).scalars())
