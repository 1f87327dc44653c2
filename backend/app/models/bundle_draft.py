from decimal import Decimal
from typing import List

from sqlalchemy.orm import validates

from app.extensions import db
from app.domain.exceptions import InvariantViolation
from app.domain.line_items import (
    PRODUCT,
    SERVICE,
    LineItem,
    dump_line_items,
    parse_line_item,
)
from .base import BaseModel


class BundleDraft(BaseModel):
    __tablename__ = "bundle_drafts"

    trainer_id = db.Column(db.String(36), nullable=False, index=True)

    # Content
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=True)
    cadence = db.Column(db.String(20), nullable=False, default="one_time")
    products_json = db.Column(db.JSON, nullable=False, default=list)
    services_json = db.Column(db.JSON, nullable=False, default=list)
    goals_json = db.Column(db.JSON, nullable=False, default=list)
    image_url = db.Column(db.String(1024), nullable=True)

    # Lifecycle
    status = db.Column(db.String(32), nullable=False, default="draft", index=True)
    published_snapshot = db.Column(db.JSON(none_as_null=True), nullable=True)

    # Review metadata
    submitted_for_review_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by = db.Column(db.String(36), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    # Remote linkage, set once on first successful publish
    remote_product_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    remote_variant_id = db.Column(db.String(64), nullable=True)

    publication = db.relationship(
        "BundlePublication",
        back_populates="draft",
        uselist=False,
    )

    @validates("remote_product_id", "remote_variant_id")
    def _guard_remote_linkage(self, key, value):
        current = getattr(self, key)
        if current is not None and value != current:
            raise InvariantViolation(f"{key} is already set to {current} and cannot change")
        return value

    @property
    def products(self) -> List[LineItem]:
        return [parse_line_item(raw, PRODUCT) for raw in self.products_json or []]

    @products.setter
    def products(self, items: List[LineItem]) -> None:
        self.products_json = dump_line_items(items)

    @property
    def services(self) -> List[LineItem]:
        return [parse_line_item(raw, SERVICE) for raw in self.services_json or []]

    @services.setter
    def services(self, items: List[LineItem]) -> None:
        self.services_json = dump_line_items(items)

    @property
    def goals(self) -> List[str]:
        return list(self.goals_json or [])

    @goals.setter
    def goals(self, tags: List[str]) -> None:
        self.goals_json = list(tags)

    @property
    def price_text(self):
        if self.price is None:
            return None
        return str(Decimal(str(self.price)).quantize(Decimal("0.01")))

    @property
    def has_remote_listing(self) -> bool:
        return self.remote_product_id is not None
