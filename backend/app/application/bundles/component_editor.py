# app/application/bundles/component_editor.py
from typing import Callable, List, Optional

from app.domain.actors import Actor
from app.domain.exceptions import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from app.domain.invariants.bundle import assert_bundle
from app.domain.lifecycle.bundle import PENDING_REVIEW, PUBLISHING
from app.domain.line_items import (
    MAX_COMPONENT_QUANTITY,
    PRODUCT,
    LineItem,
    normalize_price,
    parse_quantity,
)
from app.models.bundle_draft import BundleDraft
from app.repositories.draft_store import DraftStore
from app.utils.audit import AuditTrail
from app.utils.transaction import transactional
from .publication_manager import PublicationManager


class ComponentEditor:
    """
    Fine-grained product edits on a live bundle, addressed by its remote
    product id (used by the storefront extension and by managers).

    Every mutation goes back through review as a pending update.
    """

    def __init__(self, *, drafts: DraftStore, manager: PublicationManager, audit: AuditTrail):
        self.drafts = drafts
        self.manager = manager
        self.audit = audit

    def set_quantity(self, *, remote_product_id: str, remote_ref: str, quantity, actor: Actor) -> BundleDraft:
        quantity = parse_quantity(quantity, maximum=MAX_COMPONENT_QUANTITY)

        def mutate(items: List[LineItem]) -> List[LineItem]:
            index = self._index_of(items, remote_ref)
            items[index] = items[index].with_quantity(quantity)
            return items

        return self._mutate(
            remote_product_id=remote_product_id,
            actor=actor,
            action="bundle.component.quantity",
            payload={"remote_ref": remote_ref, "quantity": quantity},
            mutate=mutate,
        )

    def add_component(
        self,
        *,
        remote_product_id: str,
        remote_ref: str,
        name: str,
        actor: Actor,
        quantity=1,
        unit_price=None,
        image_url: Optional[str] = None,
    ) -> BundleDraft:
        """Add a product, or merge into an existing one by summing quantities."""
        remote_ref = str(remote_ref or "").strip()
        if not remote_ref:
            raise ValidationError("remote_ref is required")
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required")

        quantity = parse_quantity(quantity, maximum=MAX_COMPONENT_QUANTITY)
        unit_price = normalize_price(unit_price, field="unit_price")

        def mutate(items: List[LineItem]) -> List[LineItem]:
            for index, item in enumerate(items):
                if item.remote_ref == remote_ref:
                    merged = item.quantity + quantity
                    if merged > MAX_COMPONENT_QUANTITY:
                        raise ValidationError(
                            f"Merged quantity {merged} exceeds the maximum of {MAX_COMPONENT_QUANTITY}"
                        )
                    items[index] = item.with_quantity(merged)
                    return items

            items.append(
                LineItem(
                    kind=PRODUCT,
                    remote_ref=remote_ref,
                    name=name,
                    quantity=quantity,
                    unit_price=unit_price,
                    image_url=image_url or None,
                )
            )
            return items

        return self._mutate(
            remote_product_id=remote_product_id,
            actor=actor,
            action="bundle.component.add",
            payload={"remote_ref": remote_ref, "quantity": quantity},
            mutate=mutate,
        )

    def remove_component(self, *, remote_product_id: str, remote_ref: str, actor: Actor) -> BundleDraft:
        def mutate(items: List[LineItem]) -> List[LineItem]:
            del items[self._index_of(items, remote_ref)]
            return items

        return self._mutate(
            remote_product_id=remote_product_id,
            actor=actor,
            action="bundle.component.remove",
            payload={"remote_ref": remote_ref},
            mutate=mutate,
        )

    @staticmethod
    def _index_of(items: List[LineItem], remote_ref: str) -> int:
        for index, item in enumerate(items):
            if item.remote_ref == str(remote_ref):
                return index
        raise NotFoundError(f"Component {remote_ref} is not part of this bundle")

    def _mutate(
        self,
        *,
        remote_product_id: str,
        actor: Actor,
        action: str,
        payload: dict,
        mutate: Callable[[List[LineItem]], List[LineItem]],
    ) -> BundleDraft:
        if not actor.can_edit_components:
            raise AuthorizationError("Not allowed to edit bundle components")

        with transactional():
            draft = self.drafts.get_by_remote_product(remote_product_id, for_update=True)

            if draft.status in (PUBLISHING, PENDING_REVIEW):
                raise StateConflictError(f"Bundle components cannot change while {draft.status}")

            # Resolve the change before touching status so a bad request leaves the draft as it was
            products = mutate(list(draft.products))
            previous_status = draft.status

            self.manager.enter_pending_update(draft, actor_id=actor.user_id)
            draft.products = products
            assert_bundle(draft)

            self.audit.record(
                actor_id=actor.user_id,
                action=action,
                entity_type="bundle",
                entity_id=draft.id,
                payload=dict(payload, from_status=previous_status, status=draft.status),
            )

        return draft
