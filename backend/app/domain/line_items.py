# app/domain/line_items.py
from __future__ import annotations

from dataclasses import dataclass, replace, asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import ValidationError

PRODUCT = "product"
SERVICE = "service"
LINE_ITEM_KINDS = {PRODUCT, SERVICE}

MAX_COMPONENT_QUANTITY = 100


@dataclass(frozen=True)
class LineItem:
    """
    Canonical line item of a bundle.

    The same record is used for products and services; ``kind`` tells them
    apart. ``remote_ref`` is the commerce platform reference of the item and
    is unique within one list.
    """

    kind: str
    remote_ref: str
    name: str
    quantity: int = 1
    unit_price: Optional[str] = None
    image_url: Optional[str] = None

    def with_quantity(self, quantity: int) -> "LineItem":
        return replace(self, quantity=quantity)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_price(value: Any, *, field: str = "price") -> Optional[str]:
    """Return a two-decimal string for a price-like value, or None."""
    if value is None or value == "":
        return None

    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a decimal amount, got {value!r}")

    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative amount")

    return str(amount.quantize(Decimal("0.01")))


def parse_quantity(value: Any, *, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f"quantity must be an integer, got {value!r}")
    try:
        quantity = int(value)
    except ValueError:
        raise ValidationError(f"quantity must be an integer, got {value!r}")

    if quantity < 1:
        raise ValidationError("quantity must be at least 1")
    if maximum is not None and quantity > maximum:
        raise ValidationError(f"quantity must be at most {maximum}")
    return quantity


def parse_line_item(raw: Any, kind: str) -> LineItem:
    """Validate one raw mapping (request body or stored JSON) into a LineItem."""
    if kind not in LINE_ITEM_KINDS:
        raise ValidationError(f"Unknown line item kind: {kind}")

    if not isinstance(raw, dict):
        raise ValidationError(f"{kind} line item must be an object")

    remote_ref = raw.get("remote_ref")
    if remote_ref is None or str(remote_ref).strip() == "":
        raise ValidationError(f"{kind} line item requires remote_ref")

    name = raw.get("name")
    if not name or not str(name).strip():
        raise ValidationError(f"{kind} line item requires a name")

    return LineItem(
        kind=kind,
        remote_ref=str(remote_ref).strip(),
        name=str(name).strip(),
        quantity=parse_quantity(raw.get("quantity", 1)),
        unit_price=normalize_price(raw.get("unit_price"), field="unit_price"),
        image_url=raw.get("image_url") or None,
    )


def parse_line_items(raw_items: Any, kind: str) -> List[LineItem]:
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError(f"{kind} line items must be a list")

    items = [parse_line_item(raw, kind) for raw in raw_items]
    assert_unique_refs(items)
    return items


def assert_unique_refs(items: Iterable[LineItem]) -> None:
    seen = set()
    for item in items:
        if item.remote_ref in seen:
            raise ValidationError(f"Duplicate remote_ref in {item.kind} list: {item.remote_ref}")
        seen.add(item.remote_ref)


def dump_line_items(items: Iterable[LineItem]) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in items]
