# app/domain/snapshot.py
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .line_items import LineItem, dump_line_items

# Content fields frozen at publish time and compared on later edits
SNAPSHOT_FIELDS = (
    "title",
    "description",
    "price",
    "cadence",
    "products",
    "services",
    "goals",
    "image_url",
)

CoverInput = Tuple[str, Optional[str]]


def snapshot_bundle(draft) -> Dict[str, Any]:
    """Freeze the content fields of a draft into a JSON-safe dict."""
    return {
        "title": draft.title,
        "description": draft.description,
        "price": draft.price_text,
        "cadence": draft.cadence,
        "products": dump_line_items(draft.products),
        "services": dump_line_items(draft.services),
        "goals": list(draft.goals or []),
        "image_url": draft.image_url,
    }


def diff_snapshot(snapshot: Optional[Dict[str, Any]], draft) -> List[str]:
    """
    Names of the content fields that differ between a frozen snapshot and the
    draft's current content. With no snapshot every field counts as changed.
    """
    current = snapshot_bundle(draft)
    if not snapshot:
        return list(SNAPSHOT_FIELDS)

    return [field for field in SNAPSHOT_FIELDS if snapshot.get(field) != current[field]]


def cover_inputs(items: Iterable[LineItem]) -> List[CoverInput]:
    return [(item.name, item.image_url) for item in items]


def should_regenerate_cover(old: Sequence[CoverInput], new: Sequence[CoverInput]) -> bool:
    """
    Decide whether a product list change warrants a new cover image.

    Regenerate when the multiset of product names changed, or when more than
    half of the previously used images are gone. Reordering alone and exact
    equality never regenerate. An empty previous list regenerates as soon as
    there is something to draw; an empty new list never does.
    """
    old = list(old or [])
    new = list(new or [])

    if old == new:
        return False
    if not old:
        return True
    if not new:
        return False

    if Counter(name for name, _ in old) != Counter(name for name, _ in new):
        return True

    old_images = {image for _, image in old if image}
    if not old_images:
        return False

    new_images = {image for _, image in new if image}
    missing = len(old_images - new_images)
    return missing * 2 > len(old_images)
