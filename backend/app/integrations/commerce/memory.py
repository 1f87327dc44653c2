# app/integrations/commerce/memory.py
import itertools
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Tuple

from .base import (
    BundleListing,
    CommerceSyncAdapter,
    CommerceSyncError,
    ListingAttributes,
    RejectedSyncError,
    RemoteListing,
)


class InMemoryCommerceAdapter(CommerceSyncAdapter):
    """
    Commerce platform stand-in for local development and tests.

    Listings live in a dict keyed by product id. ``fail_next`` queues errors
    that the following calls raise, in order.
    """

    def __init__(self, store_domain: str = "dev-store.myshopify.com"):
        self.store_domain = store_domain
        self.listings: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self._failures: List[CommerceSyncError] = []
        self._ids = itertools.count(9000001)

    def fail_next(self, error: CommerceSyncError, times: int = 1) -> None:
        self._failures.extend([error] * times)

    def _maybe_fail(self) -> None:
        if self._failures:
            raise self._failures.pop(0)

    def publish(self, listing: BundleListing) -> RemoteListing:
        self.calls.append(("publish", listing.draft_id))
        self._maybe_fail()

        product_id = str(next(self._ids))
        variant_id = str(next(self._ids))
        self.listings[product_id] = {
            "variant_id": variant_id,
            "attributes": asdict(listing.attributes),
            "metadata": {
                "trainer_id": listing.trainer_id,
                "bundle_draft_id": listing.draft_id,
                "component_count": len(listing.attributes.components),
            },
        }
        return RemoteListing(product_id=product_id, variant_id=variant_id)

    def resync(self, product_id: str, variant_id: str, attributes: ListingAttributes) -> None:
        self.calls.append(("resync", product_id))
        self._maybe_fail()

        listing = self.listings.get(product_id)
        if listing is None or listing["variant_id"] != variant_id:
            raise RejectedSyncError(f"Unknown product {product_id}/{variant_id}", status_code=404)

        listing["attributes"] = asdict(attributes)
        listing["metadata"]["component_count"] = len(attributes.components)

    def fetch_remote_metadata(self, product_id: str) -> Dict[str, Any]:
        self.calls.append(("metadata", product_id))
        self._maybe_fail()

        listing = self.listings.get(product_id)
        if listing is None:
            raise RejectedSyncError(f"Unknown product {product_id}", status_code=404)
        return dict(listing["metadata"])

    def checkout_url(self, variant_id: str, quantity: int = 1) -> str:
        return f"https://{self.store_domain}/cart/{variant_id}:{quantity}"

    def listing(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.listings.get(product_id)
