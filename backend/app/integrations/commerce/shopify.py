"""
Shopify Admin REST API adapter
==============================
Creates bundle listings, re-syncs their attributes and reads the bundle
metafields back for admin display.

Usage:
    adapter = ShopifyCommerceAdapter(store_domain="shop.myshopify.com", access_token="...")
    remote = adapter.publish(listing)
    adapter.resync(remote.product_id, remote.variant_id, attributes)
"""
import json
import logging
from html import escape
from typing import Any, Dict, Iterable, Optional

import requests

from .base import (
    BundleListing,
    CommerceSyncAdapter,
    ListingAttributes,
    ListingComponent,
    RejectedSyncError,
    RemoteListing,
    TransientSyncError,
)

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)


def render_body_html(description: str, components: Iterable[ListingComponent]) -> str:
    components = list(components)
    parts = [f"<p>{escape(description or '')}</p>"]
    if components:
        parts.append("<h4>Bundle Contents:</h4>")
        parts.append(
            "<ul>"
            + "".join(f"<li>{escape(c.name)} (x{c.quantity})</li>" for c in components)
            + "</ul>"
        )
    return "\n".join(parts)


class ShopifyCommerceAdapter(CommerceSyncAdapter):
    """Shopify Admin REST API client for bundle listings."""

    METAFIELD_NAMESPACE = "locomotivate"

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2024-01",
        timeout: float = 30.0,
        vendor: str = "LocoMotivate",
        session: Optional[requests.Session] = None,
    ):
        if not store_domain or not access_token:
            raise ValueError("Shopify store domain and access token are required")

        self.store_domain = store_domain
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self.vendor = vendor
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}"

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send one Admin API request.

        Raises:
            TransientSyncError: connection problems, timeouts, 429, 5xx and
                non-JSON success bodies
            RejectedSyncError: any other 4xx
        """
        url = f"{self.base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }

        try:
            response = self._session.request(method, url, json=payload, headers=headers, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            logger.warning("Shopify %s %s unreachable: %s", method, path, exc)
            raise TransientSyncError(f"Shopify unreachable: {exc}") from exc
        except requests.RequestException as exc:
            raise TransientSyncError(f"Shopify request failed: {exc}") from exc

        if response.status_code in TRANSIENT_STATUS_CODES:
            logger.warning("Shopify %s %s returned %s", method, path, response.status_code)
            raise TransientSyncError(
                f"Shopify API error {response.status_code}",
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            detail = self._error_detail(response)
            logger.error("Shopify %s %s rejected (%s): %s", method, path, response.status_code, detail)
            raise RejectedSyncError(
                f"Shopify rejected the request ({response.status_code}): {detail}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            # A 2xx from a proxy or maintenance page is not a Shopify answer
            logger.warning("Shopify %s %s returned a non-JSON body (%s)", method, path, response.status_code)
            raise TransientSyncError(
                "Shopify returned a non-JSON response",
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:500]
        return json.dumps(body.get("errors", body))[:500]

    # -------------------------------------------------
    # Listings
    # -------------------------------------------------

    def publish(self, listing: BundleListing) -> RemoteListing:
        attrs = listing.attributes
        product = {
            "title": attrs.title,
            "body_html": render_body_html(attrs.description, attrs.components),
            "vendor": self.vendor,
            "product_type": "Bundle",
            "status": attrs.status,
            "variants": [
                {
                    "price": attrs.price,
                    "sku": f"BUNDLE-{listing.draft_id}",
                }
            ],
            "images": [{"src": attrs.image_url, "alt": attrs.title}] if attrs.image_url else [],
        }

        body = self._request("POST", "/products.json", {"product": product})
        created = body.get("product") or {}
        variants = created.get("variants") or []

        if not created.get("id") or not variants:
            raise RejectedSyncError("Shopify did not return a product and variant id")

        remote = RemoteListing(product_id=str(created["id"]), variant_id=str(variants[0]["id"]))
        self._write_metafields(remote.product_id, listing)

        logger.info("Shopify listing %s created for bundle %s", remote.product_id, listing.draft_id)
        return remote

    def _write_metafields(self, product_id: str, listing: BundleListing) -> None:
        metafields = [
            ("trainer_id", listing.trainer_id, "single_line_text_field"),
            ("bundle_draft_id", listing.draft_id, "single_line_text_field"),
        ]
        self._put_metafields(product_id, metafields + self._component_metafields(listing.attributes.components))

    @staticmethod
    def _component_metafields(components: Iterable[ListingComponent]):
        components = [
            {"productId": c.remote_ref, "productName": c.name, "quantity": c.quantity}
            for c in components
        ]
        return [
            ("bundle_components", json.dumps(components), "json"),
            ("component_count", str(len(components)), "number_integer"),
        ]

    def _put_metafields(self, product_id: str, metafields) -> None:
        """Create or overwrite metafields; an existing namespace/key pair is updated in place."""
        # The listing already exists; missing annotations are not worth failing for
        for key, value, kind in metafields:
            try:
                self._request(
                    "POST",
                    f"/products/{product_id}/metafields.json",
                    {
                        "metafield": {
                            "namespace": self.METAFIELD_NAMESPACE,
                            "key": key,
                            "value": value,
                            "type": kind,
                        }
                    },
                )
            except (TransientSyncError, RejectedSyncError) as exc:
                logger.warning("Metafield %s not written on product %s: %s", key, product_id, exc)

    def resync(self, product_id: str, variant_id: str, attributes: ListingAttributes) -> None:
        product: Dict[str, Any] = {
            "id": int(product_id),
            "title": attributes.title,
            "body_html": render_body_html(attributes.description, attributes.components),
            "status": attributes.status,
            # Replacing the image list keeps repeated syncs from stacking images
            "images": [{"src": attributes.image_url, "alt": attributes.title}] if attributes.image_url else [],
        }

        self._request("PUT", f"/products/{product_id}.json", {"product": product})
        self._request(
            "PUT",
            f"/variants/{variant_id}.json",
            {"variant": {"id": int(variant_id), "price": attributes.price}},
        )
        self._put_metafields(product_id, self._component_metafields(attributes.components))
        logger.info("Shopify listing %s re-synced", product_id)

    def fetch_remote_metadata(self, product_id: str) -> Dict[str, Any]:
        body = self._request("GET", f"/products/{product_id}/metafields.json")

        metadata: Dict[str, Any] = {}
        for metafield in body.get("metafields", []):
            if metafield.get("namespace") != self.METAFIELD_NAMESPACE:
                continue
            value = metafield.get("value")
            if metafield.get("type") == "json" and isinstance(value, str):
                try:
                    value = json.loads(value)
                except ValueError:
                    pass
            metadata[metafield["key"]] = value
        return metadata

    def checkout_url(self, variant_id: str, quantity: int = 1) -> str:
        return f"https://{self.store_domain}/cart/{variant_id}:{quantity}"
