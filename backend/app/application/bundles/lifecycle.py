# app/application/bundles/lifecycle.py
from dataclasses import dataclass

from flask import Flask, current_app

from app.integrations.commerce.base import CommerceSyncAdapter
from app.integrations.commerce.memory import InMemoryCommerceAdapter
from app.integrations.commerce.shopify import ShopifyCommerceAdapter
from app.integrations.cover_images import HttpCoverImageGenerator, NullCoverImageGenerator
from app.repositories.draft_store import DraftStore
from app.repositories.job_store import PublishJobStore
from app.repositories.publication_store import PublicationStore
from app.utils.audit import AuditTrail
from .component_editor import ComponentEditor
from .publication_manager import PublicationManager
from .review_workflow import ReviewWorkflow

EXTENSION_KEY = "bundle_lifecycle"


@dataclass
class BundleLifecycle:
    """The wired-up bundle services of one application instance."""

    drafts: DraftStore
    publications: PublicationStore
    jobs: PublishJobStore
    audit: AuditTrail
    adapter: CommerceSyncAdapter
    images: object
    reviews: ReviewWorkflow
    manager: PublicationManager
    components: ComponentEditor


def build_commerce_adapter(config) -> CommerceSyncAdapter:
    backend = (config.get("COMMERCE_BACKEND") or "shopify").lower()

    if backend == "memory":
        return InMemoryCommerceAdapter(store_domain=config.get("SHOPIFY_STORE_DOMAIN") or "dev-store.myshopify.com")

    if backend == "shopify":
        return ShopifyCommerceAdapter(
            store_domain=config.get("SHOPIFY_STORE_DOMAIN"),
            access_token=config.get("SHOPIFY_ACCESS_TOKEN"),
            api_version=config.get("SHOPIFY_API_VERSION", "2024-01"),
            timeout=config.get("SHOPIFY_TIMEOUT", 30.0),
            vendor=config.get("SHOPIFY_VENDOR", "LocoMotivate"),
        )

    raise ValueError(f"Unknown COMMERCE_BACKEND: {backend}")


def build_cover_image_generator(config):
    endpoint = config.get("COVER_IMAGE_ENDPOINT")
    if not endpoint:
        return NullCoverImageGenerator()

    return HttpCoverImageGenerator(
        endpoint,
        api_key=config.get("COVER_IMAGE_API_KEY"),
        timeout=config.get("COVER_IMAGE_TIMEOUT", 60.0),
    )


def init_lifecycle(app: Flask) -> BundleLifecycle:
    drafts = DraftStore()
    publications = PublicationStore()
    jobs = PublishJobStore()
    audit = AuditTrail()
    adapter = build_commerce_adapter(app.config)
    images = build_cover_image_generator(app.config)

    reviews = ReviewWorkflow(drafts=drafts, audit=audit)
    manager = PublicationManager(
        drafts=drafts,
        publications=publications,
        jobs=jobs,
        reviews=reviews,
        adapter=adapter,
        images=images,
        audit=audit,
        eager=app.config.get("PUBLISH_JOBS_EAGER", False),
    )
    components = ComponentEditor(drafts=drafts, manager=manager, audit=audit)

    lifecycle = BundleLifecycle(
        drafts=drafts,
        publications=publications,
        jobs=jobs,
        audit=audit,
        adapter=adapter,
        images=images,
        reviews=reviews,
        manager=manager,
        components=components,
    )
    app.extensions[EXTENSION_KEY] = lifecycle
    app.logger.info("Bundle lifecycle ready (commerce backend: %s)", type(adapter).__name__)
    return lifecycle


def get_lifecycle() -> BundleLifecycle:
    return current_app.extensions[EXTENSION_KEY]
