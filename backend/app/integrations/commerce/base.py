# app/integrations/commerce/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

TRANSIENT = "transient"
REJECTED = "rejected"


class CommerceSyncError(Exception):
    """A commerce platform call did not go through. ``kind`` says whether retrying can help."""

    kind = TRANSIENT

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransientSyncError(CommerceSyncError):
    """Network trouble, rate limiting or a platform outage."""

    kind = TRANSIENT


class RejectedSyncError(CommerceSyncError):
    """The platform refused the payload; the bundle needs correcting first."""

    kind = REJECTED


@dataclass(frozen=True)
class ListingComponent:
    remote_ref: str
    name: str
    quantity: int


@dataclass(frozen=True)
class ListingAttributes:
    """Fields pushed on every re-sync of a live listing. Remote ids never change here."""

    title: str
    description: str
    price: str
    image_url: Optional[str] = None
    status: str = "active"
    components: Tuple[ListingComponent, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BundleListing:
    """Everything needed to create a brand-new listing."""

    draft_id: str
    trainer_id: str
    attributes: ListingAttributes


@dataclass(frozen=True)
class RemoteListing:
    product_id: str
    variant_id: str


class CommerceSyncAdapter(ABC):
    """Boundary to the external commerce platform."""

    @abstractmethod
    def publish(self, listing: BundleListing) -> RemoteListing:
        """Create the remote listing. Raises CommerceSyncError."""

    @abstractmethod
    def resync(self, product_id: str, variant_id: str, attributes: ListingAttributes) -> None:
        """
        Push attributes to an existing listing.

        Must be idempotent: the same attributes twice leave the same remote
        state and never create a second listing.
        """

    @abstractmethod
    def fetch_remote_metadata(self, product_id: str) -> Dict[str, Any]:
        """Read-only annotations for admin display. Raises CommerceSyncError."""

    @abstractmethod
    def checkout_url(self, variant_id: str, quantity: int = 1) -> str:
        ...
