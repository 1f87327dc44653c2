"""
Cover image generation collaborator.

Given a bundle title, a goal tag and the product list, returns the URL of a
generated cover image. Callers treat every failure as "no image".
"""
import logging
from typing import Optional, Sequence, Tuple

import requests

logger = logging.getLogger(__name__)


class CoverImageError(Exception):
    pass


class NullCoverImageGenerator:
    """Used when no generation endpoint is configured."""

    def generate(self, *, title: str, goal: Optional[str], products: Sequence[Tuple[str, Optional[str]]]) -> Optional[str]:
        return None


class HttpCoverImageGenerator:
    def __init__(self, endpoint: str, api_key: Optional[str] = None, timeout: float = 60.0,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def generate(self, *, title: str, goal: Optional[str], products: Sequence[Tuple[str, Optional[str]]]) -> Optional[str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "title": title,
            "goal": goal,
            "products": [{"name": name, "image_url": image} for name, image in products],
        }

        try:
            response = self._session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            image_url = response.json().get("image_url")
        except (requests.RequestException, ValueError) as exc:
            raise CoverImageError(f"Cover image generation failed: {exc}") from exc

        if not image_url:
            raise CoverImageError("Cover image service returned no image_url")

        logger.info("Generated cover image for %r", title)
        return image_url
