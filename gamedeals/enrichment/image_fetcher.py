# ===== IMPORTS & DEPENDENCIES =====
import logging
import aiohttp
from typing import Optional

from gamedeals.core.base_client import BaseWebClient
from gamedeals.core.errors import ImageUnavailable

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

# Domains to blacklist for images (e.g., low-quality placeholders, trackers)
IMAGE_DOMAIN_BLACKLIST = ["gravatar.com", "avatar.com", "placehold.co"]
MIN_IMAGE_BYTES = 1024


def is_usable_image_url(url: Optional[str]) -> bool:
    """A simple validator to check if the URL is a plausible promotional image."""
    if not url or not url.startswith('http'):
        return False
    if any(blacklisted_domain in url for blacklisted_domain in IMAGE_DOMAIN_BLACKLIST):
        logger.debug(f"[is_usable_image_url] URL '{url}' is blacklisted.")
        return False
    return True


# ===== CORE BUSINESS LOGIC =====
class ImageFetcher(BaseWebClient):
    """Downloads the promotional image a post is published with."""

    def __init__(self, session: aiohttp.ClientSession):
        super().__init__(session=session)

    async def fetch_image(self, url: Optional[str]) -> bytes:
        """Returns the image bytes. Raises ImageUnavailable when the image cannot be used."""
        if not is_usable_image_url(url):
            raise ImageUnavailable(f"Unusable image URL: {url!r}")

        content = await self._fetch_bytes(url)
        if not content:
            raise ImageUnavailable(f"Could not download image from {url}")
        # Error pages and tracking pixels come back tiny
        if len(content) < MIN_IMAGE_BYTES:
            raise ImageUnavailable(f"Image at {url} is only {len(content)} bytes")

        logger.info(f"✅ [{self.__class__.__name__}] Downloaded {len(content)} bytes from {url}")
        return content
