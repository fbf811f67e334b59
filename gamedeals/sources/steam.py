# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import logging
import aiohttp
from typing import List, Optional, Dict, Any

from gamedeals.config import (
    STEAM_FEATURED_URL, STEAM_FEATURED_BUCKETS, STEAM_COUNTRY_CODE, MIN_STEAM_DISCOUNT
)
from gamedeals.core.errors import SourceUnavailable
from gamedeals.enrichment.steam_reviews import SteamReviewEnricher
from gamedeals.models.deal import Deal
from gamedeals.models.raw import SteamRaw
from gamedeals.sources.base import DealSource
from gamedeals.sources.steam_search import SteamSearchSource

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

REVIEW_LOOKUP_CONCURRENCY = 5

# ===== CORE BUSINESS LOGIC =====
class SteamSource(DealSource):
    """
    Fetches discounted games from the Steam storefront's curated listings
    (specials, top sellers, new releases), attaching review statistics.
    Falls back to scraping the specials search page when the listings are empty.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        review_enricher: SteamReviewEnricher,
        fallback: Optional[SteamSearchSource] = None,
        country_code: str = STEAM_COUNTRY_CODE
    ):
        super().__init__(session=session)
        self._reviews = review_enricher
        self._fallback = fallback
        self._country_code = country_code

    def _collect_candidates(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Unions every bucket's items, keeping the first occurrence of each app id."""
        seen = set()
        candidates = []
        for bucket in STEAM_FEATURED_BUCKETS:
            items = (data.get(bucket) or {}).get('items') or []
            for item in items:
                app_id = item.get('id')
                if app_id is None or app_id in seen:
                    continue
                seen.add(app_id)
                candidates.append(item)
        return candidates

    @staticmethod
    def _is_eligible(item: Dict[str, Any]) -> bool:
        return bool(item.get('discounted')) and (item.get('discount_percent') or 0) >= MIN_STEAM_DISCOUNT

    async def _to_raw(self, item: Dict[str, Any], semaphore: asyncio.Semaphore) -> Optional[SteamRaw]:
        """Attaches review statistics. A failed lookup drops only this item."""
        try:
            async with semaphore:
                stats = await self._reviews.get_reviews(str(item['id']))
        except Exception as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Review lookup failed for '{item.get('name')}' ({item.get('id')}): {e}")
            return None
        return SteamRaw(
            source="steam",
            id=item['id'],
            name=item.get('name') or '',
            discounted=bool(item.get('discounted')),
            discount_percent=item.get('discount_percent') or 0,
            final_price=item.get('final_price') or 0,
            currency=item.get('currency') or 'USD',
            header_image=item.get('header_image') or item.get('large_capsule_image'),
            review_score=stats.percent if stats else None,
            review_count=stats.count if stats else None,
        )

    async def _fetch_deals(self) -> List[Deal]:
        data = await self._fetch(STEAM_FEATURED_URL.format(cc=self._country_code), is_json=True)
        if data is not None and not isinstance(data, dict):
            raise SourceUnavailable(f"Unexpected featured-categories payload type: {type(data).__name__}")

        candidates = self._collect_candidates(data or {})
        logger.info(f"[{self.__class__.__name__}] Received {len(candidates)} unique items from featured categories.")

        if not candidates and self._fallback is not None:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Featured categories empty. Falling back to search page scraping.")
            return await self._fallback.fetch()

        eligible = [item for item in candidates if self._is_eligible(item)]
        semaphore = asyncio.Semaphore(REVIEW_LOOKUP_CONCURRENCY)
        raws = await asyncio.gather(*(self._to_raw(item, semaphore) for item in eligible))
        return self._build_deals(raw for raw in raws if raw is not None)
