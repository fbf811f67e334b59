# ===== IMPORTS & DEPENDENCIES =====
import logging
import aiohttp
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any, Tuple
from urllib.parse import quote

from gamedeals.config import (
    EPIC_FREE_GAMES_URL, EPIC_LOCALE, EPIC_COUNTRY, EPIC_PRODUCT_URL, EPIC_BROWSE_URL,
    EPIC_SLUG_PLACEHOLDERS, EPIC_IMAGE_TYPES, ITAD_API_KEY, ITAD_DEALS_URL,
    CHEAPSHARK_DEALS_URL, STEAM_HEADER_IMAGE_URL,
    MIN_EPIC_SALE_DISCOUNT, MIN_STEAM_REVIEWS, MIN_METACRITIC
)
from gamedeals.core.errors import EnrichmentUnresolved, SourceUnavailable
from gamedeals.enrichment.steam_reviews import ReviewStats, SteamReviewEnricher
from gamedeals.models.deal import Deal
from gamedeals.models.raw import EpicFreeRaw, EpicSalesRaw
from gamedeals.sources.base import DealSource
from gamedeals.utils.game_utils import make_match_key

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


# ===== CORE BUSINESS LOGIC =====
class EpicFreeSource(DealSource):
    """Fetches the games Epic Games is currently giving away."""

    def __init__(self, session: aiohttp.ClientSession, locale: str = EPIC_LOCALE, country: str = EPIC_COUNTRY):
        super().__init__(session=session)
        self._locale = locale
        self._country = country

    @staticmethod
    def _resolve_slug(game_element: Dict[str, Any]) -> Optional[str]:
        """Returns the first usable landing-page slug: productSlug, urlSlug, then the catalog page mapping."""
        mappings = (game_element.get('catalogNs') or {}).get('mappings') or []
        candidates = [
            game_element.get('productSlug'),
            game_element.get('urlSlug'),
            mappings[0].get('pageSlug') if mappings else None,
        ]
        for slug in candidates:
            if not isinstance(slug, str):
                continue
            # Clean up slug if it contains '/home'
            slug = slug.replace('/home', '').strip()
            if slug not in EPIC_SLUG_PLACEHOLDERS:
                return slug
        return None

    @staticmethod
    def _find_image(game_element: Dict[str, Any]) -> Optional[str]:
        """Finds the best available image URL, preferring wide promotional art."""
        key_images = game_element.get('keyImages') or []
        for img_type in EPIC_IMAGE_TYPES:
            for img in key_images:
                if img.get('type') == img_type and img.get('url'):
                    return img['url']
        return key_images[0].get('url') if key_images else None

    @staticmethod
    def _is_active_giveaway(game_element: Dict[str, Any], now: datetime) -> bool:
        """True when a currently running promotional offer sets the discount percentage to 0 (i.e. free)."""
        promotions = game_element.get('promotions') or {}
        groups = promotions.get('promotionalOffers') or []
        if not groups:
            return False

        for offer in groups[0].get('promotionalOffers') or []:
            if (offer.get('discountSetting') or {}).get('discountPercentage') != 0:
                continue
            start, end = offer.get('startDate'), offer.get('endDate')
            try:
                if start and end and not (_parse_iso(start) <= now <= _parse_iso(end)):
                    continue
            except ValueError:
                logger.debug(f"[EpicFreeSource] Unparseable promotion dates for '{game_element.get('title')}'.")
            return True
        return False

    def _to_raw(self, game_element: Dict[str, Any], now: datetime) -> Optional[EpicFreeRaw]:
        title = game_element.get('title')
        game_id = game_element.get('id')
        if not title or not game_id or not game_element.get('promotions'):
            return None
        if not self._is_active_giveaway(game_element, now):
            return None

        slug = self._resolve_slug(game_element)
        if not slug:
            logger.warning(f"⚠️ [{self.__class__.__name__}] No usable slug for '{title}'. Skipping.")
            return None

        return EpicFreeRaw(
            source="epic_free",
            id=game_id,
            title=title,
            slug=slug,
            image_url=self._find_image(game_element),
        )

    async def _fetch_deals(self) -> List[Deal]:
        url = EPIC_FREE_GAMES_URL.format(locale=self._locale, country=self._country)
        response_data = await self._fetch(url, is_json=True)
        if not isinstance(response_data, dict) or 'data' not in response_data:
            raise SourceUnavailable("Failed to fetch valid data from the Epic free games endpoint")

        elements = ((((response_data.get('data') or {}).get('Catalog') or {}).get('searchStore') or {}).get('elements')) or []
        logger.info(f"[{self.__class__.__name__}] Received {len(elements)} raw elements from API.")

        now = datetime.now(timezone.utc)
        raws = []
        for element in elements:
            raw = self._to_raw(element, now)
            if raw:
                logger.info(f"✅ [{self.__class__.__name__}] Found active free game: {raw['title']}")
                raws.append(raw)
        return self._build_deals(raws)


class EpicSalesSource(DealSource):
    """
    Fetches discounted Epic Games offers from a deals aggregator.

    With an IsThereAnyDeal key, every offer must resolve to a Steam app with a
    large enough review sample. Without one, CheapShark is used and its
    Metacritic score stands in for review data.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        review_enricher: SteamReviewEnricher,
        api_key: Optional[str] = ITAD_API_KEY,
        locale: str = EPIC_LOCALE,
        country: str = EPIC_COUNTRY
    ):
        super().__init__(session=session)
        self._reviews = review_enricher
        self._api_key = api_key
        self._locale = locale
        self._country = country

    async def _resolve_reviews(self, game_id: str, title: str) -> Optional[Tuple[str, ReviewStats]]:
        """Returns `(steam_app_id, ReviewStats)`, or None when the game does not qualify."""
        try:
            return await self._reviews.require_reviews(game_id, MIN_STEAM_REVIEWS)
        except EnrichmentUnresolved as e:
            logger.debug(f"[{self.__class__.__name__}] Rejecting '{title}': {e}")
        except Exception as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Review lookup failed for '{title}': {e}")
        return None

    async def _from_itad(self) -> List[EpicSalesRaw]:
        url = ITAD_DEALS_URL.format(key=self._api_key, country=self._country)
        response_data = await self._fetch(url, is_json=True)
        if not isinstance(response_data, dict):
            raise SourceUnavailable("Failed to fetch deals from IsThereAnyDeal")

        items = response_data.get('list') or []
        logger.info(f"[{self.__class__.__name__}] Received {len(items)} offers from IsThereAnyDeal.")

        raws: List[EpicSalesRaw] = []
        # Review lookups per match key; None marks a rejected game
        resolved: Dict[str, Optional[Tuple[str, ReviewStats]]] = {}
        for item in items:
            deal = item.get('deal') or {}
            cut = deal.get('cut') or 0
            title = item.get('title')
            if item.get('type') != 'game' or cut < MIN_EPIC_SALE_DISCOUNT or not title:
                continue
            key = make_match_key(title)
            if key not in resolved:
                resolved[key] = await self._resolve_reviews(item['id'], title)
            if resolved[key] is None:
                continue

            app_id, stats = resolved[key]
            price = deal.get('price') or {}
            raws.append(EpicSalesRaw(
                source="epic_sales",
                id=str(item['id']),
                title=title,
                discount_percent=cut,
                final_price=str(price.get('amount', '0')),
                currency=price.get('currency') or 'TRY',
                url=EPIC_PRODUCT_URL.format(locale=self._locale, slug=item.get('slug') or ''),
                image_url=STEAM_HEADER_IMAGE_URL.format(app_id=app_id),
                review_score=stats.percent,
                review_count=stats.count,
            ))
        return raws

    async def _from_cheapshark(self) -> List[EpicSalesRaw]:
        response_data = await self._fetch(CHEAPSHARK_DEALS_URL.format(metacritic=MIN_METACRITIC), is_json=True)
        if not isinstance(response_data, list):
            raise SourceUnavailable("Failed to fetch deals from CheapShark")

        logger.info(f"[{self.__class__.__name__}] Received {len(response_data)} offers from CheapShark.")
        raws: List[EpicSalesRaw] = []
        for item in response_data:
            title = item.get('title')
            try:
                discount = round(float(item.get('savings') or 0))
                metacritic = int(item.get('metacriticScore') or 0)
            except (TypeError, ValueError):
                continue
            if not title or discount < MIN_EPIC_SALE_DISCOUNT or metacritic < MIN_METACRITIC:
                continue

            raws.append(EpicSalesRaw(
                source="epic_sales",
                id=f"cs_{item.get('dealID')}",
                title=title,
                discount_percent=min(discount, 100),
                final_price=str(item.get('salePrice') or '0'),
                currency='USD',
                url=EPIC_BROWSE_URL.format(locale=self._locale, query=quote(title)),
                image_url=STEAM_HEADER_IMAGE_URL.format(app_id=item['steamAppID']) if item.get('steamAppID') else item.get('thumb'),
                review_score=metacritic,
                review_count=None,
            ))
        return raws

    async def _fetch_deals(self) -> List[Deal]:
        if self._api_key:
            raws = await self._from_itad()
        else:
            logger.info(f"[{self.__class__.__name__}] No IsThereAnyDeal key configured. Using CheapShark.")
            raws = await self._from_cheapshark()
        return self._build_deals(raws)
