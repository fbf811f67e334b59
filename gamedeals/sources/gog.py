# ===== IMPORTS & DEPENDENCIES =====
import logging
from typing import List, Optional, Dict, Any

from gamedeals.config import GOG_CATALOG_URL, MIN_GOG_DISCOUNT, MIN_GOG_REVIEWS
from gamedeals.core.errors import SourceUnavailable
from gamedeals.models.deal import Deal
from gamedeals.models.raw import GogRaw
from gamedeals.sources.base import DealSource
from gamedeals.utils.game_utils import parse_signed_percent

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

# ===== CORE BUSINESS LOGIC =====
class GogSource(DealSource):
    """Fetches the deepest GOG catalog discounts that have a meaningful number of reviews."""

    @staticmethod
    def _to_raw(product: Dict[str, Any]) -> Optional[GogRaw]:
        price = product.get('price') or {}
        discount = parse_signed_percent(price.get('discount') or '0')
        reviews_count = product.get('reviewsCount') or 0
        if discount < MIN_GOG_DISCOUNT or reviews_count < MIN_GOG_REVIEWS:
            return None
        if not product.get('id') or not product.get('title'):
            return None

        final_money = price.get('finalMoney') or {}
        return GogRaw(
            source="gog",
            id=str(product['id']),
            title=product['title'],
            discount=str(price.get('discount')),
            final_amount=final_money.get('amount'),
            currency=final_money.get('currency'),
            reviews_rating=product.get('reviewsRating') or 0,
            reviews_count=reviews_count,
            store_link=product.get('storeLink'),
            slug=product.get('slug'),
            cover_horizontal=product.get('coverHorizontal'),
        )

    async def _fetch_deals(self) -> List[Deal]:
        response_data = await self._fetch(GOG_CATALOG_URL, is_json=True)
        if not isinstance(response_data, dict):
            raise SourceUnavailable("Failed to fetch the GOG catalog")

        products = response_data.get('products') or []
        logger.info(f"[{self.__class__.__name__}] Received {len(products)} products from the catalog.")
        raws = [raw for raw in (self._to_raw(p) for p in products) if raw]
        return self._build_deals(raws)
