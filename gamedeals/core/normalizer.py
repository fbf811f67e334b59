# ===== IMPORTS & DEPENDENCIES =====
import logging
from decimal import Decimal
from typing import Callable, Dict, Optional

from gamedeals.config import (
    STEAM_APP_URL, STEAM_HEADER_IMAGE_URL, EPIC_PRODUCT_URL, EPIC_LOCALE,
    EPIC_FREE_DEFAULT_REVIEW_SCORE, EPIC_FREE_DEFAULT_REVIEW_COUNT,
    GOG_GAME_URL, GOG_RATING_SCALE
)
from gamedeals.models.deal import Deal, Platform
from gamedeals.models.raw import RawDeal, SteamRaw, SteamSearchRaw, EpicFreeRaw, EpicSalesRaw, GogRaw
from gamedeals.utils.game_utils import parse_signed_percent, to_decimal, normalize_currency_code

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

CENTS = Decimal("100")

# ===== CORE BUSINESS LOGIC =====

def _normalize_steam(raw: SteamRaw) -> Deal:
    app_id = str(raw['id'])
    return Deal(
        source_id=app_id,
        title=raw['name'],
        discount_percent=int(raw['discount_percent']),
        final_price=Decimal(int(raw['final_price'])) / CENTS,
        currency=normalize_currency_code(raw.get('currency')),
        platform=Platform.STEAM,
        url=STEAM_APP_URL.format(app_id=app_id),
        review_score=raw.get('review_score'),
        review_count=raw.get('review_count'),
        image_url=raw.get('header_image') or STEAM_HEADER_IMAGE_URL.format(app_id=app_id),
    )


def _normalize_steam_search(raw: SteamSearchRaw) -> Deal:
    app_id = str(raw['app_id'])
    return Deal(
        source_id=app_id,
        title=raw['name'],
        discount_percent=int(raw['discount_percent']),
        final_price=to_decimal(raw['final_price']),
        currency=normalize_currency_code(raw.get('currency')),
        platform=Platform.STEAM,
        url=STEAM_APP_URL.format(app_id=app_id),
        image_url=raw.get('image_url') or STEAM_HEADER_IMAGE_URL.format(app_id=app_id),
    )


def _normalize_epic_free(raw: EpicFreeRaw) -> Deal:
    # Giveaways: the promotion's 0% setting means "free", not "no discount"
    return Deal(
        source_id=f"epic_{raw['id']}",
        title=raw['title'],
        discount_percent=100,
        final_price=Decimal("0"),
        currency="TRY",
        platform=Platform.EPIC,
        url=EPIC_PRODUCT_URL.format(locale=EPIC_LOCALE, slug=raw['slug']),
        review_score=EPIC_FREE_DEFAULT_REVIEW_SCORE,
        review_count=EPIC_FREE_DEFAULT_REVIEW_COUNT,
        image_url=raw.get('image_url'),
    )


def _normalize_epic_sales(raw: EpicSalesRaw) -> Deal:
    return Deal(
        source_id=f"epic_{raw['id']}",
        title=raw['title'],
        discount_percent=int(raw['discount_percent']),
        final_price=to_decimal(raw['final_price']),
        currency=normalize_currency_code(raw.get('currency')),
        platform=Platform.EPIC,
        url=raw['url'],
        review_score=raw.get('review_score'),
        review_count=raw.get('review_count'),
        image_url=raw.get('image_url'),
    )


def _normalize_gog(raw: GogRaw) -> Deal:
    rating = raw.get('reviews_rating') or 0
    review_score = min(100, round((rating / GOG_RATING_SCALE) * 100)) if rating else None
    return Deal(
        source_id=f"gog_{raw['id']}",
        title=raw['title'],
        discount_percent=parse_signed_percent(raw.get('discount')),
        final_price=to_decimal(raw.get('final_amount')),
        currency=normalize_currency_code(raw.get('currency')),
        platform=Platform.GOG,
        url=raw.get('store_link') or GOG_GAME_URL.format(slug=raw.get('slug') or ''),
        review_score=review_score,
        review_count=raw.get('reviews_count') or 0,
        image_url=raw.get('cover_horizontal'),
    )


NORMALIZERS: Dict[str, Callable[..., Deal]] = {
    "steam": _normalize_steam,
    "steam_search": _normalize_steam_search,
    "epic_free": _normalize_epic_free,
    "epic_sales": _normalize_epic_sales,
    "gog": _normalize_gog,
}


def normalize(raw: RawDeal, source: Optional[str] = None) -> Deal:
    """
    Maps one tagged raw record to the common Deal shape. Pure: no network, no side effects.

    `source` defaults to the record's own tag; passing a different tag is a programming error.
    Raises KeyError / ValueError for records that cannot form a valid Deal.
    """
    tag = source or raw['source']
    if raw.get('source') and raw['source'] != tag:
        raise ValueError(f"Raw record tagged '{raw['source']}' cannot be normalized as '{tag}'")
    normalizer = NORMALIZERS.get(tag)
    if normalizer is None:
        raise ValueError(f"Unknown deal source: {tag}")
    return normalizer(raw)
