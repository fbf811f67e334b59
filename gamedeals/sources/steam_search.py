# ===== IMPORTS & DEPENDENCIES =====
import logging
import aiohttp
from typing import List, Optional
from bs4 import BeautifulSoup

from gamedeals.config import STEAM_SEARCH_URL, STEAM_COUNTRY_CODE, MIN_STEAM_DISCOUNT
from gamedeals.models.deal import Deal
from gamedeals.models.raw import SteamSearchRaw
from gamedeals.sources.base import DealSource
from gamedeals.utils.game_utils import parse_signed_percent, parse_price_text

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

# ===== CORE BUSINESS LOGIC =====
class SteamSearchSource(DealSource):
    """
    Best-effort extraction of discounted games from the Steam specials search page.
    Markup changes only ever cost individual rows: a row that cannot be parsed is skipped.
    """

    def __init__(self, session: aiohttp.ClientSession, country_code: str = STEAM_COUNTRY_CODE):
        super().__init__(session=session)
        self._country_code = country_code

    @staticmethod
    def _detect_currency(price_text: str) -> str:
        if '₺' in price_text or 'TL' in price_text:
            return 'TRY'
        return 'USD'

    def _parse_row(self, row) -> Optional[SteamSearchRaw]:
        """Parses a single `a.search_result_row` element. Returns None on any extraction miss."""
        app_id = (row.get('data-ds-appid') or '').strip()
        # Bundles carry several comma-separated app ids
        if not app_id.isdigit():
            logger.debug(f"[{self.__class__.__name__}] Skipping row with app id '{app_id}'.")
            return None

        title_tag = row.select_one('span.title')
        if not title_tag or not title_tag.get_text(strip=True):
            logger.debug(f"[{self.__class__.__name__}] Skipping app {app_id}: title not found.")
            return None

        # Newer markup exposes machine-readable attributes on the discount block
        discount_block = row.select_one('.search_discount_block')
        discount = None
        final_price = None
        price_text = ''
        if discount_block is not None and discount_block.get('data-discount'):
            discount = parse_signed_percent(discount_block.get('data-discount'))
            final_cents = discount_block.get('data-price-final')
            if final_cents and final_cents.isdigit():
                final_price = str(int(final_cents) / 100)

        if discount is None:
            pct_tag = row.select_one('.discount_pct') or row.select_one('.search_discount span')
            if pct_tag:
                discount = parse_signed_percent(pct_tag.get_text(strip=True))

        price_tag = row.select_one('.discount_final_price') or row.select_one('.search_price')
        if price_tag:
            price_text = price_tag.get_text(" ", strip=True)
            if final_price is None:
                # "$19.99 $4.99" lists the original price first
                numeric_tokens = [t for t in price_text.split() if any(c.isdigit() for c in t)]
                final_price = parse_price_text(numeric_tokens[-1]) if numeric_tokens else None

        if not discount or final_price is None:
            logger.debug(f"[{self.__class__.__name__}] Skipping app {app_id}: discount or price not found.")
            return None

        image_tag = row.select_one('img')
        return SteamSearchRaw(
            source="steam_search",
            app_id=app_id,
            name=title_tag.get_text(strip=True),
            discount_percent=discount,
            final_price=final_price,
            currency=self._detect_currency(price_text),
            image_url=image_tag.get('src') if image_tag else None,
        )

    def parse_page(self, html_content: str) -> List[SteamSearchRaw]:
        soup = BeautifulSoup(html_content, 'lxml')
        rows = soup.select('a.search_result_row[data-ds-appid]')
        logger.info(f"[{self.__class__.__name__}] Found {len(rows)} search result rows to parse.")

        raws: List[SteamSearchRaw] = []
        seen = set()
        for row in rows:
            raw = self._parse_row(row)
            if raw is None or raw['app_id'] in seen:
                continue
            seen.add(raw['app_id'])
            if raw['discount_percent'] >= MIN_STEAM_DISCOUNT:
                raws.append(raw)
        return raws

    async def _fetch_deals(self) -> List[Deal]:
        html_content = await self._fetch(STEAM_SEARCH_URL.format(cc=self._country_code), is_json=False)
        if not html_content:
            return []
        return self._build_deals(self.parse_page(html_content))
