# ===== IMPORTS & DEPENDENCIES =====
import logging
from typing import Iterable, List

from gamedeals.core.base_client import BaseWebClient
from gamedeals.core.errors import SourceUnavailable
from gamedeals.core.normalizer import normalize
from gamedeals.models.deal import Deal
from gamedeals.models.raw import RawDeal

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

# ===== CORE BUSINESS LOGIC =====
class DealSource(BaseWebClient):
    """
    Base class for storefront adapters.

    Subclasses implement `_fetch_deals()`. The public `fetch()` never raises:
    transport, parse and upstream failures are logged and degrade to an empty list.
    """

    async def _fetch_deals(self) -> List[Deal]:
        raise NotImplementedError

    async def fetch(self) -> List[Deal]:
        """Fetches this source's eligible deals. Returns [] on any failure."""
        logger.info(f"🚀 [{self.__class__.__name__}] Starting fetch...")
        try:
            deals = await self._fetch_deals()
        except SourceUnavailable as e:
            logger.error(f"❌ [{self.__class__.__name__}] Source unavailable: {e}")
            return []
        except Exception as e:
            logger.error(f"❌ [{self.__class__.__name__}] Unexpected error while fetching deals: {e}", exc_info=True)
            return []

        logger.info(f"✅ [{self.__class__.__name__}] Produced {len(deals)} eligible deals.")
        return deals

    def _build_deals(self, raws: Iterable[RawDeal]) -> List[Deal]:
        """Normalizes raw records, skipping any record that cannot form a valid Deal."""
        deals: List[Deal] = []
        for raw in raws:
            try:
                deals.append(normalize(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"⚠️ [{self.__class__.__name__}] Skipping malformed record '{raw.get('title') or raw.get('name')}': {e}")
        return deals
