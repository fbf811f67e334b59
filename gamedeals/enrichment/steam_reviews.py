# ===== IMPORTS & DEPENDENCIES =====
import logging
import aiohttp
import os
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

from gamedeals.core.base_client import BaseWebClient
from gamedeals.core.errors import EnrichmentUnresolved
from gamedeals.config import (
    STEAM_REVIEWS_URL, ITAD_GAME_INFO_URL, ITAD_API_KEY,
    STEAM_REVIEW_LABEL_FLOORS, DEFAULT_CACHE_TTL, CACHE_DIR
)
from gamedeals.utils.game_utils import percent_of

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewStats:
    """Steam review summary for one app."""
    count: int
    percent: int
    label: Optional[str] = None


# ===== CORE BUSINESS LOGIC =====
class SteamReviewEnricher(BaseWebClient):
    """
    Looks up Steam review statistics. Steam listings use it directly; Epic sale
    offers from the deals aggregator are first mapped to their Steam app id.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: Optional[str] = ITAD_API_KEY,
        cache_dir: Optional[str] = None,
        cache_ttl: int = DEFAULT_CACHE_TTL
    ):
        super().__init__(
            session=session,
            cache_dir=cache_dir or os.path.join(CACHE_DIR, "steam_reviews"),
            cache_ttl=cache_ttl
        )
        self._api_key = api_key

    def _parse_review_summary(self, app_id: str, response_data: Dict[str, Any]) -> Optional[ReviewStats]:
        """
        Parses the `query_summary` block of the Steam app reviews endpoint.
        Raises EnrichmentUnresolved when the payload does not have the expected shape.
        """
        if not isinstance(response_data, dict):
            raise EnrichmentUnresolved(f"Malformed review payload for Steam app {app_id}")
        summary = response_data.get('query_summary') or {}
        if not isinstance(summary, dict):
            raise EnrichmentUnresolved(f"Malformed review summary for Steam app {app_id}")
        total = summary.get('total_reviews') or 0
        positive = summary.get('total_positive') or 0
        label = summary.get('review_score_desc')

        percent = percent_of(positive, total)
        if percent is not None:
            return ReviewStats(count=total, percent=percent, label=label)

        # Some apps only report a label; map it onto the configured score floor
        if label and label.lower() in STEAM_REVIEW_LABEL_FLOORS:
            logger.debug(f"[{self.__class__.__name__}] Using label '{label}' as score floor for app {app_id}.")
            return ReviewStats(count=total, percent=STEAM_REVIEW_LABEL_FLOORS[label.lower()], label=label)

        logger.debug(f"[{self.__class__.__name__}] No usable review data for Steam app {app_id}.")
        return None

    async def get_reviews(self, app_id: str) -> Optional[ReviewStats]:
        """
        Fetches review statistics for a Steam app. Returns None when Steam has none.
        Raises EnrichmentUnresolved for a malformed payload.
        """
        response_data = await self._fetch(STEAM_REVIEWS_URL.format(app_id=app_id), is_json=True, use_cache=True)
        if not response_data:
            logger.warning(f"[{self.__class__.__name__}] No response data from Steam reviews for App ID {app_id}.")
            return None
        return self._parse_review_summary(app_id, response_data)

    async def resolve_app_id(self, aggregator_game_id: str) -> Optional[str]:
        """Looks up the Steam app id the deals aggregator links to a game."""
        if not self._api_key:
            logger.debug(f"[{self.__class__.__name__}] No aggregator API key configured. Cannot resolve '{aggregator_game_id}'.")
            return None

        url = ITAD_GAME_INFO_URL.format(key=self._api_key, game_id=aggregator_game_id)
        response_data = await self._fetch(url, is_json=True, use_cache=True)
        if not isinstance(response_data, dict):
            return None

        app_id = response_data.get('appid')
        return str(app_id) if app_id else None

    async def require_reviews(self, aggregator_game_id: str, min_count: int) -> Tuple[str, ReviewStats]:
        """
        Resolves the Steam app behind an aggregator game and returns `(app_id, ReviewStats)`.
        Raises EnrichmentUnresolved when the app id is unknown or the sample is too small.
        """
        app_id = await self.resolve_app_id(aggregator_game_id)
        if not app_id:
            raise EnrichmentUnresolved(f"No Steam app id for aggregator game '{aggregator_game_id}'")

        stats = await self.get_reviews(app_id)
        if stats is None:
            raise EnrichmentUnresolved(f"No review statistics for Steam app {app_id}")
        if stats.count < min_count:
            raise EnrichmentUnresolved(f"Steam app {app_id} has {stats.count} reviews, below the minimum of {min_count}")

        logger.info(f"✅ [{self.__class__.__name__}] Resolved '{aggregator_game_id}' to Steam app {app_id} ({stats.percent}% of {stats.count} reviews).")
        return app_id, stats
