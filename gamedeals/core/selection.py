# ===== IMPORTS & DEPENDENCIES =====
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from gamedeals.config import (
    REPOST_WINDOW_TABLE, EXCLUDED_TITLES, MIN_DISCOUNT_BY_PLATFORM, REVIEW_POLICY
)
from gamedeals.core.database import Database
from gamedeals.core.errors import HistoryStoreError
from gamedeals.enrichment.image_fetcher import is_usable_image_url
from gamedeals.models.deal import Deal

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

# ===== CORE BUSINESS LOGIC =====

def _dominates(challenger: Deal, incumbent: Deal) -> bool:
    """True when `challenger` is strictly better: higher discount, or same discount and lower price."""
    if challenger.discount_percent != incumbent.discount_percent:
        return challenger.discount_percent > incumbent.discount_percent
    return challenger.final_price < incumbent.final_price


def merge_best_deals(deals: Iterable[Deal]) -> List[Deal]:
    """
    Collapses deals sharing a match key into the best offer and ranks them.

    Single pass over `deals`; the incumbent is replaced only by a strictly
    dominating deal, so ties keep the first seen. The result is sorted by
    discount descending with a stable sort, preserving input order among equals.
    """
    best: Dict[str, Deal] = {}
    for deal in deals:
        incumbent = best.get(deal.match_key)
        if incumbent is None or _dominates(deal, incumbent):
            best[deal.match_key] = deal
    return sorted(best.values(), key=lambda d: d.discount_percent, reverse=True)


def repost_window_hours(pool_size: int, table: Sequence[Tuple[int, int]] = REPOST_WINDOW_TABLE) -> int:
    """Sizes the repost window from this run's pool of unique deals. Larger pools allow longer windows."""
    for min_pool, hours in table:
        if pool_size >= min_pool:
            return hours
    return table[-1][1]


class EligibilityFilter:
    """
    Decides, one ranked deal at a time, whether it may be published this run.

    History lookups happen per candidate, so only deals the selector actually
    reaches cost a query. A failed history lookup rejects the candidate.
    """

    def __init__(
        self,
        history: Database,
        repost_window: timedelta,
        now: Optional[datetime] = None,
        excluded_titles: Sequence[str] = EXCLUDED_TITLES,
        min_discount_by_platform: Optional[Dict[str, int]] = None,
        review_policy: Optional[Dict[str, Dict[str, Optional[int]]]] = None
    ):
        self.history = history
        self.repost_window = repost_window
        self.now = now or datetime.now(timezone.utc)
        self.cutoff = self.now - repost_window
        self.excluded_titles = [t.lower() for t in excluded_titles if t]
        self.min_discount_by_platform = MIN_DISCOUNT_BY_PLATFORM if min_discount_by_platform is None else min_discount_by_platform
        self.review_policy = REVIEW_POLICY if review_policy is None else review_policy

    def _threshold_failure(self, deal: Deal) -> Optional[str]:
        min_discount = self.min_discount_by_platform.get(deal.platform.value, 0)
        if deal.discount_percent < min_discount:
            return f"discount {deal.discount_percent}% below {min_discount}%"

        policy = self.review_policy.get(deal.platform.value) or {}
        min_count = policy.get('min_count')
        if min_count is not None and (deal.review_count is None or deal.review_count < min_count):
            return f"review count {deal.review_count} below {min_count}"
        min_score = policy.get('min_score')
        if min_score is not None and (deal.review_score is None or deal.review_score < min_score):
            return f"review score {deal.review_score} below {min_score}"
        return None

    def _posted_recently(self, deal: Deal) -> bool:
        """Checks the history by match key, then by the legacy numeric id. Raises HistoryStoreError."""
        if self.history.find_recent_posts(deal.match_key, self.cutoff):
            return True
        if deal.legacy_id.isdigit() and deal.legacy_id != "0":
            return bool(self.history.find_recent_posts(deal.legacy_id, self.cutoff))
        return False

    def _is_excluded(self, deal: Deal) -> bool:
        title = deal.title.lower()
        return any(excluded in title for excluded in self.excluded_titles)

    def rejection_reason(self, deal: Deal) -> Optional[str]:
        """Returns why `deal` may not be published, or None when it is eligible."""
        failure = self._threshold_failure(deal)
        if failure:
            return failure

        if not is_usable_image_url(deal.image_url):
            return "no usable image"

        try:
            if self._posted_recently(deal):
                return f"posted within the last {self.repost_window.total_seconds() / 3600:.0f}h"
        except HistoryStoreError as e:
            logger.error(f"❌ [{self.__class__.__name__}] History lookup failed for '{deal.title}': {e}. Skipping candidate.")
            return "history unavailable"

        if self._is_excluded(deal):
            return "title is on the exclusion list"
        return None

    def is_eligible(self, deal: Deal) -> bool:
        return self.rejection_reason(deal) is None
