# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from gamedeals.config import MAX_PUBLISH_ATTEMPTS, PUBLISH_COOLDOWN_SECONDS
from gamedeals.core.database import Database
from gamedeals.core.errors import (
    ImageUnavailable, HistoryStoreError, PublishError, PublishRateLimited
)
from gamedeals.core.selection import EligibilityFilter
from gamedeals.core.telegram_publisher import format_post_text
from gamedeals.enrichment.currency import CurrencyConverter
from gamedeals.models.deal import Deal, PostRecord

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


# ===== TYPES & INTERFACES =====
class Publisher(Protocol):
    async def publish(self, image: bytes, text: str) -> str: ...


class ImageSource(Protocol):
    async def fetch_image(self, url: Optional[str]) -> bytes: ...


class RunStatus(str, Enum):
    PUBLISHED = "published"
    NONE_ELIGIBLE = "none_eligible"
    RATE_LIMITED = "rate_limited"
    EXHAUSTED_ATTEMPTS = "exhausted_attempts"
    FATAL = "fatal"
    DRY_RUN = "dry_run"


@dataclass
class RunResult:
    """The single terminal outcome of one pipeline run."""
    status: RunStatus
    deal: Optional[Deal] = None
    post_id: Optional[str] = None
    attempts: int = 0
    skipped: int = 0
    message: Optional[str] = None
    elapsed_seconds: float = 0.0
    candidates: List[Deal] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """The payload reported to whatever scheduled the run."""
        result: Dict[str, Any] = {
            "status": self.status.value,
            "attempts": self.attempts,
            "skipped": self.skipped,
            "elapsed": f"{self.elapsed_seconds:.2f}s",
        }
        if self.message:
            result["message"] = self.message
        if self.deal is not None:
            result.update({
                "game": self.deal.title,
                "platform": self.deal.platform.value,
                "discount": f"{self.deal.discount_percent}%",
                "price": f"{self.deal.final_price:.2f} {self.deal.currency}",
                "reviews": f"{self.deal.review_score}%" if self.deal.review_score is not None else None,
                "url": self.deal.url,
            })
        if self.post_id:
            result["post_id"] = self.post_id
        return result


# ===== CORE BUSINESS LOGIC =====
class DealSelector:
    """
    Walks the ranked deals and publishes the first eligible one.

    Image download failures skip a candidate without using the attempt budget.
    A rate-limit signal ends the run at once. Any other publish failure uses
    one attempt and is followed by a fixed cooldown; the run gives up once the
    budget is spent.
    """

    def __init__(
        self,
        publisher: Publisher,
        images: ImageSource,
        history: Database,
        eligibility: EligibilityFilter,
        converter: Optional[CurrencyConverter] = None,
        max_attempts: int = MAX_PUBLISH_ATTEMPTS,
        cooldown_seconds: float = PUBLISH_COOLDOWN_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        self.publisher = publisher
        self.images = images
        self.history = history
        self.eligibility = eligibility
        self.converter = converter
        self.max_attempts = max_attempts
        self.cooldown_seconds = cooldown_seconds
        self._sleep = sleep
        self._clock = clock

    async def _convert(self, deal: Deal, target: str) -> Optional[Decimal]:
        if self.converter is None:
            return None
        try:
            return await self.converter.convert(deal.final_price, deal.currency, target)
        except ValueError as e:
            logger.debug(f"[{self.__class__.__name__}] No {target} conversion for '{deal.title}': {e}")
            return None
        except Exception as e:
            # A failed conversion never blocks publishing or recording
            logger.error(f"❌ [{self.__class__.__name__}] {target} conversion failed for '{deal.title}': {e}", exc_info=True)
            return None

    async def _compose_text(self, deal: Deal) -> str:
        price_try = await self._convert(deal, "TRY") if deal.currency == "USD" and not deal.is_giveaway else None
        return format_post_text(deal, price_try)

    async def _record(self, deal: Deal, post_id: str) -> None:
        price_reference = await self._convert(deal, "USD")
        record = PostRecord(
            external_id=deal.legacy_id,
            normalized_title=deal.match_key,
            price_reference=price_reference if price_reference is not None else deal.final_price,
            created_at=self._clock(),
            post_id=post_id,
        )
        try:
            self.history.add_post(record)
        except HistoryStoreError as e:
            # The post is live; a missing record only risks an early repost
            logger.error(f"❌ [{self.__class__.__name__}] Failed to record post for '{deal.title}': {e}")

    async def run(self, ranked: Sequence[Deal]) -> RunResult:
        attempts = 0
        skipped = 0

        for deal in ranked:
            # Scanning
            reason = self.eligibility.rejection_reason(deal)
            if reason:
                skipped += 1
                logger.info(f"SKIP: {deal.title} - {reason}")
                continue

            # Attempting
            logger.info(f"✅ SELECTED: {deal.title} - {deal.discount_percent}% on {deal.platform.value}")
            try:
                image = await self.images.fetch_image(deal.image_url)
            except ImageUnavailable as e:
                skipped += 1
                logger.warning(f"⚠️ SKIP: {deal.title} - image unavailable: {e}")
                continue

            text = await self._compose_text(deal)
            attempts += 1
            try:
                post_id = await self.publisher.publish(image, text)
            except PublishRateLimited as e:
                logger.error(f"🛑 Rate limited while publishing '{deal.title}'. Stopping run.")
                return RunResult(RunStatus.RATE_LIMITED, deal=deal, attempts=attempts, skipped=skipped, message=str(e))
            except PublishError as e:
                logger.error(f"❌ Publish attempt {attempts}/{self.max_attempts} failed for '{deal.title}': {e}")
                await self._sleep(self.cooldown_seconds)
                if attempts >= self.max_attempts:
                    return RunResult(
                        RunStatus.EXHAUSTED_ATTEMPTS, attempts=attempts, skipped=skipped,
                        message=f"Gave up after {attempts} failed publish attempts."
                    )
                continue

            await self._record(deal, post_id)
            return RunResult(RunStatus.PUBLISHED, deal=deal, post_id=post_id, attempts=attempts, skipped=skipped)

        return RunResult(RunStatus.NONE_ELIGIBLE, attempts=attempts, skipped=skipped, message="No new eligible games.")
