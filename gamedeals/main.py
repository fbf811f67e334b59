# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import json
import logging
import sys
import time
from collections import Counter
from datetime import timedelta
from typing import List, Optional

import aiohttp

# --- Configuration ---
from gamedeals.config import (
    LOG_LEVEL, DATABASE_PATH, DRY_RUN, DRY_RUN_PREVIEW_LIMIT,
    TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID, validate_settings
)

# --- Core Components ---
from gamedeals.core.database import Database
from gamedeals.core.errors import Fatal, HistoryStoreError
from gamedeals.core.selection import EligibilityFilter, merge_best_deals, repost_window_hours
from gamedeals.core.selector import DealSelector, Publisher, RunResult, RunStatus
from gamedeals.core.telegram_publisher import TelegramPublisher

# --- Data Models ---
from gamedeals.models.deal import Deal

# --- Data Sources ---
from gamedeals.sources.base import DealSource
from gamedeals.sources.steam import SteamSource
from gamedeals.sources.steam_search import SteamSearchSource
from gamedeals.sources.epic_games import EpicFreeSource, EpicSalesSource
from gamedeals.sources.gog import GogSource

# --- Enrichment Services ---
from gamedeals.enrichment.steam_reviews import SteamReviewEnricher
from gamedeals.enrichment.currency import CurrencyConverter
from gamedeals.enrichment.image_fetcher import ImageFetcher

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

EXIT_CODES = {
    RunStatus.PUBLISHED: 0,
    RunStatus.NONE_ELIGIBLE: 0,
    RunStatus.DRY_RUN: 0,
    RunStatus.RATE_LIMITED: 75,
    RunStatus.EXHAUSTED_ATTEMPTS: 1,
    RunStatus.FATAL: 2,
}

# ===== CORE BUSINESS LOGIC / PIPELINE =====
class DealPipeline:
    """Orchestrates one run: fetch from every storefront, merge, rank, filter and publish the best deal."""

    def __init__(
        self,
        db: Database,
        publisher: Optional[Publisher],
        session: aiohttp.ClientSession,
        sources: Optional[List[DealSource]] = None,
        dry_run: bool = DRY_RUN
    ):
        self.db = db
        self.publisher = publisher
        self.session = session
        self.dry_run = dry_run

        # Concatenation order is fixed: it decides which duplicate survives a tie
        self.sources = sources if sources is not None else self._default_sources(session)
        self.converter = CurrencyConverter(session)
        self.images = ImageFetcher(session)

    @staticmethod
    def _default_sources(session: aiohttp.ClientSession) -> List[DealSource]:
        review_enricher = SteamReviewEnricher(session)
        return [
            SteamSource(session, review_enricher, fallback=SteamSearchSource(session)),
            EpicFreeSource(session),
            EpicSalesSource(session, review_enricher),
            GogSource(session),
        ]

    async def _fetch_all_deals(self) -> List[Deal]:
        """Fetches deals from all sources in parallel and concatenates them in source order."""
        logger.info("--- Step 1: Fetching deals from all sources ---")
        results = await asyncio.gather(*(source.fetch() for source in self.sources), return_exceptions=True)

        all_deals: List[Deal] = []
        counts = []
        for source, result in zip(self.sources, results):
            source_name = source.__class__.__name__
            if isinstance(result, BaseException):
                logger.error(f"❌ Failed to fetch from {source_name}: {result}", exc_info=result)
                result = []
            all_deals.extend(result)
            counts.append(f"{source_name}: {len(result)}")

        logger.info(f"📦 {' | '.join(counts)}")
        return all_deals

    def _log_preview(self, ranked: List[Deal]) -> None:
        """Logs the ranked candidates the way they would be considered for posting."""
        logger.info("--- Dry run: ranked candidates ---")
        for i, deal in enumerate(ranked[:DRY_RUN_PREVIEW_LIMIT], start=1):
            price = "FREE" if deal.is_giveaway else f"{deal.final_price:.2f} {deal.currency}"
            reviews = f" ({deal.review_score}% of {deal.review_count})" if deal.review_score is not None else ""
            logger.info(f"{i}. [{deal.platform.value}] {deal.title}{reviews} - {deal.discount_percent}% -> {price}")
        distribution = Counter(deal.platform.value for deal in ranked)
        logger.info("📊 Platform distribution: " + ", ".join(f"{p}: {c}" for p, c in distribution.items()))

    async def run(self) -> RunResult:
        """Executes the complete pipeline and returns its terminal outcome."""
        logger.info("🚀🚀🚀 Starting Game Deals Pipeline 🚀🚀🚀")
        start = time.monotonic()

        all_deals = await self._fetch_all_deals()

        logger.info("--- Step 2: Deduplicating and ranking ---")
        ranked = merge_best_deals(all_deals)
        logger.info(f"🎯 Total unique: {len(ranked)}")

        if self.dry_run:
            self._log_preview(ranked)
            return RunResult(RunStatus.DRY_RUN, candidates=ranked, elapsed_seconds=time.monotonic() - start)

        window_hours = repost_window_hours(len(ranked))
        logger.info(f"--- Step 3: Selecting and publishing (repost window {window_hours}h) ---")
        eligibility = EligibilityFilter(self.db, timedelta(hours=window_hours))
        selector = DealSelector(self.publisher, self.images, self.db, eligibility, converter=self.converter)
        result = await selector.run(ranked)
        result.elapsed_seconds = time.monotonic() - start

        logger.info(f"🏁🏁🏁 Pipeline finished: {result.status.value} in {result.elapsed_seconds:.2f}s 🏁🏁🏁")
        return result


# ===== INITIALIZATION & STARTUP =====
def _fatal(message: str) -> RunResult:
    logger.critical(f"🔥🔥🔥 {message}")
    return RunResult(RunStatus.FATAL, message=message)


async def _run_once() -> RunResult:
    """Validates configuration, wires the collaborators and runs the pipeline once. Raises Fatal."""
    missing = validate_settings()
    if missing:
        raise Fatal(f"Missing required settings: {', '.join(missing)}")

    try:
        db = Database(DATABASE_PATH)
    except HistoryStoreError as e:
        raise Fatal(str(e)) from e

    async with aiohttp.ClientSession() as session:
        if DRY_RUN:
            return await DealPipeline(db, None, session, dry_run=True).run()

        async with TelegramPublisher(token=TELEGRAM_BOT_TOKEN, chat_id=TELEGRAM_CHAT_ID) as publisher:
            return await DealPipeline(db, publisher, session).run()


async def main() -> RunResult:
    """Runs the pipeline once. Always returns a terminal outcome, never raises."""
    try:
        return await _run_once()
    except Fatal as e:
        return _fatal(str(e))
    except Exception as e:
        logger.critical(f"🔥🔥🔥 Unhandled error during run: {e}", exc_info=True)
        return RunResult(RunStatus.FATAL, message=f"Unhandled error: {e}")


def run() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    result = asyncio.run(main())
    print(json.dumps(result.to_dict(), ensure_ascii=False))
    sys.exit(EXIT_CODES[result.status])


if __name__ == "__main__":
    run()
