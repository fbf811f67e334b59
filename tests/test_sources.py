"""Tests for the storefront adapters. Network access is replaced by patching `_fetch`."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from gamedeals.core.errors import EnrichmentUnresolved
from gamedeals.core.selection import merge_best_deals
from gamedeals.enrichment.steam_reviews import ReviewStats, SteamReviewEnricher
from gamedeals.models.deal import Platform
from gamedeals.sources.epic_games import EpicFreeSource, EpicSalesSource
from gamedeals.sources.gog import GogSource
from gamedeals.sources.steam import SteamSource
from gamedeals.sources.steam_search import SteamSearchSource


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def review_enricher():
    enricher = MagicMock(spec=SteamReviewEnricher)
    enricher.get_reviews = AsyncMock(return_value=ReviewStats(count=2500, percent=91, label="Very Positive"))
    enricher.require_reviews = AsyncMock(return_value=("570", ReviewStats(count=5000, percent=88)))
    return enricher


def _steam_item(app_id, name, discount, final_price=999, discounted=True):
    return {
        "id": app_id, "name": name, "discounted": discounted, "discount_percent": discount,
        "final_price": final_price, "currency": "USD",
        "header_image": f"https://cdn.akamai.steamstatic.com/steam/apps/{app_id}/header.jpg",
    }


# ============================================================================
# TESTS: STEAM
# ============================================================================

class TestSteamSource:
    """Tests for the featured-categories adapter."""

    async def test_threshold_and_dedup_across_buckets(self, session, review_enricher):
        source = SteamSource(session, review_enricher)
        source._fetch = AsyncMock(return_value={
            "specials": {"items": [_steam_item(1, "Quarter Off", 25), _steam_item(2, "Almost", 24)]},
            "top_sellers": {"items": [_steam_item(1, "Quarter Off", 25), _steam_item(3, "Not On Sale", 0, discounted=False)]},
            "new_releases": {"items": [_steam_item(4, "Deep Cut", 80, final_price=199)]},
        })

        deals = await source.fetch()

        assert [d.title for d in deals] == ["Quarter Off", "Deep Cut"]
        assert deals[1].final_price == Decimal("1.99")
        assert deals[0].review_count == 2500
        assert deals[0].review_score == 91
        assert all(d.platform is Platform.STEAM for d in deals)
        assert review_enricher.get_reviews.await_count == 2

    async def test_missing_reviews_leave_fields_empty(self, session, review_enricher):
        review_enricher.get_reviews.return_value = None
        source = SteamSource(session, review_enricher)
        source._fetch = AsyncMock(return_value={"specials": {"items": [_steam_item(7, "Quiet Game", 50)]}})

        deals = await source.fetch()

        assert deals[0].review_count is None and deals[0].review_score is None

    async def test_empty_listing_uses_search_fallback(self, session, review_enricher):
        fallback = MagicMock(spec=SteamSearchSource)
        fallback.fetch = AsyncMock(return_value=["fallback-deal"])
        source = SteamSource(session, review_enricher, fallback=fallback)
        source._fetch = AsyncMock(return_value={"specials": {"items": []}})

        assert await source.fetch() == ["fallback-deal"]
        fallback.fetch.assert_awaited_once()

    async def test_unexpected_payload_returns_empty(self, session, review_enricher):
        source = SteamSource(session, review_enricher)
        source._fetch = AsyncMock(return_value=["not", "a", "dict"])
        assert await source.fetch() == []

    async def test_failed_review_lookup_drops_only_that_game(self, session, review_enricher):
        async def get_reviews(app_id):
            if app_id == "2":
                raise RuntimeError("boom")
            return ReviewStats(count=2500, percent=91)

        review_enricher.get_reviews.side_effect = get_reviews
        source = SteamSource(session, review_enricher)
        source._fetch = AsyncMock(return_value={"specials": {"items": [
            _steam_item(1, "Good", 50), _steam_item(2, "Broken", 60), _steam_item(3, "Also Good", 70),
        ]}})

        deals = await source.fetch()

        assert [d.title for d in deals] == ["Good", "Also Good"]

    async def test_malformed_review_payload_drops_only_that_game(self, session, tmp_path):
        enricher = SteamReviewEnricher(session, api_key=None, cache_dir=str(tmp_path))

        async def fetch_reviews(url, **kwargs):
            if "/appreviews/2" in url:
                return ["unexpected"]
            return {"query_summary": {"total_reviews": 800, "total_positive": 720}}

        enricher._fetch = AsyncMock(side_effect=fetch_reviews)
        source = SteamSource(session, enricher)
        source._fetch = AsyncMock(return_value={"specials": {"items": [
            _steam_item(1, "Good", 50), _steam_item(2, "Broken", 60),
        ]}})

        deals = await source.fetch()

        assert [d.title for d in deals] == ["Good"]
        assert deals[0].review_score == 90


SEARCH_HTML = """
<div id="search_resultsRows">
  <a class="search_result_row" data-ds-appid="1091500" href="https://store.steampowered.com/app/1091500">
    <img src="https://cdn.akamai.steamstatic.com/steam/apps/1091500/capsule_sm_120.jpg">
    <span class="title">Cyberpunk 2077</span>
    <div class="search_discount_block" data-price-final="2999" data-discount="50">
      <div class="discount_pct">-50%</div>
    </div>
  </a>
  <a class="search_result_row" data-ds-appid="292030">
    <span class="title">The Witcher 3: Wild Hunt</span>
    <div class="search_discount"><span>-80%</span></div>
    <div class="search_price"><strike>$39.99</strike> $7.99</div>
  </a>
  <a class="search_result_row" data-ds-appid="1091500">
    <span class="title">Cyberpunk 2077</span>
    <div class="search_discount_block" data-price-final="2999" data-discount="50"></div>
  </a>
  <a class="search_result_row" data-ds-appid="10,20">
    <span class="title">Some Bundle</span>
    <div class="search_discount_block" data-price-final="999" data-discount="60"></div>
  </a>
  <a class="search_result_row" data-ds-appid="400">
    <span class="title">Small Sale</span>
    <div class="search_discount_block" data-price-final="899" data-discount="10"></div>
  </a>
  <a class="search_result_row" data-ds-appid="500">
    <span class="title"></span>
    <div class="search_discount_block" data-price-final="899" data-discount="70"></div>
  </a>
</div>
"""


class TestSteamSearchSource:
    """Tests for the search page scraper."""

    def test_parse_page(self, session):
        raws = SteamSearchSource(session).parse_page(SEARCH_HTML)

        assert [r["app_id"] for r in raws] == ["1091500", "292030"]
        assert raws[0]["discount_percent"] == 50
        assert raws[0]["final_price"] == "29.99"
        assert raws[1]["discount_percent"] == 80
        assert raws[1]["final_price"] == "7.99"
        assert raws[1]["image_url"] is None

    async def test_fetch_builds_steam_deals(self, session):
        source = SteamSearchSource(session)
        source._fetch = AsyncMock(return_value=SEARCH_HTML)

        deals = await source.fetch()

        assert [d.title for d in deals] == ["Cyberpunk 2077", "The Witcher 3: Wild Hunt"]
        assert deals[1].image_url == "https://cdn.akamai.steamstatic.com/steam/apps/292030/header.jpg"
        assert deals[0].url == "https://store.steampowered.com/app/1091500"

    async def test_unreachable_page_returns_empty(self, session):
        source = SteamSearchSource(session)
        source._fetch = AsyncMock(return_value=None)
        assert await source.fetch() == []


# ============================================================================
# TESTS: EPIC GAMES
# ============================================================================

def _epic_element(title, discount_percentage=0, product_slug="free-game", url_slug=None, mappings=None, active=True):
    now = datetime.now(timezone.utc)
    start = now - timedelta(days=1) if active else now + timedelta(days=3)
    end = now + timedelta(days=6) if active else now + timedelta(days=10)
    return {
        "id": f"id-{title}",
        "title": title,
        "productSlug": product_slug,
        "urlSlug": url_slug,
        "catalogNs": {"mappings": mappings or []},
        "keyImages": [
            {"type": "Thumbnail", "url": "https://cdn.epic.example/thumb.jpg"},
            {"type": "OfferImageWide", "url": "https://cdn.epic.example/wide.jpg"},
        ],
        "promotions": {"promotionalOffers": [{"promotionalOffers": [{
            "startDate": start.isoformat().replace("+00:00", "Z"),
            "endDate": end.isoformat().replace("+00:00", "Z"),
            "discountSetting": {"discountType": "PERCENTAGE", "discountPercentage": discount_percentage},
        }]}]},
    }


class TestEpicFreeSource:
    """Tests for the giveaway adapter."""

    async def test_active_giveaways_only(self, session):
        source = EpicFreeSource(session)
        source._fetch = AsyncMock(return_value={"data": {"Catalog": {"searchStore": {"elements": [
            _epic_element("Free Game"),
            _epic_element("Just Discounted", discount_percentage=50),
            _epic_element("Upcoming", active=False),
            {"id": "x", "title": "No Promotions", "promotions": None},
        ]}}}})

        deals = await source.fetch()

        assert len(deals) == 1
        deal = deals[0]
        assert deal.title == "Free Game"
        assert deal.is_giveaway and deal.discount_percent == 100
        assert deal.platform is Platform.EPIC
        assert deal.image_url == "https://cdn.epic.example/wide.jpg"
        assert deal.url.endswith("/p/free-game")

    def test_slug_placeholder_falls_through_to_mapping(self):
        element = _epic_element("Game", product_slug="[]", url_slug="", mappings=[{"pageSlug": "real-slug"}])
        assert EpicFreeSource._resolve_slug(element) == "real-slug"

    def test_slug_home_suffix_is_removed(self):
        assert EpicFreeSource._resolve_slug(_epic_element("Game", product_slug="my-game/home")) == "my-game"

    def test_no_usable_slug(self):
        assert EpicFreeSource._resolve_slug(_epic_element("Game", product_slug=None, url_slug="[]")) is None

    async def test_missing_data_returns_empty(self, session):
        source = EpicFreeSource(session)
        source._fetch = AsyncMock(return_value={"errors": ["bad request"]})
        assert await source.fetch() == []


class TestEpicSalesSource:
    """Tests for the Epic sale adapter."""

    async def test_itad_offers_require_steam_reviews(self, session, review_enricher):
        async def require_reviews(game_id, min_count):
            if game_id == "few-reviews":
                raise EnrichmentUnresolved("too few reviews")
            return "570", ReviewStats(count=min_count + 1, percent=88)

        review_enricher.require_reviews = AsyncMock(side_effect=require_reviews)
        source = EpicSalesSource(session, review_enricher, api_key="key")
        source._fetch = AsyncMock(return_value={"list": [
            {"id": "good", "type": "game", "title": "Good Sale", "slug": "good-sale",
             "deal": {"cut": 60, "price": {"amount": 149.5, "currency": "TRY"}}},
            {"id": "shallow", "type": "game", "title": "Shallow Sale", "deal": {"cut": 49}},
            {"id": "dlc", "type": "dlc", "title": "Some DLC", "deal": {"cut": 90}},
            {"id": "few-reviews", "type": "game", "title": "Obscure", "deal": {"cut": 70}},
            {"id": "good-2", "type": "game", "title": "good sale!",
             "deal": {"cut": 75, "price": {"amount": 99.9, "currency": "TRY"}}},
        ]})

        deals = await source.fetch()

        # Both spellings are emitted; the lookup for the shared match key runs once
        assert [d.title for d in deals] == ["Good Sale", "good sale!"]
        assert merge_best_deals(deals)[0].source_id == "epic_good-2"
        deal = deals[0]
        assert deal.discount_percent == 60
        assert deal.final_price == Decimal("149.5")
        assert deal.currency == "TRY"
        assert deal.review_count == 1001
        assert deal.image_url == "https://cdn.akamai.steamstatic.com/steam/apps/570/header.jpg"
        assert deal.url.endswith("/p/good-sale")
        assert review_enricher.require_reviews.await_count == 2

    async def test_cheapshark_without_api_key(self, session, review_enricher):
        source = EpicSalesSource(session, review_enricher, api_key=None)
        source._fetch = AsyncMock(return_value=[
            {"title": "Great Game", "dealID": "abc", "savings": "75.01", "metacriticScore": "85",
             "salePrice": "4.99", "steamAppID": "1234"},
            {"title": "Bad Game", "dealID": "def", "savings": "80", "metacriticScore": "40", "salePrice": "1.99"},
            {"title": "Small Cut", "dealID": "ghi", "savings": "30", "metacriticScore": "90", "salePrice": "9.99"},
        ])

        deals = await source.fetch()

        assert [d.title for d in deals] == ["Great Game"]
        assert deals[0].discount_percent == 75
        assert deals[0].currency == "USD"
        assert deals[0].source_id == "epic_cs_abc"
        assert deals[0].review_score == 85
        review_enricher.require_reviews.assert_not_awaited()

    async def test_cheapshark_duplicates_are_left_to_the_merge(self, session, review_enricher):
        source = EpicSalesSource(session, review_enricher, api_key=None)
        source._fetch = AsyncMock(return_value=[
            {"title": "Great Game", "dealID": "shallow", "savings": "55", "metacriticScore": "85", "salePrice": "9.99"},
            {"title": "GREAT GAME", "dealID": "deep", "savings": "80", "metacriticScore": "85", "salePrice": "3.99"},
        ])

        deals = await source.fetch()

        assert [d.source_id for d in deals] == ["epic_cs_shallow", "epic_cs_deep"]
        merged = merge_best_deals(deals)
        assert len(merged) == 1
        assert merged[0].source_id == "epic_cs_deep"
        assert merged[0].discount_percent == 80

    async def test_itad_lookup_crash_rejects_only_that_game(self, session, review_enricher):
        async def require_reviews(game_id, min_count):
            if game_id == "broken":
                raise RuntimeError("boom")
            return "570", ReviewStats(count=5000, percent=88)

        review_enricher.require_reviews = AsyncMock(side_effect=require_reviews)
        source = EpicSalesSource(session, review_enricher, api_key="key")
        source._fetch = AsyncMock(return_value={"list": [
            {"id": "broken", "type": "game", "title": "Broken", "deal": {"cut": 70}},
            {"id": "fine", "type": "game", "title": "Fine", "deal": {"cut": 70}},
        ]})

        assert [d.title for d in await source.fetch()] == ["Fine"]

    async def test_aggregator_failure_returns_empty(self, session, review_enricher):
        source = EpicSalesSource(session, review_enricher, api_key="key")
        source._fetch = AsyncMock(return_value=None)
        assert await source.fetch() == []


# ============================================================================
# TESTS: GOG
# ============================================================================

def _gog_product(product_id, title, discount, reviews_count, rating=45):
    return {
        "id": product_id, "title": title, "slug": title.lower().replace(" ", "_"),
        "price": {"discount": f"-{discount}%", "finalMoney": {"amount": "4.99", "currency": "USD"}},
        "reviewsRating": rating, "reviewsCount": reviews_count,
        "storeLink": f"https://www.gog.com/en/game/{product_id}",
        "coverHorizontal": "https://images.gog-statics.com/cover.jpg",
    }


class TestGogSource:
    """Tests for the GOG catalog adapter."""

    async def test_thresholds(self, session):
        source = GogSource(session)
        source._fetch = AsyncMock(return_value={"products": [
            _gog_product("1", "Kept Game", 25, 500),
            _gog_product("2", "Small Discount", 24, 5000),
            _gog_product("3", "Few Reviews", 90, 499),
        ]})

        deals = await source.fetch()

        assert [d.title for d in deals] == ["Kept Game"]
        assert deals[0].discount_percent == 25
        assert deals[0].review_score == 90
        assert deals[0].source_id == "gog_1"

    async def test_failure_returns_empty(self, session):
        source = GogSource(session)
        source._fetch = AsyncMock(return_value=None)
        assert await source.fetch() == []


# ============================================================================
# TESTS: STEAM REVIEW ENRICHER
# ============================================================================

class TestSteamReviewEnricher:
    """Tests for review lookups."""

    @pytest.fixture
    def enricher(self, session, tmp_path):
        return SteamReviewEnricher(session, api_key="key", cache_dir=str(tmp_path))

    async def test_percentage_from_summary(self, enricher):
        enricher._fetch = AsyncMock(return_value={"query_summary": {
            "total_reviews": 2000, "total_positive": 1800, "review_score_desc": "Very Positive",
        }})
        stats = await enricher.get_reviews("10")
        assert stats == ReviewStats(count=2000, percent=90, label="Very Positive")

    async def test_require_reviews_rejects_small_sample(self, enricher):
        enricher.resolve_app_id = AsyncMock(return_value="10")
        enricher.get_reviews = AsyncMock(return_value=ReviewStats(count=999, percent=95))
        with pytest.raises(EnrichmentUnresolved):
            await enricher.require_reviews("game-id", 1000)

    async def test_require_reviews_without_app_id(self, enricher):
        enricher.resolve_app_id = AsyncMock(return_value=None)
        with pytest.raises(EnrichmentUnresolved):
            await enricher.require_reviews("game-id", 1000)

    async def test_resolve_app_id_without_key(self, session, tmp_path):
        enricher = SteamReviewEnricher(session, api_key=None, cache_dir=str(tmp_path))
        enricher._fetch = AsyncMock()
        assert await enricher.resolve_app_id("game-id") is None
        enricher._fetch.assert_not_awaited()

    @pytest.mark.parametrize("payload", [["malformed"], {"query_summary": "malformed"}])
    async def test_malformed_payload_is_unresolved(self, enricher, payload):
        enricher._fetch = AsyncMock(return_value=payload)
        with pytest.raises(EnrichmentUnresolved):
            await enricher.get_reviews("10")
