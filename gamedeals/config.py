# ===== CONFIGURATION & CONSTANTS =====
import os
from decimal import Decimal
from typing import List

# --- General Settings ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CACHE_DIR = os.getenv("CACHE_DIR", "cache")
DEFAULT_CACHE_TTL = 3600  # 1 hour in seconds
DATABASE_PATH = os.getenv("DATABASE_PATH", "data/posted_games.db")
DRY_RUN = os.getenv("DRY_RUN", "").strip().lower() in {"1", "true", "yes", "on"}
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "25"))

# --- Web Scraping & API Headers ---
COMMON_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36',
    'Accept-Language': 'en-US,en;q=0.9',
    'Accept': 'application/json, text/plain, */*',
    'Accept-Encoding': 'gzip, deflate',
    'Connection': 'keep-alive'
}

# --- Telegram Publisher Settings ---
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID")

# --- Steam Source ---
STEAM_COUNTRY_CODE = os.getenv("STEAM_COUNTRY_CODE", "tr")
STEAM_FEATURED_URL = "https://store.steampowered.com/api/featuredcategories?cc={cc}"
STEAM_FEATURED_BUCKETS = ["specials", "top_sellers", "new_releases", "coming_soon"]
STEAM_SEARCH_URL = "https://store.steampowered.com/search/?specials=1&cc={cc}&l=english"
STEAM_REVIEWS_URL = "https://store.steampowered.com/appreviews/{app_id}?json=1&language=all&purchase_type=all&num_per_page=0"
STEAM_APP_URL = "https://store.steampowered.com/app/{app_id}"
STEAM_HEADER_IMAGE_URL = "https://cdn.akamai.steamstatic.com/steam/apps/{app_id}/header.jpg"

# --- Epic Games Sources ---
EPIC_FREE_GAMES_URL = "https://store-site-backend-static.ak.epicgames.com/freeGamesPromotions?locale={locale}&country={country}"
EPIC_LOCALE = os.getenv("EPIC_LOCALE", "tr")
EPIC_COUNTRY = os.getenv("EPIC_COUNTRY", "TR")
EPIC_PRODUCT_URL = "https://store.epicgames.com/{locale}/p/{slug}"
EPIC_BROWSE_URL = "https://store.epicgames.com/{locale}/browse?q={query}"
EPIC_FREE_DEFAULT_REVIEW_SCORE = 90
EPIC_FREE_DEFAULT_REVIEW_COUNT = 10000
EPIC_SLUG_PLACEHOLDERS = {"", "[]"}
EPIC_IMAGE_TYPES = ["OfferImageWide", "DieselStoreFrontWide", "VaultHandout", "OfferImageTall"]

# --- Deals Aggregator (IsThereAnyDeal) for Epic sales ---
ITAD_API_KEY = os.getenv("ITAD_API_KEY")
ITAD_DEALS_URL = "https://api.isthereanydeal.com/deals/v2?key={key}&country={country}&shops=16&limit=30&sort=-cut"
ITAD_GAME_INFO_URL = "https://api.isthereanydeal.com/games/info/v2?key={key}&id={game_id}"

# --- CheapShark (keyless fallback for Epic sales) ---
CHEAPSHARK_DEALS_URL = "https://www.cheapshark.com/api/1.0/deals?storeID=25&upperPrice=50&onSale=1&pageSize=20&metacritic={metacritic}"

# --- GOG Source ---
GOG_CATALOG_URL = "https://catalog.gog.com/v1/catalog?limit=30&order=desc:discount&productType=in:game"
GOG_GAME_URL = "https://www.gog.com/en/game/{slug}"
GOG_RATING_SCALE = 50

# --- Currency Conversion ---
EXCHANGE_RATE_URL = "https://api.exchangerate-api.com/v4/latest/{base}"
USD_TRY_FALLBACK_RATE = Decimal(os.getenv("USD_TRY_FALLBACK_RATE", "41.50"))
SUPPORTED_CURRENCIES = ("USD", "TRY")
# Storefronts sometimes report the Turkish lira with its local abbreviation
CURRENCY_ALIASES = {"TL": "TRY", "YTL": "TRY"}

# --- Source Eligibility Thresholds ---
MIN_STEAM_DISCOUNT = 25
MIN_GOG_DISCOUNT = 25
MIN_EPIC_SALE_DISCOUNT = 50
MIN_STEAM_REVIEWS = 1000
MIN_GOG_REVIEWS = 500
MIN_METACRITIC = 60

# Review acceptance policy per platform. A `min_count` / `min_score` of None
# disables that check. Deals without review data pass unless a minimum is set.
REVIEW_POLICY = {
    "Steam": {"min_count": None, "min_score": None},
    "Epic": {"min_count": None, "min_score": None},
    "GOG": {"min_count": MIN_GOG_REVIEWS, "min_score": None},
}
# Score used when Steam returns a summary label but no usable counts
STEAM_REVIEW_LABEL_FLOORS = {
    "overwhelmingly positive": 95,
    "very positive": 80,
    "positive": 80,
    "mostly positive": 70,
}
MIN_DISCOUNT_BY_PLATFORM = {
    "Steam": MIN_STEAM_DISCOUNT,
    "Epic": MIN_EPIC_SALE_DISCOUNT,
    "GOG": MIN_GOG_DISCOUNT,
}

# --- Repost Window ---
# (minimum pool size, window in hours), checked top-down
REPOST_WINDOW_TABLE = [
    (50, 120),
    (30, 72),
    (0, 48),
]

# --- Selection / Publishing ---
MAX_PUBLISH_ATTEMPTS = int(os.getenv("MAX_PUBLISH_ATTEMPTS", "3"))
PUBLISH_COOLDOWN_SECONDS = float(os.getenv("PUBLISH_COOLDOWN_SECONDS", "5"))
DRY_RUN_PREVIEW_LIMIT = 25

# Titles known to break the publisher or storefront links; case-insensitive substring match
EXCLUDED_TITLES: List[str] = [
    t.strip() for t in os.getenv("EXCLUDED_TITLES", "").split(",") if t.strip()
]

PLATFORM_EMOJIS = {
    "Steam": "♨️",
    "Epic": "🎮",
    "GOG": "🌌",
}
PLATFORM_DISPLAY_NAMES = {
    "Steam": "Steam",
    "Epic": "Epic Games",
    "GOG": "GOG",
}


def validate_settings() -> List[str]:
    """Returns the names of required settings that are missing."""
    missing = []
    if not DRY_RUN:
        if not TELEGRAM_BOT_TOKEN:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not TELEGRAM_CHAT_ID:
            missing.append("TELEGRAM_CHAT_ID")
    return missing
