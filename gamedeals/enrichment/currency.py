# ===== IMPORTS & DEPENDENCIES =====
import logging
import aiohttp
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict

from gamedeals.core.base_client import BaseWebClient
from gamedeals.config import EXCHANGE_RATE_URL, USD_TRY_FALLBACK_RATE, SUPPORTED_CURRENCIES
from gamedeals.utils.game_utils import normalize_currency_code, to_decimal

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

# ===== CORE BUSINESS LOGIC =====
class CurrencyConverter(BaseWebClient):
    """
    Converts between USD and TRY using a live exchange rate.

    The USD->TRY rate is fetched at most once per converter instance (one per run).
    Any lookup failure falls back to the configured constant rate.
    """

    def __init__(self, session: aiohttp.ClientSession, fallback_rate: Decimal = USD_TRY_FALLBACK_RATE):
        super().__init__(session=session)
        self._fallback_rate = fallback_rate
        self._usd_try_rate: Optional[Decimal] = None

    async def _fetch_usd_try_rate(self) -> Decimal:
        response_data = await self._fetch(EXCHANGE_RATE_URL.format(base="USD"), is_json=True, max_retries=1)
        rates: Optional[Dict[str, float]] = response_data.get('rates') if isinstance(response_data, dict) else None
        rate = to_decimal(rates.get('TRY')) if isinstance(rates, dict) else Decimal("0")
        if rate <= 0:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Exchange rate unavailable. Using fallback rate {self._fallback_rate}.")
            return self._fallback_rate
        logger.info(f"[{self.__class__.__name__}] Live USD/TRY rate: {rate}")
        return rate

    async def usd_try_rate(self) -> Decimal:
        if self._usd_try_rate is None:
            self._usd_try_rate = await self._fetch_usd_try_rate()
        return self._usd_try_rate

    async def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        """
        Converts `amount` between USD and TRY, rounded to two decimals.
        Raises ValueError for currencies other than USD/TRY.
        """
        source = normalize_currency_code(from_currency)
        target = normalize_currency_code(to_currency)
        for code in (source, target):
            if code not in SUPPORTED_CURRENCIES:
                raise ValueError(f"Unsupported currency: {code}")

        if source == target or amount == 0:
            return Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

        rate = await self.usd_try_rate()
        converted = amount * rate if source == "USD" else amount / rate
        return converted.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
