# ===== IMPORTS & DEPENDENCIES =====
import logging
from decimal import Decimal
from typing import Optional

from telegram import Bot
from telegram.error import BadRequest, RetryAfter, TimedOut, NetworkError, TelegramError

from gamedeals.config import PLATFORM_EMOJIS, PLATFORM_DISPLAY_NAMES
from gamedeals.core.errors import PublishRateLimited, PublishTransient, PublishFatal
from gamedeals.models.deal import Deal

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

CAPTION_LIMIT = 1024


def _retry_after_seconds(error: RetryAfter) -> Optional[float]:
    value = getattr(error, 'retry_after', None)
    if value is None:
        return None
    # Newer library versions report a timedelta
    return value.total_seconds() if hasattr(value, 'total_seconds') else float(value)


def format_post_text(deal: Deal, price_try: Optional[Decimal] = None) -> str:
    """
    Formats the caption for a deal post.

    `price_try` is the final price converted to Turkish lira; when given it is shown
    instead of (or next to) the storefront currency.
    """
    if deal.is_giveaway:
        price_str = "🆓 ÜCRETSİZ"
    elif deal.currency == "TRY":
        price_str = f"{deal.final_price:.2f} ₺"
    elif price_try is not None:
        price_str = f"{deal.final_price:.2f} {deal.currency} (~{price_try:.2f} ₺)"
    else:
        price_str = f"{deal.final_price:.2f} {deal.currency}"

    platform = deal.platform.value
    lines = [
        f"🔥 {deal.title}",
        "",
        f"📉 %{deal.discount_percent} İndirim",
        f"🏷️ {price_str}",
        f"{PLATFORM_EMOJIS.get(platform, '🎮')} {PLATFORM_DISPLAY_NAMES.get(platform, platform)}",
    ]
    if deal.review_score:
        lines.append(f"⭐ %{deal.review_score} Olumlu")
    lines.extend(["", f"🔗 {deal.url}"])

    text = "\n".join(lines).strip()
    return text if len(text) <= CAPTION_LIMIT else text[:CAPTION_LIMIT - 3] + "..."


# ===== CORE BUSINESS LOGIC =====
class TelegramPublisher:
    """Publishes a deal image with its caption to a Telegram channel."""

    def __init__(self, token: str, chat_id: str, bot: Optional[Bot] = None):
        self.bot = bot or Bot(token=token)
        self.chat_id = chat_id
        logger.info(f"[{self.__class__.__name__}] Telegram publisher initialized for chat={chat_id}.")

    async def publish(self, image: bytes, text: str) -> str:
        """
        Posts `image` with `text` as caption and returns the message id.

        Raises PublishRateLimited when Telegram asks to slow down and PublishTransient
        for network problems. Any other API error raises PublishFatal.
        """
        try:
            message = await self.bot.send_photo(chat_id=self.chat_id, photo=image, caption=text)
        except RetryAfter as e:
            logger.error(f"[{self.__class__.__name__}] Rate limited by Telegram for chat={self.chat_id}: {e.message}")
            raise PublishRateLimited(e.message, retry_after=_retry_after_seconds(e)) from e
        except BadRequest as e:
            # BadRequest subclasses NetworkError but never succeeds on retry
            logger.error(f"[{self.__class__.__name__}] Telegram rejected the post for chat={self.chat_id}: {e.message}")
            raise PublishFatal(e.message) from e
        except (TimedOut, NetworkError) as e:
            logger.warning(f"[{self.__class__.__name__}] Network error publishing to chat={self.chat_id}: {e.message}")
            raise PublishTransient(e.message) from e
        except TelegramError as e:
            logger.error(f"[{self.__class__.__name__}] Telegram API error for chat={self.chat_id}: {e.message}")
            raise PublishFatal(e.message) from e

        logger.info(f"[{self.__class__.__name__}] Post published to chat={self.chat_id} as message {message.message_id}.")
        return str(message.message_id)

    async def __aenter__(self) -> "TelegramPublisher":
        """Initializes the bot, which also verifies the token. Raises PublishFatal when it is rejected."""
        try:
            await self.bot.initialize()
        except TelegramError as e:
            raise PublishFatal(f"Telegram bot initialization failed: {e.message}") from e
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.bot.shutdown()
