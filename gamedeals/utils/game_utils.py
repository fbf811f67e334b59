# ===== IMPORTS & DEPENDENCIES =====
import re
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from gamedeals.config import CURRENCY_ALIASES

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

# ===== UTILITY FUNCTIONS =====

def make_match_key(title: str) -> str:
    """
    Canonicalizes a title so the same game matches across storefronts.
    "Game: Special Edition!" and "game special edition" give the same key.
    """
    if not title:
        return ""
    cleaned = title.lower()
    cleaned = re.sub(r'[^a-z0-9\s]', '', cleaned)
    return re.sub(r'\s+', ' ', cleaned).strip()


def parse_signed_percent(raw: Any) -> int:
    """
    Parses a string-encoded, possibly signed percentage ("-75%", "75", -75) into
    its absolute integer value. Unparseable input yields 0.
    """
    if raw is None:
        return 0
    digits = re.sub(r'[^0-9-]', '', str(raw))
    match = re.match(r'-?\d+', digits)
    if not match:
        return 0
    return abs(int(match.group(0)))


def to_decimal(raw: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Converts an API price value into a Decimal, falling back to `default`."""
    if raw is None or raw == "":
        return default
    try:
        value = Decimal(str(raw).replace(',', '.').strip())
    except InvalidOperation:
        logger.debug(f"[to_decimal] Could not parse price value: {raw!r}")
        return default
    if not value.is_finite():
        return default
    return value


def parse_price_text(text: Optional[str]) -> Optional[str]:
    """
    Extracts the numeric part of a displayed price such as "₺129,99" or "$9.99".
    Returns None when the text carries no number (e.g. "Free To Play").
    """
    if not text:
        return None
    match = re.search(r'\d[\d.,]*', text)
    if not match:
        return None
    number = match.group(0)
    # "1.299,99" -> "1299.99", "1,299.99" -> "1299.99"
    if ',' in number and '.' in number:
        if number.rfind(',') > number.rfind('.'):
            number = number.replace('.', '').replace(',', '.')
        else:
            number = number.replace(',', '')
    elif ',' in number:
        number = number.replace(',', '.')
    return number.rstrip('.')


def normalize_currency_code(code: Optional[str], default: str = "USD") -> str:
    """Upper-cases a currency code and maps local abbreviations (TL) to ISO codes."""
    if not code:
        return default
    code = code.strip().upper()
    return CURRENCY_ALIASES.get(code, code)


def percent_of(part: int, total: int) -> Optional[int]:
    """Rounded percentage of `part` in `total`, or None for an empty sample."""
    if not total or total <= 0:
        return None
    return round((part / total) * 100)
