# ===== TYPES & INTERFACES =====
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from gamedeals.utils.game_utils import make_match_key


class Platform(str, Enum):
    """Storefront a deal is offered on."""
    STEAM = "Steam"
    EPIC = "Epic"
    GOG = "GOG"


@dataclass(frozen=True)
class Deal:
    """
    A normalized discounted or free game offer from one storefront.

    Deals are rebuilt from live API responses on every run and never mutated.
    `match_key` is derived from `title` and identifies "the same game" across
    storefronts. A `final_price` of zero marks a giveaway.
    """
    source_id: str
    title: str
    discount_percent: int
    final_price: Decimal
    currency: str
    platform: Platform
    url: str
    review_score: Optional[int] = None
    review_count: Optional[int] = None
    image_url: Optional[str] = None
    match_key: str = field(init=False)

    def __post_init__(self):
        if not 0 <= self.discount_percent <= 100:
            raise ValueError(f"discount_percent must be within 0-100, got {self.discount_percent}")
        if self.final_price < 0:
            raise ValueError(f"final_price must not be negative, got {self.final_price}")
        if self.review_score is not None and not 0 <= self.review_score <= 100:
            raise ValueError(f"review_score must be within 0-100, got {self.review_score}")
        if self.review_count is not None and self.review_count < 0:
            raise ValueError(f"review_count must not be negative, got {self.review_count}")
        object.__setattr__(self, 'match_key', make_match_key(self.title))

    @property
    def is_giveaway(self) -> bool:
        return self.final_price == 0

    @property
    def legacy_id(self) -> str:
        """The storefront id without the source prefix, as older history rows stored it."""
        for prefix in ("epic_", "gog_"):
            if self.source_id.startswith(prefix):
                return self.source_id[len(prefix):] or "0"
        return self.source_id or "0"


@dataclass(frozen=True)
class PostRecord:
    """One successful publish, as stored in the posting history."""
    external_id: str
    normalized_title: str
    price_reference: Decimal
    created_at: datetime
    post_id: Optional[str] = None
