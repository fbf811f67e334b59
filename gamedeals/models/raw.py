# ===== TYPES & INTERFACES =====

from typing import TypedDict, Optional, Union, Literal


class SteamRaw(TypedDict):
    """
    One item from a Steam featured-categories bucket, after review lookup.

    Attributes:
        id (int): The Steam app id.
        name (str): Display name.
        discounted (bool): True while the item is on sale.
        discount_percent (int): Depth of the discount.
        final_price (int): Price after discount in minor units (cents / kuruş).
        currency (str): ISO code reported by the storefront.
        header_image (Optional[str]): Promotional header image.
        review_score (Optional[int]): Percent positive from the reviews endpoint.
        review_count (Optional[int]): Total reviews backing `review_score`.
    """
    source: Literal["steam"]
    id: int
    name: str
    discounted: bool
    discount_percent: int
    final_price: int
    currency: str
    header_image: Optional[str]
    review_score: Optional[int]
    review_count: Optional[int]


class SteamSearchRaw(TypedDict):
    """One row scraped from the Steam specials search page. Prices are already in major units."""
    source: Literal["steam_search"]
    app_id: str
    name: str
    discount_percent: int
    final_price: str
    currency: str
    image_url: Optional[str]


class EpicFreeRaw(TypedDict):
    """An Epic Games element whose active promotion makes it free to keep."""
    source: Literal["epic_free"]
    id: str
    title: str
    slug: str
    image_url: Optional[str]


class EpicSalesRaw(TypedDict):
    """
    A discounted Epic Games offer from a deals aggregator, enriched with review data.

    Attributes:
        id (str): The aggregator's deal or game id.
        title (str): Display name.
        discount_percent (int): Discount depth ("cut" / "savings").
        final_price (str): Price after discount, as reported.
        currency (str): ISO code of `final_price`.
        url (str): Epic storefront landing page.
        image_url (Optional[str]): Header image, usually Steam's.
        review_score (Optional[int]): Steam percent positive or Metacritic score.
        review_count (Optional[int]): Steam review count, None for critic scores.
    """
    source: Literal["epic_sales"]
    id: str
    title: str
    discount_percent: int
    final_price: str
    currency: str
    url: str
    image_url: Optional[str]
    review_score: Optional[int]
    review_count: Optional[int]


class GogRaw(TypedDict):
    """One product from the GOG catalog API."""
    source: Literal["gog"]
    id: str
    title: str
    discount: str
    final_amount: Optional[str]
    currency: Optional[str]
    reviews_rating: int
    reviews_count: int
    store_link: Optional[str]
    slug: Optional[str]
    cover_horizontal: Optional[str]


RawDeal = Union[SteamRaw, SteamSearchRaw, EpicFreeRaw, EpicSalesRaw, GogRaw]
