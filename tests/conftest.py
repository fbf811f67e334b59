"""Pytest configuration and shared fixtures."""

import zlib
from decimal import Decimal
from typing import List, Optional

import pytest

from gamedeals.core.database import Database
from gamedeals.core.errors import ImageUnavailable
from gamedeals.models.deal import Deal, Platform


def make_deal(
    title: str = "Test Game",
    discount: int = 50,
    price: str = "10.00",
    platform: Platform = Platform.STEAM,
    source_id: Optional[str] = None,
    currency: str = "USD",
    review_score: Optional[int] = 90,
    review_count: Optional[int] = 1500,
    image_url: Optional[str] = "https://cdn.example.com/header.jpg",
    url: str = "https://store.example.com/app/1",
) -> Deal:
    """Builds a Deal with sensible defaults for tests."""
    if source_id is None:
        prefix = {Platform.STEAM: "", Platform.EPIC: "epic_", Platform.GOG: "gog_"}[platform]
        source_id = f"{prefix}{zlib.crc32(title.encode())}"
    return Deal(
        source_id=source_id,
        title=title,
        discount_percent=discount,
        final_price=Decimal(price),
        currency=currency,
        platform=platform,
        url=url,
        review_score=review_score,
        review_count=review_count,
        image_url=image_url,
    )


class FakeImages:
    """Image source that serves fixed bytes, failing for URLs listed in `broken`."""

    def __init__(self, broken: Optional[List[str]] = None):
        self.broken = set(broken or [])
        self.requested: List[str] = []

    async def fetch_image(self, url: Optional[str]) -> bytes:
        self.requested.append(url)
        if url in self.broken:
            raise ImageUnavailable(f"broken: {url}")
        return b"\x89PNG" + b"0" * 2048


class FakePublisher:
    """Publisher that replays a scripted sequence of results (post ids or exceptions)."""

    def __init__(self, outcomes: Optional[list] = None):
        self.outcomes = list(outcomes or [])
        self.calls: List[str] = []

    async def publish(self, image: bytes, text: str) -> str:
        self.calls.append(text)
        outcome = self.outcomes.pop(0) if self.outcomes else f"post-{len(self.calls)}"
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def history(tmp_path) -> Database:
    """A fresh sqlite posting history in a temporary directory."""
    return Database(str(tmp_path / "history" / "posted_games.db"))


@pytest.fixture
def fake_images() -> FakeImages:
    return FakeImages()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
