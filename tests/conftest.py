"""
Shared pytest fixtures: sample reports, in-memory stores, a fake extractor
and a controllable clock.
"""

import asyncio
import datetime as dt

import pytest

from itemradar_match.common.errors import ExtractionError
from itemradar_match.common.schemas import ExtractedAttributes, ItemRecord, ItemType, RateLimitPolicy
from itemradar_match.quota.guard import QuotaGuard
from itemradar_match.store.memory import InMemoryItemStore, InMemoryUsageStore, StaticPolicySource


class FakeClock:
    def __init__(self, start: dt.datetime):
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += dt.timedelta(**kwargs)


class FakeExtractor:
    """Returns a canned result, or raises when ``error`` is set."""

    def __init__(self, result=None, error=None, delay=0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = []

    async def extract(self, text, item_type):
        self.calls.append((text, item_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result or ExtractedAttributes(target=item_type)


@pytest.fixture
def lost_wallet():
    return ItemRecord(
        id="lost_001",
        item_type=ItemType.LOST,
        description="black wallet",
        category="wallet",
        location="library",
        event_date=dt.date(2024, 1, 10),
        reporter_id="uid_owner",
    )


@pytest.fixture
def found_wallet():
    return ItemRecord(
        id="found_001",
        item_type=ItemType.FOUND,
        description="black wallet",
        category="wallet",
        location="library",
        event_date=dt.date(2024, 1, 11),
        reporter_id="uid_finder",
    )


@pytest.fixture
def found_backpack():
    return ItemRecord(
        id="found_002",
        item_type=ItemType.FOUND,
        description="blue backpack",
        category="bag",
        location="gym",
        event_date=dt.date(2024, 3, 1),
        reporter_id="uid_finder",
    )


@pytest.fixture
def item_store(lost_wallet, found_wallet, found_backpack):
    return InMemoryItemStore([lost_wallet, found_wallet, found_backpack])


@pytest.fixture
def clock():
    return FakeClock(dt.datetime(2024, 1, 10, 12, 0, tzinfo=dt.timezone.utc))


@pytest.fixture
def usage_store():
    return InMemoryUsageStore()


@pytest.fixture
def guard(usage_store, clock):
    return QuotaGuard(usage_store, clock=clock)


@pytest.fixture
def policy():
    return RateLimitPolicy()


@pytest.fixture
def policy_source(policy):
    return StaticPolicySource(policy)


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def failing_extractor():
    return FakeExtractor(error=ExtractionError("model unavailable"))
