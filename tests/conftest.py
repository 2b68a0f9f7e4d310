"""
Pytest configuration and fixtures for the catalog engine test suite.
"""
import asyncio
from typing import AsyncGenerator, Generator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from aiohttp import ClientSession
from aioresponses import aioresponses

from noovy.internal.metadata.cooldown import CooldownGuard
from noovy.internal.metadata.enricher import MetadataEnricher
from noovy.internal.metadata.resolver import ProviderChainResolver
from noovy.internal.models import Item, MetadataRecord
from noovy.util.cache import TTLCache

DAY = 24 * 60 * 60


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeProvider:
    """Metadata provider returning a canned record, or raising a canned error."""

    def __init__(
        self,
        provider_id: str,
        result: MetadataRecord | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.provider_id = provider_id
        self.name = provider_id
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def query(self, client_session, item: Item) -> MetadataRecord | None:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.active -= 1


class FakeLister:
    """Catalog source with a call counter and an optional failure."""

    source_id = "fake"

    def __init__(self, items: list[Item], error: Exception | None = None):
        self.items = items
        self.error = error
        self.calls = 0

    async def list_items(self) -> list[Item]:
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return list(self.items)


class FakeAccess:
    def __init__(self, url: str | None = "https://files.example/book.pdf"):
        self.url = url
        self.calls: list[str] = []

    async def resolve_access_url(self, item: Item) -> str | None:
        self.calls.append(item.id)
        return self.url


def make_item(
    title: str = "Les Misérables",
    author: str = "Victor Hugo",
    item_id: str | None = None,
    **extra,
) -> Item:
    return Item(
        id=item_id or f"{author}-{title}".replace(" ", "_"),
        title=title,
        author=author,
        raw_title=f"{author} - {title} --- (Ny Aiko Boky)",
        language="Français",
        **extra,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def item() -> Item:
    return make_item()


@pytest.fixture
def sample_items() -> list[Item]:
    return [
        make_item("Les Misérables", "Victor Hugo"),
        make_item("Le Horla", "Guy de Maupassant"),
        make_item("The Raven", "Edgar Allan Poe"),
    ]


@pytest.fixture
def make_enricher(clock):
    """Build an enricher over fake providers with a fake clock."""

    def build(
        *providers: FakeProvider,
        background: bool = False,
        fresh_ttl: float = DAY,
        stale_ttl: float = 7 * DAY,
    ) -> MetadataEnricher:
        guard = CooldownGuard(cooldown_seconds=900, clock=clock)
        resolver = ProviderChainResolver(list(providers), guard, MagicMock())
        cache = TTLCache[MetadataRecord](fresh_ttl=fresh_ttl, stale_ttl=stale_ttl, clock=clock)
        return MetadataEnricher(resolver, cache, refresh_stale_in_background=background)

    return build


# Async HTTP mocking fixtures
@pytest.fixture(scope="function")
def aioresponses_mocker() -> Generator[aioresponses, None, None]:
    """Provide aioresponses context manager for manual HTTP mocking."""
    with aioresponses() as mocked:
        yield mocked


@pytest_asyncio.fixture(scope="function")
async def client_session() -> AsyncGenerator[ClientSession, None]:
    async with ClientSession() as session:
        yield session
