import time

from noovy.internal.catalog.sources import SourceLister
from noovy.internal.models import Item
from noovy.util.cache import Clock, Freshness, TTLCache
from noovy.util.exceptions import CacheExhausted, handle_cache_error
from noovy.util.log import logger
from noovy.util.singleflight import Singleflight

CATALOG_KEY = "__catalog__"


class CatalogCache:
    """Caches the list of all books, the most expensive call in the system.

    One fetch at a time: concurrent callers on a cold or expired cache share
    the same listing. When a listing fails, the last list that was fetched is
    served whatever its age.
    """

    _cache: TTLCache[list[Item]]
    _flight: Singleflight[list[Item]]

    def __init__(self, lister: SourceLister, ttl: float = 300, clock: Clock = time.time):
        self.lister = lister
        self._cache = TTLCache(fresh_ttl=ttl, clock=clock)
        self._flight = Singleflight()

    async def get_all(self) -> list[Item]:
        entry = self._cache.get(CATALOG_KEY)
        if entry is not None and self._cache.classify(entry) == Freshness.fresh:
            return list(entry.value)

        try:
            return list(await self._flight.run(CATALOG_KEY, self._fetch))
        except Exception as e:
            handle_cache_error(e, "refresh", CATALOG_KEY, source=self.lister.source_id)
            previous = self._cache.get(CATALOG_KEY, allow_expired=True)
            if previous is not None:
                logger.warning(
                    "Serving last known catalog",
                    source=self.lister.source_id,
                    books=len(previous.value),
                    fetched_at=previous.fetched_at,
                )
                return list(previous.value)
            raise CacheExhausted(
                f"catalog listing from {self.lister.source_id} failed and nothing is cached"
            ) from e

    async def _fetch(self) -> list[Item]:
        items = await self.lister.list_items()
        self._cache.put(CATALOG_KEY, items, source=self.lister.source_id)
        logger.info("Fetched catalog", source=self.lister.source_id, books=len(items))
        return items

    async def find(self, identifier: str) -> Item | None:
        """Book by id or legacy id."""
        for item in await self.get_all():
            if item.matches_identifier(identifier):
                return item
        return None

    async def search(self, query: str) -> list[Item]:
        """Books whose title or author contains the query, case-insensitively."""
        q = query.lower()
        return [
            item
            for item in await self.get_all()
            if q in item.title.lower() or q in item.author.lower()
        ]

    def invalidate(self):
        logger.info("Invalidating catalog cache", source=self.lister.source_id)
        self._cache.invalidate(CATALOG_KEY)

    def fetched_at(self) -> float | None:
        entry = self._cache.get(CATALOG_KEY, allow_expired=True)
        return entry.fetched_at if entry else None
