import asyncio
from typing import Iterable

from noovy.internal.metadata.resolver import DEFAULT_SOURCE, ProviderChainResolver
from noovy.internal.models import EnrichedItem, Item, MetadataRecord
from noovy.util.cache import CacheEntry, Freshness, TTLCache
from noovy.util.exceptions import handle_cache_error
from noovy.util.log import logger
from noovy.util.singleflight import Singleflight
from noovy.util.text import metadata_cache_key


class MetadataEnricher:
    """Serves per-book metadata from cache, resolving it through the provider chain.

    Fresh entries are served as is. Stale entries are served flagged as stale,
    optionally refreshed in the background. Missing or expired entries are
    resolved, with concurrent requests for the same book sharing one resolution.
    """

    _background: set[asyncio.Task[tuple[CacheEntry[MetadataRecord], bool]]]

    def __init__(
        self,
        resolver: ProviderChainResolver,
        cache: TTLCache[MetadataRecord],
        singleflight: Singleflight[tuple[CacheEntry[MetadataRecord], bool]] | None = None,
        refresh_stale_in_background: bool = True,
    ):
        self.resolver = resolver
        self.cache = cache
        self._flight = singleflight or Singleflight()
        self.refresh_stale_in_background = refresh_stale_in_background
        self._background = set()

    async def enrich(self, item: Item, allow_stale: bool = True) -> EnrichedItem:
        key = metadata_cache_key(item.author, item.title)

        entry = self.cache.get(key)
        if entry is not None:
            freshness = self.cache.classify(entry)
            if freshness == Freshness.fresh:
                return EnrichedItem.build(item, entry.value, entry.source, cached=True)
            if allow_stale:
                if self.refresh_stale_in_background:
                    self._schedule_refresh(item, key)
                return EnrichedItem.build(
                    item, entry.value, entry.source, cached=True, stale=True
                )

        try:
            entry, reused = await self.refresh(item, key)
        except Exception as e:
            handle_cache_error(e, "refresh", key, title=item.title)
            fallback = self.cache.get(key, allow_expired=True)
            if fallback is not None:
                return EnrichedItem.build(
                    item, fallback.value, fallback.source, cached=True, stale=True
                )
            return EnrichedItem.build(item, MetadataRecord.from_item(item), DEFAULT_SOURCE)

        if reused:
            stale = self.cache.classify(entry) != Freshness.fresh
            return EnrichedItem.build(item, entry.value, entry.source, cached=True, stale=stale)
        return EnrichedItem.build(item, entry.value, entry.source)

    async def enrich_many(
        self, items: Iterable[Item], batch_size: int = 6
    ) -> list[EnrichedItem]:
        """Enrich books in fixed-size concurrent batches, preserving order."""
        items = list(items)
        batch_size = max(batch_size, 1)
        results: list[EnrichedItem] = []
        for start in range(0, len(items), batch_size):
            batch = items[start : start + batch_size]
            results.extend(await asyncio.gather(*(self.enrich(item) for item in batch)))
        return results

    async def refresh(
        self, item: Item, key: str | None = None
    ) -> tuple[CacheEntry[MetadataRecord], bool]:
        """
        Resolve metadata for a book and store it.

        Returns the cache entry and whether it is an older entry that was kept
        because every provider came back empty this time.
        """
        if key is None:
            key = metadata_cache_key(item.author, item.title)
        return await self._flight.run(key, lambda: self._resolve_and_store(item, key))

    async def _resolve_and_store(
        self, item: Item, key: str
    ) -> tuple[CacheEntry[MetadataRecord], bool]:
        resolved = await self.resolver.resolve(item)

        if resolved.source == DEFAULT_SOURCE:
            previous = self.cache.get(key, allow_expired=True)
            if previous is not None and previous.source != DEFAULT_SOURCE:
                logger.info(
                    "No provider data, keeping previous metadata",
                    title=item.title,
                    previous_source=previous.source,
                )
                return previous, True

        return self.cache.put(key, resolved.record, resolved.source), False

    def _schedule_refresh(self, item: Item, key: str):
        if self._flight.is_inflight(key):
            return
        logger.debug("Refreshing stale metadata in background", title=item.title)
        task = asyncio.ensure_future(self.refresh(item, key))
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task[tuple[CacheEntry[MetadataRecord], bool]]):
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                "Background metadata refresh failed",
                error=str(error),
                error_type=type(error).__name__,
            )

    async def drain(self):
        """Wait for pending background refreshes."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def clear(self):
        logger.info("Flushing metadata cache")
        self.cache.flush()
