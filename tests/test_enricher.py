import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import DAY, FakeProvider, make_item
from noovy.internal.models import MetadataRecord
from noovy.util.text import metadata_cache_key


class TestMetadataEnricher:
    @pytest.mark.asyncio
    async def test_first_lookup_resolves_then_serves_from_cache(self, make_enricher, item):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1463, year=1862))
        enricher = make_enricher(provider)

        first = await enricher.enrich(item)
        second = await enricher.enrich(item)

        assert provider.calls == 1
        assert first.pages == 1463
        assert first.metadata_source == "openlibrary"
        assert (first.metadata_cached, first.metadata_stale) == (False, False)
        assert (second.metadata_cached, second.metadata_stale) == (True, False)
        assert second.title == item.title
        assert second.id == item.id

    @pytest.mark.asyncio
    async def test_stale_entry_is_served_flagged(self, make_enricher, clock, item):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1463))
        enricher = make_enricher(provider)

        await enricher.enrich(item)
        clock.advance(DAY + 60)
        stale = await enricher.enrich(item)

        assert provider.calls == 1
        assert stale.metadata_cached
        assert stale.metadata_stale
        assert stale.pages == 1463

    @pytest.mark.asyncio
    async def test_stale_entry_refetched_when_stale_not_allowed(self, make_enricher, clock, item):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1463))
        enricher = make_enricher(provider)

        await enricher.enrich(item)
        clock.advance(DAY + 60)
        result = await enricher.enrich(item, allow_stale=False)

        assert provider.calls == 2
        assert not result.metadata_cached

    @pytest.mark.asyncio
    async def test_stale_entry_refreshed_in_background(self, make_enricher, clock, item):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1463))
        enricher = make_enricher(provider, background=True)

        await enricher.enrich(item)
        clock.advance(DAY + 60)
        provider.result = MetadataRecord(pages=1500)

        stale = await enricher.enrich(item)
        assert stale.pages == 1463
        await enricher.drain()

        fresh = await enricher.enrich(item)
        assert provider.calls == 2
        assert fresh.pages == 1500
        assert not fresh.metadata_stale

    @pytest.mark.asyncio
    async def test_expired_entry_is_resolved_again(self, make_enricher, clock, item):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1463))
        enricher = make_enricher(provider)

        await enricher.enrich(item)
        clock.advance(8 * DAY)
        result = await enricher.enrich(item)

        assert provider.calls == 2
        assert not result.metadata_cached
        assert not result.metadata_stale

    @pytest.mark.asyncio
    async def test_previous_data_kept_when_providers_come_back_empty(self, make_enricher, clock, item):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1463))
        enricher = make_enricher(provider)

        await enricher.enrich(item)
        clock.advance(8 * DAY)
        provider.result = None

        result = await enricher.enrich(item)

        assert provider.calls == 2
        assert result.pages == 1463
        assert result.metadata_source == "openlibrary"
        assert result.metadata_cached
        assert result.metadata_stale

    @pytest.mark.asyncio
    async def test_unexpected_failure_falls_back_to_default(self, make_enricher):
        item = make_item(cover_url="https://archive.org/services/img/x")
        enricher = make_enricher(FakeProvider("openlibrary"))
        enricher.resolver.resolve = AsyncMock(side_effect=RuntimeError("bug"))

        result = await enricher.enrich(item)

        assert result.metadata_source == "default"
        assert result.cover_url == "https://archive.org/services/img/x"
        assert not result.metadata_cached

    @pytest.mark.asyncio
    async def test_unexpected_failure_falls_back_to_expired_entry(self, make_enricher, clock, item):
        enricher = make_enricher(FakeProvider("openlibrary", MetadataRecord(pages=10)))
        await enricher.enrich(item)
        clock.advance(30 * DAY)
        enricher.resolver.resolve = AsyncMock(side_effect=RuntimeError("bug"))

        result = await enricher.enrich(item)

        assert result.pages == 10
        assert result.metadata_stale

    @pytest.mark.asyncio
    async def test_concurrent_lookups_share_one_resolution(self, make_enricher, item):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1463), delay=0.01)
        enricher = make_enricher(provider)

        results = await asyncio.gather(*(enricher.enrich(item) for _ in range(5)))

        assert provider.calls == 1
        assert all(r.pages == 1463 for r in results)

    @pytest.mark.asyncio
    async def test_cache_key_ignores_case_and_punctuation(self, make_enricher):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1))
        enricher = make_enricher(provider)

        await enricher.enrich(make_item("Le Horla", "Guy de Maupassant", item_id="a"))
        await enricher.enrich(make_item("le horla!", "GUY DE MAUPASSANT", item_id="b"))

        assert provider.calls == 1
        assert metadata_cache_key("Guy de Maupassant", "Le Horla") == "guy de maupassant|le horla"

    @pytest.mark.asyncio
    async def test_enrich_many_batches_and_keeps_order(self, make_enricher):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1), delay=0.01)
        enricher = make_enricher(provider)
        items = [make_item(f"Tome {i}", "Alexandre Dumas") for i in range(7)]

        results = await enricher.enrich_many(items, batch_size=3)

        assert [r.title for r in results] == [f"Tome {i}" for i in range(7)]
        assert provider.calls == 7
        assert provider.max_active <= 3

    @pytest.mark.asyncio
    async def test_clear_flushes_cache(self, make_enricher, item):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1))
        enricher = make_enricher(provider)

        await enricher.enrich(item)
        enricher.clear()
        await enricher.enrich(item)

        assert provider.calls == 2
