from unittest.mock import MagicMock

import pytest

from conftest import FakeAccess, FakeLister, FakeProvider, make_item
from noovy.internal.catalog.archive import ArchiveLister
from noovy.internal.catalog.backblaze import BackblazeLister
from noovy.internal.catalog.cache import CatalogCache
from noovy.internal.engine import build_providers, create_library
from noovy.internal.env_settings import MetadataSettings, Settings
from noovy.internal.library import LibraryService, parse_pagination
from noovy.internal.metadata.google_books import GoogleBooksProvider
from noovy.internal.metadata.open_library import OpenLibraryProvider
from noovy.internal.models import MetadataRecord
from noovy.util.exceptions import CacheExhausted, UpstreamUnavailable


@pytest.fixture
def books():
    return [
        make_item("Les Misérables", "Victor Hugo"),
        make_item("Le Horla", "Guy de Maupassant"),
        make_item("The Raven", "Edgar Allan Poe"),
        make_item("Notre-Dame de Paris", "Victor Hugo"),
        make_item("Germinal", "Émile Zola"),
    ]


@pytest.fixture
def library(books, clock, make_enricher):
    def build(lister=None, access=None, provider=None):
        catalog = CatalogCache(lister or FakeLister(books), ttl=300, clock=clock)
        enricher = make_enricher(provider or FakeProvider("openlibrary", MetadataRecord(pages=100)))
        return LibraryService(catalog, enricher, access or FakeAccess(), batch_size=2)

    return build


class TestParsePagination:
    def test_defaults(self):
        p = parse_pagination()
        assert (p.page, p.limit, p.offset) == (1, 15, 0)

    def test_page_to_offset(self):
        p = parse_pagination(page="3", limit="10")
        assert (p.page, p.limit, p.offset) == (3, 10, 20)

    def test_clamping(self):
        assert parse_pagination(limit=500).limit == 50
        assert parse_pagination(limit=0).limit == 1
        assert parse_pagination(page=-2).page == 1
        assert parse_pagination(offset=-5).offset == 0

    def test_invalid_values_use_defaults(self):
        p = parse_pagination(page="abc", limit="x", offset="")
        assert (p.page, p.limit, p.offset) == (1, 15, 0)

    def test_explicit_offset_wins(self):
        p = parse_pagination(page=4, limit=5, offset=7)
        assert (p.page, p.offset) == (4, 7)


class TestLibraryService:
    @pytest.mark.asyncio
    async def test_list_books_page(self, library):
        service = library()

        page = await service.list_books(page=2, limit=2)

        assert [b.title for b in page.books] == ["Le Horla", "The Raven"]
        assert page.total == 5
        assert page.has_more
        assert all(b.pages == 100 for b in page.books)
        assert all(b.metadata_source == "openlibrary" for b in page.books)

    @pytest.mark.asyncio
    async def test_last_page_has_no_more(self, library):
        page = await library().list_books(page=3, limit=2)
        assert [b.title for b in page.books] == ["Germinal"]
        assert not page.has_more

    @pytest.mark.asyncio
    async def test_list_books_by_collection(self, library):
        page = await library().list_books(collection="gothic")
        assert [b.title for b in page.books] == ["The Raven"]
        assert page.total == 1
        assert page.collection == "gothic"

    @pytest.mark.asyncio
    async def test_only_page_items_are_enriched(self, library):
        provider = FakeProvider("openlibrary", MetadataRecord(pages=1))
        await library(provider=provider).list_books(limit=2)
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_search(self, library):
        page = await library().search("hugo", limit=1)
        assert [b.title for b in page.books] == ["Les Misérables"]
        assert page.total == 2
        assert page.has_more
        assert page.query == "hugo"

    @pytest.mark.asyncio
    async def test_search_requires_query(self, library):
        with pytest.raises(ValueError):
            await library().search("  ")

    @pytest.mark.asyncio
    async def test_featured_and_recent(self, library):
        service = library()
        assert len(await service.featured()) == 4
        assert [b.title for b in await service.recent(2)] == ["Les Misérables", "Le Horla"]
        assert len(await service.recent()) == 5
        assert len(await service.recent("bad")) == 5

    @pytest.mark.asyncio
    async def test_get_book_with_file_url(self, library, books):
        access = FakeAccess("https://archive.org/download/x/x.pdf")
        book = await library(access=access).get_book(books[1].id)

        assert book.title == "Le Horla"
        assert book.file_url == "https://archive.org/download/x/x.pdf"
        assert book.pages == 100
        assert access.calls == [books[1].id]

    @pytest.mark.asyncio
    async def test_get_missing_book(self, library):
        access = FakeAccess()
        assert await library(access=access).get_book("nope") is None
        assert access.calls == []

    @pytest.mark.asyncio
    async def test_catalog_outage_without_cache_propagates(self, library):
        lister = FakeLister([], error=UpstreamUnavailable("archive.org", "down"))
        with pytest.raises(CacheExhausted):
            await library(lister=lister).list_books()

    def test_categories_empty(self, library):
        assert library().categories() == []


class TestSettingsAndWiring:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("NOOVY_APP__CATALOG_SOURCE", "backblaze")
        monkeypatch.setenv("NOOVY_METADATA__FRESH_TTL", "60")
        monkeypatch.setenv("NOOVY_BACKBLAZE__BUCKET", "books")

        settings = Settings()

        assert settings.app.catalog_source == "backblaze"
        assert settings.metadata.fresh_ttl == 60
        assert settings.metadata.stale_ttl == 7 * 24 * 60 * 60
        assert settings.backblaze.bucket == "books"

    def test_defaults(self):
        settings = MetadataSettings()
        assert settings.providers == ["openlibrary", "googlebooks"]
        assert settings.cooldown_seconds == 900
        assert settings.enrich_batch_size == 6

    def test_build_providers_in_priority_order(self):
        providers = build_providers(
            MetadataSettings(providers=["googlebooks", "openlibrary"], google_books_api_key="k")
        )
        assert [type(p) for p in providers] == [GoogleBooksProvider, OpenLibraryProvider]
        assert providers[0].api_key == "k"

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError):
            build_providers(MetadataSettings(providers=["goodreads"]))

    def test_create_library_for_each_source(self, clock):
        session = MagicMock()
        archive = create_library(Settings(), session, clock=clock)
        assert isinstance(archive.catalog.lister, ArchiveLister)

        settings = Settings()
        settings.app.catalog_source = "backblaze"
        backblaze = create_library(settings, session, clock=clock, s3_client=MagicMock())
        assert isinstance(backblaze.catalog.lister, BackblazeLister)
        assert backblaze.batch_size == 6
