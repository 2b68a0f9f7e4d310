"""
Transport-agnostic book listing built on the catalog cache and the metadata
enricher. Route handlers of any web framework can call it directly.
"""
from pydantic import BaseModel

from noovy.internal.catalog.cache import CatalogCache
from noovy.internal.catalog.collections import filter_by_collection
from noovy.internal.catalog.sources import AccessResolver
from noovy.internal.env_settings import CatalogSettings
from noovy.internal.metadata.enricher import MetadataEnricher
from noovy.internal.models import BookPage, EnrichedItem
from noovy.util.log import logger


class Pagination(BaseModel):
    page: int
    limit: int
    offset: int


def _to_int(value: int | str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_pagination(
    page: int | str | None = None,
    limit: int | str | None = None,
    offset: int | str | None = None,
    default_limit: int = 15,
    max_limit: int = 50,
) -> Pagination:
    """Clamp raw pagination parameters. An explicit offset wins over page."""
    raw_limit = _to_int(limit)
    limit_value = min(max(raw_limit, 1), max_limit) if raw_limit is not None else default_limit

    raw_page = _to_int(page)
    page_value = max(raw_page, 1) if raw_page is not None else 1

    raw_offset = _to_int(offset)
    offset_value = (
        max(raw_offset, 0) if raw_offset is not None else (page_value - 1) * limit_value
    )
    return Pagination(page=page_value, limit=limit_value, offset=offset_value)


class LibraryService:
    def __init__(
        self,
        catalog: CatalogCache,
        enricher: MetadataEnricher,
        access: AccessResolver,
        settings: CatalogSettings | None = None,
        batch_size: int = 6,
    ):
        self.catalog = catalog
        self.enricher = enricher
        self.access = access
        self.settings = settings or CatalogSettings()
        self.batch_size = batch_size

    def _pagination(self, page, limit, offset) -> Pagination:
        return parse_pagination(
            page,
            limit,
            offset,
            default_limit=self.settings.page_limit_default,
            max_limit=self.settings.page_limit_max,
        )

    async def list_books(
        self,
        page: int | str | None = None,
        limit: int | str | None = None,
        offset: int | str | None = None,
        collection: str | None = None,
    ) -> BookPage:
        pagination = self._pagination(page, limit, offset)
        books = filter_by_collection(await self.catalog.get_all(), collection)
        window = books[pagination.offset : pagination.offset + pagination.limit]
        enriched = await self.enricher.enrich_many(window, self.batch_size)
        return BookPage(
            books=enriched,
            total=len(books),
            page=pagination.page,
            limit=pagination.limit,
            has_more=pagination.offset + len(enriched) < len(books),
            collection=collection or None,
        )

    async def search(
        self,
        query: str,
        page: int | str | None = None,
        limit: int | str | None = None,
        offset: int | str | None = None,
    ) -> BookPage:
        if not query or not query.strip():
            raise ValueError("Search query is required")

        pagination = self._pagination(page, limit, offset)
        books = await self.catalog.search(query.strip())
        window = books[pagination.offset : pagination.offset + pagination.limit]
        enriched = await self.enricher.enrich_many(window, self.batch_size)
        return BookPage(
            books=enriched,
            total=len(books),
            page=pagination.page,
            limit=pagination.limit,
            has_more=pagination.offset + len(enriched) < len(books),
            query=query,
        )

    async def featured(self) -> list[EnrichedItem]:
        books = await self.catalog.get_all()
        return await self.enricher.enrich_many(
            books[: self.settings.featured_count], self.batch_size
        )

    async def recent(self, limit: int | str | None = None) -> list[EnrichedItem]:
        """Most recently added books; the source lists them newest first."""
        count = _to_int(limit)
        if count is None or count < 1:
            count = self.settings.recent_default
        books = await self.catalog.get_all()
        return await self.enricher.enrich_many(books[:count], self.batch_size)

    async def get_book(self, identifier: str) -> EnrichedItem | None:
        """Full detail of one book: metadata plus a download link."""
        book = await self.catalog.find(identifier)
        if book is None:
            logger.warning("Book not found", identifier=identifier)
            return None

        enriched = await self.enricher.enrich(book)
        file_url = await self.access.resolve_access_url(book)
        return enriched.model_copy(update={"file_url": file_url})

    def categories(self) -> list[str]:
        return []
