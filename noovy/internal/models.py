from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

UNKNOWN_AUTHOR = "Inconnu"

METADATA_FIELDS = (
    "cover_url",
    "year",
    "pages",
    "description",
    "rating",
    "ratings_count",
    "publisher",
    "category",
    "language",
)


class Item(BaseModel):
    """A book from the catalog source. Identity is `id`."""

    model_config = ConfigDict(frozen=True)  # pyright: ignore[reportUnannotatedClassAttribute]

    id: str
    title: str
    author: str
    raw_title: str
    """Unparsed name from the source, title and author are derived from it"""
    cover_url: str | None = None
    language: str | None = None

    legacy_id: str | None = None
    storage_key: str | None = None
    """Object key in the bucket, for sources that store files"""
    last_modified: datetime | None = None
    size: int | None = None

    # Metadata the source may already carry
    year: int | None = None
    pages: int | None = None
    description: str | None = None
    rating: float | None = None
    ratings_count: int | None = None
    publisher: str | None = None
    category: str | None = None

    def has_known_author(self) -> bool:
        return bool(self.author.strip()) and self.author != UNKNOWN_AUTHOR

    def matches_identifier(self, identifier: str) -> bool:
        return self.id == identifier or (
            self.legacy_id is not None and self.legacy_id == identifier
        )


class MetadataRecord(BaseModel):
    """Partial metadata for a book. Any field may be absent."""

    model_config = ConfigDict(frozen=True)  # pyright: ignore[reportUnannotatedClassAttribute]

    cover_url: str | None = None
    year: int | None = None
    pages: int | None = None
    description: str | None = None
    rating: float | None = None
    ratings_count: int | None = None
    publisher: str | None = None
    category: str | None = None
    language: str | None = None
    source: str = "default"

    def present_fields(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in METADATA_FIELDS
            if getattr(self, name) not in (None, "")
        }

    def is_empty(self) -> bool:
        return not self.present_fields()

    @classmethod
    def from_item(cls, item: Item) -> "MetadataRecord":
        """The record a book gets when no provider knows anything about it."""
        return cls(
            cover_url=item.cover_url or None,
            year=item.year,
            pages=item.pages,
            description=item.description or None,
            rating=item.rating,
            ratings_count=item.ratings_count,
            publisher=item.publisher or None,
            category=item.category or None,
            language=item.language or None,
            source="default",
        )


class ResolvedMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)  # pyright: ignore[reportUnannotatedClassAttribute]

    record: MetadataRecord
    source: str


class EnrichedItem(Item):
    """A catalog book merged with its resolved metadata."""

    metadata_source: str = "default"
    metadata_cached: bool = False
    metadata_stale: bool = False
    file_url: str | None = None

    @classmethod
    def build(
        cls,
        item: Item,
        record: MetadataRecord,
        source: str,
        cached: bool = False,
        stale: bool = False,
    ) -> "EnrichedItem":
        data = item.model_dump()
        data.update(record.model_dump(include=set(METADATA_FIELDS)))
        return cls(
            **data,
            metadata_source=source,
            metadata_cached=cached,
            metadata_stale=stale,
        )


class BookPage(BaseModel):
    books: list[EnrichedItem]
    total: int
    page: int
    limit: int
    has_more: bool
    collection: str | None = None
    query: str | None = None
