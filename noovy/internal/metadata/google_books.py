"""
Google Books API provider for metadata enrichment.
"""
import re
from typing import Dict, List, Optional

from aiohttp import ClientSession
from pydantic import BaseModel, Field

from noovy.internal.metadata.base import SearchProvider
from noovy.internal.models import MetadataRecord

COVER_SIZES = ["extraLarge", "large", "medium", "small", "thumbnail", "smallThumbnail"]


class GoogleBooksVolumeInfo(BaseModel):
    """Google Books API volume info response model."""
    title: str = ""
    authors: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    imageLinks: Optional[Dict[str, str]] = None
    publishedDate: Optional[str] = None
    pageCount: Optional[int] = None
    averageRating: Optional[float] = None
    ratingsCount: Optional[int] = None
    language: Optional[str] = None
    publisher: Optional[str] = None


class GoogleBooksItem(BaseModel):
    """Google Books API item response model."""
    volumeInfo: Optional[GoogleBooksVolumeInfo] = None


class GoogleBooksResponse(BaseModel):
    """Google Books API search response model."""
    items: List[GoogleBooksItem] = Field(default_factory=list)
    totalItems: int = 0


def safe_year(date_like: Optional[str]) -> Optional[int]:
    """First four-digit run of a date string ("1999-05" -> 1999)."""
    if not date_like:
        return None
    match = re.search(r"\d{4}", date_like)
    return int(match.group(0)) if match else None


def get_best_cover(image_links: Optional[Dict[str, str]]) -> Optional[str]:
    """Get the best available cover image."""
    if not image_links:
        return None

    for size in COVER_SIZES:
        url = image_links.get(size)
        if url:
            if url.startswith("http://"):
                url = url.replace("http://", "https://", 1)
            return url

    return None


class GoogleBooksProvider(SearchProvider):
    """Provider for Google Books API metadata enrichment."""

    provider_id = "googlebooks"
    name = "Google Books"

    base_url: str
    api_key: str

    def __init__(
        self,
        timeout: float = 3.5,
        api_key: str = "",
        base_url: str = "https://www.googleapis.com/books/v1/volumes",
    ):
        super().__init__(timeout)
        self.base_url = base_url
        self.api_key = api_key

    async def search(
        self, client_session: ClientSession, title: str, author: str | None
    ) -> List[GoogleBooksVolumeInfo]:
        query = f"{title or ''} {author or ''}".strip()
        if not query:
            return []

        params = {
            "q": query,
            "maxResults": 1,
            "orderBy": "relevance",
        }
        if self.api_key:
            params["key"] = self.api_key

        data = await self.get_json(client_session, self.base_url, params=params)
        response = GoogleBooksResponse.model_validate(data)
        return [item.volumeInfo for item in response.items if item.volumeInfo]

    async def to_record(
        self, client_session: ClientSession, hit: GoogleBooksVolumeInfo
    ) -> MetadataRecord | None:
        return MetadataRecord(
            cover_url=get_best_cover(hit.imageLinks),
            description=hit.description or None,
            pages=hit.pageCount or None,
            year=safe_year(hit.publishedDate),
            category=hit.categories[0] if hit.categories else None,
            language=hit.language or None,
            publisher=hit.publisher or None,
            rating=hit.averageRating or None,
            ratings_count=hit.ratingsCount or None,
            source=self.provider_id,
        )
