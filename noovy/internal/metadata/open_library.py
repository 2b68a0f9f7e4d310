"""
OpenLibrary provider: search API for covers, dates and page counts, works API
for descriptions.
"""
import asyncio
from typing import Any

from aiohttp import ClientError, ClientSession
from pydantic import BaseModel, Field, ValidationError

from noovy.internal.metadata.base import SearchProvider
from noovy.internal.models import MetadataRecord
from noovy.util.exceptions import (
    RateLimited,
    UpstreamUnavailable,
    WrongShape,
    handle_validation_error,
)
from noovy.util.log import logger
from noovy.util.parsing import model_strategy, parse_first, type_strategy

SEARCH_FIELDS = "key,first_publish_year,cover_i,number_of_pages_median,language"


class OpenLibraryDoc(BaseModel):
    key: str | None = None
    first_publish_year: int | None = None
    cover_i: int | None = None
    number_of_pages_median: int | None = None
    language: list[str] | str | None = None


class OpenLibrarySearchResponse(BaseModel):
    docs: list[OpenLibraryDoc] = Field(default_factory=list)
    numFound: int = 0


class TypedText(BaseModel):
    """Works descriptions are sometimes wrapped as {"type": "/type/text", "value": ...}."""

    type: str | None = None
    value: str


def _typed_text_value(data: Any) -> str:
    return model_strategy(TypedText)(data).value


_typed_text_value.__name__ = "TypedText"

DESCRIPTION_SHAPES = [type_strategy(str), _typed_text_value]


def parse_description(raw: Any) -> str | None:
    """Extract a works description from either of its known shapes."""
    if raw is None:
        return None
    return parse_first(raw, DESCRIPTION_SHAPES) or None


class OpenLibraryProvider(SearchProvider):
    provider_id = "openlibrary"
    name = "OpenLibrary"

    search_url: str
    works_url: str
    covers_url: str
    works_timeout: float

    def __init__(
        self,
        timeout: float = 3.5,
        works_timeout: float = 3.0,
        base_url: str = "https://openlibrary.org",
        covers_url: str = "https://covers.openlibrary.org",
    ):
        super().__init__(timeout)
        self.search_url = f"{base_url}/search.json"
        self.works_url = base_url
        self.covers_url = covers_url
        self.works_timeout = works_timeout

    async def search(
        self, client_session: ClientSession, title: str, author: str | None
    ) -> list[OpenLibraryDoc]:
        params: dict[str, Any] = {
            "title": title,
            "limit": 1,
            "fields": SEARCH_FIELDS,
        }
        if author:
            params["author"] = author

        data = await self.get_json(client_session, self.search_url, params=params)
        return OpenLibrarySearchResponse.model_validate(data).docs

    async def fetch_description(
        self, client_session: ClientSession, work_key: str
    ) -> str | None:
        """
        Description from the works API. Failures here only cost the description;
        a 429 is raised as RateLimited so the provider still cools down.
        """
        try:
            data = await self.get_json(
                client_session,
                f"{self.works_url}{work_key}.json",
                timeout=self.works_timeout,
            )
            if not isinstance(data, dict):
                raise WrongShape("works document is not an object")
            return parse_description(data.get("description"))
        except WrongShape as e:
            handle_validation_error(e, "OpenLibrary works description", work_key=work_key)
        except (ClientError, asyncio.TimeoutError, UpstreamUnavailable, ValueError) as e:
            logger.debug(
                "OpenLibrary works lookup failed",
                work_key=work_key,
                error=str(e),
                error_type=type(e).__name__,
            )
        return None

    def cover_url(self, cover_id: int | None) -> str | None:
        if not cover_id:
            return None
        return f"{self.covers_url}/b/id/{cover_id}-L.jpg"

    async def to_record(
        self, client_session: ClientSession, hit: OpenLibraryDoc
    ) -> MetadataRecord | None:
        description = None
        rate_limited: RateLimited | None = None
        if hit.key:
            try:
                description = await self.fetch_description(client_session, hit.key)
            except RateLimited as e:
                rate_limited = e

        language = hit.language
        if isinstance(language, list):
            language = language[0] if language else None

        record = None
        try:
            record = MetadataRecord(
                cover_url=self.cover_url(hit.cover_i),
                year=hit.first_publish_year,
                pages=hit.number_of_pages_median,
                description=description,
                language=language,
                source=self.provider_id,
            )
        except ValidationError as e:
            handle_validation_error(e, "OpenLibrary search result", key=hit.key)

        if rate_limited is not None:
            # The search hit is kept; only the description is lost to the 429
            rate_limited.partial = record
            raise rate_limited
        return record
