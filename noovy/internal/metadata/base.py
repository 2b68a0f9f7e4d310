"""
Common plumbing for metadata providers.

A provider answers one question: what does this upstream know about a book?
It returns a MetadataRecord, or raises NoData when the upstream found nothing,
RateLimited on a 429 and UpstreamUnavailable on other error statuses, so the
resolver can tell the cases apart.
"""
from abc import ABC, abstractmethod
from typing import Any, Protocol

from aiohttp import ClientSession, ClientTimeout

from noovy.internal.models import Item, MetadataRecord
from noovy.util.exceptions import NoData, RateLimited, UpstreamUnavailable
from noovy.util.log import logger

TOO_MANY_REQUESTS = 429


class MetadataProvider(Protocol):
    provider_id: str
    name: str

    async def query(
        self, client_session: ClientSession, item: Item
    ) -> MetadataRecord | None: ...


def _retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class SearchProvider(ABC):
    """Provider backed by a search endpoint.

    The title+author query is tried first. If it finds nothing, the search is
    retried once with the title alone.
    """

    provider_id: str
    name: str
    timeout: float

    def __init__(self, timeout: float = 3.5):
        self.timeout = timeout

    @abstractmethod
    async def search(
        self, client_session: ClientSession, title: str, author: str | None
    ) -> list[Any]:
        """Return the raw search hits, best first."""

    @abstractmethod
    async def to_record(
        self, client_session: ClientSession, hit: Any
    ) -> MetadataRecord | None:
        """Turn the best search hit into a metadata record."""

    async def query(
        self, client_session: ClientSession, item: Item
    ) -> MetadataRecord | None:
        author = item.author if item.has_known_author() else None
        hits = await self.search(client_session, item.title, author)

        if not hits and author is not None:
            logger.debug(
                f"{self.name}: no results for title and author, retrying with title only",
                title=item.title,
                author=author,
            )
            hits = await self.search(client_session, item.title, None)

        if not hits:
            raise NoData(f"{self.name}: no results for {item.title!r}")

        return await self.to_record(client_session, hits[0])

    async def get_json(
        self,
        client_session: ClientSession,
        url: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """GET a JSON document, mapping error statuses to catalog errors."""
        async with client_session.get(
            url,
            params=params,
            timeout=ClientTimeout(total=timeout or self.timeout),
        ) as response:
            if response.status == TOO_MANY_REQUESTS:
                raise RateLimited(
                    self.provider_id,
                    retry_after=_retry_after(response.headers.get("Retry-After")),
                )
            if not 200 <= response.status < 300:
                raise UpstreamUnavailable(
                    self.name, f"HTTP {response.status}", status=response.status
                )
            return await response.json(content_type=None)
