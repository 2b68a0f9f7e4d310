"""
archive.org catalog source: advanced search for the listing, item metadata for
download links.
"""
import asyncio
from typing import Any
from urllib.parse import quote

from aiohttp import ClientError, ClientSession, ClientTimeout
from pydantic import BaseModel, Field, ValidationError

from noovy.internal.catalog.parse import parse_archive_title
from noovy.internal.catalog.sources import dedupe_items
from noovy.internal.env_settings import ArchiveSettings
from noovy.internal.models import Item
from noovy.util.exceptions import (
    UpstreamUnavailable,
    WrongShape,
    handle_external_api_error,
    handle_validation_error,
)
from noovy.util.log import logger
from noovy.util.parsing import ParseStrategy, parse_first

CATALOG_LANGUAGE = "Français"


class ArchiveDoc(BaseModel):
    identifier: str
    title: str = ""
    creator: str | list[str] | None = None


class ArchiveSearchBody(BaseModel):
    numFound: int = 0
    start: int = 0
    docs: list[ArchiveDoc] = Field(default_factory=list)


class ArchiveSearchResponse(BaseModel):
    response: ArchiveSearchBody = Field(default_factory=ArchiveSearchBody)


class ArchiveFile(BaseModel):
    name: str = ""
    format: str | None = None
    source: str | None = None


class ArchiveFilesResult(BaseModel):
    """Shape of /metadata/{id}/files."""

    result: list[ArchiveFile]


class ArchiveMetadataFiles(BaseModel):
    """Shape of /metadata/{id}."""

    files: list[ArchiveFile]


def _files_from_result(data: Any) -> list[ArchiveFile]:
    try:
        return ArchiveFilesResult.model_validate(data).result
    except ValidationError as e:
        raise WrongShape("no 'result' file list") from e


def _files_from_metadata(data: Any) -> list[ArchiveFile]:
    try:
        return ArchiveMetadataFiles.model_validate(data).files
    except ValidationError as e:
        raise WrongShape("no 'files' list") from e


FILE_LIST_SHAPES: list[ParseStrategy[list[ArchiveFile]]] = [
    _files_from_result,
    _files_from_metadata,
]


def pick_pdf(files: list[ArchiveFile]) -> ArchiveFile | None:
    """Original text PDF first, then any PDF format, then any .pdf name."""
    for file in files:
        if file.format == "Text PDF" and file.source == "original":
            return file
    for file in files:
        if file.format == "PDF":
            return file
    for file in files:
        if file.name and file.name.lower().endswith(".pdf"):
            return file
    return None


class ArchiveLister:
    source_id = "archive"

    def __init__(self, client_session: ClientSession, settings: ArchiveSettings):
        self.client_session = client_session
        self.settings = settings

    def _headers(self) -> dict[str, str]:
        if self.settings.access_key and self.settings.secret_key:
            return {"Authorization": f"LOW {self.settings.access_key}:{self.settings.secret_key}"}
        return {}

    async def _fetch_page(self, page: int) -> ArchiveSearchBody:
        params = [
            ("q", f'creator:"{self.settings.creator}"'),
            ("fl[]", "identifier"),
            ("fl[]", "title"),
            ("fl[]", "creator"),
            ("sort[]", "addeddate desc"),
            ("rows", str(self.settings.rows)),
            ("page", str(page)),
            ("output", "json"),
        ]
        async with self.client_session.get(
            self.settings.search_url,
            params=params,
            headers=self._headers(),
            timeout=ClientTimeout(total=self.settings.timeout),
        ) as response:
            if response.status != 200:
                raise UpstreamUnavailable(
                    "archive.org", f"search returned HTTP {response.status}", status=response.status
                )
            data = await response.json(content_type=None)
        return ArchiveSearchResponse.model_validate(data).response

    def _to_item(self, doc: ArchiveDoc) -> Item:
        raw_title = doc.title or doc.identifier
        author, title = parse_archive_title(raw_title)
        return Item(
            id=doc.identifier,
            title=title,
            author=author,
            raw_title=raw_title,
            cover_url=f"https://archive.org/services/img/{quote(doc.identifier, safe='')}",
            language=CATALOG_LANGUAGE,
        )

    async def list_items(self) -> list[Item]:
        docs: list[ArchiveDoc] = []
        page = 1
        while True:
            body = await self._fetch_page(page)
            docs.extend(body.docs)
            if not body.docs or len(docs) >= body.numFound:
                break
            page += 1

        logger.debug("Listed archive.org items", pages=page, docs=len(docs))
        return dedupe_items([self._to_item(doc) for doc in docs])


class ArchiveAccessResolver:
    def __init__(self, client_session: ClientSession, settings: ArchiveSettings):
        self.client_session = client_session
        self.settings = settings

    async def _get_json(self, url: str) -> Any:
        async with self.client_session.get(
            url, timeout=ClientTimeout(total=self.settings.files_timeout)
        ) as response:
            if response.status != 200:
                raise UpstreamUnavailable(
                    "archive.org", f"metadata returned HTTP {response.status}", status=response.status
                )
            return await response.json(content_type=None)

    async def list_files(self, identifier: str) -> list[ArchiveFile]:
        base = f"{self.settings.metadata_url}/{identifier}"
        try:
            data = await self._get_json(f"{base}/files")
            return parse_first(data, FILE_LIST_SHAPES)
        except (ClientError, asyncio.TimeoutError, UpstreamUnavailable, WrongShape, ValueError) as e:
            logger.debug(
                "archive.org files endpoint failed, using item metadata",
                identifier=identifier,
                error=str(e),
                error_type=type(e).__name__,
            )
        data = await self._get_json(base)
        return parse_first(data, FILE_LIST_SHAPES)

    async def resolve_access_url(self, item: Item) -> str | None:
        try:
            files = await self.list_files(item.id)
        except WrongShape as e:
            handle_validation_error(e, "archive.org item metadata", identifier=item.id)
            return None
        except (ClientError, asyncio.TimeoutError, UpstreamUnavailable, ValueError) as e:
            handle_external_api_error(e, "archive.org", "resolve PDF", identifier=item.id)
            return None

        pdf = pick_pdf(files)
        if pdf is None:
            formats = sorted({f.format for f in files if f.format})
            logger.warning("No PDF found for item", identifier=item.id, formats=formats)
            return None

        url = f"{self.settings.download_url}/{item.id}/{quote(pdf.name)}"
        logger.debug("Resolved PDF", identifier=item.id, url=url)
        return url
