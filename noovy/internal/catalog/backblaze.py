"""
Backblaze B2 catalog source through its S3-compatible API.

boto3 is synchronous, so bucket calls run in a worker thread.
"""
import asyncio
from typing import Any
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from noovy.internal.catalog.parse import (
    book_id_from_key,
    legacy_id_from_key,
    parse_filename,
)
from noovy.internal.catalog.sources import dedupe_items
from noovy.internal.env_settings import BackblazeSettings
from noovy.internal.models import Item
from noovy.util.exceptions import UpstreamUnavailable, handle_external_api_error
from noovy.util.log import logger

CATALOG_LANGUAGE = "Français"


def create_s3_client(settings: BackblazeSettings) -> Any:
    return boto3.client(
        "s3",
        endpoint_url=settings.endpoint,
        region_name=settings.region,
        aws_access_key_id=settings.key_id or None,
        aws_secret_access_key=settings.application_key or None,
    )


class BackblazeLister:
    source_id = "backblaze"

    def __init__(self, settings: BackblazeSettings, s3_client: Any = None):
        self.settings = settings
        self._s3 = s3_client or create_s3_client(settings)

    def _list_objects(self) -> list[dict[str, Any]]:
        objects: list[dict[str, Any]] = []
        paginator = self._s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(
            Bucket=self.settings.bucket,
            PaginationConfig={"PageSize": self.settings.page_size},
        ):
            objects.extend(page.get("Contents", []))
        return objects

    def _to_item(self, obj: dict[str, Any]) -> Item:
        key: str = obj["Key"]
        author, title = parse_filename(key)
        return Item(
            id=book_id_from_key(key),
            legacy_id=legacy_id_from_key(key),
            title=title,
            author=author,
            raw_title=key,
            cover_url=None,
            language=CATALOG_LANGUAGE,
            storage_key=key,
            last_modified=obj.get("LastModified"),
            size=obj.get("Size"),
        )

    async def list_items(self) -> list[Item]:
        try:
            objects = await asyncio.to_thread(self._list_objects)
        except (BotoCoreError, ClientError) as e:
            raise UpstreamUnavailable("Backblaze", f"listing failed: {e}") from e

        pdfs = [
            obj for obj in objects
            if obj.get("Key") and obj["Key"].lower().endswith(".pdf")
        ]
        logger.debug("Listed bucket objects", objects=len(objects), pdfs=len(pdfs))
        return dedupe_items([self._to_item(obj) for obj in pdfs])

    async def test_connection(self) -> bool:
        try:
            await asyncio.to_thread(
                self._s3.list_objects_v2, Bucket=self.settings.bucket, MaxKeys=1
            )
            return True
        except (BotoCoreError, ClientError) as e:
            handle_external_api_error(e, "Backblaze", "test connection")
            return False


class BackblazeAccessResolver:
    def __init__(self, settings: BackblazeSettings, s3_client: Any = None, signed: bool = True):
        self.settings = settings
        self.signed = signed
        self._s3 = s3_client or create_s3_client(settings)

    def direct_url(self, key: str) -> str:
        """Unsigned URL, only usable when the bucket is public."""
        return f"{self.settings.endpoint}/{self.settings.bucket}/{quote(key, safe='')}"

    async def resolve_access_url(self, item: Item) -> str | None:
        if not item.storage_key:
            logger.warning("Book has no storage key", book_id=item.id)
            return None
        if not self.signed:
            return self.direct_url(item.storage_key)

        try:
            return await asyncio.to_thread(
                self._s3.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.settings.bucket, "Key": item.storage_key},
                ExpiresIn=self.settings.signed_url_expiry,
            )
        except (BotoCoreError, ClientError) as e:
            handle_external_api_error(e, "Backblaze", "sign URL", book_id=item.id)
            return None
