import asyncio
from typing import Sequence

from aiohttp import ClientError, ClientSession
from pydantic import ValidationError

from noovy.internal.metadata.base import MetadataProvider
from noovy.internal.metadata.cooldown import CooldownGuard
from noovy.internal.metadata.quality import is_author_biography
from noovy.internal.models import Item, MetadataRecord, ResolvedMetadata
from noovy.util.exceptions import (
    NoData,
    RateLimited,
    UpstreamUnavailable,
    WrongShape,
    handle_external_api_error,
    handle_validation_error,
)
from noovy.util.log import logger

DEFAULT_SOURCE = "default"


def merge_records(base: MetadataRecord, candidate: MetadataRecord) -> MetadataRecord:
    """
    Fill the gaps of `base` with the fields `candidate` has.

    A present field is never replaced, except the description: a candidate
    description replaces the current one unless it reads like an author
    biography. An absent description accepts any candidate.
    """
    updates = {}
    for name, value in candidate.present_fields().items():
        current = getattr(base, name)
        if current in (None, ""):
            updates[name] = value
        elif name == "description" and value != current and not is_author_biography(value):
            updates[name] = value

    if not updates:
        return base
    return base.model_copy(update=updates)


class ProviderChainResolver:
    """Resolves metadata for a book through an ordered list of providers.

    All enabled providers are queried concurrently and their answers merged in
    priority order. A failing provider only costs its own contribution.
    """

    def __init__(
        self,
        providers: Sequence[MetadataProvider],
        guard: CooldownGuard,
        client_session: ClientSession,
        call_timeout: float = 10.0,
    ):
        self.providers = list(providers)
        self.guard = guard
        self.client_session = client_session
        self.call_timeout = call_timeout

    async def resolve(self, item: Item) -> ResolvedMetadata:
        record = MetadataRecord.from_item(item)

        enabled: list[MetadataProvider] = []
        for provider in self.providers:
            if self.guard.is_disabled(provider.provider_id):
                logger.debug(
                    "Skipping provider in cooldown",
                    provider=provider.provider_id,
                    title=item.title,
                )
                continue
            enabled.append(provider)

        results = await asyncio.gather(
            *(self._query(provider, item) for provider in enabled)
        )

        source: str | None = None
        for provider, candidate in zip(enabled, results):
            if candidate is None or candidate.is_empty():
                continue
            record = merge_records(record, candidate)
            if source is None:
                source = provider.provider_id

        source = source or DEFAULT_SOURCE
        record = record.model_copy(update={"source": source})
        logger.debug(
            "Resolved metadata",
            title=item.title,
            author=item.author,
            source=source,
            fields=sorted(record.present_fields()),
        )
        return ResolvedMetadata(record=record, source=source)

    async def _query(
        self, provider: MetadataProvider, item: Item
    ) -> MetadataRecord | None:
        context = {"provider": provider.provider_id, "title": item.title, "author": item.author}
        try:
            return await asyncio.wait_for(
                provider.query(self.client_session, item),
                timeout=self.call_timeout,
            )
        except RateLimited as e:
            self.guard.disable(provider.provider_id)
            logger.debug(
                "Provider answered 429",
                retry_after=e.retry_after,
                kept_partial=e.partial is not None,
                **context,
            )
            return e.partial
        except NoData:
            logger.debug("Provider has no data", **context)
        except asyncio.TimeoutError as e:
            handle_external_api_error(e, provider.name, "query timed out", **context)
        except (ClientError, UpstreamUnavailable) as e:
            handle_external_api_error(e, provider.name, "query", **context)
        except (ValidationError, WrongShape) as e:
            handle_validation_error(e, f"{provider.name} response", **context)
        except ValueError as e:
            handle_external_api_error(e, provider.name, "parse response", **context)
        except Exception as e:
            handle_external_api_error(e, provider.name, "query", unexpected=True, **context)
        return None
