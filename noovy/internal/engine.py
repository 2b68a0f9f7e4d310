"""
Builds the catalog engine from settings.

Every component gets its own explicit instances (caches, in-flight registry,
cooldown state) so several engines can live side by side, e.g. in tests.
"""
import time
from typing import Any

from aiohttp import ClientSession

from noovy.internal.catalog.archive import ArchiveAccessResolver, ArchiveLister
from noovy.internal.catalog.backblaze import BackblazeAccessResolver, BackblazeLister
from noovy.internal.catalog.cache import CatalogCache
from noovy.internal.catalog.sources import AccessResolver, SourceLister
from noovy.internal.env_settings import MetadataSettings, Settings
from noovy.internal.library import LibraryService
from noovy.internal.metadata.base import MetadataProvider
from noovy.internal.metadata.cooldown import CooldownGuard
from noovy.internal.metadata.enricher import MetadataEnricher
from noovy.internal.metadata.google_books import GoogleBooksProvider
from noovy.internal.metadata.open_library import OpenLibraryProvider
from noovy.internal.metadata.resolver import ProviderChainResolver
from noovy.internal.models import MetadataRecord
from noovy.util.cache import Clock, TTLCache
from noovy.util.log import logger


def build_providers(settings: MetadataSettings) -> list[MetadataProvider]:
    """Metadata providers in the configured priority order."""
    factories = {
        OpenLibraryProvider.provider_id: lambda: OpenLibraryProvider(
            timeout=settings.provider_timeout,
            works_timeout=settings.works_timeout,
        ),
        GoogleBooksProvider.provider_id: lambda: GoogleBooksProvider(
            timeout=settings.provider_timeout,
            api_key=settings.google_books_api_key,
        ),
    }

    providers: list[MetadataProvider] = []
    for provider_id in settings.providers:
        factory = factories.get(provider_id)
        if factory is None:
            raise ValueError(f"Unknown metadata provider: {provider_id}")
        providers.append(factory())
    return providers


def build_source(
    settings: Settings, client_session: ClientSession, s3_client: Any = None
) -> tuple[SourceLister, AccessResolver]:
    if settings.app.catalog_source == "backblaze":
        return (
            BackblazeLister(settings.backblaze, s3_client=s3_client),
            BackblazeAccessResolver(settings.backblaze, s3_client=s3_client),
        )
    return (
        ArchiveLister(client_session, settings.archive),
        ArchiveAccessResolver(client_session, settings.archive),
    )


def build_enricher(
    settings: MetadataSettings,
    client_session: ClientSession,
    clock: Clock = time.time,
    providers: list[MetadataProvider] | None = None,
) -> MetadataEnricher:
    guard = CooldownGuard(
        cooldown_seconds=settings.cooldown_seconds,
        log_interval=settings.cooldown_log_interval,
        clock=clock,
    )
    resolver = ProviderChainResolver(
        providers if providers is not None else build_providers(settings),
        guard,
        client_session,
        call_timeout=settings.provider_call_timeout,
    )
    cache = TTLCache[MetadataRecord](
        fresh_ttl=settings.fresh_ttl,
        stale_ttl=settings.stale_ttl,
        maxsize=settings.cache_maxsize,
        clock=clock,
    )
    return MetadataEnricher(
        resolver,
        cache,
        refresh_stale_in_background=settings.refresh_stale_in_background,
    )


def create_library(
    settings: Settings,
    client_session: ClientSession,
    clock: Clock = time.time,
    s3_client: Any = None,
) -> LibraryService:
    lister, access = build_source(settings, client_session, s3_client=s3_client)
    catalog = CatalogCache(lister, ttl=settings.catalog.ttl, clock=clock)
    enricher = build_enricher(settings.metadata, client_session, clock=clock)

    logger.info(
        "Catalog engine configured",
        source=lister.source_id,
        providers=settings.metadata.providers,
        catalog_ttl=settings.catalog.ttl,
        metadata_fresh_ttl=settings.metadata.fresh_ttl,
        metadata_stale_ttl=settings.metadata.stale_ttl,
    )
    return LibraryService(
        catalog,
        enricher,
        access,
        settings=settings.catalog,
        batch_size=settings.metadata.enrich_batch_size,
    )
