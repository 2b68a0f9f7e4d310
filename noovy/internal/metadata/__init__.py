"""
Metadata enrichment for catalog books.

Resolves covers, descriptions and other details through an ordered chain of
providers (OpenLibrary, Google Books) with caching and rate-limit cooldowns.
"""

from .cooldown import CooldownGuard
from .enricher import MetadataEnricher
from .google_books import GoogleBooksProvider
from .open_library import OpenLibraryProvider
from .resolver import ProviderChainResolver, merge_records

__all__ = [
    "CooldownGuard",
    "GoogleBooksProvider",
    "MetadataEnricher",
    "OpenLibraryProvider",
    "ProviderChainResolver",
    "merge_records",
]
