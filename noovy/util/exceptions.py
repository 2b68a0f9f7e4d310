"""
Error taxonomy and standard exception logging for the catalog engine.

Provider and source failures are absorbed close to where they happen and
logged with the helpers below. Only CacheExhausted is meant to reach the
callers of the catalog cache.
"""
from typing import Any

from pydantic import ValidationError

from noovy.util.log import logger


class CatalogError(Exception):
    """Base class for every error raised by the catalog engine."""


class UpstreamUnavailable(CatalogError):
    """A provider or source lister is unreachable or answered with an error status."""

    def __init__(self, service: str, message: str, status: int | None = None):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status = status


class RateLimited(CatalogError):
    """An upstream answered 429 Too Many Requests.

    `partial` carries whatever the provider had already gathered before the
    429, so the caller can keep it while the provider cools down.
    """

    def __init__(
        self, provider_id: str, retry_after: float | None = None, partial: Any = None
    ):
        super().__init__(f"{provider_id} rate limited")
        self.provider_id = provider_id
        self.retry_after = retry_after
        self.partial = partial


class NoData(CatalogError):
    """The upstream was reached but returned nothing usable."""


class WrongShape(CatalogError):
    """A payload did not match any of the expected response shapes."""


class CacheExhausted(CatalogError):
    """No cached value of any age exists and the live fetch failed."""


def _error_fields(error: Exception) -> dict[str, Any]:
    fields: dict[str, Any] = {"error": str(error), "error_type": type(error).__name__}
    status = getattr(error, "status", None)
    if status is not None:
        fields["status"] = status
    if isinstance(error, RateLimited) and error.retry_after is not None:
        fields["retry_after"] = error.retry_after
    return fields


def handle_external_api_error(
    error: Exception,
    service: str,
    operation: str,
    **context: Any
) -> None:
    """
    Log a failed call to a metadata provider or catalog source.

    The HTTP status and Retry-After value are added when the error carries them.

    Example:
        try:
            record = await provider.query(client_session, item)
        except (ClientError, UpstreamUnavailable) as e:
            handle_external_api_error(e, "OpenLibrary", "query", title=item.title)
            return None
    """
    logger.error(
        f"{service} {operation} failed",
        service=service,
        operation=operation,
        **_error_fields(error),
        **context
    )


def handle_validation_error(
    error: ValidationError | WrongShape,
    data_source: str,
    **context: Any
) -> None:
    """Log a payload that matched none of the shapes we know how to read."""
    fields = _error_fields(error)
    if isinstance(error, ValidationError):
        fields["error_count"] = error.error_count()
    logger.error(f"{data_source} has an unexpected shape", data_source=data_source, **fields, **context)


def handle_cache_error(
    error: Exception,
    operation: str,
    cache_key: str,
    **context: Any
) -> None:
    """Log a cache refresh that failed and left older data in place."""
    logger.warning(
        f"Cache {operation} failed, keeping previous value",
        operation=operation,
        cache_key=cache_key,
        **_error_fields(error),
        **context
    )
