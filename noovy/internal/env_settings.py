from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApplicationSettings(BaseModel):
    debug: bool = False
    config_dir: str = "/config"
    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)"""
    log_format: str = "text"
    """Log format: 'text' for human-readable, 'json' for machine-readable"""
    log_file: str | None = None
    """Optional log file path (relative to config_dir/logs/). If not set, logs to stdout only"""

    catalog_source: Literal["archive", "backblaze"] = "archive"
    """Where the list of books comes from"""


class CatalogSettings(BaseModel):
    ttl: int = 300
    """Seconds the list of all books is served from cache before it is fetched again"""
    page_limit_default: int = 15
    page_limit_max: int = 50
    featured_count: int = 4
    recent_default: int = 5


class MetadataSettings(BaseModel):
    fresh_ttl: int = 24 * 60 * 60
    """Seconds during which enriched metadata is served as fresh (default: 24 hours)"""
    stale_ttl: int = 7 * 24 * 60 * 60
    """Seconds during which enriched metadata may still be served as stale (default: 7 days)"""
    cache_maxsize: int | None = 5000
    """Maximum number of cached metadata records, LRU evicted. None = unlimited"""

    providers: list[str] = Field(default_factory=lambda: ["openlibrary", "googlebooks"])
    """Metadata providers in priority order"""
    provider_timeout: float = 3.5
    """Timeout (seconds) for a single provider HTTP request"""
    provider_call_timeout: float = 10.0
    """Upper bound (seconds) for one provider lookup, retries and description lookups included"""
    works_timeout: float = 3.0
    """Timeout (seconds) for the OpenLibrary works lookup used for descriptions"""
    enrich_batch_size: int = 6
    """Number of books enriched concurrently"""
    refresh_stale_in_background: bool = True
    """Refresh stale metadata in the background while serving the stale copy"""

    cooldown_seconds: int = 15 * 60
    """Seconds a provider stays disabled after answering 429"""
    cooldown_log_interval: int = 60
    """Minimum seconds between two cooldown log lines for the same provider"""

    google_books_api_key: str = ""
    """Optional Google Books API key (works without key but has stricter rate limits)"""


class ArchiveSettings(BaseModel):
    search_url: str = "https://archive.org/advancedsearch.php"
    metadata_url: str = "https://archive.org/metadata"
    download_url: str = "https://archive.org/download"
    creator: str = "noovy library"
    rows: int = 200
    """Results per advanced search page"""
    access_key: str = ""
    secret_key: str = ""
    timeout: float = 10.0
    files_timeout: float = 6.0


class BackblazeSettings(BaseModel):
    endpoint: str = "https://s3.eu-central-003.backblazeb2.com"
    region: str = "eu-central-003"
    bucket: str = ""
    key_id: str = ""
    application_key: str = ""
    page_size: int = 1000
    signed_url_expiry: int = 3600
    """Lifetime (seconds) of presigned download URLs"""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(  # pyright: ignore[reportUnannotatedClassAttribute]
        env_prefix="NOOVY_",
        env_nested_delimiter="__",
        nested_model_default_partial_update=True,
        env_file=(".env.local", ".env"),
        extra="ignore",
    )

    app: ApplicationSettings = ApplicationSettings()
    catalog: CatalogSettings = CatalogSettings()
    metadata: MetadataSettings = MetadataSettings()
    archive: ArchiveSettings = ArchiveSettings()
    backblaze: BackblazeSettings = BackblazeSettings()
