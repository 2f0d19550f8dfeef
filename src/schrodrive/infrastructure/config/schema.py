"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
IndexerChoice = Literal["auto", "jackett", "prowlarr"]
DebridName = Literal["torbox", "realdebrid"]


def split_csv(value: Any) -> list[str]:
    """Split ``"a, b,,c"`` into ``["a", "b", "c"]``; lists pass through trimmed."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        items = [str(value)]
    return [item.strip() for item in items if item and item.strip()]


class IndexerBackendConfig(BaseModel):
    """Connection settings for one indexer backend (Jackett or Prowlarr)."""

    url: str = Field(default="", description="Base URL, e.g. http://localhost:9696")
    api_key: str = Field(default="", description="Backend API key.")
    categories: list[str] = Field(
        default_factory=list,
        description="Default category ids applied when a search names none.",
    )
    indexer_ids: list[str] = Field(
        default_factory=list,
        description="Restrict searches to these indexer ids (empty = all).",
    )
    search_limit: int = Field(default=100, description="Max results per search.")
    timeout_seconds: float = Field(
        default=30.0,
        description="Per-request timeout; clamped to 5..120 seconds.",
    )
    redirect_max_hops: int = Field(
        default=5,
        description="Redirect hops when resolving a magnet; clamped to 1..10.",
    )

    @field_validator("categories", "indexer_ids", mode="before")
    @classmethod
    def _split_lists(cls, v: Any) -> list[str]:
        return split_csv(v)

    @field_validator("url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("search_limit")
    @classmethod
    def _validate_limit(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("search_limit must be > 0")
        return v

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)


class IndexerConfig(BaseModel):
    provider: IndexerChoice = Field(
        default="auto",
        description="'auto' prefers Jackett, then Prowlarr.",
    )
    jackett: IndexerBackendConfig = Field(
        default_factory=lambda: IndexerBackendConfig(timeout_seconds=10.0)
    )
    prowlarr: IndexerBackendConfig = Field(
        default_factory=lambda: IndexerBackendConfig(timeout_seconds=120.0)
    )

    @field_validator("provider", mode="before")
    @classmethod
    def _lower_provider(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or "auto"
        return v


class DebridConfig(BaseModel):
    providers: list[DebridName] = Field(
        default_factory=lambda: ["torbox", "realdebrid"],
        description="Enabled debrid providers, in preference order.",
    )
    torbox_api_key: str = ""
    torbox_base_url: str = "https://api.torbox.app"
    rd_access_token: str = ""
    rd_api_base: str = "https://api.real-debrid.com/rest/1.0"
    timeout_seconds: float = Field(default=20.0, description="Per-request timeout.")

    @field_validator("providers", mode="before")
    @classmethod
    def _split_providers(cls, v: Any) -> list[str]:
        return [p.lower() for p in split_csv(v)]

    @field_validator("torbox_base_url", "rd_api_base", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


class GatewayConfig(BaseModel):
    backoff_base_seconds: float = Field(default=60.0, gt=0)
    backoff_max_seconds: float = Field(default=900.0, gt=0)
    cache_ttl_seconds: float = Field(default=60.0, ge=0)
    default_delay_seconds: float = Field(default=1.0, ge=0)
    throttle_delays: dict[str, float] = Field(
        default_factory=lambda: {
            "torbox": 5.0,
            "realdebrid": 0.5,
            "jackett": 0.25,
            "prowlarr": 0.25,
            "overseerr": 0.5,
        },
        description="Minimum seconds between requests, per provider.",
    )

    @model_validator(mode="after")
    def _check_cap(self) -> "GatewayConfig":
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ValueError("backoff_max_seconds must be >= backoff_base_seconds")
        return self


class OverseerrConfig(BaseModel):
    url: str = Field(default="", description="Overseerr API base, e.g. http://host:5055/api/v1")
    api_key: str = ""
    webhook_auth: str = Field(
        default="",
        description="Expected Authorization header on webhook calls (empty = open).",
    )
    poll_interval_seconds: float = Field(default=30.0, description="Floored at 5 seconds.")
    poll_take: int = Field(default=50, gt=0)
    processed_capacity: int = Field(default=1000, gt=0)

    @field_validator("url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


class ScannerConfig(BaseModel):
    interval_seconds: float = Field(default=600.0, description="Floored at min_interval_seconds.")
    min_interval_seconds: float = Field(default=60.0, gt=0)


class ServicesConfig(BaseModel):
    """Which background services run next to the HTTP app."""

    run_webhook: bool = True
    run_poller: bool = False
    run_dead_scanner: bool = Field(default=False, description="Scan once at startup.")
    run_dead_scanner_watch: bool = Field(default=False, description="Scan on an interval.")


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (indexer/debrid/gateway/overseerr/...).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    app_name: str = Field(default="schrodrive", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )
    http_user_agent: str = Field(default="SchroDrive/0.1.0")

    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    debrid: DebridConfig = Field(default_factory=DebridConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    overseerr: OverseerrConfig = Field(default_factory=OverseerrConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    services: ServicesConfig = Field(default_factory=ServicesConfig)

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self, *, mask_secrets: bool = True) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        data = self.model_dump(exclude={"log_level", "log_format"})
        data["logging"] = {"level": self.log_level, "format": self.log_format}
        if mask_secrets:
            for section, key in _SECRET_FIELDS:
                if data[section].get(key):
                    data[section][key] = "***"
            for backend in ("jackett", "prowlarr"):
                if data["indexer"][backend].get("api_key"):
                    data["indexer"][backend]["api_key"] = "***"
        return data


_SECRET_FIELDS: tuple[tuple[str, str], ...] = (
    ("debrid", "torbox_api_key"),
    ("debrid", "rd_access_token"),
    ("overseerr", "api_key"),
    ("overseerr", "webhook_auth"),
)


def _env(name: str) -> AliasChoices:
    """Accept both ``SCHRODRIVE_<NAME>`` and the bare legacy ``<NAME>``."""
    return AliasChoices(f"SCHRODRIVE_{name}", name)


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read SCHRODRIVE_* variables (and the
      bare names used by existing deployments), converts to dict of set values,
      merges into YAML/defaults, then validates AppConfig.

    Supported env var examples (flat, explicit):
    - SCHRODRIVE_PROWLARR_URL or PROWLARR_URL
    - SCHRODRIVE_TORBOX_API_KEY or TORBOX_API_KEY
    - SCHRODRIVE_PROVIDERS or PROVIDERS ("torbox,realdebrid")
    - SCHRODRIVE_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHRODRIVE_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None
    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    indexer_provider: Optional[str] = Field(default=None, validation_alias=_env("INDEXER_PROVIDER"))

    # Lists stay plain strings here; comma splitting happens in the models.
    jackett_url: Optional[str] = Field(default=None, validation_alias=_env("JACKETT_URL"))
    jackett_api_key: Optional[str] = Field(default=None, validation_alias=_env("JACKETT_API_KEY"))
    jackett_categories: Optional[str] = Field(default=None, validation_alias=_env("JACKETT_CATEGORIES"))
    jackett_indexer_ids: Optional[str] = Field(default=None, validation_alias=_env("JACKETT_INDEXER_IDS"))
    jackett_search_limit: Optional[int] = Field(default=None, validation_alias=_env("JACKETT_SEARCH_LIMIT"))
    jackett_timeout_ms: Optional[int] = Field(default=None, validation_alias=_env("JACKETT_TIMEOUT_MS"))
    jackett_redirect_max_hops: Optional[int] = Field(
        default=None, validation_alias=_env("JACKETT_REDIRECT_MAX_HOPS")
    )

    prowlarr_url: Optional[str] = Field(default=None, validation_alias=_env("PROWLARR_URL"))
    prowlarr_api_key: Optional[str] = Field(default=None, validation_alias=_env("PROWLARR_API_KEY"))
    prowlarr_categories: Optional[str] = Field(default=None, validation_alias=_env("PROWLARR_CATEGORIES"))
    prowlarr_indexer_ids: Optional[str] = Field(
        default=None, validation_alias=_env("PROWLARR_INDEXER_IDS")
    )
    prowlarr_search_limit: Optional[int] = Field(
        default=None, validation_alias=_env("PROWLARR_SEARCH_LIMIT")
    )
    prowlarr_timeout_ms: Optional[int] = Field(default=None, validation_alias=_env("PROWLARR_TIMEOUT_MS"))
    prowlarr_redirect_max_hops: Optional[int] = Field(
        default=None, validation_alias=_env("PROWLARR_REDIRECT_MAX_HOPS")
    )

    providers: Optional[str] = Field(default=None, validation_alias=_env("PROVIDERS"))
    torbox_api_key: Optional[str] = Field(default=None, validation_alias=_env("TORBOX_API_KEY"))
    torbox_base_url: Optional[str] = Field(default=None, validation_alias=_env("TORBOX_BASE_URL"))
    rd_access_token: Optional[str] = Field(default=None, validation_alias=_env("RD_ACCESS_TOKEN"))
    rd_api_base: Optional[str] = Field(default=None, validation_alias=_env("RD_API_BASE"))

    overseerr_url: Optional[str] = Field(default=None, validation_alias=_env("OVERSEERR_URL"))
    overseerr_api_key: Optional[str] = Field(default=None, validation_alias=_env("OVERSEERR_API_KEY"))
    overseerr_auth: Optional[str] = Field(default=None, validation_alias=_env("OVERSEERR_AUTH"))
    poll_interval_seconds: Optional[float] = Field(default=None, validation_alias=_env("POLL_INTERVAL_S"))

    dead_scan_interval_seconds: Optional[float] = Field(
        default=None, validation_alias=_env("DEAD_SCAN_INTERVAL_S")
    )

    run_webhook: Optional[bool] = Field(default=None, validation_alias=_env("RUN_WEBHOOK"))
    run_poller: Optional[bool] = Field(default=None, validation_alias=_env("RUN_POLLER"))
    run_dead_scanner: Optional[bool] = Field(default=None, validation_alias=_env("RUN_DEAD_SCANNER"))
    run_dead_scanner_watch: Optional[bool] = Field(
        default=None, validation_alias=_env("RUN_DEAD_SCANNER_WATCH")
    )

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        data = self.model_dump(exclude_none=True)
        for backend in ("jackett", "prowlarr"):
            timeout_ms = data.pop(f"{backend}_timeout_ms", None)
            if timeout_ms is not None:
                data[f"{backend}_timeout_seconds"] = timeout_ms / 1000.0
        return data
