"""Settings for correlation, propagation and downstream calls."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from importlib import metadata

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fastapi_request_correlation.exceptions import ConfigurationError
from fastapi_request_correlation.headers import UNKNOWN


@dataclass(frozen=True)
class ServiceTarget:
    """Downstream service an outbound call is addressed to."""

    name: str
    base_url: str


class CorrelationSettings(BaseSettings):
    """Environment-driven settings, prefixed with ``CORRELATION_``."""

    model_config = SettingsConfigDict(
        env_prefix="CORRELATION_", env_file=".env", extra="ignore"
    )

    # Service identity stamped on outbound calls
    service_name: str = "petstoreapp"
    app_version: str | None = None
    distribution_name: str = "fastapi-request-correlation"
    container_host: str | None = None

    # Downstream calls
    connect_timeout: float = Field(default=5.0, gt=0)
    read_timeout: float = Field(default=5.0, gt=0)
    follow_redirects: bool = True
    service_urls: dict[str, str] = Field(default_factory=dict)

    # Inbound handling
    session_cookie_name: str = "session"
    excluded_path_prefixes: list[str] = Field(
        default_factory=lambda: ["/content/", "/css/", "/js/", "/images/"]
    )

    # Logging
    log_level: str = "INFO"
    log_json_output: bool = True

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unsupported log level: {value}")
        return level

    def target(self, name: str) -> ServiceTarget:
        """Resolve a configured downstream service by name."""
        try:
            base_url = self.service_urls[name]
        except KeyError:
            raise ConfigurationError(
                f"No URL configured for downstream service {name!r}"
            ) from None
        return ServiceTarget(name=name, base_url=base_url.rstrip("/"))


@lru_cache(maxsize=1)
def get_settings() -> CorrelationSettings:
    return CorrelationSettings()


def resolve_app_version(settings: CorrelationSettings) -> str:
    """Configured version, else installed distribution version, else ``unknown``."""
    if settings.app_version:
        return settings.app_version
    try:
        return metadata.version(settings.distribution_name)
    except metadata.PackageNotFoundError:
        return UNKNOWN
