"""Configuration management using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetrySettings(BaseSettings):
    """Retry policy settings shared by every backend call."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_attempts: int = Field(default=3, ge=1, description="Maximum attempts per request, first one included")
    base_delay_ms: int = Field(default=1000, ge=0, description="Initial backoff delay in milliseconds")
    max_delay_ms: int = Field(default=30000, ge=0, description="Upper bound for any backoff delay in milliseconds")


class SearchSettings(BaseSettings):
    """Flight search behaviour settings."""

    model_config = SettingsConfigDict(
        env_prefix="SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    per_call_timeout_ms: int = Field(default=30000, ge=1, description="Timeout for a single backend call")
    outer_timeout_ms: int | None = Field(
        default=None, ge=1, description="Optional deadline for a whole search, retries included"
    )
    auto_retry_guard_ms: int = Field(
        default=2000, ge=0, description="Delay before resuming a failed search once the network is back"
    )
    submit_throttle_ms: int = Field(
        default=2000, ge=0, description="Quiet period before a submitted search starts"
    )
    max_passengers: int = Field(default=10, ge=1, description="Maximum passengers per booking")
    search_endpoint: str = Field(default="/searchFlights", description="Flight search endpoint path")
    airports_endpoint: str = Field(default="/getAirports", description="Airport lookup endpoint path")


class BackendSettings(BaseSettings):
    """Backend connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="BACKEND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="https://www.skybeatscloud.upskillr.online",
        description="Base URL of the REST booking backend",
    )
    access_token: str = Field(default="", description="Bearer token forwarded to the backend")
    graphql_endpoint: str | None = Field(default=None, description="GraphQL endpoint used by the route handler")
    graphql_timeout: float = Field(default=7.0, gt=0, description="Upstream GraphQL timeout in seconds")


class NetworkSettings(BaseSettings):
    """Connectivity probe settings."""

    model_config = SettingsConfigDict(
        env_prefix="NETWORK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    probe_url: str | None = Field(default=None, description="URL probed to detect connectivity (disabled if unset)")
    probe_interval: float = Field(default=15.0, gt=0, description="Seconds between connectivity probes")
    probe_timeout: float = Field(default=5.0, gt=0, description="Timeout of a single probe in seconds")


class ApiSettings(BaseSettings):
    """Route handler server settings."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Host to bind the API server to")
    port: int = Field(default=8080, description="Port for the API server")


class MonitoringSettings(BaseSettings):
    """Monitoring and observability settings."""

    model_config = SettingsConfigDict(
        env_prefix="MONITORING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=False, description="Expose Prometheus metrics over HTTP")
    metrics_port: int = Field(default=8000, description="Port for Prometheus metrics endpoint")
    json_logs: bool = Field(default=True, description="Use JSON format for logs (recommended for production)")
    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    network: NetworkSettings = Field(default_factory=NetworkSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
