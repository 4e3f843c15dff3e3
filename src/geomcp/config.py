"""
Configuration for geomcp.

Configuration is read once at startup from an optional YAML file and the
environment, then frozen. Nothing re-reads it while the server runs.

Sources, highest precedence first:
    1. Values in the YAML file passed to load_config()
    2. Environment variables: GEOMCP_<FIELD>, nested with "__"
       (GEOMCP_HTTP__MAX_ATTEMPTS=5); the token also from MAPBOX_ACCESS_TOKEN
    3. Defaults below

Example YAML:
    api_endpoint: https://api.mapbox.com/
    http:
      max_attempts: 3
      min_delay_ms: 200
      max_delay_ms: 2000
      timeout_seconds: 30
    tracing:
      enabled: true
      sink: log
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from geomcp import __version__
from geomcp.errors import ConfigError, MissingAccessTokenError
from geomcp.http.identification import ClientIdentity
from geomcp.http.retry import RetryConfig

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def normalize_log_level(value: str) -> str:
    """Upper-case a level name, rejecting unknown ones."""
    level = value.upper()
    if level not in LOG_LEVELS:
        msg = f"Unknown log level: {value}"
        raise ValueError(msg)
    return level


class HttpConfig(BaseModel):
    """
    Outbound HTTP settings.

    Attributes:
        max_attempts: Total attempts per request (1 initial + retries)
        min_delay_ms: Shortest wait between attempts
        max_delay_ms: Longest wait between attempts
        timeout_seconds: Deadline for one physical attempt
        max_response_bytes: Largest response body accepted
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1, le=10)
    min_delay_ms: int = Field(default=200, gt=0)
    max_delay_ms: int = Field(default=2000, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    max_response_bytes: int = Field(default=10 * 1024 * 1024, gt=0)

    @model_validator(mode="after")
    def validate_delays(self) -> "HttpConfig":
        """min_delay_ms must not exceed max_delay_ms."""
        if self.min_delay_ms > self.max_delay_ms:
            msg = "min_delay_ms must be <= max_delay_ms"
            raise ValueError(msg)
        return self


class TracingConfig(BaseModel):
    """
    Span recording settings.

    Attributes:
        enabled: Record spans for outbound calls
        sink: Where spans go: "log" (structured log events) or "memory"
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    sink: Literal["log", "memory"] = "log"


class ServerConfig(BaseSettings):
    """
    Complete server configuration.

    Attributes:
        access_token: API access token (secret)
        api_endpoint: Base URL of the geospatial API, with trailing slash
        client_name: Product identifier sent in User-Agent
        client_version: Build version sent in User-Agent
        log_level: structlog filtering level
        log_json: Render logs as JSON instead of console lines
        http: Outbound HTTP settings
        tracing: Span recording settings
    """

    model_config = SettingsConfigDict(
        env_prefix="GEOMCP_",
        env_nested_delimiter="__",
        frozen=True,
        extra="forbid",
    )

    access_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("access_token", "GEOMCP_ACCESS_TOKEN", "MAPBOX_ACCESS_TOKEN"),
    )
    api_endpoint: str = "https://api.mapbox.com/"
    client_name: str = Field(default="geomcp", min_length=1)
    client_version: str = Field(default=__version__, min_length=1)
    log_level: str = "INFO"
    log_json: bool = False
    http: HttpConfig = Field(default_factory=HttpConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)

    @field_validator("api_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Require an absolute http(s) URL and normalize the trailing slash."""
        if not v.startswith(("http://", "https://")):
            msg = f"api_endpoint must be an http(s) URL: {v}"
            raise ValueError(msg)
        return v if v.endswith("/") else v + "/"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard logging level names."""
        return normalize_log_level(v)

    def identity(self) -> ClientIdentity:
        """Identification used by the User-Agent policy."""
        return ClientIdentity(name=self.client_name, version=self.client_version)

    def retry_config(self) -> RetryConfig:
        """Retry limits in the units the retry policy uses."""
        return RetryConfig(
            max_attempts=self.http.max_attempts,
            min_delay=self.http.min_delay_ms / 1000,
            max_delay=self.http.max_delay_ms / 1000,
            attempt_timeout=self.http.timeout_seconds,
        )

    def require_token(self) -> str:
        """
        Return the access token.

        Raises:
            MissingAccessTokenError: If no token is configured
        """
        if self.access_token is None or not self.access_token.get_secret_value():
            raise MissingAccessTokenError(source="env")
        return self.access_token.get_secret_value()

    def with_overrides(
        self,
        *,
        log_level: str | None = None,
        tracing: bool | None = None,
    ) -> "ServerConfig":
        """
        Return a copy with command-line overrides applied.

        Raises:
            ValueError: If log_level is not a known level name
        """
        update: dict[str, Any] = {}
        if log_level is not None:
            update["log_level"] = normalize_log_level(log_level)
        if tracing is not None:
            update["tracing"] = self.tracing.model_copy(update={"enabled": tracing})
        return self.model_copy(update=update) if update else self


def load_config_from_dict(data: dict[str, Any] | None, source: str = "<dict>") -> ServerConfig:
    """
    Validate configuration values (environment fills the gaps).

    Raises:
        ConfigError: If the values fail validation
    """
    if data is not None and not isinstance(data, dict):
        raise ConfigError(message="Configuration must be a mapping", source=source)
    try:
        return ServerConfig(**(data or {}))
    except ValidationError as e:
        raise ConfigError(message=f"Invalid configuration: {e}", source=source) from e


def load_config(path: Path | str | None = None) -> ServerConfig:
    """
    Load configuration from a YAML file, or from the environment alone.

    Args:
        path: Path to the YAML file, or None

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    if path is None:
        return load_config_from_dict(None, source="env")

    path = Path(path)
    if not path.exists():
        raise ConfigError(message=f"Config file not found: {path}", source=str(path))

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(message=f"Invalid YAML: {e}", source=str(path)) from e

    return load_config_from_dict(data, source=str(path))


def load_config_from_string(content: str) -> ServerConfig:
    """Load configuration from a YAML string."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(message=f"Invalid YAML: {e}", source="<string>") from e
    return load_config_from_dict(data, source="<string>")
