"""Pydantic models and loader for scraper configuration."""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional
from urllib.parse import urlparse

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .utils import parse_duration, parse_frequency, resolve_env

DEFAULT_MAX_CONNECTIONS = 5


class TlsConfig(BaseModel):
    """Client-side TLS settings for a Confluence target."""

    caFile: Optional[str] = None
    certFile: Optional[str] = None
    keyFile: Optional[str] = None
    insecureSkipVerify: bool = False

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def validate_cert_pair(self) -> "TlsConfig":
        """A client key is only usable together with its certificate."""
        if self.keyFile and not self.certFile:
            raise ValueError("tls.keyFile requires tls.certFile")
        return self


class TargetConfig(BaseModel):
    """Configuration for a single Confluence instance."""

    name: str
    url: str
    username: str = ""
    password: str = ""
    # Matches the plugin default; sample configs use a few seconds.
    httpTimeout: str = "1h"
    maxConnections: int = DEFAULT_MAX_CONNECTIONS
    frequency: Optional[str] = None
    tls: TlsConfig = Field(default_factory=TlsConfig)

    model_config = ConfigDict(extra="forbid")

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Require an absolute http(s) URL."""
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"url must be an absolute http(s) URL, got {value!r}")
        return value

    @field_validator("httpTimeout")
    @classmethod
    def validate_timeout(cls, value: str) -> str:
        """Reject timeouts that cannot be parsed."""
        parse_duration(value)
        return value

    @field_validator("frequency")
    @classmethod
    def validate_frequency(cls, value: Optional[str]) -> Optional[str]:
        """Reject frequencies that cannot be parsed."""
        if value is not None:
            parse_frequency(value)
        return value

    @property
    def timeout_seconds(self) -> float:
        """Request timeout in seconds."""
        return parse_duration(self.httpTimeout)

    @property
    def max_connections(self) -> int:
        """Concurrency gate size; non-positive values fall back to the default."""
        if self.maxConnections <= 0:
            return DEFAULT_MAX_CONNECTIONS
        return self.maxConnections


class ScraperSettings(BaseModel):
    """Top-level scraper settings."""

    serviceName: str = "confluence-otel-scraper"
    logLevel: str = "info"
    otelCollectorEndpoint: str
    otelTransport: Literal["grpc", "http"] = "grpc"
    enforceTls: bool = True
    dryRun: bool = False
    terminateGracefully: bool = True
    servicePort: int = 80
    enableAdminApi: bool = False
    adminSecretEnv: Optional[str] = None
    defaultFrequency: str = "1min"

    model_config = ConfigDict(extra="forbid")

    @field_validator("defaultFrequency")
    @classmethod
    def validate_default_frequency(cls, value: str) -> str:
        """Reject frequencies that cannot be parsed."""
        parse_frequency(value)
        return value


class AppConfig(BaseModel):
    """Root configuration object for the scraper."""

    scraper: ScraperSettings
    targets: List[TargetConfig]

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def validate_unique_names(self) -> "AppConfig":
        """Target names key jobs and admin routes, so they must be unique."""
        seen = set()
        for target in self.targets:
            if target.name in seen:
                raise ValueError(f"duplicate target name '{target.name}'")
            seen.add(target.name)
        return self

    def frequency_for(self, target: TargetConfig) -> str:
        """Return the effective gather frequency for a target."""
        return target.frequency or self.scraper.defaultFrequency


def load_config(path: str | Path) -> AppConfig:
    """Load and validate scraper configuration from YAML.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        FileNotFoundError: If the file is missing.
        ValueError: If validation fails.
    """
    raw_path = Path(path)
    if not raw_path.exists():
        raise FileNotFoundError(f"Config file not found at {raw_path}")
    with raw_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    data = resolve_env(data)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
