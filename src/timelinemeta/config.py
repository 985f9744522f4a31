"""Configuration management for timelinemeta."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from timelinemeta.models.update import DEFAULT_SOURCES, Provider


class ProviderConfig(BaseModel):
    """Settings for a single metadata provider."""

    enabled: bool = Field(default=True, description="Include provider in lookups")
    api_key: Optional[str] = Field(
        default=None, description="API key (overrides the repository service key)"
    )
    api_key_path: Optional[str] = Field(
        default=None, description="Repository path of the service key content"
    )
    base_url: str = Field(..., description="API base URL")
    timeout_seconds: float = Field(default=10.0, description="HTTP timeout")


def _omdb_defaults() -> ProviderConfig:
    return ProviderConfig(
        base_url="https://www.omdbapi.com/",
        api_key_path="/Root/System/Settings/ServiceKeys/OMDb",
    )


def _tmdb_defaults() -> ProviderConfig:
    return ProviderConfig(
        base_url="https://api.themoviedb.org/3",
        api_key_path="/Root/System/Settings/ServiceKeys/TMDB",
    )


def _trakt_defaults() -> ProviderConfig:
    return ProviderConfig(
        base_url="https://api.trakt.tv",
        api_key_path="/Root/System/Settings/ServiceKeys/Trakt",
    )


class ProvidersConfig(BaseModel):
    """Per-provider settings."""

    omdb: ProviderConfig = Field(default_factory=_omdb_defaults)
    tmdb: ProviderConfig = Field(default_factory=_tmdb_defaults)
    trakt: ProviderConfig = Field(default_factory=_trakt_defaults)

    def for_provider(self, provider: Provider) -> ProviderConfig:
        return getattr(self, provider.value)


class RateLimitConfig(BaseModel):
    """Retry and backoff settings for throttled providers."""

    max_attempts: int = Field(default=3, ge=1, description="Attempts per provider call")
    max_wait_seconds: float = Field(
        default=60.0,
        description="Longest backoff slept in-process; longer ones block the provider",
    )
    default_backoff_seconds: Dict[str, float] = Field(
        default_factory=lambda: {
            "omdb": 24 * 60 * 60,  # daily quota
            "tmdb": 10.0,
            "trakt": 60.0,
        },
        description="Backoff recorded when a provider gives no retry-after",
    )
    fallback_backoff_seconds: float = Field(default=60.0, description="Backoff for other providers")

    @field_validator("default_backoff_seconds")
    @classmethod
    def validate_providers(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Validate backoff keys name known providers."""
        known = {p.value for p in Provider}
        unknown = set(v) - known
        if unknown:
            raise ValueError(f"Unknown providers in backoff table: {sorted(unknown)}")
        return v

    def backoff_for(self, provider: Provider) -> float:
        return self.default_backoff_seconds.get(provider.value, self.fallback_backoff_seconds)


class ReconciliationConfig(BaseModel):
    """Batch runner settings."""

    inter_item_delay_seconds: float = Field(default=0.1, ge=0, description="Pause between records")
    cover_width: int = Field(default=360, description="Binary cover width in px")
    cover_height: int = Field(default=480, description="Binary cover height in px")
    cover_quality: int = Field(default=92, ge=1, le=100, description="JPEG quality")
    preferred_sources: List[Provider] = Field(
        default_factory=lambda: list(DEFAULT_SOURCES),
        description="Default provider order",
    )


class StoreConfig(BaseModel):
    """Content repository connection."""

    repository_url: str = Field(default="http://localhost:5000", description="Repository URL")
    access_token: Optional[str] = Field(default=None, description="Bearer token")
    timeout_seconds: float = Field(default=30.0, description="HTTP timeout")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    format: str = Field(default="text", description="Log format (json or text)")
    level: str = Field(default="info", description="Log level")
    output: Optional[str] = Field(default=None, description="Log file path")

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        if v.lower() not in ("debug", "info", "warning", "error", "critical"):
            raise ValueError("Invalid log level")
        return v.lower()


class Config(BaseModel):
    """Main configuration model."""

    providers: ProvidersConfig = Field(
        default_factory=ProvidersConfig, description="Provider configuration"
    )
    rate_limit: RateLimitConfig = Field(
        default_factory=RateLimitConfig, description="Rate limit configuration"
    )
    reconciliation: ReconciliationConfig = Field(
        default_factory=ReconciliationConfig, description="Runner configuration"
    )
    store: StoreConfig = Field(default_factory=StoreConfig, description="Content store")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging configuration")

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            raw_config = yaml.safe_load(f)

        if raw_config is None:
            raw_config = {}

        raw_config = cls._substitute_env_vars(raw_config)

        return cls(**raw_config)

    @staticmethod
    def _substitute_env_vars(obj: Any) -> Any:
        """Recursively replace ${VAR_NAME} with os.environ['VAR_NAME']."""
        if isinstance(obj, dict):
            return {key: Config._substitute_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [Config._substitute_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            pattern = r"\$\{([^}]+)\}"

            def replace_var(match):
                var_name = match.group(1)
                value = os.environ.get(var_name)
                if value is None:
                    raise ValueError(
                        f"Environment variable '{var_name}' not found "
                        f"(referenced in configuration)"
                    )
                return value

            return re.sub(pattern, replace_var, obj)
        else:
            return obj

    @classmethod
    def from_defaults(cls) -> "Config":
        """Create configuration with default values."""
        return cls()


def load_config(path: Optional[str | Path] = None) -> Config:
    """Load configuration from file or use defaults.

    Args:
        path: Optional path to configuration file. If None, uses defaults.

    Returns:
        Config instance
    """
    if path is None:
        return Config.from_defaults()

    return Config.from_yaml(path)
