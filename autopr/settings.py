"""Application settings."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from autopr.exceptions import ConfigurationError

_REPO_PART = re.compile(r"^[A-Za-z0-9_.-]+$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server settings
    host: str = Field(default="127.0.0.1", alias="AUTOPR_HOST")
    port: int = Field(default=8000, alias="AUTOPR_PORT")
    log_level: str = Field(default="info", alias="AUTOPR_LOG_LEVEL")
    log_json: bool = Field(default=False, alias="AUTOPR_LOG_JSON")

    # GitHub settings - use SecretStr to prevent accidental logging
    github_token: Optional[SecretStr] = Field(default=None, alias="GITHUB_TOKEN")
    github_owner: Optional[str] = Field(default=None, alias="AUTOPR_GITHUB_OWNER")
    github_repo: Optional[str] = Field(default=None, alias="AUTOPR_GITHUB_REPO")
    github_base_branch: str = Field(default="main", alias="AUTOPR_GITHUB_BASE_BRANCH")
    github_api_url: str = Field(default="https://api.github.com", alias="AUTOPR_GITHUB_API_URL")
    github_user_agent: str = Field(default="autopr", alias="AUTOPR_GITHUB_USER_AGENT")
    github_api_version: str = Field(default="2022-11-28", alias="AUTOPR_GITHUB_API_VERSION")
    github_timeout_seconds: float = Field(default=60.0, alias="AUTOPR_GITHUB_TIMEOUT_SECONDS")
    github_root_path: str = Field(default="", alias="AUTOPR_GITHUB_ROOT_PATH")
    exclude_patterns: list[str] = Field(default=[], alias="AUTOPR_EXCLUDE_PATTERNS")
    branch_prefix: str = Field(default="autopr", alias="AUTOPR_BRANCH_PREFIX")

    # LLM settings
    llm_provider: str = Field(default="mock", alias="AUTOPR_LLM_PROVIDER")
    llm_model: str = Field(default="gpt-4o", alias="AUTOPR_LLM_MODEL")
    llm_temperature: Optional[float] = Field(default=None, alias="AUTOPR_LLM_TEMPERATURE")

    # OpenAI settings
    openai_api_key: Optional[SecretStr] = Field(default=None, alias="OPENAI_API_KEY")
    openai_api_base: Optional[str] = Field(default=None, alias="OPENAI_API_BASE")

    # OpenAI Compatible settings
    openai_compatible_base_url: Optional[str] = Field(
        default=None, alias="AUTOPR_OPENAI_COMPATIBLE_BASE_URL"
    )
    openai_compatible_api_key: SecretStr = Field(
        default=SecretStr("sk-no-key-required"),
        alias="AUTOPR_OPENAI_COMPATIBLE_API_KEY",
    )

    # Session settings
    max_sessions: int = Field(default=100, alias="AUTOPR_MAX_SESSIONS")

    # Observability settings
    otel_enabled: bool = Field(default=False, alias="AUTOPR_OTEL_ENABLED")
    otel_endpoint: Optional[str] = Field(default=None, alias="AUTOPR_OTEL_ENDPOINT")
    metrics_enabled: bool = Field(default=False, alias="AUTOPR_METRICS_ENABLED")
    metrics_port: int = Field(default=9090, alias="AUTOPR_METRICS_PORT")

    @property
    def repository(self) -> str:
        """Return ``owner/name`` of the target repository.

        Raises:
            ConfigurationError: If owner or name is not configured.
        """
        if not self.github_owner:
            raise ConfigurationError("github_owner", "AUTOPR_GITHUB_OWNER is not set")
        if not self.github_repo:
            raise ConfigurationError("github_repo", "AUTOPR_GITHUB_REPO is not set")
        return f"{self.github_owner}/{self.github_repo}"

    @field_validator("port", "metrics_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v

    @field_validator("max_sessions")
    @classmethod
    def validate_max_sessions(cls, v: int) -> int:
        """Validate max_sessions is positive."""
        if v < 1:
            raise ValueError(f"max_sessions must be at least 1, got {v}")
        return v

    @field_validator("github_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError(f"github_timeout_seconds must be positive, got {v}")
        return v

    @field_validator("github_owner", "github_repo")
    @classmethod
    def validate_repository_part(cls, v: Optional[str]) -> Optional[str]:
        """Reject owner/repo values that would escape the API path."""
        if v is not None and not _REPO_PART.match(v):
            raise ValueError(f"Invalid repository identifier: {v!r}")
        return v

    @field_validator("branch_prefix")
    @classmethod
    def validate_branch_prefix(cls, v: str) -> str:
        """Branch prefix must be a usable git ref fragment."""
        v = v.strip().strip("/")
        if not v or " " in v or ".." in v:
            raise ValueError(f"Invalid branch prefix: {v!r}")
        return v


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    Loads configuration from YAML files first, then environment variables.
    YAML config files (in order of precedence):
    1. ~/.autopr/config.yaml (global)
    2. .autopr/config.yaml (project-level)
    Environment variables override YAML config.
    """
    global _settings
    if _settings is None:
        import os

        from autopr.config_loader import ConfigLoader

        loader = ConfigLoader()
        for key, value in loader.to_env_vars().items():
            if key not in os.environ:
                os.environ[key] = value

        _settings = Settings()
    return _settings
