"""
Client configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at construction.

Every option has a documented default and can be overridden three ways:
  1. DOCPARSE_* environment variables (or a local .env file)
  2. keyword arguments to ClientSettings(...) / DocParseClient(...)
  3. per-call overrides via ClientSettings.with_overrides(...)

There is no module-level settings instance: each client owns
the ClientSettings it was constructed with.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docparse._version import __version__


DEFAULT_BASE_URL = "https://api.docparse.dev"


class ConfigurationError(Exception):
    """Raised before any network call when the client cannot be configured."""


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DOCPARSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Service endpoint + auth
    # ------------------------------------------------------------------
    api_key:  str = ""                    # bearer token; DOCPARSE_API_KEY
    base_url: str = DEFAULT_BASE_URL

    # ------------------------------------------------------------------
    # Timeouts (seconds)
    # ------------------------------------------------------------------
    timeout:     float = Field(30.0, gt=0)    # single HTTP request
    job_timeout: float = Field(600.0, gt=0)   # whole await_completion budget

    # ------------------------------------------------------------------
    # Retry policy caps
    # ------------------------------------------------------------------
    max_retries: int   = Field(3, ge=0)      # classifier-driven retries
    retry_delay: float = Field(1.0, ge=0)    # base delay for linear/exponential backoff

    # Low-level connection retries inside the transport (DNS, TCP reset, TLS)
    transport_retries:     int   = Field(3, ge=1)
    transport_retry_delay: float = Field(0.5, ge=0)

    # ------------------------------------------------------------------
    # Polling + concurrency
    # ------------------------------------------------------------------
    poll_interval:  float = Field(2.0, gt=0)
    max_concurrent: int   = Field(5, ge=1)

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------
    user_agent: str = f"docparse-python/{__version__}"
    log_level:  str = "INFO"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {value!r}")
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return str(value).upper()

    def with_overrides(self, **overrides) -> "ClientSettings":
        """
        Return a copy with the non-None overrides applied.
        Values are re-validated so a bad per-call override fails loudly.
        """
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        unknown = set(updates) - set(type(self).model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        return type(self)(**{**self.model_dump(), **updates})

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(
                "No API key configured. Pass api_key=... or set DOCPARSE_API_KEY."
            )
        return self.api_key
