"""
LaikaTest client configuration

Settings come from the environment (prefix LAIKATEST_) via pydantic-settings;
ClientConfig is the validated per-client option set.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from laikatest.core.errors import ValidationError

DEFAULT_BASE_URL = "https://api.laikatest.com"
DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_CACHE_TTL_MS = 30 * 60 * 1000  # 30 minutes

# Not configurable
SWEEP_INTERVAL_SECONDS = 5 * 60

USER_AGENT = "LaikaTestClient/1.0.0"


class Settings(BaseSettings):
    """Environment configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LAIKATEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    API_KEY: str = ""
    BASE_URL: str = DEFAULT_BASE_URL
    TIMEOUT_MS: int = DEFAULT_TIMEOUT_MS
    CACHE_TTL_MS: int = DEFAULT_CACHE_TTL_MS

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


class ClientConfig(BaseModel):
    """
    Options for one ExperimentClient

    Every option with its default. Validated once, at construction.
    """

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., description="Bearer token sent with every request")
    base_url: str = Field(DEFAULT_BASE_URL, description="Service root URL")
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, gt=0, description="Per-request timeout")
    cache_ttl_ms: int = Field(DEFAULT_CACHE_TTL_MS, gt=0, description="Assignment cache TTL")

    @field_validator("api_key")
    @classmethod
    def _api_key_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("API key is required")
        return value

    @field_validator("base_url")
    @classmethod
    def _base_url_is_http(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return value.rstrip("/")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000

    @classmethod
    def build(
        cls,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        cache_ttl_ms: Optional[int] = None,
    ) -> "ClientConfig":
        """
        Build a config, applying defaults for omitted options

        Raises:
            ValidationError: any option is missing or out of range
        """
        options = {"api_key": api_key or ""}
        if base_url is not None:
            options["base_url"] = base_url
        if timeout_ms is not None:
            options["timeout_ms"] = timeout_ms
        if cache_ttl_ms is not None:
            options["cache_ttl_ms"] = cache_ttl_ms

        try:
            return cls(**options)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            message = first["msg"].removeprefix("Value error, ")
            raise ValidationError(f"{field}: {message}") from e

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ClientConfig":
        settings = settings or get_settings()
        return cls.build(
            api_key=settings.API_KEY,
            base_url=settings.BASE_URL,
            timeout_ms=settings.TIMEOUT_MS,
            cache_ttl_ms=settings.CACHE_TTL_MS,
        )
