"""Adapter configuration loaded from the environment."""

import os
from typing import Literal, Mapping, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from .core.policy import DEFAULT_MAX_PAYMENT, parse_max_payment
from .types.errors import ConfigError


class AdapterConfig(BaseModel):
    """Configuration for the sentiment402 MCP adapter.

    Field aliases are the environment variable names.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    api_base_url: str = Field(alias="SENTIMENT402_API_BASE_URL")
    api_version: Literal["v1", "v2"] = Field(default="v1", alias="SENTIMENT402_API_VERSION")
    cache_ttl_ms: int = Field(default=60_000, gt=0, alias="SENTIMENT402_CACHE_TTL_MS")
    user_agent: str = Field(default="sentiment402-mcp/0.1.0", alias="SENTIMENT402_USER_AGENT")
    x402_private_key: Optional[SecretStr] = Field(default=None, alias="SENTIMENT402_X402_PRIVATE_KEY")
    x402_max_payment: int = Field(default=DEFAULT_MAX_PAYMENT, alias="SENTIMENT402_X402_MAX_PAYMENT")
    http_timeout_seconds: float = Field(default=30.0, gt=0, alias="SENTIMENT402_HTTP_TIMEOUT_SECONDS")

    @field_validator("api_base_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("Invalid url")
        return value

    @field_validator("x402_max_payment", mode="before")
    @classmethod
    def _max_payment(cls, value: object) -> int:
        try:
            return parse_max_payment(value)
        except ConfigError as e:
            raise ValueError(str(e)) from e

    @field_validator("x402_private_key", mode="before")
    @classmethod
    def _blank_key(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def load_config(env: Optional[Mapping[str, str]] = None) -> AdapterConfig:
    """Load and validate configuration.

    Args:
        env: Variables to read; defaults to os.environ after loading a .env file

    Returns:
        Validated AdapterConfig

    Raises:
        ConfigError: With one "<variable>: <problem>" line per issue
    """
    if env is None:
        load_dotenv()
        env = os.environ

    try:
        return AdapterConfig.model_validate(dict(env))
    except ValidationError as e:
        message = "\n".join(
            f"{'.'.join(str(part) for part in issue['loc'])}: {issue['msg']}"
            for issue in e.errors()
        )
        raise ConfigError(f"Invalid MCP adapter config:\n{message}") from e
