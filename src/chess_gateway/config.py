import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from chess_gateway.logging import LogLevel, get_logger

logger = get_logger("chess_gateway.config")


class GatewayConfig(BaseModel):
    upstream_base_url: str = Field(
        default="https://lichess.org/api", description="Base URL of the upstream REST API"
    )
    site_url: str = Field(
        default="https://lichess.org", description="Public site URL used to build viewer links"
    )
    # Static credentials, read once per process
    api_token: Optional[str] = Field(
        default=None, description="Bearer token attached to routes that require auth"
    )
    account_id: Optional[str] = Field(
        default=None, description="Account identifier used by the account overview"
    )
    request_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Timeout for each outbound HTTP call (seconds)"
    )
    log_level: LogLevel = LogLevel.INFO

    @field_validator("upstream_base_url", "site_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @field_validator("api_token", "account_id")
    @classmethod
    def blank_as_missing(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @property
    def has_api_token(self) -> bool:
        return self.api_token is not None


# Environment variable -> (config field, type)
ENV_FIELD_MAPPINGS = {
    "LICHESS_API_KEY": ("api_token", str),
    "LICHESS_ACCOUNT_ID": ("account_id", str),
    "GATEWAY_UPSTREAM_BASE_URL": ("upstream_base_url", str),
    "GATEWAY_SITE_URL": ("site_url", str),
    "GATEWAY_REQUEST_TIMEOUT_SECONDS": ("request_timeout_seconds", float),
    "GATEWAY_LOG_LEVEL": ("log_level", LogLevel),
}

# Accepted when LICHESS_API_KEY is not set
TOKEN_FALLBACK_ENV = "LICHESS_OAUTH_TOKEN"


def load_config(config_path: str = "chess_gateway.yml") -> GatewayConfig:
    """Load configuration from YAML file with environment variable overrides."""
    config_data: Dict[str, Any] = {}

    try:
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        pass
    except (OSError, yaml.YAMLError) as e:
        logger.warning(
            f"Failed to load config from {config_path}, using defaults",
            metadata={"config_path": config_path, "error": str(e)},
        )

    _load_from_environment(config_data)

    return GatewayConfig(**config_data)


def _load_from_environment(config_data: Dict[str, Any]):
    """Apply environment overrides on top of file values."""
    if not os.getenv("LICHESS_API_KEY") and os.getenv(TOKEN_FALLBACK_ENV):
        config_data["api_token"] = os.environ[TOKEN_FALLBACK_ENV]

    for env_key, (config_field, field_type) in ENV_FIELD_MAPPINGS.items():
        env_value = os.getenv(env_key)
        if not env_value:
            continue

        try:
            if field_type is LogLevel:
                config_data[config_field] = LogLevel(env_value.upper())
            else:
                config_data[config_field] = field_type(env_value)
        except (ValueError, TypeError) as e:
            logger.warning(
                f"Invalid value for {env_key}: {env_value}",
                metadata={"field": config_field, "error": str(e)},
            )
