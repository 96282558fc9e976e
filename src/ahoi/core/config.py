"""Process-wide configuration for Ahoi API.

Settings are read once from ``AHOI_*`` environment variables (and an optional
``.env`` file) by the entry point and then passed to :class:`ahoi.Ahoi`.
Nothing in the package reads the environment on its own.
"""

from __future__ import annotations

import logging
import secrets

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ahoi.core.types import AccessPolicy

logger = logging.getLogger(__name__)


def _split_list(value: str) -> list[str]:
    """Split a comma or newline separated setting into clean items."""
    items = value.replace("\n", ",").split(",")
    return [item.strip() for item in items if item.strip()]


class Settings(BaseSettings):
    # Storage
    database_url: str = "sqlite:///./ahoi.db"
    echo: bool = False
    table_prefix: str = "ahoi_data_"

    # Tokens
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 7
    token_issuer: str = "ahoi-api"

    # HTTP
    allowed_origins: str = ""
    auth_policy: AccessPolicy = AccessPolicy.OWNERSHIP
    default_page_size: int = Field(20, ge=1)
    max_page_size: int = Field(100, ge=1)

    # Webhooks
    webhook_timeout: float = 15.0
    webhook_max_redirects: int = 5

    # Identity
    default_role: str = "subscriber"
    self_register_roles: str = "subscriber"
    profile_fields: str = "first_name,last_name,phone_number,company"

    # Media and mail
    media_root: str = "./media"
    media_base_url: str = "/media"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_from_email: str | None = None
    smtp_starttls: bool = True

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="AHOI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _ensure_secret(self) -> Settings:
        if not self.jwt_secret:
            logger.warning("AHOI_JWT_SECRET is not set; tokens will not survive a restart")
            self.jwt_secret = secrets.token_hex(32)
        return self

    @property
    def allowed_origin_list(self) -> list[str]:
        return _split_list(self.allowed_origins)

    @property
    def self_register_role_list(self) -> list[str]:
        return _split_list(self.self_register_roles)

    @property
    def profile_field_list(self) -> list[str]:
        return _split_list(self.profile_fields)


__all__ = ["Settings"]
