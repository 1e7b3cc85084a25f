"""Configuration settings for the signing coordinator."""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class SignerSettings(BaseSettings):
    """Signing coordinator configuration.

    All settings can be configured via environment variables with TECDSA_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TECDSA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    checksum_address: bool = Field(
        default=True,
        description="Derive EIP-55 checksummed addresses instead of lowercase hex",
    )
    local_round_timeout_ms: int = Field(
        default=30000,
        gt=0,
        description="How long a locally driven party waits for a peer message",
    )
    local_poll_interval_ms: int = Field(
        default=0,
        ge=0,
        description="Pause between local driver steps, in milliseconds",
    )


@lru_cache()
def get_settings() -> SignerSettings:
    """Get cached settings instance."""
    settings = SignerSettings()
    logger.debug(
        f"Signer settings loaded - checksum_address={settings.checksum_address}, "
        f"local_round_timeout_ms={settings.local_round_timeout_ms}"
    )
    return settings
