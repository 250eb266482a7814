"""
Application settings.

Loads configuration from environment variables using pydantic-settings.

Every vendor credential resolves from either ``NAME`` or ``NEXT_PUBLIC_NAME``
so the same ``.env`` file can be shared with the dashboard deployment.
"""

import re

from loguru import logger
from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def env_aliases(name: str) -> AliasChoices:
    """
    Build env lookup aliases for a variable with and without the public prefix.

    Args:
        name: Upper-case variable name, e.g. ``PRIVY_APP_ID``

    Returns:
        AliasChoices trying ``NAME`` first, then ``NEXT_PUBLIC_NAME``
    """
    return AliasChoices(name, f"NEXT_PUBLIC_{name}")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telegram Bot
    telegram_bot_token: str = Field(
        validation_alias=env_aliases("TELEGRAM_BOT_TOKEN")
    )
    telegram_bot_username: str | None = None
    telegram_webhook_secret: str | None = Field(
        default=None,
        description="Secret token Telegram echoes in X-Telegram-Bot-Api-Secret-Token",
    )
    app_url: str | None = Field(
        default=None,
        validation_alias=env_aliases("APP_URL"),
        description="Public base URL used to register the Telegram webhook",
    )

    # Database
    database_url: str = Field(validation_alias=env_aliases("DATABASE_URL"))
    database_echo: bool = False

    # Redis (rate cache). In-process cache is used when unset.
    redis_url: str | None = None

    # Admin
    admin_telegram_ids: str = ""  # Comma-separated list
    support_username: str = "hedwig_support"

    # Network mode: "testnet" (Base Sepolia / Solana devnet) or "mainnet"
    network_mode: str = Field(
        default="testnet",
        validation_alias=env_aliases("NETWORK_MODE"),
    )

    # Chain RPC endpoints
    base_rpc_url: str = Field(
        default="https://sepolia.base.org",
        validation_alias=env_aliases("BASE_RPC_URL"),
    )
    ethereum_rpc_url: str = Field(
        default="https://ethereum-sepolia-rpc.publicnode.com",
        validation_alias=env_aliases("ETHEREUM_RPC_URL"),
    )
    solana_rpc_url: str = Field(
        default="https://api.devnet.solana.com",
        validation_alias=env_aliases("SOLANA_RPC_URL"),
    )

    # Privy (custody + signing)
    privy_app_id: str = Field(validation_alias=env_aliases("PRIVY_APP_ID"))
    privy_app_secret: str = Field(validation_alias=env_aliases("PRIVY_APP_SECRET"))
    privy_api_url: str = "https://api.privy.io/v1"

    # Coinbase CDP (swaps)
    cdp_api_key_name: str | None = Field(
        default=None,
        validation_alias=env_aliases("CDP_API_KEY_NAME"),
    )
    cdp_api_key_secret: str | None = Field(
        default=None,
        validation_alias=env_aliases("CDP_API_KEY_SECRET"),
    )
    cdp_api_url: str = "https://api.cdp.coinbase.com/v2"

    # Paycrest (off-ramp)
    paycrest_api_key: str | None = Field(
        default=None,
        validation_alias=env_aliases("PAYCREST_API_KEY"),
    )
    paycrest_api_secret: str | None = Field(
        default=None,
        validation_alias=env_aliases("PAYCREST_API_SECRET"),
        description="Shared secret for X-Paycrest-Signature verification",
    )
    paycrest_api_url: str = "https://api.paycrest.io/v1"

    # Gemini (intent parsing). Rule-based parsing only when unset.
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=env_aliases("GEMINI_API_KEY"),
    )
    gemini_model: str = "gemini-2.0-flash"

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    web_host: str = "0.0.0.0"
    web_port: int = Field(
        default=8080, ge=1, le=65535, description="Webhook HTTP server port"
    )
    reconcile_enabled: bool = Field(
        default=True,
        description="Run the pending transaction reconciler inside the web process",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )
            if not self.telegram_webhook_secret:
                logger.warning(
                    "TELEGRAM_WEBHOOK_SECRET is not set. "
                    "Webhook requests will not be authenticated."
                )
            if self.paycrest_api_key and not self.paycrest_api_secret:
                logger.warning(
                    "PAYCREST_API_SECRET is not set. "
                    "Paycrest webhooks will be rejected."
                )
        return self

    @field_validator("telegram_bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate Telegram bot token format."""
        pattern = r"^\d+:[A-Za-z0-9_-]{35}$"
        if not re.match(pattern, v):
            raise ValueError(
                "Invalid Telegram bot token format. "
                "Expected format: 123456789:ABCdefGHIjklMNOpqrsTUVwxyz"
            )
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL and force the asyncpg driver."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "postgres://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql:// or postgresql+asyncpg://"
            )
        if v.startswith("postgres://"):
            v = "postgresql://" + v[len("postgres://"):]
        if v.startswith("postgresql://"):
            v = "postgresql+asyncpg://" + v[len("postgresql://"):]
        return v

    @field_validator("network_mode")
    @classmethod
    def validate_network_mode(cls, v: str) -> str:
        """Validate network mode."""
        v = v.strip().lower()
        if v not in ("testnet", "mainnet"):
            raise ValueError(
                f"Invalid NETWORK_MODE: {v}. Must be 'testnet' or 'mainnet'."
            )
        return v

    @property
    def is_testnet(self) -> bool:
        """True when chain lookups should resolve to test networks."""
        return self.network_mode == "testnet"

    @property
    def cdp_enabled(self) -> bool:
        """True when CDP credentials are configured."""
        return bool(self.cdp_api_key_name and self.cdp_api_key_secret)

    @property
    def paycrest_enabled(self) -> bool:
        """True when the off-ramp vendor is configured."""
        return bool(self.paycrest_api_key)

    def get_admin_ids(self) -> list[int]:
        """Parse admin IDs from comma-separated string with error handling."""
        if not self.admin_telegram_ids:
            return []

        result = []
        for id_ in self.admin_telegram_ids.split(","):
            id_stripped = id_.strip()
            if not id_stripped:
                continue
            try:
                result.append(int(id_stripped))
            except ValueError:
                logger.warning(f"Invalid admin ID: {id_stripped}")
                continue
        return result


# Global settings instance
settings = Settings()
