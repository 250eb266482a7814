"""Unit tests for settings loading."""

import pytest
from pydantic import ValidationError

from app.config.settings import Settings


REQUIRED = {
    "TELEGRAM_BOT_TOKEN": "123456789:ABCdefGHIjklMNOpqrsTUVwxyz123456789",
    "DATABASE_URL": "postgresql://u:p@localhost/db",
    "PRIVY_APP_ID": "app",
    "PRIVY_APP_SECRET": "secret",
}


@pytest.fixture
def clean_env(monkeypatch):
    """Environment with only the required variables, no .env file."""
    for name in [
        *REQUIRED,
        "PAYCREST_API_KEY",
        "NEXT_PUBLIC_PAYCREST_API_KEY",
        "CDP_API_KEY_NAME",
        "CDP_API_KEY_SECRET",
        "NETWORK_MODE",
        "NEXT_PUBLIC_NETWORK_MODE",
        "ENVIRONMENT",
    ]:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("ENVIRONMENT", "test")
    return monkeypatch


def _settings():
    return Settings(_env_file=None)


class TestEnvFallback:
    """NEXT_PUBLIC_ variants populate the same fields."""

    def test_public_prefix_used(self, clean_env):
        clean_env.setenv("NEXT_PUBLIC_PAYCREST_API_KEY", "pk_public")
        settings = _settings()
        assert settings.paycrest_api_key == "pk_public"
        assert settings.paycrest_enabled

    def test_plain_name_wins(self, clean_env):
        clean_env.setenv("PAYCREST_API_KEY", "pk_plain")
        clean_env.setenv("NEXT_PUBLIC_PAYCREST_API_KEY", "pk_public")
        assert _settings().paycrest_api_key == "pk_plain"

    def test_public_privy_credentials(self, clean_env):
        clean_env.delenv("PRIVY_APP_ID")
        clean_env.setenv("NEXT_PUBLIC_PRIVY_APP_ID", "public-app")
        assert _settings().privy_app_id == "public-app"


class TestValidation:
    """Field validators."""

    def test_database_url_driver_forced(self, clean_env):
        """Plain postgres URLs get the asyncpg driver."""
        assert _settings().database_url.startswith("postgresql+asyncpg://")

    def test_missing_required_fails(self, clean_env):
        clean_env.delenv("PRIVY_APP_SECRET")
        with pytest.raises(ValidationError):
            _settings()

    def test_bad_token_format(self, clean_env):
        clean_env.setenv("TELEGRAM_BOT_TOKEN", "not-a-token")
        with pytest.raises(ValidationError):
            _settings()

    def test_network_mode(self, clean_env):
        clean_env.setenv("NETWORK_MODE", "Mainnet")
        settings = _settings()
        assert settings.network_mode == "mainnet"
        assert not settings.is_testnet

    def test_invalid_network_mode(self, clean_env):
        clean_env.setenv("NETWORK_MODE", "regtest")
        with pytest.raises(ValidationError):
            _settings()

    def test_admin_ids(self, clean_env):
        clean_env.setenv("ADMIN_TELEGRAM_IDS", "1, 2,abc,,3")
        assert _settings().get_admin_ids() == [1, 2, 3]

    def test_cdp_needs_both_keys(self, clean_env):
        clean_env.setenv("CDP_API_KEY_NAME", "name")
        assert not _settings().cdp_enabled
        clean_env.setenv("CDP_API_KEY_SECRET", "secret")
        assert _settings().cdp_enabled
