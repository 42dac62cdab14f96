import pytest

from crm_score_service.app import config as app_config
from crm_score_service.app.config import AppSettings, load_settings
from crm_score_service.app.service.exceptions import ConfigurationError


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    # No .env in the working directory and no CRM_* variables.
    monkeypatch.chdir(tmp_path)
    for name in ("CRM_BASE_URL", "CRM_USERNAME", "CRM_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_missing_required_settings_is_fatal(isolated_env):
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings()

    message = str(exc_info.value)
    assert "CRM_BASE_URL" in message
    assert "CRM_USERNAME" in message
    assert "CRM_PASSWORD" in message


def test_single_missing_setting_is_named(isolated_env):
    isolated_env.setenv("CRM_BASE_URL", "https://crm.example.test")
    isolated_env.setenv("CRM_USERNAME", "user")

    with pytest.raises(ConfigurationError) as exc_info:
        load_settings()

    assert "CRM_PASSWORD" in str(exc_info.value)
    assert "CRM_USERNAME" not in str(exc_info.value)


def test_defaults(isolated_env):
    isolated_env.setenv("CRM_BASE_URL", "https://crm.example.test")
    isolated_env.setenv("CRM_USERNAME", "user")
    isolated_env.setenv("CRM_PASSWORD", "pass")
    isolated_env.delenv("PORT", raising=False)
    isolated_env.delenv("ASYNC_PROCESSING_DELAY_SECONDS", raising=False)

    loaded = load_settings()

    assert isinstance(loaded, AppSettings)
    assert loaded.PORT == 3000
    assert loaded.ASYNC_PROCESSING_DELAY_SECONDS == 10.0
    assert loaded.SCORE_FIELD_NAME == "CustomScore"
    assert loaded.CRM_ACCOUNTS_PATH == "/sap/c4c/api/v1/account-service/accounts"


def test_port_from_environment(isolated_env):
    isolated_env.setenv("CRM_BASE_URL", "https://crm.example.test")
    isolated_env.setenv("CRM_USERNAME", "user")
    isolated_env.setenv("CRM_PASSWORD", "pass")
    isolated_env.setenv("PORT", "8080")

    assert load_settings().PORT == 8080


def test_module_settings_loaded_from_test_environment():
    assert app_config.settings.CRM_BASE_URL
    assert app_config.settings.CRM_USERNAME
