# Application Configuration using Pydantic BaseSettings
import logging
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from crm_score_service.app.service.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class AppSettings(BaseSettings):
    # CRM account API (required, no defaults)
    CRM_BASE_URL: str
    CRM_USERNAME: str
    CRM_PASSWORD: str
    CRM_ACCOUNTS_PATH: str = "/sap/c4c/api/v1/account-service/accounts"

    # Scoring
    SCORE_FIELD_NAME: str = "CustomScore"
    ASYNC_PROCESSING_DELAY_SECONDS: float = 10.0
    SHUTDOWN_DRAIN_TIMEOUT_SECONDS: float = 0.0 # 0 means in-flight updates are abandoned on shutdown

    # HTTP
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEFAULT_HTTP_TIMEOUT: float = 30.0

    # Observability
    SERVICE_NAME: str = "CRM Webhook Service"
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: Optional[str] = None
    OTEL_CONSOLE_EXPORT: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def load_settings() -> AppSettings:
    """
    Builds AppSettings from the environment, turning missing required options
    into a ConfigurationError so the process refuses to start serving.
    """
    try:
        return AppSettings()
    except ValidationError as e:
        problems = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        logger.critical(f"Missing or invalid required settings: {', '.join(problems)}")
        raise ConfigurationError(
            f"Missing or invalid required settings: {', '.join(problems)}"
        ) from e


# Instantiate settings to be imported by other modules
settings = load_settings()

# Never log CRM_PASSWORD.
logger.info("Application settings module initialized.")
