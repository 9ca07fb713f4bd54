from enum import Enum

from pydantic_settings import BaseSettings


class Environment(str, Enum):
    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TESTING = "testing"


class Settings(BaseSettings):
    """Configuration settings for the air quality monitor."""

    # Environment
    ENVIRONMENT: Environment = Environment.DEVELOPMENT

    # Database (optional, empty disables persistence)
    DATABASE_URL: str = ""

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000

    # MQTT
    MQTT_ENABLED: bool = True
    MQTT_BROKER: str = "localhost"
    MQTT_PORT: int = 1883
    MQTT_TOPIC: str = "aqm/+/telemetry"
    MQTT_CLIENT_ID: str = "aqm-backend"

    # Telemetry
    ONLINE_THRESHOLD_SEC: int = 30
    HISTORY_CAP: int = 5000
    ALERT_CAP: int = 500
    ALERT_STALE_SEC: int = 60
    DUST_MIXED_UNITS: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


def get_settings() -> Settings:
    """Get settings based on environment."""
    import os

    env = os.getenv("AQM_ENV", "development").lower()

    if env == "production":
        return Settings(ENVIRONMENT=Environment.PRODUCTION, LOG_LEVEL="WARNING")
    elif env == "testing":
        return Settings(
            ENVIRONMENT=Environment.TESTING,
            API_PORT=3001,
            MQTT_ENABLED=False,
            MQTT_TOPIC="test/aqm/+/telemetry",
            MQTT_CLIENT_ID="aqm-backend-test",
            LOG_LEVEL="DEBUG",
        )
    else:
        return Settings(ENVIRONMENT=Environment.DEVELOPMENT, LOG_LEVEL="DEBUG")
