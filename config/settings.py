from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Core
    SERVICE_NAME: str = Field(default="sms-gateway")
    LOG_LEVEL: str = Field(default="INFO")

    # Nexmo
    NEXMO_ENDPOINT: str = Field(default="https://rest.nexmo.com/sms/json")
    NEXMO_TIMEOUT_SECONDS: float = Field(default=20.0)  # only used when no client is injected


settings = Settings()
