from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables."""

    fee_api_base_url: str = Field(..., alias="FEE_API_BASE_URL")
    fee_api_token: Optional[str] = Field(None, alias="FEE_API_TOKEN")
    fee_api_timeout_seconds: float = Field(30.0, alias="FEE_API_TIMEOUT_SECONDS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    # Comma-separated, e.g. "http://localhost:3000,https://admin.example.com"
    cors_allow_origins: str = Field("*", alias="CORS_ALLOW_ORIGINS")

    @property
    def cors_origins(self) -> List[str]:
        origins = [origin.strip() for origin in self.cors_allow_origins.split(",")]
        return [origin for origin in origins if origin] or ["*"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
