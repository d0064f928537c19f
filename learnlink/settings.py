from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from dotenv import load_dotenv
import os

load_dotenv()


class Settings(BaseSettings):
    # Database
    database_url: str
    database_echo: bool = False
    db_retry_attempts: int = 5
    db_retry_max_delay_seconds: float = 10.0

    # JWT Auth
    jwt_secret_key: str = "supersecretkey"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Cloudinary configuration
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    storage_folder: str = "ll"
    storage_timeout_seconds: float = 300.0

    # Notifications
    notification_list_limit: int = 20

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(extra="allow", env_file=".env")

    @field_validator("jwt_secret_key")
    def validate_jwt_secret(cls, v):
        if os.getenv("ENV", "development") == "production" and v == "supersecretkey":
            raise ValueError("JWT secret key must be set in production")
        return v

    @field_validator("db_retry_attempts")
    def validate_retry_attempts(cls, v):
        if v < 1:
            raise ValueError("db_retry_attempts must be at least 1")
        return v


settings = Settings()
