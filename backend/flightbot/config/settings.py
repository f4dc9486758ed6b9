"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "FlightBot"
    app_version: str = "1.0.0"
    debug: bool = True

    # Security
    secret_key: str = "change-this-secret-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Storage
    storage_type: str = "local"
    local_storage_path: str = "./data"

    # Flight search defaults
    max_search_results: int = 10
    default_currency: str = "USD"

    # External flight data (Amadeus self-service API)
    amadeus_client_id: Optional[str] = None
    amadeus_client_secret: Optional[str] = None
    amadeus_hostname: str = "test"  # "test" or "production"
    external_api_timeout: float = 15.0

    # Mock payment processor
    payment_success_rate: float = 0.9
    payment_delay_seconds: float = 1.0

    # Chatbot
    session_idle_timeout_minutes: int = 60  # 0 keeps sessions forever

    # Rate limiting
    rate_limit_enabled: bool = True

    # CORS
    cors_origins: list[str] = ["*"]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/flightbot.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
