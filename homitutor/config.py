from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List, Optional

class Settings(BaseSettings):
    """
    Settings for the HomiTutor API.

    Please do not modify this file directly.
    Instead, create a .env file in the root directory of the project
    and specify the settings you would like to change there.
    For example, if you would like to use a redis server, add the following
    line to the .env file:
    - USE_REDIS=True.

    Some settings are required to be set in the .env file, such as:
    - SECRET_KEY

    Sending verification codes by email requires MAIL_ENABLED=True together
    with the MAIL_* credentials. With mail disabled the code is written to the
    server log instead, which is enough for local development.

    SUMMARY:
    - Override settings (if needed) using a .env file
    - Never push the .env file to GitHub (it should be in .gitignore)
    - The only required .env setting is SECRET_KEY
    """

    # Application settings
    app_name: str = "HomiTutor API"
    app_version: str = "1.0.0"
    api_prefix: str = "/api/v1"
    app_host: str = "127.0.0.1"
    app_port: int = 8000

    # Local vs production settings
    local: bool = True # Default to local development

    # Token settings
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7
    secret_key: str
    hash_algorithm: str = "HS256"

    # Logs settings
    logs_dir: str = "logs"

    # Database settings
    db_url: str = "sqlite:///homitutor.db" # Default, for local development

    # Redis settings
    use_redis: bool = False # Default to not using Redis, change this to True if you have a Redis server set up
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    cache_expire_seconds: int = 600

    # CORS and rate limiting
    cors_origins: List[str] = ["*"]
    rate_limit_enabled: bool = True

    # Mail settings (OTP delivery)
    mail_enabled: bool = False
    mail_host: str = "smtp.gmail.com"
    mail_port: int = 587
    mail_username: Optional[str] = None
    mail_password: Optional[str] = None
    mail_from: str = "HomiTutor <no-reply@homitutor.vn>"
    mail_use_tls: bool = True

    # OTP settings
    otp_expire_minutes: int = 5
    otp_resend_seconds: int = 60

    # Business rules
    featured_tutor_limit: int = 3
    similar_tutor_limit: int = 3
    min_hourly_rate: int = 10000 # VND
    max_recurring_days: int = 180

    # Seed admin account (used by homitutor.seed)
    admin_email: str = "admin@homitutor.vn"
    admin_password: str = "admin123"

    # Load settings from .env file
    model_config = SettingsConfigDict(env_file=".env")

@lru_cache() # Cache settings to avoid reading .env file multiple times
def get_settings():
    """
    Use this function as a dependency to get the settings object.
    Dependency injection will make it easier to test endpoints with different settings, simply inject a different settings object.
    """
    return Settings()
