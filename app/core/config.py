"""Application configuration."""
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Twilio
    twilio_auth_token: str = ""
    validate_twilio_signature: bool = False
    base_url: Optional[str] = None  # Public URL Twilio signs requests against

    # Database (account directory)
    database_url: str = "sqlite+aiosqlite:///./bank_ivr.db"
    directory_backend: str = "sql"  # sql or yaml
    directory_file: Optional[str] = None  # YAML source (yaml) or seed file (sql)

    # Session store
    redis_url: str = "redis://localhost:6379/0"
    session_backend: str = "redis"  # redis or memory
    session_ttl_seconds: int = 24 * 60 * 60

    # Bank
    bank_name: str = "Fake Bank"
    bank_name_zh: str = "假銀行"
    bank_timezone: str = "Asia/Hong_Kong"
    max_pin_attempts: int = 3
    transfer_account_limit: int = Field(5, ge=1, le=8)  # Keys 9 and 0 are reserved

    # Customer service
    support_queue: str = "support"
    hold_music_url: Optional[str] = None
    max_hold_loops: int = 10
    agent_sip_uri: Optional[str] = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
