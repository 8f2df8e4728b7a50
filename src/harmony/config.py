from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Harmony"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 5000
    log_level: str = "INFO"
    secret_key: str = "change-me"

    database_url: str = "sqlite:///./data/harmony.db"
    data_dir: Path = Path("./data")

    session_cookie_name: str = "harmony_session"
    session_algorithm: str = "HS256"
    session_ttl_min: int = 7 * 24 * 60
    session_cookie_secure: bool = False
    cors_origins: str = "http://127.0.0.1:5000"

    api_base_url: str = "http://127.0.0.1:5000"
    api_timeout_sec: int = 30

    bootstrap_admin_username: str = ""
    bootstrap_admin_email: str = ""
    bootstrap_admin_password: str = ""

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("session_ttl_min")
    @classmethod
    def validate_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("session_ttl_min must be positive")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def bootstrap_admin_enabled(self) -> bool:
        return bool(
            self.bootstrap_admin_username
            and self.bootstrap_admin_email
            and self.bootstrap_admin_password
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
