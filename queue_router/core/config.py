from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Explicit options handed to the routing engine at construction."""

    inactivity_timeout: timedelta = timedelta(minutes=15)
    reap_interval_seconds: float = 60.0
    reap_page_size: int = 100
    dependency_timeout_seconds: float = 2.0
    presence_stale_after: timedelta = timedelta(minutes=2)

    def __post_init__(self) -> None:
        if self.inactivity_timeout <= timedelta(0):
            raise ValueError("inactivity_timeout must be positive.")
        if self.reap_interval_seconds <= 0:
            raise ValueError("reap_interval_seconds must be positive.")
        if self.reap_page_size < 1:
            raise ValueError("reap_page_size must be at least 1.")
        if self.dependency_timeout_seconds <= 0:
            raise ValueError("dependency_timeout_seconds must be positive.")


class Settings(BaseSettings):
    app_env: str = "local"

    postgres_host: str = "127.0.0.1"
    postgres_port: int = 5432
    postgres_db: str = "queue_router"
    postgres_user: str = "queue_user"
    postgres_password: str = "queue_password"
    database_url_override: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL_OVERRIDE", "DATABASE_URL"),
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_auto_create: bool = False
    db_seed_operators: bool = False

    log_level: str = "INFO"
    log_format: str = "json"

    inactivity_timeout_minutes: int = Field(default=15, ge=1)
    reap_interval_seconds: int = Field(default=60, ge=1)
    reap_page_size: int = Field(default=100, ge=1, le=5000)
    reaper_enabled: bool = True
    dependency_timeout_seconds: float = Field(default=2.0, gt=0)
    presence_stale_after_seconds: int = Field(default=120, ge=1)

    cors_allowed_origins_raw: str = "http://127.0.0.1:5173,http://localhost:5173"
    trusted_hosts_raw: str = "127.0.0.1,localhost"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def cors_allowed_origins(self) -> list[str]:
        return [
            origin.strip()
            for origin in self.cors_allowed_origins_raw.split(",")
            if origin.strip()
        ]

    @property
    def trusted_hosts(self) -> list[str]:
        return [
            host.strip() for host in self.trusted_hosts_raw.split(",") if host.strip()
        ]

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            inactivity_timeout=timedelta(minutes=self.inactivity_timeout_minutes),
            reap_interval_seconds=float(self.reap_interval_seconds),
            reap_page_size=self.reap_page_size,
            dependency_timeout_seconds=self.dependency_timeout_seconds,
            presence_stale_after=timedelta(seconds=self.presence_stale_after_seconds),
        )

    def validate_deployment_settings(self) -> None:
        if self.app_env.lower() != "production":
            return

        if not self.cors_allowed_origins:
            raise ValueError(
                "CORS_ALLOWED_ORIGINS_RAW must define explicit origins in production."
            )
        if "*" in self.cors_allowed_origins:
            raise ValueError("Wildcard CORS origin is not allowed in production.")
        if not self.trusted_hosts:
            raise ValueError(
                "TRUSTED_HOSTS_RAW must define explicit hosts in production."
            )
        if "*" in self.trusted_hosts:
            raise ValueError("Wildcard trusted host is not allowed in production.")
        if self.db_auto_create:
            raise ValueError("DB_AUTO_CREATE must be disabled in production; run migrations.")


@lru_cache
def get_settings() -> Settings:
    return Settings()
