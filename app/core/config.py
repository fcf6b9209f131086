# app/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field
from typing import Optional


class Settings(BaseSettings):
    # -------------------------------------------------
    # Project
    # -------------------------------------------------
    APP_NAME: str = "WatchMates Backend"
    DEBUG: bool = False
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # -------------------------------------------------
    # Database Settings
    # -------------------------------------------------
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_USER: str = "postgres"
    DATABASE_PASSWORD: str = "postgres"
    DATABASE_NAME: str = "watchmates"

    DATABASE_POOL_MIN_SIZE: int = 2
    DATABASE_POOL_SIZE: int = 10

    # -------------------------------------------------
    # Redis / Cache
    # -------------------------------------------------
    REDIS_URL: str = "redis://localhost:6379/0"

    # -------------------------------------------------
    # JWT / Auth (tokens are issued by the identity service)
    # -------------------------------------------------
    JWT_SECRET_KEY: str = "CHANGE_ME_SUPER_SECRET"
    JWT_ALGORITHM: str = "HS256"

    # -------------------------------------------------
    # Groups
    # -------------------------------------------------
    FRIENDS_MAX_MEMBERS: int = 15
    WATCH_PARTY_MAX_MEMBERS: int = 50
    # Hard ceiling for any explicit max_members value
    GROUP_MAX_MEMBERS_LIMIT: int = 50

    # When False a declined invitation is terminal for that (group, user) pair.
    # When True the declined row is reset to pending on the next invite.
    ALLOW_REINVITE_AFTER_DECLINE: bool = False

    # Extra attempts after an optimistic-concurrency conflict on expand
    EXPAND_CONFLICT_RETRIES: int = 1

    # -------------------------------------------------
    # Media metadata (TMDb)
    # -------------------------------------------------
    MEDIA_ENRICHMENT_ENABLED: bool = False
    TMDB_API_KEY: Optional[str] = None
    TMDB_BASE_URL: str = "https://api.themoviedb.org/3"
    TMDB_IMAGE_BASE_URL: str = "https://image.tmdb.org/t/p/w500"
    TMDB_TIMEOUT_SECONDS: float = 5.0
    MEDIA_CACHE_TTL_SECONDS: int = 86400

    # -------------------------------------------------
    # Pydantic Settings
    # -------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",        # ignore unknown env vars
        case_sensitive=False,
    )

    # -------------------------------------------------
    # Computed / convenience properties
    # -------------------------------------------------
    @computed_field
    @property
    def DATABASE_URL(self) -> str:  # type: ignore[override]
        """
        Convenience DSN string for libraries that want a URL.
        """
        return (
            f"postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )


settings = Settings()
