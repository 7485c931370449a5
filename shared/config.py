# shared/config.py
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        # Build from individual components if DATABASE_URL not provided
        host = os.getenv("DB_HOST", "localhost")
        port = os.getenv("DB_PORT", "5432")
        name = os.getenv("DB_NAME", "coincollect")
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "")
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"

    # asyncpg only understands the postgresql:// scheme
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def _redis_url() -> str:
    url = os.getenv("REDIS_URL")
    if url:
        return url
    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", "6379"))
    password = os.getenv("REDIS_PASSWORD")
    db = int(os.getenv("REDIS_DB", "0"))
    if password:
        return f"redis://:{password}@{host}:{port}/{db}"
    return f"redis://{host}:{port}/{db}"


class Settings(BaseModel):
    """Runtime configuration, built once at startup and passed to services"""

    environment: str = "development"
    database_url: str
    redis_url: str
    db_pool_min_size: int = Field(1, ge=1)
    db_pool_max_size: int = Field(5, ge=1)
    skip_schema_init: bool = False

    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_hours: int = Field(24 * 7, ge=1)

    # Dashboard day/hour/month boundaries are computed in this zone
    report_timezone: str = "Asia/Kolkata"

    webhook_secret: Optional[str] = None
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        return self.environment in ("production", "staging")

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            database_url=_database_url(),
            redis_url=_redis_url(),
            db_pool_min_size=int(os.getenv("DB_POOL_MIN_SIZE", "1")),
            db_pool_max_size=int(os.getenv("DB_POOL_MAX_SIZE", "5")),
            skip_schema_init=os.getenv("SKIP_SCHEMA_INIT", "false").lower() == "true",
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production"),
            access_token_expire_hours=int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", str(24 * 7))),
            report_timezone=os.getenv("REPORT_TIMEZONE", "Asia/Kolkata"),
            webhook_secret=os.getenv("WEBHOOK_SECRET") or None,
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
        )
