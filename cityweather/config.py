"""Service settings, read from ``CITYWEATHER_*`` environment variables or a ``.env`` file."""
from __future__ import annotations
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB = "sqlite:///weather.db"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CITYWEATHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Store
    DATABASE_URL: str = Field(DEFAULT_DB, description="SQLAlchemy database URL, e.g. mysql+pymysql://user:pw@host:3306/nexus_db")
    POOL_SIZE: int = Field(5, ge=1, description="Connections kept open in the pool")
    MAX_OVERFLOW: int = Field(5, ge=0, description="Connections allowed beyond POOL_SIZE")
    POOL_TIMEOUT: float = Field(30.0, gt=0, description="Seconds to wait for a free connection")

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
