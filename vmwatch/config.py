import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("vmwatch.config")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = PROJECT_ROOT / ".env"

if not ENV_PATH.exists():
    logger.warning(".env not found at %s, using environment only", ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",  # ignore unknown fields like APP_ENV
    )

    # database
    db_host: str = Field("localhost", validation_alias="DB_HOST")
    db_port: int = Field(5432, validation_alias="DB_PORT")
    db_name: str = Field("vmwatch", validation_alias="DB_NAME")
    db_user: str = Field("vmwatch", validation_alias="DB_USER")
    db_pass: str = Field("", validation_alias="DB_PASS")
    # full URL wins over the parts above when set
    database_url: Optional[str] = Field(None, validation_alias="DATABASE_URL")

    # broker
    redis_url: str = Field("redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Proxmox control plane
    proxmox_host: str = Field("https://localhost:8006", validation_alias="PROXMOX_HOST")
    proxmox_user: str = Field("root@pam", validation_alias="PROXMOX_USER")
    proxmox_token: str = Field("", validation_alias="PROXMOX_TOKEN")
    proxmox_secret: str = Field("", validation_alias="PROXMOX_SECRET")
    proxmox_verify_ssl: bool = Field(False, validation_alias="PROXMOX_VERIFY_SSL")
    proxmox_timeout: float = Field(10.0, validation_alias="PROXMOX_TIMEOUT")  # seconds

    # staleness sweep cadence
    stale_check_interval: int = Field(60, validation_alias="STALE_CHECK_INTERVAL")  # seconds
    stale_check_in_process: bool = Field(False, validation_alias="STALE_CHECK_IN_PROCESS")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    api_port: int = Field(3000, validation_alias="API_PORT")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        # logging only knows upper-case level names
        return v.strip().upper()

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"postgresql://{self.db_user}:{self.db_pass}@{self.db_host}:{self.db_port}/{self.db_name}"


# single settings instance imported elsewhere
settings = Settings()
