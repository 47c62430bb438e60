"""Application settings loaded from the environment."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = Path.home() / "Documents" / "KidsBank"


class Settings(BaseSettings):
    """Where the ledger lives and how the application logs."""

    model_config = SettingsConfigDict(
        env_prefix="KIDS_BANK_",
        env_file=".env",
        extra="ignore",
    )

    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        description="Directory holding the live ledger and the backup artifact",
    )
    data_file_name: str = Field(default="bankData.json")
    backup_file_name: str = Field(default="bankDataBackup.json")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(
        default=False,
        description="Render log lines as JSON instead of the console format",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, value: object) -> object:
        if isinstance(value, (str, Path)):
            return Path(value).expanduser()
        return value

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level '{value}'")
        return level

    @property
    def data_file(self) -> Path:
        return self.data_dir / self.data_file_name

    @property
    def backup_file(self) -> Path:
        return self.data_dir / self.backup_file_name


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
