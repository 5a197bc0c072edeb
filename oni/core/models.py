import os
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    PROVIDER: Optional[str] = "allanime"
    QUALITY: Optional[str] = "1080"
    SUB_OR_DUB: Optional[str] = "sub"
    DATA_DIR: Optional[str] = "~/.oni"
    LOG_LEVEL: Optional[str] = "INFO"
    LOG_TO_FILE: Optional[bool] = True
    HTTP_CLIENT_TIMEOUT_TOTAL: int = 30
    HTTP_CLIENT_LIMIT: int = 100
    HTTP_CLIENT_LIMIT_PER_HOST: int = 20
    RESOLVE_TIMEOUT: Optional[float] = None
    SHOW_ADULT_CONTENT: Optional[bool] = False

    @field_validator("PROVIDER")
    def normalize_provider(cls, v):
        if v:
            return v.strip().lower()
        return v

    @field_validator("SUB_OR_DUB")
    def validate_sub_or_dub(cls, v):
        v = (v or "sub").strip().lower()
        if v not in ("sub", "dub"):
            raise ValueError("SUB_OR_DUB must be 'sub' or 'dub'")
        return v

    @field_validator("DATA_DIR")
    def expand_data_dir(cls, v):
        return os.path.expanduser(v or "~/.oni")

    @property
    def data_path(self) -> Path:
        return Path(self.DATA_DIR)

    @property
    def cache_path(self) -> Path:
        return self.data_path / "provider_cache.ini"

    @property
    def log_path(self) -> Path:
        return self.data_path / "logs" / "oni.log"


settings = AppSettings()
