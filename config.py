# config.py  (Pydantic v2)
from typing import List, Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # ---------- Storage ----------
    # "memory" = private per-process copy, "file" = one JSON file, "mongo" = key/value collection
    STORAGE_BACKEND: Literal["memory", "file", "mongo"] = Field(default="memory")
    STORAGE_PATH: str = Field(default="kkojil_storage.json")
    DATABASE_URL: Optional[str] = Field(default=None)
    DATABASE_NAME: str = Field(default="kkojil")
    STORAGE_COLLECTION: str = Field(default="kv")

    # ---------- App behaviour ----------
    SEED_DEFAULT_DATA: bool = Field(default=True)
    AI_DELAY_MIN_MS: int = Field(default=800, ge=0)
    AI_DELAY_MAX_MS: int = Field(default=1000, ge=0)

    # ---------- Server ----------
    LOG_LEVEL: str = Field(default="INFO")
    PORT: int = Field(default=8000)
    CORS_ORIGINS: List[str] = Field(default=["*"])

    # ---------- pydantic-settings config ----------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # allow lower/upper env names
        extra="ignore",
    )


settings = Settings()
