import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_file: Path = Field(Path("data.json"), alias="LESSON_DATA_FILE")
    persistence_mode: Literal["file", "database"] = Field("file", alias="LESSON_PERSISTENCE_MODE")
    database_url: Optional[str] = Field(None, alias="LESSON_DATABASE_URL")
    database_pool_size: int = Field(10, alias="LESSON_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="LESSON_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="LESSON_DATABASE_ECHO")
    static_dir: Path = Field(Path("public"), alias="LESSON_STATIC_DIR")
    host: str = Field("0.0.0.0", alias="LESSON_HOST")
    port: int = Field(3000, alias="LESSON_PORT")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid lesson progress configuration: {exc}") from exc
