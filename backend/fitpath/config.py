import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="FITPATH_DATABASE_URL")
    database_pool_size: int = Field(10, alias="FITPATH_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="FITPATH_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="FITPATH_DATABASE_ECHO")
    identity_header: str = Field("X-Fitpath-Identity", alias="FITPATH_IDENTITY_HEADER")
    child_min_age: int = Field(5, alias="FITPATH_CHILD_MIN_AGE", ge=0)
    child_max_age: int = Field(17, alias="FITPATH_CHILD_MAX_AGE", ge=0)
    activity_timezone: str = Field("UTC", alias="FITPATH_ACTIVITY_TIMEZONE")
    default_language: str = Field("en", alias="FITPATH_DEFAULT_LANGUAGE")
    catalog_admin: bool = Field(False, alias="FITPATH_CATALOG_ADMIN")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
    if settings.child_min_age > settings.child_max_age:
        raise RuntimeError(
            f"Invalid backend configuration: child age band {settings.child_min_age}-{settings.child_max_age} is empty"
        )
    return settings
