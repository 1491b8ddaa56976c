"""
Configuration settings for dbrecord.

Uses Pydantic Settings to load environment variables for database
connections, logging, and the form parameter names used when building
records from submitted input.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_dialect: Literal["postgres", "sqlite"] = Field("postgres", alias="DB_DIALECT")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("dbrecord", alias="DB_NAME")
    sqlite_path: str = Field(":memory:", alias="SQLITE_PATH")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Form input
    form_sent_param: str = Field("dbr.form_sent", alias="FORM_SENT_PARAM")
    form_cancel_param: str = Field("dbr.cancel", alias="FORM_CANCEL_PARAM")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
