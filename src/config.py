import logging
import os
import sys
from typing import Literal, Optional

from aws_lambda_powertools import Logger
from pydantic_settings import BaseSettings, SettingsConfigDict

import entities


def get_logger(service: Optional[str] = None, level: Optional[str] = None) -> Logger:
    # stdout carries the emitted group documents, so log records go to stderr
    kwargs = {
        "json_default": entities.json_default,
        "level": level or os.environ.get("LOG_LEVEL", "INFO"),
        "logger_handler": logging.StreamHandler(sys.stderr),
    }
    if service:
        kwargs["service"] = service
    return Logger(**kwargs)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(frozen=True, extra="ignore")

    log_level: str = "INFO"

    sync_config_path: str = "keycloak-sync.yml"
    output_format: Literal["json", "yaml"] = "json"

    keycloak_debug: bool = False
    keycloak_timeout: float = 30.0
    keycloak_page_size: int = 100


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()
    return _settings
