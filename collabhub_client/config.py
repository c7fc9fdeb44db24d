"""
Configuration loading and validation.

Loads client configuration from a YAML file. The auth token is never stored
in the file; the config names the environment variable that holds it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    url: str = "ws://localhost:8000/api/v1/ws"
    token_env: str = "COLLABHUB_TOKEN"

    @property
    def token(self) -> str | None:
        return os.environ.get(self.token_env)


class ReconnectConfig(BaseModel):
    initial_delay_seconds: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    max_delay_seconds: float = Field(default=5.0, ge=0)
    max_attempts: int = Field(default=5, ge=1)


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "json"


class ClientConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    rooms: list[str] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path) -> ClientConfig:
    """Load and validate client configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return ClientConfig.model_validate(raw)
