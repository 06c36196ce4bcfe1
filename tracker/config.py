"""Service configuration (pydantic), loaded from BENCHMARK_* environment variables."""

import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "BENCHMARK_"

_ENV_FIELDS = {
    "database_url": "DATABASE_URL",
    "echo_sql": "ECHO_SQL",
    "default_page_size": "DEFAULT_PAGE_SIZE",
    "max_page_size": "MAX_PAGE_SIZE",
    "log_level": "LOG_LEVEL",
    "event_log_path": "EVENT_LOG",
    "host": "HOST",
    "port": "PORT",
}


class ServiceConfig(BaseModel):
    """Runtime settings for the benchmark service."""

    database_url: str = Field(default="sqlite:///./benchmarks.db", description="SQLAlchemy database URL")
    echo_sql: bool = Field(default=False, description="Log every SQL statement")
    default_page_size: int = Field(default=20, ge=1, le=2000)
    max_page_size: int = Field(default=2000, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    event_log_path: Optional[str] = Field(default=None, description="JSON lines file for tracker events")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1, le=65535)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_page_sizes(self):
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """Build config from environment; unset variables keep their defaults."""
        env = os.environ if environ is None else environ
        values = {}
        for field_name, suffix in _ENV_FIELDS.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is not None and raw != "":
                values[field_name] = raw
        return cls(**values)
