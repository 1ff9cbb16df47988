"""Configuration models and YAML/environment loader for the job runner."""

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from .models import JobKind

logger = logging.getLogger(__name__)

DEFAULT_JOBS_CONFIG = "jobs.yml"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///db/cinema.db"


class Duration(BaseModel):
    """A span given as any combination of seconds, minutes and hours."""

    seconds: Optional[float] = Field(default=None, ge=0)
    minutes: Optional[float] = Field(default=None, ge=0)
    hours: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def at_least_one_unit(self) -> "Duration":
        if self.seconds is None and self.minutes is None and self.hours is None:
            msg = "At least one of seconds, minutes, or hours must be specified"
            raise ValueError(msg)
        if self.to_timedelta() <= timedelta(0):
            msg = "duration must be positive"
            raise ValueError(msg)
        return self

    def to_timedelta(self) -> timedelta:
        return timedelta(
            seconds=self.seconds or 0,
            minutes=self.minutes or 0,
            hours=self.hours or 0,
        )


class JobConfig(BaseModel):
    """A single scheduled job entry."""

    kind: JobKind
    interval: Duration
    timeout: Optional[Duration] = None
    options: Dict[str, Any] = Field(default_factory=dict)


class Settings(BaseModel):
    """Top-level settings: YAML job file plus environment."""

    database_url: str = DEFAULT_DATABASE_URL
    poll_interval: float = Field(default=1.0, gt=0)
    abort_on_error: bool = False
    log_level: str = "INFO"
    jobs: List[JobConfig] = Field(default_factory=list)

    @field_validator("jobs")
    @classmethod
    def at_least_one_job(cls, v: List[JobConfig]) -> List[JobConfig]:
        if not v:
            msg = "at least one job must be configured"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            msg = f"unknown log level: {v}"
            raise ValueError(msg)
        return level

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> "Settings":
        """Load settings from a YAML file; ``overrides`` win over file values."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: Dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(raw)

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Copy with ``overrides`` applied, validated like file values."""
        return type(self).model_validate({**self.model_dump(), **overrides})


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load ``.env``, then the job file named by ``JOBS_CONFIG`` or ``config_path``."""
    load_dotenv()

    path = config_path or os.getenv("JOBS_CONFIG", DEFAULT_JOBS_CONFIG)
    settings = Settings.from_yaml(
        path,
        database_url=os.getenv("DATABASE_URL"),
        log_level=os.getenv("LOG_LEVEL"),
    )
    logger.debug(f"Loaded {len(settings.jobs)} job(s) from {path}")
    return settings
