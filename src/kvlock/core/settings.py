"""Lock settings loader."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator


def _default_redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/0")


class LockSettings(BaseModel):
    redis_url: str = Field(default_factory=_default_redis_url)
    key_prefix: str = ""
    ttl_seconds: float = Field(default=30.0, gt=0)
    renew_interval_seconds: Optional[float] = Field(default=None, gt=0)
    renew_timeout_seconds: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_renewal(self) -> "LockSettings":
        if self.renew_interval_seconds is not None and self.renew_interval_seconds >= self.ttl_seconds:
            raise ValueError("renew_interval_seconds must be shorter than ttl_seconds")
        return self

    @property
    def effective_renew_interval(self) -> float:
        """Configured interval, or a third of the TTL."""
        return self.renew_interval_seconds or self.ttl_seconds / 3

    @property
    def effective_renew_timeout(self) -> float:
        return self.renew_timeout_seconds or self.effective_renew_interval

    @classmethod
    def from_file(cls, path: Path) -> "LockSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc
