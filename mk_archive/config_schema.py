from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


def _optional_id(value: str | None) -> str | None:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def normalize_host(host: str) -> str:
    h = (host or "").strip()
    for prefix in ("https://", "http://"):
        if h.lower().startswith(prefix):
            h = h[len(prefix) :]
    h = h.rstrip("/")
    if not h or "/" in h:
        raise ValueError(f"host must be a bare hostname, got {host!r}")
    return h


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class InstanceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str
    token_env: str = "MISSKEY_TOKEN"
    timeout_seconds: float = Field(30.0, gt=0)

    @field_validator("host")
    @classmethod
    def _host_must_be_bare(cls, v: str) -> str:
        return normalize_host(v)

    @field_validator("token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)


class CrawlConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    channel_id: str | None = None
    since_id: str | None = None  # lower bound, constant for the whole run
    until_id: str | None = None  # starting cursor; None starts from the newest note
    page_size: PositiveInt = Field(60, le=100)

    @field_validator("channel_id", "since_id", "until_id", mode="before")
    @classmethod
    def _blank_ids_are_unset(cls, v: str | None) -> str | None:
        return _optional_id(v)


class ThrottleConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    delay_ms: NonNegativeInt = 10000  # 0 disables the delay


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    instance: InstanceConfig
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)
